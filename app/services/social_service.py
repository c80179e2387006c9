"""
Kindred - Social graph: follows, blocks, profile visits and user search.
"""

from __future__ import annotations

import uuid
from datetime import datetime, tzinfo

import structlog
from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import InvalidRequestError, NotFoundError
from app.models.user import Block, Follow, ProfileVisit, User
from app.utils.dates import is_same_calendar_day, utcnow

logger = structlog.get_logger("kindred.social_service")

VISITOR_HISTORY_LIMIT = 50
SEARCH_RESULT_LIMIT = 50


def not_blocked(column, user_id: uuid.UUID):
    """Filter *column* to ids neither blocked by nor blocking *user_id*."""
    return and_(
        column.not_in(select(Block.blocked_id).where(Block.blocker_id == user_id)),
        column.not_in(select(Block.blocker_id).where(Block.blocked_id == user_id)),
    )


async def get_user_or_404(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def is_blocked_between(
    db: AsyncSession, first: uuid.UUID, second: uuid.UUID
) -> bool:
    stmt = select(Block.id).where(
        or_(
            and_(Block.blocker_id == first, Block.blocked_id == second),
            and_(Block.blocker_id == second, Block.blocked_id == first),
        )
    )
    return (await db.execute(stmt)).first() is not None


class SocialService:
    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz: tzinfo = tz or get_settings().mission_tz

    # ── Follows ───────────────────────────────────────────────────────────

    async def follow(
        self, db: AsyncSession, user_id: uuid.UUID, target_id: uuid.UUID
    ) -> None:
        if user_id == target_id:
            raise InvalidRequestError("You cannot follow yourself")
        await get_user_or_404(db, target_id)
        if await self.is_following(db, user_id, target_id):
            raise InvalidRequestError("You already follow this user")
        try:
            async with db.begin_nested():
                db.add(Follow(follower_id=user_id, followed_id=target_id))
        except IntegrityError:
            raise InvalidRequestError("You already follow this user") from None
        logger.info("user_followed", user_id=str(user_id), target_id=str(target_id))

    async def unfollow(
        self, db: AsyncSession, user_id: uuid.UUID, target_id: uuid.UUID
    ) -> None:
        if user_id == target_id:
            raise InvalidRequestError("You cannot unfollow yourself")
        await get_user_or_404(db, target_id)
        result = await db.execute(
            delete(Follow).where(
                Follow.follower_id == user_id, Follow.followed_id == target_id
            )
        )
        if result.rowcount == 0:
            raise InvalidRequestError("You are not following this user")
        logger.info("user_unfollowed", user_id=str(user_id), target_id=str(target_id))

    async def is_following(
        self, db: AsyncSession, user_id: uuid.UUID, target_id: uuid.UUID
    ) -> bool:
        stmt = select(Follow.id).where(
            Follow.follower_id == user_id, Follow.followed_id == target_id
        )
        return (await db.execute(stmt)).first() is not None

    async def follow_counts(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> tuple[int, int]:
        """Return ``(followers, following)``."""
        followers = await db.scalar(
            select(func.count()).select_from(Follow).where(Follow.followed_id == user_id)
        )
        following = await db.scalar(
            select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        )
        return followers or 0, following or 0

    # ── Blocks ────────────────────────────────────────────────────────────

    async def block(
        self, db: AsyncSession, user_id: uuid.UUID, target_id: uuid.UUID
    ) -> None:
        """Block *target_id*; drops follow edges in both directions."""
        if user_id == target_id:
            raise InvalidRequestError("Cannot block yourself")
        await get_user_or_404(db, target_id)

        existing = await db.execute(
            select(Block.id).where(
                Block.blocker_id == user_id, Block.blocked_id == target_id
            )
        )
        if existing.first() is None:
            try:
                async with db.begin_nested():
                    db.add(Block(blocker_id=user_id, blocked_id=target_id))
            except IntegrityError:
                pass  # concurrent block of the same pair; the row exists

        await db.execute(
            delete(Follow).where(
                or_(
                    and_(Follow.follower_id == user_id, Follow.followed_id == target_id),
                    and_(Follow.follower_id == target_id, Follow.followed_id == user_id),
                )
            )
        )
        logger.info("user_blocked", user_id=str(user_id), target_id=str(target_id))

    async def unblock(
        self, db: AsyncSession, user_id: uuid.UUID, target_id: uuid.UUID
    ) -> None:
        await db.execute(
            delete(Block).where(
                Block.blocker_id == user_id, Block.blocked_id == target_id
            )
        )
        logger.info("user_unblocked", user_id=str(user_id), target_id=str(target_id))

    # ── Profile visits ────────────────────────────────────────────────────

    async def record_visit(
        self,
        db: AsyncSession,
        visitor_id: uuid.UUID,
        visited_id: uuid.UUID,
        now: datetime | None = None,
    ) -> bool:
        """Log a profile visit; at most one per visitor/profile/calendar day.

        Returns whether a new visit row was written.  Visiting your own
        profile is ignored.
        """
        if visitor_id == visited_id:
            return False
        await get_user_or_404(db, visited_id)
        now = now or utcnow()

        stmt = (
            select(ProfileVisit.visited_at)
            .where(
                ProfileVisit.visitor_id == visitor_id,
                ProfileVisit.visited_id == visited_id,
            )
            .order_by(ProfileVisit.visited_at.desc())
            .limit(1)
        )
        last_visit = (await db.execute(stmt)).scalar_one_or_none()
        if is_same_calendar_day(last_visit, now, self.tz):
            return False

        db.add(ProfileVisit(visitor_id=visitor_id, visited_id=visited_id, visited_at=now))
        await db.flush()
        logger.info("profile_visit_logged", visitor_id=str(visitor_id), visited_id=str(visited_id))
        return True

    async def list_visitors(
        self, db: AsyncSession, user_id: uuid.UUID, limit: int = VISITOR_HISTORY_LIMIT
    ) -> list[tuple[User, datetime]]:
        stmt = (
            select(User, ProfileVisit.visited_at)
            .join(ProfileVisit, ProfileVisit.visitor_id == User.id)
            .where(ProfileVisit.visited_id == user_id)
            .where(not_blocked(User.id, user_id))
            .order_by(ProfileVisit.visited_at.desc())
            .limit(limit)
        )
        return [(row[0], row[1]) for row in (await db.execute(stmt)).all()]

    # ── Search ────────────────────────────────────────────────────────────

    async def search_users(
        self,
        db: AsyncSession,
        viewer_id: uuid.UUID,
        query: str | None = None,
        limit: int = SEARCH_RESULT_LIMIT,
    ) -> list[User]:
        """Active users other than the viewer, minus blocks in either direction.

        *query* matches username or full name, case-insensitively.
        """
        stmt = select(User).where(
            User.id != viewer_id,
            User.account_status == "active",
            not_blocked(User.id, viewer_id),
        )
        if query:
            stmt = stmt.where(
                or_(
                    User.username.icontains(query, autoescape=True),
                    User.full_name.icontains(query, autoescape=True),
                )
            )
        stmt = stmt.order_by(User.username).limit(limit)
        return list((await db.execute(stmt)).scalars().all())

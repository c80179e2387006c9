"""
Kindred - Profile lifecycle.

Registration, own-profile edits, the public profile view (which logs a
visit), boost activation and travel mode.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import ConflictError, InvalidRequestError, NotFoundError
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate
from app.services import presence_service
from app.services.mission_service import MissionService
from app.services.social_service import (
    SocialService,
    get_user_or_404,
    is_blocked_between,
)
from app.utils.dates import utcnow

logger = structlog.get_logger("kindred.profile_service")


class ProfileService:
    def __init__(
        self,
        mission_service: MissionService | None = None,
        social_service: SocialService | None = None,
    ) -> None:
        self.settings = get_settings()
        self.mission_service = mission_service or MissionService()
        self.social_service = social_service or SocialService()

    # ── Registration & edits ──────────────────────────────────────────────

    async def register(self, db: AsyncSession, data: UserCreate) -> User:
        """Create a user record; username and email must be unused."""
        username = data.username.strip()
        email = data.email.lower()

        taken = await db.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if taken.first() is not None:
            raise ConflictError("Username or email already registered")

        fields = data.model_dump(exclude={"username", "email"}, exclude_none=True)
        user = User(
            username=username,
            email=email,
            coins=self.settings.STARTING_COINS,
            **fields,
        )
        try:
            async with db.begin_nested():
                db.add(user)
        except IntegrityError:
            raise ConflictError("Username or email already registered") from None

        logger.info("user_registered", user_id=str(user.id), username=username)
        return user

    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        data: UserUpdate,
        now: datetime | None = None,
    ) -> User:
        """Partial update; bumps the ``update_profile`` mission."""
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise InvalidRequestError("No fields to update")

        for field, value in changes.items():
            setattr(user, field, value)
        user.updated_at = now or utcnow()
        await db.flush()

        await self.mission_service.record_progress(db, user.id, "update_profile", now)
        logger.info("profile_updated", user_id=str(user.id), fields=sorted(changes))
        return user

    # ── Public profile ────────────────────────────────────────────────────

    async def get_public_profile(
        self,
        db: AsyncSession,
        viewer_id: uuid.UUID,
        target_id: uuid.UUID,
        now: datetime | None = None,
    ) -> dict:
        """Load another user's profile and log the visit.

        Users on either side of a block are reported as not found.
        """
        target = await get_user_or_404(db, target_id)
        if viewer_id != target_id and await is_blocked_between(db, viewer_id, target_id):
            raise NotFoundError("User not found")

        social = self.social_service
        await social.record_visit(db, viewer_id, target_id, now)
        followers, following = await social.follow_counts(db, target_id)

        return {
            "user": target,
            "is_following": await social.is_following(db, viewer_id, target_id),
            "is_online": await presence_service.is_online(str(target_id)),
            "followers_count": followers,
            "following_count": following,
        }

    # ── Boost & travel ────────────────────────────────────────────────────

    async def activate_boost(
        self, db: AsyncSession, user: User, now: datetime | None = None
    ) -> User:
        now = now or utcnow()
        user.boost_expires_at = now + timedelta(
            minutes=self.settings.BOOST_DURATION_MINUTES
        )
        await db.flush()
        logger.info(
            "boost_activated",
            user_id=str(user.id),
            expires_at=user.boost_expires_at.isoformat(),
        )
        return user

    async def set_travel_mode(
        self,
        db: AsyncSession,
        user: User,
        enabled: bool,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> User:
        """Set or clear the location override used by discovery."""
        if enabled:
            if latitude is None or longitude is None:
                raise InvalidRequestError("Latitude and longitude are required for travel mode")
            user.travel_latitude = latitude
            user.travel_longitude = longitude
        else:
            user.travel_latitude = None
            user.travel_longitude = None
        await db.flush()

        logger.info("travel_mode_changed", user_id=str(user.id), enabled=enabled)
        return user

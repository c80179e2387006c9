"""
Kindred - Swipe / Match Resolver

State machine per (swiper, target) pair on the ``swipes`` ledger:

  no row               -> row created with the action
  row, same action     -> no-op, reported as ``already_swiped``
  row, other action    -> action overwritten, ``swiped_at`` refreshed

Positive actions (like, superlike, react, instant) then look for a
reciprocal positive row; a hit, or an ``instant`` swipe, establishes the
match.  A freshly established match sends the greeting messages: the
swiper's optional message plus each party's auto-reply.

Side effects on daily missions: the swiper's ``swipes`` counter, their
``super_like`` counter (superlikes only) and the target's ``like_received``
counter (positive actions only).

Paid actions (rewind, reset dislikes, instant match, rematch) deduct a
fixed price with a conditional UPDATE inside the request transaction, so a
failure anywhere leaves both the ledger and the balance untouched.
"""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.config import get_settings
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from app.models.match import POSITIVE_ACTIONS, SWIPE_ACTIONS, Match, Swipe, canonical_pair
from app.models.user import User
from app.services.chat_service import ChatService
from app.services.mission_service import MissionService
from app.services.social_service import get_user_or_404, is_blocked_between, not_blocked
from app.services.wallet_service import spend_coins
from app.utils.dates import utcnow

logger = structlog.get_logger("kindred.swipe_service")


def _swipe_result(
    status: str,
    *,
    match: bool = False,
    superlike: bool = False,
    already_swiped: bool = False,
    match_id: uuid.UUID | None = None,
) -> dict:
    return {
        "status": status,
        "match": match,
        "superlike": superlike,
        "already_swiped": already_swiped,
        "match_id": match_id,
    }


class SwipeService:
    """Records swipes, resolves matches and hosts the paid actions."""

    def __init__(
        self,
        mission_service: MissionService | None = None,
        chat_service: ChatService | None = None,
    ) -> None:
        self.settings = get_settings()
        self.mission_service = mission_service or MissionService()
        self.chat_service = chat_service or ChatService(self.mission_service)

    # ══════════════════════════════════════════════════════════════════════
    # 1. swipe - record an action and resolve reciprocity
    # ══════════════════════════════════════════════════════════════════════

    async def swipe(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        action: str,
        message: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        """Apply *action* from *actor_id* towards *target_id*.

        Returns ``{status, match, superlike, already_swiped, match_id}``.
        An ``instant`` swipe is charged ``INSTANT_MATCH_COST`` and matches
        without waiting for reciprocity.
        """
        if action not in SWIPE_ACTIONS:
            raise InvalidRequestError("Invalid swipe action")
        if actor_id == target_id:
            raise InvalidRequestError("You cannot swipe on yourself")

        now = now or utcnow()
        log = logger.bind(user_id=str(actor_id), target_id=str(target_id), action=action)

        actor = await get_user_or_404(db, actor_id)
        target = await get_user_or_404(db, target_id)
        if await is_blocked_between(db, actor_id, target_id):
            raise ForbiddenError("You cannot interact with this user")
        if action == "instant" and await self.get_match(db, actor_id, target_id) is not None:
            raise ConflictError("You are already matched with this user")

        existing = await self._get_swipe(db, actor_id, target_id)
        if existing is not None and existing.action == action:
            log.info("swipe_already_recorded")
            return _swipe_result("already_swiped", already_swiped=True)

        try:
            async with db.begin_nested():
                if action == "instant":
                    await spend_coins(db, actor_id, self.settings.INSTANT_MATCH_COST)
                if existing is None:
                    db.add(
                        Swipe(
                            swiper_id=actor_id,
                            target_id=target_id,
                            action=action,
                            message=message,
                            swiped_at=now,
                            created_at=now,
                        )
                    )
                else:
                    existing.action = action
                    existing.message = message
                    existing.swiped_at = now
        except IntegrityError:
            # A concurrent request for the same pair won the insert.
            log.info("swipe_insert_conflict")
            return _swipe_result("already_processed", already_swiped=True)

        status = "recorded" if existing is None else "updated"
        log.info("swipe_recorded", status=status)

        await self._bump_missions(db, actor_id, target_id, action, now)

        if action not in POSITIVE_ACTIONS:
            return _swipe_result(status)

        superlike = action == "superlike"
        reciprocal = await self._get_swipe(db, target_id, actor_id)
        reciprocal_positive = reciprocal is not None and reciprocal.is_positive
        if reciprocal_positive and reciprocal.action == "superlike":
            superlike = True

        if not (reciprocal_positive or action == "instant"):
            return _swipe_result(status, superlike=superlike)

        source = "instant" if action == "instant" and not reciprocal_positive else "mutual"
        match, created = await self._establish_match(db, actor_id, target_id, source, now)
        if created:
            await self._send_greetings(db, actor, target, message, now)

        return _swipe_result(
            "matched", match=True, superlike=superlike, match_id=match.id
        )

    # ══════════════════════════════════════════════════════════════════════
    # 2. Paid actions
    # ══════════════════════════════════════════════════════════════════════

    async def rewind(
        self, db: AsyncSession, actor_id: uuid.UUID
    ) -> dict:
        """Delete the actor's most recent ledger row.

        Matches already established are kept; only the swipe is undone.
        """
        stmt = (
            select(Swipe)
            .where(Swipe.swiper_id == actor_id)
            .order_by(Swipe.swiped_at.desc(), Swipe.created_at.desc())
            .limit(1)
        )
        last = (await db.execute(stmt)).scalar_one_or_none()
        if last is None:
            raise NotFoundError("No swipe to rewind")

        cost = self.settings.REWIND_COST
        balance = await spend_coins(db, actor_id, cost)
        target_id = last.target_id
        await db.delete(last)
        await db.flush()

        logger.info(
            "swipe_rewound", user_id=str(actor_id), target_id=str(target_id), cost=cost
        )
        return {
            "message": "Last swipe rewound",
            "coins_spent": cost,
            "new_balance": balance,
            "target_user_id": target_id,
            "removed": 1,
        }

    async def reset_dislikes(self, db: AsyncSession, actor_id: uuid.UUID) -> dict:
        """Remove every dislike the actor has made so those users reappear."""
        cost = self.settings.RESET_DISLIKES_COST
        balance = await spend_coins(db, actor_id, cost)
        result = await db.execute(
            delete(Swipe).where(Swipe.swiper_id == actor_id, Swipe.action == "dislike")
        )
        removed = result.rowcount or 0

        logger.info("dislikes_reset", user_id=str(actor_id), removed=removed, cost=cost)
        return {
            "message": "Dislikes reset",
            "coins_spent": cost,
            "new_balance": balance,
            "removed": removed,
        }

    async def instant_match(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        message: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        """Paid swipe that matches without waiting for reciprocity (409 if matched)."""
        return await self.swipe(db, actor_id, target_id, "instant", message, now)

    async def rematch(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        now: datetime | None = None,
    ) -> dict:
        """Re-establish a match with someone the actor has swiped on before."""
        if actor_id == target_id:
            raise InvalidRequestError("You cannot rematch with yourself")
        now = now or utcnow()

        await get_user_or_404(db, target_id)
        if await is_blocked_between(db, actor_id, target_id):
            raise ForbiddenError("You cannot interact with this user")

        previous = await self._get_swipe(db, actor_id, target_id)
        if previous is None:
            raise InvalidRequestError("You have not swiped on this user")
        if await self.get_match(db, actor_id, target_id) is not None:
            raise ConflictError("You are already matched with this user")

        cost = self.settings.REMATCH_COST
        balance = await spend_coins(db, actor_id, cost)
        if not previous.is_positive:
            previous.action = "like"
            previous.swiped_at = now

        match, _ = await self._establish_match(db, actor_id, target_id, "rematch", now)
        return {
            "message": "Rematched",
            "coins_spent": cost,
            "new_balance": balance,
            "target_user_id": target_id,
            "match_id": match.id,
        }

    # ══════════════════════════════════════════════════════════════════════
    # 3. Match listings
    # ══════════════════════════════════════════════════════════════════════

    async def unmatch(
        self, db: AsyncSession, actor_id: uuid.UUID, target_id: uuid.UUID
    ) -> None:
        """Dissolve the match; the swipe ledger is left as it is."""
        user_a, user_b = canonical_pair(actor_id, target_id)
        result = await db.execute(
            delete(Match).where(Match.user_a_id == user_a, Match.user_b_id == user_b)
        )
        if not result.rowcount:
            raise NotFoundError("Match not found")
        logger.info("match_removed", user_id=str(actor_id), target_id=str(target_id))

    async def list_matches(self, db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
        stmt = (
            select(Match)
            .where(or_(Match.user_a_id == user_id, Match.user_b_id == user_id))
            .order_by(Match.created_at.desc())
        )
        matches = (await db.execute(stmt)).scalars().all()
        if not matches:
            return []

        other_ids = [m.other(user_id) for m in matches]
        users_stmt = select(User).where(
            User.id.in_(other_ids), not_blocked(User.id, user_id)
        )
        users = {u.id: u for u in (await db.execute(users_stmt)).scalars().all()}

        return [
            {
                "match_id": m.id,
                "user": users[m.other(user_id)],
                "source": m.source,
                "matched_at": m.created_at,
            }
            for m in matches
            if m.other(user_id) in users
        ]

    async def list_likes(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> list[tuple[User, str, datetime]]:
        """Users who swiped positively on *user_id* and are still unanswered."""
        answered = aliased(Swipe)
        stmt = (
            select(User, Swipe.action, Swipe.swiped_at)
            .join(Swipe, Swipe.swiper_id == User.id)
            .where(
                Swipe.target_id == user_id,
                Swipe.action.in_(POSITIVE_ACTIONS),
                User.id.not_in(
                    select(answered.target_id).where(answered.swiper_id == user_id)
                ),
                not_blocked(User.id, user_id),
                User.account_status == "active",
            )
            .order_by(Swipe.swiped_at.desc())
        )
        return [(row[0], row[1], row[2]) for row in (await db.execute(stmt)).all()]

    async def get_match(
        self, db: AsyncSession, first: uuid.UUID, second: uuid.UUID
    ) -> Match | None:
        user_a, user_b = canonical_pair(first, second)
        stmt = select(Match).where(Match.user_a_id == user_a, Match.user_b_id == user_b)
        return (await db.execute(stmt)).scalar_one_or_none()

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    async def _get_swipe(
        db: AsyncSession, swiper_id: uuid.UUID, target_id: uuid.UUID
    ) -> Swipe | None:
        stmt = select(Swipe).where(
            and_(Swipe.swiper_id == swiper_id, Swipe.target_id == target_id)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def _establish_match(
        self,
        db: AsyncSession,
        first: uuid.UUID,
        second: uuid.UUID,
        source: str,
        now: datetime,
    ) -> tuple[Match, bool]:
        """Insert the pair's match row; returns ``(match, created)``."""
        existing = await self.get_match(db, first, second)
        if existing is not None:
            return existing, False

        user_a, user_b = canonical_pair(first, second)
        match = Match(user_a_id=user_a, user_b_id=user_b, source=source, created_at=now)
        try:
            async with db.begin_nested():
                db.add(match)
        except IntegrityError:
            # The other side's swipe created the row concurrently.
            logger.info("match_insert_conflict", user_a=str(user_a), user_b=str(user_b))
            return await self.get_match(db, first, second), False

        logger.info(
            "match_established",
            match_id=str(match.id),
            user_a=str(user_a),
            user_b=str(user_b),
            source=source,
        )
        return match, True

    async def _bump_missions(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        action: str,
        now: datetime,
    ) -> None:
        missions = self.mission_service
        await missions.record_progress(db, actor_id, "swipes", now)
        if action == "superlike":
            await missions.record_progress(db, actor_id, "super_like", now)
        if action in POSITIVE_ACTIONS:
            await missions.record_progress(db, target_id, "like_received", now)

    async def _send_greetings(
        self,
        db: AsyncSession,
        actor: User,
        target: User,
        message: str | None,
        now: datetime,
    ) -> None:
        """Swiper's note first, then each party's auto-reply to the other."""
        greetings: list[tuple[uuid.UUID, uuid.UUID, str]] = []
        if message:
            greetings.append((actor.id, target.id, message))
        for owner, other in ((actor, target), (target, actor)):
            if owner.auto_reply:
                greetings.append((owner.id, other.id, owner.auto_reply))

        for sender_id, receiver_id, text in greetings:
            await self.chat_service.send_message(
                db,
                sender_id,
                receiver_id,
                text,
                count_towards_missions=False,
                now=now,
            )

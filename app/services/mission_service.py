"""
Kindred - Daily Missions & Rewards

Each mission is a counter with a goal (or a plain once-a-day action) and a
fixed coin reward claimable once per calendar day.  Counters roll over
lazily: nothing sweeps them at midnight, instead every read or write first
asks whether the last activity happened on an earlier day.

Progress is modelled by the immutable ``MissionProgress`` value object:

  rollover(now)   counter -> 0 when the last activity was on an earlier day
  increment(now)  +1, unless the mission was already claimed today
  claim(now)      stamps the claim; rejects a second claim on the same day
                  and (for counted missions) a counter below the goal

``MissionService`` maps those transitions onto ``mission_progress`` rows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import (
    InvalidRequestError,
    MissionAlreadyClaimedError,
    MissionNotCompletedError,
)
from app.models.mission import MissionProgressRecord
from app.services.wallet_service import credit_coins
from app.utils.dates import is_same_calendar_day, utcnow

logger = structlog.get_logger("kindred.mission_service")


# ──────────────────────────────────────────────────────────────────────────────
# Catalogue
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MissionDefinition:
    key: str
    label: str
    reward: int
    goal: int | None = None  # None: simple daily action, claimable any time


MISSIONS: dict[str, MissionDefinition] = {
    m.key: m
    for m in (
        MissionDefinition("daily_login", "Daily Login", reward=50),
        MissionDefinition("send_messages", "Send 10 Messages", reward=100, goal=10),
        MissionDefinition("swipes", "Swipe 20 Times", reward=75, goal=20),
        MissionDefinition("super_like", "Send a Super Like", reward=50, goal=1),
        MissionDefinition("like_received", "Get Your First Like", reward=50, goal=1),
        MissionDefinition("update_profile", "Update Your Profile", reward=50, goal=1),
        MissionDefinition("share_app", "Share the App", reward=250),
    )
}


# ──────────────────────────────────────────────────────────────────────────────
# Value object
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MissionProgress:
    count: int = 0
    last_claim_at: datetime | None = None
    last_activity_at: datetime | None = None

    def claimed_today(self, now: datetime, tz: tzinfo) -> bool:
        return is_same_calendar_day(self.last_claim_at, now, tz)

    def rollover(self, now: datetime, tz: tzinfo) -> MissionProgress:
        if self.last_activity_at is None or is_same_calendar_day(
            self.last_activity_at, now, tz
        ):
            return self
        return replace(self, count=0)

    def increment(self, now: datetime, tz: tzinfo, by: int = 1) -> MissionProgress:
        current = self.rollover(now, tz)
        if current.claimed_today(now, tz):
            return current
        return replace(current, count=current.count + by, last_activity_at=now)

    def is_claimable(
        self, definition: MissionDefinition, now: datetime, tz: tzinfo
    ) -> bool:
        current = self.rollover(now, tz)
        if current.claimed_today(now, tz):
            return False
        return definition.goal is None or current.count >= definition.goal

    def claim(
        self, definition: MissionDefinition, now: datetime, tz: tzinfo
    ) -> MissionProgress:
        current = self.rollover(now, tz)
        if current.claimed_today(now, tz):
            raise MissionAlreadyClaimedError()
        if definition.goal is not None and current.count < definition.goal:
            raise MissionNotCompletedError()
        return replace(current, last_claim_at=now, last_activity_at=now)


# ──────────────────────────────────────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────────────────────────────────────

class MissionService:
    """Persists mission progress and grants rewards."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz: tzinfo = tz or get_settings().mission_tz

    # ── Public API ────────────────────────────────────────────────────────

    async def record_progress(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        mission_type: str,
        now: datetime | None = None,
        by: int = 1,
    ) -> MissionProgress:
        """Bump a mission counter as a side effect of some other action."""
        now = now or utcnow()
        record = await self._get_or_create(db, user_id, mission_type)
        progress = self._to_value(record).increment(now, self.tz, by=by)
        self._write(record, progress)

        logger.debug(
            "mission_progress_recorded",
            user_id=str(user_id),
            mission_type=mission_type,
            count=progress.count,
        )
        return progress

    async def get_status(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        now: datetime | None = None,
    ) -> dict[str, dict]:
        """Return per-mission status, persisting any lazy rollover."""
        now = now or utcnow()
        stmt = select(MissionProgressRecord).where(
            MissionProgressRecord.user_id == user_id
        )
        records = {
            r.mission_type: r for r in (await db.execute(stmt)).scalars().all()
        }

        status: dict[str, dict] = {}
        for key, definition in MISSIONS.items():
            record = records.get(key)
            progress = self._to_value(record).rollover(now, self.tz)
            if record is not None and record.count != progress.count:
                self._write(record, progress)

            status[key] = {
                "completed": progress.claimed_today(now, self.tz),
                "claimable": progress.is_claimable(definition, now, self.tz),
                "progress": progress.count if definition.goal is not None else None,
                "goal": definition.goal,
                "reward": definition.reward,
            }
        return status

    async def claim(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        mission_type: str,
        now: datetime | None = None,
    ) -> dict:
        """Claim a mission's reward for today.

        Raises
        ------
        InvalidRequestError
            Unknown mission type.
        MissionAlreadyClaimedError
            Already claimed on the current calendar day.
        MissionNotCompletedError
            Counted mission whose goal is not reached yet.
        """
        definition = MISSIONS.get(mission_type)
        if definition is None:
            raise InvalidRequestError("Invalid mission type")

        now = now or utcnow()
        log = logger.bind(user_id=str(user_id), mission_type=mission_type)

        record = await self._get_or_create(db, user_id, mission_type)
        try:
            claimed = self._to_value(record).claim(definition, now, self.tz)
        except InvalidRequestError as exc:
            log.info("mission_claim_rejected", reason=exc.message)
            raise
        self._write(record, claimed)

        new_balance = await credit_coins(db, user_id, definition.reward)
        log.info("mission_claimed", reward=definition.reward, balance=new_balance)

        return {
            "message": f"{definition.label} claimed!",
            "reward": definition.reward,
            "new_balance": new_balance,
        }

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _to_value(record: MissionProgressRecord | None) -> MissionProgress:
        if record is None:
            return MissionProgress()
        return MissionProgress(
            count=record.count,
            last_claim_at=record.last_claim_at,
            last_activity_at=record.last_activity_at,
        )

    @staticmethod
    def _write(record: MissionProgressRecord, progress: MissionProgress) -> None:
        record.count = progress.count
        record.last_claim_at = progress.last_claim_at
        record.last_activity_at = progress.last_activity_at

    async def _load(
        self, db: AsyncSession, user_id: uuid.UUID, mission_type: str
    ) -> MissionProgressRecord | None:
        stmt = select(MissionProgressRecord).where(
            MissionProgressRecord.user_id == user_id,
            MissionProgressRecord.mission_type == mission_type,
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def _get_or_create(
        self, db: AsyncSession, user_id: uuid.UUID, mission_type: str
    ) -> MissionProgressRecord:
        record = await self._load(db, user_id, mission_type)
        if record is not None:
            return record
        try:
            async with db.begin_nested():
                record = MissionProgressRecord(
                    user_id=user_id, mission_type=mission_type, count=0
                )
                db.add(record)
        except IntegrityError:
            # Another request created the row first.
            record = await self._load(db, user_id, mission_type)
        return record

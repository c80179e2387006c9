"""
Kindred - Discovery Queue

Builds the swipe queue for a user:

  1. Exclude self, everyone already swiped on (swipe ledger) and everyone
     on either side of a block.
  2. Apply profile filters (age, gender, height, education, religion,
     smoking).
  3. Unless global mode is on, restrict to the search radius around the
     effective location (travel override first, then live location) and
     keep the nearest candidates.  A (0, 0) location means "unknown" and
     disables the radius.
  4. If nothing survives, fall back to an unfiltered pool that still
     honours the exclusions, so the queue is rarely empty.
  5. Annotate each candidate with a compatibility score and shuffle;
     boosted candidates go first.

Blind dates skip all of the above except self, blocks and account status,
and additionally exclude existing matches; the partner is a random pick.

Compatibility score (never persisted):
  50 base, +10 per shared interest tag, +5 same zodiac sign,
  +10 same religion, +10 same smoking habit, clamped to [0, 100].
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable

import structlog
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import NotFoundError
from app.models.match import Match, Swipe
from app.models.user import User
from app.services.social_service import not_blocked
from app.utils.dates import as_utc, utcnow, years_ago, zodiac_sign
from app.utils.geo import bounding_box, haversine_km, is_unset

logger = structlog.get_logger("kindred.discovery_service")

# ──────────────────────────────────────────────────────────────────────────────
# Scoring constants
# ──────────────────────────────────────────────────────────────────────────────

_BASE_SCORE = 50
_SHARED_INTEREST_POINTS = 10
_ZODIAC_POINTS = 5
_RELIGION_POINTS = 10
_SMOKING_POINTS = 10


@dataclass
class DiscoveryFilters:
    min_age: int = 18
    max_age: int = 99
    gender: str | None = None
    distance_km: float | None = None
    height_min: int | None = None
    height_max: int | None = None
    education: str | None = None
    religion: str | None = None
    smoking: str | None = None
    global_mode: bool = False


def _normalised_tags(tags: Iterable[str] | None) -> set[str]:
    return {t.strip().lower() for t in (tags or []) if t and t.strip()}


def compatibility_score(viewer: Any, candidate: Any) -> int:
    """Score how well *candidate* fits *viewer* on a 0-100 scale."""
    score = _BASE_SCORE

    shared = _normalised_tags(viewer.interests) & _normalised_tags(candidate.interests)
    score += _SHARED_INTEREST_POINTS * len(shared)

    viewer_sign = zodiac_sign(viewer.birth_date)
    if viewer_sign is not None and viewer_sign == zodiac_sign(candidate.birth_date):
        score += _ZODIAC_POINTS
    if viewer.religion and viewer.religion == candidate.religion:
        score += _RELIGION_POINTS
    if viewer.smoking and viewer.smoking == candidate.smoking:
        score += _SMOKING_POINTS

    return max(0, min(100, score))


def effective_location(user: Any) -> tuple[float, float] | None:
    """Travel override if set, else live location; ``None`` when unknown."""
    if not is_unset(user.travel_latitude, user.travel_longitude):
        return user.travel_latitude, user.travel_longitude
    if not is_unset(user.latitude, user.longitude):
        return user.latitude, user.longitude
    return None


def is_boosted(user: Any, now: datetime) -> bool:
    expires = as_utc(user.boost_expires_at)
    return expires is not None and expires > now


class DiscoveryService:
    """Assembles discovery queues and top picks."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.settings = get_settings()
        self.rng = rng or random.Random()

    # ── Public API ────────────────────────────────────────────────────────

    async def discover(
        self,
        db: AsyncSession,
        user: User,
        filters: DiscoveryFilters,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        """Return the shuffled discovery queue for *user*.

        Each entry is ``{"user", "distance_km", "compatibility_score",
        "is_boosted"}``.
        """
        now = now or utcnow()
        entries = await self._collect(db, user, filters, limit, now)

        boosted = [e for e in entries if e["is_boosted"]]
        regular = [e for e in entries if not e["is_boosted"]]
        self.rng.shuffle(boosted)
        self.rng.shuffle(regular)
        return boosted + regular

    async def top_picks(
        self,
        db: AsyncSession,
        user: User,
        filters: DiscoveryFilters,
        now: datetime | None = None,
    ) -> list[dict]:
        """Best-scoring candidates first, stable order."""
        now = now or utcnow()
        entries = await self._collect(db, user, filters, None, now)
        entries.sort(
            key=lambda e: (
                -e["compatibility_score"],
                e["distance_km"] if e["distance_km"] is not None else float("inf"),
            )
        )
        return entries[: self.settings.TOP_PICKS_LIMIT]

    async def find_blind_date(self, db: AsyncSession, user: User) -> User:
        """Pick a random active partner with no match or block between the two.

        Profile filters, radius and the swipe ledger do not apply.
        """
        matched_as_a = select(Match.user_b_id).where(Match.user_a_id == user.id)
        matched_as_b = select(Match.user_a_id).where(Match.user_b_id == user.id)
        stmt = (
            select(User)
            .where(
                User.id != user.id,
                User.id.not_in(matched_as_a),
                User.id.not_in(matched_as_b),
                not_blocked(User.id, user.id),
                User.account_status == "active",
            )
            .limit(self.settings.BLIND_DATE_POOL_SIZE)
        )
        pool = (await db.execute(stmt)).scalars().all()
        if not pool:
            raise NotFoundError("No users available")

        partner = self.rng.choice(pool)
        logger.info(
            "blind_date_found",
            user_id=str(user.id),
            partner_id=str(partner.id),
            pool_size=len(pool),
        )
        return partner

    # ── Pipeline ──────────────────────────────────────────────────────────

    async def _collect(
        self,
        db: AsyncSession,
        user: User,
        filters: DiscoveryFilters,
        limit: int | None,
        now: datetime,
    ) -> list[dict]:
        limit = limit or self.settings.DISCOVERY_MAX_RESULTS
        radius_km = filters.distance_km or self.settings.DISCOVERY_DEFAULT_DISTANCE_KM
        origin = None if filters.global_mode else effective_location(user)

        log = logger.bind(user_id=str(user.id))

        stmt = self._base_query(user.id)
        stmt = self._apply_profile_filters(stmt, filters, now.date())
        if origin is not None:
            min_lat, max_lat, min_lon, max_lon = bounding_box(origin[0], origin[1], radius_km)
            stmt = stmt.where(User.latitude.between(min_lat, max_lat))
            if min_lon is not None:
                stmt = stmt.where(User.longitude.between(min_lon, max_lon))
            # planar distance is enough to keep the nearest rows under the scan cap
            stmt = stmt.order_by(
                (User.latitude - origin[0]) * (User.latitude - origin[0])
                + (User.longitude - origin[1]) * (User.longitude - origin[1])
            )
        stmt = stmt.limit(self.settings.DISCOVERY_SCAN_LIMIT)

        candidates = (await db.execute(stmt)).scalars().all()

        entries: list[dict] = []
        for candidate in candidates:
            distance = self._distance(origin, candidate)
            if origin is not None and (distance is None or distance > radius_km):
                continue
            entries.append(self._entry(user, candidate, distance, now))

        if origin is not None:
            entries.sort(key=lambda e: e["distance_km"])
        entries = entries[:limit]

        if not entries:
            fallback_stmt = self._base_query(user.id).limit(
                self.settings.DISCOVERY_FALLBACK_POOL_SIZE
            )
            pool = (await db.execute(fallback_stmt)).scalars().all()
            entries = [
                self._entry(user, c, self._distance(origin, c), now) for c in pool
            ]
            log.info("discovery_fallback_pool", pool_size=len(entries))

        log.info(
            "discovery_built",
            candidates=len(entries),
            geo_restricted=origin is not None,
            radius_km=radius_km if origin is not None else None,
        )
        return entries

    @staticmethod
    def _base_query(user_id: uuid.UUID) -> Select:
        """Active users minus self, already-swiped and blocked users."""
        already_swiped = select(Swipe.target_id).where(Swipe.swiper_id == user_id)
        return select(User).where(
            User.id != user_id,
            User.id.not_in(already_swiped),
            not_blocked(User.id, user_id),
            User.account_status == "active",
        )

    @staticmethod
    def _apply_profile_filters(
        stmt: Select, filters: DiscoveryFilters, today: date
    ) -> Select:
        # age <= max_age  <=>  born after the day (max_age + 1) years ago
        oldest_birth = years_ago(today, filters.max_age + 1) + timedelta(days=1)
        youngest_birth = years_ago(today, filters.min_age)
        stmt = stmt.where(User.birth_date.between(oldest_birth, youngest_birth))

        if filters.gender and filters.gender != "Everyone":
            stmt = stmt.where(User.gender == filters.gender)
        if filters.height_min is not None:
            stmt = stmt.where(User.height >= filters.height_min)
        if filters.height_max is not None:
            stmt = stmt.where(User.height <= filters.height_max)
        if filters.education:
            stmt = stmt.where(User.education == filters.education)
        if filters.religion:
            stmt = stmt.where(User.religion == filters.religion)
        if filters.smoking:
            stmt = stmt.where(User.smoking == filters.smoking)
        return stmt

    @staticmethod
    def _distance(origin: tuple[float, float] | None, candidate: User) -> float | None:
        if origin is None or is_unset(candidate.latitude, candidate.longitude):
            return None
        return round(
            haversine_km(origin[0], origin[1], candidate.latitude, candidate.longitude), 2
        )

    @staticmethod
    def _entry(viewer: User, candidate: User, distance: float | None, now: datetime) -> dict:
        return {
            "user": candidate,
            "distance_km": distance,
            "compatibility_score": compatibility_score(viewer, candidate),
            "is_boosted": is_boosted(candidate, now),
        }

"""
Kindred - Match and Swipe models.

The swipe ledger holds one row per (swiper, target) pair and is the only
record of who swiped on whom.  A match is one row per unordered pair, with
``user_a_id < user_b_id``, so the relation is symmetric by construction.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.utils.dates import utcnow

POSITIVE_ACTIONS: frozenset[str] = frozenset({"like", "superlike", "react", "instant"})
SWIPE_ACTIONS: frozenset[str] = POSITIVE_ACTIONS | {"dislike"}


def canonical_pair(
    first: uuid.UUID, second: uuid.UUID
) -> tuple[uuid.UUID, uuid.UUID]:
    return (first, second) if first < second else (second, first)


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_match_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    user_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    user_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(
        String, default="mutual", nullable=False, comment="mutual / instant / rematch"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def other(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user_b_id if self.user_a_id == user_id else self.user_a_id

    def __repr__(self) -> str:
        return f"<Match {self.user_a_id} <-> {self.user_b_id} via={self.source!r}>"


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        UniqueConstraint("swiper_id", "target_id", name="uq_swipe_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    swiper_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(
        String, nullable=False, comment="like / dislike / superlike / react / instant"
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    swiped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False,
        comment="Refreshed whenever the action changes",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    @property
    def is_positive(self) -> bool:
        return self.action in POSITIVE_ACTIONS

    def __repr__(self) -> str:
        return f"<Swipe {self.swiper_id} -> {self.target_id} action={self.action!r}>"

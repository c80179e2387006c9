"""
Kindred - User model and social-graph edges (follows, blocks, visits).
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONVariant
from app.utils.dates import utcnow


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_lat_lon", "latitude", "longitude"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    email: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    photos: Mapped[list | None] = mapped_column(
        JSONVariant, nullable=True, comment="Array of photo URLs"
    )

    # ── Profile attributes ─────────────────────────────────────────
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Man / Woman / Other"
    )
    interested_in: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Men / Women / Everyone"
    )
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    education: Mapped[str | None] = mapped_column(String, nullable=True)
    religion: Mapped[str | None] = mapped_column(String, nullable=True)
    smoking: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Yes / No / Sometimes"
    )
    relationship_intent: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Serious / Casual / Friends"
    )
    interests: Mapped[list | None] = mapped_column(
        JSONVariant, nullable=True, comment="Array of interest tags"
    )
    auto_reply: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Greeting sent automatically on a new match"
    )

    # ── Location ───────────────────────────────────────────────────
    latitude: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    travel_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    travel_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # ── Economy & visibility ───────────────────────────────────────
    coins: Mapped[int] = mapped_column(Integer, default=1000, nullable=False)
    boost_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    account_status: Mapped[str] = mapped_column(
        String, default="active", nullable=False, comment="active / paused / suspended"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    @property
    def travel_mode(self) -> bool:
        return self.travel_latitude is not None and self.travel_longitude is not None

    def __repr__(self) -> str:
        return f"<User {self.username!r} id={self.id}>"


class Follow(Base):
    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "followed_id", name="uq_follow_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    follower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    followed_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Follow {self.follower_id} -> {self.followed_id}>"


class Block(Base):
    __tablename__ = "blocks"
    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_block_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    blocker_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    blocked_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Block {self.blocker_id} -x {self.blocked_id}>"


class ProfileVisit(Base):
    __tablename__ = "profile_visits"
    __table_args__ = (
        Index("ix_profile_visits_visited_at", "visited_id", "visited_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    visitor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    visited_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    visited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<ProfileVisit {self.visitor_id} -> {self.visited_id}>"

"""
Kindred - Daily mission progress, one row per (user, mission type).
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class MissionProgressRecord(Base):
    __tablename__ = "mission_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "mission_type", name="uq_mission_progress_user_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mission_type: Mapped[str] = mapped_column(String, nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_claim_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
        comment="Last increment or claim; drives the daily rollover",
    )

    def __repr__(self) -> str:
        return (
            f"<MissionProgressRecord user={self.user_id} "
            f"type={self.mission_type!r} count={self.count}>"
        )

"""Initial schema: the 9 Kindred tables.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _user_fk(name: str, index: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=index,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String, unique=True, index=True, nullable=False),
        sa.Column("email", sa.String, unique=True, index=True, nullable=False),
        sa.Column("full_name", sa.String, nullable=False),
        sa.Column("bio", sa.Text, server_default="", nullable=False),
        sa.Column(
            "photos",
            postgresql.JSONB,
            nullable=True,
            comment="Array of photo URLs",
        ),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("gender", sa.String, nullable=True, comment="Man / Woman / Other"),
        sa.Column(
            "interested_in",
            sa.String,
            nullable=True,
            comment="Men / Women / Everyone",
        ),
        sa.Column("height", sa.Integer, nullable=True),
        sa.Column("education", sa.String, nullable=True),
        sa.Column("religion", sa.String, nullable=True),
        sa.Column("smoking", sa.String, nullable=True, comment="Yes / No / Sometimes"),
        sa.Column(
            "relationship_intent",
            sa.String,
            nullable=True,
            comment="Serious / Casual / Friends",
        ),
        sa.Column(
            "interests",
            postgresql.JSONB,
            nullable=True,
            comment="Array of interest tags",
        ),
        sa.Column(
            "auto_reply",
            sa.Text,
            nullable=True,
            comment="Greeting sent automatically on a new match",
        ),
        sa.Column("latitude", sa.Float, server_default="0", nullable=False),
        sa.Column("longitude", sa.Float, server_default="0", nullable=False),
        sa.Column("travel_latitude", sa.Float, nullable=True),
        sa.Column("travel_longitude", sa.Float, nullable=True),
        sa.Column("coins", sa.Integer, server_default="1000", nullable=False),
        sa.Column("boost_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "account_status",
            sa.String,
            server_default="active",
            nullable=False,
            comment="active / paused / suspended",
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("coins >= 0", name="ck_users_coins_non_negative"),
    )
    op.create_index("ix_users_lat_lon", "users", ["latitude", "longitude"])

    # ── 2. follows ──────────────────────────────────────────────────
    op.create_table(
        "follows",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("follower_id"),
        _user_fk("followed_id", index=True),
        _created_at(),
        sa.UniqueConstraint("follower_id", "followed_id", name="uq_follow_pair"),
    )

    # ── 3. blocks ───────────────────────────────────────────────────
    op.create_table(
        "blocks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("blocker_id"),
        _user_fk("blocked_id", index=True),
        _created_at(),
        sa.UniqueConstraint("blocker_id", "blocked_id", name="uq_block_pair"),
    )

    # ── 4. profile_visits ───────────────────────────────────────────
    op.create_table(
        "profile_visits",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("visitor_id"),
        _user_fk("visited_id"),
        sa.Column(
            "visited_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_profile_visits_visited_at",
        "profile_visits",
        ["visited_id", "visited_at"],
    )

    # ── 5. swipes ───────────────────────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("swiper_id"),
        _user_fk("target_id", index=True),
        sa.Column(
            "action",
            sa.String,
            nullable=False,
            comment="like / dislike / superlike / react / instant",
        ),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column(
            "swiped_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            comment="Refreshed whenever the action changes",
        ),
        _created_at(),
        sa.UniqueConstraint("swiper_id", "target_id", name="uq_swipe_pair"),
    )

    # ── 6. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("user_a_id"),
        _user_fk("user_b_id", index=True),
        sa.Column(
            "source",
            sa.String,
            server_default="mutual",
            nullable=False,
            comment="mutual / instant / rematch",
        ),
        _created_at(),
        sa.UniqueConstraint("user_a_id", "user_b_id", name="uq_match_pair"),
        sa.CheckConstraint("user_a_id < user_b_id", name="ck_matches_ordered_pair"),
    )

    # ── 7. mission_progress ─────────────────────────────────────────
    op.create_table(
        "mission_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("user_id", index=True),
        sa.Column("mission_type", sa.String, nullable=False),
        sa.Column("count", sa.Integer, server_default="0", nullable=False),
        sa.Column("last_claim_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "last_activity_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Last increment or claim; drives the daily rollover",
        ),
        sa.UniqueConstraint(
            "user_id", "mission_type", name="uq_mission_progress_user_type"
        ),
    )

    # ── 8. chat_messages ────────────────────────────────────────────
    op.create_table(
        "chat_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("sender_id"),
        _user_fk("receiver_id", index=True),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column(
            "type",
            sa.String,
            server_default="text",
            nullable=False,
            comment="text / system",
        ),
        sa.Column("is_read", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "reactions",
            postgresql.JSONB,
            nullable=True,
            comment="[{user_id, type, created_at}], at most one per user",
        ),
        _created_at(),
    )
    op.create_index(
        "ix_chat_messages_pair_created",
        "chat_messages",
        ["sender_id", "receiver_id", "created_at"],
    )

    # ── 9. chat_preferences ─────────────────────────────────────────
    op.create_table(
        "chat_preferences",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk("user_id", index=True),
        _user_fk("target_id"),
        sa.Column("is_pinned", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user_id", "target_id", name="uq_chat_preference_pair"),
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_table("chat_preferences")

    op.drop_index("ix_chat_messages_pair_created", table_name="chat_messages")
    op.drop_table("chat_messages")

    op.drop_table("mission_progress")
    op.drop_table("matches")
    op.drop_table("swipes")

    op.drop_index("ix_profile_visits_visited_at", table_name="profile_visits")
    op.drop_table("profile_visits")

    op.drop_table("blocks")
    op.drop_table("follows")

    op.drop_index("ix_users_lat_lon", table_name="users")
    op.drop_table("users")

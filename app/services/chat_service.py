"""
Kindred - Direct messaging.

Messages are persisted first and then pushed through the real-time relay;
a relay failure never undoes the stored message.  The same applies to
reactions, which live on the message row (one per user, the latest wins),
and to pinned conversations, which sort ahead of everything else.
"""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ForbiddenError, InvalidRequestError, NotFoundError
from app.models.chat import ChatMessage, ChatPreference
from app.models.user import User
from app.services.mission_service import MissionService
from app.services.social_service import get_user_or_404, is_blocked_between
from app.sockets import chat as chat_relay
from app.utils.dates import utcnow

logger = structlog.get_logger("kindred.chat_service")

CONVERSATION_SCAN_LIMIT = 1000
REACTION_TYPES = ("like", "love", "laugh", "sad", "angry", "wow")


def serialize_message(message: ChatMessage) -> dict:
    return {
        "id": str(message.id),
        "sender_id": str(message.sender_id),
        "receiver_id": str(message.receiver_id),
        "message": message.message,
        "type": message.type,
        "is_read": message.is_read,
        "created_at": message.created_at.isoformat(),
    }


class ChatService:
    def __init__(self, mission_service: MissionService | None = None) -> None:
        self.mission_service = mission_service or MissionService()

    async def send_message(
        self,
        db: AsyncSession,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        text: str,
        *,
        message_type: str = "text",
        count_towards_missions: bool = True,
        now: datetime | None = None,
    ) -> ChatMessage:
        """Persist a message and relay it to the receiver if connected.

        Raises ``NotFoundError`` for an unknown receiver and
        ``ForbiddenError`` when either side has blocked the other.
        """
        now = now or utcnow()
        log = logger.bind(sender_id=str(sender_id), receiver_id=str(receiver_id))

        await get_user_or_404(db, receiver_id)
        if await is_blocked_between(db, sender_id, receiver_id):
            log.info("chat_send_blocked")
            raise ForbiddenError("You cannot message this user")

        message = ChatMessage(
            sender_id=sender_id,
            receiver_id=receiver_id,
            message=text,
            type=message_type,
            is_read=False,
            created_at=now,
        )
        db.add(message)
        await db.flush()

        if count_towards_missions:
            await self.mission_service.record_progress(db, sender_id, "send_messages", now)

        await chat_relay.emit_to_user(
            str(receiver_id), "message_received", serialize_message(message)
        )
        log.info("chat_message_sent", message_id=str(message.id), type=message_type)
        return message

    async def get_history(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        other_id: uuid.UUID,
        search: str | None = None,
    ) -> list[ChatMessage]:
        """Return the conversation oldest-first and mark incoming as read."""
        stmt = select(ChatMessage).where(
            or_(
                and_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == other_id),
                and_(ChatMessage.sender_id == other_id, ChatMessage.receiver_id == user_id),
            )
        )
        if search:
            stmt = stmt.where(
                ChatMessage.message.icontains(search, autoescape=True)
            )
        stmt = stmt.order_by(ChatMessage.created_at.asc())
        messages = list((await db.execute(stmt)).scalars().all())

        await db.execute(
            update(ChatMessage)
            .where(
                ChatMessage.sender_id == other_id,
                ChatMessage.receiver_id == user_id,
                ChatMessage.is_read.is_(False),
            )
            .values(is_read=True)
        )
        return messages

    async def list_conversations(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> list[dict]:
        """One entry per counterpart with the latest message.

        Pinned conversations come first; each group is ordered newest first.
        """
        stmt = (
            select(ChatMessage)
            .where(or_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == user_id))
            .order_by(ChatMessage.created_at.desc())
            .limit(CONVERSATION_SCAN_LIMIT)
        )
        messages = (await db.execute(stmt)).scalars().all()

        latest: dict[uuid.UUID, ChatMessage] = {}
        unread: dict[uuid.UUID, int] = {}
        for message in messages:
            other_id = (
                message.receiver_id if message.sender_id == user_id else message.sender_id
            )
            latest.setdefault(other_id, message)
            if message.receiver_id == user_id and not message.is_read:
                unread[other_id] = unread.get(other_id, 0) + 1

        if not latest:
            return []

        pinned = set(
            (
                await db.execute(
                    select(ChatPreference.target_id).where(
                        ChatPreference.user_id == user_id,
                        ChatPreference.is_pinned.is_(True),
                    )
                )
            ).scalars().all()
        )

        users = {
            u.id: u
            for u in (
                await db.execute(select(User).where(User.id.in_(list(latest))))
            ).scalars().all()
        }

        conversations = []
        for other_id, message in latest.items():
            other = users.get(other_id)
            if other is None:
                continue
            conversations.append({
                "user_id": other.id,
                "username": other.username,
                "full_name": other.full_name,
                "last_message": (
                    message.message if message.type == "text" else f"Sent a {message.type}"
                ),
                "last_message_at": message.created_at,
                "unread_count": unread.get(other_id, 0),
                "is_pinned": other_id in pinned,
            })

        # stable sort: newest first within the pinned and unpinned groups
        conversations.sort(key=lambda c: not c["is_pinned"])
        return conversations

    # ── Reactions ─────────────────────────────────────────────────────────

    async def add_reaction(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        message_id: uuid.UUID,
        reaction_type: str,
        now: datetime | None = None,
    ) -> ChatMessage:
        """React to a message in one of your own conversations.

        Each user holds at most one reaction per message; reacting again
        replaces the previous one.  The other participant is notified with
        a ``message_reaction`` event.
        """
        if reaction_type not in REACTION_TYPES:
            raise InvalidRequestError("Invalid reaction type")
        now = now or utcnow()

        stmt = select(ChatMessage).where(ChatMessage.id == message_id).with_for_update()
        message = (await db.execute(stmt)).scalar_one_or_none()
        if message is None or user_id not in (message.sender_id, message.receiver_id):
            raise NotFoundError("Message not found")

        reaction = {
            "user_id": str(user_id),
            "type": reaction_type,
            "created_at": now.isoformat(),
        }
        # reassign so the JSON column is flagged dirty
        message.reactions = [
            r for r in (message.reactions or []) if r["user_id"] != str(user_id)
        ] + [reaction]
        await db.flush()

        other_id = message.receiver_id if message.sender_id == user_id else message.sender_id
        await chat_relay.emit_to_user(
            str(other_id), "message_reaction", {"message_id": str(message.id), **reaction}
        )
        logger.info(
            "chat_reaction_added",
            message_id=str(message.id),
            user_id=str(user_id),
            type=reaction_type,
        )
        return message

    # ── Conversation preferences ──────────────────────────────────────────

    async def set_pinned(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        target_id: uuid.UUID,
        pinned: bool,
    ) -> ChatPreference:
        """Pin or unpin the conversation with *target_id* for *user_id* only."""
        if user_id == target_id:
            raise InvalidRequestError("You cannot pin a conversation with yourself")
        await get_user_or_404(db, target_id)

        preference = await self._get_or_create_preference(db, user_id, target_id)
        preference.is_pinned = pinned
        await db.flush()
        logger.info(
            "chat_pin_updated", user_id=str(user_id), target_id=str(target_id), pinned=pinned
        )
        return preference

    async def _load_preference(
        self, db: AsyncSession, user_id: uuid.UUID, target_id: uuid.UUID
    ) -> ChatPreference | None:
        stmt = select(ChatPreference).where(
            ChatPreference.user_id == user_id, ChatPreference.target_id == target_id
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def _get_or_create_preference(
        self, db: AsyncSession, user_id: uuid.UUID, target_id: uuid.UUID
    ) -> ChatPreference:
        preference = await self._load_preference(db, user_id, target_id)
        if preference is not None:
            return preference
        try:
            async with db.begin_nested():
                preference = ChatPreference(user_id=user_id, target_id=target_id)
                db.add(preference)
        except IntegrityError:
            # Another request created the row first.
            preference = await self._load_preference(db, user_id, target_id)
        return preference

"""
Kindred - Chat API

Send direct messages, list conversations, read a conversation's
history, react to messages and pin conversations.  Delivery to connected
clients goes through the ``/chat`` Socket.IO namespace.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.chat import ChatMessage, ChatPreference
from app.models.user import User
from app.schemas.chat import (
    ChatMessageResponse,
    ChatPreferenceResponse,
    ChatSendRequest,
    ConversationItem,
    PinRequest,
    ReactionRequest,
)
from app.services.chat_service import ChatService

logger = structlog.get_logger("kindred.api.chat")

router = APIRouter()

_chat_service: ChatService | None = None


def _get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


@router.post(
    "/send",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    payload: ChatSendRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ChatMessage:
    logger.info(
        "send_message_request",
        sender_id=str(current_user.id),
        receiver_id=str(payload.receiver_id),
    )
    return await _get_chat_service().send_message(
        db, current_user.id, payload.receiver_id, payload.message
    )


@router.get(
    "/conversations",
    response_model=list[ConversationItem],
    summary="Latest message per conversation",
)
async def list_conversations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await _get_chat_service().list_conversations(db, current_user.id)


@router.get(
    "/{user_id}",
    response_model=list[ChatMessageResponse],
    summary="Conversation history",
)
async def get_history(
    user_id: uuid.UUID,
    search: Optional[str] = Query(None, max_length=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[ChatMessage]:
    """Oldest first; the other user's messages to me are marked read."""
    return await _get_chat_service().get_history(db, current_user.id, user_id, search)


@router.post(
    "/messages/{message_id}/react",
    response_model=ChatMessageResponse,
    summary="React to a message",
)
async def add_reaction(
    message_id: uuid.UUID,
    payload: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ChatMessage:
    """Replaces my previous reaction on the message, if any."""
    return await _get_chat_service().add_reaction(
        db, current_user.id, message_id, payload.type
    )


@router.post(
    "/{user_id}/pin",
    response_model=ChatPreferenceResponse,
    summary="Pin or unpin a conversation",
)
async def set_pinned(
    user_id: uuid.UUID,
    payload: PinRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ChatPreference:
    return await _get_chat_service().set_pinned(
        db, current_user.id, user_id, payload.is_pinned
    )

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

ReactionType = Literal["like", "love", "laugh", "sad", "angry", "wow"]


class ChatSendRequest(BaseModel):
    receiver_id: UUID
    message: str = Field(min_length=1, max_length=4000)


class ReactionRequest(BaseModel):
    type: ReactionType


class ReactionItem(BaseModel):
    user_id: UUID
    type: str
    created_at: datetime


class ChatMessageResponse(BaseModel):
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    message: str
    type: str
    is_read: bool
    reactions: list[ReactionItem] = []
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("reactions", mode="before")
    @classmethod
    def _missing_reactions_as_empty(cls, v):
        return v or []


class ConversationItem(BaseModel):
    user_id: UUID
    username: str
    full_name: str
    last_message: str
    last_message_at: datetime
    unread_count: int
    is_pinned: bool = False


class PinRequest(BaseModel):
    is_pinned: bool = True


class ChatPreferenceResponse(BaseModel):
    target_id: UUID
    is_pinned: bool

    model_config = {"from_attributes": True}

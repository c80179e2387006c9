from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.user import ProfileCard

SwipeAction = Literal["like", "dislike", "superlike", "react", "instant"]


class CandidateResponse(ProfileCard):
    distance_km: Optional[float] = None
    compatibility_score: int
    is_boosted: bool = False


class SwipeCreate(BaseModel):
    target_user_id: UUID
    action: SwipeAction = "like"
    message: Optional[str] = Field(None, max_length=1000)


class SwipeResponse(BaseModel):
    status: str  # recorded / updated / already_swiped / already_processed
    match: bool
    superlike: bool = False
    already_swiped: bool = False
    match_id: Optional[UUID] = None


class TargetRequest(BaseModel):
    target_user_id: UUID


class InstantMatchRequest(TargetRequest):
    message: Optional[str] = Field(None, max_length=1000)


class MatchListItem(BaseModel):
    match_id: UUID
    user: ProfileCard
    source: str
    matched_at: datetime


class LikeItem(BaseModel):
    user: ProfileCard
    action: str
    liked_at: datetime


class TravelModeRequest(BaseModel):
    enabled: bool
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class BoostResponse(BaseModel):
    message: str
    boost_expires_at: datetime


class PaidActionResponse(BaseModel):
    message: str
    coins_spent: int
    new_balance: int
    target_user_id: Optional[UUID] = None
    removed: Optional[int] = None
    match_id: Optional[UUID] = None


class BlindDateResponse(BaseModel):
    partner_id: UUID
    username: str

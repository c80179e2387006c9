from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.utils.dates import calculate_age

Gender = Literal["Man", "Woman", "Other"]
InterestedIn = Literal["Men", "Women", "Everyone"]
Smoking = Literal["Yes", "No", "Sometimes"]
RelationshipIntent = Literal["Serious", "Casual", "Friends"]
AccountStatus = Literal["active", "paused", "suspended"]


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=32)
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=80)
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    interested_in: Optional[InterestedIn] = None
    height: Optional[int] = Field(None, ge=100, le=250)
    education: Optional[str] = None
    religion: Optional[str] = None
    smoking: Optional[Smoking] = None
    relationship_intent: Optional[RelationshipIntent] = None
    interests: list[str] = []
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=80)
    bio: Optional[str] = Field(None, max_length=500)
    photos: Optional[list[str]] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    interested_in: Optional[InterestedIn] = None
    height: Optional[int] = Field(None, ge=100, le=250)
    education: Optional[str] = None
    religion: Optional[str] = None
    smoking: Optional[Smoking] = None
    relationship_intent: Optional[RelationshipIntent] = None
    interests: Optional[list[str]] = None
    auto_reply: Optional[str] = Field(None, max_length=500)
    account_status: Optional[AccountStatus] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("full_name", "bio", "account_status", "latitude", "longitude")
    @classmethod
    def _required_columns_not_null(cls, v):
        # may be omitted, but not cleared
        if v is None:
            raise ValueError("This field cannot be null")
        return v


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str
    full_name: str
    bio: str
    photos: Optional[list[str]] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    interested_in: Optional[str] = None
    height: Optional[int] = None
    education: Optional[str] = None
    religion: Optional[str] = None
    smoking: Optional[str] = None
    relationship_intent: Optional[str] = None
    interests: Optional[list[str]] = None
    auto_reply: Optional[str] = None
    latitude: float
    longitude: float
    travel_mode: bool
    coins: int
    boost_expires_at: Optional[datetime] = None
    account_status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileCard(BaseModel):
    """What other users get to see."""

    id: UUID
    username: str
    full_name: str
    bio: str = ""
    photos: Optional[list[str]] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    height: Optional[int] = None
    education: Optional[str] = None
    religion: Optional[str] = None
    smoking: Optional[str] = None
    relationship_intent: Optional[str] = None
    interests: Optional[list[str]] = None

    @classmethod
    def from_user(cls, user, today: date, **extra):
        return cls(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            bio=user.bio or "",
            photos=user.photos,
            age=calculate_age(user.birth_date, today),
            gender=user.gender,
            height=user.height,
            education=user.education,
            religion=user.religion,
            smoking=user.smoking,
            relationship_intent=user.relationship_intent,
            interests=user.interests,
            **extra,
        )


class PublicProfileResponse(ProfileCard):
    is_following: bool = False
    is_online: bool = False
    followers_count: int = 0
    following_count: int = 0


class VisitorItem(BaseModel):
    visitor: ProfileCard
    visited_at: datetime


class MessageResponse(BaseModel):
    message: str

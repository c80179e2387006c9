"""
Kindred - Users API

Registration, own profile, user search, public profiles and the social
graph (follow / block / visitors).
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.user import (
    MessageResponse,
    ProfileCard,
    PublicProfileResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
    VisitorItem,
)
from app.services.profile_service import ProfileService
from app.services.social_service import SocialService
from app.utils.dates import utcnow

logger = structlog.get_logger("kindred.api.users")

router = APIRouter()

# ── Service singletons ────────────────────────────────────────────────────────

_profile_service: ProfileService | None = None
_social_service: SocialService | None = None


def _get_profile_service() -> ProfileService:
    global _profile_service
    if _profile_service is None:
        _profile_service = ProfileService()
    return _profile_service


def _get_social_service() -> SocialService:
    global _social_service
    if _social_service is None:
        _social_service = SocialService()
    return _social_service


# ──────────────────────────────────────────────────────────────────────────────
# / - Register a user record, search users
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new user",
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Create the profile record for an identity issued by the auth service.

    Username and email must both be unused (409 otherwise).
    """
    logger.info("create_user_request", username=payload.username)
    return await _get_profile_service().register(db, payload)


@router.get("/", response_model=list[ProfileCard], summary="Search users")
async def search_users(
    search: Optional[str] = Query(None, max_length=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[ProfileCard]:
    """Match username or full name; blocked users never show up."""
    today = utcnow().date()
    users = await _get_social_service().search_users(db, current_user.id, search)
    return [ProfileCard.from_user(u, today) for u in users]


# ──────────────────────────────────────────────────────────────────────────────
# /me - Own profile
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/me", response_model=UserResponse, summary="Get own profile")
async def get_me(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.put("/me", response_model=UserResponse, summary="Update own profile")
async def update_me(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Apply the fields present in the body; counts toward ``update_profile``."""
    return await _get_profile_service().update_profile(db, current_user, payload)


@router.get(
    "/me/visitors",
    response_model=list[VisitorItem],
    summary="Who viewed my profile",
)
async def list_my_visitors(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[VisitorItem]:
    today = utcnow().date()
    visits = await _get_social_service().list_visitors(db, current_user.id)
    return [
        VisitorItem(visitor=ProfileCard.from_user(visitor, today), visited_at=visited_at)
        for visitor, visited_at in visits
    ]


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id} - Public profile (logs a visit)
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}",
    response_model=PublicProfileResponse,
    summary="Get another user's profile",
)
async def get_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PublicProfileResponse:
    profile = await _get_profile_service().get_public_profile(db, current_user.id, user_id)
    target = profile.pop("user")
    return PublicProfileResponse.from_user(target, utcnow().date(), **profile)


# ──────────────────────────────────────────────────────────────────────────────
# Social graph
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/{user_id}/follow", response_model=MessageResponse, summary="Follow a user")
async def follow_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await _get_social_service().follow(db, current_user.id, user_id)
    return MessageResponse(message="User followed")


@router.post("/{user_id}/unfollow", response_model=MessageResponse, summary="Unfollow a user")
async def unfollow_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await _get_social_service().unfollow(db, current_user.id, user_id)
    return MessageResponse(message="User unfollowed")


@router.post("/{user_id}/block", response_model=MessageResponse, summary="Block a user")
async def block_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Block a user; follow edges between the two are removed."""
    logger.info("block_request", user_id=str(current_user.id), blocked_id=str(user_id))
    await _get_social_service().block(db, current_user.id, user_id)
    return MessageResponse(message="User blocked")


@router.post("/{user_id}/unblock", response_model=MessageResponse, summary="Unblock a user")
async def unblock_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await _get_social_service().unblock(db, current_user.id, user_id)
    return MessageResponse(message="User unblocked")

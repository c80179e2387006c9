"""
Kindred - Matching API

Discovery queue, blind dates, swipes, matches and likes, plus the paid
actions (rewind, reset dislikes, instant match, rematch), boost and travel
mode.
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
from app.schemas.match import (
    BlindDateResponse,
    BoostResponse,
    CandidateResponse,
    InstantMatchRequest,
    LikeItem,
    MatchListItem,
    PaidActionResponse,
    SwipeCreate,
    SwipeResponse,
    TargetRequest,
    TravelModeRequest,
)
from app.schemas.user import MessageResponse, ProfileCard, UserResponse
from app.services.discovery_service import DiscoveryFilters, DiscoveryService
from app.services.profile_service import ProfileService
from app.services.social_service import SocialService
from app.services.swipe_service import SwipeService
from app.utils.dates import utcnow

logger = structlog.get_logger("kindred.api.matching")

router = APIRouter()

# ── Service singletons ────────────────────────────────────────────────────────

_discovery_service: DiscoveryService | None = None
_swipe_service: SwipeService | None = None
_profile_service: ProfileService | None = None
_social_service: SocialService | None = None


def _get_discovery_service() -> DiscoveryService:
    global _discovery_service
    if _discovery_service is None:
        _discovery_service = DiscoveryService()
    return _discovery_service


def _get_swipe_service() -> SwipeService:
    global _swipe_service
    if _swipe_service is None:
        _swipe_service = SwipeService()
    return _swipe_service


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


def discovery_filters(
    min_age: int = Query(18, ge=18, le=120),
    max_age: int = Query(99, ge=18, le=120),
    gender: Optional[str] = Query(None, description="Man / Woman / Other / Everyone"),
    distance: Optional[float] = Query(None, gt=0, le=20000, description="Radius in km"),
    height_min: Optional[int] = Query(None, ge=0),
    height_max: Optional[int] = Query(None, ge=0),
    education: Optional[str] = None,
    religion: Optional[str] = None,
    smoking: Optional[str] = None,
    global_mode: bool = Query(False, alias="global"),
) -> DiscoveryFilters:
    return DiscoveryFilters(
        min_age=min_age,
        max_age=max_age,
        gender=gender,
        distance_km=distance,
        height_min=height_min,
        height_max=height_max,
        education=education,
        religion=religion,
        smoking=smoking,
        global_mode=global_mode,
    )


def _candidates(entries: list[dict]) -> list[CandidateResponse]:
    today = utcnow().date()
    return [
        CandidateResponse.from_user(
            e["user"],
            today,
            distance_km=e["distance_km"],
            compatibility_score=e["compatibility_score"],
            is_boosted=e["is_boosted"],
        )
        for e in entries
    ]


# ──────────────────────────────────────────────────────────────────────────────
# Discovery
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/discovery",
    response_model=list[CandidateResponse],
    summary="Discovery queue",
)
async def get_discovery(
    filters: DiscoveryFilters = Depends(discovery_filters),
    limit: Optional[int] = Query(None, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[CandidateResponse]:
    """Shuffled candidates; boosted profiles come first.

    Excludes the caller, everyone they already swiped on and anyone on
    either side of a block.
    """
    entries = await _get_discovery_service().discover(db, current_user, filters, limit=limit)
    return _candidates(entries)


@router.get(
    "/top-picks",
    response_model=list[CandidateResponse],
    summary="Best compatibility scores",
)
async def get_top_picks(
    filters: DiscoveryFilters = Depends(discovery_filters),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[CandidateResponse]:
    entries = await _get_discovery_service().top_picks(db, current_user, filters)
    return _candidates(entries)


@router.post(
    "/blind-date/find",
    response_model=BlindDateResponse,
    summary="Find a blind-date partner",
)
async def find_blind_date(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> BlindDateResponse:
    """Random active user I am not matched with; 404 when nobody qualifies."""
    partner = await _get_discovery_service().find_blind_date(db, current_user)
    return BlindDateResponse(partner_id=partner.id, username=partner.username)


# ──────────────────────────────────────────────────────────────────────────────
# Swipes, matches, likes
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/swipe", response_model=SwipeResponse, summary="Swipe on a user")
async def swipe(
    payload: SwipeCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    log = logger.bind(
        user_id=str(current_user.id), target_user_id=str(payload.target_user_id)
    )
    log.info("swipe_request", action=payload.action)
    return await _get_swipe_service().swipe(
        db, current_user.id, payload.target_user_id, payload.action, payload.message
    )


@router.get("/matches", response_model=list[MatchListItem], summary="List my matches")
async def list_matches(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[MatchListItem]:
    today = utcnow().date()
    matches = await _get_swipe_service().list_matches(db, current_user.id)
    return [
        MatchListItem(
            match_id=m["match_id"],
            user=ProfileCard.from_user(m["user"], today),
            source=m["source"],
            matched_at=m["matched_at"],
        )
        for m in matches
    ]


@router.get("/likes", response_model=list[LikeItem], summary="Who liked me")
async def list_likes(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[LikeItem]:
    """Positive swipes on me that I have not answered yet."""
    today = utcnow().date()
    likes = await _get_swipe_service().list_likes(db, current_user.id)
    return [
        LikeItem(user=ProfileCard.from_user(liker, today), action=action, liked_at=liked_at)
        for liker, action, liked_at in likes
    ]


@router.post("/unmatch", response_model=MessageResponse, summary="Remove a match")
async def unmatch(
    payload: TargetRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await _get_swipe_service().unmatch(db, current_user.id, payload.target_user_id)
    return MessageResponse(message="Unmatched")


@router.post(
    "/visit/{user_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Log a profile visit",
)
async def log_visit(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    recorded = await _get_social_service().record_visit(db, current_user.id, user_id)
    return MessageResponse(message="Visit logged" if recorded else "Visit already logged")


# ──────────────────────────────────────────────────────────────────────────────
# Boost & travel mode
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/boost", response_model=BoostResponse, summary="Boost my profile")
async def activate_boost(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> BoostResponse:
    user = await _get_profile_service().activate_boost(db, current_user)
    return BoostResponse(message="Boost activated", boost_expires_at=user.boost_expires_at)


@router.post("/travel", response_model=UserResponse, summary="Set or clear travel mode")
async def set_travel_mode(
    payload: TravelModeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await _get_profile_service().set_travel_mode(
        db, current_user, payload.enabled, payload.latitude, payload.longitude
    )


# ──────────────────────────────────────────────────────────────────────────────
# Paid actions
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/rewind", response_model=PaidActionResponse, summary="Undo last swipe")
async def rewind(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    logger.info("rewind_request", user_id=str(current_user.id))
    return await _get_swipe_service().rewind(db, current_user.id)


@router.post(
    "/reset-dislikes",
    response_model=PaidActionResponse,
    summary="Forget all dislikes",
)
async def reset_dislikes(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    logger.info("reset_dislikes_request", user_id=str(current_user.id))
    return await _get_swipe_service().reset_dislikes(db, current_user.id)


@router.post("/instant-match", response_model=SwipeResponse, summary="Match instantly")
async def instant_match(
    payload: InstantMatchRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    logger.info(
        "instant_match_request",
        user_id=str(current_user.id),
        target_user_id=str(payload.target_user_id),
    )
    return await _get_swipe_service().instant_match(
        db, current_user.id, payload.target_user_id, payload.message
    )


@router.post("/rematch", response_model=PaidActionResponse, summary="Rematch a past swipe")
async def rematch(
    payload: TargetRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    logger.info(
        "rematch_request",
        user_id=str(current_user.id),
        target_user_id=str(payload.target_user_id),
    )
    return await _get_swipe_service().rematch(db, current_user.id, payload.target_user_id)

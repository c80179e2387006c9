"""
Kindred - Missions API

Daily mission status and reward claims.  The simple daily actions
(login, share) carry no counter and are claimable once a day as they stand.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.mission import (
    MissionClaimRequest,
    MissionClaimResponse,
    MissionStatusItem,
)
from app.services.mission_service import MissionService

logger = structlog.get_logger("kindred.api.missions")

router = APIRouter()

_mission_service: MissionService | None = None


def _get_mission_service() -> MissionService:
    global _mission_service
    if _mission_service is None:
        _mission_service = MissionService()
    return _mission_service


@router.get(
    "/status",
    response_model=dict[str, MissionStatusItem],
    summary="Today's mission progress",
)
async def get_status(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await _get_mission_service().get_status(db, current_user.id)


@router.post("/claim", response_model=MissionClaimResponse, summary="Claim a reward")
async def claim(
    payload: MissionClaimRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Grant a mission's reward once per calendar day.

    400 for an unknown type, a second claim today or an unmet goal.
    """
    logger.info(
        "claim_request",
        user_id=str(current_user.id),
        mission_type=payload.mission_type,
    )
    return await _get_mission_service().claim(db, current_user.id, payload.mission_type)


from typing import Optional

from pydantic import BaseModel


class MissionStatusItem(BaseModel):
    completed: bool
    claimable: bool
    progress: Optional[int] = None
    goal: Optional[int] = None
    reward: int


class MissionClaimRequest(BaseModel):
    mission_type: str


class MissionClaimResponse(BaseModel):
    message: str
    reward: int
    new_balance: int

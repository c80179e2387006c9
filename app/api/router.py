"""
Kindred - Main API Router

Aggregates all sub-routers so that ``app.main`` can mount the entire API
surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import chat, matching, missions, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(matching.router, prefix="/match", tags=["Matching"])
router.include_router(missions.router, prefix="/missions", tags=["Missions"])
router.include_router(chat.router, prefix="/chat", tags=["Chat"])

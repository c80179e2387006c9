"""
Kindred - ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.user import User, Follow, Block, ProfileVisit
from app.models.match import Match, Swipe
from app.models.mission import MissionProgressRecord
from app.models.chat import ChatMessage, ChatPreference

__all__ = [
    "User",
    "Follow",
    "Block",
    "ProfileVisit",
    "Match",
    "Swipe",
    "MissionProgressRecord",
    "ChatMessage",
    "ChatPreference",
]

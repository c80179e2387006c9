"""
Kindred - Online presence backed by Redis.

Each user maps to a Redis set of connected Socket.IO session ids; the user
is online while the set is non-empty.  The key carries a TTL so a crashed
worker cannot leave someone "online" forever.
"""

from __future__ import annotations

import structlog
from redis.exceptions import RedisError

from app.config import get_settings
from app.utils.redis_client import get_redis

logger = structlog.get_logger("kindred.presence_service")


def _key(user_id: str) -> str:
    return f"presence:{user_id}"


async def mark_online(user_id: str, sid: str) -> None:
    redis = get_redis()
    if redis is None:
        return
    try:
        await redis.sadd(_key(user_id), sid)
        await redis.expire(_key(user_id), get_settings().PRESENCE_TTL_SECONDS)
    except RedisError as exc:
        logger.warning("presence_write_failed", user_id=user_id, error=str(exc))


async def mark_offline(user_id: str, sid: str) -> None:
    redis = get_redis()
    if redis is None:
        return
    try:
        await redis.srem(_key(user_id), sid)
    except RedisError as exc:
        logger.warning("presence_write_failed", user_id=user_id, error=str(exc))


async def is_online(user_id: str) -> bool:
    redis = get_redis()
    if redis is None:
        return False
    try:
        return bool(await redis.scard(_key(user_id)))
    except RedisError as exc:
        logger.warning("presence_read_failed", user_id=user_id, error=str(exc))
        return False

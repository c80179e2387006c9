"""Shared Redis client, connected during the application lifespan."""

from __future__ import annotations

import structlog

from app.config import get_settings

logger = structlog.get_logger("kindred.redis")

_redis_client = None


async def connect_redis() -> None:
    global _redis_client
    import redis.asyncio as aioredis

    settings = get_settings()
    _redis_client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=5,
    )
    # Verify connectivity
    await _redis_client.ping()
    logger.info("redis_connected", url=settings.REDIS_URL)


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_closed")


def get_redis():
    """Return the shared Redis client, or ``None`` before startup."""
    return _redis_client


def set_redis(client) -> None:
    """Swap the shared client (fakeredis in tests)."""
    global _redis_client
    _redis_client = client

"""
Kindred - Async Database Engine & Session Factory

A single engine is built from ``DATABASE_URL``: ``asyncpg`` against
PostgreSQL in deployments, ``aiosqlite`` under the test suite.  Requests
get their own ``AsyncSession`` through ``get_db``, which commits when the
endpoint returns and rolls back on any exception.
"""

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings


class Base(DeclarativeBase):
    """Declarative base shared by every Kindred model."""


# JSONB on PostgreSQL, plain JSON everywhere else.
JSONVariant = JSON().with_variant(JSONB(), "postgresql")

# SQLite pool classes reject these, so they only apply to server databases.
_SERVER_POOL_KWARGS = {
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def async_database_url(url: str) -> str:
    """Pin the asyncpg driver on a bare ``postgresql://`` URL."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def build_engine(url: str | None = None) -> AsyncEngine:
    settings = get_settings()
    url = async_database_url(url or settings.DATABASE_URL)
    pool_kwargs = {} if url.startswith("sqlite") else _SERVER_POOL_KWARGS
    return create_async_engine(
        url, echo=(settings.LOG_LEVEL == "DEBUG"), **pool_kwargs
    )


engine = build_engine()

async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Per-request unit of work: commit on success, roll back on any error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

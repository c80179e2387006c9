"""Shared pytest fixtures for Kindred tests."""
import itertools
import os
from datetime import date

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.models.user import User
from app.utils.auth import encode_access_token
from app.utils.redis_client import set_redis


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite database per test.

    pysqlite's implicit transaction handling is switched off and BEGIN is
    emitted explicitly so SAVEPOINTs behave as on PostgreSQL.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    """One session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    client = FakeRedis(decode_responses=True)
    set_redis(client)
    try:
        yield client
    finally:
        set_redis(None)
        await client.flushall()


_counter = itertools.count()


def _user_fields(overrides: dict) -> dict:
    n = next(_counter)
    fields = {
        "username": f"user{n}",
        "email": f"user{n}@example.com",
        "full_name": f"User {n}",
        "birth_date": date(1995, 6, 15),
        "gender": "Woman",
        "latitude": 40.7128,
        "longitude": -74.0060,
        "interests": [],
        "coins": 1000,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def user_factory(db):
    """Add a user through the test's ``db`` session."""

    async def _create(**overrides) -> User:
        user = User(**_user_fields(overrides))
        db.add(user)
        await db.flush()
        return user

    return _create


@pytest.fixture
def make_user(session_factory):
    """Commit a user in its own short-lived session (for API tests)."""

    async def _create(**overrides) -> User:
        async with session_factory() as session:
            user = User(**_user_fields(overrides))
            session.add(user)
            await session.commit()
        return user

    return _create


@pytest.fixture
def auth_headers():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {encode_access_token(user.id)}"}

    return _headers


@pytest_asyncio.fixture
async def client(session_factory):
    from app.main import app

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()

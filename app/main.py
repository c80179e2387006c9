"""
Kindred - FastAPI Application Entry Point

Serve ``app.main:socket_app``: it carries both the REST API (under
``/api``) and the ``/chat`` Socket.IO namespace.

- lifespan: warm the database pool, connect Redis best-effort; on shutdown
  wait for in-flight requests, then release both
- middleware: CORS, a per-request timeout, and an access log that also
  turns unhandled errors into a JSON 500
- ``KindredError`` subclasses map onto their status code as ``{"detail"}``
- ``/health`` (liveness) and ``/health/deep`` (database and Redis)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import socketio
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.router import router as api_router
from app.config import get_settings
from app.database import async_session_factory, engine
from app.exceptions import KindredError
from app.sockets.chat import ChatNamespace, set_namespace
from app.utils.redis_client import close_redis, connect_redis, get_redis

settings = get_settings()

DRAIN_TIMEOUT_SECONDS = 15


def configure_logging(level: str) -> None:
    """JSON lines on stdout, filtered at *level*."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(settings.LOG_LEVEL)
logger = structlog.get_logger("kindred")


# ── In-flight requests ────────────────────────────────────────────────────────

class InFlightRequests:
    """Counts requests being served so shutdown can wait for them."""

    def __init__(self) -> None:
        self.count = 0

    @asynccontextmanager
    async def track(self) -> AsyncIterator[None]:
        self.count += 1
        try:
            yield
        finally:
            self.count -= 1

    async def drain(self, timeout: float, poll_interval: float = 0.25) -> bool:
        """Wait for the count to reach zero; False if *timeout* ran out first."""
        deadline = time.monotonic() + timeout
        while self.count > 0:
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(poll_interval)
        return True


in_flight = InFlightRequests()


# ── Lifespan ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("startup_begin", environment=settings.ENVIRONMENT)

    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_initialised", dialect=engine.dialect.name)

    # without Redis, presence reads as offline and live pushes are skipped
    try:
        await connect_redis()
    except (RedisError, OSError) as exc:
        logger.warning("redis_unavailable", error=str(exc))

    logger.info("startup_complete")
    yield

    logger.info("shutdown_begin", in_flight=in_flight.count)
    if not await in_flight.drain(DRAIN_TIMEOUT_SECONDS):
        logger.warning("drain_timeout_exceeded", remaining_requests=in_flight.count)
    await close_redis()
    await engine.dispose()
    logger.info("shutdown_complete")


# ── Middleware ────────────────────────────────────────────────────────────────

def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """504 for requests running longer than *timeout_seconds*."""

    def __init__(self, app, timeout_seconds: float) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(status_code=504, content={"detail": "Request timed out"})


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line per request; unhandled errors become a JSON 500."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        log = logger.bind(method=request.method, path=request.url.path)
        start = time.perf_counter()
        async with in_flight.track():
            try:
                response = await call_next(request)
            except Exception:
                log.exception("request_error", duration_ms=_elapsed_ms(start))
                return JSONResponse(
                    status_code=500, content={"detail": "Internal server error"}
                )
        log.info(
            "request_handled", status=response.status_code, duration_ms=_elapsed_ms(start)
        )
        return response


# ── Application ───────────────────────────────────────────────────────────────

app = FastAPI(
    title="Kindred",
    description="Discovery, matching, missions and chat for the Kindred dating app",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

# last added runs first: CORS, then timeout, then the access log
app.add_middleware(AccessLogMiddleware)
app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KindredError)
async def handle_domain_error(request: Request, exc: KindredError) -> JSONResponse:
    logger.info(
        "domain_error",
        method=request.method,
        path=request.url.path,
        status=exc.status_code,
        error=type(exc).__name__,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(api_router, prefix="/api")


# ── Health ────────────────────────────────────────────────────────────────────

async def _database_status() -> str:
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_db_failure", error=str(exc))
        return f"error: {exc}"
    return "connected"


async def _redis_status() -> str:
    redis = get_redis()
    if redis is None:
        return "error: Redis client not initialised"
    try:
        await redis.ping()
    except (RedisError, OSError) as exc:
        logger.error("health_redis_failure", error=str(exc))
        return f"error: {exc}"
    return "connected"


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    return {"status": "healthy"}


@app.get("/health/deep", tags=["health"])
async def health_deep() -> dict:
    """Readiness: ``degraded`` as soon as the database or Redis fails."""
    database, redis = await asyncio.gather(_database_status(), _redis_status())
    healthy = database == "connected" and redis == "connected"
    return {
        "status": "healthy" if healthy else "degraded",
        "database": database,
        "redis": redis,
    }


# ── Real-time relay ───────────────────────────────────────────────────────────

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=(
        "*" if settings.ALLOWED_ORIGINS.strip() == "*" else settings.allowed_origins_list
    ),
)
chat_namespace = ChatNamespace()
sio.register_namespace(chat_namespace)
set_namespace(chat_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

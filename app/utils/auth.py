"""
Bearer-token verification.

Tokens are minted by the external auth service with the shared HS256
secret; this module only decodes them and exposes the caller's user id as a
FastAPI dependency.  ``encode_access_token`` exists for the seed script and
the test suite.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from app.config import get_settings

logger = structlog.get_logger("kindred.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


def encode_access_token(user_id: uuid.UUID | str, expires_in: int = 3600) -> str:
    settings = get_settings()
    now = int(time.time())
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a token.

    Raises jwt.InvalidTokenError subclasses on failure.
    """
    settings = get_settings()
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        leeway=settings.JWT_LEEWAY_SECONDS,
        options={"require": ["exp", "sub"]},
    )


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> uuid.UUID:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
        )
    try:
        payload = decode_access_token(credentials.credentials)
        return uuid.UUID(str(payload["sub"]))
    except (InvalidTokenError, ValueError) as exc:
        logger.info("token_rejected", reason=type(exc).__name__)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, token failed",
        ) from exc

"""
Kindred - Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Kindred backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Database - asyncpg in deployments, aiosqlite in tests
    # ------------------------------------------------------------------ #
    DATABASE_URL: str

    # ------------------------------------------------------------------ #
    # Redis – presence tracking for the real-time relay
    # ------------------------------------------------------------------ #
    REDIS_URL: str
    PRESENCE_TTL_SECONDS: int = 3600

    # ------------------------------------------------------------------ #
    # Security – bearer tokens are issued elsewhere, verified here
    # ------------------------------------------------------------------ #
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_LEEWAY_SECONDS: int = 5

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Coin economy (prices of paid actions)
    # ------------------------------------------------------------------ #
    STARTING_COINS: int = 1000
    REWIND_COST: int = 50
    RESET_DISLIKES_COST: int = 100
    INSTANT_MATCH_COST: int = 200
    REMATCH_COST: int = 100
    BOOST_DURATION_MINUTES: int = 30

    # ------------------------------------------------------------------ #
    # Discovery
    # ------------------------------------------------------------------ #
    DISCOVERY_DEFAULT_DISTANCE_KM: float = 50.0
    DISCOVERY_MAX_RESULTS: int = 25
    DISCOVERY_SCAN_LIMIT: int = 500     # rows pulled before radius filtering
    DISCOVERY_FALLBACK_POOL_SIZE: int = 20
    TOP_PICKS_LIMIT: int = 10
    BLIND_DATE_POOL_SIZE: int = 50

    # ------------------------------------------------------------------ #
    # Missions
    # ------------------------------------------------------------------ #
    MISSION_TIMEZONE: str = "UTC"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def mission_tz(self) -> ZoneInfo:
        return ZoneInfo(self.MISSION_TIMEZONE)

    @field_validator(
        "STARTING_COINS",
        "REWIND_COST",
        "RESET_DISLIKES_COST",
        "INSTANT_MATCH_COST",
        "REMATCH_COST",
    )
    @classmethod
    def _price_must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Coin amounts must be >= 0, got {v}")
        return v

    @field_validator("MISSION_TIMEZONE")
    @classmethod
    def _timezone_must_exist(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone {v!r}") from exc
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from app.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]

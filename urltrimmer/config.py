"""Configuration management for the URL trimmer service.

This module provides centralized configuration using Pydantic BaseSettings
with environment variable support. Settings are loaded once per process and
treated as immutable afterwards; services receive the object explicitly at
construction instead of reading globals.

Flow Diagram: get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1: Import**::
    from urltrimmer.config import get_settings

**Step 2: Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3: Build a short URL**::
    settings.short_url_for("abc")  # -> "http://localhost:8000/abc"

Key Behaviours
===============
- Settings are cached after first access.
- Environment variables (or a ``.env`` file) override defaults.
- The instance is frozen; attempting to mutate a field raises.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "url-trimmer"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Database (PostgreSQL in production, SQLite for local runs)
    DATABASE_URL: str = "sqlite+aiosqlite:///./urltrimmer.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    # Redis cache for the redirect path
    REDIS_URL: str = "redis://localhost:6379/0"
    LINK_CACHE_ENABLED: bool = False
    LINK_CACHE_TTL_SECONDS: int = 3600
    LINK_CACHE_KEY_PREFIX: str = "link"

    # Short code allocation
    SHORT_CODE_LENGTH: int = 3
    SHORT_CODE_FALLBACK_LENGTH: int = 4
    SHORT_CODE_MAX_ATTEMPTS: int = 40
    VERIFY_FALLBACK_CODE: bool = True

    # Listing / analytics
    LIST_DEFAULT_LIMIT: int = 10
    LIST_MAX_LIMIT: int = 100
    SUMMARY_SIZE: int = 5

    # Identity header set by the upstream authentication layer
    OWNER_HEADER: str = "X-Owner-Id"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    def short_url_for(self, short_code: str) -> str:
        return f"{self.BASE_URL.rstrip('/')}/{short_code}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

"""Redis client management for the redirect cache.

This module provides a singleton Redis client created lazily on first use
and closed on application shutdown.

Flow Diagram: Redis Operations
=============================
::
    ┌─────────────┐
    │ get_redis()  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cache off?   │── yes ──> None
    └──────┬──────┘
           ▼ no
    ┌─────────────┐
    │ Check global │
    │ client var   │
    └──────┬──────┘
    EXISTS?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Redis   │  │ existing│
│ client  │  │ client  │
└─────────┘  └─────────┘

Key Behaviours
===============
- Returns ``None`` when LINK_CACHE_ENABLED is false; callers treat that as
  "no cache".
- Global client is reused across all requests.
- UTF-8 encoding with decode_responses for string operations.

Functions:
    get_redis():  FastAPI dependency / accessor for the Redis client.
    close_redis():  Cleanup function for shutdown.
"""

import redis.asyncio as redis

from urltrimmer.config import get_settings

__all__ = ["close_redis", "get_redis"]

settings = get_settings()

redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis | None:
    global redis_client
    if not settings.LINK_CACHE_ENABLED:
        return None
    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None

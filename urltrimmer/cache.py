"""Redis cache-aside layer for the redirect path.

Only resolvable links are cached, keyed by short code. Every mutation that
can change resolvability (update, delete) invalidates the key, so a single
code always reads its own latest write. The cache is transparent: when Redis
misbehaves the error is logged and the caller falls back to the database.

Flow Diagram: Redirect Lookup
==============================
::
    ┌─────────────┐
    │  GET /:code │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check Redis  │
    │ link:<code>  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Query   │  │ Check   │
│ store   │  │ expiry  │
└────┬────┘  └─────────┘
     ▼
┌─────────┐
│ Cache if│
│ active  │
└─────────┘
"""

import logging

import redis.asyncio as redis
from prometheus_client import Counter

from urltrimmer.enums import CacheStatus
from urltrimmer.models import Link
from urltrimmer.schemas import CachedLinkPayload

__all__ = ["LinkCache"]

LINK_CACHE_LOOKUPS_TOTAL = Counter(
    "url_trimmer_link_cache_lookups_total",
    "Redirect cache lookups",
    ["cache_hit"],
)
LINK_CACHE_ERRORS_TOTAL = Counter(
    "url_trimmer_link_cache_errors_total",
    "Redis errors raised by the link cache",
)


class LinkCache:
    """Cache of resolvable links; a ``None`` client disables it."""

    def __init__(
        self,
        client: redis.Redis | None,
        ttl_seconds: int = 3600,
        key_prefix: str = "link",
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._client = client
        self._ttl = ttl_seconds
        self._prefix = key_prefix
        self._logger = logger or logging.getLogger("urltrimmer")

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def _key(self, short_code: str) -> str:
        return f"{self._prefix}:{short_code}"

    async def get(self, short_code: str) -> CachedLinkPayload | None:
        if self._client is None:
            return None
        try:
            cached = await self._client.get(self._key(short_code))
        except redis.RedisError as exc:
            LINK_CACHE_ERRORS_TOTAL.inc()
            self._logger.warning(f"Cache read failed for {short_code}: {exc}")
            return None

        if not cached:
            LINK_CACHE_LOOKUPS_TOTAL.labels(cache_hit=CacheStatus.MISS).inc()
            return None

        try:
            payload = CachedLinkPayload.model_validate_json(cached)
        except ValueError as exc:
            self._logger.error(f"Cache deserialization error for {short_code}: {exc}")
            return None
        LINK_CACHE_LOOKUPS_TOTAL.labels(cache_hit=CacheStatus.HIT).inc()
        return payload

    async def set(self, link: Link) -> None:
        if self._client is None:
            return
        payload = CachedLinkPayload.model_validate(link)
        try:
            await self._client.setex(self._key(link.short_code), self._ttl, payload.model_dump_json())
        except redis.RedisError as exc:
            LINK_CACHE_ERRORS_TOTAL.inc()
            self._logger.warning(f"Cache write failed for {link.short_code}: {exc}")

    async def invalidate(self, short_code: str) -> None:
        if self._client is None:
            return
        try:
            await self._client.delete(self._key(short_code))
        except redis.RedisError as exc:
            LINK_CACHE_ERRORS_TOTAL.inc()
            self._logger.error(f"Cache invalidation failed for {short_code}: {exc}")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except redis.RedisError as exc:
            self._logger.error(f"Cache health check failed: {exc}")
            return False

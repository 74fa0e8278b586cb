"""Redirect resolution: short code in, target URL out, one click recorded.

Resolution Flow
===============
::
    ┌─────────────┐
    │ resolve()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cache hit?  │── yes ──┐
    └──────┬──────┘         │
           ▼ no             │
    ┌─────────────┐         │
    │ find_by_code│         │
    └──────┬──────┘         │
           ▼                ▼
    ┌──────────────────────────┐
    │ absent / inactive /      │── yes ──> NotFoundError
    │ expired ?                │
    └──────────┬───────────────┘
               ▼ no
    ┌─────────────┐
    │ clicks += 1 │  (atomic UPDATE, active + unexpired only)
    └──────┬──────┘── 0 rows ──> evict cache, NotFoundError
           ▼
    ┌─────────────┐
    │ return URL  │
    └─────────────┘

Missing, inactive and expired codes all raise the same ``NotFoundError`` so
the public endpoint never reveals which codes exist but are disabled.

The lookup and the increment are separate statements. A crash between them
drops one click; the counter is approximate but never decreases. The
increment only matches an active, unexpired row, so a cached payload that
went stale after a deactivation answers 404 and is evicted.
"""

import logging
import time

from prometheus_client import Counter, Histogram

from urltrimmer.cache import LinkCache
from urltrimmer.codegen import is_valid_short_code
from urltrimmer.config import Settings
from urltrimmer.enums import RequestStatus
from urltrimmer.errors import NotFoundError
from urltrimmer.models import as_utc, utcnow
from urltrimmer.store import LinkStore

__all__ = ["ResolutionService"]

REDIRECT_REQUESTS_TOTAL = Counter(
    "url_trimmer_redirect_requests_total",
    "Total redirect resolutions",
    ["status"],
)
REDIRECT_DURATION = Histogram(
    "url_trimmer_redirect_duration_seconds",
    "Time taken to resolve a short code",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)


class ResolutionService:
    def __init__(
        self,
        store: LinkStore,
        settings: Settings,
        cache: LinkCache | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._cache = cache or LinkCache(None)
        self._logger = logger or logging.getLogger("urltrimmer")

    @classmethod
    def from_context(cls, ctx) -> "ResolutionService":
        return cls(LinkStore(ctx.database), ctx.settings, ctx.link_cache, ctx.logger)

    async def resolve(self, short_code: str) -> str:
        start_time = time.perf_counter()
        try:
            original_url = await self._lookup(short_code)
            if not await self._store.increment_clicks(short_code, utcnow()):
                # deactivated, expired or deleted since the cached read
                await self._cache.invalidate(short_code)
                raise NotFoundError()
        except NotFoundError:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            self._logger.info(f"Short code not resolvable: {short_code}")
            raise
        except Exception:
            REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            raise
        finally:
            REDIRECT_DURATION.observe(time.perf_counter() - start_time)

        REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.debug(f"Resolved {short_code} -> {original_url}")
        return original_url

    async def _lookup(self, short_code: str) -> str:
        if not is_valid_short_code(short_code):
            raise NotFoundError()
        now = utcnow()

        cached = await self._cache.get(short_code)
        if cached is not None:
            expires_at = as_utc(cached.expires_at)
            if expires_at is not None and expires_at <= now:
                await self._cache.invalidate(short_code)
                raise NotFoundError()
            return cached.original_url

        link = await self._store.find_by_code(short_code)
        if link is None or not link.is_resolvable(now):
            raise NotFoundError()

        await self._cache.set(link)
        return link.original_url

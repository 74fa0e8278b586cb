"""Link management: create, read, update, delete, list and summarize links.

Every operation is scoped to an already-authenticated owner id. The service
holds no state between requests; the store's unique constraints are the only
coordination between concurrent writers.

Short Code Acquisition
======================
::
    ┌──────────────────────┐
    │ up to 40 attempts:   │
    │  code = nanoid(3)    │──── free ────┐
    │  probe store         │              │
    └──────────┬───────────┘              │
               ▼ all taken                │
    ┌──────────────────────┐              │
    │ code = nanoid(4)     │              │
    │ (probed when         │              │
    │  VERIFY_FALLBACK_CODE)│             │
    └──────────┬───────────┘              │
               ▼                          ▼
    ┌─────────────────────────────────────────┐
    │ INSERT  (unique constraint is the judge)│
    └──────────┬──────────────────────────────┘
       conflict│                 ok
               ▼                  ▼
    same owner+URL exists? ──> return existing
    otherwise restart acquisition (bounded)

Key Behaviours
===============
- Creation is idempotent per owner: the same normalized URL returns the
  existing record untouched, including when two creates race each other.
- Exhausting the length-3 attempts degrades to a length-4 code rather than
  failing the request.
- Only title, description, tags and isActive can change after creation.
- Deleted codes are gone for good; update and delete invalidate the
  redirect cache.
"""

import logging
import math
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import validators
from prometheus_client import Counter, Histogram

from urltrimmer.cache import LinkCache
from urltrimmer.codegen import generate_short_code
from urltrimmer.config import Settings
from urltrimmer.enums import RequestStatus
from urltrimmer.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnavailableError,
)
from urltrimmer.models import Link
from urltrimmer.schemas import LinkCreate, LinkUpdate
from urltrimmer.store import LinkStore, parse_sort

__all__ = ["LinkManagementService", "LinkPage", "OwnerSummary", "normalize_url"]

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "url_trimmer_link_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "url_trimmer_link_creation_duration_seconds",
    "Time taken to create links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
SHORT_CODE_COLLISIONS_TOTAL = Counter(
    "url_trimmer_short_code_collisions_total",
    "Short code candidates rejected as already taken",
    ["stage"],
)
SHORT_CODE_FALLBACKS_TOTAL = Counter(
    "url_trimmer_short_code_fallbacks_total",
    "Allocations that exhausted the primary length and fell back to a longer code",
)


def normalize_url(raw: str) -> str:
    """Default the scheme to https and reject anything that is not an absolute URL."""
    candidate = raw.strip()
    if not _SCHEME_RE.match(candidate):
        candidate = f"https://{candidate}"
    # single-label hosts such as localhost or intranet names are accepted
    if not validators.url(candidate, simple_host=True):
        raise InvalidInputError("Invalid URL format")
    return candidate


@dataclass
class LinkPage:
    links: Sequence[Link]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class OwnerSummary:
    total_urls: int
    total_clicks: int
    recent_urls: Sequence[Link]
    top_urls: Sequence[Link]


class LinkManagementService:
    """Owner-facing operations on link records.

    Example:
        >>> service = LinkManagementService(LinkStore(db), get_settings())
        >>> link, created = await service.create("user-1", LinkCreate(original_url="example.com/page"))
        >>> link.original_url
        'https://example.com/page'
    """

    def __init__(
        self,
        store: LinkStore,
        settings: Settings,
        cache: LinkCache | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        code_generator: Callable[[int], str] = generate_short_code,
    ) -> None:
        self._store = store
        self._settings = settings
        self._cache = cache or LinkCache(None)
        self._logger = logger or logging.getLogger("urltrimmer")
        self._generate = code_generator

    @classmethod
    def from_context(cls, ctx) -> "LinkManagementService":
        return cls(LinkStore(ctx.database), ctx.settings, ctx.link_cache, ctx.logger)

    # ========================================================================
    # CREATE
    # ========================================================================

    async def create(self, owner_id: str, request: LinkCreate) -> tuple[Link, bool]:
        """Create a link, or return the owner's existing link for the same URL.

        Returns:
            (link, created) where ``created`` is False for an idempotent hit.

        Raises:
            InvalidInputError: the URL is not a well-formed absolute URL.
            UnavailableError: storage failure, or every insert attempt collided.
        """
        start_time = time.perf_counter()
        try:
            original_url = normalize_url(request.original_url)

            existing = await self._store.find_by_owner_and_url(owner_id, original_url)
            if existing is not None:
                LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.EXISTING).inc()
                self._logger.info(f"Returning existing link {existing.short_code} for {original_url}")
                return existing, False

            link, created = await self._insert_with_new_code(owner_id, original_url, request)
            LINK_CREATION_REQUESTS_TOTAL.labels(
                status=RequestStatus.SUCCESS if created else RequestStatus.EXISTING
            ).inc()
            return link, created

        except InvalidInputError as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            self._logger.warning(f"Link creation rejected: {exc}")
            raise
        except Exception as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Link creation error: {exc}")
            raise
        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

    async def _insert_with_new_code(
        self, owner_id: str, original_url: str, request: LinkCreate
    ) -> tuple[Link, bool]:
        for attempt in range(1, self._settings.SHORT_CODE_MAX_ATTEMPTS + 1):
            short_code = await self.acquire_short_code()
            link = Link.new(
                owner_id=owner_id,
                original_url=original_url,
                short_code=short_code,
                title=request.title,
                description=request.description,
                tags=request.tags,
                expires_at=request.expires_at,
            )
            try:
                link = await self._store.insert(link)
            except ConflictError as exc:
                # a concurrent create of the same owner+URL won the race
                existing = await self._store.find_by_owner_and_url(owner_id, original_url)
                if existing is not None:
                    self._logger.info(f"Concurrent create resolved to existing link {existing.short_code}")
                    return existing, False
                SHORT_CODE_COLLISIONS_TOTAL.labels(stage="insert").inc()
                self._logger.warning(
                    f"Insert conflict on {short_code} (attempt {attempt}, constraint={exc.constraint}); retrying"
                )
                continue

            self._logger.info(f"Link created: {link.short_code} -> {original_url}")
            return link, True

        raise UnavailableError("Could not allocate a unique short code")

    async def acquire_short_code(self) -> str:
        """Probe random codes at the primary length, then degrade to the fallback length."""
        settings = self._settings
        for _ in range(settings.SHORT_CODE_MAX_ATTEMPTS):
            candidate = self._generate(settings.SHORT_CODE_LENGTH)
            if not await self._store.code_exists(candidate):
                return candidate
            SHORT_CODE_COLLISIONS_TOTAL.labels(stage="probe").inc()

        SHORT_CODE_FALLBACKS_TOTAL.inc()
        self._logger.warning(
            f"{settings.SHORT_CODE_MAX_ATTEMPTS} collisions at length {settings.SHORT_CODE_LENGTH}; "
            f"falling back to length {settings.SHORT_CODE_FALLBACK_LENGTH}"
        )
        if not settings.VERIFY_FALLBACK_CODE:
            return self._generate(settings.SHORT_CODE_FALLBACK_LENGTH)

        for _ in range(settings.SHORT_CODE_MAX_ATTEMPTS):
            candidate = self._generate(settings.SHORT_CODE_FALLBACK_LENGTH)
            if not await self._store.code_exists(candidate):
                return candidate
            SHORT_CODE_COLLISIONS_TOTAL.labels(stage="fallback_probe").inc()
        return self._generate(settings.SHORT_CODE_FALLBACK_LENGTH)

    # ========================================================================
    # READ / UPDATE / DELETE
    # ========================================================================

    async def get(self, owner_id: str, link_id: int) -> Link:
        link = await self._store.find_by_id(link_id)
        if link is None:
            raise NotFoundError("URL not found")
        if link.owner_id != owner_id:
            self._logger.warning(f"Owner {owner_id} denied access to link {link_id}")
            raise ForbiddenError()
        return link

    async def update(self, owner_id: str, link_id: int, patch: LinkUpdate) -> Link:
        link = await self.get(owner_id, link_id)
        changes = patch.changes()
        if not changes:
            return link
        link = await self._store.update(link, changes)
        await self._cache.invalidate(link.short_code)
        self._logger.info(f"Link {link.short_code} updated: {sorted(changes)}")
        return link

    async def delete(self, owner_id: str, link_id: int) -> None:
        link = await self.get(owner_id, link_id)
        short_code = link.short_code
        await self._store.delete(link)
        await self._cache.invalidate(short_code)
        self._logger.info(f"Link {short_code} deleted by {owner_id}")

    # ========================================================================
    # LISTING / ANALYTICS
    # ========================================================================

    async def list(
        self,
        owner_id: str,
        search: str | None = None,
        page: int = 1,
        limit: int | None = None,
        sort: str | None = None,
    ) -> LinkPage:
        limit = self._settings.LIST_DEFAULT_LIMIT if limit is None else limit
        if page < 1:
            raise InvalidInputError("page must be >= 1")
        if not 1 <= limit <= self._settings.LIST_MAX_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {self._settings.LIST_MAX_LIMIT}")
        try:
            parse_sort(sort)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        search = (search or "").strip() or None
        links, total = await self._store.list_by_owner(
            owner_id,
            search=search,
            offset=(page - 1) * limit,
            limit=limit,
            sort=sort,
        )
        return LinkPage(links=links, total=total, page=page, limit=limit)

    async def analytics_summary(self, owner_id: str) -> OwnerSummary:
        size = self._settings.SUMMARY_SIZE
        total_urls, total_clicks = await self._store.summarize_owner(owner_id)
        recent = await self._store.recent_by_owner(owner_id, size)
        top = await self._store.top_by_owner(owner_id, size)
        return OwnerSummary(
            total_urls=total_urls,
            total_clicks=total_clicks,
            recent_urls=recent,
            top_urls=top,
        )

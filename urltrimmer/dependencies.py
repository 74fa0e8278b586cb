"""Dependency injection with a singleton service manager.

Shared resources (settings, logger) live on a process-wide ``ServiceManager``;
per-request resources (database session, owner identity, request id) live on
a ``RequestContext`` that the service factories read from.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from urltrimmer.cache import LinkCache
from urltrimmer.config import Settings, get_settings
from urltrimmer.database import get_db
from urltrimmer.links import LinkManagementService
from urltrimmer.redis import get_redis
from urltrimmer.resolution import ResolutionService


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton holder for resources shared by every request."""

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger()
            self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        logger = logging.getLogger("urltrimmer")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    def cleanup(self) -> None:
        self._initialized = False


_service_manager = ServiceManager()


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request resources and tracking.

    Attributes:
        database: Async database session (the only per-request resource)
        service_manager: Singleton with settings and logger
        cache_client: Shared Redis client, or None when caching is off
        owner_id: Authenticated owner identity, when the route requires one
        request_id: Unique identifier for this request
        client_ip: Client IP address
        user_agent: Client user agent string
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    cache_client: redis.Redis | None = None
    owner_id: Optional[str] = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "owner_id": self.owner_id,
            },
        )

    @property
    def link_cache(self) -> LinkCache:
        return LinkCache(
            self.cache_client,
            ttl_seconds=self.settings.LINK_CACHE_TTL_SECONDS,
            key_prefix=self.settings.LINK_CACHE_KEY_PREFIX,
            logger=self.logger,
        )

    def get_duration(self) -> float:
        """Request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache_client: redis.Redis | None = Depends(get_redis),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        database=db,
        service_manager=manager,
        cache_client=cache_client,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


async def get_owner_context(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
) -> RequestContext:
    """Request context for management routes; the owner header is mandatory."""
    owner_id = (request.headers.get(ctx.settings.OWNER_HEADER) or "").strip()
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    ctx.owner_id = owner_id
    return ctx


def get_link_service(ctx: RequestContext = Depends(get_owner_context)) -> LinkManagementService:
    return LinkManagementService.from_context(ctx)


def get_resolution_service(ctx: RequestContext = Depends(get_request_context)) -> ResolutionService:
    return ResolutionService.from_context(ctx)

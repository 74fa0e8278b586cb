"""FastAPI route definitions for the URL trimmer.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /api/urls                      (X-Owner-Id)
        ├─ LinkCreate (request body)
        └─ LinkResponse (201 new / 200 existing) or 400

    GET    /api/urls?page&limit&search&sort
        └─ LinkListResponse (200)

    GET    /api/urls/analytics/summary
        └─ AnalyticsSummary (200)

    GET    /api/urls/{id}
    PUT    /api/urls/{id}
    DELETE /api/urls/{id}
        └─ 200, or 403 (not owner) / 404 (no such link)

    GET    /{short_code}                  (public)
        └─ 302 Redirect or 404

How to Use
===========
**Shorten a URL**::
    curl -X POST http://localhost:8000/api/urls \
         -H "X-Owner-Id: user-1" -H "Content-Type: application/json" \
         -d '{"originalUrl": "example.com/page", "tags": "docs, demo"}'

**Follow it**::
    curl -i http://localhost:8000/abc

Key Behaviours
===============
- Service errors carry their own status code; the handler in ``main.py``
  turns them into JSON ``{"detail": ...}`` responses.
- The owner identity comes from the header set by the upstream auth layer.
- The redirect route is declared last so it never shadows the API paths.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import RedirectResponse

from urltrimmer.dependencies import (
    RequestContext,
    get_link_service,
    get_owner_context,
    get_request_context,
    get_resolution_service,
)
from urltrimmer.enums import HealthStatus
from urltrimmer.errors import UnavailableError
from urltrimmer.links import LinkManagementService
from urltrimmer.models import as_utc
from urltrimmer.resolution import ResolutionService
from urltrimmer.schemas import (
    AnalyticsSummary,
    HealthResponse,
    LinkCreate,
    LinkListResponse,
    LinkResponse,
    LinkUpdate,
    MessageResponse,
    RecentLink,
    TopLink,
)
from urltrimmer.store import LinkStore

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        await LinkStore(ctx.database).ping()
    except UnavailableError as exc:
        ctx.logger.error(f"Database health check failed: {exc}")
        db_status = HealthStatus.UNHEALTHY

    cache = ctx.link_cache
    if not cache.enabled:
        cache_status = HealthStatus.DISABLED
    elif await cache.ping():
        cache_status = HealthStatus.HEALTHY
    else:
        cache_status = HealthStatus.UNHEALTHY

    overall = (
        HealthStatus.UNHEALTHY
        if HealthStatus.UNHEALTHY in (db_status, cache_status)
        else HealthStatus.HEALTHY
    )
    return HealthResponse(status=overall, database=db_status, cache=cache_status)


@router.post("/api/urls", response_model=LinkResponse, status_code=status.HTTP_201_CREATED, tags=["urls"])
async def create_link(
    payload: LinkCreate,
    response: Response,
    ctx: RequestContext = Depends(get_owner_context),
    service: LinkManagementService = Depends(get_link_service),
) -> LinkResponse:
    link, created = await service.create(ctx.owner_id, payload)
    if not created:
        response.status_code = status.HTTP_200_OK
    ctx.logger.info(
        f"Create request for {link.original_url} answered with {link.short_code} "
        f"(created={created}) in {ctx.get_duration():.1f}ms"
    )
    return LinkResponse.from_model(link, ctx.settings)


@router.get("/api/urls", response_model=LinkListResponse, tags=["urls"])
async def list_links(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    search: str | None = Query(None),
    sort: str = Query("-createdAt"),
    ctx: RequestContext = Depends(get_owner_context),
    service: LinkManagementService = Depends(get_link_service),
) -> LinkListResponse:
    result = await service.list(ctx.owner_id, search=search, page=page, limit=limit, sort=sort)
    return LinkListResponse(
        urls=[LinkResponse.from_model(link, ctx.settings) for link in result.links],
        total=result.total,
        total_pages=result.total_pages,
        current_page=result.page,
    )


@router.get("/api/urls/analytics/summary", response_model=AnalyticsSummary, tags=["urls"])
async def analytics_summary(
    ctx: RequestContext = Depends(get_owner_context),
    service: LinkManagementService = Depends(get_link_service),
) -> AnalyticsSummary:
    summary = await service.analytics_summary(ctx.owner_id)
    return AnalyticsSummary(
        total_urls=summary.total_urls,
        total_clicks=summary.total_clicks,
        recent_urls=[
            RecentLink(
                id=link.id,
                short_code=link.short_code,
                title=link.title,
                clicks=link.clicks,
                created_at=as_utc(link.created_at),
            )
            for link in summary.recent_urls
        ],
        top_urls=[
            TopLink(
                id=link.id,
                short_code=link.short_code,
                title=link.title,
                clicks=link.clicks,
                original_url=link.original_url,
            )
            for link in summary.top_urls
        ],
    )


@router.get("/api/urls/{link_id}", response_model=LinkResponse, tags=["urls"])
async def get_link(
    link_id: int,
    ctx: RequestContext = Depends(get_owner_context),
    service: LinkManagementService = Depends(get_link_service),
) -> LinkResponse:
    link = await service.get(ctx.owner_id, link_id)
    return LinkResponse.from_model(link, ctx.settings)


@router.put("/api/urls/{link_id}", response_model=LinkResponse, tags=["urls"])
async def update_link(
    link_id: int,
    payload: LinkUpdate,
    ctx: RequestContext = Depends(get_owner_context),
    service: LinkManagementService = Depends(get_link_service),
) -> LinkResponse:
    link = await service.update(ctx.owner_id, link_id, payload)
    return LinkResponse.from_model(link, ctx.settings)


@router.delete("/api/urls/{link_id}", response_model=MessageResponse, tags=["urls"])
async def delete_link(
    link_id: int,
    ctx: RequestContext = Depends(get_owner_context),
    service: LinkManagementService = Depends(get_link_service),
) -> MessageResponse:
    await service.delete(ctx.owner_id, link_id)
    return MessageResponse(message="URL removed")


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> RedirectResponse:
    original_url = await service.resolve(short_code)
    ctx.logger.info(f"Redirect {short_code} -> {original_url} in {ctx.get_duration():.1f}ms")
    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)

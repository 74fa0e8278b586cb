"""Pydantic schemas for request/response validation in the URL trimmer.

Input structs are validated before any service logic runs; output structs
serialize link records with the camelCase field names the dashboard depends
on (``originalUrl``, ``shortUrl``, ``shortCode``, ``isActive`` ...).

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ originalUrl: str
    ├─ title: str | None (<= 100)
    ├─ description: str | None (<= 200)
    ├─ tags: "a, b" | ["a", "b"] | None
    └─ expiresAt: datetime | None

    LinkUpdate (Input, partial)
    ├─ title / description / tags
    └─ isActive: bool

    LinkResponse (Output)
    ├─ id, shortCode, shortUrl, originalUrl
    ├─ title, description, tags
    ├─ clicks, isActive
    └─ expiresAt, createdAt

    LinkListResponse (Output)
    └─ urls, total, totalPages, currentPage

    AnalyticsSummary (Output)
    └─ totalUrls, totalClicks, recentUrls, topUrls

Key Behaviours
===============
- Strings are trimmed before their length bounds are checked.
- Tags given as a comma-separated string are split and trimmed; empty
  entries are dropped.
- Request bodies accept both camelCase and snake_case keys.
- ``LinkUpdate`` only reports the fields the client actually sent.

Classes:
    LinkCreate:  Input for link creation.
    LinkUpdate:  Partial input for metadata updates.
    LinkResponse:  Output for a single link.
    LinkListResponse:  Output for a page of links.
    AnalyticsSummary:  Output for the owner dashboard summary.
    HealthResponse:  Output for health checks.
    CachedLinkPayload:  Redis cache payload for the redirect path.
"""

import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from urltrimmer.config import Settings
from urltrimmer.enums import HealthStatus
from urltrimmer.models import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH, Link, as_utc

__all__ = [
    "split_tags",
    "LinkCreate",
    "LinkUpdate",
    "LinkResponse",
    "LinkListResponse",
    "RecentLink",
    "TopLink",
    "AnalyticsSummary",
    "HealthResponse",
    "MessageResponse",
    "CachedLinkPayload",
]

Title = Annotated[str, StringConstraints(strip_whitespace=True, max_length=TITLE_MAX_LENGTH)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=DESCRIPTION_MAX_LENGTH)]


def split_tags(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValueError("tags must be a comma-separated string or a list of strings")
    tags = []
    for tag in value:
        if not isinstance(tag, str):
            raise ValueError("tags must be strings")
        tag = tag.strip()
        if tag:
            tags.append(tag)
    return tags


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LinkCreate(CamelModel):
    original_url: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    title: Title | None = None
    description: Description | None = None
    tags: list[str] | None = None
    expires_at: datetime.datetime | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> list[str] | None:
        return split_tags(v)

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: datetime.datetime | None) -> datetime.datetime | None:
        return as_utc(v)


class LinkUpdate(CamelModel):
    title: Title | None = None
    description: Description | None = None
    tags: list[str] | None = None
    is_active: bool | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> list[str] | None:
        return split_tags(v)

    def changes(self) -> dict[str, Any]:
        """Fields the client sent; ``tags``/``is_active`` sent as null are ignored."""
        changes = self.model_dump(include=self.model_fields_set)
        for keep_on_null in ("tags", "is_active"):
            if changes.get(keep_on_null, False) is None:
                changes.pop(keep_on_null)
        return changes


class LinkResponse(CamelModel):
    id: int
    short_code: str
    short_url: str
    original_url: str
    title: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    clicks: int
    is_active: bool
    expires_at: datetime.datetime | None = None
    created_at: datetime.datetime

    @classmethod
    def from_model(cls, link: Link, settings: Settings) -> "LinkResponse":
        return cls(
            id=link.id,
            short_code=link.short_code,
            short_url=settings.short_url_for(link.short_code),
            original_url=link.original_url,
            title=link.title,
            description=link.description,
            tags=list(link.tags or []),
            clicks=link.clicks,
            is_active=link.is_active,
            expires_at=as_utc(link.expires_at),
            created_at=as_utc(link.created_at),
        )


class LinkListResponse(CamelModel):
    urls: list[LinkResponse]
    total: int
    total_pages: int
    current_page: int


class RecentLink(CamelModel):
    id: int
    short_code: str
    title: str | None = None
    clicks: int
    created_at: datetime.datetime


class TopLink(CamelModel):
    id: int
    short_code: str
    title: str | None = None
    clicks: int
    original_url: str


class AnalyticsSummary(CamelModel):
    total_urls: int
    total_clicks: int
    recent_urls: list[RecentLink]
    top_urls: list[TopLink]


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class MessageResponse(BaseModel):
    message: str


class CachedLinkPayload(BaseModel):
    """Redis cache payload for a resolvable link."""

    short_code: str
    original_url: str
    expires_at: datetime.datetime | None = None

    model_config = {"from_attributes": True}

"""SQLAlchemy ORM models for the URL trimmer.

This module defines the ``links`` table: one row per shortened URL, owned by a
single user, with the click counter maintained by the redirect path.

Data Model Layout
=================
::
    links table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(16) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ original_url_hash (CHAR(64) NOT NULL)
    ├─ owner_id (VARCHAR(64) NOT NULL, INDEXED)
    ├─ title (VARCHAR(100) NULL)
    ├─ description (VARCHAR(200) NULL)
    ├─ tags (JSON list, DEFAULT [])
    ├─ clicks (INTEGER DEFAULT 0)
    ├─ is_active (BOOLEAN DEFAULT TRUE)
    ├─ expires_at (TIMESTAMPTZ NULL)
    ├─ created_at (TIMESTAMPTZ, INDEXED)
    └─ updated_at (TIMESTAMPTZ)

    UNIQUE (short_code)                      -> uq_links_short_code
    UNIQUE (owner_id, original_url_hash)     -> uq_links_owner_url
    FOREIGN KEY (short_code)                 -> short_codes.code

    short_codes table (permanent registry, rows never deleted)
    ├─ code (VARCHAR(16) PRIMARY KEY)
    └─ issued_at (TIMESTAMPTZ)

How to Use
===========
**Step 1: Import**::
    from urltrimmer.models import Link

**Step 2: Create a new link**::
    link = Link.new(owner_id="u1", original_url="https://example.com", short_code="abc")
    db.add(link)
    await db.commit()

**Step 3: Query links**::
    result = await db.execute(select(Link).where(Link.short_code == "abc"))
    link = result.scalar_one_or_none()

Key Behaviours
===============
- short_code is unique across all rows, active or not; the storage layer is
  the authority for uniqueness, not the application probe.
- (owner_id, original_url) is unique through the sha256 hash column so that
  arbitrarily long URLs can be indexed.
- clicks is only ever changed with ``clicks = clicks + 1`` in SQL.
- short_url is derived from BASE_URL and never stored.

Classes:
    Link:  A shortened URL record.
    ShortCode:  Registry entry for an issued short code.
"""

import datetime
import hashlib

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from urltrimmer.database import Base

__all__ = ["Link", "ShortCode", "hash_url", "utcnow", "as_utc"]

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 200


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """SQLite hands back naive datetimes; every timestamp we write is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=datetime.timezone.utc)


def hash_url(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class ShortCode(Base):
    __tablename__ = "short_codes"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    issued_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ShortCode(code='{self.code}')>"


class Link(Base):
    __tablename__ = "links"
    __table_args__ = (
        UniqueConstraint("short_code", name="uq_links_short_code"),
        UniqueConstraint("owner_id", "original_url_hash", name="uq_links_owner_url"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(String(16), ForeignKey("short_codes.code"), nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    original_url_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    title: Mapped[str | None] = mapped_column(String(TITLE_MAX_LENGTH), nullable=True)
    description: Mapped[str | None] = mapped_column(String(DESCRIPTION_MAX_LENGTH), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    @classmethod
    def new(
        cls,
        owner_id: str,
        original_url: str,
        short_code: str,
        title: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
        expires_at: datetime.datetime | None = None,
    ) -> "Link":
        now = utcnow()
        return cls(
            owner_id=owner_id,
            original_url=original_url,
            original_url_hash=hash_url(original_url),
            short_code=short_code,
            title=title,
            description=description,
            tags=list(tags or []),
            clicks=0,
            is_active=True,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )

    def is_expired(self, now: datetime.datetime | None = None) -> bool:
        expires_at = as_utc(self.expires_at)
        if expires_at is None:
            return False
        return expires_at <= (now or utcnow())

    def is_resolvable(self, now: datetime.datetime | None = None) -> bool:
        return bool(self.is_active) and not self.is_expired(now)

    def __repr__(self) -> str:
        return f"<Link(id={self.id}, short_code='{self.short_code}', owner='{self.owner_id}', clicks={self.clicks})>"

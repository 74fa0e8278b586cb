"""Persistence layer for link records.

``LinkStore`` wraps a single ``AsyncSession`` and is the only code that talks
SQL. It owns the two storage-level guarantees the rest of the service builds
on:

- unique constraints (``short_code`` and ``(owner_id, original_url_hash)``)
  are enforced by the database and surface as ``ConflictError`` on insert;
- every issued code is written to the ``short_codes`` registry in the same
  transaction as its link and stays there after the link is deleted, so a
  code is never handed out twice;
- click accounting is a single ``UPDATE ... SET clicks = clicks + 1``, never a
  read-modify-write in Python, so concurrent redirects cannot lose updates.
  The update only matches active, unexpired rows.

Connection-level failures are translated into ``UnavailableError``.
"""

import datetime
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from urltrimmer.enums import LinkSortField
from urltrimmer.errors import ConflictError, UnavailableError
from urltrimmer.models import Link, ShortCode, hash_url, utcnow

__all__ = ["LinkStore", "parse_sort"]

_SORT_COLUMNS = {
    LinkSortField.CREATED_AT: Link.created_at,
    LinkSortField.CLICKS: Link.clicks,
    LinkSortField.TITLE: Link.title,
    LinkSortField.ORIGINAL_URL: Link.original_url,
}

MUTABLE_FIELDS = frozenset({"title", "description", "tags", "is_active"})


def parse_sort(sort: str | None) -> tuple[LinkSortField, bool]:
    """Parse ``"-createdAt"`` style sort keys into (field, descending)."""
    if not sort:
        return LinkSortField.CREATED_AT, True
    descending = sort.startswith("-")
    name = sort.lstrip("-+")
    try:
        return LinkSortField(name), descending
    except ValueError:
        raise ValueError(f"Unsupported sort field '{name}'") from None


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _constraint_name(exc: IntegrityError) -> str | None:
    message = str(exc.orig)
    if "uq_links_owner_url" in message or "owner_id" in message:
        return "uq_links_owner_url"
    if "uq_links_short_code" in message or "short_code" in message:
        return "uq_links_short_code"
    return None


class LinkStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    @asynccontextmanager
    async def _storage_call(self) -> AsyncIterator[None]:
        try:
            yield
        except (OperationalError, InterfaceError) as exc:
            await self._db.rollback()
            raise UnavailableError("Storage unavailable") from exc

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    async def find_by_code(self, short_code: str) -> Link | None:
        async with self._storage_call():
            result = await self._db.execute(select(Link).where(Link.short_code == short_code))
            return result.scalar_one_or_none()

    async def find_by_id(self, link_id: int) -> Link | None:
        async with self._storage_call():
            return await self._db.get(Link, link_id)

    async def find_by_owner_and_url(self, owner_id: str, original_url: str) -> Link | None:
        async with self._storage_call():
            result = await self._db.execute(
                select(Link).where(
                    Link.owner_id == owner_id,
                    Link.original_url_hash == hash_url(original_url),
                    Link.original_url == original_url,
                )
            )
            return result.scalar_one_or_none()

    async def code_exists(self, short_code: str) -> bool:
        async with self._storage_call():
            # the registry also holds codes of deleted links
            result = await self._db.execute(select(ShortCode.code).where(ShortCode.code == short_code))
            return result.first() is not None

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    async def insert(self, link: Link) -> Link:
        async with self._storage_call():
            try:
                # registry row first; links.short_code references it
                self._db.add(ShortCode(code=link.short_code))
                await self._db.flush()
                self._db.add(link)
                await self._db.commit()
            except IntegrityError as exc:
                await self._db.rollback()
                raise ConflictError(
                    f"Unique constraint violated for short code '{link.short_code}'",
                    constraint=_constraint_name(exc),
                ) from exc
            await self._db.refresh(link)
            return link

    async def increment_clicks(self, short_code: str, now: datetime.datetime | None = None) -> int:
        """Atomically add one click to a resolvable link; returns the rows touched.

        Zero means the code is unknown, inactive or expired as of ``now``.
        """
        now = now or utcnow()
        async with self._storage_call():
            result = await self._db.execute(
                update(Link)
                .where(
                    Link.short_code == short_code,
                    Link.is_active.is_(True),
                    or_(Link.expires_at.is_(None), Link.expires_at > now),
                )
                .values(clicks=Link.clicks + 1)
                .execution_options(synchronize_session=False)
            )
            await self._db.commit()
            return result.rowcount

    async def update(self, link: Link, changes: dict[str, Any]) -> Link:
        unknown = set(changes) - MUTABLE_FIELDS
        assert not unknown, f"immutable fields in patch: {sorted(unknown)}"
        async with self._storage_call():
            for field, value in changes.items():
                if field == "tags":
                    value = list(value)
                setattr(link, field, value)
            await self._db.commit()
            await self._db.refresh(link)
            return link

    async def delete(self, link: Link) -> None:
        async with self._storage_call():
            await self._db.execute(delete(Link).where(Link.id == link.id))
            await self._db.commit()

    # ------------------------------------------------------------------
    # owner queries
    # ------------------------------------------------------------------

    def _tag_matches(self, pattern: str):
        """EXISTS over the elements of the JSON tags array, matched one by one."""
        if self._db.get_bind().dialect.name == "postgresql":
            elements = func.json_array_elements_text(Link.tags).table_valued("value")
        else:
            elements = func.json_each(Link.tags).table_valued("value")
        return exists(
            select(1).select_from(elements).where(elements.c.value.ilike(pattern, escape="\\"))
        ).correlate(Link)

    async def list_by_owner(
        self,
        owner_id: str,
        search: str | None = None,
        offset: int = 0,
        limit: int = 10,
        sort: str | None = None,
    ) -> tuple[Sequence[Link], int]:
        sort_field, descending = parse_sort(sort)
        conditions = [Link.owner_id == owner_id]
        if search:
            pattern = f"%{_escape_like(search)}%"
            conditions.append(
                or_(
                    Link.original_url.ilike(pattern, escape="\\"),
                    Link.title.ilike(pattern, escape="\\"),
                    Link.description.ilike(pattern, escape="\\"),
                    self._tag_matches(pattern),
                )
            )

        column = _SORT_COLUMNS[sort_field]
        order = column.desc() if descending else column.asc()
        tiebreak = Link.id.desc() if descending else Link.id.asc()

        async with self._storage_call():
            total = await self._db.scalar(select(func.count(Link.id)).where(*conditions))
            result = await self._db.execute(
                select(Link).where(*conditions).order_by(order, tiebreak).offset(offset).limit(limit)
            )
            return result.scalars().all(), int(total or 0)

    async def summarize_owner(self, owner_id: str) -> tuple[int, int]:
        async with self._storage_call():
            result = await self._db.execute(
                select(func.count(Link.id), func.coalesce(func.sum(Link.clicks), 0)).where(
                    Link.owner_id == owner_id
                )
            )
            total_urls, total_clicks = result.one()
            return int(total_urls), int(total_clicks)

    async def recent_by_owner(self, owner_id: str, limit: int) -> Sequence[Link]:
        async with self._storage_call():
            result = await self._db.execute(
                select(Link)
                .where(Link.owner_id == owner_id)
                .order_by(Link.created_at.desc(), Link.id.desc())
                .limit(limit)
            )
            return result.scalars().all()

    async def top_by_owner(self, owner_id: str, limit: int) -> Sequence[Link]:
        async with self._storage_call():
            result = await self._db.execute(
                select(Link)
                .where(Link.owner_id == owner_id)
                .order_by(Link.clicks.desc(), Link.id.asc())
                .limit(limit)
            )
            return result.scalars().all()

    async def ping(self) -> None:
        async with self._storage_call():
            await self._db.execute(select(1))

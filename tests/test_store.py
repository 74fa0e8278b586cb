"""Link store tests against a real SQLite database."""

import asyncio
import datetime

import pytest
from sqlalchemy import select

from urltrimmer.enums import LinkSortField
from urltrimmer.errors import ConflictError
from urltrimmer.models import Link, as_utc, utcnow
from urltrimmer.store import LinkStore, parse_sort

OWNER = "owner-1"


@pytest.mark.asyncio
async def test_insert_assigns_id_and_defaults(store: LinkStore) -> None:
    link = await store.insert(Link.new(owner_id=OWNER, original_url="https://example.com/a", short_code="abc"))

    assert link.id is not None
    assert link.clicks == 0
    assert link.is_active is True
    assert link.tags == []
    assert as_utc(link.created_at) <= utcnow()


@pytest.mark.asyncio
async def test_find_by_code_and_id(store: LinkStore, make_link) -> None:
    link = await make_link("abc")

    assert (await store.find_by_code("abc")).id == link.id
    assert (await store.find_by_id(link.id)).short_code == "abc"
    assert await store.find_by_code("zzz") is None
    assert await store.find_by_id(9999) is None


@pytest.mark.asyncio
async def test_duplicate_short_code_raises_conflict(store: LinkStore, make_link) -> None:
    await make_link("abc", original_url="https://example.com/a")

    with pytest.raises(ConflictError) as exc_info:
        await make_link("abc", original_url="https://example.com/b", owner_id="someone-else")

    assert exc_info.value.constraint == "uq_links_short_code"
    # session stays usable after the rollback
    assert await store.code_exists("abc")


@pytest.mark.asyncio
async def test_duplicate_owner_url_raises_conflict(store: LinkStore, make_link) -> None:
    await make_link("abc", original_url="https://example.com/a")

    with pytest.raises(ConflictError) as exc_info:
        await make_link("xyz", original_url="https://example.com/a")

    assert exc_info.value.constraint == "uq_links_owner_url"


@pytest.mark.asyncio
async def test_same_url_allowed_for_different_owners(store: LinkStore, make_link) -> None:
    await make_link("abc", original_url="https://example.com/a")
    other = await make_link("xyz", original_url="https://example.com/a", owner_id="owner-2")

    assert other.id is not None
    assert (await store.find_by_owner_and_url("owner-2", "https://example.com/a")).short_code == "xyz"
    assert (await store.find_by_owner_and_url(OWNER, "https://example.com/a")).short_code == "abc"
    assert await store.find_by_owner_and_url(OWNER, "https://example.com/other") is None


@pytest.mark.asyncio
async def test_increment_clicks(store: LinkStore, make_link, session_factory) -> None:
    await make_link("abc")

    assert await store.increment_clicks("abc") == 1
    assert await store.increment_clicks("abc") == 1
    assert await store.increment_clicks("nope") == 0

    async with session_factory() as session:
        clicks = await session.scalar(select(Link.clicks).where(Link.short_code == "abc"))
    assert clicks == 2


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(make_link, session_factory) -> None:
    await make_link("abc")

    async def click() -> None:
        async with session_factory() as session:
            await LinkStore(session).increment_clicks("abc")

    await asyncio.gather(*(click() for _ in range(25)))

    async with session_factory() as session:
        clicks = await session.scalar(select(Link.clicks).where(Link.short_code == "abc"))
    assert clicks == 25


@pytest.mark.asyncio
async def test_update_only_mutable_fields(store: LinkStore, make_link) -> None:
    link = await make_link("abc", title="old")

    updated = await store.update(link, {"title": "new", "tags": ["a"], "is_active": False})
    assert updated.title == "new"
    assert updated.tags == ["a"]
    assert updated.is_active is False

    with pytest.raises(AssertionError):
        await store.update(link, {"short_code": "zzz"})


@pytest.mark.asyncio
async def test_delete_removes_record(store: LinkStore, make_link) -> None:
    link = await make_link("abc")

    await store.delete(link)

    assert await store.find_by_code("abc") is None
    # the code stays issued after its link is gone
    assert await store.code_exists("abc")


@pytest.mark.asyncio
async def test_deleted_code_cannot_be_inserted_again(store: LinkStore, make_link) -> None:
    link = await make_link("abc", original_url="https://example.com/a")
    await store.delete(link)

    with pytest.raises(ConflictError) as exc_info:
        await make_link("abc", original_url="https://example.com/b", owner_id="someone-else")

    assert exc_info.value.constraint == "uq_links_short_code"
    assert await store.find_by_code("abc") is None


@pytest.mark.asyncio
async def test_increment_skips_inactive_and_expired(store: LinkStore, make_link, session_factory) -> None:
    inactive = await make_link("a01", original_url="https://a.example")
    await store.update(inactive, {"is_active": False})
    await make_link("a02", original_url="https://b.example", expires_at=utcnow() - datetime.timedelta(seconds=1))
    await make_link("a03", original_url="https://c.example", expires_at=utcnow() + datetime.timedelta(hours=1))

    assert await store.increment_clicks("a01") == 0
    assert await store.increment_clicks("a02") == 0
    assert await store.increment_clicks("a03") == 1

    async with session_factory() as session:
        rows = await session.execute(select(Link.short_code, Link.clicks).order_by(Link.short_code))
    assert rows.all() == [("a01", 0), ("a02", 0), ("a03", 1)]


@pytest.mark.asyncio
async def test_list_by_owner_search_and_sort(store: LinkStore, make_link) -> None:
    await make_link("a01", original_url="https://python.org", title="Python home")
    await make_link("a02", original_url="https://rust-lang.org", tags=["systems"])
    await make_link("a03", original_url="https://example.com", description="about PYTHON")
    await make_link("a04", original_url="https://python.org", owner_id="owner-2")

    links, total = await store.list_by_owner(OWNER, search="python")
    assert total == 2
    assert {link.short_code for link in links} == {"a01", "a03"}

    links, total = await store.list_by_owner(OWNER, search="SYSTEMS")
    assert [link.short_code for link in links] == ["a02"]

    links, total = await store.list_by_owner(OWNER, sort="originalUrl")
    assert total == 3
    assert [link.short_code for link in links] == ["a03", "a01", "a02"]

    links, total = await store.list_by_owner(OWNER, offset=1, limit=1, sort="originalUrl")
    assert total == 3
    assert [link.short_code for link in links] == ["a01"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(store: LinkStore, make_link) -> None:
    await make_link("a01", original_url="https://example.com/100%25", title="100% real")
    await make_link("a02", original_url="https://example.com/other", title="1000 things")

    links, total = await store.list_by_owner(OWNER, search="100%")
    assert total == 1
    assert links[0].short_code == "a01"


@pytest.mark.asyncio
async def test_search_matches_tags_element_by_element(store: LinkStore, make_link) -> None:
    await make_link("a01", original_url="https://example.com/cafe", tags=["café", "paris"])
    await make_link("a02", original_url="https://example.com/two", tags=["alpha"])

    links, total = await store.list_by_owner(OWNER, search="café")
    assert total == 1
    assert links[0].short_code == "a01"

    links, total = await store.list_by_owner(OWNER, search="lph")
    assert [link.short_code for link in links] == ["a02"]

    # JSON punctuation is not part of any tag
    for term in ('"', ",", "[", "]"):
        _, total = await store.list_by_owner(OWNER, search=term)
        assert total == 0, term


@pytest.mark.asyncio
async def test_owner_summary_queries(store: LinkStore, make_link) -> None:
    assert await store.summarize_owner(OWNER) == (0, 0)

    first = await make_link("a01", original_url="https://a.example")
    await make_link("a02", original_url="https://b.example")
    for _ in range(3):
        await store.increment_clicks("a01")

    assert await store.summarize_owner(OWNER) == (2, 3)
    top = await store.top_by_owner(OWNER, 5)
    assert top[0].id == first.id
    recent = await store.recent_by_owner(OWNER, 1)
    assert [link.short_code for link in recent] == ["a02"]


def test_parse_sort() -> None:
    assert parse_sort(None) == (LinkSortField.CREATED_AT, True)
    assert parse_sort("-clicks") == (LinkSortField.CLICKS, True)
    assert parse_sort("title") == (LinkSortField.TITLE, False)
    with pytest.raises(ValueError):
        parse_sort("-owner")


def test_link_expiry() -> None:
    now = utcnow()
    link = Link.new(owner_id=OWNER, original_url="https://example.com", short_code="abc")
    assert link.is_resolvable(now)

    link.expires_at = now - datetime.timedelta(seconds=1)
    assert link.is_expired(now)
    assert not link.is_resolvable(now)

    link.expires_at = (now + datetime.timedelta(days=1)).replace(tzinfo=None)
    assert not link.is_expired(now)

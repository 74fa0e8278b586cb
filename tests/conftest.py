"""Shared pytest fixtures for store, service and API tests.

Every test gets its own SQLite file so concurrent sessions behave like
separate connections to one database.
"""

import os
import tempfile

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{tempfile.gettempdir()}/urltrimmer-test.db")
os.environ.setdefault("LINK_CACHE_ENABLED", "false")
os.environ.setdefault("BASE_URL", "http://sho.rt")

from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from urltrimmer.config import Settings, get_settings
from urltrimmer.database import Base, build_engine, get_db
from urltrimmer.links import LinkManagementService
from urltrimmer.main import app
from urltrimmer.models import Link
from urltrimmer.redis import get_redis
from urltrimmer.resolution import ResolutionService
from urltrimmer.store import LinkStore

OWNER = "owner-1"
OTHER_OWNER = "owner-2"


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'links.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> LinkStore:
    return LinkStore(db_session)


@pytest.fixture
def link_service(store: LinkStore, settings: Settings) -> LinkManagementService:
    return LinkManagementService(store, settings)


@pytest.fixture
def resolution_service(store: LinkStore, settings: Settings) -> ResolutionService:
    return ResolutionService(store, settings)


@pytest.fixture
def make_link(store: LinkStore) -> Callable:
    """Insert a link directly through the store, bypassing code acquisition."""

    async def _make_link(
        short_code: str,
        original_url: str = "https://example.com",
        owner_id: str = OWNER,
        **fields,
    ) -> Link:
        return await store.insert(
            Link.new(owner_id=owner_id, original_url=original_url, short_code=short_code, **fields)
        )

    return _make_link


@pytest_asyncio.fixture(scope="function")
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def override_get_redis() -> None:
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

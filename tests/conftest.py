"""
Test infrastructure for the ReadStack API.

Strategy
--------
- SQLite in-memory via aiosqlite with StaticPool, so every session in a test
  sees the same database; tables are created before and dropped after each
  test.
- The lifespan does not run under ASGITransport, so every resource the
  routes need is supplied through ``app.dependency_overrides``: the test
  session factory, a disconnected CacheManager (all reads miss), and
  recording fakes for the mailer and the image host.
- bcrypt runs at its minimum cost factor to keep the suite fast.
"""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_ENV", "test")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from helpers import FakeAssetHost, FakeMailer  # noqa: E402
from readstack.assets import get_asset_host  # noqa: E402
from readstack.cache import CacheManager, get_cache  # noqa: E402
from readstack.database import Base, Database, commit, get_db, rollback  # noqa: E402
from readstack.mailer import get_mailer  # noqa: E402
from readstack.main import app  # noqa: E402

# ---------------------------------------------------------------------------
# Test database: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_db = Database(
    TEST_DATABASE_URL,
    engine=create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ),
)


async def override_get_db():
    async with test_db.session_factory() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with test_db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for seeding data and calling services directly."""
    async with test_db.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def mailer() -> FakeMailer:
    return FakeMailer()


@pytest_asyncio.fixture
async def asset_host() -> FakeAssetHost:
    return FakeAssetHost()


@pytest_asyncio.fixture
async def cache() -> CacheManager:
    # No URL: never connects, so every read misses and writes are no-ops.
    return CacheManager()


@pytest_asyncio.fixture
async def async_client(mailer, asset_host, cache) -> AsyncClient:
    """httpx.AsyncClient wired to the app with every outbound collaborator faked."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_asset_host] = lambda: asset_host
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()

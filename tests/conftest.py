"""
Test infrastructure for the Blog CMS API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- Foreign keys are switched on for the test connection exactly as for
  SQLite in production, so cascade and restrict rules are exercised.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- The Redis cache is disabled by setting cache._redis = None; the CacheManager
  treats that as a permanent miss, so tests exercise the real query path.
  Cache tests opt in to an in-process fakeredis server via ``fake_cache``.
- A known admin key is installed on the settings object so tests can send
  it in the X-API-Key header.
"""
import fakeredis
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blogcms.cache import STALE_FLAG, cache
from blogcms.config import settings
from blogcms.database import Base, commit, get_db, install_sqlite_pragmas
from blogcms.main import app
from blogcms.middleware import install_query_counter

ADMIN_KEY = "test-admin-key"
settings.ADMIN_API_KEY = ADMIN_KEY

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_sqlite_pragmas(engine_test)
# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await session.rollback()
            session.info.pop(STALE_FLAG, None)
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call service functions
    directly (seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport,
    with the Redis cache disabled.
    """
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def test_engine():
    """The shared in-memory engine, for tests that inspect the schema directly."""
    return engine_test


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": ADMIN_KEY}


@pytest_asyncio.fixture
async def fake_cache(async_client):
    """Back the listing cache with an in-process fakeredis server."""
    cache._redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    cache._hits = cache._misses = 0
    yield cache
    await cache._redis.aclose()
    cache._redis = None

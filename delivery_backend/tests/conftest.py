"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from delivery_backend.app.main import app
from delivery_backend.app.db.session import get_db, Base
from delivery_backend.app.core.jwt import create_access_token
from delivery_backend.app.models.enums import UserRole
import delivery_backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        if ex:
            self.ttls[key] = ex
        return True

    async def setex(self, key, ttl, value):
        return await self.set(key, value, ex=ttl)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.ttls = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by token revocation and /health
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
def session_factory():
    """Open extra sessions, e.g. to play a concurrent writer."""
    return TestingSessionLocal


# ---------------------------------------------------------------------------
# Deterministic providers
# ---------------------------------------------------------------------------

class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


class SequentialIds:
    def __init__(self):
        self.counter = 0

    def order_id(self) -> str:
        self.counter += 1
        return f"ord_{self.counter:032x}"

    def tracking_code(self) -> str:
        return f"PKG{self.counter:08d}"


# Monday 2024-01-15 10:00 local time (UTC+3)
WEEKDAY_MORNING = datetime(2024, 1, 15, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
def frozen_clock():
    return FrozenClock(WEEKDAY_MORNING)


@pytest.fixture
def sequential_ids():
    return SequentialIds()


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

def make_token(user_id: str, role: UserRole, sub: str = None) -> str:
    return create_access_token({"sub": sub or f"{user_id}@test.com", "user_id": user_id, "role": role.value})


@pytest.fixture
def client_headers():
    return {"Authorization": f"Bearer {make_token('cust_1', UserRole.CLIENT)}"}


@pytest.fixture
def other_client_headers():
    return {"Authorization": f"Bearer {make_token('cust_2', UserRole.CLIENT)}"}


@pytest.fixture
def driver_headers():
    return {"Authorization": f"Bearer {make_token('drv_1', UserRole.DRIVER)}"}


@pytest.fixture
def other_driver_headers():
    return {"Authorization": f"Bearer {make_token('drv_2', UserRole.DRIVER)}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('adm_1', UserRole.ADMIN)}"}

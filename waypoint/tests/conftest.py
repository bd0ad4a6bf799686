"""
Centralized Test Configuration.
"""

from datetime import datetime
from types import SimpleNamespace

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from waypoint.app.main import app
from waypoint.app.db.session import get_db, Base
from waypoint.app.core.redis_client import get_redis
from waypoint.app.core.reliability import CircuitBreaker
from waypoint.app.core.dependencies import DeviceIdentity
from waypoint.app.services.routing_engine import RoutingEngineClient, get_routing_engine
from waypoint.app.services.sessions import create_session, join_session
import waypoint.app.core.redis_client as redis_client_module

# In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

OSRM_OK = {
    "code": "Ok",
    "routes": [
        {
            "geometry": {"type": "LineString", "coordinates": [[77.6, 12.9], [77.61, 12.91]]},
            "distance": 1834.2,
            "duration": 312.5,
        }
    ],
}


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("Redis unavailable")

    async def ping(self):
        if self._closed:
            return False
        return True

    async def set(self, key, value, ex=None, nx=False):
        self._check()
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def delete(self, key):
        self._check()
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeOSRM:
    """httpx.MockTransport handler recording every request."""

    def __init__(self):
        self.requests = []
        self.responses = []  # queued httpx.Response or Exception; last one repeats

    def queue(self, *responses):
        self.responses.extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json=OSRM_OK)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return test_engine


@pytest.fixture
async def database(engine):
    """Create tables for one test; drop them and close the connection after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def osrm():
    return FakeOSRM()


@pytest.fixture
def routing_engine(osrm):
    return RoutingEngineClient(
        base_url="http://osrm.test",
        timeout=1.0,
        max_retries=2,
        backoff_seconds=0,
        circuit_breaker=CircuitBreaker("test-routing", failure_threshold=5, reset_timeout=30),
        transport=httpx.MockTransport(osrm),
    )


@pytest.fixture(autouse=True)
def apply_overrides(session_factory, mock_redis, routing_engine):
    """Point the app at the per-test database, Redis mock and fake OSRM."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_routing_engine] = lambda: routing_engine
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture
async def client(database):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(database, session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def alice():
    return DeviceIdentity(device_id="device-alice")


@pytest.fixture
def bob():
    return DeviceIdentity(device_id="device-bob")


@pytest.fixture
def carol():
    return DeviceIdentity(device_id="device-carol")


@pytest.fixture
def t0():
    """Fixed clock origin for service-level tests."""
    return datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
async def group(db_session, alice, bob, t0):
    """Active session created by Alice at t0, Bob joined."""
    session, alice_participant = await create_session(db_session, alice, "Alice", now=t0)
    _, bob_participant, _ = await join_session(db_session, session.code, bob, "Bob", now=t0)
    await db_session.commit()
    return SimpleNamespace(session=session, alice=alice_participant, bob=bob_participant)

"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
import backend.app.core.redis_client as redis_client_module
from backend.app.domain.rides.records import Actor
from backend.app.domain.rides.ride_service import RideService
from backend.app.domain.rides.store import InMemoryRideStore
from backend.app.models.enums import UserRole

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Monday 2 June 2025, 08:00 UTC
FIXED_NOW = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
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

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def flushdb(self):
        self.store = {}


@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""

    # Patch the global redis client used by token revocation
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
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


async def register_user(client, phone_number, name, pin="1234", role=None, **extra) -> dict:
    """Register through the API and return auth headers plus the token body."""
    payload = {"phone_number": phone_number, "name": name, "pin": pin, **extra}
    if role is not None:
        payload["role"] = role.value
    response = await client.post("/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text
    body = response.json()
    return {"headers": {"Authorization": f"Bearer {body['access_token']}"}, **body}


@pytest.fixture
async def passenger_auth(client):
    return await register_user(client, "1234567890", "Test Passenger", "1234", UserRole.PASSENGER)


@pytest.fixture
async def second_passenger_auth(client):
    return await register_user(client, "1112223334", "Second Passenger", "5555", UserRole.PASSENGER)


@pytest.fixture
async def driver_auth(client):
    return await register_user(client, "0987654321", "Test Driver", "4321", UserRole.DRIVER)


@pytest.fixture
async def second_driver_auth(client):
    return await register_user(client, "0987650000", "Other Driver", "9999", UserRole.DRIVER)


@pytest.fixture
def make_user(client):
    async def _make(phone_number, name, pin="1234", role=None, **extra):
        return await register_user(client, phone_number, name, pin, role, **extra)
    return _make


# --- Ride engine fixtures (no HTTP, no database) ---

class DictUserDirectory:
    """User directory over a plain dict of actors."""

    def __init__(self, *actors: Actor):
        self.actors = {actor.id: actor for actor in actors}

    async def get_actor(self, user_id):
        return self.actors.get(user_id)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)


@pytest.fixture
def passenger():
    return Actor(id="1234567890", name="Test Passenger", phone_number="1234567890", role=UserRole.PASSENGER)


@pytest.fixture
def other_passenger():
    return Actor(id="1112223334", name="Second Passenger", phone_number="1112223334", role=UserRole.PASSENGER)


@pytest.fixture
def driver():
    return Actor(id="0987654321", name="Test Driver", phone_number="0987654321", role=UserRole.DRIVER)


@pytest.fixture
def other_driver():
    return Actor(id="0987650000", name="Other Driver", phone_number="0987650000", role=UserRole.DRIVER)


@pytest.fixture
def ride_store():
    return InMemoryRideStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


class Clock:
    """Settable clock for the ride engine."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(FIXED_NOW)


@pytest.fixture
def ride_service(ride_store, notifier, clock, passenger, other_passenger, driver, other_driver):
    users = DictUserDirectory(passenger, other_passenger, driver, other_driver)
    return RideService(ride_store, users, notifier=notifier, clock=clock)

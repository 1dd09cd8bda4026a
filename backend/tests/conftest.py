"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.config import settings
from backend.app.core.redis_client import set_redis_client
from backend.app.core.security import get_password_hash
from backend.app.models.user import User
from backend.app.models.enums import UserRole
import backend.app.services.audit as audit_service

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

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

API = settings.api_prefix


# In-memory stand-in for redis.asyncio.Redis
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, seconds, value):
        return await self.set(key, value, ex=seconds)

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

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def redis_mock():
    client = MockRedis()
    set_redis_client(client)
    yield client
    set_redis_client(None)


@pytest.fixture(autouse=True)
def apply_overrides(monkeypatch, tmp_path, redis_mock):
    """Route the app to the test database, the mock Redis and a temp upload dir."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(audit_service, "AsyncSessionLocal", TestingSessionLocal)
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

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


async def create_user(db_session, email, password, role, name=None, is_active=True) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        name=name or email.split("@")[0].title(),
        role=role,
        is_active=is_active,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


async def login(client, email, password) -> dict:
    response = await client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_user(db_session):
    return await create_user(db_session, "admin@portal.com", "admin123", UserRole.ADMIN, name="Admin")


@pytest.fixture
async def ops_user(db_session):
    return await create_user(db_session, "ops@portal.com", "ops123", UserRole.OPERATIONS, name="Ops Officer")


@pytest.fixture
async def sales_user(db_session):
    return await create_user(db_session, "sales@portal.com", "sales123", UserRole.SALES_AGENT, name="Sales Agent")


@pytest.fixture
async def other_sales_user(db_session):
    return await create_user(db_session, "sales2@portal.com", "sales123", UserRole.SALES_AGENT, name="Second Agent")


@pytest.fixture
async def admin_token(client, admin_user):
    return (await login(client, "admin@portal.com", "admin123"))["access_token"]


@pytest.fixture
async def ops_token(client, ops_user):
    return (await login(client, "ops@portal.com", "ops123"))["access_token"]


@pytest.fixture
async def sales_token(client, sales_user):
    return (await login(client, "sales@portal.com", "sales123"))["access_token"]


@pytest.fixture
async def other_sales_token(client, other_sales_user):
    return (await login(client, "sales2@portal.com", "sales123"))["access_token"]


DRIVER_PAYLOAD = {
    "name": "Abebe Kebede",
    "phone": "251911223344",
    "email": "Abebe@Portal.com",
    "plate_number": "aa-12345",
    "code": "3",
}


@pytest.fixture
async def driver(client, sales_token):
    """A driver registered by the default sales agent."""
    response = await client.post(f"{API}/drivers", json=DRIVER_PAYLOAD, headers=auth_header(sales_token))
    assert response.status_code == 201, response.text
    return response.json()["data"]

"""
Pytest fixtures for all tests.

Provides:
- In-memory SQLite database per test
- A controllable clock shared by every engine
- Engines and an HTTP client wired to both
"""

import os

# Fast hashing and a throwaway database before anything reads settings
os.environ.setdefault("ADMIN_PASSWORD_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from koban.config import Settings, settings
from koban.core.database import Base, get_db
from koban.core.rate_limit import LoginRateLimiter, MemoryAttemptStore
from koban.features.admin.service import AdminAuthService, get_admin_auth_service
from koban.features.admin.user_service import AdminUserService, get_admin_user_service
from koban.features.keys.service import KeyService, get_key_service
from koban.features.stats.service import StatsService, get_stats_service
from koban.main import create_application
import koban.models  # noqa: F401  (registers all tables on Base.metadata)
from tests.factories import ROOT_PASSWORD, ROOT_USERNAME

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Naive UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def trusted_proxy(monkeypatch):
    """Read client addresses from proxy headers, as behind a load balancer."""
    monkeypatch.setattr(settings, "trust_proxy_headers", True)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with bootstrap credentials and a small login limit."""
    return Settings(
        _env_file=None,
        admin_username=ROOT_USERNAME,
        admin_password=ROOT_PASSWORD,
        admin_login_max_attempts=3,
        admin_login_window_minutes=15,
    )


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database; StaticPool keeps it on one connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def key_service(clock, test_settings) -> KeyService:
    return KeyService(clock=clock, config=test_settings)


@pytest.fixture
def rate_limiter(clock, test_settings) -> LoginRateLimiter:
    return LoginRateLimiter(
        store=MemoryAttemptStore(clock=clock),
        max_attempts=test_settings.admin_login_max_attempts,
        window_seconds=test_settings.admin_login_window_minutes * 60,
    )


@pytest.fixture
def auth_service(clock, test_settings, rate_limiter) -> AdminAuthService:
    return AdminAuthService(rate_limiter=rate_limiter, clock=clock, config=test_settings)


@pytest.fixture
def admin_user_service(clock) -> AdminUserService:
    return AdminUserService(clock=clock)


@pytest.fixture
def stats_service(clock, test_settings) -> StatsService:
    return StatsService(clock=clock, config=test_settings)


@pytest.fixture
def app(session_factory, key_service, auth_service, admin_user_service, stats_service):
    """
    FastAPI application with the database and engines overridden.
    """
    application = create_application()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_key_service] = lambda: key_service
    application.dependency_overrides[get_admin_auth_service] = lambda: auth_service
    application.dependency_overrides[get_admin_user_service] = lambda: admin_user_service
    application.dependency_overrides[get_stats_service] = lambda: stats_service

    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/keys/user/alice")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_token(client) -> str:
    """Session token for the bootstrap root admin."""
    response = await client.post(
        "/admin/auth/login",
        json={"username": ROOT_USERNAME, "password": ROOT_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return response.json()["session_token"]


@pytest.fixture
def admin_headers(admin_token) -> dict[str, str]:
    return {"X-Admin-Session": admin_token}

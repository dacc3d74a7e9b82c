"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- A real SQLite database per test (file-backed, so separate sessions
  really run concurrently)
- Seeders for activation codes and restaurants
- Services wired with a fast Argon2 hasher and a controllable clock
- API client with dependency overrides
"""

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from argon2 import PasswordHasher
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

# Set required environment variables BEFORE importing licensegate modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./licensegate-test.db")
os.environ.setdefault("DEVICE_JWT_SECRET", "test-device-secret-for-jwt-signing-min-32")
os.environ.setdefault("LOG_FORMAT", "console")

from licensegate.db.models import ActivationCode, Base, Restaurant
from licensegate.models.api import CodeStatus, DeviceRole, RestaurantStatus
from licensegate.services.device_tokens import DeviceTokenService
from licensegate.services.lockout import LockoutGuard, lockout_guard
from licensegate.services.pin_auth import PinAuthService, PinHasher

TEST_JWT_SECRET = os.environ["DEVICE_JWT_SECRET"]

ADMIN_PIN = "123456"
KITCHEN_PIN = "4321"


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Controllable UTC clock for lockout tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with the full schema."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'licensegate.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def pin_hasher() -> PinHasher:
    """Argon2id with minimal cost parameters; hashes still verify normally."""
    return PinHasher(PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


@pytest.fixture
def token_service() -> DeviceTokenService:
    return DeviceTokenService(secret=TEST_JWT_SECRET, ttl=timedelta(days=30))


@pytest.fixture
def lockout(clock: FakeClock) -> LockoutGuard:
    return LockoutGuard(clock=clock)


@pytest.fixture(autouse=True)
def reset_global_lockout() -> None:
    """The process-wide guard must not leak failures between tests."""
    lockout_guard.reset()


@pytest.fixture
def pin_auth(
    db_session: AsyncSession,
    pin_hasher: PinHasher,
    token_service: DeviceTokenService,
    lockout: LockoutGuard,
) -> PinAuthService:
    return PinAuthService(db_session, hasher=pin_hasher, tokens=token_service, lockout=lockout)


# ============================================================================
# Seeders
# ============================================================================


@pytest.fixture
def add_code(session_factory: async_sessionmaker[AsyncSession]):
    """Insert an activation code row and return it."""

    async def _add(code: str = "X1-VALID", **fields: Any) -> ActivationCode:
        values: dict[str, Any] = {
            "code": code,
            "status": CodeStatus.ACTIVE.value,
            "is_used": False,
        }
        values.update(fields)
        async with session_factory() as session:
            row = ActivationCode(**values)
            session.add(row)
            await session.commit()
            return row

    return _add


@pytest.fixture
def add_restaurant(session_factory: async_sessionmaker[AsyncSession], pin_hasher: PinHasher):
    """Insert a restaurant, optionally with PINs already configured."""

    async def _add(
        admin_pin: str | None = ADMIN_PIN,
        kitchen_pin: str | None = KITCHEN_PIN,
        status: RestaurantStatus = RestaurantStatus.ACTIVE,
        name: str = "Test Bistro",
        created_at: datetime | None = None,
    ) -> Restaurant:
        async with session_factory() as session:
            restaurant = Restaurant(
                name=name,
                status=status.value,
                admin_pin_hash=pin_hasher.hash(admin_pin) if admin_pin else None,
                kitchen_pin_hash=pin_hasher.hash(kitchen_pin) if kitchen_pin else None,
            )
            if created_at is not None:
                restaurant.created_at = created_at
            session.add(restaurant)
            await session.commit()
            return restaurant

    return _add


@pytest.fixture
def fetch_restaurant(session_factory: async_sessionmaker[AsyncSession]):
    """Read a restaurant row back through a fresh session."""

    async def _fetch(restaurant_id: Any) -> Restaurant | None:
        async with session_factory() as session:
            result = await session.execute(select(Restaurant).where(Restaurant.id == restaurant_id))
            return result.scalar_one_or_none()

    return _fetch


@pytest.fixture
def issue_token(token_service: DeviceTokenService):
    """Sign a device token directly, bypassing login."""
    from licensegate.models.domain import DeviceClaims

    def _issue(restaurant_id: Any, role: DeviceRole = DeviceRole.ADMIN, device_id: str = "tablet-1") -> str:
        return token_service.issue(
            DeviceClaims(device_id=device_id, role=role, restaurant_id=restaurant_id)
        )

    return _issue


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture
def app(
    session_factory: async_sessionmaker[AsyncSession],
    pin_hasher: PinHasher,
    token_service: DeviceTokenService,
    lockout: LockoutGuard,
):
    """FastAPI app bound to the test database and test services."""
    from licensegate.db.session import get_db
    from licensegate.main import app as fastapi_app
    from licensegate.services.device_tokens import get_token_service
    from licensegate.services.lockout import get_lockout_guard
    from licensegate.services.pin_auth import get_pin_hasher

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_pin_hasher] = lambda: pin_hasher
    fastapi_app.dependency_overrides[get_token_service] = lambda: token_service
    fastapi_app.dependency_overrides[get_lockout_guard] = lambda: lockout

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are created directly
on SQLite; Redis, Stripe, SMTP and the background worker are mocked.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ridebooking.config import settings
from ridebooking.domain.enums import UserRole
from ridebooking.infrastructure import models  # noqa: F401  (registers tables)
from ridebooking.infrastructure.database import Base
from ridebooking.infrastructure.models import DriverModel, UserModel
from ridebooking.infrastructure.security import create_access_token, hash_password

# Hashing at production cost makes the suite crawl
settings.bcrypt_rounds = 4


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


def pickup_day(days_ahead: int = 2) -> str:
    return (date.today() + timedelta(days=days_ahead)).isoformat()


def booking_payload(**overrides) -> dict:
    body = {
        "name": "Jane Rider",
        "email": "jane@example.com",
        "phone": "+1 (555) 010-2030",
        "pickup_address": "1 Airport Rd",
        "dropoff_address": "99 Main St",
        "pickup_date": pickup_day(),
        "pickup_time": "10:30",
        "distance_meters": 16_093.4,  # 10 miles
        "duration_seconds": 1_500,
    }
    body.update(overrides)
    return body


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def session_factory():
    return TestSessionFactory


@pytest.fixture
def make_booking():
    return booking_payload


@pytest_asyncio.fixture
async def tables():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(tables) -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with TestSessionFactory() as session:
        yield session


@pytest.fixture
def fake_redis():
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)
    return redis


@pytest_asyncio.fixture
async def client(tables, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient backed by SQLite, with the worker and Redis mocked out."""
    from ridebooking.api.app import create_app
    from ridebooking.api.dependencies import get_db, get_redis_client
    from ridebooking.api.middleware import limiter

    async def _test_db():
        async with TestSessionFactory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _test_redis():
        return fake_redis

    limiter.reset()
    with (
        patch(
            "ridebooking.workers.notifier.start_notification_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "ridebooking.workers.notifier.stop_notification_loop",
            new_callable=AsyncMock,
        ),
    ):
        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_redis_client] = _test_redis

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


async def _make_user(role: UserRole, email: str, password: str = "secret123") -> UserModel:
    async with TestSessionFactory() as session:
        user = UserModel(
            name=f"{role.value.title()} User",
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
        session.add(user)
        await session.commit()
        return user


@pytest_asyncio.fixture
async def super_admin(tables) -> UserModel:
    return await _make_user(UserRole.SUPER_ADMIN, "root@example.com")


@pytest_asyncio.fixture
async def admin_headers(super_admin) -> dict:
    return {"Authorization": f"Bearer {create_access_token(super_admin)}"}


@pytest_asyncio.fixture
async def plain_admin_headers(tables) -> dict:
    user = await _make_user(UserRole.ADMIN, "staff@example.com")
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest_asyncio.fixture
async def driver(tables) -> DriverModel:
    async with TestSessionFactory() as session:
        driver = DriverModel(
            name="Ram Thapa",
            email="ram@example.com",
            phone="+9779800000001",
            vehicle_model="Toyota Corolla",
            vehicle_plate="BA 1 PA 1234",
        )
        session.add(driver)
        await session.commit()
        return driver

"""
Concurrency safety tests.

Demonstrates:
1. Idempotency keys prevent double-booking on network retries.
2. Distributed lock prevents simultaneous acquire.
3. The notification cycle and settings initialisation back off while the
   lock is held elsewhere.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from ridebooking.infrastructure.locks import DistributedLock, LockNotAcquired
from ridebooking.infrastructure.models import BookingModel
from ridebooking.workers.notifier import run_notification_cycle


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "ridebooking:lock:test-key", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_calls_eval_with_own_token(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        await lock.acquire()
        assert await lock.release() is True

        args = mock_redis.eval.await_args.args
        assert args[1:] == (1, "ridebooking:lock:test-key", lock.token)

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        with pytest.raises(LockNotAcquired, match="Could not acquire lock"):
            async with lock:
                pass

    def test_tokens_are_unique(self):
        redis = AsyncMock()
        assert DistributedLock(redis, "a").token != DistributedLock(redis, "a").token


class TestLockedWork:
    @pytest.mark.asyncio
    async def test_notifier_skips_when_locked(self, session_factory, tables):
        busy = AsyncMock()
        busy.set = AsyncMock(return_value=False)

        sent = await run_notification_cycle(session_factory, busy)

        assert sent == 0
        busy.eval.assert_not_called()

    @pytest.mark.asyncio
    async def test_initialize_settings_conflict(self, client, admin_headers, fake_redis):
        fake_redis.set.return_value = False
        resp = await client.post(
            "/api/v1/admin/settings/initialize", headers=admin_headers
        )
        assert resp.status_code == 409


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_retry_returns_existing_booking(
        self, client, session_factory, make_booking
    ):
        body = make_booking(idempotency_key="retry-123")

        first = await client.post("/api/v1/bookings", json=body)
        second = await client.post("/api/v1/bookings", json=body)

        assert first.status_code == 201
        assert second.status_code == 200
        assert (
            first.json()["booking"]["booking_number"]
            == second.json()["booking"]["booking_number"]
        )
        assert second.json()["message"] == "Booking already exists"

        async with session_factory() as session:
            count = await session.scalar(
                select(func.count()).select_from(BookingModel)
            )
        assert count == 1

"""
Concurrency safety tests.

Demonstrates:
1. Two drivers accepting the same ride at once: exactly one wins.
2. Duplicate payment callbacks converge on one terminal state.
3. Distributed lock prevents simultaneous acquire.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from ridehail.domain.enums import PaymentStatus, RideStatus
from ridehail.domain.exceptions import AlreadyTakenError, ConflictError
from ridehail.domain.pricing import FareCalculator
from ridehail.infrastructure.locks import DistributedLock, LockNotAcquired
from ridehail.services.payments import PaymentService
from ridehail.services.rides import RideService
from tests.factories import DROP, PICKUP, add_driver, add_rider, sign_payment


async def _pending_ride(session_factory, events) -> int:
    async with session_factory() as session:
        await add_rider(session)
        await add_driver(session, "d1")
        await add_driver(session, "d2")
        ride = await RideService(session, events, FareCalculator()).request(
            "user_1", *PICKUP, *DROP
        )
        return ride.id


class TestAcceptRace:
    @pytest.mark.asyncio
    async def test_exactly_one_driver_wins(self, session_factory, events):
        ride_id = await _pending_ride(session_factory, events)

        async def accept(driver_id: str):
            async with session_factory() as session:
                service = RideService(session, events, FareCalculator())
                return await service.accept(ride_id, driver_id)

        results = await asyncio.gather(
            accept("d1"), accept("d2"), return_exceptions=True
        )

        winners = [r for r in results if not isinstance(r, BaseException)]
        losers = [r for r in results if isinstance(r, BaseException)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], AlreadyTakenError)
        assert str(losers[0]) == "already-taken"

        async with session_factory() as session:
            ride = await RideService(session, events, FareCalculator()).get(ride_id)
        assert ride.status == RideStatus.ACCEPTED
        assert ride.driver_external_id == winners[0].driver_external_id
        assert events.rooms("ride_accepted") == ["user:user_1"]


class TestCallbackRace:
    @pytest.mark.asyncio
    async def test_duplicate_callbacks_converge(
        self, session_factory, events, gateway
    ):
        ride_id = await _pending_ride(session_factory, events)
        async with session_factory() as session:
            rides = RideService(session, events, FareCalculator())
            await rides.accept(ride_id, "d1")
            await rides.complete(ride_id)
            payment = await PaymentService(session, gateway).create_for_ride(ride_id)
            order_id = payment.transaction_id

        signature = sign_payment(order_id, "pay_1")

        async def callback():
            async with session_factory() as session:
                return await PaymentService(session, gateway).verify_and_apply(
                    order_id, "pay_1", signature
                )

        results = await asyncio.gather(callback(), callback())

        assert all(valid for valid, _ in results)
        async with session_factory() as session:
            stored = await PaymentService(session, gateway).get_by_ride(ride_id)
        assert stored.payment_status == PaymentStatus.SUCCESS
        assert stored.transaction_id == "pay_1"


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "lock:test-key", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=None)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_only_deletes_own_token(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "test-key")
        await lock.acquire()
        await lock.release()

        args = mock_redis.eval.await_args.args
        assert args[1:] == (1, "lock:test-key", lock.token)

    @pytest.mark.asyncio
    async def test_ride_payment_key(self):
        lock = DistributedLock.for_ride_payment(AsyncMock(), 42)
        assert lock.key == "lock:payment:ride:42"

    @pytest.mark.asyncio
    async def test_held_lock_is_a_conflict(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        with pytest.raises(ConflictError):
            async with DistributedLock(mock_redis, "busy"):
                pass
        mock_redis.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        with pytest.raises(RuntimeError):
            async with DistributedLock(mock_redis, "k"):
                raise RuntimeError("boom")
        mock_redis.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_payment_creation_is_rejected(self, db_session, gateway):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        service = PaymentService(db_session, gateway, mock_redis)
        with pytest.raises(LockNotAcquired):
            await service.create_for_ride(1)

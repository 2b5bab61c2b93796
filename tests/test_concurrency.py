"""
Concurrency safety tests.

Demonstrates:
1. Distributed lock acquire / release semantics (mocked Redis).
2. The dispatch sweeper skips the cycle while another process holds the lock.
3. The sweeper dispatches pending rides and reconciles pending driver flips.
"""

from unittest.mock import AsyncMock, patch

import pytest

from ridecore.domain.enums import DriverStatus, RideStatus
from ridecore.infrastructure.locks import DistributedLock, LockNotAcquired
from ridecore.infrastructure.models import DriverModel, RideModel
from ridecore.services.acceptance import RideAcceptance
from ridecore.workers.dispatcher import run_sweep_cycle
from tests.factories import TestSessionFactory, make_driver, make_ride


def _redis(acquired: bool = True, released: int = 1) -> AsyncMock:
    mock_redis = AsyncMock()
    mock_redis.set = AsyncMock(return_value=acquired)
    mock_redis.eval = AsyncMock(return_value=released)
    return mock_redis


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_uses_set_nx_ex(self):
        redis = _redis()
        lock = DistributedLock(redis, "dispatch-sweep", ttl_seconds=10)

        assert await lock.acquire() is True
        redis.set.assert_awaited_once_with(
            "lock:dispatch-sweep", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        lock = DistributedLock(_redis(acquired=False), "dispatch-sweep")
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_checks_token(self):
        redis = _redis()
        lock = DistributedLock(redis, "dispatch-sweep")
        await lock.acquire()
        await lock.release()

        args = redis.eval.await_args.args
        assert args[1:] == (1, "lock:dispatch-sweep", lock.token)
        assert lock.held is False

    @pytest.mark.asyncio
    async def test_release_without_acquire_is_a_no_op(self):
        redis = _redis(acquired=False)
        lock = DistributedLock(redis, "dispatch-sweep")
        await lock.acquire()
        await lock.release()
        redis.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tokens_are_unique_per_holder(self):
        redis = _redis()
        assert DistributedLock(redis, "k").token != DistributedLock(redis, "k").token

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        lock = DistributedLock(_redis(acquired=False), "dispatch-sweep")
        with pytest.raises(LockNotAcquired, match="Could not acquire lock"):
            async with lock:
                pass

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self):
        redis = _redis()
        with pytest.raises(ValueError):
            async with DistributedLock(redis, "dispatch-sweep"):
                raise ValueError("boom")
        redis.eval.assert_awaited_once()


class TestDispatchSweeper:
    @pytest.mark.asyncio
    async def test_skips_when_lock_is_held(self, db_session):
        ride = await make_ride(db_session)
        await db_session.commit()

        with patch(
            "ridecore.workers.dispatcher.get_redis",
            AsyncMock(return_value=_redis(acquired=False)),
        ):
            report = await run_sweep_cycle(TestSessionFactory)

        assert report.dispatched == 0
        async with TestSessionFactory() as check:
            assert (await check.get(RideModel, ride.id)).dispatched_at is None

    @pytest.mark.asyncio
    async def test_dispatches_and_reconciles(self, db_session):
        await make_driver(db_session, lat=12.745, lng=77.824)
        waiting = await make_ride(db_session)
        busy_driver = await make_driver(db_session)
        pending = await make_ride(
            db_session,
            status=RideStatus.ACCEPTED,
            driver_id=busy_driver.id,
            driver_status_pending=True,
        )
        await db_session.commit()

        with patch(
            "ridecore.workers.dispatcher.get_redis", AsyncMock(return_value=_redis())
        ), patch("ridecore.services.dispatch.asyncio.sleep", new=AsyncMock()):
            report = await run_sweep_cycle(TestSessionFactory)

        assert report.dispatched == 1
        assert report.notifications_sent == 1
        assert report.reconciled == 1

        async with TestSessionFactory() as check:
            assert (await check.get(RideModel, waiting.id)).dispatched_at is not None
            assert (await check.get(RideModel, pending.id)).driver_status_pending is False
            driver = await check.get(DriverModel, busy_driver.id)
            assert driver.status == DriverStatus.BUSY

    @pytest.mark.asyncio
    async def test_failed_reconciliation_does_not_stop_the_cycle(self, db_session):
        stuck_driver = await make_driver(db_session)
        stuck = await make_ride(
            db_session,
            status=RideStatus.ACCEPTED,
            driver_id=stuck_driver.id,
            driver_status_pending=True,
        )
        other_driver = await make_driver(db_session)
        other = await make_ride(
            db_session,
            status=RideStatus.ACCEPTED,
            driver_id=other_driver.id,
            driver_status_pending=True,
        )
        await db_session.commit()

        reconcile = RideAcceptance.reconcile

        async def flaky(self, ride_id):
            if ride_id == stuck.id:
                raise RuntimeError("driver row locked")
            return await reconcile(self, ride_id)

        with patch(
            "ridecore.workers.dispatcher.get_redis", AsyncMock(return_value=_redis())
        ), patch.object(RideAcceptance, "reconcile", flaky):
            report = await run_sweep_cycle(TestSessionFactory)

        assert report.reconciled == 1
        async with TestSessionFactory() as check:
            assert (await check.get(RideModel, stuck.id)).driver_status_pending is True
            assert (await check.get(RideModel, other.id)).driver_status_pending is False
            driver = await check.get(DriverModel, other_driver.id)
            assert driver.status == DriverStatus.BUSY

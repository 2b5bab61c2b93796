"""
Background Dispatch Sweeper
===========================

Runs every ``DISPATCH_INTERVAL_SECONDS`` (default 10 s).

Per cycle
---------
1. Dispatch requested rides nobody has dispatched yet (oldest first, at
   most ``DISPATCH_BATCH_SIZE``).  Each ride is dispatched in its own
   session so one failure does not undo the others.
2. Retry the driver status flip for accepted rides left with
   ``driver_status_pending``.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one API process sweeps at a
  time, so drivers do not get the same request twice from two replicas.
* Ride state changes are conditional updates, so a ride accepted while
  being dispatched is never moved back.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ridecore.config import settings
from ridecore.infrastructure.database import async_session_factory
from ridecore.infrastructure.locks import DistributedLock
from ridecore.infrastructure.redis_client import get_redis
from ridecore.infrastructure.repositories import RideRepository
from ridecore.services.acceptance import RideAcceptance
from ridecore.services.dispatch import DispatchNotifier

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


@dataclass
class SweepReport:
    dispatched: int = 0
    notifications_sent: int = 0
    reconciled: int = 0


# ── Public API ────────────────────────────────────────────────────────


async def start_dispatch_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Dispatch sweeper started (interval=%ds)", settings.dispatch_interval_seconds
    )


async def stop_dispatch_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Dispatch sweeper stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_sweep_cycle()
        except Exception:
            logger.exception("Unhandled error in dispatch sweep")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.dispatch_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


async def run_sweep_cycle(session_factory=async_session_factory) -> SweepReport:
    """Run one sweep under the cluster-wide lock.  Skipped if the lock is held."""
    report = SweepReport()
    redis = await get_redis()
    lock = DistributedLock(
        redis, "dispatch-sweep", ttl_seconds=max(30, settings.dispatch_interval_seconds * 3)
    )

    if not await lock.acquire():
        logger.debug("Sweep lock held by another process, skipping cycle")
        return report

    try:
        await _dispatch_pending(session_factory, report, lock)
        await _reconcile_pending(session_factory, report)
    finally:
        await lock.release()

    if report.dispatched or report.reconciled:
        logger.info(
            "Dispatch sweep: %d rides dispatched (%d notifications), %d reconciled",
            report.dispatched,
            report.notifications_sent,
            report.reconciled,
        )
    return report


async def _dispatch_pending(
    session_factory, report: SweepReport, lock: DistributedLock
) -> None:
    async with session_factory() as session:
        ride_ids = [
            r.id
            for r in await RideRepository(session).get_undispatched(
                settings.dispatch_batch_size
            )
        ]

    for ride_id in ride_ids:
        async with session_factory() as session:
            try:
                result = await DispatchNotifier(session).notify_for_ride(ride_id)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("Dispatch of ride %d failed", ride_id)
                continue
        report.dispatched += 1
        report.notifications_sent += result.notifications_sent
        # Long batches must not outlive the lock TTL
        await lock.extend()


async def _reconcile_pending(session_factory, report: SweepReport) -> None:
    async with session_factory() as session:
        ride_ids = [
            r.id for r in await RideRepository(session).get_pending_reconciliation()
        ]

    for ride_id in ride_ids:
        async with session_factory() as session:
            try:
                ride = await RideAcceptance(session).reconcile(ride_id)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("Reconciliation of ride %d failed", ride_id)
                continue
        if not ride.driver_status_pending:
            report.reconciled += 1

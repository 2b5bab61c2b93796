"""
Ride Acceptance
===============

Phase 1 -- claim the ride with one conditional update::

    UPDATE rides SET driver_id = :d, status = 'accepted',
                     driver_status_pending = true
     WHERE id = :r AND status = 'requested' AND driver_id IS NULL

At most one driver can match that predicate, so exactly one concurrent
acceptance wins; the others get a ``Conflict`` value back.

Phase 2 -- flip the winning driver to ``busy`` inside a savepoint.  On
success the pending flag is cleared.  On failure the ride stays accepted
with ``driver_status_pending`` set, and ``reconcile`` (background sweeper
or admin endpoint) retries later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.domain.enums import DriverStatus, RideStatus
from ridecore.domain.errors import DriverNotFound, RideNotFound
from ridecore.infrastructure.models import RideModel
from ridecore.infrastructure.repositories import DriverRepository, RideRepository

logger = logging.getLogger(__name__)

_DRIVER_ENGAGED = {
    RideStatus.ACCEPTED,
    RideStatus.DRIVER_ARRIVED,
    RideStatus.IN_PROGRESS,
}


@dataclass(frozen=True)
class Conflict:
    ride_id: int
    reason: str = "Ride has already been accepted or is no longer available"


class RideAcceptance:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.rides = RideRepository(session)
        self.drivers = DriverRepository(session)

    async def accept(self, ride_id: int, driver_id: int) -> Union[RideModel, Conflict]:
        if await self.rides.get_by_id(ride_id) is None:
            raise RideNotFound(ride_id)
        if await self.drivers.get_by_id(driver_id) is None:
            raise DriverNotFound(driver_id)

        ride = await self.rides.claim(ride_id, driver_id)
        if ride is None:
            logger.info("Ride %d: acceptance by driver %d lost the race", ride_id, driver_id)
            return Conflict(ride_id)

        logger.info("Ride %d accepted by driver %d", ride_id, driver_id)
        await self._flip_driver_status(ride)
        return ride

    async def reconcile(self, ride_id: int) -> RideModel:
        """Retry the driver status flip for a ride left pending."""
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise RideNotFound(ride_id)
        if ride.driver_status_pending:
            await self._flip_driver_status(ride)
        return ride

    async def _flip_driver_status(self, ride: RideModel) -> bool:
        if ride.status not in _DRIVER_ENGAGED or ride.driver_id is None:
            # Ride already finished or was cancelled; the driver was released there
            ride.driver_status_pending = False
            await self.session.flush()
            return True

        try:
            async with self.session.begin_nested():
                updated = await self.drivers.set_status(ride.driver_id, DriverStatus.BUSY)
        except SQLAlchemyError:
            logger.warning(
                "Ride %d: driver %d status flip failed, pending reconciliation",
                ride.id,
                ride.driver_id,
                exc_info=True,
            )
            return False

        if not updated:
            logger.warning(
                "Ride %d: driver %d vanished, pending reconciliation",
                ride.id,
                ride.driver_id,
            )
            return False

        ride.driver_status_pending = False
        await self.session.flush()
        return True

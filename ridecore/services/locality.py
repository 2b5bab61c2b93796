"""
Driver-side queries over the record store.

``DriverLocality.find_nearby`` is read-only: it loads online & verified
drivers, their latest location samples (pre-filtered by H3 cell), and
hands both to the pure ranking in ``ridecore.domain.locality``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.config import settings
from ridecore.domain.distance import haversine_km
from ridecore.domain.entities import Coordinate, NearbyDriver
from ridecore.domain.enums import ANY_VEHICLE
from ridecore.domain.errors import DriverNotFound
from ridecore.domain.locality import covering_cells, rank_nearby, ride_h3_cell
from ridecore.infrastructure.models import LocationSampleModel, RideModel
from ridecore.infrastructure.repositories import (
    DriverRepository,
    LocationRepository,
    RideRepository,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OpenRide:
    ride: RideModel
    distance_km: float


class DriverLocality:
    def __init__(self, session: AsyncSession, clock: Clock = utcnow):
        self.drivers = DriverRepository(session)
        self.locations = LocationRepository(session)
        self.rides = RideRepository(session)
        self.clock = clock

    async def find_nearby(
        self,
        pickup: Coordinate,
        vehicle_type: str = ANY_VEHICLE,
        radius_km: Optional[float] = None,
        recency_minutes: Optional[float] = None,
    ) -> list[NearbyDriver]:
        if radius_km is None:
            radius_km = settings.nearby_search_radius_km
        if recency_minutes is None:
            recency_minutes = settings.location_recency_minutes

        candidates = await self.drivers.get_dispatchable()
        if not candidates:
            return []

        cells = covering_cells(
            pickup, radius_km, settings.h3_resolution, settings.h3_max_ring
        )
        samples = await self.locations.latest_for_owners(
            [c.user_id for c in candidates], cells
        )
        nearby = rank_nearby(
            pickup,
            candidates,
            samples,
            vehicle_type=vehicle_type,
            radius_km=radius_km,
            recency_minutes=recency_minutes,
            now=self.clock(),
            eta_minutes_per_km=settings.eta_minutes_per_km,
        )
        logger.debug(
            "Nearby search at (%.5f, %.5f) r=%.1fkm: %d of %d drivers",
            pickup.latitude,
            pickup.longitude,
            radius_km,
            len(nearby),
            len(candidates),
        )
        return nearby

    async def record_location(
        self,
        driver_id: int,
        position: Coordinate,
        *,
        heading: Optional[float] = None,
        speed: Optional[float] = None,
        accuracy: Optional[float] = None,
        captured_at: Optional[datetime] = None,
    ) -> LocationSampleModel:
        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise DriverNotFound(driver_id)
        return await self.locations.record(
            user_id=driver.user_id,
            latitude=position.latitude,
            longitude=position.longitude,
            heading=heading,
            speed=speed,
            accuracy=accuracy,
            h3_cell=ride_h3_cell(
                position.latitude, position.longitude, settings.h3_resolution
            ),
            captured_at=captured_at or self.clock(),
        )

    async def find_open_rides(
        self, position: Coordinate, radius_km: Optional[float] = None
    ) -> list[OpenRide]:
        """Unassigned regular requests with a pickup within *radius_km*, oldest first."""
        if radius_km is None:
            radius_km = settings.open_rides_radius_km

        open_rides = []
        for ride in await self.rides.get_open_rides():
            distance = haversine_km(
                position.latitude,
                position.longitude,
                ride.pickup_latitude,
                ride.pickup_longitude,
            )
            if distance <= radius_km:
                open_rides.append(OpenRide(ride, round(distance, 1)))
        return open_rides

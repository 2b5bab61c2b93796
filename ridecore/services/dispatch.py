"""
Dispatch Notifier
=================

Fan a new ride request out to every eligible driver near the pickup.

1. Only rides still in ``requested`` are dispatched; anything else is a
   no-op reported as ``(0, 0)``.
2. ``dispatched_at`` is stamped so the background sweeper skips the ride.
3. Nearby drivers (dispatch radius, ride vehicle type) each get one
   ``ride_request`` notification.  Sends are independent: a failed send
   is logged and the rest continue.
4. No driver found, or no send succeeded -> ``no_drivers_available``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.config import settings
from ridecore.domain.entities import Coordinate, NearbyDriver
from ridecore.domain.enums import NotificationType, RideStatus
from ridecore.domain.errors import RideNotFound
from ridecore.domain.notifications import RideRequestPayload
from ridecore.infrastructure.models import RideModel, UserModel
from ridecore.infrastructure.repositories import (
    NotificationRepository,
    RideRepository,
    UserRepository,
)
from ridecore.services.locality import DriverLocality, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    ride_id: int
    drivers_found: int
    notifications_sent: int
    status: RideStatus


class DispatchNotifier:
    def __init__(
        self,
        session: AsyncSession,
        sink: Optional[NotificationRepository] = None,
        locality: Optional[DriverLocality] = None,
        delay_seconds: Optional[float] = None,
    ):
        self.rides = RideRepository(session)
        self.users = UserRepository(session)
        self.sink = sink or NotificationRepository(session)
        self.locality = locality or DriverLocality(session)
        self.delay = (
            settings.notification_delay_seconds
            if delay_seconds is None
            else delay_seconds
        )

    async def notify_for_ride(self, ride_id: int) -> DispatchResult:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise RideNotFound(ride_id)
        if ride.status != RideStatus.REQUESTED:
            return DispatchResult(ride.id, 0, 0, ride.status)

        await self.rides.mark_dispatched(ride)

        drivers = await self.locality.find_nearby(
            Coordinate(ride.pickup_latitude, ride.pickup_longitude),
            vehicle_type=ride.vehicle_type,
            radius_km=settings.dispatch_radius_km,
        )
        if not drivers:
            logger.info("Ride %d: no drivers within %.1f km", ride.id, settings.dispatch_radius_km)
            return await self._no_drivers(ride, 0, 0)

        customer = await self.users.get_by_id(ride.customer_id)
        sent = 0
        for i, driver in enumerate(drivers):
            if i and self.delay:
                await asyncio.sleep(self.delay)
            try:
                await self._send(ride, customer, driver)
            except SQLAlchemyError:
                logger.warning(
                    "Ride %d: notification to driver %d failed",
                    ride.id,
                    driver.driver_id,
                    exc_info=True,
                )
                continue
            sent += 1

        if sent == 0:
            return await self._no_drivers(ride, len(drivers), 0)

        logger.info(
            "Ride %d dispatched: %d/%d drivers notified", ride.id, sent, len(drivers)
        )
        return DispatchResult(ride.id, len(drivers), sent, ride.status)

    async def _send(
        self, ride: RideModel, customer: Optional[UserModel], driver: NearbyDriver
    ) -> None:
        payload = RideRequestPayload(
            ride_id=ride.id,
            ride_code=ride.ride_code,
            booking_type=ride.booking_type,
            vehicle_type=ride.vehicle_type,
            pickup_latitude=ride.pickup_latitude,
            pickup_longitude=ride.pickup_longitude,
            pickup_address=ride.pickup_address,
            destination_latitude=ride.destination_latitude,
            destination_longitude=ride.destination_longitude,
            destination_address=ride.destination_address,
            fare_estimate=ride.fare_amount,
            customer_id=ride.customer_id,
            customer_name=customer.full_name if customer else None,
            customer_phone=customer.phone_number if customer else None,
            distance_to_pickup_km=driver.distance_km,
            sent_at=utcnow(),
        )
        await self.sink.create(
            user_id=driver.user_id,
            ride_id=ride.id,
            type=NotificationType.RIDE_REQUEST.value,
            title="New ride request",
            message=f"Pickup at {ride.pickup_address}, {driver.distance_km} km away",
            data=payload.model_dump(mode="json"),
        )

    async def _no_drivers(
        self, ride: RideModel, found: int, sent: int
    ) -> DispatchResult:
        updated = await self.rides.transition(
            ride.id, RideStatus.REQUESTED, RideStatus.NO_DRIVERS_AVAILABLE
        )
        status = updated.status if updated else ride.status
        return DispatchResult(ride.id, found, sent, status)

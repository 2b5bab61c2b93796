"""
Ride lifecycle after acceptance.

    accepted -> driver_arrived -> (pickup OTP verified) -> in_progress
             -> completed

Any non-terminal ride may be cancelled where the state machine allows.
Every move is a conditional update on the current status (and, for
driver actions, the assigned driver); the ``in_progress -> completed``
update is the single gate in front of the fare computation.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.domain.entities import Coordinate, Ride
from ridecore.domain.enums import DriverStatus, NotificationType, RideStatus
from ridecore.domain.errors import InvalidOtp, InvalidStateTransition, RideNotFound
from ridecore.domain.notifications import RideCompletedPayload
from ridecore.domain.pricing import FareBreakdown
from ridecore.infrastructure.models import RideModel
from ridecore.infrastructure.repositories import (
    DriverRepository,
    NotificationRepository,
    RideRepository,
)
from ridecore.services.fares import FareEngine
from ridecore.services.locality import utcnow

logger = logging.getLogger(__name__)

_OTP_STATUSES = (RideStatus.ACCEPTED, RideStatus.DRIVER_ARRIVED)


def to_domain(model: RideModel) -> Ride:
    return Ride(
        id=model.id,
        customer_id=model.customer_id,
        driver_id=model.driver_id,
        pickup=Coordinate(model.pickup_latitude, model.pickup_longitude),
        destination=Coordinate(model.destination_latitude, model.destination_longitude),
        booking_type=model.booking_type,
        vehicle_type=model.vehicle_type,
        status=model.status,
        fare_amount=model.fare_amount,
        scheduled_time=model.scheduled_time,
        created_at=model.created_at,
    )


def generate_otp() -> str:
    return f"{secrets.randbelow(10_000):04d}"


@dataclass(frozen=True)
class CompletedTrip:
    ride: RideModel
    fare: FareBreakdown


class RideLifecycle:
    def __init__(
        self,
        session: AsyncSession,
        fares: Optional[FareEngine] = None,
        sink: Optional[NotificationRepository] = None,
    ):
        self.session = session
        self.rides = RideRepository(session)
        self.drivers = DriverRepository(session)
        self.fares = fares or FareEngine(session)
        self.sink = sink or NotificationRepository(session)

    async def _load(self, ride_id: int) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise RideNotFound(ride_id)
        return ride

    async def _move(
        self,
        ride: RideModel,
        to_status: RideStatus,
        driver_id: Optional[int] = None,
        **values,
    ) -> RideModel:
        to_domain(ride).transition_to(to_status)
        if driver_id is not None and ride.driver_id != driver_id:
            raise InvalidStateTransition(
                f"Ride {ride.id} is not assigned to driver {driver_id}"
            )

        updated = await self.rides.transition(
            ride.id, ride.status, to_status, driver_id=driver_id, **values
        )
        if updated is None:
            raise InvalidStateTransition(
                f"Ride {ride.id} changed state before it could move to {to_status.value}"
            )
        logger.info("Ride %d -> %s", ride.id, to_status.value)
        return updated

    async def mark_arrived(self, ride_id: int, driver_id: int) -> RideModel:
        ride = await self._load(ride_id)
        return await self._move(ride, RideStatus.DRIVER_ARRIVED, driver_id)

    async def issue_pickup_otp(self, ride_id: int) -> str:
        ride = await self._load(ride_id)
        if ride.status not in _OTP_STATUSES:
            raise InvalidStateTransition(
                f"Cannot issue a pickup code for a {ride.status.value} ride"
            )
        otp = generate_otp()
        updated = await self.rides.conditional_update(
            ride.id, [RideModel.status.in_(_OTP_STATUSES)], pickup_otp=otp
        )
        if updated is None:
            raise InvalidStateTransition(f"Ride {ride.id} changed state")
        return otp

    async def verify_pickup(self, ride_id: int, driver_id: int, otp: str) -> RideModel:
        ride = await self._load(ride_id)
        if ride.pickup_otp is None or not secrets.compare_digest(ride.pickup_otp, otp):
            raise InvalidOtp(f"Pickup code for ride {ride.id} does not match")
        return await self._move(
            ride, RideStatus.IN_PROGRESS, driver_id, pickup_otp=None
        )

    async def complete(
        self,
        ride_id: int,
        driver_id: int,
        actual_distance_km: float,
        actual_duration_minutes: float,
        drop: Optional[Coordinate] = None,
    ) -> CompletedTrip:
        ride = await self._move(
            await self._load(ride_id), RideStatus.COMPLETED, driver_id
        )
        fare = await self.fares.calculate_and_store(
            ride.id, actual_distance_km, actual_duration_minutes, drop=drop
        )
        await self.drivers.record_completed_trip(driver_id)
        await self._notify_completed(ride, fare)
        return CompletedTrip(ride, fare)

    async def cancel(self, ride_id: int, reason: Optional[str] = None) -> RideModel:
        ride = await self._load(ride_id)
        driver_id = ride.driver_id
        ride = await self._move(
            ride,
            RideStatus.CANCELLED,
            cancellation_reason=reason,
            driver_status_pending=False,
        )
        if driver_id is not None:
            await self.drivers.set_status(driver_id, DriverStatus.ONLINE)
        return ride

    async def _notify_completed(self, ride: RideModel, fare: FareBreakdown) -> None:
        payload = RideCompletedPayload(
            ride_id=ride.id,
            ride_code=ride.ride_code,
            total_fare=fare.total_fare,
            distance_km=fare.details.actual_distance_km,
            duration_minutes=fare.details.actual_duration_minutes,
            completed_at=utcnow(),
        )
        try:
            await self.sink.create(
                user_id=ride.customer_id,
                ride_id=ride.id,
                type=NotificationType.RIDE_COMPLETED.value,
                title="Trip completed",
                message=f"Your fare is {fare.total_fare:.2f}",
                data=payload.model_dump(mode="json"),
            )
        except SQLAlchemyError:
            logger.warning(
                "Ride %d: completion notice to customer failed", ride.id, exc_info=True
            )

"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.

Conditional updates
-------------------
Every ride status change is a single ``UPDATE ... WHERE <expected state>
RETURNING id``.  Zero rows returned means another writer got there first;
the caller decides what that means (a lost acceptance race, an already
completed trip, ...).  No row locks are taken.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AirportFareModel,
    DriverModel,
    FareMatrixModel,
    LocationSampleModel,
    NotificationModel,
    OutstationFareModel,
    RentalFareModel,
    RideModel,
    TripCompletionModel,
    UserModel,
    VehicleModel,
    ZoneModel,
)
from ridecore.domain.entities import (
    Coordinate,
    DriverCandidate,
    LocationSample,
    Zone,
)
from ridecore.domain.enums import BookingType, DriverStatus, RideStatus
from ridecore.domain.pricing import FareBreakdown


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(self, **fields: Any) -> RideModel:
        ride = RideModel(**fields)
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_by_idempotency_key(self, key: str) -> Optional[RideModel]:
        result = await self.session.execute(
            select(RideModel).where(RideModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def get_undispatched(self, limit: int = 50) -> list[RideModel]:
        """Requested rides nobody has run the dispatch notifier for yet."""
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.status == RideStatus.REQUESTED,
                RideModel.dispatched_at.is_(None),
            )
            .order_by(RideModel.created_at, RideModel.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_open_rides(
        self, booking_type: BookingType = BookingType.REGULAR
    ) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.status == RideStatus.REQUESTED,
                RideModel.booking_type == booking_type,
                RideModel.driver_id.is_(None),
            )
            .order_by(RideModel.created_at, RideModel.id)
        )
        return list(result.scalars().all())

    async def get_pending_reconciliation(self) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.driver_status_pending.is_(True))
            .order_by(RideModel.updated_at, RideModel.id)
        )
        return list(result.scalars().all())

    async def conditional_update(
        self, ride_id: int, conditions: Iterable[Any], **values: Any
    ) -> Optional[RideModel]:
        """
        Atomically apply *values* iff the row still satisfies *conditions*.

        Returns the refreshed ride, or None when no row matched.
        """
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, *conditions)
            .values(**values, updated_at=utcnow())
            .returning(RideModel.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            return None
        return await self.session.get(RideModel, ride_id, populate_existing=True)

    async def claim(self, ride_id: int, driver_id: int) -> Optional[RideModel]:
        """Assign *driver_id* only if the ride is still requested and unassigned."""
        return await self.conditional_update(
            ride_id,
            [
                RideModel.status == RideStatus.REQUESTED,
                RideModel.driver_id.is_(None),
            ],
            driver_id=driver_id,
            status=RideStatus.ACCEPTED,
            driver_status_pending=True,
        )

    async def transition(
        self,
        ride_id: int,
        from_status: RideStatus,
        to_status: RideStatus,
        *,
        driver_id: Optional[int] = None,
        **values: Any,
    ) -> Optional[RideModel]:
        conditions = [RideModel.status == from_status]
        if driver_id is not None:
            conditions.append(RideModel.driver_id == driver_id)
        return await self.conditional_update(
            ride_id, conditions, status=to_status, **values
        )

    async def mark_dispatched(self, ride: RideModel) -> None:
        ride.dispatched_at = utcnow()
        await self.session.flush()

    async def record_fare(
        self,
        ride: RideModel,
        *,
        fare_amount: float,
        distance_km: float,
        duration_minutes: float,
    ) -> None:
        ride.fare_amount = fare_amount
        ride.distance_km = distance_km
        ride.duration_minutes = duration_minutes
        await self.session.flush()


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_dispatchable(self) -> list[DriverCandidate]:
        """Online, verified drivers with their contact and vehicle details."""
        result = await self.session.execute(
            select(DriverModel, UserModel, VehicleModel)
            .join(UserModel, UserModel.id == DriverModel.user_id)
            .outerjoin(VehicleModel, VehicleModel.id == DriverModel.vehicle_id)
            .where(
                DriverModel.status == DriverStatus.ONLINE,
                DriverModel.is_verified.is_(True),
            )
            .order_by(DriverModel.id)
        )
        return [
            DriverCandidate(
                driver_id=driver.id,
                user_id=driver.user_id,
                vehicle_type=vehicle.vehicle_type if vehicle else None,
                name=user.full_name,
                phone=user.phone_number,
                rating=driver.rating,
                registration_number=vehicle.registration_number if vehicle else None,
            )
            for driver, user, vehicle in result.all()
        ]

    async def set_status(self, driver_id: int, status: DriverStatus) -> bool:
        result = await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id)
            .values(status=status, updated_at=utcnow())
            .returning(DriverModel.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    async def record_completed_trip(self, driver_id: int) -> bool:
        """Back to ``online`` with one more finished ride on the counter."""
        result = await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id)
            .values(
                status=DriverStatus.ONLINE,
                total_rides=DriverModel.total_rides + 1,
                updated_at=utcnow(),
            )
            .returning(DriverModel.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None


class LocationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, **fields: Any) -> LocationSampleModel:
        sample = LocationSampleModel(**fields)
        self.session.add(sample)
        await self.session.flush()
        return sample

    async def latest_for_owners(
        self, user_ids: list[int], cells: Optional[set[str]] = None
    ) -> dict[int, LocationSample]:
        """
        Most recent sample per owner.

        The optional *cells* pre-filter applies to the latest sample only;
        samples recorded without a cell always pass.
        """
        if not user_ids:
            return {}

        latest = (
            select(
                LocationSampleModel.user_id,
                func.max(LocationSampleModel.captured_at).label("captured_at"),
            )
            .where(LocationSampleModel.user_id.in_(user_ids))
            .group_by(LocationSampleModel.user_id)
            .subquery()
        )
        query = (
            select(LocationSampleModel)
            .join(
                latest,
                and_(
                    LocationSampleModel.user_id == latest.c.user_id,
                    LocationSampleModel.captured_at == latest.c.captured_at,
                ),
            )
            .order_by(LocationSampleModel.id)
        )
        if cells is not None:
            query = query.where(
                or_(
                    LocationSampleModel.h3_cell.in_(cells),
                    LocationSampleModel.h3_cell.is_(None),
                )
            )

        result = await self.session.execute(query)
        samples: dict[int, LocationSample] = {}
        # Same-timestamp duplicates: the later insert wins
        for row in result.scalars().all():
            samples[row.user_id] = LocationSample(
                owner_id=row.user_id,
                position=Coordinate(row.latitude, row.longitude),
                captured_at=row.captured_at,
                heading=row.heading,
                speed=row.speed,
                accuracy=row.accuracy,
            )
        return samples


class NotificationRepository:
    """Notification sink backed by the ``notifications`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        user_id: int,
        type: str,
        title: str,
        message: str,
        data: dict,
        ride_id: Optional[int] = None,
    ) -> NotificationModel:
        notification = NotificationModel(
            user_id=user_id,
            ride_id=ride_id,
            type=type,
            title=title,
            message=message,
            data=data,
        )
        # Savepoint: a failed insert must not poison the caller's transaction
        async with self.session.begin_nested():
            self.session.add(notification)
        return notification

    async def list_for_user(
        self, user_id: int, limit: int = 50
    ) -> list[NotificationModel]:
        result = await self.session.execute(
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_ride(self, ride_id: int) -> list[NotificationModel]:
        result = await self.session.execute(
            select(NotificationModel)
            .where(NotificationModel.ride_id == ride_id)
            .order_by(NotificationModel.id)
        )
        return list(result.scalars().all())


class ZoneRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active(self) -> list[Zone]:
        result = await self.session.execute(
            select(ZoneModel)
            .where(ZoneModel.is_active.is_(True))
            .order_by(ZoneModel.created_at, ZoneModel.id)
        )
        return [
            Zone(
                name=z.name,
                center=Coordinate(z.center_latitude, z.center_longitude),
                radius_km=z.radius_km,
                role=z.role,
                is_active=z.is_active,
            )
            for z in result.scalars().all()
        ]


class FareConfigRepository:
    """
    Read-through access to the rate tables.

    Rows come back newest first; the fare engine takes the head of the
    list.  Nothing is cached here.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fare_matrix(
        self, booking_type: BookingType, vehicle_type: str
    ) -> list[FareMatrixModel]:
        result = await self.session.execute(
            select(FareMatrixModel)
            .where(
                FareMatrixModel.booking_type == booking_type,
                FareMatrixModel.vehicle_type == vehicle_type,
                FareMatrixModel.is_active.is_(True),
            )
            .order_by(FareMatrixModel.created_at.desc(), FareMatrixModel.id.desc())
        )
        return list(result.scalars().all())

    async def rental_packages(
        self, vehicle_type: str, duration_hours: int
    ) -> list[RentalFareModel]:
        result = await self.session.execute(
            select(RentalFareModel)
            .where(
                RentalFareModel.vehicle_type == vehicle_type,
                RentalFareModel.duration_hours == duration_hours,
                RentalFareModel.is_active.is_(True),
            )
            .order_by(
                RentalFareModel.is_popular.desc(),
                RentalFareModel.created_at.desc(),
                RentalFareModel.id.desc(),
            )
        )
        return list(result.scalars().all())

    async def outstation_fares(self, vehicle_type: str) -> list[OutstationFareModel]:
        result = await self.session.execute(
            select(OutstationFareModel)
            .where(
                OutstationFareModel.vehicle_type == vehicle_type,
                OutstationFareModel.is_active.is_(True),
            )
            .order_by(
                OutstationFareModel.created_at.desc(), OutstationFareModel.id.desc()
            )
        )
        return list(result.scalars().all())

    async def airport_fares(self, vehicle_type: str) -> list[AirportFareModel]:
        result = await self.session.execute(
            select(AirportFareModel)
            .where(
                AirportFareModel.vehicle_type == vehicle_type,
                AirportFareModel.is_active.is_(True),
            )
            .order_by(AirportFareModel.created_at.desc(), AirportFareModel.id.desc())
        )
        return list(result.scalars().all())


class TripCompletionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_ride_id(self, ride_id: int) -> Optional[TripCompletionModel]:
        result = await self.session.execute(
            select(TripCompletionModel).where(TripCompletionModel.ride_id == ride_id)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self, ride_id: int, breakdown: FareBreakdown
    ) -> TripCompletionModel:
        """One completion row per ride; a repeat calculation overwrites it."""
        values = dict(
            booking_type=breakdown.booking_type,
            vehicle_type=breakdown.vehicle_type,
            actual_distance_km=breakdown.details.actual_distance_km,
            actual_duration_minutes=breakdown.details.actual_duration_minutes,
            base_fare=breakdown.base_fare,
            distance_fare=breakdown.distance_fare,
            time_fare=breakdown.time_fare,
            surge_charges=breakdown.surge_charges,
            deadhead_charges=breakdown.deadhead_charges,
            platform_fee=breakdown.platform_fee,
            gst_on_charges=breakdown.gst_on_charges,
            gst_on_platform_fee=breakdown.gst_on_platform_fee,
            extra_km_charges=breakdown.extra_km_charges,
            driver_allowance=breakdown.driver_allowance,
            total_fare=breakdown.total_fare,
            fare_breakdown=breakdown.as_dict(),
        )

        completion = await self.get_by_ride_id(ride_id)
        if completion is None:
            completion = TripCompletionModel(ride_id=ride_id, **values)
            self.session.add(completion)
        else:
            for key, value in values.items():
                setattr(completion, key, value)
        await self.session.flush()
        return completion


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

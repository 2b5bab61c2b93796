"""
Fare engine service: load rates, pick the policy, persist the breakdown.

Rate rows and zones are read on every call so that an operator's change
applies to the very next trip.  When several active rows match, the most
recently created one wins and a warning is logged.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.config import settings
from ridecore.domain.entities import Coordinate
from ridecore.domain.enums import BookingType
from ridecore.domain.errors import (
    CompletionNotFound,
    ConfigurationMissing,
    RideNotFound,
)
from ridecore.domain.pricing import (
    AirportFarePolicy,
    AirportRate,
    FareBreakdown,
    FareMatrixRate,
    FarePolicy,
    OutstationFarePolicy,
    OutstationRate,
    RegularFarePolicy,
    RentalFarePolicy,
    RentalPackage,
    TaxRates,
    TripMeasurement,
)
from ridecore.infrastructure.models import RideModel, TripCompletionModel
from ridecore.infrastructure.repositories import (
    FareConfigRepository,
    RideRepository,
    TripCompletionRepository,
    ZoneRepository,
)
from ridecore.services.locality import Clock, utcnow

logger = logging.getLogger(__name__)

Row = TypeVar("Row")


def _pick(rows: Sequence[Row], what: str, warn_on_conflict: bool = True) -> Row:
    if not rows:
        raise ConfigurationMissing(f"No active {what} configured")
    if warn_on_conflict and len(rows) > 1:
        logger.warning(
            "%d active rows for %s; using the most recent (id=%s)",
            len(rows),
            what,
            getattr(rows[0], "id", None),
        )
    return rows[0]


class FareEngine:
    def __init__(self, session: AsyncSession, clock: Clock = utcnow):
        self.rides = RideRepository(session)
        self.config = FareConfigRepository(session)
        self.zones = ZoneRepository(session)
        self.completions = TripCompletionRepository(session)
        self.clock = clock
        self.tax_rates = TaxRates(
            charges=settings.gst_rate_charges,
            platform_fee=settings.gst_rate_platform_fee,
        )

    async def calculate_and_store(
        self,
        ride_id: int,
        actual_distance_km: float,
        actual_duration_minutes: float,
        pickup: Optional[Coordinate] = None,
        drop: Optional[Coordinate] = None,
    ) -> FareBreakdown:
        """
        Compute the fare for a finished trip and upsert it.

        *pickup* / *drop* default to the ride's requested coordinates.
        Raises ``RideNotFound`` or ``ConfigurationMissing``.
        """
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise RideNotFound(ride_id)

        trip = TripMeasurement(
            actual_distance_km=actual_distance_km,
            actual_duration_minutes=actual_duration_minutes,
            pickup=pickup
            or Coordinate(ride.pickup_latitude, ride.pickup_longitude),
            drop=drop
            or Coordinate(ride.destination_latitude, ride.destination_longitude),
        )
        policy = await self._policy_for(ride)
        breakdown = policy.calculate(trip)

        await self.completions.upsert(ride.id, breakdown)
        await self.rides.record_fare(
            ride,
            fare_amount=breakdown.total_fare,
            distance_km=actual_distance_km,
            duration_minutes=actual_duration_minutes,
        )
        logger.info(
            "Ride %d fare (%s/%s): %.2f",
            ride.id,
            breakdown.booking_type.value,
            breakdown.vehicle_type,
            breakdown.total_fare,
        )
        return breakdown

    async def get_completion(self, ride_id: int) -> TripCompletionModel:
        completion = await self.completions.get_by_ride_id(ride_id)
        if completion is None:
            raise CompletionNotFound(ride_id)
        return completion

    async def _policy_for(self, ride: RideModel) -> FarePolicy:
        vehicle = ride.vehicle_type

        if ride.booking_type == BookingType.RENTAL:
            hours = ride.rental_hours or settings.default_rental_hours
            row = _pick(
                await self.config.rental_packages(vehicle, hours),
                f"{hours}h rental package for vehicle type '{vehicle}'",
                warn_on_conflict=False,
            )
            return RentalFarePolicy(
                vehicle,
                RentalPackage(
                    package_name=row.package_name,
                    duration_hours=row.duration_hours,
                    km_included=row.km_included,
                    base_fare=row.base_fare,
                    extra_km_rate=row.extra_km_rate,
                    is_popular=row.is_popular,
                ),
            )

        if ride.booking_type == BookingType.OUTSTATION:
            row = _pick(
                await self.config.outstation_fares(vehicle),
                f"outstation fare for vehicle type '{vehicle}'",
            )
            return OutstationFarePolicy(
                vehicle,
                OutstationRate(
                    base_fare=row.base_fare,
                    per_km_rate=row.per_km_rate,
                    driver_allowance_per_day=row.driver_allowance_per_day,
                    daily_km_limit=row.daily_km_limit,
                ),
                started_at=ride.scheduled_time,
                now=self.clock(),
            )

        if ride.booking_type == BookingType.AIRPORT:
            row = _pick(
                await self.config.airport_fares(vehicle),
                f"airport fare for vehicle type '{vehicle}'",
            )
            return AirportFarePolicy(
                vehicle,
                AirportRate(
                    city_to_airport_fare=row.city_to_airport_fare,
                    airport_to_city_fare=row.airport_to_city_fare,
                ),
                Coordinate(settings.city_center_lat, settings.city_center_lng),
            )

        row = _pick(
            await self.config.fare_matrix(BookingType.REGULAR, vehicle),
            f"regular fare for vehicle type '{vehicle}'",
        )
        return RegularFarePolicy(
            vehicle,
            FareMatrixRate(
                base_fare=row.base_fare,
                per_km_rate=row.per_km_rate,
                surge_multiplier=row.surge_multiplier,
                platform_fee=row.platform_fee,
                minimum_fare=row.minimum_fare,
            ),
            await self.zones.get_active(),
            base_km_included=settings.base_km_included,
            tax_rates=self.tax_rates,
        )

"""
Trip Fare Engine  (Strategy Pattern)
====================================

One policy per booking type turns a completed trip's measured distance /
duration into an itemised ``FareBreakdown``.

Regular
-------
  distance_fare = max(0, d - 4) x per_km_rate
  surge         = (base + distance_fare + deadhead) x (surge_multiplier - 1)
  gst_charges   = 5 %  x (base + distance_fare + deadhead + surge)
  gst_platform  = 18 % x platform_fee
  total         = base + distance_fare + deadhead + surge
                  + platform_fee + gst_charges + gst_platform

Rental
------
  total = package_base + max(0, d - km_included) x extra_km_rate

Outstation
----------
  days       = max(1, ceil(hours_since_start / 24))
  round_trip = 2 x d                                   (see ``round_trip_km``)
  km_charge  = daily_km_limit x days x rate   if round_trip <= limit x days
             = round_trip x rate              otherwise (all-or-nothing)
  total      = base + km_charge + days x allowance_per_day

Airport
-------
  Flat fare; the endpoint nearer the reference city centre is the origin.

Deadhead
--------
  Drop-off outside the inner zone pays half the distance back to the
  zone boundary at the per-km rate.  Inside (boundary inclusive) pays 0.

Every money component is rounded to 2 decimals before it feeds a later
component, so the itemised lines always add up to ``total_fare``.

Complexity: O(Z) per calculation (Z = active zones), O(1) otherwise.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from .distance import distance_km
from .entities import Coordinate, Zone
from .enums import AirportDirection, BookingType
from .locality import as_utc
from .zones import find_zone, is_inner_zone, membership


def _money(value: float) -> float:
    return round(value, 2)


# ── Rate configuration ────────────────────────────────────────────────


@dataclass(frozen=True)
class FareMatrixRate:
    base_fare: float
    per_km_rate: float
    surge_multiplier: float = 1.0
    platform_fee: float = 0.0
    minimum_fare: float = 0.0


@dataclass(frozen=True)
class RentalPackage:
    package_name: str
    duration_hours: int
    km_included: float
    base_fare: float
    extra_km_rate: float
    is_popular: bool = False


@dataclass(frozen=True)
class OutstationRate:
    base_fare: float
    per_km_rate: float
    driver_allowance_per_day: float
    daily_km_limit: float


@dataclass(frozen=True)
class AirportRate:
    city_to_airport_fare: float
    airport_to_city_fare: float


@dataclass(frozen=True)
class TaxRates:
    charges: float = 0.05
    platform_fee: float = 0.18


# ── Input / output ────────────────────────────────────────────────────


@dataclass(frozen=True)
class TripMeasurement:
    actual_distance_km: float
    actual_duration_minutes: float
    pickup: Coordinate
    drop: Coordinate


@dataclass
class FareDetails:
    actual_distance_km: float
    actual_duration_minutes: float
    per_km_rate: float = 0.0
    base_km_included: Optional[float] = None
    extra_km: Optional[float] = None
    surge_multiplier: Optional[float] = None
    platform_fee_flat: Optional[float] = None
    gst_rate_charges: Optional[float] = None
    gst_rate_platform: Optional[float] = None
    minimum_fare: Optional[float] = None
    zone_detected: Optional[str] = None
    is_inner_zone: Optional[bool] = None
    days_calculated: Optional[int] = None
    daily_km_limit: Optional[float] = None
    within_allowance: Optional[bool] = None
    package_name: Optional[str] = None
    total_km_travelled: Optional[float] = None
    km_allowance: Optional[float] = None
    direction: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class FareBreakdown:
    booking_type: BookingType
    vehicle_type: str
    details: FareDetails
    base_fare: float = 0.0
    distance_fare: float = 0.0
    time_fare: float = 0.0
    surge_charges: float = 0.0
    deadhead_charges: float = 0.0
    platform_fee: float = 0.0
    gst_on_charges: float = 0.0
    gst_on_platform_fee: float = 0.0
    extra_km_charges: float = 0.0
    driver_allowance: float = 0.0
    total_fare: float = field(default=0.0)

    def __post_init__(self) -> None:
        self.total_fare = _money(
            self.base_fare
            + self.distance_fare
            + self.time_fare
            + self.surge_charges
            + self.deadhead_charges
            + self.platform_fee
            + self.gst_on_charges
            + self.gst_on_platform_fee
            + self.extra_km_charges
            + self.driver_allowance
        )

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["booking_type"] = self.booking_type.value
        data["details"] = self.details.as_dict()
        return data


# ── Shared steps ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class DeadheadResult:
    charges: float
    zone_detected: str
    is_inner_zone: bool


class DeadheadCalculator:
    """Return-trip surcharge for drop-offs outside the inner zone."""

    def __init__(self, zones: Sequence[Zone]):
        self.zones = zones

    def calculate(self, drop: Coordinate, per_km_rate: float) -> DeadheadResult:
        inner = find_zone(drop, self.zones, is_inner_zone)
        if inner is None:
            return DeadheadResult(0.0, "Unknown", False)

        where = membership(drop, inner)
        if where.is_inside:
            return DeadheadResult(0.0, inner.name, True)

        charges = _money((where.distance_to_boundary_km / 2) * per_km_rate)
        return DeadheadResult(charges, "Outside Inner Zone", False)


def apply_gst(
    charges_subtotal: float, platform_fee: float, rates: TaxRates
) -> tuple[float, float]:
    """GST on ride charges and, separately, on the platform fee."""
    return (
        _money(charges_subtotal * rates.charges),
        _money(platform_fee * rates.platform_fee),
    )


def round_trip_km(one_way_km: float) -> float:
    """
    Outstation billing distance.

    The measured one-way distance is doubled; the return leg is assumed to
    mirror the outbound route rather than being measured.
    """
    return 2 * one_way_km


def elapsed_days(started_at: Optional[datetime], now: datetime) -> int:
    start = as_utc(started_at) if started_at is not None else as_utc(now)
    hours = abs((as_utc(now) - start).total_seconds()) / 3600
    return max(1, math.ceil(hours / 24))


def airport_direction(
    pickup: Coordinate, drop: Coordinate, city_center: Coordinate
) -> AirportDirection:
    if distance_km(pickup, city_center) < distance_km(drop, city_center):
        return AirportDirection.CITY_TO_AIRPORT
    return AirportDirection.AIRPORT_TO_CITY


# ── Strategy hierarchy ────────────────────────────────────────────────


class FarePolicy(ABC):
    booking_type: BookingType

    def __init__(self, vehicle_type: str):
        self.vehicle_type = vehicle_type

    @abstractmethod
    def calculate(self, trip: TripMeasurement) -> FareBreakdown: ...


class RegularFarePolicy(FarePolicy):
    booking_type = BookingType.REGULAR

    def __init__(
        self,
        vehicle_type: str,
        rate: FareMatrixRate,
        zones: Sequence[Zone],
        base_km_included: float = 4.0,
        tax_rates: TaxRates = TaxRates(),
    ):
        super().__init__(vehicle_type)
        self.rate = rate
        self.deadhead = DeadheadCalculator(zones)
        self.base_km_included = base_km_included
        self.tax_rates = tax_rates

    def calculate(self, trip: TripMeasurement) -> FareBreakdown:
        rate = self.rate
        extra_km = max(0.0, trip.actual_distance_km - self.base_km_included)
        distance_fare = _money(extra_km * rate.per_km_rate)
        deadhead = self.deadhead.calculate(trip.drop, rate.per_km_rate)

        subtotal = rate.base_fare + distance_fare + deadhead.charges
        surge = _money(subtotal * (rate.surge_multiplier - 1))
        gst_charges, gst_platform = apply_gst(
            subtotal + surge, rate.platform_fee, self.tax_rates
        )

        return FareBreakdown(
            booking_type=self.booking_type,
            vehicle_type=self.vehicle_type,
            base_fare=rate.base_fare,
            distance_fare=distance_fare,
            surge_charges=surge,
            deadhead_charges=deadhead.charges,
            platform_fee=rate.platform_fee,
            gst_on_charges=gst_charges,
            gst_on_platform_fee=gst_platform,
            details=FareDetails(
                actual_distance_km=trip.actual_distance_km,
                actual_duration_minutes=trip.actual_duration_minutes,
                per_km_rate=rate.per_km_rate,
                base_km_included=self.base_km_included,
                extra_km=extra_km,
                surge_multiplier=rate.surge_multiplier,
                platform_fee_flat=rate.platform_fee,
                gst_rate_charges=self.tax_rates.charges,
                gst_rate_platform=self.tax_rates.platform_fee,
                minimum_fare=rate.minimum_fare,
                zone_detected=deadhead.zone_detected,
                is_inner_zone=deadhead.is_inner_zone,
            ),
        )


class RentalFarePolicy(FarePolicy):
    booking_type = BookingType.RENTAL

    def __init__(self, vehicle_type: str, package: RentalPackage):
        super().__init__(vehicle_type)
        self.package = package

    def calculate(self, trip: TripMeasurement) -> FareBreakdown:
        pkg = self.package
        extra_km = max(0.0, trip.actual_distance_km - pkg.km_included)
        return FareBreakdown(
            booking_type=self.booking_type,
            vehicle_type=self.vehicle_type,
            base_fare=pkg.base_fare,
            extra_km_charges=_money(extra_km * pkg.extra_km_rate),
            details=FareDetails(
                actual_distance_km=trip.actual_distance_km,
                actual_duration_minutes=trip.actual_duration_minutes,
                per_km_rate=pkg.extra_km_rate,
                base_km_included=pkg.km_included,
                extra_km=extra_km,
                within_allowance=trip.actual_distance_km <= pkg.km_included,
                package_name=pkg.package_name,
            ),
        )


class OutstationFarePolicy(FarePolicy):
    booking_type = BookingType.OUTSTATION

    def __init__(
        self,
        vehicle_type: str,
        rate: OutstationRate,
        started_at: Optional[datetime],
        now: datetime,
    ):
        super().__init__(vehicle_type)
        self.rate = rate
        self.days = elapsed_days(started_at, now)

    def calculate(self, trip: TripMeasurement) -> FareBreakdown:
        rate, days = self.rate, self.days
        travelled = round_trip_km(trip.actual_distance_km)
        allowance_km = rate.daily_km_limit * days
        within = travelled <= allowance_km
        billed_km = allowance_km if within else travelled

        return FareBreakdown(
            booking_type=self.booking_type,
            vehicle_type=self.vehicle_type,
            base_fare=rate.base_fare,
            distance_fare=_money(billed_km * rate.per_km_rate),
            driver_allowance=_money(days * rate.driver_allowance_per_day),
            details=FareDetails(
                actual_distance_km=trip.actual_distance_km,
                actual_duration_minutes=trip.actual_duration_minutes,
                per_km_rate=rate.per_km_rate,
                days_calculated=days,
                daily_km_limit=rate.daily_km_limit,
                within_allowance=within,
                total_km_travelled=travelled,
                km_allowance=allowance_km,
            ),
        )


class AirportFarePolicy(FarePolicy):
    booking_type = BookingType.AIRPORT

    def __init__(self, vehicle_type: str, rate: AirportRate, city_center: Coordinate):
        super().__init__(vehicle_type)
        self.rate = rate
        self.city_center = city_center

    def calculate(self, trip: TripMeasurement) -> FareBreakdown:
        direction = airport_direction(trip.pickup, trip.drop, self.city_center)
        if direction is AirportDirection.CITY_TO_AIRPORT:
            fare = self.rate.city_to_airport_fare
        else:
            fare = self.rate.airport_to_city_fare

        return FareBreakdown(
            booking_type=self.booking_type,
            vehicle_type=self.vehicle_type,
            base_fare=fare,
            details=FareDetails(
                actual_distance_km=trip.actual_distance_km,
                actual_duration_minutes=trip.actual_duration_minutes,
                direction=direction.value,
            ),
        )

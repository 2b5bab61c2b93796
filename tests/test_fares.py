"""Tests for the fare engine service (rates read from the store)."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, update

from ridecore.domain.entities import Coordinate
from ridecore.domain.enums import BookingType
from ridecore.domain.errors import CompletionNotFound, ConfigurationMissing, RideNotFound
from ridecore.infrastructure.models import (
    FareMatrixModel,
    TripCompletionModel,
    ZoneModel,
)
from ridecore.services.fares import FareEngine
from tests.factories import CITY, make_ride, seed_fares

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
AIRPORT = (13.1986, 77.7066)
CENTER = Coordinate(*CITY)


def _engine(session):
    return FareEngine(session, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_regular_fare_is_stored(db_session):
    await seed_fares(db_session)
    ride = await make_ride(db_session)

    fare = await _engine(db_session).calculate_and_store(ride.id, 10, 22, drop=CENTER)

    assert fare.total_fare == 139.9
    assert ride.fare_amount == 139.9
    assert ride.distance_km == 10
    assert ride.duration_minutes == 22

    stored = await _engine(db_session).get_completion(ride.id)
    assert stored.total_fare == 139.9
    assert stored.gst_on_platform_fee == 1.8
    assert stored.fare_breakdown["details"]["zone_detected"] == "Hosur Inner Ring"


@pytest.mark.asyncio
async def test_second_calculation_overwrites(db_session):
    await seed_fares(db_session)
    ride = await make_ride(db_session)
    engine = _engine(db_session)

    await engine.calculate_and_store(ride.id, 10, 22, drop=CENTER)
    fare = await engine.calculate_and_store(ride.id, 20, 40, drop=CENTER)

    count = (
        await db_session.execute(
            select(func.count(TripCompletionModel.id)).where(
                TripCompletionModel.ride_id == ride.id
            )
        )
    ).scalar()
    assert count == 1
    assert (await engine.get_completion(ride.id)).total_fare == fare.total_fare
    assert ride.fare_amount == fare.total_fare


@pytest.mark.asyncio
async def test_drop_outside_inner_zone_pays_deadhead(db_session):
    await seed_fares(db_session)
    ride = await make_ride(db_session, destination=(12.85, 77.824))

    fare = await _engine(db_session).calculate_and_store(ride.id, 12, 30)

    assert fare.deadhead_charges > 0
    assert fare.details.zone_detected == "Outside Inner Zone"


@pytest.mark.asyncio
async def test_zone_changes_apply_to_the_next_call(db_session):
    await seed_fares(db_session)
    ride = await make_ride(db_session, destination=(12.85, 77.824))
    engine = _engine(db_session)

    before = await engine.calculate_and_store(ride.id, 12, 30)
    await db_session.execute(update(ZoneModel).values(is_active=False))
    after = await engine.calculate_and_store(ride.id, 12, 30)

    assert before.deadhead_charges > 0
    assert after.deadhead_charges == 0
    assert after.details.zone_detected == "Unknown"


@pytest.mark.asyncio
async def test_most_recent_matrix_row_wins(db_session):
    await seed_fares(db_session)
    db_session.add(
        FareMatrixModel(
            booking_type=BookingType.REGULAR,
            vehicle_type="sedan",
            base_fare=60.0,
            per_km_rate=12.0,
            platform_fee=10.0,
        )
    )
    await db_session.flush()
    ride = await make_ride(db_session)

    fare = await _engine(db_session).calculate_and_store(ride.id, 2, 5, drop=CENTER)
    assert fare.base_fare == 60.0


@pytest.mark.asyncio
async def test_missing_configuration_is_fatal(db_session):
    await seed_fares(db_session, vehicle_type="sedan")
    ride = await make_ride(db_session, vehicle_type="suv")

    with pytest.raises(ConfigurationMissing, match="suv"):
        await _engine(db_session).calculate_and_store(ride.id, 10, 20)
    assert ride.fare_amount is None


@pytest.mark.asyncio
async def test_inactive_rows_are_ignored(db_session):
    await seed_fares(db_session)
    await db_session.execute(update(FareMatrixModel).values(is_active=False))
    ride = await make_ride(db_session)

    with pytest.raises(ConfigurationMissing):
        await _engine(db_session).calculate_and_store(ride.id, 10, 20)


@pytest.mark.asyncio
async def test_rental_ride(db_session):
    await seed_fares(db_session)
    ride = await make_ride(db_session, booking_type=BookingType.RENTAL, rental_hours=4)

    fare = await _engine(db_session).calculate_and_store(ride.id, 50, 200)

    assert fare.extra_km_charges == 130
    assert fare.total_fare == 1330


@pytest.mark.asyncio
async def test_rental_without_matching_package(db_session):
    await seed_fares(db_session)
    ride = await make_ride(db_session, booking_type=BookingType.RENTAL, rental_hours=12)

    with pytest.raises(ConfigurationMissing, match="12h rental"):
        await _engine(db_session).calculate_and_store(ride.id, 50, 200)


@pytest.mark.asyncio
async def test_outstation_ride_counts_days_from_schedule(db_session):
    await seed_fares(db_session)
    ride = await make_ride(
        db_session,
        booking_type=BookingType.OUTSTATION,
        scheduled_time=NOW - timedelta(hours=30),
    )

    fare = await _engine(db_session).calculate_and_store(ride.id, 200, 900)

    assert fare.details.days_calculated == 2
    assert fare.total_fare == 500 + 600 * 12 + 600


@pytest.mark.asyncio
async def test_airport_ride(db_session):
    await seed_fares(db_session)
    ride = await make_ride(
        db_session, booking_type=BookingType.AIRPORT, pickup=CITY, destination=AIRPORT
    )

    fare = await _engine(db_session).calculate_and_store(ride.id, 52, 70)

    assert fare.total_fare == 1499
    assert fare.details.direction == "city_to_airport"


@pytest.mark.asyncio
async def test_unknown_ride(db_session):
    with pytest.raises(RideNotFound):
        await _engine(db_session).calculate_and_store(999, 1, 1)


@pytest.mark.asyncio
async def test_completion_not_found(db_session):
    ride = await make_ride(db_session)
    with pytest.raises(CompletionNotFound):
        await _engine(db_session).get_completion(ride.id)

"""Tests for the dispatch notifier."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ridecore.domain.enums import RideStatus
from ridecore.domain.errors import RideNotFound
from ridecore.domain.notifications import RideRequestPayload, parse_payload
from ridecore.infrastructure.models import NotificationModel
from ridecore.infrastructure.repositories import NotificationRepository
from ridecore.services.dispatch import DispatchNotifier
from tests.factories import make_driver, make_ride


async def _notification_count(session) -> int:
    return (await session.execute(select(func.count(NotificationModel.id)))).scalar()


async def _two_nearby_sedans(session):
    near = await make_driver(session, lat=12.745, lng=77.824)
    nearer = await make_driver(session, lat=12.741, lng=77.824)
    # not eligible: wrong vehicle, too far, stale
    await make_driver(session, lat=12.745, lng=77.824, vehicle_type="suv")
    await make_driver(session, lat=12.95, lng=77.824)
    await make_driver(session, lat=12.745, lng=77.824, minutes_ago=60)
    return nearer, near


class _FirstSendBreaks(NotificationRepository):
    """Writes a row that violates NOT NULL on the first call only."""

    calls = 0

    async def create(self, **fields):
        self.calls += 1
        if self.calls == 1:
            fields["user_id"] = None
        return await super().create(**fields)


@pytest.mark.asyncio
async def test_notifies_every_eligible_driver(db_session):
    nearer, near = await _two_nearby_sedans(db_session)
    ride = await make_ride(db_session, fare_amount=180.0)

    result = await DispatchNotifier(db_session, delay_seconds=0).notify_for_ride(ride.id)

    assert (result.drivers_found, result.notifications_sent) == (2, 2)
    assert result.status == RideStatus.REQUESTED
    assert ride.dispatched_at is not None

    rows = await NotificationRepository(db_session).list_for_ride(ride.id)
    assert [n.user_id for n in rows] == [nearer.user_id, near.user_id]
    payload = parse_payload(rows[0].data)
    assert isinstance(payload, RideRequestPayload)
    assert payload.ride_id == ride.id
    assert payload.fare_estimate == 180.0
    assert payload.customer_name == "Customer"
    assert payload.distance_to_pickup_km == pytest.approx(0.1, abs=0.05)


@pytest.mark.asyncio
async def test_no_drivers_marks_ride(db_session):
    ride = await make_ride(db_session)

    result = await DispatchNotifier(db_session, delay_seconds=0).notify_for_ride(ride.id)

    assert (result.drivers_found, result.notifications_sent) == (0, 0)
    assert result.status == RideStatus.NO_DRIVERS_AVAILABLE
    assert ride.status == RideStatus.NO_DRIVERS_AVAILABLE


@pytest.mark.asyncio
async def test_ride_no_longer_requested_is_a_no_op(db_session):
    await _two_nearby_sedans(db_session)
    driver = await make_driver(db_session)
    ride = await make_ride(db_session, status=RideStatus.ACCEPTED, driver_id=driver.id)

    result = await DispatchNotifier(db_session, delay_seconds=0).notify_for_ride(ride.id)

    assert (result.drivers_found, result.notifications_sent) == (0, 0)
    assert result.status == RideStatus.ACCEPTED
    assert ride.dispatched_at is None
    assert await _notification_count(db_session) == 0


@pytest.mark.asyncio
async def test_missing_ride(db_session):
    with pytest.raises(RideNotFound):
        await DispatchNotifier(db_session).notify_for_ride(404)


@pytest.mark.asyncio
async def test_every_send_failing_marks_no_drivers(db_session):
    await _two_nearby_sedans(db_session)
    ride = await make_ride(db_session)
    sink = AsyncMock()
    sink.create = AsyncMock(side_effect=SQLAlchemyError("sink down"))

    result = await DispatchNotifier(db_session, sink=sink, delay_seconds=0).notify_for_ride(
        ride.id
    )

    assert (result.drivers_found, result.notifications_sent) == (2, 0)
    assert result.status == RideStatus.NO_DRIVERS_AVAILABLE
    assert sink.create.await_count == 2


@pytest.mark.asyncio
async def test_partial_failure_keeps_going(db_session):
    await _two_nearby_sedans(db_session)
    ride = await make_ride(db_session)
    sink = _FirstSendBreaks(db_session)

    result = await DispatchNotifier(db_session, sink=sink, delay_seconds=0).notify_for_ride(
        ride.id
    )

    assert (result.drivers_found, result.notifications_sent) == (2, 1)
    assert result.status == RideStatus.REQUESTED
    # the failed insert was rolled back to its savepoint only
    assert await _notification_count(db_session) == 1


@pytest.mark.asyncio
async def test_delay_between_sends(db_session):
    await _two_nearby_sedans(db_session)
    ride = await make_ride(db_session)

    with patch("ridecore.services.dispatch.asyncio.sleep", new=AsyncMock()) as sleep:
        await DispatchNotifier(db_session, delay_seconds=0.1).notify_for_ride(ride.id)

    sleep.assert_awaited_once_with(0.1)

"""
Integration tests for the REST API endpoints.

The app runs against the in-memory SQLite database: ``get_db`` is
overridden and the background sweeper's start/stop hooks are patched out.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ridecore.api.middleware import limiter
from tests.factories import CITY, TestSessionFactory, make_driver, make_user, seed_fares


@pytest_asyncio.fixture
async def client(db_session):
    """AsyncClient backed by SQLite; sweeper disabled."""
    with (
        patch(
            "ridecore.workers.dispatcher.start_dispatch_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "ridecore.workers.dispatcher.stop_dispatch_loop",
            new_callable=AsyncMock,
        ),
        patch("ridecore.services.dispatch.asyncio.sleep", new=AsyncMock()),
    ):
        from ridecore.api.app import create_app
        from ridecore.api.dependencies import get_db

        app = create_app()

        async def _test_db():
            async with TestSessionFactory() as session:
                async with session.begin():
                    yield session

        app.dependency_overrides[get_db] = _test_db
        limiter.reset()

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest_asyncio.fixture
async def world(db_session):
    """A customer, two nearby sedan drivers and fare configuration."""
    customer = await make_user(db_session, name="Priya Patel")
    near = await make_driver(db_session, lat=12.745, lng=77.824)
    far = await make_driver(db_session, lat=12.80, lng=77.824)
    await seed_fares(db_session)
    await db_session.commit()
    return {"customer": customer.id, "near": near, "far": far}


def _ride_body(customer_id, **overrides):
    body = {
        "customer_id": customer_id,
        "pickup_latitude": CITY[0],
        "pickup_longitude": CITY[1],
        "pickup_address": "Hosur Bus Stand",
        "destination_latitude": CITY[0],
        "destination_longitude": CITY[1],
        "destination_address": "Hosur Bus Stand",
        "vehicle_type": "sedan",
    }
    body.update(overrides)
    return body


async def _create(client, customer_id, **overrides):
    resp = await client.post("/api/v1/rides", json=_ride_body(customer_id, **overrides))
    assert resp.status_code == 202
    return resp.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_ride_returns_202(client: AsyncClient, world):
    data = await _create(client, world["customer"])
    assert data["status"] == "requested"
    assert data["ride_code"].startswith("RC")
    assert data["driver_id"] is None


@pytest.mark.asyncio
async def test_create_ride_for_unknown_customer(client: AsyncClient):
    resp = await client.post("/api/v1/rides", json=_ride_body(12345))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_ride_validates_coordinates(client: AsyncClient, world):
    resp = await client.post(
        "/api/v1/rides", json=_ride_body(world["customer"], pickup_latitude=123.0)
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_idempotency_key(client: AsyncClient, world):
    first = await _create(client, world["customer"], idempotency_key="retry-1")
    second = await _create(client, world["customer"], idempotency_key="retry-1")
    assert first["id"] == second["id"]


@pytest.mark.asyncio
async def test_get_ride_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/rides/99999")
    assert resp.status_code == 404
    assert "99999" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_nearby_drivers(client: AsyncClient, world):
    resp = await client.post(
        "/api/v1/drivers/nearby",
        json={"latitude": CITY[0], "longitude": CITY[1], "radius_km": 10},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert [d["driver_id"] for d in data] == [world["near"].id, world["far"].id]
    assert data[0]["eta_minutes"] == round(data[0]["distance_km"] * 3)


@pytest.mark.asyncio
async def test_dispatch_then_driver_feed(client: AsyncClient, world):
    ride = await _create(client, world["customer"])

    resp = await client.post(f"/api/v1/rides/{ride['id']}/dispatch")
    assert resp.status_code == 200
    assert resp.json()["notifications_sent"] == 2

    feed = await client.get(f"/api/v1/drivers/{world['near'].id}/notifications")
    assert feed.status_code == 200
    (notice,) = feed.json()
    assert notice["data"]["kind"] == "ride_request"
    assert notice["data"]["ride_id"] == ride["id"]

    again = await client.post(f"/api/v1/rides/{ride['id']}/dispatch")
    assert again.json()["notifications_sent"] == 2  # still requested


@pytest.mark.asyncio
async def test_accept_conflict_returns_409(client: AsyncClient, world):
    ride = await _create(client, world["customer"])

    won = await client.post(
        f"/api/v1/rides/{ride['id']}/accept", json={"driver_id": world["near"].id}
    )
    lost = await client.post(
        f"/api/v1/rides/{ride['id']}/accept", json={"driver_id": world["far"].id}
    )

    assert won.status_code == 200
    assert won.json()["status"] == "accepted"
    assert lost.status_code == 409


@pytest.mark.asyncio
async def test_trip_flow_over_http(client: AsyncClient, world):
    ride = await _create(client, world["customer"])
    rid, did = ride["id"], world["near"].id

    await client.post(f"/api/v1/rides/{rid}/accept", json={"driver_id": did})
    assert (await client.post(f"/api/v1/rides/{rid}/arrive", json={"driver_id": did})).status_code == 200

    otp = (await client.post(f"/api/v1/rides/{rid}/pickup-otp")).json()["otp"]
    bad = await client.post(
        f"/api/v1/rides/{rid}/verify-pickup",
        json={"driver_id": did, "otp": "0000" if otp != "0000" else "1111"},
    )
    assert bad.status_code == 400

    ok = await client.post(
        f"/api/v1/rides/{rid}/verify-pickup", json={"driver_id": did, "otp": otp}
    )
    assert ok.json()["status"] == "in_progress"

    done = await client.post(
        f"/api/v1/rides/{rid}/complete",
        json={"driver_id": did, "actual_distance_km": 10, "actual_duration_minutes": 22},
    )
    assert done.status_code == 200
    assert done.json()["fare"]["total_fare"] == 139.9
    assert done.json()["ride"]["status"] == "completed"

    stored = await client.get(f"/api/v1/rides/{rid}/fare")
    assert stored.json()["total_fare"] == 139.9


@pytest.mark.asyncio
async def test_fare_endpoint_reports_missing_configuration(client: AsyncClient, world):
    ride = await _create(client, world["customer"], vehicle_type="suv")
    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/fare",
        json={"actual_distance_km": 10, "actual_duration_minutes": 20},
    )
    assert resp.status_code == 500
    assert "suv" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_cancel_twice_fails(client: AsyncClient, world):
    ride = await _create(client, world["customer"])
    first = await client.patch(
        f"/api/v1/rides/{ride['id']}/cancel", json={"reason": "plans changed"}
    )
    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"

    second = await client.patch(f"/api/v1/rides/{ride['id']}/cancel")
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_driver_location_and_status(client: AsyncClient, world):
    did = world["far"].id
    resp = await client.post(
        f"/api/v1/drivers/{did}/location", json={"latitude": 12.741, "longitude": 77.824}
    )
    assert resp.status_code == 201
    assert resp.json()["h3_cell"]

    resp = await client.patch(f"/api/v1/drivers/{did}/status", json={"status": "offline"})
    assert resp.json()["status"] == "offline"

    resp = await client.patch(f"/api/v1/drivers/{did}/status", json={"status": "busy"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_open_rides_for_driver(client: AsyncClient, world):
    ride = await _create(client, world["customer"])
    resp = await client.get(
        f"/api/v1/drivers/{world['near'].id}/open-rides",
        params={"latitude": 12.745, "longitude": 77.824},
    )
    assert resp.status_code == 200
    assert [o["ride"]["id"] for o in resp.json()] == [ride["id"]]


@pytest.mark.asyncio
async def test_pending_reconciliation_listing(client: AsyncClient, world):
    resp = await client.get("/api/v1/admin/pending-reconciliation")
    assert resp.status_code == 200
    assert resp.json() == []

"""
Driver endpoints
================

POST  /api/v1/drivers/nearby                      -- ranked nearby drivers
POST  /api/v1/drivers/{driver_id}/location        -- report a location sample
PATCH /api/v1/drivers/{driver_id}/status          -- go online / offline
GET   /api/v1/drivers/{driver_id}/open-rides      -- unassigned rides nearby
GET   /api/v1/drivers/{driver_id}/notifications   -- ride-request feed
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.api.dependencies import get_db
from ridecore.api.middleware import limiter
from ridecore.api.schemas import (
    DriverResponse,
    DriverStatusRequest,
    LocationSampleResponse,
    LocationUpdateRequest,
    NearbyDriverResponse,
    NearbyDriversRequest,
    NotificationResponse,
    OpenRideResponse,
    RideResponse,
)
from ridecore.config import settings
from ridecore.domain.entities import Coordinate
from ridecore.domain.enums import DriverStatus
from ridecore.domain.errors import DriverNotFound
from ridecore.domain.notifications import parse_payload
from ridecore.infrastructure.models import DriverModel
from ridecore.infrastructure.repositories import (
    DriverRepository,
    NotificationRepository,
)
from ridecore.services.locality import DriverLocality

router = APIRouter(prefix="/drivers", tags=["drivers"])


async def _driver_or_404(db: AsyncSession, driver_id: int) -> DriverModel:
    driver = await DriverRepository(db).get_by_id(driver_id)
    if driver is None:
        raise DriverNotFound(driver_id)
    return driver


@router.post(
    "/nearby",
    response_model=list[NearbyDriverResponse],
    summary="Find live drivers near a point, nearest first",
)
@limiter.limit(settings.rate_limit)
async def find_nearby_drivers(
    request: Request,
    body: NearbyDriversRequest,
    db: AsyncSession = Depends(get_db),
):
    drivers = await DriverLocality(db).find_nearby(
        Coordinate(body.latitude, body.longitude),
        vehicle_type=body.vehicle_type,
        radius_km=body.radius_km,
        recency_minutes=body.recency_minutes,
    )
    return [
        NearbyDriverResponse(
            driver_id=d.driver_id,
            user_id=d.user_id,
            name=d.name,
            phone=d.phone,
            rating=d.rating,
            vehicle_type=d.vehicle_type,
            registration_number=d.registration_number,
            latitude=d.location.latitude,
            longitude=d.location.longitude,
            location_updated_at=d.location_updated_at,
            distance_km=d.distance_km,
            eta_minutes=d.eta_minutes,
        )
        for d in drivers
    ]


@router.post(
    "/{driver_id}/location",
    status_code=201,
    response_model=LocationSampleResponse,
)
@limiter.limit(settings.rate_limit)
async def record_location(
    request: Request,
    driver_id: int,
    body: LocationUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await DriverLocality(db).record_location(
        driver_id,
        Coordinate(body.latitude, body.longitude),
        heading=body.heading,
        speed=body.speed,
        accuracy=body.accuracy,
        captured_at=body.captured_at,
    )


@router.patch("/{driver_id}/status", response_model=DriverResponse)
@limiter.limit(settings.rate_limit)
async def set_driver_status(
    request: Request,
    driver_id: int,
    body: DriverStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    repo = DriverRepository(db)
    if not await repo.set_status(driver_id, DriverStatus(body.status)):
        raise DriverNotFound(driver_id)
    return await db.get(DriverModel, driver_id, populate_existing=True)


@router.get("/{driver_id}/open-rides", response_model=list[OpenRideResponse])
@limiter.limit(settings.rate_limit)
async def open_rides(
    request: Request,
    driver_id: int,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=100),
    db: AsyncSession = Depends(get_db),
):
    await _driver_or_404(db, driver_id)
    found = await DriverLocality(db).find_open_rides(
        Coordinate(latitude, longitude), radius_km
    )
    return [
        OpenRideResponse(
            ride=RideResponse.model_validate(o.ride), distance_km=o.distance_km
        )
        for o in found
    ]


@router.get("/{driver_id}/notifications", response_model=list[NotificationResponse])
@limiter.limit(settings.rate_limit)
async def driver_notifications(
    request: Request,
    driver_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    driver = await _driver_or_404(db, driver_id)
    rows = await NotificationRepository(db).list_for_user(driver.user_id, limit)
    return [
        NotificationResponse(
            id=n.id,
            type=n.type,
            title=n.title,
            message=n.message,
            status=n.status,
            ride_id=n.ride_id,
            created_at=n.created_at,
            data=parse_payload(n.data),
        )
        for n in rows
    ]

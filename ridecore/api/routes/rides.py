"""
Ride endpoints
==============

POST  /api/v1/rides                          -- create a ride request (202)
GET   /api/v1/rides/{ride_id}                -- read a ride
POST  /api/v1/rides/{ride_id}/dispatch       -- notify nearby drivers now
POST  /api/v1/rides/{ride_id}/accept         -- driver accepts (409 if taken)
POST  /api/v1/rides/{ride_id}/arrive         -- driver reached the pickup
POST  /api/v1/rides/{ride_id}/pickup-otp     -- issue the pickup code
POST  /api/v1/rides/{ride_id}/verify-pickup  -- check the code, start the trip
POST  /api/v1/rides/{ride_id}/complete       -- finish the trip and price it
POST  /api/v1/rides/{ride_id}/fare           -- (re)calculate and store the fare
GET   /api/v1/rides/{ride_id}/fare           -- stored fare breakdown
PATCH /api/v1/rides/{ride_id}/cancel         -- cancel a ride
"""

import secrets

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.api.dependencies import get_db
from ridecore.api.middleware import limiter
from ridecore.api.schemas import (
    AcceptRequest,
    CancelRequest,
    CompletedRideResponse,
    CompleteRideRequest,
    DispatchResponse,
    DriverActionRequest,
    FareBreakdownResponse,
    PickupOtpResponse,
    Point,
    RideCreateRequest,
    RideResponse,
    TripCompletionResponse,
    TripMeasurementRequest,
    VerifyPickupRequest,
)
from ridecore.config import settings
from ridecore.domain.entities import Coordinate
from ridecore.domain.errors import NotFound, RideNotFound
from ridecore.infrastructure.repositories import RideRepository, UserRepository
from ridecore.services.acceptance import Conflict, RideAcceptance
from ridecore.services.dispatch import DispatchNotifier
from ridecore.services.fares import FareEngine
from ridecore.services.lifecycle import RideLifecycle

router = APIRouter(prefix="/rides", tags=["rides"])


def _coordinate(point: Point | None) -> Coordinate | None:
    if point is None:
        return None
    return Coordinate(point.latitude, point.longitude)


@router.post(
    "",
    status_code=202,
    response_model=RideResponse,
    summary="Create a ride request",
    responses={202: {"description": "Ride request accepted; dispatch is async."}},
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    repo = RideRepository(db)

    # ── Idempotency guard ─────────────────────────────────────────
    if body.idempotency_key:
        existing = await repo.get_by_idempotency_key(body.idempotency_key)
        if existing:
            return existing

    if await UserRepository(db).get_by_id(body.customer_id) is None:
        raise NotFound(f"Customer {body.customer_id} not found")

    return await repo.create_ride(
        ride_code=f"RC{secrets.token_hex(4).upper()}",
        customer_id=body.customer_id,
        pickup_latitude=body.pickup_latitude,
        pickup_longitude=body.pickup_longitude,
        pickup_address=body.pickup_address,
        destination_latitude=body.destination_latitude,
        destination_longitude=body.destination_longitude,
        destination_address=body.destination_address,
        booking_type=body.booking_type,
        vehicle_type=body.vehicle_type,
        rental_hours=body.rental_hours,
        scheduled_time=body.scheduled_time,
        fare_amount=body.fare_estimate,
        idempotency_key=body.idempotency_key,
    )


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if not ride:
        raise RideNotFound(ride_id)
    return ride


@router.post(
    "/{ride_id}/dispatch",
    response_model=DispatchResponse,
    summary="Notify every eligible driver near the pickup",
)
@limiter.limit(settings.rate_limit)
async def dispatch_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await DispatchNotifier(db).notify_for_ride(ride_id)


@router.post(
    "/{ride_id}/accept",
    response_model=RideResponse,
    summary="Accept a ride as a driver",
    responses={409: {"description": "Another driver accepted first."}},
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int,
    body: AcceptRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await RideAcceptance(db).accept(ride_id, body.driver_id)
    if isinstance(result, Conflict):
        raise HTTPException(status_code=409, detail=result.reason)
    return result


@router.post("/{ride_id}/arrive", response_model=RideResponse)
@limiter.limit(settings.rate_limit)
async def driver_arrived(
    request: Request,
    ride_id: int,
    body: DriverActionRequest,
    db: AsyncSession = Depends(get_db),
):
    return await RideLifecycle(db).mark_arrived(ride_id, body.driver_id)


@router.post("/{ride_id}/pickup-otp", response_model=PickupOtpResponse)
@limiter.limit(settings.rate_limit)
async def issue_pickup_otp(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    otp = await RideLifecycle(db).issue_pickup_otp(ride_id)
    return PickupOtpResponse(ride_id=ride_id, otp=otp)


@router.post("/{ride_id}/verify-pickup", response_model=RideResponse)
@limiter.limit(settings.rate_limit)
async def verify_pickup(
    request: Request,
    ride_id: int,
    body: VerifyPickupRequest,
    db: AsyncSession = Depends(get_db),
):
    return await RideLifecycle(db).verify_pickup(ride_id, body.driver_id, body.otp)


@router.post(
    "/{ride_id}/complete",
    response_model=CompletedRideResponse,
    summary="Finish the trip and compute its fare",
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    body: CompleteRideRequest,
    db: AsyncSession = Depends(get_db),
):
    trip = await RideLifecycle(db).complete(
        ride_id,
        body.driver_id,
        body.actual_distance_km,
        body.actual_duration_minutes,
        drop=_coordinate(body.drop),
    )
    return CompletedRideResponse(
        ride=RideResponse.model_validate(trip.ride),
        fare=FareBreakdownResponse(**trip.fare.as_dict()),
    )


@router.post(
    "/{ride_id}/fare",
    response_model=FareBreakdownResponse,
    summary="Calculate and store the fare for measured trip data",
)
@limiter.limit(settings.rate_limit)
async def calculate_fare(
    request: Request,
    ride_id: int,
    body: TripMeasurementRequest,
    db: AsyncSession = Depends(get_db),
):
    breakdown = await FareEngine(db).calculate_and_store(
        ride_id,
        body.actual_distance_km,
        body.actual_duration_minutes,
        pickup=_coordinate(body.pickup),
        drop=_coordinate(body.drop),
    )
    return FareBreakdownResponse(**breakdown.as_dict())


@router.get("/{ride_id}/fare", response_model=TripCompletionResponse)
@limiter.limit(settings.rate_limit)
async def get_fare(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await FareEngine(db).get_completion(ride_id)


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Moves a ride that has not started yet to CANCELLED.  An assigned "
        "driver goes back online."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: CancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    reason = body.reason if body else None
    return await RideLifecycle(db).cancel(ride_id, reason)

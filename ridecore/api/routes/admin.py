"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health                     -- simple health check
GET  /api/v1/admin/pending-reconciliation     -- accepted rides whose driver
                                                 status flip is unconfirmed
POST /api/v1/admin/rides/{ride_id}/reconcile  -- retry that flip now
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridecore.api.dependencies import get_db
from ridecore.api.middleware import limiter
from ridecore.api.schemas import HealthResponse, RideResponse
from ridecore.config import settings
from ridecore.infrastructure.repositories import RideRepository
from ridecore.services.acceptance import RideAcceptance

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/pending-reconciliation",
    response_model=list[RideResponse],
    summary="Rides whose driver is not yet marked busy",
)
@limiter.limit(settings.rate_limit)
async def pending_reconciliation(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).get_pending_reconciliation()


@router.post(
    "/rides/{ride_id}/reconcile",
    response_model=RideResponse,
    summary="Retry the driver status flip for an accepted ride",
)
@limiter.limit(settings.rate_limit)
async def reconcile_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await RideAcceptance(db).reconcile(ride_id)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()

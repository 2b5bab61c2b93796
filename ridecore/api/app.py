"""
FastAPI application factory.

* Registers routes for rides, drivers and admin.
* Starts / stops the background dispatch sweeper via lifespan events.
* Maps domain errors to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridecore.api.middleware import limiter
from ridecore.api.routes import admin, drivers, rides
from ridecore.domain.errors import (
    ConfigurationMissing,
    InvalidOtp,
    InvalidStateTransition,
    NotFound,
)
from ridecore.infrastructure.redis_client import close_redis
from ridecore.workers import dispatcher as _dispatcher

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the dispatch sweeper on startup; stop on shutdown."""
    await _dispatcher.start_dispatch_loop()
    yield
    await _dispatcher.stop_dispatch_loop()
    await close_redis()


async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _configuration_missing(
    request: Request, exc: ConfigurationMissing
) -> JSONResponse:
    logger.error("Fare configuration missing: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


async def _invalid_transition(
    request: Request, exc: InvalidStateTransition
) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _invalid_otp(request: Request, exc: InvalidOtp) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(
        title="RideCore Dispatch & Fare API",
        description=(
            "Matches ride requests to live nearby drivers, fans out "
            "ride-request notifications, arbitrates concurrent acceptance "
            "and prices completed trips for regular, rental, outstation "
            "and airport bookings."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(NotFound, _not_found)
    app.add_exception_handler(ConfigurationMissing, _configuration_missing)
    app.add_exception_handler(InvalidStateTransition, _invalid_transition)
    app.add_exception_handler(InvalidOtp, _invalid_otp)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app

"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from ridecore.domain.enums import BookingType, DriverStatus, RideStatus
from ridecore.domain.notifications import RideCompletedPayload, RideRequestPayload


# ── Requests ──────────────────────────────────────────────────────────


class Point(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class RideCreateRequest(BaseModel):
    customer_id: int
    pickup_latitude: float = Field(..., ge=-90, le=90)
    pickup_longitude: float = Field(..., ge=-180, le=180)
    pickup_address: str = Field(..., max_length=255)
    destination_latitude: float = Field(..., ge=-90, le=90)
    destination_longitude: float = Field(..., ge=-180, le=180)
    destination_address: str = Field(..., max_length=255)
    booking_type: BookingType = BookingType.REGULAR
    vehicle_type: str = Field("sedan", max_length=20)
    rental_hours: Optional[int] = Field(None, ge=1, le=24)
    scheduled_time: Optional[datetime] = None
    fare_estimate: Optional[float] = Field(None, ge=0)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )


class AcceptRequest(BaseModel):
    driver_id: int


class DriverActionRequest(BaseModel):
    driver_id: int


class VerifyPickupRequest(BaseModel):
    driver_id: int
    otp: str = Field(..., min_length=4, max_length=6)


class TripMeasurementRequest(BaseModel):
    actual_distance_km: float = Field(..., ge=0)
    actual_duration_minutes: float = Field(..., ge=0)
    pickup: Optional[Point] = None
    drop: Optional[Point] = None


class CompleteRideRequest(TripMeasurementRequest):
    driver_id: int


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class NearbyDriversRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    vehicle_type: str = Field("any", max_length=20)
    radius_km: Optional[float] = Field(None, gt=0, le=100)
    recency_minutes: Optional[float] = Field(None, gt=0)


class LocationUpdateRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    heading: Optional[float] = Field(None, ge=0, lt=360)
    speed: Optional[float] = Field(None, ge=0)
    accuracy: Optional[float] = Field(None, ge=0)
    captured_at: Optional[datetime] = None


class DriverStatusRequest(BaseModel):
    status: Literal["online", "offline"]


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    ride_code: Optional[str] = None
    customer_id: int
    driver_id: Optional[int] = None
    pickup_latitude: float
    pickup_longitude: float
    pickup_address: str
    destination_latitude: float
    destination_longitude: float
    destination_address: str
    booking_type: BookingType
    vehicle_type: str
    rental_hours: Optional[int] = None
    scheduled_time: Optional[datetime] = None
    status: RideStatus
    fare_amount: Optional[float] = None
    distance_km: Optional[float] = None
    duration_minutes: Optional[float] = None
    cancellation_reason: Optional[str] = None
    driver_status_pending: bool = False
    dispatched_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DispatchResponse(BaseModel):
    ride_id: int
    drivers_found: int
    notifications_sent: int
    status: RideStatus

    model_config = {"from_attributes": True}


class PickupOtpResponse(BaseModel):
    ride_id: int
    otp: str


class FareBreakdownResponse(BaseModel):
    booking_type: BookingType
    vehicle_type: str
    base_fare: float
    distance_fare: float
    time_fare: float
    surge_charges: float
    deadhead_charges: float
    platform_fee: float
    gst_on_charges: float
    gst_on_platform_fee: float
    extra_km_charges: float
    driver_allowance: float
    total_fare: float
    details: dict


class TripCompletionResponse(BaseModel):
    ride_id: int
    total_fare: float
    fare_breakdown: dict
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CompletedRideResponse(BaseModel):
    ride: RideResponse
    fare: FareBreakdownResponse


class NearbyDriverResponse(BaseModel):
    driver_id: int
    user_id: int
    name: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    vehicle_type: Optional[str] = None
    registration_number: Optional[str] = None
    latitude: float
    longitude: float
    location_updated_at: datetime
    distance_km: float
    eta_minutes: int


class LocationSampleResponse(BaseModel):
    id: int
    user_id: int
    latitude: float
    longitude: float
    h3_cell: Optional[str] = None
    captured_at: datetime

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    id: int
    user_id: int
    status: DriverStatus
    is_verified: bool
    rating: Optional[float] = None
    total_rides: int

    model_config = {"from_attributes": True}


class OpenRideResponse(BaseModel):
    ride: RideResponse
    distance_km: float


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    status: str
    ride_id: Optional[int] = None
    created_at: Optional[datetime] = None
    data: Union[RideRequestPayload, RideCompletedPayload] = Field(
        ..., discriminator="kind"
    )


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str

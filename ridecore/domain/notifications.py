"""
Typed notification payloads.

The ``data`` column of a notification row holds one of these records,
tagged by ``kind``.  The dispatch notifier writes them and the driver
notification feed reads them back through ``parse_payload``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .enums import BookingType


class RideRequestPayload(BaseModel):
    kind: Literal["ride_request"] = "ride_request"
    ride_id: int
    ride_code: Optional[str] = None
    booking_type: BookingType
    vehicle_type: str
    pickup_latitude: float
    pickup_longitude: float
    pickup_address: str
    destination_latitude: float
    destination_longitude: float
    destination_address: str
    fare_estimate: Optional[float] = None
    customer_id: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    distance_to_pickup_km: float
    sent_at: datetime


class RideCompletedPayload(BaseModel):
    kind: Literal["ride_completed"] = "ride_completed"
    ride_id: int
    ride_code: Optional[str] = None
    total_fare: float
    distance_km: float
    duration_minutes: float
    completed_at: datetime


NotificationPayload = Annotated[
    Union[RideRequestPayload, RideCompletedPayload],
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter[NotificationPayload] = TypeAdapter(NotificationPayload)


def parse_payload(data: dict) -> RideRequestPayload | RideCompletedPayload:
    return _payload_adapter.validate_python(data)

"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (REQUESTED -> ACCEPTED -> DRIVER_ARRIVED -> IN_PROGRESS -> COMPLETED,
  with CANCELLED / NO_DRIVERS_AVAILABLE as side exits).
- ``Coordinate`` and ``Zone`` are immutable value objects shared by the
  locality search, the zone resolver and the fare engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import (
    RIDE_TRANSITIONS,
    BookingType,
    RideStatus,
    ZoneRole,
)
from .errors import InvalidStateTransition


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Zone:
    name: str
    center: Coordinate
    radius_km: float
    role: Optional[ZoneRole] = None
    is_active: bool = True


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[int] = None
    customer_id: int = 0
    driver_id: Optional[int] = None
    pickup: Coordinate = field(default_factory=lambda: Coordinate(0, 0))
    destination: Coordinate = field(default_factory=lambda: Coordinate(0, 0))
    booking_type: BookingType = BookingType.REGULAR
    vehicle_type: str = "sedan"
    status: RideStatus = RideStatus.REQUESTED
    fare_amount: Optional[float] = None
    scheduled_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def can_transition_to(self, new_status: RideStatus) -> bool:
        return new_status in RIDE_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status


@dataclass
class LocationSample:
    owner_id: int
    position: Coordinate
    captured_at: datetime
    heading: Optional[float] = None
    speed: Optional[float] = None
    accuracy: Optional[float] = None


@dataclass
class DriverCandidate:
    """An online, verified driver as seen by the locality search."""

    driver_id: int
    user_id: int
    vehicle_type: Optional[str]
    name: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    registration_number: Optional[str] = None


@dataclass(frozen=True)
class NearbyDriver:
    driver_id: int
    user_id: int
    name: Optional[str]
    phone: Optional[str]
    rating: Optional[float]
    vehicle_type: Optional[str]
    registration_number: Optional[str]
    location: Coordinate
    location_updated_at: datetime
    distance_km: float
    eta_minutes: int

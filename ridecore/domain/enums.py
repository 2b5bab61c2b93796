"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    DRIVER_ARRIVED = "driver_arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_DRIVERS_AVAILABLE = "no_drivers_available"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.REQUESTED: {
        RideStatus.ACCEPTED,
        RideStatus.NO_DRIVERS_AVAILABLE,
        RideStatus.CANCELLED,
    },
    RideStatus.ACCEPTED: {RideStatus.DRIVER_ARRIVED, RideStatus.CANCELLED},
    RideStatus.DRIVER_ARRIVED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.NO_DRIVERS_AVAILABLE: {RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}


class DriverStatus(str, enum.Enum):
    OFFLINE = "offline"
    ONLINE = "online"
    BUSY = "busy"
    SUSPENDED = "suspended"


class BookingType(str, enum.Enum):
    REGULAR = "regular"
    RENTAL = "rental"
    OUTSTATION = "outstation"
    AIRPORT = "airport"


class VehicleType(str, enum.Enum):
    HATCHBACK = "hatchback"
    SEDAN = "sedan"
    SUV = "suv"


# Vehicle filter accepted by the locality search in place of a VehicleType
ANY_VEHICLE = "any"


class ZoneRole(str, enum.Enum):
    INNER = "inner"
    OUTER = "outer"


class AirportDirection(str, enum.Enum):
    CITY_TO_AIRPORT = "city_to_airport"
    AIRPORT_TO_CITY = "airport_to_city"


class NotificationType(str, enum.Enum):
    RIDE_REQUEST = "ride_request"
    RIDE_COMPLETED = "ride_completed"

"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``            -- customers and drivers (contact details)
* ``vehicles``         -- registered vehicles and their type
* ``drivers``          -- dispatch status, verification, assigned vehicle
* ``live_locations``   -- location samples reported by driver devices
* ``rides``            -- ride requests and their lifecycle
* ``notifications``    -- per-recipient notification records (typed JSON data)
* ``zones``            -- circular service zones (deadhead computation)
* ``fare_matrix``      -- regular-ride rates per (booking_type, vehicle_type)
* ``rental_fares``     -- hourly rental packages
* ``outstation_fares`` -- multi-day outstation rates
* ``airport_fares``    -- flat airport-transfer fares
* ``trip_completions`` -- one fare breakdown per completed ride

Indexes
-------
* **B-Tree** on ``drivers.status``, ``rides.status``, ``live_locations``
  (user_id, captured_at) and ``live_locations.h3_cell`` for the dispatch
  queries.
* **Unique** on ``trip_completions.ride_id`` -- the fare upsert key.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from ridecore.domain.enums import BookingType, DriverStatus, RideStatus, ZoneRole


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone_number = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_number = Column(String(20), unique=True, nullable=False)
    make = Column(String(60), nullable=True)
    model = Column(String(60), nullable=True)
    color = Column(String(30), nullable=True)
    vehicle_type = Column(String(20), nullable=False)
    capacity = Column(Integer, default=4, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    license_number = Column(String(40), nullable=True)
    status = Column(Enum(DriverStatus), default=DriverStatus.OFFLINE, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    rating = Column(Float, default=5.0)
    total_rides = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_drivers_status", "status", "is_verified"),
    )


class LocationSampleModel(Base):
    __tablename__ = "live_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    heading = Column(Float, nullable=True)
    speed = Column(Float, nullable=True)
    accuracy = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)
    captured_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_live_locations_owner", "user_id", "captured_at"),
        Index("idx_live_locations_cell", "h3_cell"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_code = Column(String(12), unique=True, nullable=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)

    pickup_latitude = Column(Float, nullable=False)
    pickup_longitude = Column(Float, nullable=False)
    pickup_address = Column(String(255), nullable=False)
    destination_latitude = Column(Float, nullable=False)
    destination_longitude = Column(Float, nullable=False)
    destination_address = Column(String(255), nullable=False)

    booking_type = Column(Enum(BookingType), default=BookingType.REGULAR, nullable=False)
    vehicle_type = Column(String(20), nullable=False)
    rental_hours = Column(Integer, nullable=True)
    scheduled_time = Column(DateTime(timezone=True), nullable=True)

    status = Column(Enum(RideStatus), default=RideStatus.REQUESTED, nullable=False)
    fare_amount = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)
    duration_minutes = Column(Float, nullable=True)
    pickup_otp = Column(String(6), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    idempotency_key = Column(String(64), unique=True, nullable=True)

    # Dispatch bookkeeping
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    # Set while the accepting driver's status flip to BUSY is unconfirmed
    driver_status_pending = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_customer", "customer_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_idempotency", "idempotency_key"),
    )


class NotificationModel(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    type = Column(String(30), nullable=False)
    title = Column(String(120), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(10), default="unread", nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "status"),
    )


class ZoneModel(Base):
    __tablename__ = "zones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    role = Column(Enum(ZoneRole), nullable=True)
    city = Column(String(60), nullable=True)
    center_latitude = Column(Float, nullable=False)
    center_longitude = Column(Float, nullable=False)
    radius_km = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class FareMatrixModel(Base):
    __tablename__ = "fare_matrix"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_type = Column(Enum(BookingType), nullable=False)
    vehicle_type = Column(String(20), nullable=False)
    base_fare = Column(Float, nullable=False)
    per_km_rate = Column(Float, nullable=False)
    minimum_fare = Column(Float, default=0.0, nullable=False)
    surge_multiplier = Column(Float, default=1.0, nullable=False)
    platform_fee = Column(Float, default=0.0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_fare_matrix_lookup", "booking_type", "vehicle_type", "is_active"),
    )


class RentalFareModel(Base):
    __tablename__ = "rental_fares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_type = Column(String(20), nullable=False)
    package_name = Column(String(60), nullable=False)
    duration_hours = Column(Integer, nullable=False)
    km_included = Column(Float, nullable=False)
    base_fare = Column(Float, nullable=False)
    extra_km_rate = Column(Float, nullable=False)
    is_popular = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OutstationFareModel(Base):
    __tablename__ = "outstation_fares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_type = Column(String(20), nullable=False)
    base_fare = Column(Float, nullable=False)
    per_km_rate = Column(Float, nullable=False)
    driver_allowance_per_day = Column(Float, nullable=False)
    daily_km_limit = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AirportFareModel(Base):
    __tablename__ = "airport_fares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_type = Column(String(20), nullable=False)
    city_to_airport_fare = Column(Float, nullable=False)
    airport_to_city_fare = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TripCompletionModel(Base):
    __tablename__ = "trip_completions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), unique=True, nullable=False)
    booking_type = Column(Enum(BookingType), nullable=False)
    vehicle_type = Column(String(20), nullable=False)
    actual_distance_km = Column(Float, nullable=False)
    actual_duration_minutes = Column(Float, nullable=False)
    base_fare = Column(Float, default=0.0, nullable=False)
    distance_fare = Column(Float, default=0.0, nullable=False)
    time_fare = Column(Float, default=0.0, nullable=False)
    surge_charges = Column(Float, default=0.0, nullable=False)
    deadhead_charges = Column(Float, default=0.0, nullable=False)
    platform_fee = Column(Float, default=0.0, nullable=False)
    gst_on_charges = Column(Float, default=0.0, nullable=False)
    gst_on_platform_fee = Column(Float, default=0.0, nullable=False)
    extra_km_charges = Column(Float, default=0.0, nullable=False)
    driver_allowance = Column(Float, default=0.0, nullable=False)
    total_fare = Column(Float, nullable=False)
    fare_breakdown = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

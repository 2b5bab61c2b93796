"""Initial schema: users, drivers, live locations, rides, notifications,
zones, fare configuration and trip completions.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

RIDE_STATUS = postgresql.ENUM(
    "REQUESTED",
    "ACCEPTED",
    "DRIVER_ARRIVED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
    "NO_DRIVERS_AVAILABLE",
    name="ridestatus",
    create_type=False,
)
DRIVER_STATUS = postgresql.ENUM(
    "OFFLINE", "ONLINE", "BUSY", "SUSPENDED", name="driverstatus", create_type=False
)
BOOKING_TYPE = postgresql.ENUM(
    "REGULAR", "RENTAL", "OUTSTATION", "AIRPORT", name="bookingtype", create_type=False
)
ZONE_ROLE = postgresql.ENUM("INNER", "OUTER", name="zonerole", create_type=False)


def _timestamps(with_updated: bool = False) -> list[sa.Column]:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())
    ]
    if with_updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now())
        )
    return cols


def upgrade() -> None:
    # Enum types are shared by several tables; create each once
    bind = op.get_bind()
    for enum in (RIDE_STATUS, DRIVER_STATUS, BOOKING_TYPE, ZONE_ROLE):
        enum.create(bind, checkfirst=True)

    # ── people & vehicles ─────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("full_name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("registration_number", sa.String(20), unique=True, nullable=False),
        sa.Column("make", sa.String(60), nullable=True),
        sa.Column("model", sa.String(60), nullable=True),
        sa.Column("color", sa.String(30), nullable=True),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False, server_default="4"),
        *_timestamps(),
    )

    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), unique=True, nullable=False),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True),
        sa.Column("license_number", sa.String(40), nullable=True),
        sa.Column("status", DRIVER_STATUS, nullable=False, server_default="OFFLINE"),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("rating", sa.Float, server_default="5.0"),
        sa.Column("total_rides", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(with_updated=True),
    )
    op.create_index("idx_drivers_status", "drivers", ["status", "is_verified"])

    op.create_table(
        "live_locations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("heading", sa.Float, nullable=True),
        sa.Column("speed", sa.Float, nullable=True),
        sa.Column("accuracy", sa.Float, nullable=True),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_live_locations_owner", "live_locations", ["user_id", "captured_at"])
    op.create_index("idx_live_locations_cell", "live_locations", ["h3_cell"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_code", sa.String(12), unique=True, nullable=True),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("pickup_latitude", sa.Float, nullable=False),
        sa.Column("pickup_longitude", sa.Float, nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("destination_latitude", sa.Float, nullable=False),
        sa.Column("destination_longitude", sa.Float, nullable=False),
        sa.Column("destination_address", sa.String(255), nullable=False),
        sa.Column("booking_type", BOOKING_TYPE, nullable=False, server_default="REGULAR"),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("rental_hours", sa.Integer, nullable=True),
        sa.Column("scheduled_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", RIDE_STATUS, nullable=False, server_default="REQUESTED"),
        sa.Column("fare_amount", sa.Float, nullable=True),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("duration_minutes", sa.Float, nullable=True),
        sa.Column("pickup_otp", sa.String(6), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("driver_status_pending", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(with_updated=True),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_customer", "rides", ["customer_id"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_idempotency", "rides", ["idempotency_key"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="unread"),
        sa.Column("data", sa.JSON, nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_notifications_user", "notifications", ["user_id", "status"])

    # ── zones & fare configuration ────────────────────────────────────
    op.create_table(
        "zones",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("role", ZONE_ROLE, nullable=True),
        sa.Column("city", sa.String(60), nullable=True),
        sa.Column("center_latitude", sa.Float, nullable=False),
        sa.Column("center_longitude", sa.Float, nullable=False),
        sa.Column("radius_km", sa.Float, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "fare_matrix",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_type", BOOKING_TYPE, nullable=False),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("base_fare", sa.Float, nullable=False),
        sa.Column("per_km_rate", sa.Float, nullable=False),
        sa.Column("minimum_fare", sa.Float, nullable=False, server_default="0"),
        sa.Column("surge_multiplier", sa.Float, nullable=False, server_default="1"),
        sa.Column("platform_fee", sa.Float, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "idx_fare_matrix_lookup", "fare_matrix", ["booking_type", "vehicle_type", "is_active"]
    )

    op.create_table(
        "rental_fares",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("package_name", sa.String(60), nullable=False),
        sa.Column("duration_hours", sa.Integer, nullable=False),
        sa.Column("km_included", sa.Float, nullable=False),
        sa.Column("base_fare", sa.Float, nullable=False),
        sa.Column("extra_km_rate", sa.Float, nullable=False),
        sa.Column("is_popular", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "outstation_fares",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("base_fare", sa.Float, nullable=False),
        sa.Column("per_km_rate", sa.Float, nullable=False),
        sa.Column("driver_allowance_per_day", sa.Float, nullable=False),
        sa.Column("daily_km_limit", sa.Float, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "airport_fares",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("city_to_airport_fare", sa.Float, nullable=False),
        sa.Column("airport_to_city_fare", sa.Float, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # ── trip completions (one per ride) ───────────────────────────────
    op.create_table(
        "trip_completions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), unique=True, nullable=False),
        sa.Column("booking_type", BOOKING_TYPE, nullable=False),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("actual_distance_km", sa.Float, nullable=False),
        sa.Column("actual_duration_minutes", sa.Float, nullable=False),
        *[
            sa.Column(name, sa.Float, nullable=False, server_default="0")
            for name in (
                "base_fare",
                "distance_fare",
                "time_fare",
                "surge_charges",
                "deadhead_charges",
                "platform_fee",
                "gst_on_charges",
                "gst_on_platform_fee",
                "extra_km_charges",
                "driver_allowance",
            )
        ],
        sa.Column("total_fare", sa.Float, nullable=False),
        sa.Column("fare_breakdown", sa.JSON, nullable=False),
        *_timestamps(with_updated=True),
    )


def downgrade() -> None:
    for table in (
        "trip_completions",
        "airport_fares",
        "outstation_fares",
        "rental_fares",
        "fare_matrix",
        "zones",
        "notifications",
        "rides",
        "live_locations",
        "drivers",
        "vehicles",
        "users",
    ):
        op.drop_table(table)
    for enum in (ZONE_ROLE, BOOKING_TYPE, DRIVER_STATUS, RIDE_STATUS):
        enum.drop(op.get_bind(), checkfirst=True)

"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates (Hosur area, with transfers to Bengaluru airport):
  - 4 customers and 6 drivers with vehicles and fresh location samples
  - an inner zone and an outer zone
  - regular, rental, outstation and airport fare rows per vehicle type
  - 3 requested rides waiting for dispatch
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from ridecore.config import settings
from ridecore.domain.enums import (
    BookingType,
    DriverStatus,
    RideStatus,
    VehicleType,
    ZoneRole,
)
from ridecore.domain.locality import ride_h3_cell
from ridecore.infrastructure.database import async_session_factory, engine
from ridecore.infrastructure.models import (
    AirportFareModel,
    DriverModel,
    FareMatrixModel,
    LocationSampleModel,
    OutstationFareModel,
    RentalFareModel,
    RideModel,
    UserModel,
    VehicleModel,
    ZoneModel,
)

CITY_LAT, CITY_LNG = settings.city_center_lat, settings.city_center_lng
AIRPORT_LAT, AIRPORT_LNG = 13.1986, 77.7066


CUSTOMERS = [
    {"full_name": "Aarav Sharma", "email": "aarav@example.com", "phone_number": "+919800000001"},
    {"full_name": "Priya Patel", "email": "priya@example.com", "phone_number": "+919800000002"},
    {"full_name": "Meera Nair", "email": "meera@example.com", "phone_number": "+919800000003"},
    {"full_name": "Arjun Kumar", "email": "arjun@example.com", "phone_number": "+919800000004"},
]

DRIVERS = [
    # name, vehicle type, registration, lat, lng, rating
    ("Ravi Shankar", VehicleType.SEDAN, "KA51AB1001", 12.7420, 77.8255, 4.8),
    ("Suresh Babu", VehicleType.SEDAN, "KA51AB1002", 12.7385, 77.8190, 4.6),
    ("Manoj Reddy", VehicleType.SUV, "KA51AB1003", 12.7501, 77.8302, 4.9),
    ("Imran Khan", VehicleType.HATCHBACK, "KA51AB1004", 12.7302, 77.8105, 4.4),
    ("Lakshmi Devi", VehicleType.SEDAN, "KA51AB1005", 12.7650, 77.8420, 4.7),
    ("Gopal Rao", VehicleType.SUV, "KA51AB1006", 12.8200, 77.7900, 4.5),
]

REGULAR_RATES = {
    VehicleType.HATCHBACK: {"base_fare": 40.0, "per_km_rate": 10.0, "platform_fee": 5.0},
    VehicleType.SEDAN: {"base_fare": 50.0, "per_km_rate": 12.0, "platform_fee": 10.0},
    VehicleType.SUV: {"base_fare": 70.0, "per_km_rate": 16.0, "platform_fee": 10.0},
}

RENTAL_PACKAGES = [
    # vehicle, name, hours, km, base, extra rate, popular
    (VehicleType.SEDAN, "4 hr / 40 km", 4, 40.0, 1200.0, 13.0, True),
    (VehicleType.SEDAN, "8 hr / 80 km", 8, 80.0, 2200.0, 13.0, False),
    (VehicleType.SUV, "4 hr / 40 km", 4, 40.0, 1600.0, 17.0, True),
    (VehicleType.HATCHBACK, "4 hr / 40 km", 4, 40.0, 999.0, 11.0, True),
]

OUTSTATION_RATES = {
    VehicleType.HATCHBACK: (300.0, 10.0, 250.0, 300.0),
    VehicleType.SEDAN: (500.0, 12.0, 300.0, 300.0),
    VehicleType.SUV: (700.0, 16.0, 350.0, 300.0),
}

MAKES = {
    VehicleType.HATCHBACK: ("Maruti", "Swift"),
    VehicleType.SEDAN: ("Maruti", "Dzire"),
    VehicleType.SUV: ("Toyota", "Innova"),
}

AIRPORT_FARES = {
    VehicleType.HATCHBACK: (1299.0, 1399.0),
    VehicleType.SEDAN: (1499.0, 1599.0),
    VehicleType.SUV: (1999.0, 2099.0),
}


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        count = (await session.execute(select(func.count(UserModel.id)))).scalar()
        if count:
            print("Database already seeded. Skipping.")
            return

        now = datetime.now(timezone.utc)

        # ── Customers ─────────────────────────────────────────────────
        customers = [UserModel(**c) for c in CUSTOMERS]
        session.add_all(customers)
        await session.flush()
        print(f"  Created {len(customers)} customers")

        # ── Drivers, vehicles, live locations ─────────────────────────
        for i, (name, vehicle_type, reg, lat, lng, rating) in enumerate(DRIVERS, start=1):
            user = UserModel(
                full_name=name,
                email=f"driver{i}@example.com",
                phone_number=f"+919900000{i:03d}",
            )
            vehicle = VehicleModel(
                registration_number=reg,
                make=MAKES[vehicle_type][0],
                model=MAKES[vehicle_type][1],
                color="White",
                vehicle_type=vehicle_type.value,
                capacity=6 if vehicle_type == VehicleType.SUV else 4,
            )
            session.add_all([user, vehicle])
            await session.flush()

            session.add(
                DriverModel(
                    user_id=user.id,
                    vehicle_id=vehicle.id,
                    license_number=f"KA51-2020-{i:07d}",
                    status=DriverStatus.ONLINE,
                    is_verified=True,
                    rating=rating,
                )
            )
            session.add(
                LocationSampleModel(
                    user_id=user.id,
                    latitude=lat,
                    longitude=lng,
                    h3_cell=ride_h3_cell(lat, lng, settings.h3_resolution),
                    captured_at=now - timedelta(minutes=i),
                )
            )
        await session.flush()
        print(f"  Created {len(DRIVERS)} drivers")

        # ── Zones ─────────────────────────────────────────────────────
        session.add_all(
            [
                ZoneModel(
                    name="Hosur Inner Ring",
                    role=ZoneRole.INNER,
                    city="Hosur",
                    center_latitude=CITY_LAT,
                    center_longitude=CITY_LNG,
                    radius_km=6.0,
                ),
                ZoneModel(
                    name="Hosur Outer",
                    role=ZoneRole.OUTER,
                    city="Hosur",
                    center_latitude=CITY_LAT,
                    center_longitude=CITY_LNG,
                    radius_km=20.0,
                ),
            ]
        )

        # ── Fare configuration ────────────────────────────────────────
        for vehicle_type, rate in REGULAR_RATES.items():
            session.add(
                FareMatrixModel(
                    booking_type=BookingType.REGULAR,
                    vehicle_type=vehicle_type.value,
                    minimum_fare=rate["base_fare"],
                    surge_multiplier=1.0,
                    **rate,
                )
            )
        for vehicle_type, name, hours, km, base, extra, popular in RENTAL_PACKAGES:
            session.add(
                RentalFareModel(
                    vehicle_type=vehicle_type.value,
                    package_name=name,
                    duration_hours=hours,
                    km_included=km,
                    base_fare=base,
                    extra_km_rate=extra,
                    is_popular=popular,
                )
            )
        for vehicle_type, (base, per_km, allowance, limit) in OUTSTATION_RATES.items():
            session.add(
                OutstationFareModel(
                    vehicle_type=vehicle_type.value,
                    base_fare=base,
                    per_km_rate=per_km,
                    driver_allowance_per_day=allowance,
                    daily_km_limit=limit,
                )
            )
        for vehicle_type, (to_airport, from_airport) in AIRPORT_FARES.items():
            session.add(
                AirportFareModel(
                    vehicle_type=vehicle_type.value,
                    city_to_airport_fare=to_airport,
                    airport_to_city_fare=from_airport,
                )
            )
        print("  Created zones and fare configuration")

        # ── Rides awaiting dispatch ───────────────────────────────────
        rides = [
            RideModel(
                ride_code="RCSEED0001",
                customer_id=customers[0].id,
                pickup_latitude=12.7410,
                pickup_longitude=77.8230,
                pickup_address="Hosur Bus Stand",
                destination_latitude=12.7800,
                destination_longitude=77.8000,
                destination_address="Zuzuvadi",
                booking_type=BookingType.REGULAR,
                vehicle_type=VehicleType.SEDAN.value,
                status=RideStatus.REQUESTED,
            ),
            RideModel(
                ride_code="RCSEED0002",
                customer_id=customers[1].id,
                pickup_latitude=12.7450,
                pickup_longitude=77.8280,
                pickup_address="Hosur Railway Station",
                destination_latitude=AIRPORT_LAT,
                destination_longitude=AIRPORT_LNG,
                destination_address="Kempegowda International Airport",
                booking_type=BookingType.AIRPORT,
                vehicle_type=VehicleType.SUV.value,
                status=RideStatus.REQUESTED,
            ),
            RideModel(
                ride_code="RCSEED0003",
                customer_id=customers[2].id,
                pickup_latitude=12.7380,
                pickup_longitude=77.8200,
                pickup_address="Mathigiri",
                destination_latitude=12.7380,
                destination_longitude=77.8200,
                destination_address="Mathigiri",
                booking_type=BookingType.RENTAL,
                vehicle_type=VehicleType.SEDAN.value,
                rental_hours=4,
                status=RideStatus.REQUESTED,
            ),
        ]
        session.add_all(rides)
        await session.flush()
        print(f"  Created {len(rides)} rides")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

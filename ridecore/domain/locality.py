"""
Driver Locality Ranking
=======================

1. **Liveness**    -- a driver needs a latest location sample no older than
   the recency threshold.
2. **Vehicle**     -- the driver's vehicle type must match the request
   (unless the filter is ``"any"``).
3. **Proximity**   -- Haversine distance from the pickup must not exceed
   the search radius.
4. **Ranking**     -- ascending by distance; ties broken by driver id so
   the order is stable across calls.

ETA is a fixed average-speed heuristic (``distance_km x minutes_per_km``),
not live traffic data.

Spatial pre-filtering
---------------------
Location samples are stamped with an H3 cell when recorded.  The store can
restrict the latest-sample query to the cells of a hexagon disk that
covers the search circle.  The disk is sized with a generous margin
(one ring per *edge length* instead of per centre-to-centre spacing), so
the pre-filter never drops a driver the exact Haversine check would keep.

Complexity
----------
Let D = online & verified drivers.

* Filtering:  O(D)
* Sorting:    O(D log D)
* Cell disk:  O(k^2) cells, k = rings needed to cover the radius
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

import h3

from .distance import distance_km
from .entities import Coordinate, DriverCandidate, LocationSample, NearbyDriver
from .enums import ANY_VEHICLE


def ride_h3_cell(lat: float, lng: float, resolution: int = 7) -> Optional[str]:
    """Map a geo-point to an H3 hexagonal cell index, or None if off-globe.  O(1)."""
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return h3.latlng_to_cell(lat, lng, resolution)


def covering_cells(
    center: Coordinate, radius_km: float, resolution: int = 7, max_ring: int = 40
) -> Optional[set[str]]:
    """
    H3 cells of a disk around *center* that covers *radius_km*.

    Returns None when pre-filtering should be skipped: the centre is not
    a valid coordinate or the disk would need more than *max_ring* rings.
    """
    origin = ride_h3_cell(center.latitude, center.longitude, resolution)
    if origin is None:
        return None
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    rings = math.ceil(radius_km / edge_km) + 1
    if rings > max_ring:
        return None
    return set(h3.grid_disk(origin, rings))


def as_utc(ts: datetime) -> datetime:
    """Treat naive timestamps as UTC (SQLite drops the offset)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def is_live(sample: LocationSample, now: datetime, recency_minutes: float) -> bool:
    age_seconds = (as_utc(now) - as_utc(sample.captured_at)).total_seconds()
    return age_seconds <= recency_minutes * 60


def vehicle_matches(candidate: DriverCandidate, vehicle_type: str) -> bool:
    if vehicle_type == ANY_VEHICLE:
        return True
    return candidate.vehicle_type == vehicle_type


def rank_nearby(
    pickup: Coordinate,
    candidates: Iterable[DriverCandidate],
    latest_samples: Mapping[int, LocationSample],
    *,
    vehicle_type: str,
    radius_km: float,
    recency_minutes: float,
    now: datetime,
    eta_minutes_per_km: float = 3.0,
) -> list[NearbyDriver]:
    """
    Filter and rank *candidates* by distance from *pickup*.

    ``latest_samples`` maps a driver's ``user_id`` to its most recent
    location sample.  Drivers without one are not eligible.
    """
    in_range: list[tuple[float, int, NearbyDriver]] = []

    for candidate in candidates:
        sample = latest_samples.get(candidate.user_id)
        if sample is None or not is_live(sample, now, recency_minutes):
            continue
        if not vehicle_matches(candidate, vehicle_type):
            continue

        distance = distance_km(pickup, sample.position)
        if distance > radius_km:
            continue

        rounded = round(distance, 1)
        in_range.append(
            (
                distance,
                candidate.driver_id,
                NearbyDriver(
                    driver_id=candidate.driver_id,
                    user_id=candidate.user_id,
                    name=candidate.name,
                    phone=candidate.phone,
                    rating=candidate.rating,
                    vehicle_type=candidate.vehicle_type,
                    registration_number=candidate.registration_number,
                    location=sample.position,
                    location_updated_at=sample.captured_at,
                    distance_km=rounded,
                    eta_minutes=round(rounded * eta_minutes_per_km),
                ),
            )
        )

    in_range.sort(key=lambda item: (item[0], item[1]))
    return [driver for _, _, driver in in_range]

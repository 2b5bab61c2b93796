"""
Zone resolution for circular service zones.

A zone is a circle (centre + radius in km).  Membership is inclusive:
a point exactly on the boundary is *inside*.

The deadhead surcharge needs the designated "inner" zone.  Zones carry an
explicit ``role``; rows created before roles existed are recognised by the
legacy naming convention (a name containing "inner" or "ring").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .distance import distance_km
from .entities import Coordinate, Zone
from .enums import ZoneRole

ZoneMatcher = Callable[[Zone], bool]

_INNER_NAME_MARKERS = ("inner", "ring")


@dataclass(frozen=True)
class ZoneMembership:
    is_inside: bool
    distance_to_center_km: float
    distance_to_boundary_km: float


def membership(point: Coordinate, zone: Zone) -> ZoneMembership:
    to_center = distance_km(point, zone.center)
    return ZoneMembership(
        is_inside=to_center <= zone.radius_km,
        distance_to_center_km=to_center,
        distance_to_boundary_km=max(0.0, to_center - zone.radius_km),
    )


def is_inner_zone(zone: Zone) -> bool:
    if zone.role is not None:
        return zone.role == ZoneRole.INNER
    name = zone.name.lower()
    return any(marker in name for marker in _INNER_NAME_MARKERS)


def find_zone(
    point: Coordinate, zones: Sequence[Zone], matcher: ZoneMatcher
) -> Optional[Zone]:
    """Return the first zone in *zones* selected by *matcher*, or None.

    *point* does not influence the choice.  Zones come from the store
    oldest first, so a later match never displaces the earliest one, even
    when the later zone contains the point.
    """
    for zone in zones:
        if matcher(zone):
            return zone
    return None

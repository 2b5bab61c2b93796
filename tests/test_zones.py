"""Unit tests for circular zone membership and selection."""

import pytest

from ridecore.domain.distance import distance_km
from ridecore.domain.entities import Coordinate, Zone
from ridecore.domain.enums import ZoneRole
from ridecore.domain.zones import find_zone, is_inner_zone, membership

CENTER = Coordinate(12.7401984, 77.824)


def _zone(name, radius, role=None, center=CENTER):
    return Zone(name=name, center=center, radius_km=radius, role=role)


class TestMembership:
    def test_center_is_inside(self):
        m = membership(CENTER, _zone("z", 1.0))
        assert m.is_inside
        assert m.distance_to_boundary_km == 0.0

    def test_boundary_is_inside(self):
        point = Coordinate(12.76, 77.824)
        zone = _zone("z", distance_km(point, CENTER))
        assert membership(point, zone).is_inside

    def test_outside_reports_distance_to_boundary(self):
        point = Coordinate(12.80, 77.824)
        to_center = distance_km(point, CENTER)
        m = membership(point, _zone("z", 2.0))
        assert not m.is_inside
        assert m.distance_to_center_km == pytest.approx(to_center)
        assert m.distance_to_boundary_km == pytest.approx(to_center - 2.0)


class TestInnerZoneMatcher:
    def test_explicit_role_wins_over_name(self):
        assert is_inner_zone(_zone("Outer belt", 5, role=ZoneRole.INNER))
        assert not is_inner_zone(_zone("Inner city", 5, role=ZoneRole.OUTER))

    @pytest.mark.parametrize("name", ["Inner Zone", "hosur RING road", "INNER"])
    def test_legacy_names(self, name):
        assert is_inner_zone(_zone(name, 5))

    def test_other_names_do_not_match(self):
        assert not is_inner_zone(_zone("Airport", 5))


class TestFindZone:
    def test_none_when_no_candidate(self):
        assert find_zone(CENTER, [_zone("Airport", 5)], is_inner_zone) is None

    def test_single_candidate_returned_even_if_far(self):
        far = _zone("Inner", 1, center=Coordinate(13.5, 78.5))
        assert find_zone(CENTER, [far], is_inner_zone) is far

    def test_first_match_wins(self):
        first = _zone("Hosur Inner Ring", 5)
        annex = _zone("Inner annex", 1, center=Coordinate(12.90, 77.824))
        assert find_zone(Coordinate(12.90, 77.824), [first, annex], is_inner_zone) is first

    def test_non_matching_zones_are_skipped(self):
        airport = _zone("Airport", 3)
        inner = _zone("Inner", 5)
        assert find_zone(CENTER, [airport, inner], is_inner_zone) is inner

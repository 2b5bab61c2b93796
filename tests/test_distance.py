"""Unit tests for Haversine distance."""

import pytest

from ridecore.domain.distance import distance_km, haversine_km
from ridecore.domain.entities import Coordinate

HOSUR = Coordinate(12.7401984, 77.824)
AIRPORT = Coordinate(13.1986, 77.7066)


def test_zero_for_same_point():
    assert distance_km(HOSUR, HOSUR) == 0.0


def test_symmetric():
    assert distance_km(HOSUR, AIRPORT) == pytest.approx(distance_km(AIRPORT, HOSUR))


def test_hosur_to_bengaluru_airport():
    # ~52 km great-circle
    assert distance_km(HOSUR, AIRPORT) == pytest.approx(52.5, abs=1.0)


def test_one_degree_of_latitude():
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


def test_antipodal_points_do_not_fail():
    assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(20015.09, abs=0.1)

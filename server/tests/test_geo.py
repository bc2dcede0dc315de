"""Tests for great-circle distance and bearing helpers."""

from __future__ import annotations

import pytest

from anchorwatch.core import geo


def test_same_point_is_zero():
    assert geo.haversine_m(10.0, -70.0, 10.0, -70.0) == 0.0


def test_one_degree_of_latitude():
    # 2 * pi * R / 360
    assert geo.haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_194.9, abs=0.5)


def test_cardinal_bearings():
    assert geo.initial_bearing_deg(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.0, abs=1e-9)
    assert geo.initial_bearing_deg(0.0, 0.0, 0.0, 1.0) == pytest.approx(90.0)
    assert geo.initial_bearing_deg(0.0, 0.0, -1.0, 0.0) == pytest.approx(180.0)
    assert geo.initial_bearing_deg(0.0, 0.0, 0.0, -1.0) == pytest.approx(270.0)


def test_bearing_always_in_range():
    for lon in (-179.9, -90.0, -0.001, 0.001, 90.0, 179.9):
        bearing = geo.initial_bearing_deg(10.0, 0.0, -10.0, lon)
        assert 0.0 <= bearing < 360.0


def test_normalize_degrees():
    assert geo.normalize_degrees(360.0) == 0.0
    assert geo.normalize_degrees(-90.0) == 270.0
    assert geo.normalize_degrees(725.0) == pytest.approx(5.0)
    assert geo.normalize_degrees(-1e-15) == 0.0


def test_destination_point_distance_and_bearing():
    lat, lon = geo.destination_point(10.0, -70.0, 45.0, 35.0)
    assert geo.haversine_m(10.0, -70.0, lat, lon) == pytest.approx(35.0, abs=0.01)
    assert geo.initial_bearing_deg(10.0, -70.0, lat, lon) == pytest.approx(45.0, abs=0.01)


def test_destination_wraps_dateline():
    _, lon = geo.destination_point(0.0, 179.9999, 90.0, 100.0)
    assert -180.0 <= lon < 180.0
    assert lon < 0


def test_distance_monotonic_along_a_bearing():
    """Moving further from the anchor never reduces the distance."""
    previous = -1.0
    for meters in (0, 1, 5, 10, 29.9, 30, 35, 100, 1_000):
        lat, lon = geo.destination_point(10.0, -70.0, 200.0, meters)
        distance = geo.haversine_m(10.0, -70.0, lat, lon)
        assert distance >= previous
        previous = distance


def test_relative_bearing():
    assert geo.relative_bearing_deg(10.0, 350.0) == pytest.approx(20.0)
    assert geo.relative_bearing_deg(350.0, 10.0) == pytest.approx(340.0)

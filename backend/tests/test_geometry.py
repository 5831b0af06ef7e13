"""Tests for geometry.py. Pure functions, no mocks needed."""

import pytest

import geometry
from models import TrackPoint

# ~50 m and ~500 m of latitude.
_LAT_50M = 0.00045
_LAT_500M = 0.0045


def _pt(lat, lng, ele=0.0) -> TrackPoint:
    return TrackPoint(lat=lat, lng=lng, elevation=ele)


# ---------------------------------------------------------------------------
# haversine / distance
# ---------------------------------------------------------------------------


def test_haversine_zero_for_same_point():
    assert geometry.haversine_km(42.0, -1.0, 42.0, -1.0) == 0.0


def test_haversine_one_degree_of_latitude():
    # 1° of latitude is ~111.19 km on a 6371 km sphere.
    assert geometry.haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


def test_distance_is_sum_of_consecutive_segments():
    points = [_pt(42.0, -1.0), _pt(42.01, -1.0), _pt(42.01, -0.98), _pt(42.03, -0.97)]
    expected = sum(
        geometry.point_distance_km(a, b) for a, b in zip(points, points[1:])
    )

    summary = geometry.analyze_track(points)

    assert summary.distance_km == pytest.approx(expected, abs=0.05)
    assert summary.distance_km >= 0


def test_cumulative_distances_start_at_zero_and_increase():
    points = [_pt(42.0, -1.0), _pt(42.01, -1.0), _pt(42.02, -1.0)]

    cumulative = geometry.cumulative_distances(points)

    assert cumulative[0] == 0.0
    assert cumulative[0] < cumulative[1] < cumulative[2]


def test_single_point_track_has_zero_distance():
    summary = geometry.analyze_track([_pt(42.0, -1.0, 900)])

    assert summary.distance_km == 0.0
    assert summary.loop_classification == geometry.LOOP_CIRCULAR


# ---------------------------------------------------------------------------
# loop classification
# ---------------------------------------------------------------------------


def test_endpoints_50m_apart_are_circular():
    points = [_pt(42.0, -1.0), _pt(42.01, -1.0), _pt(42.0 + _LAT_50M, -1.0)]

    assert geometry.classify_loop(points) == "Circular"


def test_endpoints_500m_apart_are_point_to_point():
    points = [_pt(42.0, -1.0), _pt(42.01, -1.0), _pt(42.0 + _LAT_500M, -1.0)]

    assert geometry.classify_loop(points) == "Inicio-Fin"


# ---------------------------------------------------------------------------
# elevation
# ---------------------------------------------------------------------------


def test_elevation_change_sums_raw_deltas():
    points = [_pt(0, 0, 100), _pt(0, 0, 150), _pt(0, 0, 120), _pt(0, 0, 200)]

    gain, loss = geometry.elevation_change(points)

    assert gain == 130
    assert loss == 30


def test_min_max_ignore_zero_elevations():
    points = [_pt(42.0, -1.0, 0), _pt(42.01, -1.0, 850), _pt(42.02, -1.0, 1200)]

    summary = geometry.analyze_track(points)

    assert summary.min_elevation_m == 850
    assert summary.max_elevation_m == 1200


def test_min_max_are_zero_without_recorded_elevation():
    summary = geometry.analyze_track([_pt(42.0, -1.0), _pt(42.01, -1.0)])

    assert summary.min_elevation_m == 0
    assert summary.max_elevation_m == 0


# ---------------------------------------------------------------------------
# duration
# ---------------------------------------------------------------------------


def test_estimate_duration_hour_range():
    # 8 km / 4 km/h + 600 m / 300 m/h = 4 h
    assert geometry.estimate_duration(8.0, 600) == "4-5 horas"


def test_estimate_duration_under_an_hour_in_minutes():
    assert geometry.estimate_duration(2.0, 60) == "42 minutos"


# ---------------------------------------------------------------------------
# analyze_track end to end
# ---------------------------------------------------------------------------


def test_three_point_loop_with_climb():
    a = _pt(42.0, -1.0, 1000)
    b = _pt(42.01, -1.0, 1300)
    c = _pt(42.0 + _LAT_50M, -1.0, 1000)

    summary = geometry.analyze_track([a, b, c])

    raw_distance = geometry.point_distance_km(a, b) + geometry.point_distance_km(b, c)
    hours = int(raw_distance / 4 + 1)
    assert summary.distance_km > 0
    assert summary.elevation_gain_m == pytest.approx(300, abs=1)
    assert summary.elevation_loss_m == pytest.approx(300, abs=1)
    assert summary.loop_classification == "Circular"
    assert summary.estimated_duration == f"{hours}-{hours + 1} horas"

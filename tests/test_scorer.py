"""Unit tests for core.scorer.

The scoring tests build SolarSample series by hand; the sampling tests mock
sun_position so they exercise only the sampling logic, not the ephemeris
(that is covered by test_solar.py).
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from core.errors import InvalidParameter
from core.models import Coordinate, PathPoint, Side, SolarSample
from core.scorer import (
    MAX_STEPS,
    MIN_STEPS,
    estimate_timing,
    recommend_seat,
    score_samples,
    solar_samples,
    step_count,
)
from core.solar import SunPosition

_DEPARTURE = datetime(2024, 3, 20, 5, 30, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _sample(minute: int, altitude: float, side: Side) -> SolarSample:
    """Return a sample whose only meaningful fields are time, altitude and side."""
    return SolarSample(
        timestamp=_DEPARTURE + timedelta(minutes=minute),
        point=PathPoint(Coordinate(0.0, 0.0), 0.0),
        sun_azimuth_deg=90.0 if side == Side.RIGHT else 270.0,
        sun_altitude_deg=altitude,
        aircraft_bearing_deg=0.0,
        relative_bearing_deg=90.0 if side == Side.RIGHT else -90.0,
        side=side,
        near_horizon=abs(altitude) <= 10.0,
    )


def _series(altitudes, side: Side) -> list[SolarSample]:
    return [_sample(10 * i, alt, side) for i, alt in enumerate(altitudes)]


# ---------------------------------------------------------------------------
# estimate_timing / step_count
# ---------------------------------------------------------------------------

def test_timing_from_cruise_speed():
    timing = estimate_timing(1700.0, _DEPARTURE, 850.0)
    assert timing.duration_hours == pytest.approx(2.0)
    assert timing.arrival == _DEPARTURE + timedelta(hours=2)


def test_timing_naive_departure_is_utc():
    timing = estimate_timing(850.0, datetime(2024, 3, 20, 5, 30), 850.0)
    assert timing.departure == _DEPARTURE
    assert timing.departure.tzinfo is not None


def test_explicit_arrival_overrides_speed():
    arrival = _DEPARTURE + timedelta(hours=3)
    timing = estimate_timing(850.0, _DEPARTURE, 850.0, arrival=arrival)
    assert timing.arrival == arrival
    assert timing.duration_hours == pytest.approx(3.0)


def test_arrival_before_departure_rejected():
    with pytest.raises(InvalidParameter):
        estimate_timing(850.0, _DEPARTURE, 850.0, arrival=_DEPARTURE - timedelta(minutes=1))
    with pytest.raises(InvalidParameter):
        estimate_timing(850.0, _DEPARTURE, 850.0, arrival=_DEPARTURE)


@pytest.mark.parametrize("speed", [0, -100])
def test_non_positive_speed_rejected(speed):
    with pytest.raises(InvalidParameter):
        estimate_timing(850.0, _DEPARTURE, speed)


@pytest.mark.parametrize("hours, expected", [
    (0.1, MIN_STEPS),
    (1.0, 6),
    (1.05, 7),
    (2.0, 12),
    (5.9, 36),
    (14.0, MAX_STEPS),
])
def test_step_count(hours, expected):
    assert step_count(hours) == expected


# ---------------------------------------------------------------------------
# solar_samples
# ---------------------------------------------------------------------------

def test_solar_samples_cover_departure_to_arrival():
    # Eastbound along the equator, sun due south → always on the right
    source, destination = Coordinate(0, 0), Coordinate(0, 10)
    timing = estimate_timing(850.0, _DEPARTURE, 850.0)
    with patch("core.scorer.sun_position", return_value=SunPosition(180.0, 5.0, 0.0)):
        samples = solar_samples(source, destination, timing)

    assert len(samples) == step_count(timing.duration_hours) + 1
    assert samples[0].timestamp == timing.departure
    assert samples[-1].timestamp == timing.arrival
    assert samples[0].point.fraction == 0.0
    assert samples[-1].point.fraction == 1.0
    assert samples[-1].point.lon == pytest.approx(10.0)
    for s in samples:
        assert s.aircraft_bearing_deg == pytest.approx(90.0)
        assert s.relative_bearing_deg == pytest.approx(90.0)
        assert s.side == Side.RIGHT
        assert s.near_horizon


def test_solar_samples_flag_high_sun():
    source, destination = Coordinate(0, 0), Coordinate(5, 0)
    timing = estimate_timing(556.0, _DEPARTURE, 850.0)
    with patch("core.scorer.sun_position", return_value=SunPosition(270.0, 45.0, 0.0)):
        samples = solar_samples(source, destination, timing)

    assert all(not s.near_horizon for s in samples)
    assert all(s.side == Side.LEFT for s in samples)


def test_solar_samples_query_sun_at_each_path_point():
    source, destination = Coordinate(0, 0), Coordinate(0, 10)
    timing = estimate_timing(850.0, _DEPARTURE, 850.0)
    with patch("core.scorer.sun_position", return_value=SunPosition(180.0, 5.0, 0.0)) as sun:
        samples = solar_samples(source, destination, timing)

    assert sun.call_count == len(samples)
    first_call = sun.call_args_list[0].args
    last_call = sun.call_args_list[-1].args
    assert first_call[1:] == pytest.approx((0.0, 0.0))
    assert last_call[1] == pytest.approx(0.0, abs=1e-9)
    assert last_call[2] == pytest.approx(10.0)


# ---------------------------------------------------------------------------
# score_samples
# ---------------------------------------------------------------------------

def test_empty_series_has_no_recommendation():
    assert score_samples([]) is None


def test_rising_sun_on_the_right():
    samples = _series([-5.0, -2.0, 1.0, 4.0], Side.RIGHT)
    rec = score_samples(samples)

    assert rec.best_side == Side.RIGHT
    assert rec.trend == "sunrise"
    assert rec.confidence == 100
    assert rec.best_moment == samples[2].timestamp


def test_setting_sun_on_the_left():
    samples = _series([8.0, 3.0, -1.0, -6.0], Side.LEFT)
    rec = score_samples(samples)

    assert rec.best_side == Side.LEFT
    assert rec.trend == "sunset"
    assert rec.best_moment == samples[2].timestamp


def test_tie_goes_to_the_right():
    samples = [_sample(0, 2.0, Side.LEFT), _sample(10, 2.0, Side.RIGHT)]
    rec = score_samples(samples)
    assert rec.best_side == Side.RIGHT
    assert rec.confidence == 50


def test_near_horizon_samples_outweigh_high_sun():
    # Many high-sun samples on the right are ignored once a low one exists
    samples = _series([60.0, 55.0, 50.0, 45.0], Side.RIGHT) + [_sample(50, 5.0, Side.LEFT)]
    rec = score_samples(samples)
    assert rec.best_side == Side.LEFT
    assert rec.confidence == 100
    assert rec.best_moment == samples[-1].timestamp


def test_all_high_sun_falls_back_to_every_sample():
    samples = _series([40.0, 40.0, 40.0], Side.LEFT) + [_sample(40, 40.0, Side.RIGHT)]
    rec = score_samples(samples)
    assert rec.best_side == Side.LEFT
    assert rec.confidence == 75


def test_lower_sun_weighs_more():
    samples = [_sample(0, 1.0, Side.LEFT), _sample(10, 9.0, Side.RIGHT)]
    rec = score_samples(samples)
    assert rec.best_side == Side.LEFT
    # 0.5 / (0.5 + 0.1)
    assert rec.confidence == 83


def test_best_moment_is_on_the_winning_side():
    samples = [
        _sample(0, 0.5, Side.LEFT),
        _sample(10, 2.0, Side.RIGHT),
        _sample(20, 2.5, Side.RIGHT),
        _sample(30, 3.0, Side.RIGHT),
    ]
    rec = score_samples(samples)
    assert rec.best_side == Side.RIGHT
    assert rec.best_moment == samples[1].timestamp


# ---------------------------------------------------------------------------
# recommend_seat
# ---------------------------------------------------------------------------

def test_no_departure_means_no_recommendation():
    assert recommend_seat(Coordinate(0, 0), Coordinate(10, 0), None) is None


def test_identical_endpoints_mean_no_recommendation():
    assert recommend_seat(Coordinate(10, 10), Coordinate(10, 10), _DEPARTURE) is None


def test_northbound_equinox_dawn_flight_sits_right():
    # Heading north over the Gulf of Guinea at sunrise: the sun rises due east
    rec = recommend_seat(Coordinate(0, 0), Coordinate(10, 0), _DEPARTURE)

    assert rec.best_side == Side.RIGHT
    assert rec.trend == "sunrise"
    assert rec.confidence == 100
    assert _DEPARTURE <= rec.best_moment <= _DEPARTURE + timedelta(hours=2)


def test_southbound_equinox_dawn_flight_sits_left():
    rec = recommend_seat(Coordinate(10, 0), Coordinate(0, 0), _DEPARTURE)
    assert rec.best_side == Side.LEFT
    assert rec.trend == "sunrise"

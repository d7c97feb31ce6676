"""Seat recommendation: which window side to pick for sunrise or sunset."""
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

import pandas as pd

from core.errors import InvalidParameter
from core.geodesy import distance_km, initial_bearing, intermediate_point
from core.models import (
    Coordinate,
    FlightTiming,
    PathPoint,
    SeatRecommendation,
    Side,
    SolarSample,
)
from core.scoring import sun_side
from core.solar import relative_bearing, sun_position

DEFAULT_CRUISE_SPEED_KMH = 850.0
NEAR_HORIZON_DEG = 10.0

# ~one sample every 10 minutes, bounded for very short and very long flights.
SAMPLES_PER_HOUR = 6
MIN_STEPS = 6
MAX_STEPS = 36


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def estimate_timing(
    distance: float,
    departure: datetime,
    cruise_speed_kmh: float = DEFAULT_CRUISE_SPEED_KMH,
    arrival: Optional[datetime] = None,
) -> FlightTiming:
    """
    Flight duration and arrival time from distance and cruise speed.

    An explicit ``arrival`` overrides the speed-based estimate.

    Raises:
        InvalidParameter: On a non-positive speed or an arrival that is not
                          after the departure.
    """
    departure = _as_utc(departure)
    if arrival is not None:
        arrival = _as_utc(arrival)
        if arrival <= departure:
            raise InvalidParameter("arrival time must be after departure time")
        hours = (arrival - departure).total_seconds() / 3600.0
        return FlightTiming(departure, arrival, hours)

    if not cruise_speed_kmh or cruise_speed_kmh <= 0:
        raise InvalidParameter(f"cruise speed must be positive, got {cruise_speed_kmh!r}")
    hours = distance / cruise_speed_kmh
    return FlightTiming(departure, departure + timedelta(hours=hours), hours)


def step_count(duration_hours: float) -> int:
    """Number of sampling intervals: ceil(hours × 6) clamped to [6, 36]."""
    return max(MIN_STEPS, min(MAX_STEPS, math.ceil(duration_hours * SAMPLES_PER_HOUR)))


def solar_samples(
    source: Coordinate,
    destination: Coordinate,
    timing: FlightTiming,
) -> list[SolarSample]:
    """
    Sun position relative to the aircraft at evenly spaced instants.

    The series covers departure to arrival inclusive (``step_count + 1``
    samples). The aircraft bearing is the initial great-circle bearing,
    computed once for the whole flight.
    """
    steps = step_count(timing.duration_hours)
    instants = pd.date_range(start=timing.departure, end=timing.arrival, periods=steps + 1)
    bearing = initial_bearing(source, destination)

    samples = []
    for i, instant in enumerate(instants.to_pydatetime()):
        f = i / steps
        position = intermediate_point(source, destination, f)
        sun = sun_position(instant, position.lat, position.lon)
        rel = relative_bearing(sun.azimuth, bearing)
        samples.append(SolarSample(
            timestamp=instant,
            point=PathPoint(position, f),
            sun_azimuth_deg=sun.azimuth,
            sun_altitude_deg=sun.altitude,
            aircraft_bearing_deg=bearing,
            relative_bearing_deg=rel,
            side=sun_side(rel),
            near_horizon=abs(sun.altitude) <= NEAR_HORIZON_DEG,
        ))
    return samples


def score_samples(samples: list[SolarSample]) -> Optional[SeatRecommendation]:
    """
    Pick the window side with the most horizon-weighted sun.

    Only near-horizon samples are scored when there are any. Each sample
    adds ``1 / (1 + |altitude|)`` to its side; the right side wins ties.
    Returns None for an empty series.
    """
    if not samples:
        return None

    retained = [s for s in samples if s.near_horizon] or list(samples)

    weights = {Side.LEFT: 0.0, Side.RIGHT: 0.0}
    for s in retained:
        weights[s.side] += 1.0 / (1.0 + abs(s.sun_altitude_deg))

    best_side = Side.RIGHT if weights[Side.RIGHT] >= weights[Side.LEFT] else Side.LEFT
    total = weights[Side.LEFT] + weights[Side.RIGHT]
    confidence = round(100 * weights[best_side] / total) if total > 0 else 0

    first_alt = retained[0].sun_altitude_deg
    last_alt = retained[-1].sun_altitude_deg
    trend = "sunrise" if last_alt > first_alt else "sunset"

    on_side = [s for s in retained if s.side == best_side] or retained
    best_moment = min(on_side, key=lambda s: abs(s.sun_altitude_deg))

    return SeatRecommendation(
        best_side=best_side,
        trend=trend,
        best_moment=best_moment.timestamp,
        confidence=confidence,
    )


def recommend_seat(
    source: Coordinate,
    destination: Coordinate,
    departure: Optional[datetime],
    cruise_speed_kmh: Optional[float] = None,
    arrival: Optional[datetime] = None,
) -> Optional[SeatRecommendation]:
    """
    Full seat-recommendation pipeline for a single great-circle flight.

    Returns None (not an error) when there is no departure time or the
    endpoints coincide.
    """
    if departure is None:
        return None
    dist = distance_km(source, destination)
    if dist == 0:
        return None
    timing = estimate_timing(
        dist, departure, cruise_speed_kmh or DEFAULT_CRUISE_SPEED_KMH, arrival
    )
    return score_samples(solar_samples(source, destination, timing))

"""Spherical geodesy: distances, bearings and great-circle sampling."""
import math

from core.errors import InvalidParameter
from core.models import Coordinate, PathPoint

EARTH_RADIUS_KM = 6371.0

# Below this sin(delta) the slerp weights are numerically meaningless.
_SLERP_EPSILON = 1e-12


# ---------------------------------------------------------------------------
# Angle helpers
# ---------------------------------------------------------------------------

def wrap_degrees(angle: float) -> float:
    """Normalise an angle to [0, 360)."""
    wrapped = angle % 360.0
    return 0.0 if wrapped == 360.0 else wrapped


def normalize_relative(angle: float) -> float:
    """Normalise an angle to (-180, 180]."""
    a = (angle + 180.0) % 360.0 - 180.0
    if a <= -180.0:
        a += 360.0
    return a


def normalize_longitude(lon: float) -> float:
    """Normalise a longitude to [-180, 180]."""
    if -180.0 <= lon <= 180.0:
        return lon
    return (lon + 180.0) % 360.0 - 180.0


def _degenerate(delta: float) -> bool:
    return abs(math.sin(delta)) < _SLERP_EPSILON


def _linear_length_km(a: Coordinate, b: Coordinate) -> float:
    """Upper bound on the length of the straight lat/lon line from ``a`` to ``b``."""
    return EARTH_RADIUS_KM * math.hypot(
        math.radians(b.lat - a.lat), math.radians(b.lon - a.lon)
    )


def _check_fraction(f: float) -> None:
    if not 0.0 <= f <= 1.0:
        raise InvalidParameter(f"fraction must be within [0, 1], got {f}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine great-circle distance between two points in kilometres."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = phi2 - phi1
    dlmb = math.radians(b.lon - a.lon)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(s)))


def initial_bearing(a: Coordinate, b: Coordinate) -> float:
    """
    Forward azimuth (0–360°, clockwise from north) from ``a`` towards ``b``.
    """
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dlmb = math.radians(b.lon - a.lon)

    x = math.sin(dlmb) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2)
         - math.sin(phi1) * math.cos(phi2) * math.cos(dlmb))

    return wrap_degrees(math.degrees(math.atan2(x, y)))


def intermediate_point(a: Coordinate, b: Coordinate, f: float) -> Coordinate:
    """
    Point at fraction ``f`` of the way from ``a`` to ``b`` along the great circle.

    Coincident and antipodal endpoints have no unique great circle, so the
    result degrades to plain linear interpolation of latitude and longitude.

    Raises:
        InvalidParameter: If ``f`` is outside [0, 1].
    """
    _check_fraction(f)

    phi1, lmb1 = math.radians(a.lat), math.radians(a.lon)
    phi2, lmb2 = math.radians(b.lat), math.radians(b.lon)
    delta = distance_km(a, b) / EARTH_RADIUS_KM
    sin_delta = math.sin(delta)

    if _degenerate(delta):
        return Coordinate(
            a.lat + (b.lat - a.lat) * f,
            a.lon + (b.lon - a.lon) * f,
        )

    A = math.sin((1 - f) * delta) / sin_delta
    B = math.sin(f * delta) / sin_delta

    x = A * math.cos(phi1) * math.cos(lmb1) + B * math.cos(phi2) * math.cos(lmb2)
    y = A * math.cos(phi1) * math.sin(lmb1) + B * math.cos(phi2) * math.sin(lmb2)
    z = A * math.sin(phi1) + B * math.sin(phi2)

    phi = math.atan2(z, math.sqrt(x * x + y * y))
    lmb = math.atan2(y, x)
    return Coordinate(math.degrees(phi), math.degrees(lmb))


def destination_point(start: Coordinate, bearing_deg: float, dist_km: float) -> Coordinate:
    """Project ``dist_km`` from ``start`` along ``bearing_deg`` (clockwise from north)."""
    delta = dist_km / EARTH_RADIUS_KM
    theta = math.radians(bearing_deg)
    phi1 = math.radians(start.lat)
    lmb1 = math.radians(start.lon)

    sin_phi2 = (math.sin(phi1) * math.cos(delta)
                + math.cos(phi1) * math.sin(delta) * math.cos(theta))
    phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
    y = math.sin(theta) * math.sin(delta) * math.cos(phi1)
    x = math.cos(delta) - math.sin(phi1) * sin_phi2
    lmb2 = lmb1 + math.atan2(y, x)

    return Coordinate(math.degrees(phi2), normalize_longitude(math.degrees(lmb2)))


def sample_path(a: Coordinate, b: Coordinate, spacing_km: float) -> list[PathPoint]:
    """
    Sample the great circle from ``a`` to ``b`` at most ``spacing_km`` apart.

    The path has ``ceil(distance / spacing_km) + 1`` points (never fewer
    than two), starts with ``a`` at fraction 0 and ends with ``b`` at
    fraction 1. Antipodal endpoints are sampled along the lat/lon line, so
    their count is sized from that line's length instead.

    Raises:
        InvalidParameter: If ``spacing_km`` is not a positive number.
    """
    if not (isinstance(spacing_km, (int, float)) and math.isfinite(spacing_km)) or spacing_km <= 0:
        raise InvalidParameter(f"spacing_km must be positive, got {spacing_km!r}")

    length = distance_km(a, b)
    if _degenerate(length / EARTH_RADIUS_KM):
        # Samples fall on the lat/lon line, which can be longer than the arc
        length = _linear_length_km(a, b)
    intervals = max(1, math.ceil(length / spacing_km))

    path = [PathPoint(a, 0.0)]
    for i in range(1, intervals):
        f = i / intervals
        path.append(PathPoint(intermediate_point(a, b, f), f))
    path.append(PathPoint(b, 1.0))
    return path

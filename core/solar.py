"""Low-precision solar ephemeris: sun azimuth/altitude and the subsolar point."""
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from core.geodesy import normalize_longitude, normalize_relative, wrap_degrees
from core.models import Coordinate

_J2000_JULIAN_DAY = 2451545.0
_UNIX_EPOCH_JULIAN_DAY = 2440587.5

_OBLIQUITY = math.radians(23.4397)
_PERIHELION = math.radians(102.9372)


@dataclass(frozen=True)
class SunPosition:
    azimuth: float      # degrees clockwise from north, [0, 360)
    altitude: float     # degrees above the horizon (negative below)
    declination: float  # degrees


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

def _days_since_j2000(when: datetime) -> float:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.timestamp() / 86400.0 + _UNIX_EPOCH_JULIAN_DAY - _J2000_JULIAN_DAY


def _equatorial(d: float) -> tuple[float, float]:
    """Right ascension and declination (radians) of the sun ``d`` days after J2000."""
    mean_anomaly = math.radians(357.5291 + 0.98560028 * d)
    center = math.radians(
        1.9148 * math.sin(mean_anomaly)
        + 0.02 * math.sin(2 * mean_anomaly)
        + 0.0003 * math.sin(3 * mean_anomaly)
    )
    ecliptic_lon = mean_anomaly + center + _PERIHELION + math.pi

    right_ascension = math.atan2(
        math.cos(_OBLIQUITY) * math.sin(ecliptic_lon), math.cos(ecliptic_lon)
    )
    declination = math.asin(math.sin(_OBLIQUITY) * math.sin(ecliptic_lon))
    return right_ascension, declination


def _greenwich_sidereal(d: float) -> float:
    return math.radians(280.16 + 360.9856235 * d)


def _wrap_pi(angle: float) -> float:
    return (angle + math.pi) % (2 * math.pi) - math.pi


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def sun_position(when: datetime, lat: float, lon: float) -> SunPosition:
    """
    Solar azimuth and altitude seen from ``(lat, lon)`` at ``when``.

    Args:
        when: Instant of observation; naive datetimes are assumed UTC.
        lat:  Observer latitude in decimal degrees.
        lon:  Observer longitude in decimal degrees (east positive).

    Returns:
        SunPosition with azimuth measured clockwise from north.
    """
    d = _days_since_j2000(when)
    right_ascension, declination = _equatorial(d)

    hour_angle = _wrap_pi(_greenwich_sidereal(d) + math.radians(lon) - right_ascension)
    phi = math.radians(lat)

    sin_alt = (math.sin(phi) * math.sin(declination)
               + math.cos(phi) * math.cos(declination) * math.cos(hour_angle))
    altitude = math.asin(max(-1.0, min(1.0, sin_alt)))

    # atan2 below measures from south towards west; rotate to north-clockwise.
    azimuth_from_south = math.atan2(
        math.sin(hour_angle),
        math.cos(hour_angle) * math.sin(phi) - math.tan(declination) * math.cos(phi),
    )

    return SunPosition(
        azimuth=wrap_degrees(math.degrees(azimuth_from_south) + 180.0),
        altitude=math.degrees(altitude),
        declination=math.degrees(declination),
    )


def subsolar_point(when: datetime) -> Coordinate:
    """Point on the surface where the sun is at the zenith at ``when``."""
    d = _days_since_j2000(when)
    right_ascension, declination = _equatorial(d)

    greenwich_hour_angle = _wrap_pi(_greenwich_sidereal(d) - right_ascension)
    lon = normalize_longitude(-math.degrees(greenwich_hour_angle))
    return Coordinate(math.degrees(declination), lon)


def relative_bearing(sun_azimuth: float, aircraft_bearing: float) -> float:
    """
    Signed angle from the aircraft's nose to the sun, in (-180, 180].

    Positive means the sun is to the right of the nose, negative to the left.
    """
    return normalize_relative(sun_azimuth - aircraft_bearing)

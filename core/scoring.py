"""Side classification: which side of the aircraft a feature or the sun is on."""
from core.geodesy import normalize_relative
from core.models import Coordinate, Side

# |cross| below this (degree² units) counts as lying on the track.
SIDE_TOLERANCE = 1e-9


def cross_track_sign(a: Coordinate, b: Coordinate, p: Coordinate) -> float:
    """
    2D cross product of (a→b) × (a→p) in lon/lat degrees.

    Longitude deltas are wrapped to (-180, 180] so a segment crossing the
    antimeridian keeps its orientation.
    """
    bx = normalize_relative(b.lon - a.lon)
    by = b.lat - a.lat
    px = normalize_relative(p.lon - a.lon)
    py = p.lat - a.lat
    return bx * py - by * px


def classify_side(
    a: Coordinate,
    b: Coordinate,
    p: Coordinate,
    tolerance: float = SIDE_TOLERANCE,
) -> Side:
    """
    Classify ``p`` as left of, right of, or on the segment ``a``→``b``.

    Positive cross product means left (counter-clockwise from the direction
    of travel), negative means right.
    """
    cross = cross_track_sign(a, b, p)
    if abs(cross) < tolerance:
        return Side.BOTH
    return Side.LEFT if cross > 0 else Side.RIGHT


def sun_side(relative_bearing_deg: float) -> Side:
    """
    Window side facing the sun for a relative bearing in (-180, 180].

    0° (dead ahead) counts as left, 180° (dead astern) as right.
    """
    return Side.RIGHT if relative_bearing_deg > 0 else Side.LEFT

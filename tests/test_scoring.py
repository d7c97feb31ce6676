"""Tests for side classification."""
import pytest

from core.models import Coordinate, Side
from core.scoring import classify_side, cross_track_sign, sun_side

ORIGIN = Coordinate(0, 0)
NORTH = Coordinate(1, 0)


def test_west_of_northbound_track_is_left():
    # Heading north, a feature to the west is on the left
    assert classify_side(ORIGIN, NORTH, Coordinate(0.5, -0.3)) == Side.LEFT


def test_east_of_northbound_track_is_right():
    assert classify_side(ORIGIN, NORTH, Coordinate(0.5, 0.3)) == Side.RIGHT


def test_point_on_track_is_both():
    assert classify_side(ORIGIN, NORTH, Coordinate(0.5, 0.0)) == Side.BOTH
    assert classify_side(ORIGIN, NORTH, Coordinate(2.0, 0.0)) == Side.BOTH


def test_eastbound_track_north_is_left():
    east = Coordinate(0, 1)
    assert classify_side(ORIGIN, east, Coordinate(0.2, 0.5)) == Side.LEFT
    assert classify_side(ORIGIN, east, Coordinate(-0.2, 0.5)) == Side.RIGHT


@pytest.mark.parametrize("p", [
    Coordinate(0.5, -0.3),
    Coordinate(0.5, 0.3),
    Coordinate(-3.0, 2.0),
    Coordinate(19.0, 73.5),
])
def test_reversing_segment_swaps_sides(p):
    a, b = Coordinate(28.6, 77.2), Coordinate(19.1, 72.9)
    forward = classify_side(a, b, p)
    backward = classify_side(b, a, p)
    expected = {Side.LEFT: Side.RIGHT, Side.RIGHT: Side.LEFT, Side.BOTH: Side.BOTH}
    assert backward == expected[forward]


def test_reversing_segment_keeps_collinear_point_on_both():
    p = Coordinate(0.5, 0.0)
    assert classify_side(ORIGIN, NORTH, p) == Side.BOTH
    assert classify_side(NORTH, ORIGIN, p) == Side.BOTH


def test_tolerance_widens_the_on_track_band():
    p = Coordinate(0.5, 0.001)
    assert classify_side(ORIGIN, NORTH, p) == Side.RIGHT
    assert classify_side(ORIGIN, NORTH, p, tolerance=0.01) == Side.BOTH


def test_cross_product_wraps_antimeridian():
    # Eastbound across 180°: the segment is short, not a near-global westward sweep
    a, b = Coordinate(0, 179.5), Coordinate(0, -179.5)
    assert cross_track_sign(a, b, Coordinate(0.3, 179.8)) > 0
    assert classify_side(a, b, Coordinate(0.3, 179.8)) == Side.LEFT
    assert classify_side(a, b, Coordinate(-0.3, -179.9)) == Side.RIGHT


# ---------------------------------------------------------------------------
# sun_side
# ---------------------------------------------------------------------------

def test_sun_to_the_right():
    assert sun_side(90) == Side.RIGHT
    assert sun_side(180) == Side.RIGHT


def test_sun_to_the_left():
    assert sun_side(-90) == Side.LEFT
    assert sun_side(-0.5) == Side.LEFT


def test_sun_dead_ahead_is_left():
    assert sun_side(0) == Side.LEFT

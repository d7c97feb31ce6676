"""GeoJSON geometry variants and the degree-based search box."""
import math
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from core.geodesy import destination_point, distance_km, normalize_relative
from core.models import Coordinate

KM_PER_DEGREE = 111.0


@dataclass(frozen=True)
class BoundingBox:
    """
    Degree box around a centre, used to reject far-away vertices cheaply.

    Longitude containment is measured as a wrapped difference from the
    centre so boxes straddling the antimeridian behave correctly.
    """

    center: Coordinate
    lat_span: float
    lon_span: float

    @classmethod
    def around(cls, center: Coordinate, radius_km: float) -> "BoundingBox":
        lat_span = radius_km / KM_PER_DEGREE
        cos_lat = math.cos(math.radians(center.lat))
        if cos_lat < 1e-9:
            lon_span = 180.0
        else:
            lon_span = min(180.0, radius_km / (KM_PER_DEGREE * cos_lat))
        return cls(center, lat_span, lon_span)

    @property
    def min_lat(self) -> float:
        return self.center.lat - self.lat_span

    @property
    def max_lat(self) -> float:
        return self.center.lat + self.lat_span

    @property
    def min_lon(self) -> float:
        return self.center.lon - self.lon_span

    @property
    def max_lon(self) -> float:
        return self.center.lon + self.lon_span

    def contains(self, point: Coordinate) -> bool:
        if abs(point.lat - self.center.lat) > self.lat_span:
            return False
        return abs(normalize_relative(point.lon - self.center.lon)) <= self.lon_span


# ---------------------------------------------------------------------------
# Geometry variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PointGeometry:
    coordinate: Coordinate
    kind = "Point"

    def vertices(self) -> Iterator[Coordinate]:
        yield self.coordinate

    def any_vertex_within(self, box: BoundingBox) -> bool:
        return box.contains(self.coordinate)


@dataclass(frozen=True)
class LineGeometry:
    coordinates: tuple
    kind = "LineString"

    def vertices(self) -> Iterator[Coordinate]:
        yield from self.coordinates

    def any_vertex_within(self, box: BoundingBox) -> bool:
        return any(box.contains(c) for c in self.coordinates)


@dataclass(frozen=True)
class PolygonGeometry:
    rings: tuple
    kind = "Polygon"

    def vertices(self) -> Iterator[Coordinate]:
        for ring in self.rings:
            yield from ring

    def any_vertex_within(self, box: BoundingBox) -> bool:
        return any(box.contains(c) for c in self.vertices())


Geometry = Union[PointGeometry, LineGeometry, PolygonGeometry]


def _coord(position) -> Coordinate:
    # GeoJSON positions are [lon, lat, (alt)]
    return Coordinate(float(position[1]), float(position[0]))


def _ring(positions) -> tuple:
    return tuple(_coord(p) for p in positions)


def parse_geometry(geojson: dict) -> Geometry:
    """
    Convert a GeoJSON geometry object into one of the geometry variants.

    MultiPolygon rings are flattened into a single ``PolygonGeometry``;
    only vertex membership matters for radius searches.

    Raises:
        ValueError: For missing or unsupported geometry types.
        InvalidCoordinate: For positions outside the valid range.
    """
    if not geojson:
        raise ValueError("feature has no geometry")
    kind = geojson.get("type")
    coords = geojson.get("coordinates")

    if kind == "Point":
        return PointGeometry(_coord(coords))
    if kind == "LineString":
        return LineGeometry(_ring(coords))
    if kind == "Polygon":
        return PolygonGeometry(tuple(_ring(r) for r in coords))
    if kind == "MultiPolygon":
        return PolygonGeometry(tuple(_ring(r) for poly in coords for r in poly))
    raise ValueError(f"unsupported geometry type: {kind!r}")


def first_vertex_near(
    geometry: Geometry,
    box: BoundingBox,
    radius_km: float,
) -> Optional[Coordinate]:
    """
    Return the first vertex inside ``box`` and within ``radius_km`` of its centre.

    The box check runs first so the haversine is only evaluated for
    candidates; a record contributes at most one vertex.
    """
    if not geometry.any_vertex_within(box):
        return None
    for vertex in geometry.vertices():
        if box.contains(vertex) and distance_km(box.center, vertex) <= radius_km:
            return vertex
    return None


def circle_polygon(center: Coordinate, radius_km: float, vertices: int = 64) -> list[list[float]]:
    """
    Approximate a circle as a closed GeoJSON ring of ``[lon, lat]`` pairs.

    The first position is repeated as the last one; positions are rounded
    to 6 decimals.
    """
    if vertices < 16:
        raise ValueError("a circle polygon needs at least 16 vertices")
    ring = []
    for i in range(vertices):
        p = destination_point(center, i * 360.0 / vertices, radius_km)
        ring.append([round(p.lon, 6), round(p.lat, 6)])
    ring.append(list(ring[0]))
    return ring

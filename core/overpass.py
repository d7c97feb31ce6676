"""Feature backend querying live OpenStreetMap data through Overpass."""
import logging
from typing import Optional

import httpx

from core.features import FeatureBackend, feature_name, parse_elevation
from core.geometry import BoundingBox, Geometry, LineGeometry, PointGeometry, first_vertex_near
from core.models import Coordinate, Feature, FeatureType

_log = logging.getLogger(__name__)

_OVERPASS_URL = "https://overpass-api.de/api/interpreter"
_GEONAMES_URL = "http://api.geonames.org/findNearbyJSON"


# ---------------------------------------------------------------------------
# Tag vocabulary
# ---------------------------------------------------------------------------

def osm_feature_type(tags: Optional[dict]) -> FeatureType:
    natural = (tags or {}).get("natural")
    if natural == "peak":
        return FeatureType.MOUNTAIN_PEAK
    if natural == "volcano":
        return FeatureType.VOLCANO
    if natural == "coastline":
        return FeatureType.COASTLINE
    return FeatureType.OTHER


def geonames_feature_type(fcode: Optional[str]) -> FeatureType:
    if fcode in ("PK", "PKS"):
        return FeatureType.MOUNTAIN_PEAK
    if fcode == "VLC":
        return FeatureType.VOLCANO
    return FeatureType.OTHER


def build_query(point: Coordinate, radius_km: float, timeout_s: int = 25) -> str:
    radius_m = int(round(radius_km * 1000))
    around = f"(around:{radius_m},{point.lat},{point.lon})"
    return (
        f"[out:json][timeout:{timeout_s}];\n"
        "(\n"
        f'  node["natural"="peak"]{around};\n'
        f'  node["natural"="volcano"]{around};\n'
        f'  way["natural"="coastline"]{around};\n'
        ");\n"
        "out geom;\n"
    )


def _coordinate(raw: dict) -> Optional[Coordinate]:
    try:
        return Coordinate(float(raw["lat"]), float(raw["lon"]))
    except (KeyError, TypeError, ValueError):
        return None


def _element_geometry(element: dict) -> Optional[Geometry]:
    """Node position, way geometry, or way centre when no geometry came back."""
    if element.get("type", "node") == "node":
        point = _coordinate(element)
        return PointGeometry(point) if point is not None else None
    vertices = tuple(
        c for c in (_coordinate(v) for v in element.get("geometry") or []) if c is not None
    )
    if not vertices and element.get("center"):
        center = _coordinate(element["center"])
        vertices = (center,) if center is not None else ()
    return LineGeometry(vertices) if vertices else None


class OverpassBackend(FeatureBackend):
    """
    Query the Overpass API per search point.

    Data is always fresh but every segment costs a network round trip.
    Network or payload failures are soft misses: the query returns an
    empty list and logs a warning. When Overpass finds nothing and a
    GeoNames username is configured, GeoNames is tried as a fallback.
    """

    name = "live_query"

    def __init__(
        self,
        url: str = _OVERPASS_URL,
        timeout_s: float = 30.0,
        geonames_username: Optional[str] = None,
        geonames_url: str = _GEONAMES_URL,
    ):
        self.url = url
        self.timeout_s = timeout_s
        self.geonames_username = geonames_username
        self.geonames_url = geonames_url

    async def find_near(self, point: Coordinate, radius_km: float) -> list[Feature]:
        self.check_radius(radius_km)
        features = await self._query_overpass(point, radius_km)
        if features or not self.geonames_username:
            return features
        _log.info("Overpass returned no features near %s, trying GeoNames", point)
        return await self._query_geonames(point, radius_km)

    async def _query_overpass(self, point: Coordinate, radius_km: float) -> list[Feature]:
        query = build_query(point, radius_km)
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.post(
                    self.url, content=query, headers={"Content-Type": "text/plain"}
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            _log.warning("Overpass query near %s failed: %s", point, exc)
            return []
        return self.parse_overpass(data, point, radius_km)

    def parse_overpass(self, data: dict, point: Coordinate, radius_km: float) -> list[Feature]:
        """
        Convert Overpass elements to features located within ``radius_km``.

        A way is reported at its first vertex inside the circle. Ways that
        only cross the circle between vertices, and nodes outside it, are
        dropped.
        """
        box = BoundingBox.around(point, radius_km)
        features = []
        for element in (data or {}).get("elements") or []:
            geometry = _element_geometry(element)
            location = first_vertex_near(geometry, box, radius_km) if geometry else None
            if location is None:
                continue
            tags = element.get("tags") or {}
            features.append(Feature(
                id=f"{element.get('type', 'node')}/{element.get('id')}",
                location=location,
                generic_type=osm_feature_type(tags),
                name=feature_name(tags),
                source=self.name,
                elevation=parse_elevation(tags),
                geometry_type="Point" if element.get("type") == "node" else "LineString",
            ))
        return features

    async def _query_geonames(self, point: Coordinate, radius_km: float) -> list[Feature]:
        params = {
            "lat": point.lat,
            "lng": point.lon,
            "radius": radius_km,
            "maxRows": 100,
            "username": self.geonames_username,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.get(self.geonames_url, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            _log.warning("GeoNames query near %s failed: %s", point, exc)
            return []

        features = []
        for place in (data or {}).get("geonames") or []:
            try:
                location = Coordinate(float(place["lat"]), float(place["lng"]))
            except (KeyError, TypeError, ValueError):
                continue
            features.append(Feature(
                id=f"geonames/{place.get('geonameId')}",
                location=location,
                generic_type=geonames_feature_type(place.get("fcode")),
                name=place.get("name") or "Unnamed",
                source=self.name,
                elevation=parse_elevation(place),
            ))
        return features

"""Value types shared by the geodesy, backend and pipeline modules."""
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from core.errors import InvalidCoordinate


@dataclass(frozen=True)
class Coordinate:
    """A point on the globe in decimal degrees."""

    lat: float
    lon: float

    def __post_init__(self):
        lat, lon = self.lat, self.lon
        if not (isinstance(lat, (int, float)) and isinstance(lon, (int, float))):
            raise InvalidCoordinate(f"coordinates must be numbers, got ({lat!r}, {lon!r})")
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidCoordinate(f"coordinates must be finite, got ({lat}, {lon})")
        if not -90.0 <= lat <= 90.0:
            raise InvalidCoordinate(f"latitude {lat} outside [-90, 90]")
        if not -180.0 <= lon <= 180.0:
            raise InvalidCoordinate(f"longitude {lon} outside [-180, 180]")

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class PathPoint:
    """A coordinate tagged with its fraction (0..1) along a route."""

    coordinate: Coordinate
    fraction: float

    @property
    def lat(self) -> float:
        return self.coordinate.lat

    @property
    def lon(self) -> float:
        return self.coordinate.lon

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon, "fraction": self.fraction}


class FeatureType(str, Enum):
    MOUNTAIN_PEAK = "mountain_peak"
    VOLCANO = "volcano"
    COASTLINE = "coastline"
    OTHER = "other"


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


@dataclass(frozen=True)
class Feature:
    """A natural landmark returned by a feature backend.

    ``location`` is the vertex that satisfied the radius test, so for
    coastlines it is the nearest-found point rather than a centroid.
    """

    id: str
    location: Coordinate
    generic_type: FeatureType
    name: str
    source: str
    elevation: Optional[float] = None
    geometry_type: str = "Point"

    @property
    def dedup_key(self) -> tuple:
        return (
            self.generic_type.value,
            self.name.strip().lower(),
            round(self.location.lat, 6),
            round(self.location.lon, 6),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lat": self.location.lat,
            "lon": self.location.lon,
            "generic_type": self.generic_type.value,
            "name": self.name,
            "elevation": self.elevation,
            "source": self.source,
            "geometry_type": self.geometry_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Feature":
        return cls(
            id=str(data["id"]),
            location=Coordinate(data["lat"], data["lon"]),
            generic_type=FeatureType(data["generic_type"]),
            name=data["name"],
            source=data["source"],
            elevation=data.get("elevation"),
            geometry_type=data.get("geometry_type", "Point"),
        )


@dataclass(frozen=True)
class FlightTiming:
    departure: datetime
    arrival: datetime
    duration_hours: float

    def to_dict(self) -> dict:
        return {
            "departure": self.departure.isoformat(),
            "arrival": self.arrival.isoformat(),
            "duration_hours": round(self.duration_hours, 4),
        }


@dataclass(frozen=True)
class SolarSample:
    """The sun as seen from the aircraft at one instant of the flight."""

    timestamp: datetime
    point: PathPoint
    sun_azimuth_deg: float
    sun_altitude_deg: float
    aircraft_bearing_deg: float
    relative_bearing_deg: float
    side: Side
    near_horizon: bool


@dataclass(frozen=True)
class SeatRecommendation:
    best_side: Side
    trend: str
    best_moment: datetime
    confidence: int

    def to_dict(self) -> dict:
        return {
            "best_side": self.best_side.value,
            "trend": self.trend,
            "best_moment": self.best_moment.isoformat(),
            "confidence": self.confidence,
        }


def _empty_results() -> dict:
    return {side: [] for side in Side}


@dataclass(frozen=True)
class RouteSceneryResult:
    """Sampled path plus the features seen on each side of it."""

    path: list
    results: dict = field(default_factory=_empty_results)
    metadata: dict = field(default_factory=dict)
    seat: Optional[SeatRecommendation] = None

    @property
    def left(self) -> list:
        return self.results[Side.LEFT]

    @property
    def right(self) -> list:
        return self.results[Side.RIGHT]

    @property
    def both(self) -> list:
        return self.results[Side.BOTH]

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": [p.to_dict() for p in self.path],
            "results": {
                side.value: [f.to_dict() for f in features]
                for side, features in self.results.items()
            },
            "metadata": dict(self.metadata),
            "seat": self.seat.to_dict() if self.seat else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RouteSceneryResult":
        """Rebuild the scenery part of a cached result (``seat`` is not restored)."""
        path = [
            PathPoint(Coordinate(p["lat"], p["lon"]), p["fraction"])
            for p in data["path"]
        ]
        results = {
            side: [Feature.from_dict(f) for f in data["results"].get(side.value, [])]
            for side in Side
        }
        return cls(path=path, results=results, metadata=dict(data.get("metadata", {})))

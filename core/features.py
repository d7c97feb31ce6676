"""Feature backend contract and the NDJSON source-record reader."""
import abc
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Optional

from core.errors import InvalidParameter
from core.geometry import Geometry, parse_geometry
from core.models import Coordinate, Feature, FeatureType

_log = logging.getLogger(__name__)

# Default source files, one per generic type, inside the feature data directory.
DEFAULT_FEATURE_FILES: dict[FeatureType, str] = {
    FeatureType.VOLCANO: "asia_volcanoes.ndjson",
    FeatureType.MOUNTAIN_PEAK: "asia_peaks.ndjson",
    FeatureType.COASTLINE: "asia_coastlines.ndjson",
}


class FeatureBackend(abc.ABC):
    """Finds natural features within a radius of a point."""

    name: str = "abstract"

    @abc.abstractmethod
    async def find_near(self, point: Coordinate, radius_km: float) -> list[Feature]:
        """Return every feature with a vertex within ``radius_km`` of ``point``."""

    @staticmethod
    def check_radius(radius_km: float) -> None:
        if not (isinstance(radius_km, (int, float)) and math.isfinite(radius_km)) or radius_km <= 0:
            raise InvalidParameter(f"radius_km must be positive, got {radius_km!r}")


# ---------------------------------------------------------------------------
# Source records
# ---------------------------------------------------------------------------

def parse_elevation(properties: Mapping) -> Optional[float]:
    """
    Read an elevation from OSM-style properties.

    ``elevation`` wins over ``ele``; values may be numbers, numeric strings
    ("8848", "8848 m") or Mongo extended JSON (``{"$numberDouble": "..."}``).
    """
    raw = properties.get("elevation") or properties.get("ele")
    if isinstance(raw, Mapping):
        raw = raw.get("$numberDouble")
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip().split(" ")[0].replace(",", ".")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def feature_name(properties: Mapping) -> str:
    return properties.get("name") or properties.get("alt_name") or "Unnamed"


@dataclass(frozen=True)
class FeatureRecord:
    """One source feature before it is matched against a search point."""

    id: str
    generic_type: FeatureType
    name: str
    elevation: Optional[float]
    geometry: Geometry

    @classmethod
    def from_geojson(
        cls, doc: Mapping, generic_type: FeatureType, fallback_id: str
    ) -> "FeatureRecord":
        properties = doc.get("properties") or {}
        record_id = doc.get("id", doc.get("_id"))
        return cls(
            id=str(record_id) if record_id is not None else fallback_id,
            generic_type=generic_type,
            name=feature_name(properties),
            elevation=parse_elevation(properties),
            geometry=parse_geometry(doc.get("geometry")),
        )

    def to_feature(self, location: Coordinate, source: str) -> Feature:
        return Feature(
            id=self.id,
            location=location,
            generic_type=self.generic_type,
            name=self.name,
            source=source,
            elevation=self.elevation,
            geometry_type=self.geometry.kind,
        )


def iter_records(path: Path, generic_type: FeatureType) -> Iterator[FeatureRecord]:
    """
    Stream the GeoJSON features of one NDJSON file.

    Blank and malformed lines are skipped; the count is logged once the
    file is exhausted.
    """
    skipped = 0
    line_no = 0
    with open(path, encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                doc = json.loads(line)
                record = FeatureRecord.from_geojson(
                    doc, generic_type, fallback_id=f"{generic_type.value}_{line_no}"
                )
            except (ValueError, KeyError, TypeError, IndexError):
                skipped += 1
                continue
            yield record
    if skipped:
        _log.debug("Skipped %d malformed lines of %d in %s", skipped, line_no, path)


def feature_files(
    data_dir: Path, files: Optional[Mapping[FeatureType, str]] = None
) -> dict[FeatureType, Path]:
    files = files or DEFAULT_FEATURE_FILES
    return {generic_type: Path(data_dir) / name for generic_type, name in files.items()}

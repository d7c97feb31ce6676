"""Feature backend that streams static NDJSON files with a bounding-box prefilter."""
import asyncio
import logging
from pathlib import Path
from typing import Mapping

from core.features import FeatureBackend, iter_records
from core.geometry import BoundingBox, first_vertex_near
from core.models import Coordinate, Feature, FeatureType

_log = logging.getLogger(__name__)


class FileScanBackend(FeatureBackend):
    """
    Scan every configured NDJSON file on each query.

    Slow but needs no setup: records are rejected by a degree bounding box
    before the exact haversine test runs.
    """

    name = "file_scan"

    def __init__(self, files: Mapping[FeatureType, Path]):
        self.files = dict(files)

    async def find_near(self, point: Coordinate, radius_km: float) -> list[Feature]:
        self.check_radius(radius_km)
        return await asyncio.to_thread(self._scan, point, radius_km)

    def _scan(self, point: Coordinate, radius_km: float) -> list[Feature]:
        box = BoundingBox.around(point, radius_km)
        _log.debug(
            "Bounding box lat(%.4f, %.4f) lon(%.4f, %.4f)",
            box.min_lat, box.max_lat, box.min_lon, box.max_lon,
        )

        features: list[Feature] = []
        for generic_type, path in self.files.items():
            if not path.exists():
                _log.debug("Feature file not found: %s", path)
                continue

            scanned = in_box = 0
            for record in iter_records(path, generic_type):
                scanned += 1
                if not record.geometry.any_vertex_within(box):
                    continue
                in_box += 1
                vertex = first_vertex_near(record.geometry, box, radius_km)
                if vertex is not None:
                    features.append(record.to_feature(vertex, self.name))

            _log.debug(
                "%s: %d scanned, %d in bounds", generic_type.value, scanned, in_box
            )
        return features

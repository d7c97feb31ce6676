"""Feature backend delegating to MongoDB 2dsphere queries."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Mapping, Optional

from pymongo import ASCENDING, GEOSPHERE, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from core.errors import BackendQueryFailed
from core.features import FeatureBackend, FeatureRecord
from core.geometry import BoundingBox, circle_polygon, first_vertex_near
from core.models import Coordinate, Feature, FeatureType

_log = logging.getLogger(__name__)

DEFAULT_COLLECTIONS: dict[FeatureType, str] = {
    FeatureType.MOUNTAIN_PEAK: "peaks",
    FeatureType.VOLCANO: "volcanoes",
    FeatureType.COASTLINE: "coastlines",
}

# OSM ``natural`` tag stored on point-like collections.
_NATURAL_TAG = {
    FeatureType.MOUNTAIN_PEAK: "peak",
    FeatureType.VOLCANO: "volcano",
}

_SHAPE_TYPES = ["LineString", "Polygon", "MultiPolygon"]


class IndexedStoreBackend(FeatureBackend):
    """
    Query pre-imported feature collections with native geospatial operators.

    Point documents use ``$nearSphere`` bounded by ``$maxDistance``; line and
    polygon documents use ``$geoIntersects`` against a circle approximated
    as a closed polygon.
    """

    name = "indexed_store"
    result_limit = 200

    def __init__(
        self,
        collections: Mapping[FeatureType, Collection],
        circle_vertices: int = 64,
    ):
        self.collections = dict(collections)
        self.circle_vertices = circle_vertices
        self._indexes_ready = False

    @classmethod
    def from_uri(
        cls,
        uri: str,
        database: str,
        collection_names: Optional[Mapping[FeatureType, str]] = None,
        timeout_ms: int = 5000,
    ) -> "IndexedStoreBackend":
        client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        db = client[database]
        names = collection_names or DEFAULT_COLLECTIONS
        return cls({generic_type: db[name] for generic_type, name in names.items()})

    # -----------------------------------------------------------------------
    # Setup
    # -----------------------------------------------------------------------

    def ensure_indexes(self) -> None:
        """Create the 2dsphere and ``properties.natural`` indexes once."""
        if self._indexes_ready:
            return
        for collection in self.collections.values():
            collection.create_index([("geometry", GEOSPHERE)])
            collection.create_index([("properties.natural", ASCENDING)])
        self._indexes_ready = True
        _log.info("Geospatial indexes ensured on %d collections", len(self.collections))

    def import_file(self, generic_type: FeatureType, path: Path, batch_size: int = 1000) -> int:
        """
        Bulk-load one NDJSON file into the collection for ``generic_type``.

        Lines that do not parse as a supported GeoJSON feature are skipped.
        Returns the number of inserted documents.
        """
        collection = self.collections[generic_type]
        inserted = 0
        batch: list[dict] = []
        with open(path, encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    doc = json.loads(line)
                    FeatureRecord.from_geojson(doc, generic_type, f"{generic_type.value}_{line_no}")
                except (ValueError, KeyError, TypeError, IndexError):
                    continue
                batch.append(doc)
                if len(batch) >= batch_size:
                    inserted += len(collection.insert_many(batch).inserted_ids)
                    batch = []
        if batch:
            inserted += len(collection.insert_many(batch).inserted_ids)
        _log.info("Imported %d %s documents from %s", inserted, generic_type.value, path)
        return inserted

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    async def find_near(self, point: Coordinate, radius_km: float) -> list[Feature]:
        self.check_radius(radius_km)
        try:
            return await asyncio.to_thread(self._query, point, radius_km)
        except PyMongoError as exc:
            raise BackendQueryFailed(self.name, str(exc)) from exc

    def _query(self, point: Coordinate, radius_km: float) -> list[Feature]:
        self.ensure_indexes()
        radius_m = radius_km * 1000.0
        circle = circle_polygon(point, radius_km, self.circle_vertices)
        box = BoundingBox.around(point, radius_km)

        features: list[Feature] = []
        for generic_type, collection in self.collections.items():
            docs = []
            natural = _NATURAL_TAG.get(generic_type)
            if natural is not None:
                docs.extend(collection.find({
                    "properties.natural": natural,
                    "geometry.type": "Point",
                    "geometry": {
                        "$nearSphere": {
                            "$geometry": {"type": "Point", "coordinates": [point.lon, point.lat]},
                            "$maxDistance": radius_m,
                        }
                    },
                }).limit(self.result_limit))

            shape_filter = {
                "geometry.type": {"$in": _SHAPE_TYPES},
                "geometry": {
                    "$geoIntersects": {
                        "$geometry": {"type": "Polygon", "coordinates": [circle]}
                    }
                },
            }
            if natural is not None:
                shape_filter["properties.natural"] = natural
            cursor = collection.find(shape_filter)
            if natural is not None:
                cursor = cursor.limit(self.result_limit)
            docs.extend(cursor)

            found = [self._to_feature(doc, generic_type, box, radius_km) for doc in docs]
            found = [f for f in found if f is not None]
            _log.debug("%s: %d documents near %s", generic_type.value, len(found), point)
            features.extend(found)
        return features

    def _to_feature(
        self, doc: Mapping, generic_type: FeatureType, box: BoundingBox, radius_km: float
    ) -> Optional[Feature]:
        try:
            record = FeatureRecord.from_geojson(doc, generic_type, f"{generic_type.value}_?")
        except (ValueError, KeyError, TypeError, IndexError):
            _log.debug("Ignoring malformed %s document %s", generic_type.value, doc.get("_id"))
            return None
        vertex = first_vertex_near(record.geometry, box, radius_km)
        if vertex is None:
            # A long edge can cross the circle with no vertex inside it.
            vertex = next(record.geometry.vertices())
        return record.to_feature(vertex, self.name)

"""Select the one active feature backend for this deployment."""
import logging

from core.config import Settings
from core.features import FeatureBackend, feature_files
from core.file_scan import FileScanBackend
from core.grid import GridBackend, GridIndex
from core.indexed_store import IndexedStoreBackend
from core.overpass import OverpassBackend

_log = logging.getLogger(__name__)

_TRADEOFFS = {
    "file_scan": {
        "speed": "slow",
        "setup": "none required",
        "data_freshness": "static files",
        "reliability": "high",
    },
    "indexed_store": {
        "speed": "very fast",
        "setup": "import feature files into MongoDB",
        "data_freshness": "static files",
        "reliability": "high",
    },
    "grid": {
        "speed": "fast",
        "setup": "grid index built from the feature files",
        "data_freshness": "static files",
        "reliability": "high",
    },
    "live_query": {
        "speed": "medium",
        "setup": "none required",
        "data_freshness": "live data",
        "reliability": "medium (depends on the remote service)",
    },
}


def describe_backends(settings: Settings) -> dict:
    return {
        "current": settings.feature_backend,
        "available": list(_TRADEOFFS),
        "tradeoffs": _TRADEOFFS,
    }


def _grid_index(settings: Settings) -> GridIndex:
    grid_dir = settings.grid_data_dir
    if grid_dir.is_dir() and any(grid_dir.glob("*.json")):
        _log.info("Using grid cells from %s", grid_dir)
        return GridIndex(settings.grid_cell_km, directory=grid_dir)
    _log.info("No grid cells in %s; building index from %s", grid_dir, settings.feature_data_dir)
    return GridIndex.from_files(feature_files(settings.feature_data_dir), settings.grid_cell_km)


def create_backend(settings: Settings) -> FeatureBackend:
    """
    Instantiate the backend named by ``settings.feature_backend``.

    Raises:
        ValueError: For an unknown backend, or ``indexed_store`` without MONGO_URI.
    """
    kind = settings.feature_backend
    if kind == "file_scan":
        backend = FileScanBackend(feature_files(settings.feature_data_dir))
    elif kind == "indexed_store":
        if not settings.mongo_uri:
            raise ValueError("MONGO_URI must be set for the indexed_store backend")
        backend = IndexedStoreBackend.from_uri(settings.mongo_uri, settings.mongo_db)
    elif kind == "grid":
        backend = GridBackend(_grid_index(settings))
    elif kind == "live_query":
        backend = OverpassBackend(
            url=settings.overpass_url,
            timeout_s=settings.backend_timeout_s,
            geonames_username=settings.geonames_username,
        )
    else:
        raise ValueError(f"Unknown feature backend: {kind!r}")

    _log.info("Feature backend: %s", backend.name)
    return backend

"""Deployment configuration read from the environment (and a .env file)."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BACKEND_TYPES = ("file_scan", "indexed_store", "grid", "live_query")


@dataclass(frozen=True)
class Settings:
    feature_backend: str = "file_scan"
    feature_data_dir: Path = Path("overpass-data")
    grid_data_dir: Path = Path("data/grid")
    grid_cell_km: float = 50.0
    mongo_uri: Optional[str] = None
    mongo_db: str = "flyby"
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    geonames_username: Optional[str] = None
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    geocoder_user_agent: str = "flyby-views/0.1"
    route_spacing_km: float = 50.0
    spacing_coarsen_factor: float = 3.0
    segment_radius_km: float = 75.0
    segment_concurrency: int = 8
    backend_timeout_s: float = 30.0
    geocoder_timeout_s: float = 10.0
    cruise_speed_kmh: float = 850.0
    redis_url: Optional[str] = None
    cache_ttl_s: int = 7 * 24 * 3600
    log_level: str = "INFO"


def _number(name: str, default, cast=float):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings() -> Settings:
    """
    Build ``Settings`` from environment variables.

    A ``.env`` file in the working directory is loaded first; variables
    already present in the environment take precedence.

    Raises:
        ValueError: On an unknown FEATURE_BACKEND or a malformed number.
    """
    load_dotenv()
    defaults = Settings()

    backend = os.getenv("FEATURE_BACKEND", defaults.feature_backend).strip().lower()
    if backend not in BACKEND_TYPES:
        raise ValueError(
            f"FEATURE_BACKEND must be one of {', '.join(BACKEND_TYPES)}; got {backend!r}"
        )

    return Settings(
        feature_backend=backend,
        feature_data_dir=Path(os.getenv("FEATURE_DATA_DIR", str(defaults.feature_data_dir))),
        grid_data_dir=Path(os.getenv("GRID_DATA_DIR", str(defaults.grid_data_dir))),
        grid_cell_km=_number("GRID_CELL_KM", defaults.grid_cell_km),
        mongo_uri=os.getenv("MONGO_URI") or None,
        mongo_db=os.getenv("MONGO_DB", defaults.mongo_db),
        overpass_url=os.getenv("OVERPASS_URL", defaults.overpass_url),
        geonames_username=os.getenv("GEONAMES_USERNAME") or None,
        nominatim_url=os.getenv("NOMINATIM_URL", defaults.nominatim_url),
        geocoder_user_agent=os.getenv("GEOCODER_USER_AGENT", defaults.geocoder_user_agent),
        route_spacing_km=_number("ROUTE_SPACING_KM", defaults.route_spacing_km),
        spacing_coarsen_factor=_number("SPACING_COARSEN_FACTOR", defaults.spacing_coarsen_factor),
        segment_radius_km=_number("SEGMENT_RADIUS_KM", defaults.segment_radius_km),
        segment_concurrency=_number("SEGMENT_CONCURRENCY", defaults.segment_concurrency, int),
        backend_timeout_s=_number("BACKEND_TIMEOUT_S", defaults.backend_timeout_s),
        geocoder_timeout_s=_number("GEOCODER_TIMEOUT_S", defaults.geocoder_timeout_s),
        cruise_speed_kmh=_number("CRUISE_SPEED_KMH", defaults.cruise_speed_kmh),
        redis_url=os.getenv("REDIS_URL") or None,
        cache_ttl_s=_number("CACHE_TTL_S", defaults.cache_ttl_s, int),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )

"""Route-scenery pipeline: great-circle path, segment searches, side aggregation."""
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from core.cache import route_cache_key
from core.config import Settings
from core.errors import InvalidParameter
from core.features import FeatureBackend
from core.geocoding import GeocodedPlace
from core.geodesy import distance_km, intermediate_point, sample_path
from core.models import Coordinate, Feature, PathPoint, RouteSceneryResult, Side
from core.scorer import DEFAULT_CRUISE_SPEED_KMH, estimate_timing, recommend_seat
from core.scoring import SIDE_TOLERANCE, classify_side

_log = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def resolve(self, name: str) -> GeocodedPlace: ...


class Cache(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


@dataclass(frozen=True)
class SceneryParams:
    """Tuning constants for the segment search."""

    spacing_km: float = 50.0
    coarsen_factor: float = 3.0
    search_radius_km: float = 75.0
    max_concurrency: int = 8
    backend_timeout_s: float = 30.0
    side_tolerance: float = SIDE_TOLERANCE
    cruise_speed_kmh: float = DEFAULT_CRUISE_SPEED_KMH
    cache_ttl_s: int = 7 * 24 * 3600

    @property
    def search_spacing_km(self) -> float:
        return self.spacing_km * self.coarsen_factor

    @classmethod
    def from_settings(cls, settings: Settings) -> "SceneryParams":
        return cls(
            spacing_km=settings.route_spacing_km,
            coarsen_factor=settings.spacing_coarsen_factor,
            search_radius_km=settings.segment_radius_km,
            max_concurrency=settings.segment_concurrency,
            backend_timeout_s=settings.backend_timeout_s,
            cruise_speed_kmh=settings.cruise_speed_kmh,
            cache_ttl_s=settings.cache_ttl_s,
        )


@dataclass(frozen=True)
class _SegmentResult:
    index: int
    start: PathPoint
    end: PathPoint
    features: list
    failed: bool = False


class RouteSceneryPlanner:
    """
    Plan a route between two named places and list the scenery along it.

    The feature backend, geocoder and (optional) cache are injected; the
    planner holds no per-request state, so one instance serves concurrent
    requests.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        backend: FeatureBackend,
        params: Optional[SceneryParams] = None,
        cache: Optional[Cache] = None,
    ):
        self.geocoder = geocoder
        self.backend = backend
        self.params = params or SceneryParams()
        self.cache = cache

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def plan_route(
        self,
        source_name: str,
        dest_name: str,
        departure_time: Optional[datetime] = None,
        arrival_time: Optional[datetime] = None,
        cruise_speed_kmh: Optional[float] = None,
    ) -> RouteSceneryResult:
        """
        Return path, scenery and seat advice between two named places.

        The cache is consulted first; both endpoints are geocoded only on
        a miss.

        Raises:
            EndpointNotFound: If either endpoint cannot be geocoded.
            InvalidParameter: If ``arrival_time`` is given without a
                              departure, or is not after it.
        """
        if arrival_time is not None and departure_time is None:
            raise InvalidParameter("arrival time requires a departure time")

        # Entries are only stored after both names geocoded
        key = route_cache_key(source_name, dest_name)
        scenery = await self._cached(key)
        if scenery is None:
            source, dest = await asyncio.gather(
                self.geocoder.resolve(source_name),
                self.geocoder.resolve(dest_name),
            )
            scenery = await self.scenery_between(
                source.coordinate, dest.coordinate, source.name, dest.name
            )
            await self._store(key, scenery)

        if departure_time is None:
            return scenery

        speed = cruise_speed_kmh or self.params.cruise_speed_kmh
        timing = estimate_timing(
            scenery.metadata["distance_km"], departure_time, speed, arrival_time
        )
        seat = recommend_seat(
            scenery.path[0].coordinate, scenery.path[-1].coordinate,
            departure_time, speed, arrival_time,
        )
        metadata = {**scenery.metadata, "timing": timing.to_dict()}
        return RouteSceneryResult(
            path=scenery.path, results=scenery.results, metadata=metadata, seat=seat
        )

    async def scenery_between(
        self,
        source: Coordinate,
        dest: Coordinate,
        source_label: str = "",
        dest_label: str = "",
    ) -> RouteSceneryResult:
        """
        Search every path segment and split the unique features by side.

        Segment queries run concurrently (bounded by ``max_concurrency``);
        a failing or timed-out segment contributes no features.
        """
        total_km = distance_km(source, dest)
        path = sample_path(source, dest, self.params.search_spacing_km)
        segments = list(zip(path, path[1:]))
        _log.info(
            "Route %s -> %s: %.1f km, %d waypoints every %.0f km",
            source_label or source, dest_label or dest, total_km,
            len(path), self.params.search_spacing_km,
        )

        limiter = asyncio.Semaphore(self.params.max_concurrency)
        segment_results = await asyncio.gather(*(
            self._search_segment(i, a, b, len(segments), limiter)
            for i, (a, b) in enumerate(segments)
        ))

        results, unique = self._aggregate(segment_results)
        found = sum(len(r.features) for r in segment_results)
        failed = sum(1 for r in segment_results if r.failed)
        _log.info(
            "Found %d items, %d unique (left %d, right %d, both %d); %d/%d segments failed",
            found, unique, len(results[Side.LEFT]), len(results[Side.RIGHT]),
            len(results[Side.BOTH]), failed, len(segments),
        )

        metadata = {
            "source": source_label or f"{source.lat},{source.lon}",
            "destination": dest_label or f"{dest.lat},{dest.lon}",
            "source_coordinates": source.to_dict(),
            "destination_coordinates": dest.to_dict(),
            "distance_km": round(total_km, 3),
            "algorithm": f"{self.backend.name}-segments",
            "segments": len(segments),
            "segments_failed": failed,
            "features_found": found,
            "unique_features": unique,
        }
        return RouteSceneryResult(path=path, results=results, metadata=metadata)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _search_segment(
        self,
        index: int,
        a: PathPoint,
        b: PathPoint,
        total: int,
        limiter: asyncio.Semaphore,
    ) -> _SegmentResult:
        mid = intermediate_point(a.coordinate, b.coordinate, 0.5)
        radius = self.params.search_radius_km
        async with limiter:
            _log.debug(
                "[%d/%d] Searching around (%.4f, %.4f) with radius %.0f km",
                index + 1, total, mid.lat, mid.lon, radius,
            )
            try:
                features = await asyncio.wait_for(
                    self.backend.find_near(mid, radius), self.params.backend_timeout_s
                )
            except asyncio.TimeoutError:
                _log.warning(
                    "Segment %d/%d timed out after %.0f s; treating as empty",
                    index + 1, total, self.params.backend_timeout_s,
                )
                return _SegmentResult(index, a, b, [], failed=True)
            except Exception as exc:
                _log.warning(
                    "Segment %d/%d lookup failed (%s); treating as empty",
                    index + 1, total, exc,
                )
                return _SegmentResult(index, a, b, [], failed=True)
        return _SegmentResult(index, a, b, list(features))

    def _aggregate(self, segment_results: list) -> tuple[dict, int]:
        """Deduplicate in segment order and classify with the discovering segment."""
        results: dict[Side, list[Feature]] = {side: [] for side in Side}
        seen: set = set()
        for seg in sorted(segment_results, key=lambda r: r.index):
            for feature in seg.features:
                key = feature.dedup_key
                if key in seen:
                    continue
                seen.add(key)
                side = classify_side(
                    seg.start.coordinate, seg.end.coordinate, feature.location,
                    self.params.side_tolerance,
                )
                results[side].append(feature)
        return results, len(seen)

    async def _cached(self, key: str) -> Optional[RouteSceneryResult]:
        if self.cache is None:
            return None
        try:
            raw = await self.cache.get(key)
        except Exception as exc:
            _log.warning("Cache GET failed for %r: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            result = RouteSceneryResult.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            _log.warning("Ignoring unreadable cache entry %r: %s", key, exc)
            return None
        _log.info("Cache hit for %r", key)
        return result

    async def _store(self, key: str, result: RouteSceneryResult) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, json.dumps(result.to_dict()), self.params.cache_ttl_s)
        except Exception as exc:
            _log.warning("Cache SET failed for %r: %s", key, exc)

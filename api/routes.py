"""API route definitions."""
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator, model_validator

from core.backends import create_backend, describe_backends
from core.cache import MemoryCache, RedisCache
from core.config import Settings, load_settings
from core.errors import EndpointNotFound, InvalidCoordinate, InvalidParameter
from core.geocoding import NominatimGeocoder
from core.geodesy import distance_km
from core.models import Coordinate
from core.scenery import RouteSceneryPlanner, SceneryParams
from core.scorer import estimate_timing, score_samples, solar_samples
from core.solar import subsolar_point, sun_position

router = APIRouter()

_log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

def _utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class RouteSceneryRequest(BaseModel):
    source_city: str = Field(..., min_length=1, description="Departure place name")
    dest_city: str = Field(..., min_length=1, description="Arrival place name")
    departure_time: Optional[datetime] = Field(
        None, description="ISO 8601 departure; naive timestamps assumed UTC"
    )
    arrival_time: Optional[datetime] = Field(
        None, description="ISO 8601 arrival; overrides the cruise-speed estimate"
    )
    cruise_speed_kmh: Optional[float] = Field(None, gt=0, description="Defaults to 850 km/h")

    @field_validator("source_city", "dest_city")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be a non-empty string")
        return value.strip()

    @model_validator(mode="after")
    def _check_times(self) -> "RouteSceneryRequest":
        self.departure_time = _utc(self.departure_time)
        self.arrival_time = _utc(self.arrival_time)
        if self.arrival_time is not None:
            if self.departure_time is None:
                raise ValueError("arrival_time requires departure_time")
            if self.arrival_time <= self.departure_time:
                raise ValueError("arrival_time must be after departure_time")
        return self


class CoordinateIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class SeatRequest(BaseModel):
    source: CoordinateIn
    destination: CoordinateIn
    departure_time: datetime
    arrival_time: Optional[datetime] = None
    cruise_speed_kmh: Optional[float] = Field(None, gt=0)


class FeatureOut(BaseModel):
    id: str
    lat: float
    lon: float
    generic_type: str
    name: str
    elevation: Optional[float] = None
    source: str
    geometry_type: str


class PathPointOut(BaseModel):
    lat: float
    lon: float
    fraction: float


class SideResults(BaseModel):
    left: list[FeatureOut]
    right: list[FeatureOut]
    both: list[FeatureOut]


class SeatOut(BaseModel):
    best_side: Literal["left", "right"]
    trend: Literal["sunrise", "sunset"]
    best_moment: datetime
    confidence: int


class RouteSceneryResponse(BaseModel):
    path: list[PathPointOut]
    results: SideResults
    metadata: dict
    seat: Optional[SeatOut] = None


class SolarSampleOut(BaseModel):
    timestamp: datetime
    lat: float
    lon: float
    fraction: float
    sun_azimuth: float
    sun_altitude: float
    relative_bearing: float
    side: str
    near_horizon: bool


class SeatResponse(BaseModel):
    recommendation: Optional[SeatOut]
    samples: list[SolarSampleOut]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_planner() -> RouteSceneryPlanner:
    """One planner per process, wired from the environment at first use."""
    settings = get_settings()
    cache = RedisCache.from_url(settings.redis_url) if settings.redis_url else MemoryCache()
    geocoder = NominatimGeocoder(
        url=settings.nominatim_url,
        user_agent=settings.geocoder_user_agent,
        timeout_s=settings.geocoder_timeout_s,
    )
    return RouteSceneryPlanner(
        geocoder=geocoder,
        backend=create_backend(settings),
        params=SceneryParams.from_settings(settings),
        cache=cache,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/sun-position")
def get_sun_position(
    lat: float = Query(..., description="Latitude"),
    lon: float = Query(..., description="Longitude"),
    dt: datetime = Query(default=None, description="ISO datetime (UTC); defaults to now"),
):
    if dt is None:
        dt = datetime.now(timezone.utc)
    try:
        observer = Coordinate(lat, lon)
    except InvalidCoordinate as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    sun = sun_position(dt, observer.lat, observer.lon)
    return {
        "azimuth": sun.azimuth,
        "altitude": sun.altitude,
        "declination": sun.declination,
        "subsolar_point": subsolar_point(dt).to_dict(),
    }


@router.get("/api/flights/backends")
def backends(settings: Settings = Depends(get_settings)):
    return describe_backends(settings)


@router.post("/api/flights/route-scenery", response_model=RouteSceneryResponse)
async def route_scenery(
    body: RouteSceneryRequest,
    planner: RouteSceneryPlanner = Depends(get_planner),
) -> RouteSceneryResponse:
    """
    Route-scenery pipeline:
      1. Geocode both cities
      2. Sample the great-circle path and search each segment for scenery
      3. Split unique features into left / right / both
      4. With a departure time, add flight timing and a seat recommendation
    """
    try:
        result = await planner.plan_route(
            body.source_city,
            body.dest_city,
            departure_time=body.departure_time,
            arrival_time=body.arrival_time,
            cruise_speed_kmh=body.cruise_speed_kmh,
        )
    except EndpointNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (InvalidCoordinate, InvalidParameter) as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return RouteSceneryResponse(**result.to_dict())


@router.post("/api/flights/seat-recommendation", response_model=SeatResponse)
def seat_recommendation(
    body: SeatRequest,
    settings: Settings = Depends(get_settings),
) -> SeatResponse:
    """Solar samples along the flight and the recommended window side."""
    source = Coordinate(body.source.lat, body.source.lon)
    destination = Coordinate(body.destination.lat, body.destination.lon)

    dist = distance_km(source, destination)
    if dist == 0:
        return SeatResponse(recommendation=None, samples=[])

    try:
        timing = estimate_timing(
            dist,
            body.departure_time,
            body.cruise_speed_kmh or settings.cruise_speed_kmh,
            body.arrival_time,
        )
    except InvalidParameter as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    samples = solar_samples(source, destination, timing)
    recommendation = score_samples(samples)
    _log.info(
        "Seat recommendation over %d samples: %s",
        len(samples), recommendation.best_side.value if recommendation else "none",
    )

    return SeatResponse(
        recommendation=SeatOut(**recommendation.to_dict()) if recommendation else None,
        samples=[
            SolarSampleOut(
                timestamp=s.timestamp,
                lat=s.point.lat,
                lon=s.point.lon,
                fraction=s.point.fraction,
                sun_azimuth=s.sun_azimuth_deg,
                sun_altitude=s.sun_altitude_deg,
                relative_bearing=s.relative_bearing_deg,
                side=s.side.value,
                near_horizon=s.near_horizon,
            )
            for s in samples
        ],
    )

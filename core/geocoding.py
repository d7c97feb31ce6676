"""Geocoding: resolve an endpoint name to coordinates via Nominatim."""
import logging
from dataclasses import dataclass

import httpx

from core.errors import EndpointNotFound, InvalidCoordinate
from core.models import Coordinate

_log = logging.getLogger(__name__)

_NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"


@dataclass(frozen=True)
class GeocodedPlace:
    name: str
    coordinate: Coordinate
    display_name: str


class NominatimGeocoder:
    """
    Resolve free-text place names with the OpenStreetMap Nominatim API.

    Nominatim requires an identifying User-Agent; pass one from configuration.
    """

    def __init__(
        self,
        url: str = _NOMINATIM_URL,
        user_agent: str = "flyby-views/0.1",
        timeout_s: float = 10.0,
    ):
        self.url = url
        self.user_agent = user_agent
        self.timeout_s = timeout_s

    async def resolve(self, name: str) -> GeocodedPlace:
        """
        Return the best match for ``name``.

        Raises:
            EndpointNotFound: If the name is blank, nothing matches, the
                              service is unreachable or replies with garbage.
        """
        if not name or not name.strip():
            raise EndpointNotFound(name or "", "name is empty")
        query = name.strip()

        params = {"q": query, "format": "json", "limit": 1, "addressdetails": 1}
        headers = {"User-Agent": self.user_agent}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.get(self.url, params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise EndpointNotFound(query, "geocoding timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise EndpointNotFound(
                query, f"geocoder returned HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise EndpointNotFound(query, f"geocoder unavailable: {exc}") from exc

        if not data:
            raise EndpointNotFound(query)

        best = data[0]
        try:
            coordinate = Coordinate(float(best["lat"]), float(best["lon"]))
        except (KeyError, TypeError, InvalidCoordinate) as exc:
            raise EndpointNotFound(query, "geocoder returned no usable coordinates") from exc

        place = GeocodedPlace(
            name=query,
            coordinate=coordinate,
            display_name=best.get("display_name") or query,
        )
        _log.info("Geocoded %r -> (%.4f, %.4f)", query, coordinate.lat, coordinate.lon)
        return place

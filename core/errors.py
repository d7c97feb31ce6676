"""Exception types raised by the scenery engine."""
from typing import Optional


class SceneryError(Exception):
    """Base class for all engine errors."""


class InvalidCoordinate(SceneryError, ValueError):
    """A latitude/longitude pair is outside the valid range or not finite."""


class InvalidParameter(SceneryError, ValueError):
    """A numeric or temporal parameter is out of its allowed domain."""


class EndpointNotFound(SceneryError):
    """The geocoder could not resolve a route endpoint."""

    def __init__(self, name: str, reason: Optional[str] = None):
        self.name = name
        self.reason = reason
        message = f"Endpoint not found: {name!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class BackendQueryFailed(SceneryError):
    """A feature backend call failed for one search point."""

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"{backend} query failed: {reason}")

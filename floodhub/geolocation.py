# ================================
# FILE: floodhub/geolocation.py
# ================================
"""
Device positions as reported by the dashboards.

Browsers run the actual geolocation request and attach either the reading or
the error code they got to the API call. The server only decides whether the
reading is usable and what to fall back to.
"""
import logging
import time
from dataclasses import dataclass
from typing import Protocol

from floodhub.config import DEFAULT_LAT, DEFAULT_LNG, GEO_TIMEOUT_SECS, LOCATION_MAX_AGE_SECS

log = logging.getLogger("uvicorn.error").getChild("geolocation")

PERMISSION_DENIED = "permission_denied"
POSITION_UNAVAILABLE = "position_unavailable"
TIMEOUT = "timeout"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Location permission denied",
    POSITION_UNAVAILABLE: "Location information unavailable",
    TIMEOUT: "Location request timed out",
}


class GeolocationError(Exception):
    def __init__(self, code: str):
        self.code = code if code in ERROR_MESSAGES else POSITION_UNAVAILABLE
        super().__init__(ERROR_MESSAGES[self.code])


@dataclass
class Position:
    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: float | None = None  # epoch milliseconds, as browsers report it


@dataclass
class ResolvedLocation:
    latitude: float | None
    longitude: float | None
    address: str | None
    accuracy: float | None = None
    warning: str | None = None
    source: str = "none"  # gps / default / none


class GeolocationProvider(Protocol):
    def current_position(self, timeout: float) -> Position | None:
        """Return a position, None when no reading was attempted, or raise GeolocationError."""


class ReportedPosition:
    """Provider backed by whatever the client attached to its request."""

    def __init__(self, position: Position | None = None, error: str | None = None,
                 max_age: float = LOCATION_MAX_AGE_SECS, clock=time.time):
        self.position = position
        self.error = error
        self.max_age = max_age
        self.clock = clock

    def current_position(self, timeout: float) -> Position | None:
        if self.error:
            raise GeolocationError(self.error)
        if self.position is None:
            return None
        ts = self.position.timestamp
        if ts is not None:
            age = self.clock() - ts / 1000.0
            # a cached reading older than max-age counts as a timeout
            if age > self.max_age:
                log.info("[geo] stale reading age=%.1fs", age)
                raise GeolocationError(TIMEOUT)
        return self.position


def best_known_location(provider: GeolocationProvider, stored_address: str | None,
                        timeout: float = GEO_TIMEOUT_SECS) -> ResolvedLocation:
    """Live reading if available, otherwise the default coordinate plus a warning."""
    address = (stored_address or "").strip() or None
    try:
        pos = provider.current_position(timeout)
    except GeolocationError as e:
        log.info("[geo] fallback to default coordinate: %s", e)
        return ResolvedLocation(DEFAULT_LAT, DEFAULT_LNG, address, warning=str(e), source="default")

    if pos is None:
        return ResolvedLocation(None, None, address)
    return ResolvedLocation(pos.latitude, pos.longitude, address, accuracy=pos.accuracy, source="gps")

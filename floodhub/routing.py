# ================================
# FILE: floodhub/routing.py
# ================================
import logging
from dataclasses import dataclass, field

import httpx

from floodhub.config import ROUTING_BASE_URL, ROUTING_TIMEOUT_SECS
from floodhub.utils import haversine_m

log = logging.getLogger("uvicorn.error").getChild("routing")


@dataclass
class Route:
    path: list[list[float]] = field(default_factory=list)  # [lat, lng] pairs
    distance_m: float = 0.0
    duration_s: float | None = None
    fallback: bool = False


def straight_line(from_lat: float, from_lng: float, to_lat: float, to_lng: float) -> Route:
    return Route(
        path=[[from_lat, from_lng], [to_lat, to_lng]],
        distance_m=round(haversine_m(from_lat, from_lng, to_lat, to_lng), 1),
        duration_s=None,
        fallback=True,
    )


class RoutingClient:
    """Driving routes from an OSRM server; any failure degrades to a straight line."""

    def __init__(self, base_url: str = ROUTING_BASE_URL, timeout: float = ROUTING_TIMEOUT_SECS,
                 transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def route(self, from_lat: float, from_lng: float, to_lat: float, to_lng: float) -> Route:
        # OSRM takes lng,lat
        url = f"{self.base_url}/route/v1/driving/{from_lng},{from_lat};{to_lng},{to_lat}"
        params = {"overview": "full", "geometries": "geojson"}
        try:
            r = self._client.get(url, params=params)
            if r.status_code != 200:
                log.info("[routing] status=%s body=%s", r.status_code, r.text[:400])
                return straight_line(from_lat, from_lng, to_lat, to_lng)
            routes = r.json().get("routes") or []
            if not routes:
                log.info("[routing] no route found; straight line")
                return straight_line(from_lat, from_lng, to_lat, to_lng)
            best = routes[0]
            coords = best["geometry"]["coordinates"]
            return Route(
                path=[[c[1], c[0]] for c in coords],
                distance_m=float(best.get("distance", 0.0)),
                duration_s=float(best["duration"]) if best.get("duration") is not None else None,
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError, IndexError) as e:
            log.info("[routing] lookup error: %s", e)
            return straight_line(from_lat, from_lng, to_lat, to_lng)

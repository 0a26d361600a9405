# ================================
# FILE: floodhub/utils.py
# ================================
import math, time, threading
from datetime import datetime, timezone

EARTH_RADIUS_M = 6_371_000


def normalize(text: str) -> str:
    return text.strip().lower() if text else ""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def activity_bucket(last_active: datetime | None, now: datetime | None = None) -> dict:
    """Classify a 'last active' timestamp for display.

    < 5 min online, < 60 min recent, < 24 h hours-ago, otherwise the date.
    """
    if last_active is None:
        return {"bucket": "never", "label": "Never active"}
    now = as_utc(now) or utcnow()
    minutes = (now - as_utc(last_active)).total_seconds() / 60
    if minutes < 5:
        return {"bucket": "online", "label": "Online now"}
    if minutes < 60:
        return {"bucket": "recent", "label": f"{int(minutes + 0.5)}m ago"}
    if minutes < 1440:
        return {"bucket": "hours", "label": f"{int(minutes / 60 + 0.5)}h ago"}
    return {"bucket": "date", "label": as_utc(last_active).date().isoformat()}


def mission_duration(created: datetime | None, completed: datetime | None) -> str | None:
    if not created or not completed:
        return None
    diff = int((as_utc(completed) - as_utc(created)).total_seconds() // 60)
    if diff < 60:
        return f"{diff}m"
    return f"{diff // 60}h {diff % 60}m"


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class LocationThrottle:
    """At most one accepted position per `window` seconds for each session key."""

    def __init__(self, window: float, clock=time.time):
        self.window = window
        self.clock = clock
        self._last: dict[str, float] = {}
        self._pruned_at = clock()
        self._lock = threading.Lock()

    def allow(self, key: str, force: bool = False) -> bool:
        now = self.clock()
        with self._lock:
            if now - self._pruned_at >= self.window:
                # an expired entry behaves like no entry at all
                self._last = {k: t for k, t in self._last.items() if now - t < self.window}
                self._pruned_at = now
            last = self._last.get(key)
            if not force and last is not None and now - last < self.window:
                return False
            self._last[key] = now
            return True

    def forget(self, key: str) -> None:
        with self._lock:
            self._last.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._last

# ================================
# FILE: floodhub/context.py
# ================================
import logging

from starlette.requests import HTTPConnection

from floodhub import realtime
from floodhub.config import LOCATION_THROTTLE_SECS
from floodhub.routing import RoutingClient
from floodhub.utils import LocationThrottle

log = logging.getLogger("uvicorn.error").getChild("context")

AUTH_CHANNEL = "auth"


class AppContext:
    """Process-wide state, built once in the app lifespan.

    init() hooks the change hub into the session factory and listens for
    sign-out events so per-session location windows are released;
    close() undoes both and shuts the routing client.
    """

    def __init__(self, session_factory, hub: realtime.ChangeHub | None = None,
                 routing: RoutingClient | None = None, throttle: LocationThrottle | None = None):
        self.session_factory = session_factory
        self.hub = hub or realtime.ChangeHub()
        self.routing = routing or RoutingClient()
        self.throttle = throttle or LocationThrottle(LOCATION_THROTTLE_SECS)
        self._remove_listeners = None
        self._auth_handle = None

    def init(self) -> "AppContext":
        if self._remove_listeners is None:
            self._remove_listeners = realtime.install(self.session_factory, self.hub)
        if self._auth_handle is None:
            self._auth_handle = self.hub.subscribe(AUTH_CHANNEL, None, self._on_auth_event)
        log.info("[context] initialised")
        return self

    def close(self) -> None:
        if self._auth_handle is not None:
            self.hub.unsubscribe(self._auth_handle)
            self._auth_handle = None
        if self._remove_listeners is not None:
            self._remove_listeners()
            self._remove_listeners = None
        self.routing.close()
        log.info("[context] closed")

    def _on_auth_event(self, change: realtime.ChangeEvent) -> None:
        if change.type == "SIGNED_OUT":
            sid = change.record.get("sid")
            if sid:
                self.throttle.forget(sid)

    def publish_auth_event(self, kind: str, user_id: int, sid: str | None) -> None:
        realtime.publish_now(self.hub, AUTH_CHANNEL, kind, {"user_id": user_id, "sid": sid})


def get_context(conn: HTTPConnection) -> AppContext:
    return conn.app.state.ctx

# ================================
# FILE: floodhub/realtime.py
# ================================
"""
Per-table change notifications.

Every committed INSERT/UPDATE/DELETE made through a session from the
installed session factory is fanned out to the subscribers of that table.
Bulk/conditional UPDATE statements do not show up in the session's unit of
work, so the code issuing them calls `mark_changed` with the refreshed row.
"""
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

log = logging.getLogger("uvicorn.error").getChild("realtime")

INSERT, UPDATE, DELETE = "INSERT", "UPDATE", "DELETE"
_PENDING_KEY = "floodhub_pending_changes"


@dataclass
class ChangeEvent:
    table: str
    type: str
    record: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"table": self.table, "type": self.type, "record": self.record}


@dataclass
class _Subscription:
    table: str
    predicate: Callable[[dict], bool] | None
    on_change: Callable[[ChangeEvent], None]


class ChangeHub:
    def __init__(self):
        self._subs: dict[int, _Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, table: str, predicate, on_change) -> int:
        with self._lock:
            handle = next(self._ids)
            self._subs[handle] = _Subscription(table, predicate, on_change)
        log.info("[hub] subscribe table=%s handle=%d", table, handle)
        return handle

    def unsubscribe(self, handle: int) -> bool:
        with self._lock:
            removed = self._subs.pop(handle, None) is not None
        if removed:
            log.info("[hub] unsubscribe handle=%d", handle)
        return removed

    def subscriber_count(self, table: str | None = None) -> int:
        with self._lock:
            return sum(1 for s in self._subs.values() if table is None or s.table == table)

    def publish(self, change: ChangeEvent) -> int:
        with self._lock:
            targets = [s for s in self._subs.values() if s.table == change.table]
        delivered = 0
        for sub in targets:
            try:
                if sub.predicate is not None and not sub.predicate(change.record):
                    continue
                sub.on_change(change)
                delivered += 1
            except Exception as e:
                # a broken subscriber must not fail the writer
                log.warning("[hub] subscriber failed table=%s: %s", change.table, e)
        return delivered


def row_to_dict(obj) -> dict[str, Any]:
    # loaded state only; touching expired attributes here would emit SQL mid-flush
    state = inspect(obj)
    return {attr.key: state.dict.get(attr.key) for attr in state.mapper.column_attrs}


def mark_changed(session: Session, obj, change_type: str = UPDATE) -> None:
    """Queue a change for publication on the next commit of `session`."""
    session.info.setdefault(_PENDING_KEY, []).append(
        ChangeEvent(obj.__tablename__, change_type, row_to_dict(obj))
    )


def publish_now(hub: ChangeHub, table: str, change_type: str, record: dict) -> int:
    """Publish an event that is not tied to a table row (e.g. auth events)."""
    return hub.publish(ChangeEvent(table, change_type, record))


# session factory -> (hubs, listeners); one listener set per factory
_installed: dict[Any, tuple[list[ChangeHub], tuple]] = {}
_installed_lock = threading.Lock()


def install(session_factory, hub: ChangeHub) -> Callable[[], None]:
    """Wire session events of `session_factory` to `hub`; returns the remover.

    Several hubs may share one factory. Changes are collected once per
    session and every installed hub receives each committed change once.
    """
    with _installed_lock:
        entry = _installed.get(session_factory)
        if entry is None:
            hubs: list[ChangeHub] = []
            listeners = _listeners(hubs)
            for name, fn in listeners:
                event.listen(session_factory, name, fn)
            entry = _installed[session_factory] = (hubs, listeners)
        entry[0].append(hub)

    def remove():
        with _installed_lock:
            current = _installed.get(session_factory)
            if current is None or hub not in current[0]:
                return
            hubs, listeners = current
            hubs.remove(hub)
            if hubs:
                return
            for name, fn in listeners:
                event.remove(session_factory, name, fn)
            del _installed[session_factory]

    return remove


def _listeners(hubs: list[ChangeHub]) -> tuple:
    def after_flush(session, flush_context):
        pending = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            pending.append(ChangeEvent(obj.__tablename__, INSERT, row_to_dict(obj)))
        for obj in session.dirty:
            if session.is_modified(obj, include_collections=False):
                pending.append(ChangeEvent(obj.__tablename__, UPDATE, row_to_dict(obj)))
        for obj in session.deleted:
            pending.append(ChangeEvent(obj.__tablename__, DELETE, row_to_dict(obj)))

    def after_commit(session):
        pending = session.info.pop(_PENDING_KEY, [])
        with _installed_lock:
            targets = list(hubs)
        for change in pending:
            for hub in targets:
                hub.publish(change)

    def after_rollback(session):
        session.info.pop(_PENDING_KEY, None)

    return (
        ("after_flush", after_flush),
        ("after_commit", after_commit),
        ("after_rollback", after_rollback),
    )

# ================================
# FILE: floodhub/routes_realtime.py
# ================================
import asyncio
import logging
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from floodhub.context import get_context
from floodhub.routes_auth import role_of, user_from_token

log = logging.getLogger("uvicorn.error").getChild("routes_realtime")
router = APIRouter(tags=["realtime"])

WATCHABLE = {
    "rescue_requests", "evacuation_centers", "evacuees", "rescuer_equipment",
    "weather_alerts", "weather_forecast", "flood_zones", "profiles", "user_roles",
}
RESIDENT_WATCHABLE = {"rescue_requests", "evacuation_centers", "weather_alerts", "weather_forecast", "flood_zones"}

# close codes in the application range
CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403
CLOSE_UNKNOWN_TABLE = 4404
CLOSE_BAD_FILTER = 4422


def build_predicate(column: str | None, value: str | None, owner_id: int | None = None):
    """Equality filter on one column; residents are pinned to their own requests."""
    def predicate(record: dict) -> bool:
        if owner_id is not None and record.get("requester_id") != owner_id:
            return False
        if column and str(record.get(column)) != value:
            return False
        return True
    if column is None and owner_id is None:
        return None
    return predicate


@router.websocket("/ws/{table}")
async def watch_table(websocket: WebSocket, table: str, token: str = "",
                      column: str | None = None, value: str | None = None):
    ctx = get_context(websocket)
    if table not in WATCHABLE:
        await websocket.close(code=CLOSE_UNKNOWN_TABLE)
        return
    if column and value is None:
        # a column filter without a value would match nothing
        await websocket.close(code=CLOSE_BAD_FILTER)
        return

    db = ctx.session_factory()
    try:
        user, _ = user_from_token(token, db)
        role = role_of(db, user.id)
    except HTTPException:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return
    finally:
        db.close()

    owner_id = None
    if role == "resident":
        if table not in RESIDENT_WATCHABLE:
            await websocket.close(code=CLOSE_FORBIDDEN)
            return
        if table == "rescue_requests":
            owner_id = user.id

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_change(change):
        # called from whichever thread committed the write
        loop.call_soon_threadsafe(queue.put_nowait, change.as_dict())

    handle = ctx.hub.subscribe(table, build_predicate(column, value, owner_id), on_change)

    async def pump():
        while True:
            change = await queue.get()
            await websocket.send_json(jsonable_encoder(change))

    sender = None
    try:
        await websocket.send_json({"type": "SUBSCRIBED", "table": table})
        sender = asyncio.create_task(pump())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        log.info("[ws] disconnect user=%s table=%s", user.id, table)
    finally:
        ctx.hub.unsubscribe(handle)
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                log.warning("[ws] send failed user=%s table=%s: %s", user.id, table, e)

# test_realtime.py
import pytest
from starlette.websockets import WebSocketDisconnect

from floodhub.database import SessionLocal
from floodhub.models import EvacuationCenter
from floodhub.realtime import DELETE, INSERT, UPDATE, ChangeEvent, ChangeHub, install
from floodhub.routes_realtime import build_predicate

# ---------- Hub ----------

def test_publish_reaches_matching_subscribers_only():
    hub = ChangeHub()
    got_a, got_b = [], []
    hub.subscribe("rescue_requests", None, got_a.append)
    hub.subscribe("evacuation_centers", None, got_b.append)

    delivered = hub.publish(ChangeEvent("rescue_requests", INSERT, {"id": 1}))
    assert delivered == 1
    assert [c.record["id"] for c in got_a] == [1]
    assert got_b == []


def test_predicate_filters_records():
    hub = ChangeHub()
    got = []
    hub.subscribe("rescue_requests", build_predicate("status", "pending"), got.append)
    hub.publish(ChangeEvent("rescue_requests", UPDATE, {"id": 1, "status": "assigned"}))
    hub.publish(ChangeEvent("rescue_requests", UPDATE, {"id": 2, "status": "pending"}))
    assert [c.record["id"] for c in got] == [2]


def test_owner_predicate():
    pred = build_predicate(None, None, owner_id=7)
    assert pred({"requester_id": 7})
    assert not pred({"requester_id": 8})
    assert build_predicate(None, None) is None


def test_unsubscribe_stops_delivery():
    hub = ChangeHub()
    got = []
    handle = hub.subscribe("weather_alerts", None, got.append)
    assert hub.unsubscribe(handle) is True
    assert hub.unsubscribe(handle) is False
    hub.publish(ChangeEvent("weather_alerts", INSERT, {}))
    assert got == []
    assert hub.subscriber_count() == 0


def test_failing_subscriber_does_not_block_others():
    hub = ChangeHub()
    got = []

    def broken(change):
        raise RuntimeError("boom")

    hub.subscribe("flood_zones", None, broken)
    hub.subscribe("flood_zones", None, got.append)
    assert hub.publish(ChangeEvent("flood_zones", UPDATE, {"id": 1})) == 1
    assert len(got) == 1

# ---------- Session wiring ----------

def test_commit_publishes_insert_update_delete(client):
    hub = ChangeHub()
    remove = install(SessionLocal, hub)
    got, app_got = [], []
    hub.subscribe("evacuation_centers", None, got.append)
    app_handle = client.app.state.ctx.hub.subscribe("evacuation_centers", None, app_got.append)
    db = SessionLocal()
    try:
        c = EvacuationCenter(name="Gym", address="", max_capacity=20)
        db.add(c); db.commit()
        c.status = "closed"
        db.commit()
        db.delete(c); db.commit()
    finally:
        db.close()
        remove()
        client.app.state.ctx.hub.unsubscribe(app_handle)

    # both hubs on the same session factory see each change exactly once
    assert [e.type for e in got] == [INSERT, UPDATE, DELETE]
    assert [e.type for e in app_got] == [INSERT, UPDATE, DELETE]
    assert got[0].record["name"] == "Gym"
    assert got[1].record["status"] == "closed"


def test_removed_hub_gets_nothing_while_app_hub_still_does(client):
    hub = ChangeHub()
    remove = install(SessionLocal, hub)
    got, app_got = [], []
    hub.subscribe("evacuation_centers", None, got.append)
    app_handle = client.app.state.ctx.hub.subscribe("evacuation_centers", None, app_got.append)
    remove()
    remove()  # second call is a no-op
    db = SessionLocal()
    try:
        db.add(EvacuationCenter(name="Gym", address="", max_capacity=20))
        db.commit()
    finally:
        db.close()
        client.app.state.ctx.hub.unsubscribe(app_handle)
    assert got == []
    assert [e.type for e in app_got] == [INSERT]


def test_rollback_publishes_nothing(client):
    hub = ChangeHub()
    remove = install(SessionLocal, hub)
    got = []
    hub.subscribe("evacuation_centers", None, got.append)
    db = SessionLocal()
    try:
        db.add(EvacuationCenter(name="Gym", address="", max_capacity=20))
        db.flush()
        db.rollback()
        # a later commit on the same session must not replay the rolled back insert
        db.add(EvacuationCenter(name="Hall", address="", max_capacity=20))
        db.commit()
    finally:
        db.close()
        remove()
    assert [(e.type, e.record["name"]) for e in got] == [(INSERT, "Hall")]

# ---------- WebSocket ----------

def test_ws_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/rescue_requests?token=garbage") as ws:
            ws.receive_json()
    assert exc.value.code == 4401


def test_ws_rejects_unknown_table(client, make_user):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/users?token=x") as ws:
            ws.receive_json()
    assert exc.value.code == 4404


def test_ws_rejects_column_without_value(client, make_user):
    _, headers = make_user("rescuer")
    token = headers["Authorization"].split()[1]
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/rescue_requests?token={token}&column=status") as ws:
            ws.receive_json()
    assert exc.value.code == 4422
    assert client.app.state.ctx.hub.subscriber_count("rescue_requests") == 0


def test_ws_resident_table_restrictions(client, make_user):
    _, headers = make_user()
    token = headers["Authorization"].split()[1]
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/rescue_equipment?token={token}") as ws:
            ws.receive_json()
    assert exc.value.code == 4404
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/rescuer_equipment?token={token}") as ws:
            ws.receive_json()
    assert exc.value.code == 4403


def test_ws_resident_sees_own_request_insert(client, make_user):
    uid, headers = make_user()
    token = headers["Authorization"].split()[1]
    with client.websocket_connect(f"/ws/rescue_requests?token={token}") as ws:
        assert ws.receive_json() == {"type": "SUBSCRIBED", "table": "rescue_requests"}
        r = client.post("/rescue_requests", json={"is_quick_sos": True}, headers=headers)
        assert r.status_code == 201
        change = ws.receive_json()
    assert change["table"] == "rescue_requests"
    assert change["type"] == "INSERT"
    assert change["record"]["requester_id"] == uid
    assert change["record"]["status"] == "pending"


def test_ws_rescuer_sees_claim_update(client, make_user):
    _, resident = make_user()
    _, rescuer = make_user("rescuer")
    rid = client.post("/rescue_requests", json={"is_quick_sos": True}, headers=resident).json()["request"]["id"]
    token = rescuer["Authorization"].split()[1]
    with client.websocket_connect(f"/ws/rescue_requests?token={token}&column=id&value={rid}") as ws:
        ws.receive_json()
        client.post(f"/rescue_requests/{rid}/claim", headers=rescuer)
        change = ws.receive_json()
    assert change["type"] == "UPDATE"
    assert change["record"]["status"] == "assigned"

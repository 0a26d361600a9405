# test_requests.py
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from floodhub.config import DEFAULT_LAT, DEFAULT_LNG
from floodhub.database import SessionLocal
from floodhub.models import Profile, RescueRequest


def _set_profile(user_id: int, **fields):
    db = SessionLocal()
    try:
        profile = db.query(Profile).filter(Profile.user_id == user_id).first()
        for key, value in fields.items():
            setattr(profile, key, value)
        db.commit()
    finally:
        db.close()


def _status_of(request_id: int) -> str:
    db = SessionLocal()
    try:
        return db.get(RescueRequest, request_id).status
    finally:
        db.close()


def _submit(client, headers, **body):
    r = client.post("/rescue_requests", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()

# ---------- Intake ----------

def test_submit_requires_login(client):
    r = client.post("/rescue_requests", json={"is_quick_sos": True})
    assert r.status_code == 401
    db = SessionLocal()
    try:
        assert db.query(RescueRequest).count() == 0
    finally:
        db.close()


def test_quick_sos_with_gps(client, make_user):
    uid, headers = make_user()
    data = _submit(client, headers, is_quick_sos=True, position={"latitude": 13.83, "longitude": 121.40})

    req = data["request"]
    assert req["status"] == "pending"
    assert req["requester_id"] == uid
    assert req["priority_score"] == 90
    assert (req["location_lat"], req["location_lng"]) == (13.83, 121.40)
    assert data["location_warning"] is None
    assert data["ambient_alert_priority"] == "none"


def test_detailed_request_uses_profile_address(client, make_user):
    uid, headers = make_user()
    _set_profile(uid, address="123 Rizal St")
    data = _submit(client, headers, severity="high", household_count=2,
                   special_needs=["elderly", "elderly"], situation_description="Water at roof level")

    req = data["request"]
    assert req["priority_score"] == 86
    assert req["special_needs"] == ["elderly"]
    assert req["location_address"] == "123 Rizal St"
    assert req["location_lat"] is None


def test_location_error_uses_default_coordinate(client, make_user):
    _, headers = make_user()
    data = _submit(client, headers, is_quick_sos=True, position_error="permission_denied", address="Purok 3")

    req = data["request"]
    assert (req["location_lat"], req["location_lng"]) == (DEFAULT_LAT, DEFAULT_LNG)
    assert req["location_address"] == "Purok 3"
    assert data["location_warning"] == "Location permission denied"


def test_ambient_alert_raises_score(client, make_user):
    _, admin = make_user("mdrrmo_admin")
    uid, resident = make_user()
    _set_profile(uid, barangay_zone="Poblacion")

    r = client.post("/alerts", headers=admin,
                    json={"title": "Typhoon", "message": "Signal no. 3", "priority": "critical"})
    assert r.status_code == 201
    # alerts aimed at another zone do not count
    client.post("/alerts", headers=admin,
                json={"title": "x", "message": "y", "priority": "warning", "target_zones": ["Calitcalit"]})

    data = _submit(client, resident, severity="medium")
    assert data["ambient_alert_priority"] == "critical"
    assert data["request"]["priority_score"] == 73


def test_invalid_severity_rejected(client, make_user):
    _, headers = make_user()
    r = client.post("/rescue_requests", json={"severity": "extreme"}, headers=headers)
    assert r.status_code == 422


def test_failed_commit_reports_unavailable(client, make_user, monkeypatch):
    _, headers = make_user()

    def failing_commit(self):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(Session, "commit", failing_commit)
    r = client.post("/rescue_requests", json={"is_quick_sos": True}, headers=headers)
    monkeypatch.undo()

    assert r.status_code == 503
    assert r.json()["detail"] == "Failed to submit request"
    db = SessionLocal()
    try:
        assert db.query(RescueRequest).count() == 0
    finally:
        db.close()


def test_my_requests_only_lists_own(client, make_user):
    _, a = make_user()
    _, b = make_user()
    _submit(client, a, is_quick_sos=True)
    _submit(client, b, is_quick_sos=True)
    mine = client.get("/rescue_requests/mine", headers=a).json()
    assert len(mine) == 1

# ---------- Lifecycle ----------

def test_claim_start_complete(client, make_user):
    _, resident = make_user()
    rescuer_id, rescuer = make_user("rescuer")
    rid = _submit(client, resident, is_quick_sos=True)["request"]["id"]

    board = client.get("/missions", headers=rescuer).json()
    assert [m["id"] for m in board["available"]] == [rid]

    r = client.post(f"/rescue_requests/{rid}/claim", headers=rescuer)
    assert r.status_code == 200
    assert r.json()["status"] == "assigned"
    assert r.json()["assigned_rescuer_id"] == rescuer_id

    r = client.post(f"/rescue_requests/{rid}/start", headers=rescuer)
    assert r.json()["status"] == "in_progress"

    r = client.post(f"/rescue_requests/{rid}/complete", headers=rescuer,
                    json={"completion_notes": "Family moved to center"})
    body = r.json()
    assert body["status"] == "completed"
    assert body["completed_at"] is not None
    assert body["completion_notes"] == "Family moved to center"

    history = client.get("/missions/history", headers=rescuer).json()
    assert history["stats"]["total"] == 1
    assert history["missions"][0]["duration"] is not None


def test_second_claim_conflicts(client, make_user):
    _, resident = make_user()
    first_id, first = make_user("rescuer")
    _, second = make_user("rescuer")
    rid = _submit(client, resident, is_quick_sos=True)["request"]["id"]

    assert client.post(f"/rescue_requests/{rid}/claim", headers=first).status_code == 200
    r = client.post(f"/rescue_requests/{rid}/claim", headers=second)
    assert r.status_code == 409

    assert client.get(f"/rescue_requests/{rid}", headers=first).json()["assigned_rescuer_id"] == first_id


def test_cannot_skip_states(client, make_user):
    _, resident = make_user()
    _, rescuer = make_user("rescuer")
    rid = _submit(client, resident, is_quick_sos=True)["request"]["id"]
    client.post(f"/rescue_requests/{rid}/claim", headers=rescuer)

    r = client.post(f"/rescue_requests/{rid}/complete", headers=rescuer)
    assert r.status_code == 409
    assert _status_of(rid) == "assigned"


def test_other_rescuer_cannot_start(client, make_user):
    _, resident = make_user()
    _, owner = make_user("rescuer")
    _, other = make_user("rescuer")
    rid = _submit(client, resident, is_quick_sos=True)["request"]["id"]
    client.post(f"/rescue_requests/{rid}/claim", headers=owner)
    assert client.post(f"/rescue_requests/{rid}/start", headers=other).status_code == 403


def test_resident_cannot_claim(client, make_user):
    _, resident = make_user()
    rid = _submit(client, resident, is_quick_sos=True)["request"]["id"]
    assert client.post(f"/rescue_requests/{rid}/claim", headers=resident).status_code == 403


def test_admin_assign_and_cancel(client, make_user):
    _, resident = make_user()
    _, admin = make_user("mdrrmo_admin")
    rescuer_id, _ = make_user("rescuer")
    other_resident_id, _ = make_user()
    rid = _submit(client, resident, is_quick_sos=True)["request"]["id"]

    r = client.post(f"/rescue_requests/{rid}/assign", headers=admin, json={"rescuer_id": other_resident_id})
    assert r.status_code == 400

    r = client.post(f"/rescue_requests/{rid}/assign", headers=admin, json={"rescuer_id": rescuer_id})
    assert r.json()["status"] == "assigned"

    r = client.post(f"/rescue_requests/{rid}/cancel", headers=admin)
    assert r.json()["status"] == "cancelled"
    assert client.post(f"/rescue_requests/{rid}/cancel", headers=admin).status_code == 409

    overview = client.get("/rescue_requests", headers=admin).json()
    assert overview["counts"]["cancelled"] == 1
    assert overview["active"] == 0


def test_missions_sorted_by_priority(client, make_user):
    _, resident = make_user()
    _, rescuer = make_user("rescuer")
    low = _submit(client, resident, severity="medium")["request"]["id"]
    high = _submit(client, resident, is_quick_sos=True)["request"]["id"]

    board = client.get("/missions", headers=rescuer).json()
    assert [m["id"] for m in board["available"]] == [high, low]

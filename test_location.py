# test_location.py
from floodhub.database import SessionLocal
from floodhub.models import Profile

POS = {"latitude": 13.83, "longitude": 121.40}


def _profile(user_id: int) -> Profile:
    db = SessionLocal()
    try:
        return db.query(Profile).filter(Profile.user_id == user_id).first()
    finally:
        db.close()


def test_first_report_is_persisted(client, make_user):
    uid, headers = make_user()
    r = client.post("/me/location", headers=headers, json=POS)
    assert r.json()["persisted"] is True
    p = _profile(uid)
    assert (p.last_known_lat, p.last_known_lng) == (13.83, 121.40)
    assert p.last_active_at is not None


def test_reports_inside_window_are_dropped(client, make_user):
    uid, headers = make_user()
    client.post("/me/location", headers=headers, json=POS)
    r = client.post("/me/location", headers=headers, json={"latitude": 14.0, "longitude": 121.0})
    assert r.json() == {"persisted": False}
    assert _profile(uid).last_known_lat == 13.83


def test_forced_report_bypasses_window(client, make_user):
    uid, headers = make_user()
    client.post("/me/location", headers=headers, json=POS)
    r = client.post("/me/location", headers=headers, json={"latitude": 14.0, "longitude": 121.0, "forced": True})
    assert r.json()["persisted"] is True
    assert _profile(uid).last_known_lat == 14.0


def test_sign_out_releases_window(client, make_user):
    _, headers = make_user()
    client.post("/me/location", headers=headers, json=POS)
    assert client.post("/logout", headers=headers).status_code == 200
    r = client.post("/me/location", headers=headers, json=POS)
    assert r.json()["persisted"] is True


def test_location_requires_login(client):
    assert client.post("/me/location", json=POS).status_code == 401


def test_out_of_range_coordinates_rejected(client, make_user):
    _, headers = make_user()
    r = client.post("/me/location", headers=headers, json={"latitude": 95, "longitude": 0})
    assert r.status_code == 422


def test_residents_list_shows_activity(client, make_user):
    _, admin = make_user("mdrrmo_admin")
    uid, resident = make_user(full_name="Juan Dela Cruz")
    client.post("/me/location", headers=resident, json=POS)

    body = client.get("/residents", headers=admin).json()
    row = next(r for r in body["residents"] if r["user_id"] == uid)
    assert row["activity"]["bucket"] == "online"
    assert body["online"] == 1

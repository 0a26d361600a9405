# test_centers.py
from floodhub.database import SessionLocal
from floodhub.models import EvacuationCenter, Evacuee, UserRole


def _insert_center(name: str = "Central School", capacity: int = 10, occupancy: int = 0) -> int:
    db = SessionLocal()
    try:
        c = EvacuationCenter(name=name, address="Poblacion", max_capacity=capacity, current_occupancy=occupancy)
        db.add(c); db.commit(); db.refresh(c)
        return c.id
    finally:
        db.close()


def _occupancy(center_id: int) -> int:
    db = SessionLocal()
    try:
        return db.get(EvacuationCenter, center_id).current_occupancy
    finally:
        db.close()


def test_admin_creates_center(client, make_user):
    _, admin = make_user("mdrrmo_admin")
    r = client.post("/centers", headers=admin, json={"name": "Gym", "address": "Rizal St", "max_capacity": 50})
    assert r.status_code == 201
    body = r.json()
    assert body["current_occupancy"] == 0
    assert body["status"] == "operational"
    assert body["occupancy_level"] == "available"
    assert body["available_spaces"] == 50


def test_resident_cannot_create_center(client, make_user):
    _, resident = make_user()
    r = client.post("/centers", headers=resident, json={"name": "Gym", "max_capacity": 50})
    assert r.status_code == 403


def test_register_and_checkout_evacuee(client, make_user):
    cid = _insert_center(capacity=10)
    official_id, official = make_user("barangay_official", center_id=cid)

    r = client.post(f"/centers/{cid}/evacuees", headers=official,
                    json={"family_name": "Santos", "adults_count": 2, "children_count": 1,
                          "special_needs": ["infant"]})
    assert r.status_code == 201
    body = r.json()
    assert body["center"]["current_occupancy"] == 3
    assert body["evacuee"]["registered_by"] == official_id
    evacuee_id = body["evacuee"]["id"]

    listing = client.get(f"/centers/{cid}/evacuees", headers=official).json()
    assert listing["families"] == 1
    assert listing["people"] == 3

    r = client.post(f"/evacuees/{evacuee_id}/checkout", headers=official)
    assert r.status_code == 200
    assert r.json()["evacuee"]["checked_out_at"] is not None
    assert r.json()["center"]["current_occupancy"] == 0

    # a second checkout must not decrement again
    assert client.post(f"/evacuees/{evacuee_id}/checkout", headers=official).status_code == 409
    assert _occupancy(cid) == 0
    assert client.get(f"/centers/{cid}/evacuees", headers=official).json()["families"] == 0


def test_official_limited_to_own_center(client, make_user):
    mine = _insert_center("Mine")
    other = _insert_center("Other")
    _, official = make_user("barangay_official", center_id=mine)

    assert client.get("/centers/mine", headers=official).json()["id"] == mine
    r = client.post(f"/centers/{other}/evacuees", headers=official, json={"family_name": "Reyes"})
    assert r.status_code == 403


def test_occupancy_never_negative(client, make_user):
    cid = _insert_center(capacity=10, occupancy=2)
    _, admin = make_user("mdrrmo_admin")
    r = client.post(f"/centers/{cid}/occupancy", headers=admin, json={"delta": -5})
    assert r.status_code == 200
    assert r.json()["current_occupancy"] == 0


def test_occupancy_levels_follow_count(client, make_user):
    cid = _insert_center(capacity=10)
    _, admin = make_user("mdrrmo_admin")
    r = client.post(f"/centers/{cid}/occupancy", headers=admin, json={"delta": 8})
    assert r.json()["occupancy_level"] == "near_capacity"
    assert r.json()["occupancy_pct"] == 80
    r = client.post(f"/centers/{cid}/occupancy", headers=admin, json={"delta": 2})
    assert r.json()["occupancy_level"] == "full"
    assert r.json()["available_spaces"] == 0


def test_official_updates_status_only(client, make_user):
    cid = _insert_center(capacity=10)
    _, official = make_user("barangay_official", center_id=cid)
    r = client.patch(f"/centers/{cid}", headers=official,
                     json={"supplies_status": "low", "max_capacity": 999})
    assert r.status_code == 200
    assert r.json()["supplies_status"] == "low"
    assert r.json()["max_capacity"] == 10


def test_center_totals(client, make_user):
    _insert_center("A", capacity=100, occupancy=40)
    _insert_center("B", capacity=100, occupancy=10)
    _, resident = make_user()
    body = client.get("/centers", headers=resident).json()
    assert body["total_capacity"] == 200
    assert body["total_occupancy"] == 50
    assert body["overall_pct"] == 25


def test_admin_clears_nullable_center_fields(client, make_user):
    cid = _insert_center()
    official_id, _ = make_user("barangay_official")
    _, admin = make_user("mdrrmo_admin")
    r = client.patch(f"/centers/{cid}", headers=admin,
                     json={"assigned_official_id": official_id, "location_lat": 14.6, "location_lng": 121.0})
    assert r.json()["assigned_official_id"] == official_id

    r = client.patch(f"/centers/{cid}", headers=admin,
                     json={"assigned_official_id": None, "location_lat": None, "name": None})
    assert r.status_code == 200
    body = r.json()
    assert body["assigned_official_id"] is None
    assert body["location_lat"] is None
    assert body["location_lng"] == 121.0
    # null on a required column leaves it alone
    assert body["name"] == "Central School"


def test_center_update_rejects_unknown_status(client, make_user):
    cid = _insert_center()
    _, admin = make_user("mdrrmo_admin")
    assert client.patch(f"/centers/{cid}", headers=admin, json={"status": "flooded"}).status_code == 422
    assert client.patch(f"/centers/{cid}", headers=admin, json={"supplies_status": "plenty"}).status_code == 422
    assert client.patch(f"/centers/{cid}", headers=admin, json={"assigned_official_id": 9999}).status_code == 400
    assert client.patch(f"/centers/{cid}", headers=admin, json={"status": "full"}).json()["status"] == "full"


def test_delete_center_refused_while_families_checked_in(client, make_user):
    cid = _insert_center()
    official_id, official = make_user("barangay_official", center_id=cid)
    _, admin = make_user("mdrrmo_admin")
    evacuee_id = client.post(f"/centers/{cid}/evacuees", headers=official,
                             json={"family_name": "Cruz"}).json()["evacuee"]["id"]

    r = client.delete(f"/centers/{cid}", headers=admin)
    assert r.status_code == 409
    assert client.get(f"/centers/{cid}", headers=admin).status_code == 200

    assert client.post(f"/evacuees/{evacuee_id}/checkout", headers=official).status_code == 200
    assert client.delete(f"/centers/{cid}", headers=admin).status_code == 200
    assert client.get(f"/centers/{cid}", headers=admin).status_code == 404

    db = SessionLocal()
    try:
        assert db.get(Evacuee, evacuee_id).evacuation_center_id is None
        role = db.query(UserRole).filter(UserRole.user_id == official_id).one()
        assert role.assigned_evacuation_center_id is None
    finally:
        db.close()


def test_checkout_with_missing_center(client, make_user):
    db = SessionLocal()
    try:
        e = Evacuee(family_name="Lopez", adults_count=2, evacuation_center_id=9999)
        db.add(e); db.commit(); db.refresh(e)
        evacuee_id = e.id
    finally:
        db.close()
    _, official = make_user("barangay_official")
    _, admin = make_user("mdrrmo_admin")

    assert client.post(f"/evacuees/{evacuee_id}/checkout", headers=official).status_code == 403
    r = client.post(f"/evacuees/{evacuee_id}/checkout", headers=admin)
    assert r.status_code == 200
    assert r.json()["evacuee"]["checked_out_at"] is not None
    assert "center" not in r.json()

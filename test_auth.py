# test_auth.py
from auth import create_access_token, decode_access_token


def _register(client, email="someone@test.com", password="password123", full_name="Some One"):
    return client.post("/register", json={"email": email, "password": password, "full_name": full_name})


def test_register_creates_resident(client):
    r = _register(client, email="  Juan@Test.com ")
    assert r.status_code == 200
    r = client.post("/token", data={"username": "juan@test.com", "password": "password123"})
    assert r.status_code == 200
    body = r.json()
    assert body["role"] == "resident"
    assert body["token_type"] == "bearer"

    me = client.get("/me", headers={"Authorization": f"Bearer {body['access_token']}"}).json()
    assert me["email"] == "juan@test.com"
    assert me["role"] == "resident"
    assert me["profile"]["full_name"] == "Some One"


def test_duplicate_email_rejected(client):
    assert _register(client).status_code == 200
    assert _register(client, email="SOMEONE@test.com").status_code == 400


def test_short_password_rejected(client):
    assert _register(client, password="123").status_code == 422


def test_wrong_password(client):
    _register(client)
    r = client.post("/token", data={"username": "someone@test.com", "password": "nope"})
    assert r.status_code == 401


def test_me_requires_token(client):
    assert client.get("/me").status_code == 401
    assert client.get("/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_profile_update(client, make_user):
    _, headers = make_user()
    r = client.patch("/me/profile", headers=headers,
                     json={"phone_number": "09171234567", "barangay_zone": "Poblacion", "full_name": None})
    assert r.status_code == 200
    body = r.json()
    assert body["phone_number"] == "09171234567"
    assert body["barangay_zone"] == "Poblacion"
    assert body["full_name"] == "Test User"


def test_role_change_applies_to_next_request(client, make_user):
    _, admin = make_user("mdrrmo_admin")
    uid, headers = make_user()
    assert client.get("/missions", headers=headers).status_code == 403

    r = client.put(f"/admin/users/{uid}/role", headers=admin, json={"role": "rescuer", "assigned_zone": "Poblacion"})
    assert r.status_code == 200
    # role is read per request, so the old token already sees it
    assert client.get("/missions", headers=headers).status_code == 200


def test_tokens_carry_session_id():
    token = create_access_token({"sub": "1"})
    other = create_access_token({"sub": "1"})
    assert decode_access_token(token)["sid"] != decode_access_token(other)["sid"]

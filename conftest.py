# conftest.py
import os
import tempfile

# must be set before floodhub.config is imported anywhere
_tmpdir = tempfile.mkdtemp(prefix="floodhub-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient

from main import app
from floodhub.database import Base, SessionLocal
from floodhub.models import UserRole


def _clean_db():
    """Clear every table between tests without dropping schema."""
    db = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        _clean_db()
        yield c
    _clean_db()


def set_role(user_id: int, role: str, zone: str | None = None, center_id: int | None = None):
    db = SessionLocal()
    try:
        row = db.query(UserRole).filter(UserRole.user_id == user_id).first()
        row.role = role
        row.assigned_zone = zone
        row.assigned_evacuation_center_id = center_id
        db.commit()
    finally:
        db.close()


@pytest.fixture
def make_user(client):
    """Register, optionally promote, and log in; returns (user_id, auth headers)."""
    counter = {"n": 0}

    def _make(role: str = "resident", full_name: str = "Test User", **role_fields):
        counter["n"] += 1
        email = f"{role}{counter['n']}@test.com"
        r = client.post("/register", json={"email": email, "password": "password123", "full_name": full_name})
        assert r.status_code == 200, r.text
        user_id = r.json()["user_id"]
        if role != "resident" or role_fields:
            set_role(user_id, role, **role_fields)
        r = client.post("/token", data={"username": email, "password": "password123"})
        assert r.status_code == 200, r.text
        return user_id, {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _make

import os
import uuid

os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.pop("DEV_MODE", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from actify.db.database import SessionLocal, engine  # noqa: E402
from actify.db.models import Base  # noqa: E402
from app import app  # noqa: E402


def _h(email, facility_id=None):
    headers = {"x-auth-request-user": email.split("@")[0], "x-auth-request-email": email}
    if facility_id is not None:
        headers["X-Facility-Id"] = str(facility_id)
    return headers


def _wipe():
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def _clean_tables(monkeypatch):
    """Every test starts with an empty in-memory schema."""
    monkeypatch.delenv("DEV_MODE", raising=False)
    monkeypatch.delenv("ADMIN_EMAILS", raising=False)
    _wipe()
    yield
    _wipe()


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_facility(client):
    """Create a facility through the API; returns (facility_id, owner_email)."""

    def _create(name=None, timezone="America/New_York", owner_email=None):
        owner_email = owner_email or f"owner_{uuid.uuid4().hex[:8]}@example.com"
        name = name or f"Facility {uuid.uuid4().hex[:6]}"
        r = client.post("/facilities", json={"name": name, "timezone": timezone}, headers=_h(owner_email))
        assert r.status_code == 201, r.text
        return r.json()["id"], owner_email

    return _create


@pytest.fixture
def facility(make_facility):
    return make_facility()


@pytest.fixture
def owner_headers(facility):
    facility_id, owner_email = facility
    return _h(owner_email, facility_id)


@pytest.fixture
def add_member(client):
    """Add a member with ``role`` to a facility; returns headers for that member."""

    def _add(facility, role):
        facility_id, owner_email = facility
        email = f"{role}_{uuid.uuid4().hex[:8]}@example.com"
        r = client.post(
            f"/facilities/{facility_id}/members",
            json={"email": email, "role": role},
            headers=_h(owner_email),
        )
        assert r.status_code == 201, r.text
        return _h(email, facility_id)

    return _add


@pytest.fixture
def make_resident(client, owner_headers):
    def _create(first="Ada", last="Lovelace", room="101A", status="ACTIVE", headers=None, **extra):
        payload = {"firstName": first, "lastName": last, "room": room, "status": status, **extra}
        r = client.post("/residents", json=payload, headers=headers or owner_headers)
        assert r.status_code == 201, r.text
        return r.json()["resident"]

    return _create


@pytest.fixture
def make_activity(client, owner_headers):
    def _create(title="Morning Stretch", start="2026-03-02T14:00:00Z", end="2026-03-02T15:00:00Z",
                headers=None, **extra):
        payload = {"title": title, "startAt": start, "endAt": end, **extra}
        r = client.post("/calendar/activities", json=payload, headers=headers or owner_headers)
        assert r.status_code == 201, r.text
        return r.json()["activity"]

    return _create

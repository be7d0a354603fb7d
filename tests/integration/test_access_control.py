import uuid

import pytest


def _h(email, facility_id=None):
    headers = {"x-auth-request-user": email.split("@")[0], "x-auth-request-email": email}
    if facility_id is not None:
        headers["X-Facility-Id"] = str(facility_id)
    return headers


def test_health_and_build_info(client, monkeypatch):
    assert client.get("/health").json() == {"status": "ok", "service": "actify-service"}
    monkeypatch.setenv("BUILD_SHA", "abc123")
    info = client.get("/build-info").json()
    assert info["build_sha"] == "abc123"
    assert info["service_name"] == "actify-service"


def test_user_info_with_and_without_identity(client, facility):
    assert client.get("/user-info").json() == {"authenticated": False}

    facility_id, owner_email = facility
    body = client.get("/user-info", headers=_h(owner_email)).json()
    assert body["authenticated"] is True
    assert body["email"] == owner_email
    assert body["is_superadmin"] is False
    assert [m["organization_id"] for m in body["memberships"]] == [facility_id]
    assert body["memberships"][0]["role"] == "owner"


@pytest.mark.parametrize("method,path", [
    ("post", "/residents"),
    ("patch", "/settings"),
    ("delete", f"/calendar/activities/{uuid.uuid4()}"),
])
def test_guest_writes_are_rejected(client, method, path):
    r = getattr(client, method)(path)
    assert r.status_code == 401
    assert r.json()["detail"] == "Guest mode is read-only. Sign in to perform changes."


def test_guest_reads_need_identity(client):
    r = client.get("/residents")
    assert r.status_code == 401
    assert r.json()["detail"] == "Authentication required"


def test_facility_selection(client, make_facility):
    first_id, owner_email = make_facility()
    # single membership resolves without the header
    assert client.get("/residents", headers=_h(owner_email)).status_code == 200

    make_facility(owner_email=owner_email)
    r = client.get("/residents", headers=_h(owner_email))
    assert r.status_code == 400
    assert r.json()["detail"] == "Facility context required."
    assert client.get("/residents", headers=_h(owner_email, first_id)).status_code == 200

    r = client.get("/residents", headers={**_h(owner_email), "X-Facility-Id": "not-a-uuid"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid facility id."


def test_non_member_is_forbidden(client, facility, make_facility):
    facility_id, _ = facility
    _, outsider = make_facility()
    r = client.get("/residents", headers=_h(outsider, facility_id))
    assert r.status_code == 403
    assert r.json()["detail"] == "Not a member of this facility."


def test_residents_are_scoped_to_facility(client, make_facility):
    first_id, first_owner = make_facility()
    second_id, second_owner = make_facility()
    r = client.post("/residents", json={"firstName": "Ada", "lastName": "Lovelace", "room": "1", "status": "ACTIVE"},
                    headers=_h(first_owner, first_id))
    assert r.status_code == 201
    assert client.get("/residents", headers=_h(second_owner, second_id)).json()["residents"] == []


def test_viewer_reads_but_cannot_write(client, facility, add_member):
    viewer = add_member(facility, "viewer")
    assert client.get("/calendar/range", params={"start": "2026-03-02T00:00:00Z", "end": "2026-03-03T00:00:00Z"},
                      headers=viewer).status_code == 200
    r = client.post("/notes", json={}, headers=viewer)
    assert r.status_code == 403
    assert r.json()["detail"] == "Read-only role cannot modify notes."
    r = client.post("/templates", json={}, headers=viewer)
    assert r.json()["detail"] == "Read-only role cannot modify templates."

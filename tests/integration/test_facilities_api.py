import uuid


def _h(email):
    return {"x-auth-request-user": email.split("@")[0], "x-auth-request-email": email}


def _member_id(client, facility_id, headers, email):
    members = client.get(f"/facilities/{facility_id}/members", headers=headers).json()
    return next(m["user_id"] for m in members if m["email"] == email)


def test_create_list_get(client, facility):
    facility_id, owner_email = facility
    owner = _h(owner_email)

    listing = client.get("/facilities", headers=owner).json()
    assert [row["id"] for row in listing] == [facility_id]
    assert listing[0]["role"] == "owner"
    assert listing[0]["timezone"] == "America/New_York"

    assert client.get(f"/facilities/{facility_id}", headers=owner).json()["id"] == facility_id
    assert client.get(f"/facilities/{facility_id}", headers=_h("stranger@example.com")).status_code == 403
    assert client.get(f"/facilities/{uuid.uuid4()}", headers=owner).status_code == 404


def test_duplicate_and_blank_names(client, make_facility):
    make_facility(name="Maple Grove")
    r = client.post("/facilities", json={"name": "Maple Grove"}, headers=_h("other@example.com"))
    assert r.status_code == 409
    assert r.json()["detail"] == "Facility name already exists"
    r = client.post("/facilities", json={"name": "  "}, headers=_h("other@example.com"))
    assert r.status_code == 422


def test_update_facility(client, facility):
    facility_id, owner_email = facility
    r = client.put(f"/facilities/{facility_id}", json={"name": "Cedar House", "timezone": "America/Denver"},
                   headers=_h(owner_email))
    assert r.status_code == 200
    assert r.json()["name"] == "Cedar House"
    assert r.json()["timezone"] == "America/Denver"


def test_member_management(client, facility, add_member):
    facility_id, owner_email = facility
    owner = _h(owner_email)
    add_member(facility, "editor")

    members = client.get(f"/facilities/{facility_id}/members", headers=owner).json()
    assert sorted(m["role"] for m in members) == ["editor", "owner"]
    editor = next(m for m in members if m["role"] == "editor")
    assert editor["can_write"] is True

    r = client.post(f"/facilities/{facility_id}/members", json={"email": editor["email"], "role": "viewer"},
                    headers=owner)
    assert r.status_code == 409

    r = client.post(f"/facilities/{facility_id}/members", json={"email": "x@example.com", "role": "janitor"},
                    headers=owner)
    assert r.status_code == 422
    assert r.json()["detail"] == "Invalid role"

    r = client.put(f"/facilities/{facility_id}/members/{editor['user_id']}", json={"role": "viewer"}, headers=owner)
    assert r.json() == {"status": "updated", "role": "viewer"}

    r = client.delete(f"/facilities/{facility_id}/members/{editor['user_id']}", headers=owner)
    assert r.json() == {"status": "removed"}
    assert len(client.get(f"/facilities/{facility_id}/members", headers=owner).json()) == 1


def test_last_owner_is_protected(client, facility):
    facility_id, owner_email = facility
    owner = _h(owner_email)
    owner_id = _member_id(client, facility_id, owner, owner_email)

    r = client.put(f"/facilities/{facility_id}/members/{owner_id}", json={"role": "admin"}, headers=owner)
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot demote the last owner"

    r = client.delete(f"/facilities/{facility_id}/members/{owner_id}", headers=owner)
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot remove the last owner"


def test_non_managers_cannot_add_members(client, facility, add_member):
    facility_id, _ = facility
    editor = add_member(facility, "editor")
    r = client.post(f"/facilities/{facility_id}/members", json={"email": "new@example.com"}, headers=editor)
    assert r.status_code == 403


def test_audit_trail(client, facility, add_member):
    facility_id, owner_email = facility
    owner = _h(owner_email)
    add_member(facility, "viewer")

    r = client.get("/audits", params={"facility_id": facility_id}, headers=owner)
    assert r.status_code == 200
    actions = {entry["action_type"] for entry in r.json()}
    assert {"organization_create", "member_add"} <= actions

    created = client.get(
        "/audits", params={"facility_id": facility_id, "action_type": "organization_create"}, headers=owner
    ).json()
    assert len(created) == 1
    assert created[0]["target_id"] == facility_id

    member_rows = client.get(
        "/audits", params={"facility_id": facility_id, "target_type": "user"}, headers=owner
    ).json()
    assert member_rows and {entry["target_type"] for entry in member_rows} == {"user"}
    future = client.get(
        "/audits", params={"facility_id": facility_id, "since": "2999-01-01T00:00:00Z"}, headers=owner
    ).json()
    assert future == []

    assert client.get("/audits", headers=owner).status_code == 403


def test_superadmin_reads_all_audits(client, facility, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "root@example.com")
    r = client.get("/audits", headers=_h("root@example.com"))
    assert r.status_code == 200
    assert any(entry["action_type"] == "organization_create" for entry in r.json())


def test_delete_facility(client, facility):
    facility_id, owner_email = facility
    owner = _h(owner_email)
    assert client.delete(f"/facilities/{facility_id}", headers=owner).json() == {"status": "deleted"}
    assert client.get(f"/facilities/{facility_id}", headers=owner).status_code == 404
    assert client.get("/facilities", headers=owner).json() == []

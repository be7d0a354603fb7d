import uuid


def test_create_and_list_orders_by_room(client, owner_headers, make_resident):
    make_resident(first="Grace", last="Hopper", room="12")
    created = make_resident(room="2B", tags=["music", "gardening"], birthDate="1941-07-04")
    assert created["tags"] == ["music", "gardening"]
    assert created["birthDate"] == "1941-07-04T12:00:00.000Z"
    assert created["lastOneOnOneAt"] is None
    assert created["recentNotes"] == []

    r = client.get("/residents", headers=owner_headers)
    assert r.status_code == 200
    assert [res["room"] for res in r.json()["residents"]] == ["12", "2B"]


def test_create_validation(client, owner_headers):
    base = {"firstName": "Ada", "lastName": "Lovelace", "room": "101"}

    r = client.post("/residents", json={**base, "status": "SLEEPING"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid resident payload."

    r = client.post("/residents", json={**base, "status": "ON_LEAVE"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Unsupported resident status."

    r = client.post("/residents", json={**base, "status": "ACTIVE", "birthDate": "someday"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid birth date."


def test_update_resident(client, owner_headers, make_resident):
    resident = make_resident()
    r = client.patch(
        f"/residents/{resident['id']}",
        json={"room": "204", "status": "BED_BOUND", "followUpFlag": True},
        headers=owner_headers,
    )
    assert r.status_code == 200
    body = r.json()["resident"]
    assert (body["room"], body["status"], body["followUpFlag"]) == ("204", "BED_BOUND", True)

    r = client.patch(f"/residents/{resident['id']}", json={}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "At least one field is required."

    r = client.patch(f"/residents/{uuid.uuid4()}", json={"room": "1"}, headers=owner_headers)
    assert r.status_code == 404


def test_archive_moves_resident_to_archived_list(client, owner_headers, make_resident):
    resident = make_resident()
    r = client.post(f"/residents/{resident['id']}/archive", headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["resident"]["status"] == "DISCHARGED"

    assert client.get("/residents", headers=owner_headers).json()["residents"] == []
    archived = client.get("/residents", params={"archived": "true"}, headers=owner_headers).json()["residents"]
    assert [res["id"] for res in archived] == [resident["id"]]


def test_import_upserts_by_room_and_skips_unknown_status(client, owner_headers, make_resident):
    existing = make_resident(room="101")
    rows = [
        {"firstName": "Ada", "lastName": "King", "room": "101", "status": "active", "notes": "Prefers mornings"},
        {"firstName": "Grace", "lastName": "Hopper", "room": "102", "status": "Bed Bound"},
        {"firstName": "Alan", "lastName": "Turing", "room": "103", "status": "Vacation"},
    ]
    r = client.post("/residents/import", json={"rows": rows}, headers=owner_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["summary"] == {"created": 1, "updated": 1, "skipped": 1, "processed": 3}
    by_room = {res["room"]: res for res in body["residents"]}
    assert by_room["101"]["id"] == existing["id"]
    assert by_room["101"]["lastName"] == "King"
    assert by_room["101"]["preferences"] == "Prefers mornings"
    assert by_room["102"]["status"] == "BED_BOUND"

    r = client.post("/residents/import", json={"rows": []}, headers=owner_headers)
    assert r.status_code == 400


def test_residents_are_scoped_to_facility(client, make_facility, make_resident):
    make_resident()
    other_id, other_owner = make_facility()
    headers = {"x-auth-request-user": "other", "x-auth-request-email": other_owner, "X-Facility-Id": other_id}
    assert client.get("/residents", headers=headers).json()["residents"] == []


def test_viewer_cannot_create_residents(client, facility, add_member):
    viewer = add_member(facility, "viewer")
    r = client.post(
        "/residents",
        json={"firstName": "Ada", "lastName": "Lovelace", "room": "101", "status": "ACTIVE"},
        headers=viewer,
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Read-only role cannot modify residents."

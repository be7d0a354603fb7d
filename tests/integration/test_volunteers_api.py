import uuid

REQUIREMENTS = [
    "tag: music, crafts",
    "availability: weekday mornings",
    "permission: escort residents, serve snacks",
    "onboarding: orientation done",
    "check: TB test pending",
    "background check exp 2020-01-01",
    "Prefers the memory care unit",
]


def _volunteer(client, headers, **overrides):
    payload = {"name": "Maria Lopez", "phone": " 555-0100 ", "requirements": REQUIREMENTS}
    payload.update(overrides)
    r = client.post("/volunteers", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["volunteer"]


def _visit(client, headers, volunteer_id, **overrides):
    payload = {
        "volunteerId": volunteer_id,
        "startAt": "2025-03-04T14:00:00Z",
        "endAt": "2025-03-04T16:30:00Z",
        "assignedLocation": "Garden Room",
        "notes": "Helped with planting",
    }
    payload.update(overrides)
    r = client.post("/volunteers/visits", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["visit"]


def test_create_volunteer_and_hub_summary(client, owner_headers):
    volunteer = _volunteer(client, owner_headers)
    assert volunteer["phone"] == "555-0100"
    assert volunteer["requirements"] == REQUIREMENTS

    hub = client.get("/volunteers/hub", headers=owner_headers).json()
    assert hub["kpis"]["activeVolunteers"] == 1
    assert hub["kpis"]["pendingOnboarding"] == 1
    summary = hub["volunteers"][0]
    assert summary["tags"] == ["crafts", "music"]
    assert summary["availability"] == "weekday mornings"
    assert summary["status"] == "ACTIVE"
    assert hub["hoursPagination"] == {"offset": 0, "limit": 30, "hasMore": False}


def test_volunteer_details_profile(client, owner_headers):
    volunteer = _volunteer(client, owner_headers)
    _visit(client, owner_headers, volunteer["id"])

    r = client.get(f"/volunteers/{volunteer['id']}/details", headers=owner_headers)
    assert r.status_code == 200
    detail = r.json()
    assert detail["profile"]["notes"] == ["background check exp 2020-01-01", "Prefers the memory care unit"]
    assert detail["profile"]["onboardingChecklist"] == [
        {"label": "orientation done", "done": True},
        {"label": "TB test pending", "done": False},
    ]
    assert detail["permissions"]["capabilities"] == ["escort residents", "serve snacks"]
    expired = next(item for item in detail["compliance"]["items"] if item["expiresAt"])
    assert expired["status"] == "EXPIRED"
    assert detail["hours"]["entries"][0]["durationHours"] == 2.5
    assert detail["hours"]["entries"][0]["approval"] == "APPROVED"
    assert detail["volunteer"]["lastVisitAt"] == "2025-03-04T14:00:00.000Z"

    r = client.get(f"/volunteers/{uuid.uuid4()}/details", headers=owner_headers)
    assert r.status_code == 404


def test_update_and_delete_volunteer(client, owner_headers):
    volunteer = _volunteer(client, owner_headers)
    r = client.patch(
        f"/volunteers/{volunteer['id']}",
        json={"requirements": "status: paused\ntag: bingo\n\n"},
        headers=owner_headers,
    )
    assert r.status_code == 200
    assert r.json()["volunteer"]["requirements"] == ["status: paused", "tag: bingo"]
    assert r.json()["volunteer"]["name"] == "Maria Lopez"

    hub = client.get("/volunteers/hub", headers=owner_headers).json()
    assert hub["volunteers"][0]["status"] == "INACTIVE"
    assert hub["kpis"]["activeVolunteers"] == 0

    assert client.delete(f"/volunteers/{volunteer['id']}", headers=owner_headers).json() == {"ok": True}
    assert client.patch(f"/volunteers/{volunteer['id']}", json={"name": "Maria"}, headers=owner_headers).status_code == 404


def test_visit_validation(client, owner_headers):
    volunteer = _volunteer(client, owner_headers)
    r = client.post(
        "/volunteers/visits",
        json={"volunteerId": volunteer["id"], "startAt": "2025-03-04T14:00:00Z", "endAt": "2025-03-04T13:00:00Z",
              "assignedLocation": "Lobby"},
        headers=owner_headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "End time must be after start time."

    r = client.post(
        "/volunteers/visits",
        json={"volunteerId": volunteer["id"], "startAt": "sometime", "assignedLocation": "Lobby"},
        headers=owner_headers,
    )
    assert r.status_code == 400

    r = client.post("/volunteers/visits", json={"volunteerId": volunteer["id"]}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid shift payload."


def test_approve_deny_and_reassign(client, owner_headers):
    maria = _volunteer(client, owner_headers)
    sam = _volunteer(client, owner_headers, name="Sam Ortiz", requirements=[])
    visit = _visit(client, owner_headers, maria["id"])

    r = client.patch(f"/volunteers/visits/{visit['id']}", json={"action": "approve"}, headers=owner_headers)
    assert r.json()["visit"]["notes"] == "[APPROVED] Helped with planting"

    r = client.patch(
        f"/volunteers/visits/{visit['id']}",
        json={"action": "deny", "denialReason": "Duplicate entry"},
        headers=owner_headers,
    )
    assert r.json()["visit"]["notes"] == "[DENIED] Duplicate entry - Helped with planting"

    hours = client.get("/volunteers/hub", headers=owner_headers).json()["hours"]
    assert hours[0]["approval"] == "DENIED"

    r = client.patch(
        f"/volunteers/visits/{visit['id']}",
        json={"action": "reassign", "volunteerId": sam["id"]},
        headers=owner_headers,
    )
    assert r.json()["visit"]["volunteerId"] == sam["id"]

    r = client.patch(f"/volunteers/visits/{visit['id']}", json={"action": "reassign"}, headers=owner_headers)
    assert r.status_code == 400

    r = client.patch(f"/volunteers/visits/{visit['id']}", json={"action": "teleport"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid visit update payload."


def test_sign_out_open_visit(client, owner_headers):
    volunteer = _volunteer(client, owner_headers)
    visit = _visit(client, owner_headers, volunteer["id"], endAt=None)
    assert visit["endAt"] is None
    assert visit["signedOutByUserId"] is None

    hub = client.get("/volunteers/hub", headers=owner_headers).json()
    assert hub["volunteers"][0]["status"] == "ON_SHIFT"
    assert hub["hours"][0]["approval"] == "PENDING"

    r = client.patch(f"/volunteers/visits/{visit['id']}", json={"action": "signOut"}, headers=owner_headers)
    assert r.json()["visit"]["endAt"] is not None
    assert r.json()["visit"]["signedOutByUserId"] == visit["signedInByUserId"]

    assert client.delete(f"/volunteers/visits/{visit['id']}", headers=owner_headers).json() == {"ok": True}
    assert client.delete(f"/volunteers/visits/{visit['id']}", headers=owner_headers).status_code == 404


def test_hub_query_bounds(client, owner_headers):
    r = client.get("/volunteers/hub", params={"hoursLimit": 5}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid volunteers hub query."


def test_viewer_and_module_gate(client, facility, owner_headers, add_member):
    viewer = add_member(facility, "viewer")
    r = client.post("/volunteers", json={"name": "Sam Ortiz"}, headers=viewer)
    assert r.status_code == 403
    assert r.json()["detail"] == "Read-only role cannot modify volunteer data."
    assert client.get("/volunteers/hub", headers=viewer).status_code == 200

    client.patch("/settings", json={"moduleFlags": {"modules": {"volunteers": False}}}, headers=owner_headers)
    r = client.get("/volunteers/hub", headers=owner_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Volunteers module is disabled."

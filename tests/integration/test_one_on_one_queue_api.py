import uuid

DAY = "2026-03-10"


def _roster(make_resident):
    return [
        make_resident(first="Ada", last="Lovelace", room="101"),
        make_resident(first="Grace", last="Hopper", room="102"),
        make_resident(first="Alan", last="Turing", room="103", status="BED_BOUND"),
    ]


def _snapshot(response):
    assert response.status_code == 200, response.text
    return response.json()["snapshot"]


def test_queue_is_built_on_first_read_and_reused(client, owner_headers, make_resident):
    _roster(make_resident)
    snapshot = _snapshot(client.get("/oneonone/queue", params={"date": DAY, "queueSize": 2}, headers=owner_headers))
    assert snapshot["dateKey"] == DAY
    assert snapshot["queueSize"] == 2
    assert len(snapshot["queue"]) == 2
    assert [item["position"] for item in snapshot["queue"]] == [1, 2]
    assert snapshot["coverage"] == {"residentsWithOneOnOneThisMonth": 0, "totalEligibleResidents": 3}
    assert all(item["reason"] == "No 1:1 this month" for item in snapshot["queue"])

    again = _snapshot(client.get("/oneonone/queue", params={"date": DAY, "queueSize": 5}, headers=owner_headers))
    assert [item["id"] for item in again["queue"]] == [item["id"] for item in snapshot["queue"]]


def test_invalid_queue_date(client, owner_headers):
    r = client.get("/oneonone/queue", params={"date": "03/10/2026"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid queue date. Expected YYYY-MM-DD."


def test_regenerate_missing_this_month_only(client, owner_headers, make_resident):
    ada, grace, alan = _roster(make_resident)
    note = {
        "noteType": "1on1",
        "occurredAt": "2026-03-02T15:00:00Z",
        "residentId": ada["id"],
        "narrative": "Read the newspaper together.",
        "participationLevel": "moderate",
        "responseType": "positive",
        "mood": "calm",
        "cues": "none",
    }
    assert client.post("/notes", json=note, headers=owner_headers).status_code == 201

    snapshot = _snapshot(client.post(
        "/oneonone/queue/regenerate",
        json={"date": DAY, "queueSize": 5, "missingThisMonthOnly": True},
        headers=owner_headers,
    ))
    queued = {item["residentId"] for item in snapshot["queue"]}
    assert queued == {grace["id"], alan["id"]}
    assert snapshot["coverage"]["residentsWithOneOnOneThisMonth"] == 1
    monthly = {row["residentId"]: row for row in snapshot["monthlyResidents"]}
    assert monthly[ada["id"]]["hasOneOnOneThisMonth"] is True
    assert monthly[ada["id"]]["daysSinceLastOneOnOne"] == 8
    assert monthly[ada["id"]]["inTodayQueue"] is False

    r = client.post("/oneonone/queue/regenerate", json={"queueSize": 50}, headers=owner_headers)
    assert r.status_code == 400


def test_complete_skip_and_pin(client, owner_headers, make_resident):
    _roster(make_resident)
    queue = _snapshot(client.get("/oneonone/queue", params={"date": DAY}, headers=owner_headers))["queue"]
    first, second, third = queue

    done = _snapshot(client.post("/oneonone/queue/complete", json={"queueItemId": first["id"]}, headers=owner_headers))
    assert next(i for i in done["queue"] if i["id"] == first["id"])["completedAt"] is not None

    skipped = _snapshot(client.post(
        "/oneonone/queue/skip",
        json={"queueItemId": second["id"], "skipReason": "ASLEEP"},
        headers=owner_headers,
    ))
    item = next(i for i in skipped["queue"] if i["id"] == second["id"])
    assert (item["skipReason"], item["skipReasonLabel"]) == ("ASLEEP", "Asleep")
    assert item["completedAt"] is None

    _snapshot(client.post("/oneonone/queue/pin", json={"queueItemId": third["id"]}, headers=owner_headers))
    tomorrow = _snapshot(client.get("/oneonone/queue", params={"date": "2026-03-11"}, headers=owner_headers))
    assert tomorrow["queue"][0]["residentId"] == third["residentId"]
    assert tomorrow["queue"][0]["isPinned"] is True
    assert tomorrow["queue"][0]["reason"] == "Pinned to tomorrow"


def test_queue_actions_validate_input(client, owner_headers):
    r = client.post("/oneonone/queue/complete", json={"queueItemId": str(uuid.uuid4())}, headers=owner_headers)
    assert r.status_code == 404
    r = client.post(
        "/oneonone/queue/skip",
        json={"queueItemId": str(uuid.uuid4()), "skipReason": "BORED"},
        headers=owner_headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid skip payload."


def test_viewer_cannot_regenerate(client, facility, add_member):
    viewer = add_member(facility, "viewer")
    r = client.post("/oneonone/queue/regenerate", json={}, headers=viewer)
    assert r.status_code == 403
    assert r.json()["detail"] == "Read-only role cannot modify 1:1 queue data."

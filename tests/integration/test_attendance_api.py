import uuid


def _save(client, headers, session_id, entries):
    return client.post("/attendance/quick-take", json={"sessionId": session_id, "entries": entries}, headers=headers)


def test_quick_take_lists_day_sessions_and_residents(client, owner_headers, make_activity, make_resident):
    activity = make_activity()
    make_resident(room="102")
    make_resident(first="Grace", last="Hopper", room="101")
    make_resident(first="Gone", last="Away", room="100", status="DISCHARGED")

    r = client.get("/attendance/quick-take", params={"date": "2026-03-02"}, headers=owner_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["dateKey"] == "2026-03-02"
    assert body["selectedSessionId"] == activity["id"]
    assert [s["id"] for s in body["sessions"]] == [activity["id"]]
    assert [res["room"] for res in body["residents"]] == ["101", "102"]
    assert body["entriesByResidentId"] == {}


def test_save_batch_create_update_clear(client, owner_headers, make_activity, make_resident):
    activity = make_activity()
    ada = make_resident()
    grace = make_resident(first="Grace", last="Hopper", room="102")

    r = _save(client, owner_headers, activity["id"], [
        {"residentId": ada["id"], "status": "PRESENT"},
        {"residentId": grace["id"], "status": "REFUSED", "notes": "Tired"},
    ])
    assert r.status_code == 200
    assert r.json() == {"ok": True, "result": {"created": 2, "updated": 0, "deleted": 0, "unchanged": 0}}

    r = _save(client, owner_headers, activity["id"], [
        {"residentId": ada["id"], "status": "PRESENT"},
        {"residentId": grace["id"], "status": "ASLEEP"},
        {"residentId": grace["id"], "status": "CLEAR"},
    ])
    assert r.json()["result"] == {"created": 0, "updated": 0, "deleted": 1, "unchanged": 1}

    body = client.get("/attendance/quick-take", params={"date": "2026-03-02"}, headers=owner_headers).json()
    assert body["entriesByResidentId"] == {ada["id"]: {"status": "PRESENT", "notes": None}}
    assert body["sessions"][0]["counts"]["present"] == 1
    assert body["sessions"][0]["completionPercent"] == 50.0


def test_unknown_session_and_bad_status(client, owner_headers, make_resident):
    ada = make_resident()
    r = _save(client, owner_headers, str(uuid.uuid4()), [{"residentId": ada["id"], "status": "PRESENT"}])
    assert r.status_code == 404
    assert r.json()["detail"] == "Attendance session not found."

    r = _save(client, owner_headers, str(uuid.uuid4()), [{"residentId": ada["id"], "status": "LATE"}])
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid attendance payload."


def test_sessions_history_filters(client, owner_headers, make_activity, make_resident):
    stretch = make_activity(location="Main Lounge")
    make_activity(title="Painting", start="2026-03-03T14:00:00Z", end="2026-03-03T15:00:00Z", location="Courtyard")
    ada = make_resident()
    _save(client, owner_headers, stretch["id"], [{"residentId": ada["id"], "status": "PRESENT", "notes": "Great"}])

    params = {"from": "2026-03-01", "to": "2026-03-07"}
    body = client.get("/attendance/sessions", params=params, headers=owner_headers).json()
    assert [s["title"] for s in body["sessions"]] == ["Painting", "Morning Stretch"]
    assert body["locations"] == ["Courtyard", "Main Lounge"]

    with_notes = client.get("/attendance/sessions", params={**params, "hasNotes": "yes"}, headers=owner_headers)
    assert [s["title"] for s in with_notes.json()["sessions"]] == ["Morning Stretch"]

    by_location = client.get("/attendance/sessions", params={**params, "location": "courtyard"}, headers=owner_headers)
    assert [s["title"] for s in by_location.json()["sessions"]] == ["Painting"]

    r = client.get("/attendance/sessions", params={"from": "March 1"}, headers=owner_headers)
    assert r.status_code == 400


def test_resident_summary_and_export(client, owner_headers, make_activity, make_resident):
    activity = make_activity()
    ada = make_resident()
    _save(client, owner_headers, activity["id"], [{"residentId": ada["id"], "status": "ONE_TO_ONE"}])

    r = client.get(f"/attendance/residents/{ada['id']}", headers=owner_headers)
    assert r.status_code == 200
    summary = r.json()
    assert summary["resident"]["name"] == "Ada Lovelace"
    assert summary["topActivities"] == [{"title": "Morning Stretch", "count": 1}]
    assert summary["sessions"][0]["status"] == "ONE_TO_ONE"

    r = client.get(f"/attendance/residents/{ada['id']}/export", headers=owner_headers)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="attendance-resident-ada-lovelace.csv"' in r.headers["content-disposition"]

    assert client.get(f"/attendance/residents/{uuid.uuid4()}", headers=owner_headers).status_code == 404


def test_monthly_report_json_and_csv(client, owner_headers, make_activity, make_resident):
    activity = make_activity()
    ada = make_resident()
    _save(client, owner_headers, activity["id"], [{"residentId": ada["id"], "status": "PRESENT"}])

    r = client.get("/attendance/reports/monthly", params={"month": "2026-03"}, headers=owner_headers)
    assert r.status_code == 200
    report = r.json()
    assert report["monthKey"] == "2026-03"
    assert report["totalEntries"] == 1
    assert report["daily"] == [{"dateKey": "2026-03-02", "total": 1}]
    assert report["sessions"][0]["present"] == 1

    r = client.get("/attendance/reports/monthly", params={"month": "2026-03", "format": "csv"}, headers=owner_headers)
    assert 'filename="attendance-summary-2026-03.csv"' in r.headers["content-disposition"]

    r = client.get("/attendance/reports/monthly", params={"month": "March"}, headers=owner_headers)
    assert r.status_code == 400


def test_attendance_follows_calendar_module_flag(client, owner_headers):
    r = client.patch(
        "/settings",
        json={"moduleFlags": {"modules": {"calendar": False}}},
        headers=owner_headers,
    )
    assert r.status_code == 200, r.text
    r = client.get("/attendance/quick-take", headers=owner_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Attendance module is disabled."

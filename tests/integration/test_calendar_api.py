WEEK = {"start": "2026-03-02T05:00:00.000Z", "end": "2026-03-09T03:59:59.999Z"}


def _range(client, headers, **params):
    r = client.get("/calendar/range", params={**WEEK, **params}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_create_and_list_single_activity(client, owner_headers, make_activity):
    created = make_activity(location="Main Lounge")
    assert created["title"] == "Morning Stretch"
    assert created["startAt"] == "2026-03-02T14:00:00.000Z"
    assert created["seriesId"] is None

    body = _range(client, owner_headers)
    assert body["range"]["view"] == "week"
    assert [a["id"] for a in body["activities"]] == [created["id"]]
    assert body["activities"][0]["attendanceCount"] == 0


def test_overlap_is_rejected_with_conflict_detail(client, owner_headers, make_activity):
    existing = make_activity()
    payload = {"title": "Bingo", "startAt": "2026-03-02T14:30:00Z", "endAt": "2026-03-02T15:30:00Z"}

    r = client.post("/calendar/activities", json=payload, headers=owner_headers)
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["code"] == "CALENDAR_CONFLICT"
    assert detail["error"] == "Scheduling conflict detected."
    assert detail["outsideBusinessHours"] is False
    assert [c["id"] for c in detail["conflicts"]] == [existing["id"]]

    r = client.post("/calendar/activities", json={**payload, "allowConflictOverride": True}, headers=owner_headers)
    assert r.status_code == 201
    assert len(_range(client, owner_headers)["activities"]) == 2


def test_different_locations_do_not_conflict(client, owner_headers, make_activity):
    make_activity(location="Main Lounge")
    make_activity(title="Painting", location="Courtyard")
    assert len(_range(client, owner_headers)["activities"]) == 2


def test_outside_business_hours_needs_override(client, owner_headers):
    payload = {"title": "Movie Night", "startAt": "2026-03-02T23:00:00Z", "endAt": "2026-03-03T00:30:00Z"}
    r = client.post("/calendar/activities", json=payload, headers=owner_headers)
    assert r.status_code == 409
    assert r.json()["detail"]["outsideBusinessHours"] is True
    assert r.json()["detail"]["error"] == "Activity falls outside business hours."

    r = client.post(
        "/calendar/activities",
        json={**payload, "allowOutsideBusinessHoursOverride": True},
        headers=owner_headers,
    )
    assert r.status_code == 201


def test_invalid_payloads(client, owner_headers):
    r = client.post(
        "/calendar/activities",
        json={"title": "Bingo", "startAt": "2026-03-02T15:00:00Z", "endAt": "2026-03-02T14:00:00Z"},
        headers=owner_headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid schedule range."

    r = client.post("/calendar/activities", json={"title": "B"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid create activity payload."

    r = client.get("/calendar/range", params={"start": "nope", "end": WEEK["end"]}, headers=owner_headers)
    assert r.status_code == 400


def test_update_and_move_activity(client, owner_headers, make_activity):
    activity = make_activity()
    r = client.patch(f"/calendar/activities/{activity['id']}", json={"title": "Chair Yoga"}, headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["activity"]["title"] == "Chair Yoga"

    r = client.post(
        f"/calendar/activities/{activity['id']}/move",
        json={"startAt": "2026-03-03T15:00:00Z", "endAt": "2026-03-03T16:00:00Z"},
        headers=owner_headers,
    )
    assert r.status_code == 200
    assert r.json()["moved"] is True
    assert r.json()["activity"]["startAt"] == "2026-03-03T15:00:00.000Z"


def test_delete_single_activity(client, owner_headers, make_activity):
    activity = make_activity()
    r = client.delete(f"/calendar/activities/{activity['id']}", headers=owner_headers)
    assert r.status_code == 200
    assert r.json() == {"deleted": True, "skippedSeriesOccurrence": False, "id": activity["id"]}

    r = client.delete(f"/calendar/activities/{activity['id']}", headers=owner_headers)
    assert r.status_code == 404


def test_series_create_exdate_and_occurrence_delete(client, owner_headers):
    payload = {
        "title": "Coffee Social",
        "startAt": "2026-03-03T14:00:00Z",
        "endAt": "2026-03-03T15:00:00Z",
        "recurrence": {"freq": "DAILY", "count": 3},
    }
    r = client.post("/calendar/activities", json=payload, headers=owner_headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["mode"] == "series"
    series = body["series"]
    assert series["durationMin"] == 60
    assert "COUNT=3" in series["rrule"]

    occurrences = _range(client, owner_headers)["activities"]
    assert [a["startAt"][:10] for a in occurrences] == ["2026-03-03", "2026-03-04", "2026-03-05"]
    assert all(a["seriesId"] == series["id"] for a in occurrences)

    r = client.post(
        f"/calendar/series/{series['id']}/exdate",
        json={"occurrenceStartAt": "2026-03-04T14:00:00Z"},
        headers=owner_headers,
    )
    assert r.status_code == 200
    assert r.json()["skipped"] is True
    assert r.json()["exdatesCount"] == 1

    remaining = _range(client, owner_headers)["activities"]
    assert [a["startAt"][:10] for a in remaining] == ["2026-03-03", "2026-03-05"]

    r = client.delete(f"/calendar/activities/{remaining[0]['id']}", headers=owner_headers)
    assert r.json()["skippedSeriesOccurrence"] is True
    assert [a["startAt"][:10] for a in _range(client, owner_headers)["activities"]] == ["2026-03-05"]


def test_series_update_renames_generated_occurrences(client, owner_headers):
    payload = {
        "title": "Coffee Social",
        "startAt": "2026-03-03T14:00:00Z",
        "endAt": "2026-03-03T15:00:00Z",
        "recurrence": {"freq": "WEEKLY", "byDay": ["TU"], "count": 2},
    }
    series = client.post("/calendar/activities", json=payload, headers=owner_headers).json()["series"]

    r = client.patch(f"/calendar/series/{series['id']}", json={"title": "Tea Social"}, headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["series"]["title"] == "Tea Social"

    r = client.patch(f"/calendar/series/{series['id']}", json={"durationMin": 1}, headers=owner_headers)
    assert r.status_code == 400


def test_viewer_can_read_but_not_write(client, facility, add_member, make_activity):
    make_activity()
    viewer = add_member(facility, "viewer")
    assert len(_range(client, viewer)["activities"]) == 1

    r = client.post(
        "/calendar/activities",
        json={"title": "Bingo", "startAt": "2026-03-04T14:00:00Z", "endAt": "2026-03-04T15:00:00Z"},
        headers=viewer,
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Read-only role cannot modify calendar data."


def test_export_schedule_pdf(client, owner_headers, make_activity):
    make_activity()
    r = client.get("/calendar/export/pdf", params={"start": "2026-03-02", "end": "2026-03-08"}, headers=owner_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert 'attachment; filename="activity-calendar-2026-03-02.pdf"' == r.headers["content-disposition"]
    assert r.content.startswith(b"%PDF")

    r = client.get("/calendar/export/pdf", params={"start": "2026-03-08", "end": "2026-03-02"}, headers=owner_headers)
    assert r.status_code == 400

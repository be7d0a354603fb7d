import uuid

ACTIVITY_TEMPLATE = {
    "type": "activity",
    "title": "Balloon Volleyball",
    "category": "Movement",
    "payload": {
        "difficulty": "Easy",
        "estimatedMinutes": 30,
        "supplies": ["Balloons", "Chairs"],
        "setupSteps": ["Arrange chairs in a circle"],
        "checklistItems": ["Inflate balloons"],
        "adaptations": {"bedBound": "Use a soft ball", "dementia": "", "lowVision": "Bright colors", "oneToOne": ""},
    },
}

NOTE_TEMPLATE = {
    "type": "note",
    "title": "Room visit",
    "tags": ["Sensory", "Visit"],
    "payload": {
        "defaultTextBlocks": {"body": "Visited resident in room."},
        "quickPhrases": ["Smiled", " ", "Held hands"],
    },
}


def _create(client, headers, body):
    r = client.post("/templates", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["template"]


def test_activity_template_round_trip(client, owner_headers):
    template = _create(client, owner_headers, ACTIVITY_TEMPLATE)
    assert template["type"] == "activity"
    assert template["tags"] == ["movement", "easy", "checklist"]
    assert template["payload"]["supplies"] == ["Balloons", "Chairs"]
    assert template["payload"]["adaptations"]["bedBound"] == "Use a soft ball"
    assert template["payload"]["estimatedMinutes"] == 30
    assert template["usageCount"] == 0


def test_note_template_keeps_meta(client, owner_headers):
    template = _create(client, owner_headers, NOTE_TEMPLATE)
    assert template["category"] == "Progress Note"
    assert template["tags"] == ["sensory", "visit"]
    assert template["payload"]["defaultTextBlocks"]["body"] == "Visited resident in room."
    assert template["payload"]["quickPhrases"] == ["Smiled", "Held hands"]
    assert template["payload"]["fieldsEnabled"]["mood"] is True

    notes = client.get("/notes", headers=owner_headers).json()
    assert notes["templates"][0]["narrativeStarter"] == "Visited resident in room."


def test_library_lists_both_kinds_and_filters(client, owner_headers):
    _create(client, owner_headers, ACTIVITY_TEMPLATE)
    _create(client, owner_headers, NOTE_TEMPLATE)

    everything = client.get("/templates", headers=owner_headers).json()["templates"]
    assert sorted(t["type"] for t in everything) == ["activity", "note"]
    only_notes = client.get("/templates", params={"type": "note"}, headers=owner_headers).json()["templates"]
    assert [t["title"] for t in only_notes] == ["Room visit"]


def test_invalid_template_payload(client, owner_headers):
    bad = {**ACTIVITY_TEMPLATE, "payload": {**ACTIVITY_TEMPLATE["payload"], "difficulty": "Extreme"}}
    r = client.post("/templates", json=bad, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid template payload."


def test_update_duplicate_delete(client, owner_headers):
    template = _create(client, owner_headers, ACTIVITY_TEMPLATE)

    r = client.patch(f"/templates/{template['id']}", json={**ACTIVITY_TEMPLATE, "title": "Balloon Toss"},
                     headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["template"]["title"] == "Balloon Toss"

    r = client.post(f"/templates/{template['id']}/duplicate", headers=owner_headers)
    assert r.status_code == 201
    copy = r.json()["template"]
    assert copy["title"] == "Balloon Toss (Copy)"
    assert copy["id"] != template["id"]

    assert client.delete(f"/templates/{template['id']}", headers=owner_headers).json() == {"ok": True}
    assert client.delete(f"/templates/{template['id']}", headers=owner_headers).status_code == 404
    assert client.post(f"/templates/{uuid.uuid4()}/duplicate", headers=owner_headers).status_code == 404


def test_use_activity_template_schedules_activity(client, owner_headers):
    template = _create(client, owner_headers, ACTIVITY_TEMPLATE)
    r = client.post(
        "/templates/use",
        json={
            "templateId": template["id"],
            "startAt": "2026-03-05T15:00:00Z",
            "endAt": "2026-03-05T15:30:00Z",
            "location": " Courtyard ",
        },
        headers=owner_headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["activity"]["startAt"] == "2026-03-05T15:00:00.000Z"

    activities = client.get(
        "/calendar/range",
        params={"start": "2026-03-05T00:00:00Z", "end": "2026-03-06T00:00:00Z"},
        headers=owner_headers,
    ).json()["activities"]
    assert activities[0]["templateId"] == template["id"]
    assert activities[0]["location"] == "Courtyard"
    assert activities[0]["checklist"] == [{"text": "Inflate balloons", "done": False}]

    library = client.get("/templates", params={"type": "activity"}, headers=owner_headers).json()["templates"]
    assert library[0]["usageCount"] == 1


def test_use_template_validation(client, owner_headers):
    body = {"templateId": "not-a-uuid", "startAt": "2026-03-05T15:00:00Z", "endAt": "2026-03-05T15:30:00Z",
            "location": "Lounge"}
    assert client.post("/templates/use", json=body, headers=owner_headers).status_code == 404

    template = _create(client, owner_headers, ACTIVITY_TEMPLATE)
    r = client.post("/templates/use", json={**body, "templateId": template["id"], "endAt": "2026-03-05T14:00:00Z"},
                    headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid start/end time."

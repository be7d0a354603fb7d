import uuid


def _note(resident_id, **overrides):
    payload = {
        "noteType": "1on1",
        "title": "Sensory visit",
        "occurredAt": "2026-03-02T15:30:00Z",
        "residentId": resident_id,
        "narrative": "Listened to big band records and hummed along.",
        "participationLevel": "high",
        "responseType": "positive",
        "mood": "bright",
        "cues": "verbal",
        "interventions": ["Music"],
        "tags": ["Music", "music", " sensory "],
    }
    payload.update(overrides)
    return payload


def test_one_on_one_note_stamps_resident(client, owner_headers, make_resident):
    resident = make_resident()
    r = client.post("/notes", json=_note(resident["id"]), headers=owner_headers)
    assert r.status_code == 201, r.text
    note = r.json()["note"]
    assert note["noteType"] == "1on1"
    assert note["residentName"] == "Ada Lovelace"
    assert note["title"] == "Sensory visit"
    assert note["status"] == "Signed"
    assert note["createdAt"] == "2026-03-02T15:30:00.000Z"

    residents = client.get("/residents", headers=owner_headers).json()["residents"]
    assert residents[0]["lastOneOnOneAt"] == "2026-03-02T15:30:00.000Z"
    assert residents[0]["recentNotes"][0]["id"] == note["id"]


def test_list_filters_and_search(client, owner_headers, make_resident):
    ada = make_resident()
    grace = make_resident(first="Grace", last="Hopper", room="102")
    client.post("/notes", json=_note(ada["id"]), headers=owner_headers)
    client.post(
        "/notes",
        json=_note(grace["id"], noteType="general", title="Trivia hour", narrative="Answered most trivia questions."),
        headers=owner_headers,
    )

    everything = client.get("/notes", headers=owner_headers).json()
    assert len(everything["notes"]) == 2
    assert everything["templates"] == []

    one_on_one = client.get("/notes", params={"type": "1on1"}, headers=owner_headers).json()["notes"]
    assert [n["residentId"] for n in one_on_one] == [ada["id"]]

    found = client.get("/notes", params={"q": "hopper"}, headers=owner_headers).json()["notes"]
    assert [n["title"] for n in found] == ["Trivia hour"]

    r = client.get("/notes", params={"type": "weekly"}, headers=owner_headers)
    assert r.status_code == 400


def test_get_update_delete(client, owner_headers, make_resident):
    resident = make_resident()
    note = client.post("/notes", json=_note(resident["id"]), headers=owner_headers).json()["note"]

    r = client.get(f"/notes/{note['id']}", headers=owner_headers)
    assert r.status_code == 200
    detail = r.json()["note"]
    assert detail["narrativeBody"].startswith("Listened to big band records")
    assert (detail["participationLevel"], detail["mood"], detail["cues"], detail["responseType"]) == (
        "high", "bright", "verbal", "positive"
    )

    r = client.patch(f"/notes/{note['id']}", json=_note(resident["id"], title="Record club"), headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["note"]["title"] == "Record club"

    assert client.delete(f"/notes/{note['id']}", headers=owner_headers).json() == {"ok": True}
    assert client.get(f"/notes/{note['id']}", headers=owner_headers).status_code == 404


def test_note_for_unknown_resident_is_404(client, owner_headers):
    r = client.post("/notes", json=_note(str(uuid.uuid4())), headers=owner_headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Resident not found in this facility."


def test_short_narrative_rejected(client, owner_headers, make_resident):
    resident = make_resident()
    r = client.post("/notes", json=_note(resident["id"], narrative="ok"), headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid note payload."


def test_notes_module_can_be_disabled(client, owner_headers):
    client.patch("/settings", json={"moduleFlags": {"modules": {"notes": False}}}, headers=owner_headers)
    r = client.get("/notes", headers=owner_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Notes module is disabled."

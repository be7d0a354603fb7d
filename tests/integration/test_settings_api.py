def test_defaults_and_can_manage(client, facility, owner_headers, add_member):
    settings = client.get("/settings", headers=owner_headers).json()
    assert settings["canManage"] is True
    assert settings["timezone"] == "America/New_York"
    assert settings["businessHours"] == {"start": "08:00", "end": "17:00", "days": [1, 2, 3, 4, 5]}
    assert settings["attendanceRules"]["warnTherapyOverlap"] is True
    assert settings["inventory"]["budgetTracking"]["monthlyBudget"] == 500
    assert settings["notifications"]["digest"] == {"mode": "WEEKLY", "time": "09:00"}
    assert settings["moduleFlags"]["modules"]["volunteers"] is True

    editor = add_member(facility, "editor")
    assert client.get("/settings", headers=editor).json()["canManage"] is False


def test_patch_merges_sections(client, owner_headers):
    r = client.patch(
        "/settings",
        json={"businessHours": {"start": "09:00"}, "moduleFlags": {"modules": {"analytics": False}}},
        headers=owner_headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["businessHours"] == {"start": "09:00", "end": "17:00", "days": [1, 2, 3, 4, 5]}
    assert body["moduleFlags"]["modules"]["analytics"] is False

    r = client.patch("/settings", json={"moduleFlags": {"modules": {"reports": False}}}, headers=owner_headers)
    modules = r.json()["moduleFlags"]["modules"]
    assert modules["analytics"] is False
    assert modules["reports"] is False
    assert modules["calendar"] is True

    client.patch("/settings", json={"notifications": {"triggers": {"lowInventory": False}}}, headers=owner_headers)
    r = client.patch("/settings", json={"notifications": {"triggers": {"newAdmitAdded": False}}}, headers=owner_headers)
    triggers = r.json()["notifications"]["triggers"]
    assert triggers["lowInventory"] is False
    assert triggers["newAdmitAdded"] is False
    assert triggers["oneToOneDueToday"] is True


def test_derived_module_flags(client, owner_headers):
    r = client.patch(
        "/settings",
        json={"moduleFlags": {"modules": {"oneToOneNotes": False, "groupNotes": False, "attendanceTracking": False}}},
        headers=owner_headers,
    )
    modules = r.json()["moduleFlags"]["modules"]
    assert modules["notes"] is False
    assert modules["calendar"] is False


def test_timezone_update_and_fallback(client, owner_headers):
    r = client.patch("/settings", json={"timezone": "America/Chicago"}, headers=owner_headers)
    assert r.json()["timezone"] == "America/Chicago"
    r = client.patch("/settings", json={"timezone": "Mars/Olympus_Mons"}, headers=owner_headers)
    assert r.json()["timezone"] == "America/New_York"


def test_only_managers_can_patch(client, facility, add_member):
    for role in ("viewer", "editor"):
        headers = add_member(facility, role)
        r = client.patch("/settings", json={"businessHours": {"start": "07:00"}}, headers=headers)
        assert r.status_code == 403
        assert r.json()["detail"] == "Only owners and admins can change facility settings."

    admin = add_member(facility, "admin")
    assert client.patch("/settings", json={"businessHours": {"start": "07:00"}}, headers=admin).status_code == 200


def test_unknown_section_rejected(client, owner_headers):
    r = client.patch("/settings", json={"theme": "dark"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid settings payload."


def test_personal_notification_overrides(client, facility, owner_headers, add_member):
    client.patch("/settings", json={"notifications": {"digest": {"mode": "DAILY", "time": "07:30"}}},
                 headers=owner_headers)
    editor = add_member(facility, "editor")

    r = client.get("/settings/notifications/me", headers=editor)
    assert r.json()["overrides"] == {}
    assert r.json()["effective"]["digest"] == {"mode": "DAILY", "time": "07:30"}

    r = client.put(
        "/settings/notifications/me",
        json={"digest": {"time": "10:00"}, "quietHours": {"enabled": True}},
        headers=editor,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["overrides"] == {"digest": {"time": "10:00"}, "quietHours": {"enabled": True}}
    assert body["effective"]["digest"] == {"mode": "DAILY", "time": "10:00"}
    assert body["effective"]["quietHours"] == {"enabled": True, "start": "22:00", "end": "06:00"}

    r = client.put("/settings/notifications/me", json={"sound": "chime"}, headers=editor)
    assert r.status_code == 400

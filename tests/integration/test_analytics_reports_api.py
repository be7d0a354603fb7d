def _seed_month(client, headers, make_activity, make_resident):
    activity = make_activity(location="Main Lounge")
    ada = make_resident()
    grace = make_resident(first="Grace", last="Hopper", room="102")
    alan = make_resident(first="Alan", last="Turing", room="103")
    r = client.post(
        "/attendance/quick-take",
        json={"sessionId": activity["id"], "entries": [
            {"residentId": ada["id"], "status": "PRESENT"},
            {"residentId": grace["id"], "status": "PRESENT"},
            {"residentId": alan["id"], "status": "REFUSED", "notes": "Knee pain"},
        ]},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    note = {
        "noteType": "1on1",
        "occurredAt": "2026-03-02T15:30:00Z",
        "residentId": ada["id"],
        "narrative": "Shared stories about her garden.",
        "participationLevel": "high",
        "responseType": "positive",
        "mood": "bright",
        "cues": "none",
    }
    assert client.post("/notes", json=note, headers=headers).status_code == 201
    return activity, (ada, grace, alan)


def test_monthly_report_json(client, owner_headers, make_activity, make_resident):
    _seed_month(client, owner_headers, make_activity, make_resident)
    r = client.get("/reports/monthly", params={"month": "2026-03"}, headers=owner_headers)
    assert r.status_code == 200
    report = r.json()
    assert report["monthKey"] == "2026-03"
    assert report["monthLabel"] == "March 2026"
    assert report["attendance"] == {"present": 2, "active": 0, "leading": 0, "refused": 1, "noShow": 0}
    assert report["engagementAverage"] == 0.67
    assert report["topPrograms"] == [{"title": "Morning Stretch", "sessions": 1, "attended": 2}]
    assert report["oneOnOneTotal"] == 1
    assert report["notableOutcomes"][0]["residentName"] == "Ada Lovelace"
    assert report["notableOutcomes"][0]["date"] == "2026-03-02"

    empty = client.get("/reports/monthly", params={"month": "2026-04"}, headers=owner_headers).json()
    assert empty["attendance"]["present"] == 0
    assert empty["topPrograms"] == []


def test_monthly_report_csv_and_pdf(client, owner_headers, make_activity, make_resident):
    _seed_month(client, owner_headers, make_activity, make_resident)

    r = client.get("/reports/monthly", params={"month": "2026-03", "format": "csv"}, headers=owner_headers)
    assert r.status_code == 200
    assert r.headers["content-disposition"] == 'attachment; filename="actify-report-2026-03.csv"'
    lines = r.text.splitlines()
    assert lines[0] == "Section,Metric,Value"
    assert "Attendance,Present/Active,2" in lines
    assert "Top Program,Morning Stretch,2" in lines

    r = client.get("/reports/monthly", params={"month": "2026-03", "format": "pdf", "preview": "1"},
                   headers=owner_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.headers["content-disposition"] == 'inline; filename="actify-report-2026-03.pdf"'
    assert r.headers["cache-control"].startswith("no-store")
    assert r.content.startswith(b"%PDF")


def test_monthly_report_rejects_bad_query(client, owner_headers):
    r = client.get("/reports/monthly", params={"month": "03-2026"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid report query."
    r = client.get("/reports/monthly", params={"format": "xlsx"}, headers=owner_headers)
    assert r.status_code == 400


def test_analytics_custom_range(client, owner_headers, make_activity, make_resident):
    _seed_month(client, owner_headers, make_activity, make_resident)
    r = client.get(
        "/analytics",
        params={"range": "custom", "from": "2026-03-01", "to": "2026-03-31"},
        headers=owner_headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert set(body) >= {
        "range", "options", "kpis", "attendance", "engagement", "oneOnOne", "programs",
        "staffVolunteers", "facilityPresence", "exports",
    }
    assert body["range"]["startKey"] == "2026-03-01"
    assert body["range"]["endKey"] == "2026-03-31"
    assert body["range"]["totalDays"] == 31

    counts = body["attendance"]["counts"]
    assert (counts["present"], counts["active"], counts["refused"], counts["total"]) == (2, 0, 1, 3)
    assert body["programs"]["categoryMix"][0]["category"] == "Uncategorized"
    assert body["oneOnOne"]["totalNotes"] == 1
    assert body["kpis"][0]["key"] == "total-attended"
    assert [r["room"] for r in body["options"]["residents"]] == ["101A", "102", "103"]


def test_analytics_default_range_and_gate(client, owner_headers):
    body = client.get("/analytics", params={"range": "7d"}, headers=owner_headers).json()
    assert body["range"]["totalDays"] == 7
    assert body["range"]["label"] == "Last 7 days"

    fallback = client.get("/analytics", params={"range": "fortnight"}, headers=owner_headers).json()
    assert fallback["range"]["label"] == "Last 30 days"

    client.patch("/settings", json={"moduleFlags": {"modules": {"analytics": False, "reports": False}}},
                 headers=owner_headers)
    r = client.get("/analytics", headers=owner_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Analytics module is disabled."
    r = client.get("/reports/monthly", headers=owner_headers)
    assert r.json()["detail"] == "Reports module is disabled."

import uuid


def _quiet_digests(client, headers):
    r = client.put("/settings/notifications/me", json={"digest": {"mode": "OFF"}}, headers=headers)
    assert r.status_code == 200, r.text


def _low_stock_item(client, headers):
    r = client.post(
        "/budget-stock/items",
        json={"name": "Lemonade", "category": "Drinks", "onHand": 1, "parLevel": 10},
        headers=headers,
    )
    assert r.status_code == 201, r.text


def test_feed_generates_low_stock_trigger_once(client, owner_headers):
    _quiet_digests(client, owner_headers)
    _low_stock_item(client, owner_headers)
    # exactly at the threshold (30% of par) is not counted by the feed
    r = client.post(
        "/budget-stock/items",
        json={"name": "Napkins", "category": "Misc", "onHand": 3, "parLevel": 10},
        headers=owner_headers,
    )
    assert r.json()["item"]["status"] == "low"

    feed = client.get("/notifications/feed", headers=owner_headers).json()
    low = [n for n in feed["notifications"] if n["event_type"] == "LOW_STOCK"]
    assert len(low) == 1
    assert low[0]["title"] == "Low Stock Alert"
    assert low[0]["message"] == "1 inventory item below reorder threshold."
    assert low[0]["action_url"] == "/budget-stock"
    assert low[0]["metadata"] == {"lowInventoryCount": 1}
    assert feed["unreadCount"] == feed["totalCount"]

    again = client.get("/notifications/feed", headers=owner_headers).json()
    assert again["totalCount"] == feed["totalCount"]


def test_low_inventory_trigger_can_be_switched_off(client, owner_headers):
    r = client.put(
        "/settings/notifications/me",
        json={"digest": {"mode": "OFF"}, "triggers": {"lowInventory": False}},
        headers=owner_headers,
    )
    assert r.json()["effective"]["triggers"]["lowInventory"] is False
    _low_stock_item(client, owner_headers)

    feed = client.get("/notifications/feed", headers=owner_headers).json()
    assert [n for n in feed["notifications"] if n["event_type"] == "LOW_STOCK"] == []


def test_in_app_channel_off_generates_nothing(client, owner_headers):
    client.put("/settings/notifications/me", json={"channels": {"inApp": False}}, headers=owner_headers)
    _low_stock_item(client, owner_headers)
    feed = client.get("/notifications/feed", headers=owner_headers).json()
    assert feed == {"notifications": [], "unreadCount": 0, "totalCount": 0}


def test_feed_actions(client, owner_headers):
    _quiet_digests(client, owner_headers)
    _low_stock_item(client, owner_headers)
    feed = client.get("/notifications/feed", headers=owner_headers).json()
    target = feed["notifications"][0]["id"]

    r = client.post("/notifications/feed", json={"action": "mark-read", "id": target}, headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["unreadCount"] == feed["unreadCount"] - 1

    r = client.post("/notifications/feed", json={"action": " mark-all-read "}, headers=owner_headers)
    assert r.json()["unreadCount"] == 0

    r = client.post("/notifications/feed", json={"action": "clear-read"}, headers=owner_headers)
    assert r.json() == {"ok": True, "unreadCount": 0, "totalCount": 0}

    r = client.post("/notifications/feed", json={"action": "mark-read"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Notification id is required."

    r = client.post("/notifications/feed", json={"action": "archive"}, headers=owner_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid request payload."


def test_membership_added_notification(client, facility, add_member):
    member = add_member(facility, "editor")
    body = client.get("/notifications", headers=member).json()
    assert body["unread_count"] == 1
    note = body["notifications"][0]
    assert note["event_type"] == "facility_membership_added"
    assert note["title"].startswith("Welcome to ")

    r = client.post(f"/notifications/{note['id']}/read", headers=member)
    assert r.status_code == 204
    assert client.get("/notifications/stats", headers=member).json()["unread_count"] == 0
    assert client.post(f"/notifications/{uuid.uuid4()}/read", headers=member).status_code == 404


def test_membership_preferences(client, facility, add_member):
    member = add_member(facility, "editor")
    prefs = client.get("/notifications/preferences", headers=member).json()["preferences"]
    assert set(prefs) == {"facility_membership_added", "facility_membership_removed", "facility_role_changed"}

    r = client.put(
        "/notifications/preferences/facility_role_changed",
        json={"in_app_enabled": False},
        headers=member,
    )
    assert r.status_code == 200
    assert r.json()["in_app_enabled"] is False

    r = client.get("/notifications/preferences/facility_role_changed", headers=member)
    assert r.json()["in_app_enabled"] is False

    r = client.put("/notifications/preferences/weekly_digest", json={"in_app_enabled": False}, headers=member)
    assert r.status_code == 400

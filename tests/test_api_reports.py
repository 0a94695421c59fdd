# tests/test_api_reports.py
from __future__ import annotations

from core.enums import UserRole

REPORT = {
    "report_type": "shift",
    "title": "Friday night shift",
    "location": "gin_bar",
    "date_from": "2024-05-10T18:00:00",
    "date_to": "2024-05-11T04:00:00",
    "data": {"sold": {"gin_tonic": 112}, "notes": "busy"},
}


async def test_reports_and_activity_trail(login_as, make_user):
    admin = await make_user(UserRole.ADMIN)
    manager = await make_user(UserRole.BAR_MANAGER, username="marta")
    barman = await make_user(UserRole.BARMAN)

    client = login_as(barman)
    assert (await client.post("/api/reports/", json=REPORT)).status_code == 403

    client = login_as(manager)
    r = await client.post("/api/reports/", json=REPORT)
    assert r.status_code == 201, r.text
    report = r.json()["data"]["report"]
    assert report["data"] == REPORT["data"]
    assert report["generated_by"] == str(manager.id)

    r = await client.get(f"/api/reports/{report['id']}")
    assert r.json()["data"]["title"] == "Friday night shift"
    r = await client.get("/api/reports/", params={"report_type": "daily"})
    assert r.json()["data"] == []
    assert (await client.get("/api/reports/999")).status_code == 404

    r = await client.post(
        "/api/reports/",
        json={**REPORT, "date_from": "2024-05-11T00:00:00", "date_to": "2024-05-10T00:00:00"},
    )
    assert r.status_code == 400

    # activity log is admin only
    assert (await client.get("/api/activity/")).status_code == 403

    client = login_as(admin)
    r = await client.get("/api/activity/", params={"activity_type": "report_generated"})
    entries = r.json()["data"]
    assert len(entries) == 1
    assert entries[0]["user_id"] == str(manager.id)
    assert entries[0]["entity_type"] == "report"
    assert entries[0]["entity_id"] == report["id"]
    assert entries[0]["description"] == "Generated shift report: Friday night shift"


async def test_stock_changes_are_logged(login_as, make_user, make_product):
    admin = await make_user(UserRole.ADMIN)
    p = await make_product(warehouse=10)
    client = login_as(admin)

    await client.put(f"/api/inventory/warehouse/{p.id}", json={"adjustment": 5})
    await client.post("/api/inventory/transfer", json={"product_id": p.id, "to_location": "gin_bar", "quantity": 3})

    r = await client.get("/api/activity/", params={"activity_type": "stock_change", "user_id": str(admin.id)})
    entries = r.json()["data"]
    assert [e["entity_type"] for e in entries] == ["stock_transfer", "warehouse_inventory"]
    assert entries[1]["metadata"] == {"product_id": p.id, "old_quantity": 10, "new_quantity": 15}

# tests/test_api_deliveries.py
from __future__ import annotations

import asyncio

from core.enums import ProductCategory, UserRole
from services import stock_ledger


async def _create_delivery(client, items, number="FV/2024/001"):
    r = await client.post(
        "/api/deliveries/",
        json={
            "supplier": "Spirits & Wines",
            "location": "duzy_bulldog",
            "delivery_number": number,
            "items": items,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]["delivery"]


async def test_receive_credits_warehouse(login_as, make_user, make_product, session):
    manager = await make_user(UserRole.WAREHOUSE_MANAGER)
    gin = await make_product(name="Gin", warehouse=2)
    tonic = await make_product(name="Tonic", category=ProductCategory.MIXERS)
    client = login_as(manager)

    delivery = await _create_delivery(
        client,
        [
            {"product_id": gin.id, "ordered_quantity": 6, "unit_cost": 45.5},
            {"product_id": tonic.id, "ordered_quantity": 24},
        ],
    )
    assert delivery["status"] == "pending"

    r = await client.get(f"/api/deliveries/{delivery['id']}")
    items = {it["product_name"]: it for it in r.json()["data"]["items"]}
    assert items["Gin"]["ordered_quantity"] == 6
    assert items["Gin"]["received_quantity"] is None

    r = await client.post(
        f"/api/deliveries/{delivery['id']}/receive",
        json={"items": [{"item_id": items["Gin"]["id"], "received_quantity": 4}], "notes": "one box short"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["data"]["delivery"]["status"] == "delivered"
    assert sorted((c["product_id"], c["received"]) for c in body["data"]["credited"]) == sorted(
        [(gin.id, 4), (tonic.id, 24)]
    )

    assert await stock_ledger.get_warehouse_quantity(session, gin.id) == 6
    assert await stock_ledger.get_warehouse_quantity(session, tonic.id) == 24

    # a delivered delivery cannot be received twice
    r = await client.post(f"/api/deliveries/{delivery['id']}/receive", json={})
    assert r.status_code == 400
    assert await stock_ledger.get_warehouse_quantity(session, gin.id) == 6


async def test_receive_rejects_foreign_items(login_as, make_user, make_product, session):
    admin = await make_user(UserRole.ADMIN)
    gin = await make_product(name="Gin")
    client = login_as(admin)
    delivery = await _create_delivery(client, [{"product_id": gin.id, "ordered_quantity": 5}])

    r = await client.post(
        f"/api/deliveries/{delivery['id']}/receive",
        json={"items": [{"item_id": 9999, "received_quantity": 1}]},
    )
    assert r.status_code == 400
    assert await stock_ledger.get_warehouse_quantity(session, gin.id) == 0

    r = await client.get(f"/api/deliveries/{delivery['id']}")
    assert r.json()["data"]["delivery"]["status"] == "pending"


async def test_status_transitions(login_as, make_user, make_product):
    admin = await make_user(UserRole.ADMIN)
    gin = await make_product(name="Gin")
    client = login_as(admin)
    delivery = await _create_delivery(client, [{"product_id": gin.id, "ordered_quantity": 5}])
    url = f"/api/deliveries/{delivery['id']}/status"

    r = await client.patch(url, json={"status": "delivered"})
    assert r.status_code == 400
    assert "/receive" in r.json()["error"]

    r = await client.patch(url, json={"status": "in_transit"})
    assert r.status_code == 200
    assert r.json()["data"]["delivery"]["status"] == "in_transit"

    r = await client.patch(url, json={"status": "pending"})
    assert r.status_code == 400

    r = await client.patch(url, json={"status": "cancelled"})
    assert r.status_code == 200

    r = await client.get("/api/deliveries/", params={"status": "cancelled"})
    assert [d["id"] for d in r.json()["data"]] == [delivery["id"]]
    r = await client.get("/api/deliveries/", params={"status": "pending"})
    assert r.json()["data"] == []


async def test_create_delivery_validation(login_as, make_user, make_product):
    admin = await make_user(UserRole.ADMIN)
    gin = await make_product(name="Gin")
    client = login_as(admin)

    r = await client.post(
        "/api/deliveries/",
        json={"supplier": "X", "location": "gin_bar", "items": [{"product_id": 777, "ordered_quantity": 1}]},
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/deliveries/",
        json={"supplier": "X", "location": "gin_bar", "items": [{"product_id": gin.id, "ordered_quantity": 0}]},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Validation Error"

    await _create_delivery(client, [{"product_id": gin.id, "ordered_quantity": 1}], number="DUP-1")
    r = await client.post(
        "/api/deliveries/",
        json={"supplier": "X", "location": "gin_bar", "delivery_number": "DUP-1", "items": []},
    )
    assert r.status_code == 409


async def test_barman_cannot_create_delivery(login_as, make_user):
    barman = await make_user(UserRole.BARMAN)
    client = login_as(barman)
    r = await client.post("/api/deliveries/", json={"supplier": "X", "location": "gin_bar", "items": []})
    assert r.status_code == 403
    r = await client.get("/api/deliveries/")
    assert r.status_code == 200


async def test_concurrent_receipts_credit_once(login_as, make_user, make_product, session):
    manager = await make_user(UserRole.WAREHOUSE_MANAGER)
    gin = await make_product(name="Gin")
    client = login_as(manager)
    delivery = await _create_delivery(client, [{"product_id": gin.id, "ordered_quantity": 10}])
    url = f"/api/deliveries/{delivery['id']}/receive"

    responses = await asyncio.gather(client.post(url, json={}), client.post(url, json={}))

    assert sorted(r.status_code for r in responses) == [200, 400]
    assert await stock_ledger.get_warehouse_quantity(session, gin.id) == 10

    r = await client.get(f"/api/deliveries/{delivery['id']}")
    assert r.json()["data"]["delivery"]["status"] == "delivered"
    assert r.json()["data"]["items"][0]["received_quantity"] == 10


async def test_cancelled_delivery_cannot_be_received(login_as, make_user, make_product, session):
    admin = await make_user(UserRole.ADMIN)
    gin = await make_product(name="Gin")
    client = login_as(admin)
    delivery = await _create_delivery(client, [{"product_id": gin.id, "ordered_quantity": 3}])

    r = await client.patch(f"/api/deliveries/{delivery['id']}/status", json={"status": "cancelled"})
    assert r.status_code == 200
    r = await client.post(f"/api/deliveries/{delivery['id']}/receive", json={})
    assert r.status_code == 400
    assert await stock_ledger.get_warehouse_quantity(session, gin.id) == 0

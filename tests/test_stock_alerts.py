# tests/test_stock_alerts.py
from __future__ import annotations

from sqlalchemy import select

from core.enums import Location, UserRole
from db.inventory import StockAlert
from services import stock_ledger


async def _alerts(session, product_id):
    res = await session.execute(
        select(
            StockAlert.location,
            StockAlert.current_quantity,
            StockAlert.threshold,
            StockAlert.is_resolved,
            StockAlert.resolved_at,
        )
        .where(StockAlert.product_id == product_id)
        .order_by(StockAlert.id.asc())
    )
    return res.all()


async def test_low_stock_alert_lifecycle(session, make_product):
    p = await make_product(min_stock_level=10, reorder_point=20)

    await stock_ledger.adjust_warehouse_quantity(session, p.id, quantity=100)
    assert await _alerts(session, p.id) == []

    # drops into the low band: one open alert
    await stock_ledger.adjust_warehouse_quantity(session, p.id, adjustment=-95)
    rows = await _alerts(session, p.id)
    assert len(rows) == 1
    assert rows[0].location == "warehouse"
    assert rows[0].current_quantity == 5
    assert rows[0].threshold == 10
    assert not rows[0].is_resolved

    # still low: the same alert is updated, not duplicated
    await stock_ledger.adjust_warehouse_quantity(session, p.id, adjustment=2)
    rows = await _alerts(session, p.id)
    assert len(rows) == 1
    assert rows[0].current_quantity == 7

    unresolved = await stock_ledger.list_unresolved_alerts(session)
    assert [(a["product_id"], a["location"]) for a in unresolved] == [(p.id, "warehouse")]

    # back above the minimum: resolved
    await stock_ledger.adjust_warehouse_quantity(session, p.id, quantity=50)
    rows = await _alerts(session, p.id)
    assert len(rows) == 1
    assert rows[0].is_resolved
    assert rows[0].resolved_at is not None
    assert rows[0].current_quantity == 50
    assert await stock_ledger.list_unresolved_alerts(session) == []


async def test_boundary_quantity_counts_as_low(session, make_product):
    p = await make_product(min_stock_level=10, reorder_point=20)
    await stock_ledger.adjust_warehouse_quantity(session, p.id, quantity=10)
    rows = await _alerts(session, p.id)
    assert len(rows) == 1

    await stock_ledger.adjust_warehouse_quantity(session, p.id, quantity=11)
    rows = await _alerts(session, p.id)
    assert rows[0].is_resolved


async def test_transfer_raises_alerts_per_location(session, make_product, make_user):
    user = await make_user(UserRole.WAREHOUSE_MANAGER)
    p = await make_product(min_stock_level=5, reorder_point=10, warehouse=12)

    await stock_ledger.transfer_stock(
        session, product_id=p.id, to_location=Location.MALY_BULLDOG, quantity=8, actor_id=user.id
    )
    rows = await _alerts(session, p.id)
    # warehouse 4 and maly_bulldog 8: only the warehouse is low
    assert [(r.location, r.current_quantity, r.is_resolved) for r in rows] == [("warehouse", 4, False)]

    await stock_ledger.adjust_warehouse_quantity(session, p.id, adjustment=30)
    await stock_ledger.transfer_stock(
        session, product_id=p.id, to_location=Location.GIN_BAR, quantity=2, actor_id=user.id
    )
    rows = await _alerts(session, p.id)
    assert [(r.location, r.is_resolved) for r in rows] == [("warehouse", True), ("gin_bar", False)]

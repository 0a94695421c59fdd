"""
Stock ledger: warehouse + bar quantities.

All reads and writes go straight to the database; nothing is cached. Every
mutation is a single transaction whose read-check-write step is a
conditional UPDATE (`... WHERE quantity >= :q`), so two concurrent callers
can never both pass a sufficiency check against the same stale quantity.

A missing inventory row and a row holding 0 are the same thing to callers:
`get_warehouse_quantity` / `get_bar_quantity` default absent rows to 0, and a
relative adjustment on a missing warehouse row is applied as a delta from 0.
Rows are created with INSERT ... ON CONFLICT, so two callers initializing the
same row never collide on its unique constraint.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import Location, StockStatus, WAREHOUSE
from core.errors import AppError, InsufficientStock, InvalidQuantity, NotFound, StorageFailure, ValidationError
from db.inventory import BarInventory, StockAlert, StockTransfer, WarehouseInventory
from db.product import Product

logger = logging.getLogger(__name__)

LOW_STOCK_ALERT = "low_stock"


@dataclass
class StockChange:
    product_id: int
    location: str
    old_quantity: int
    new_quantity: int
    inventory_id: Optional[int] = None
    initialized: bool = False


@dataclass
class StockLevel:
    product_id: int
    warehouse_quantity: int
    bar_quantities: Dict[str, int] = field(default_factory=dict)

    @property
    def total_quantity(self) -> int:
        return self.warehouse_quantity + sum(self.bar_quantities.values())

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "warehouse_quantity": self.warehouse_quantity,
            "bar_quantities": dict(self.bar_quantities),
            "total_quantity": self.total_quantity,
        }


def classify_stock_status(quantity: int, min_stock_level: int, reorder_point: int) -> StockStatus:
    """
    low    : quantity <= min_stock_level
    normal : min_stock_level < quantity <= reorder_point
    high   : quantity > reorder_point

    "normal" is the band between the two thresholds; alerting depends on
    these exact boundaries.
    """
    if quantity <= min_stock_level:
        return StockStatus.LOW
    if quantity <= reorder_point:
        return StockStatus.NORMAL
    return StockStatus.HIGH


def _as_location(value: Union[str, Location]) -> Location:
    try:
        return Location(value)
    except ValueError:
        raise ValidationError(
            f"Unknown location '{value}'. Expected one of: {', '.join(loc.value for loc in Location)}"
        )


async def _get_product(db: AsyncSession, product_id: int) -> Product:
    res = await db.execute(select(Product).where(Product.id == product_id))
    product = res.scalar_one_or_none()
    if not product:
        raise NotFound("Product not found")
    return product


async def get_warehouse_quantity(db: AsyncSession, product_id: int) -> int:
    res = await db.execute(
        select(WarehouseInventory.quantity).where(WarehouseInventory.product_id == product_id)
    )
    qty = res.scalar_one_or_none()
    return int(qty) if qty is not None else 0


async def get_bar_quantity(db: AsyncSession, product_id: int, location: Union[str, Location]) -> int:
    loc = _as_location(location)
    res = await db.execute(
        select(BarInventory.quantity).where(
            BarInventory.product_id == product_id,
            BarInventory.location == loc,
        )
    )
    qty = res.scalar_one_or_none()
    return int(qty) if qty is not None else 0


async def aggregate_stock(db: AsyncSession, product_id: int) -> StockLevel:
    await _get_product(db, product_id)
    warehouse_qty = await get_warehouse_quantity(db, product_id)

    res = await db.execute(
        select(BarInventory.location, BarInventory.quantity).where(BarInventory.product_id == product_id)
    )
    by_loc = {Location(loc).value: int(qty or 0) for (loc, qty) in res.all()}
    bars = {loc.value: by_loc.get(loc.value, 0) for loc in Location}
    return StockLevel(product_id=product_id, warehouse_quantity=warehouse_qty, bar_quantities=bars)


async def evaluate_alerts(
    db: AsyncSession,
    product: Product,
    location: str,
    quantity: int,
) -> Optional[StockAlert]:
    """
    Open a low_stock alert when the quantity classifies as low and none is open
    for this product/location; resolve open alerts once it no longer does.
    Runs inside the caller's transaction.
    """
    status = classify_stock_status(quantity, product.min_stock_level, product.reorder_point)
    res = await db.execute(
        select(StockAlert).where(
            StockAlert.product_id == product.id,
            StockAlert.location == location,
            StockAlert.alert_type == LOW_STOCK_ALERT,
            StockAlert.is_resolved == False,  # noqa: E712
        )
    )
    open_alerts = list(res.scalars().all())

    if status == StockStatus.LOW:
        if open_alerts:
            for alert in open_alerts:
                alert.current_quantity = quantity
            return open_alerts[0]
        alert = StockAlert(
            product_id=product.id,
            location=location,
            alert_type=LOW_STOCK_ALERT,
            current_quantity=quantity,
            threshold=product.min_stock_level,
            is_resolved=False,
        )
        db.add(alert)
        logger.info("low stock: product=%s location=%s quantity=%s", product.id, location, quantity)
        return alert

    if open_alerts:
        for alert in open_alerts:
            alert.is_resolved = True
            alert.resolved_at = func.now()
            alert.current_quantity = quantity
        logger.info("stock recovered: product=%s location=%s quantity=%s", product.id, location, quantity)
    return None


def _insert(db: AsyncSession, table):
    # ON CONFLICT lives in the dialect packages
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(table)
    return pg_insert(table)


async def _insert_warehouse_row(db: AsyncSession, product_id: int, quantity: int) -> Optional[int]:
    """Insert the product's warehouse row; None when a concurrent caller created it first."""
    wh_tbl = WarehouseInventory.__table__
    res = await db.execute(
        _insert(db, wh_tbl)
        .values(product_id=product_id, quantity=quantity, last_restocked=func.now())
        .on_conflict_do_nothing(index_elements=[wh_tbl.c.product_id])
        .returning(wh_tbl.c.id)
    )
    return res.scalar_one_or_none()


async def _lock_warehouse_row(db: AsyncSession, product_id: int):
    wh_tbl = WarehouseInventory.__table__
    res = await db.execute(
        select(wh_tbl.c.id, wh_tbl.c.quantity).where(wh_tbl.c.product_id == product_id).with_for_update()
    )
    return res.first()


async def _set_warehouse_absolute(db: AsyncSession, product_id: int, quantity: int) -> StockChange:
    wh_tbl = WarehouseInventory.__table__
    current = await _lock_warehouse_row(db, product_id)
    if current is None:
        inserted_id = await _insert_warehouse_row(db, product_id, quantity)
        if inserted_id is not None:
            return StockChange(product_id, WAREHOUSE, 0, quantity, inventory_id=inserted_id, initialized=True)
        current = await _lock_warehouse_row(db, product_id)

    await db.execute(
        update(wh_tbl)
        .where(wh_tbl.c.id == current.id)
        .values(quantity=quantity, last_restocked=func.now(), updated_at=func.now())
    )
    return StockChange(product_id, WAREHOUSE, int(current.quantity), quantity, inventory_id=current.id)


async def _shift_warehouse_row(db: AsyncSession, product_id: int, delta: int):
    """Conditional `quantity + delta >= 0` update; None when no row or it would go negative."""
    wh_tbl = WarehouseInventory.__table__
    res = await db.execute(
        update(wh_tbl)
        .where(wh_tbl.c.product_id == product_id)
        .where(wh_tbl.c.quantity + delta >= 0)
        .values(quantity=wh_tbl.c.quantity + delta, last_restocked=func.now(), updated_at=func.now())
        .returning(wh_tbl.c.id, wh_tbl.c.quantity)
    )
    return res.first()


async def _apply_warehouse_delta(db: AsyncSession, product_id: int, delta: int) -> StockChange:
    wh_tbl = WarehouseInventory.__table__
    row = await _shift_warehouse_row(db, product_id, delta)
    if row is None:
        existing = await db.execute(select(wh_tbl.c.quantity).where(wh_tbl.c.product_id == product_id))
        current = existing.scalar_one_or_none()
        if current is not None or delta < 0:
            raise InvalidQuantity(
                "Quantity cannot be negative",
                details={"current": int(current or 0), "adjustment": delta},
            )

        inserted_id = await _insert_warehouse_row(db, product_id, delta)
        if inserted_id is not None:
            return StockChange(product_id, WAREHOUSE, 0, delta, inventory_id=inserted_id, initialized=True)
        # created concurrently; a non-negative delta always applies now
        row = await _shift_warehouse_row(db, product_id, delta)

    new_qty = int(row.quantity)
    return StockChange(product_id, WAREHOUSE, new_qty - delta, new_qty, inventory_id=row.id)


async def stage_warehouse_adjustment(
    db: AsyncSession,
    product_id: int,
    *,
    quantity: Optional[int] = None,
    adjustment: Optional[int] = None,
) -> StockChange:
    """Apply an adjustment inside the caller's transaction (no commit)."""
    if (quantity is None) == (adjustment is None):
        raise InvalidQuantity("Exactly one of quantity or adjustment is required")
    if quantity is not None and int(quantity) < 0:
        raise InvalidQuantity("Quantity cannot be negative")

    product = await _get_product(db, product_id)
    if quantity is not None:
        change = await _set_warehouse_absolute(db, product_id, int(quantity))
    else:
        change = await _apply_warehouse_delta(db, product_id, int(adjustment))
    await evaluate_alerts(db, product, WAREHOUSE, change.new_quantity)
    return change


async def adjust_warehouse_quantity(
    db: AsyncSession,
    product_id: int,
    *,
    quantity: Optional[int] = None,
    adjustment: Optional[int] = None,
) -> StockChange:
    """
    Set (quantity=) or shift (adjustment=) the warehouse quantity of a product.

    Exactly one of the two must be given. The result can never be negative;
    a rejected call leaves the stored quantity untouched.
    """
    try:
        change = await stage_warehouse_adjustment(db, product_id, quantity=quantity, adjustment=adjustment)
        await db.commit()
    except AppError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("warehouse adjustment failed for product %s", product_id)
        raise StorageFailure(f"Failed to update warehouse inventory: {e}")

    return change


async def _credit_bar(db: AsyncSession, product_id: int, location: Location, quantity: int) -> StockChange:
    bar_tbl = BarInventory.__table__
    upsert = (
        _insert(db, bar_tbl)
        .values(product_id=product_id, location=location.value, quantity=quantity, last_restocked=func.now())
        .on_conflict_do_update(
            index_elements=[bar_tbl.c.product_id, bar_tbl.c.location],
            set_={
                "quantity": bar_tbl.c.quantity + quantity,
                "last_restocked": func.now(),
                "updated_at": func.now(),
            },
        )
        .returning(bar_tbl.c.id, bar_tbl.c.quantity)
    )
    row = (await db.execute(upsert)).one()
    new_qty = int(row.quantity)
    return StockChange(product_id, location.value, new_qty - quantity, new_qty, inventory_id=row.id)


async def transfer_stock(
    db: AsyncSession,
    *,
    product_id: int,
    to_location: Union[str, Location],
    quantity: int,
    actor_id: UUID,
    notes: Optional[str] = None,
) -> StockTransfer:
    """
    Move `quantity` units of a product from the warehouse to a bar location.

    - Decrements the warehouse (only if it holds at least `quantity`).
    - Increments, or creates, the bar row at `to_location`.
    - Appends an immutable StockTransfer record.

    All three happen in one transaction; on any failure nothing changes.
    Warehouse + bars total for the product is the same before and after.
    """
    qty = int(quantity)
    if qty <= 0:
        raise InvalidQuantity("quantity must be > 0")
    location = _as_location(to_location)

    wh_tbl = WarehouseInventory.__table__
    try:
        product = await _get_product(db, product_id)

        # Conditional decrement: the sufficiency check and the write are one statement
        res = await db.execute(
            update(wh_tbl)
            .where(wh_tbl.c.product_id == product_id)
            .where(wh_tbl.c.quantity >= qty)
            .values(quantity=wh_tbl.c.quantity - qty, updated_at=func.now())
            .returning(wh_tbl.c.quantity)
        )
        row = res.first()
        if row is None:
            available = await get_warehouse_quantity(db, product_id)
            raise InsufficientStock(available=available, requested=qty)
        warehouse_after = int(row.quantity)

        bar_change = await _credit_bar(db, product_id, location, qty)

        transfer = StockTransfer(
            product_id=product_id,
            from_location=WAREHOUSE,
            to_location=location,
            quantity=qty,
            transferred_by=actor_id,
            notes=notes,
        )
        db.add(transfer)

        await evaluate_alerts(db, product, WAREHOUSE, warehouse_after)
        await evaluate_alerts(db, product, location.value, bar_change.new_quantity)

        await db.commit()
        await db.refresh(transfer)
    except AppError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("transfer failed: product=%s to=%s qty=%s", product_id, location.value, qty)
        raise StorageFailure(f"Failed to transfer stock: {e}")

    logger.info(
        "transfer #%s: product=%s warehouse -> %s qty=%s (warehouse now %s)",
        transfer.id, product_id, location.value, qty, warehouse_after,
    )
    return transfer


async def list_warehouse_stock(db: AsyncSession) -> List[dict]:
    stmt = (
        select(WarehouseInventory, Product)
        .join(Product, WarehouseInventory.product_id == Product.id)
        .where(Product.is_active == True)  # noqa: E712
        .order_by(func.lower(Product.name).asc())
    )
    res = await db.execute(stmt)
    return [_stock_row(st, p) for (st, p) in res.all()]


async def list_bar_stock(db: AsyncSession, location: Union[str, Location]) -> List[dict]:
    loc = _as_location(location)
    stmt = (
        select(BarInventory, Product)
        .join(Product, BarInventory.product_id == Product.id)
        .where(BarInventory.location == loc, Product.is_active == True)  # noqa: E712
        .order_by(func.lower(Product.name).asc())
    )
    res = await db.execute(stmt)
    return [_stock_row(st, p, location=loc.value) for (st, p) in res.all()]


async def list_all_stock(db: AsyncSession) -> List[dict]:
    """Warehouse quantity, every bar quantity and the total, per active product."""
    products = (
        await db.execute(
            select(Product).where(Product.is_active == True).order_by(func.lower(Product.name).asc())  # noqa: E712
        )
    ).scalars().all()
    wh = {
        pid: int(q or 0)
        for (pid, q) in (await db.execute(select(WarehouseInventory.product_id, WarehouseInventory.quantity))).all()
    }
    bars: Dict[int, Dict[str, int]] = {}
    for (pid, loc, q) in (
        await db.execute(select(BarInventory.product_id, BarInventory.location, BarInventory.quantity))
    ).all():
        bars.setdefault(pid, {})[Location(loc).value] = int(q or 0)

    out = []
    for p in products:
        level = StockLevel(
            product_id=p.id,
            warehouse_quantity=wh.get(p.id, 0),
            bar_quantities={loc.value: bars.get(p.id, {}).get(loc.value, 0) for loc in Location},
        )
        row = level.to_dict()
        row.update({"product_name": p.name, "category": p.category, "unit": p.unit})
        out.append(row)
    return out


async def list_transfers(
    db: AsyncSession,
    *,
    product_id: Optional[int] = None,
    to_location: Optional[Union[str, Location]] = None,
    limit: int = 200,
) -> List[dict]:
    stmt = select(StockTransfer, Product.name).join(Product, StockTransfer.product_id == Product.id)
    if product_id:
        stmt = stmt.where(StockTransfer.product_id == product_id)
    if to_location:
        stmt = stmt.where(StockTransfer.to_location == _as_location(to_location))
    stmt = stmt.order_by(StockTransfer.created_at.desc(), StockTransfer.id.desc()).limit(limit)
    res = await db.execute(stmt)
    out = []
    for (t, product_name) in res.all():
        row = t.to_schema
        row["product_name"] = product_name
        out.append(row)
    return out


async def list_unresolved_alerts(db: AsyncSession) -> List[dict]:
    stmt = (
        select(StockAlert, Product.name)
        .join(Product, StockAlert.product_id == Product.id)
        .where(StockAlert.is_resolved == False)  # noqa: E712
        .order_by(StockAlert.created_at.asc(), StockAlert.id.asc())
    )
    res = await db.execute(stmt)
    return [
        {
            "id": a.id,
            "product_id": a.product_id,
            "product_name": product_name,
            "location": a.location,
            "alert_type": a.alert_type,
            "current_quantity": a.current_quantity,
            "threshold": a.threshold,
            "is_resolved": bool(a.is_resolved),
            "created_at": a.created_at,
        }
        for (a, product_name) in res.all()
    ]


def _stock_row(st, p: Product, location: Optional[str] = None) -> dict:
    qty = int(st.quantity or 0)
    row = {
        "id": st.id,
        "product_id": p.id,
        "product_name": p.name,
        "category": p.category,
        "unit": p.unit,
        "quantity": qty,
        "min_stock_level": p.min_stock_level,
        "reorder_point": p.reorder_point,
        "last_restocked": st.last_restocked,
        "status": classify_stock_status(qty, p.min_stock_level, p.reorder_point),
    }
    if location:
        row["location"] = location
    return row

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.enums import ActivityType, DeliveryStatus
from core.errors import AppError, Conflict, NotFound, StorageFailure, ValidationError
from core.permissions import STOCK_ADMINS, require_roles
from core.responses import ok
from db.database import get_async_session
from db.delivery import Delivery, DeliveryItem
from db.product import Product
from db.users import User
from schemas.deliveries import DeliveryCreate, DeliveryReceive, DeliveryStatusUpdate
from services import stock_ledger
from services.activity import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()

# Manual status changes; `delivered` is only reachable through /receive
ALLOWED_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.CANCELLED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.CANCELLED},
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.CANCELLED: set(),
}
RECEIVABLE = (DeliveryStatus.PENDING, DeliveryStatus.IN_TRANSIT)


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def _get_delivery(db: AsyncSession, delivery_id: int) -> Delivery:
    res = await db.execute(select(Delivery).where(Delivery.id == delivery_id))
    d = res.scalar_one_or_none()
    if not d:
        raise NotFound("Delivery not found")
    return d


async def _load_items(db: AsyncSession, delivery_id: int) -> list:
    res = await db.execute(
        select(DeliveryItem, Product.name)
        .join(Product, DeliveryItem.product_id == Product.id)
        .where(DeliveryItem.delivery_id == delivery_id)
        .order_by(DeliveryItem.id.asc())
    )
    return [
        {
            "id": it.id,
            "product_id": it.product_id,
            "product_name": product_name,
            "ordered_quantity": it.ordered_quantity,
            "received_quantity": it.received_quantity,
            "unit_cost": float(it.unit_cost) if it.unit_cost is not None else None,
            "notes": it.notes,
        }
        for (it, product_name) in res.all()
    ]


@router.get("/")
async def list_deliveries(
    status_filter: Optional[DeliveryStatus] = Query(None, alias="status"),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(Delivery)
    if status_filter:
        stmt = stmt.where(Delivery.status == status_filter)
    res = await db.execute(stmt.order_by(Delivery.created_at.asc(), Delivery.id.asc()))
    return ok([d.to_schema for d in res.scalars().all()])


@router.get("/{delivery_id}")
async def get_delivery(
    delivery_id: int,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    d = await _get_delivery(db, delivery_id)
    return ok({"delivery": d.to_schema, "items": await _load_items(db, delivery_id)})


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_delivery(
    payload: DeliveryCreate,
    request: Request,
    user: User = Depends(require_roles(*STOCK_ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    actor_id = user.id
    product_ids = {it.product_id for it in payload.items}
    if product_ids:
        res = await db.execute(select(func.count()).select_from(Product).where(Product.id.in_(product_ids)))
        if res.scalar_one() != len(product_ids):
            raise ValidationError("One or more delivery items reference an unknown product")

    d = Delivery(
        **payload.model_dump(exclude={"items"}),
        status=DeliveryStatus.PENDING,
        created_by=actor_id,
    )
    d.items = [DeliveryItem(**it.model_dump()) for it in payload.items]
    db.add(d)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A delivery with this number already exists")
    await db.refresh(d)
    out = d.to_schema

    await log_activity(
        db,
        actor_id=actor_id,
        activity_type=ActivityType.CREATE,
        entity_type="delivery",
        entity_id=out["id"],
        description=f"Created delivery from {out['supplier']}",
        ip_address=_client_ip(request),
    )
    return ok({"delivery": out}, "Delivery created successfully")


@router.patch("/{delivery_id}/status")
async def update_delivery_status(
    delivery_id: int,
    payload: DeliveryStatusUpdate,
    request: Request,
    user: User = Depends(require_roles(*STOCK_ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    actor_id = user.id
    d = await _get_delivery(db, delivery_id)
    current = DeliveryStatus(d.status)
    if payload.status not in ALLOWED_TRANSITIONS[current]:
        hint = " (use /receive to mark a delivery as delivered)" if payload.status == DeliveryStatus.DELIVERED else ""
        raise ValidationError(f"Cannot change delivery status from {current.value} to {payload.status.value}{hint}")

    dl_tbl = Delivery.__table__
    res = await db.execute(
        update(dl_tbl)
        .where(dl_tbl.c.id == delivery_id, dl_tbl.c.status == current)
        .values(status=payload.status, updated_at=func.now())
        .returning(dl_tbl.c.id)
    )
    if res.first() is None:
        await db.rollback()
        raise Conflict("Delivery status changed concurrently, reload and retry")
    await db.commit()
    await db.refresh(d)
    out = d.to_schema

    await log_activity(
        db,
        actor_id=actor_id,
        activity_type=ActivityType.DELIVERY,
        entity_type="delivery",
        entity_id=delivery_id,
        description=f"Delivery status {current.value} → {payload.status.value}",
        metadata={"from": current.value, "to": payload.status.value},
        ip_address=_client_ip(request),
    )
    return ok({"delivery": out}, "Delivery status updated")


@router.post("/{delivery_id}/receive")
async def receive_delivery(
    delivery_id: int,
    payload: DeliveryReceive,
    request: Request,
    user: User = Depends(require_roles(*STOCK_ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Mark a delivery as delivered and credit the received quantities to the
    warehouse. The status change, the item receipts and the stock credits are
    one transaction.
    """
    actor_id = user.id
    d = await _get_delivery(db, delivery_id)
    current = DeliveryStatus(d.status)
    if current not in RECEIVABLE:
        raise ValidationError(f"Cannot receive a delivery that is {current.value}")

    res = await db.execute(select(DeliveryItem).where(DeliveryItem.delivery_id == delivery_id))
    items = {it.id: it for it in res.scalars().all()}
    receipts = {r.item_id: r.received_quantity for r in payload.items}
    unknown = set(receipts) - set(items)
    if unknown:
        raise ValidationError(f"Items {sorted(unknown)} do not belong to delivery {delivery_id}")

    dl_tbl = Delivery.__table__
    values = {
        "status": DeliveryStatus.DELIVERED,
        "received_date": func.now(),
        "received_by": actor_id,
        "updated_at": func.now(),
    }
    if payload.notes:
        values["notes"] = payload.notes

    credited = []
    try:
        # Claim the delivery first: only one receipt can move it out of a receivable status
        claimed = await db.execute(
            update(dl_tbl)
            .where(dl_tbl.c.id == delivery_id, dl_tbl.c.status.in_(RECEIVABLE))
            .values(**values)
            .returning(dl_tbl.c.id)
        )
        if claimed.first() is None:
            raise ValidationError("Delivery has already been received or cancelled")

        for item_id, it in items.items():
            received = receipts.get(item_id, it.ordered_quantity)
            it.received_quantity = received
            if received > 0:
                change = await stock_ledger.stage_warehouse_adjustment(db, it.product_id, adjustment=received)
                credited.append({"product_id": it.product_id, "received": received, "warehouse_quantity": change.new_quantity})

        await db.commit()
    except AppError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("receiving delivery %s failed", delivery_id)
        raise StorageFailure(f"Failed to receive delivery: {e}")

    await db.refresh(d)
    out = d.to_schema
    await log_activity(
        db,
        actor_id=actor_id,
        activity_type=ActivityType.DELIVERY,
        entity_type="delivery",
        entity_id=delivery_id,
        description=f"Received delivery from {out['supplier']}",
        metadata={"items": credited},
        ip_address=_client_ip(request),
    )
    return ok({"delivery": out, "credited": credited}, "Delivery received")

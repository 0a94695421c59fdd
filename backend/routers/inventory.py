from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.enums import ActivityType, Location
from core.permissions import STOCK_ADMINS, TRANSFER_ROLES, require_location, require_roles
from core.responses import ok
from db.database import get_async_session
from db.users import User
from schemas.inventory import StockTransferCreate, WarehouseStockUpdate
from services import stock_ledger
from services.activity import log_activity

router = APIRouter()


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.get("/warehouse")
async def get_warehouse_inventory(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return ok(await stock_ledger.list_warehouse_stock(db))


@router.get("/bar/mine")
async def get_my_bar_inventory(
    user: User = Depends(require_location),
    db: AsyncSession = Depends(get_async_session),
):
    """Stock at the caller's home bar."""
    return ok(await stock_ledger.list_bar_stock(db, user.location))


@router.get("/bar/{location}")
async def get_bar_inventory(
    location: Location,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return ok(await stock_ledger.list_bar_stock(db, location))


@router.get("/all")
async def get_all_inventory(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return ok(await stock_ledger.list_all_stock(db))


@router.get("/product/{product_id}")
async def get_product_stock(
    product_id: int,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    level = await stock_ledger.aggregate_stock(db, product_id)
    return ok(level.to_dict())


@router.put("/warehouse/{product_id}")
async def update_warehouse_inventory(
    product_id: int,
    payload: WarehouseStockUpdate,
    request: Request,
    user: User = Depends(require_roles(*STOCK_ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    actor_id = user.id
    change = await stock_ledger.adjust_warehouse_quantity(
        db,
        product_id,
        quantity=payload.quantity,
        adjustment=payload.adjustment,
    )
    inventory = {
        "id": change.inventory_id,
        "product_id": change.product_id,
        "quantity": change.new_quantity,
    }

    if change.initialized:
        description = f"Initialized warehouse stock: {change.new_quantity}"
    else:
        description = f"Updated warehouse stock: {change.old_quantity} → {change.new_quantity}"
    await log_activity(
        db,
        actor_id=actor_id,
        activity_type=ActivityType.STOCK_CHANGE,
        entity_type="warehouse_inventory",
        entity_id=change.inventory_id,
        description=description,
        metadata={
            "product_id": product_id,
            "old_quantity": change.old_quantity,
            "new_quantity": change.new_quantity,
        },
        ip_address=_client_ip(request),
    )
    message = "Warehouse inventory initialized" if change.initialized else "Warehouse inventory updated successfully"
    return ok({"inventory": inventory}, message)


@router.post("/transfer", status_code=status.HTTP_201_CREATED)
async def create_transfer(
    payload: StockTransferCreate,
    request: Request,
    user: User = Depends(require_roles(*TRANSFER_ROLES)),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Transfer stock from the warehouse to a bar location.

    Fails with 400 (nothing changed) when the warehouse holds less than `quantity`.
    """
    actor_id = user.id
    transfer = await stock_ledger.transfer_stock(
        db,
        product_id=payload.product_id,
        to_location=payload.to_location,
        quantity=payload.quantity,
        actor_id=actor_id,
        notes=payload.notes,
    )
    out = transfer.to_schema

    await log_activity(
        db,
        actor_id=actor_id,
        activity_type=ActivityType.STOCK_CHANGE,
        entity_type="stock_transfer",
        entity_id=out["id"],
        description=f"Transferred {payload.quantity} units to {payload.to_location.value}",
        metadata={
            "product_id": payload.product_id,
            "to_location": payload.to_location.value,
            "quantity": payload.quantity,
        },
        ip_address=_client_ip(request),
    )
    return ok({"transfer": out}, "Stock transferred successfully")


@router.get("/transfers")
async def list_transfers(
    product_id: Optional[int] = None,
    to_location: Optional[Location] = None,
    limit: int = Query(200, ge=1, le=1000),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return ok(await stock_ledger.list_transfers(db, product_id=product_id, to_location=to_location, limit=limit))


@router.get("/alerts")
async def list_alerts(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return ok(await stock_ledger.list_unresolved_alerts(db))

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.enums import ActivityType, ProductCategory
from core.errors import Conflict, NotFound
from core.permissions import ADMINS, STOCK_ADMINS, require_roles
from core.responses import ok, paginate
from db.database import get_async_session
from db.inventory import WarehouseInventory
from db.product import Product
from db.users import User
from schemas.products import ProductCreate, ProductUpdate
from services import stock_ledger
from services.activity import log_activity

router = APIRouter()


async def _get_product(db: AsyncSession, product_id: int) -> Product:
    res = await db.execute(select(Product).where(Product.id == product_id))
    p = res.scalar_one_or_none()
    if not p:
        raise NotFound("Product not found")
    return p


@router.get("/")
async def list_products(
    search: Optional[str] = None,
    category: Optional[ProductCategory] = None,
    supplier: Optional[str] = None,
    is_active: Optional[bool] = None,
    low_stock: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    conditions = []
    if search:
        like = f"%{search.strip().lower()}%"
        conditions.append(
            or_(
                func.lower(Product.name).like(like),
                func.lower(Product.sku).like(like),
                func.lower(Product.barcode).like(like),
            )
        )
    if category:
        conditions.append(Product.category == category)
    if supplier:
        conditions.append(func.lower(Product.supplier).like(f"%{supplier.strip().lower()}%"))
    if is_active is not None:
        conditions.append(Product.is_active == is_active)

    stmt = select(Product, WarehouseInventory.quantity).outerjoin(
        WarehouseInventory, WarehouseInventory.product_id == Product.id
    )
    if conditions:
        stmt = stmt.where(and_(*conditions))
    if low_stock:
        stmt = stmt.where(func.coalesce(WarehouseInventory.quantity, 0) <= Product.min_stock_level)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    res = await db.execute(
        stmt.order_by(func.lower(Product.name).asc(), Product.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    out = []
    for (p, wh_qty) in res.all():
        row = p.to_schema
        qty = int(wh_qty or 0)
        row["warehouse_quantity"] = qty
        row["status"] = stock_ledger.classify_stock_status(qty, p.min_stock_level, p.reorder_point)
        out.append(row)
    return ok(out, pagination=paginate(total, page, page_size))


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    p = await _get_product(db, product_id)
    level = await stock_ledger.aggregate_stock(db, product_id)
    return ok(
        {
            "product": p.to_schema,
            "inventory": {
                "warehouse": level.warehouse_quantity,
                "bars": level.bar_quantities,
                "total": level.total_quantity,
                "status": stock_ledger.classify_stock_status(
                    level.warehouse_quantity, p.min_stock_level, p.reorder_point
                ),
            },
        }
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    request: Request,
    user: User = Depends(require_roles(*STOCK_ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    p = Product(**payload.model_dump())
    db.add(p)
    try:
        await db.flush()
        # Every product starts with an empty warehouse row
        db.add(WarehouseInventory(product_id=p.id, quantity=0))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A product with this SKU already exists")
    await db.refresh(p)
    out = p.to_schema

    await log_activity(
        db,
        actor_id=user.id,
        activity_type=ActivityType.CREATE,
        entity_type="product",
        entity_id=p.id,
        description=f"Created product: {p.name}",
        ip_address=request.client.host if request.client else None,
    )
    return ok({"product": out}, "Product created successfully")


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    request: Request,
    user: User = Depends(require_roles(*STOCK_ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    p = await _get_product(db, product_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(p, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A product with this SKU already exists")
    await db.refresh(p)
    out = p.to_schema

    await log_activity(
        db,
        actor_id=user.id,
        activity_type=ActivityType.UPDATE,
        entity_type="product",
        entity_id=p.id,
        description=f"Updated product: {p.name}",
        ip_address=request.client.host if request.client else None,
    )
    return ok({"product": out}, "Product updated successfully")


@router.delete("/{product_id}")
async def deactivate_product(
    product_id: int,
    request: Request,
    user: User = Depends(require_roles(*ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    p = await _get_product(db, product_id)
    name = p.name
    p.is_active = False
    await db.commit()

    await log_activity(
        db,
        actor_id=user.id,
        activity_type=ActivityType.DELETE,
        entity_type="product",
        entity_id=product_id,
        description=f"Deactivated product: {name}",
        ip_address=request.client.host if request.client else None,
    )
    return ok(message="Product deactivated successfully")

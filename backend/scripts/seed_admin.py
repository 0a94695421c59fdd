"""
Seed the default admin account and, optionally, a few demo products with
warehouse stock.

Run locally:
  python backend/scripts/seed_admin.py [--demo]

It uses the same env vars as the backend (DATABASE_URL, ADMIN_EMAIL,
ADMIN_PASSWORD; dotenv supported by core.config).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi_users.password import PasswordHelper
from sqlalchemy import select

from core.config import settings
from core.enums import ProductCategory, UserRole
from core.logging_config import setup_logging
from db.database import async_session_maker, create_db_and_tables
from db.inventory import WarehouseInventory
from db.product import Product
from db.users import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedProduct:
    name: str
    category: ProductCategory
    sku: str
    quantity: int
    min_stock_level: int = 5
    reorder_point: int = 10
    unit: str = "bottles"
    supplier: Optional[str] = None


SEED_PRODUCTS: list[SeedProduct] = [
    SeedProduct(name="Beefeater Gin 0.7L", category=ProductCategory.SPIRITS, sku="GIN-BEEF-07", quantity=24, supplier="Spirits & Wines"),
    SeedProduct(name="Hendrick's Gin 0.7L", category=ProductCategory.SPIRITS, sku="GIN-HEND-07", quantity=12, supplier="Spirits & Wines"),
    SeedProduct(name="Tonic Water 0.2L", category=ProductCategory.MIXERS, sku="MIX-TONIC-02", quantity=120, min_stock_level=48, reorder_point=96, supplier="Mixers"),
    SeedProduct(name="Pilsner 0.5L", category=ProductCategory.BEER, sku="BEER-PILS-05", quantity=200, min_stock_level=50, reorder_point=100),
    SeedProduct(name="Limes", category=ProductCategory.GARNISHES, sku="GAR-LIME", quantity=3, unit="kg", supplier="Fresh Produce"),
]


async def seed_admin() -> bool:
    async with async_session_maker() as db:
        res = await db.execute(select(User).where(User.role == UserRole.ADMIN))
        if res.scalars().first():
            logger.info("admin already exists, skipping")
            return False

        db.add(
            User(
                email=settings.admin_email,
                username="admin",
                hashed_password=PasswordHelper().hash(settings.admin_password),
                first_name="Admin",
                last_name="User",
                role=UserRole.ADMIN,
                is_active=True,
                is_superuser=True,
                is_verified=True,
            )
        )
        await db.commit()
        logger.info("created admin %s", settings.admin_email)
        return True


async def seed_products() -> int:
    created = 0
    async with async_session_maker() as db:
        existing = set((await db.execute(select(Product.sku))).scalars().all())
        for p in SEED_PRODUCTS:
            if p.sku in existing:
                continue
            product = Product(
                name=p.name,
                category=p.category,
                sku=p.sku,
                unit=p.unit,
                min_stock_level=p.min_stock_level,
                reorder_point=p.reorder_point,
                supplier=p.supplier,
            )
            db.add(product)
            await db.flush()
            db.add(WarehouseInventory(product_id=product.id, quantity=p.quantity))
            created += 1
        await db.commit()
    logger.info("created %s demo products", created)
    return created


async def main(demo: bool = False) -> None:
    setup_logging()
    await create_db_and_tables()
    await seed_admin()
    if demo:
        await seed_products()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the default admin account")
    parser.add_argument("--demo", action="store_true", help="also create demo products with warehouse stock")
    args = parser.parse_args()
    asyncio.run(main(demo=args.demo))

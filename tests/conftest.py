# tests/conftest.py
from __future__ import annotations

import os
import uuid
from typing import AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from fastapi_users.password import PasswordHelper
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Must be set before the app (and its module-level engine) is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"

from core.auth import current_active_user  # noqa: E402
from core.enums import Location, ProductCategory, UserRole  # noqa: E402
from db.database import Base, get_async_session, load_models  # noqa: E402
from db.inventory import WarehouseInventory  # noqa: E402
from db.product import Product  # noqa: E402
from db.users import User  # noqa: E402
from main import app  # noqa: E402

DEFAULT_PASSWORD = "password123"
_password_helper = PasswordHelper()


# One file-backed SQLite database per test; NullPool so every session gets its own connection
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'barstock.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    load_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(async_engine: AsyncEngine):
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as sess:
        yield sess


@pytest.fixture
def make_user(session):
    """Insert a user and return it detached, fully loaded."""

    async def _make(
        role: UserRole = UserRole.BARMAN,
        location: Optional[Location] = None,
        username: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
    ) -> User:
        username = username or f"{role.value}-{uuid.uuid4().hex[:8]}"
        user = User(
            email=f"{username}@bulldogbar.pl",
            username=username,
            hashed_password=_password_helper.hash(password),
            role=role,
            location=location,
            is_active=is_active,
            is_superuser=role == UserRole.ADMIN,
            is_verified=True,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        session.expunge(user)
        return user

    return _make


@pytest.fixture
def make_product(session):
    async def _make(
        name: str = "Beefeater Gin 0.7L",
        min_stock_level: int = 5,
        reorder_point: int = 10,
        warehouse: Optional[int] = None,
        category: ProductCategory = ProductCategory.SPIRITS,
        sku: Optional[str] = None,
    ) -> Product:
        product = Product(
            name=name,
            category=category,
            sku=sku,
            unit="bottles",
            min_stock_level=min_stock_level,
            reorder_point=reorder_point,
            is_active=True,
        )
        session.add(product)
        await session.flush()
        if warehouse is not None:
            session.add(WarehouseInventory(product_id=product.id, quantity=warehouse))
        await session.commit()
        await session.refresh(product)
        # detached, so a ledger rollback on this session cannot expire it
        session.expunge(product)
        return product

    return _make


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as sess:
            yield sess

    app.dependency_overrides[get_async_session] = _get_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Make every following request run as `user` (None = anonymous)."""

    def _login(user: Optional[User]) -> httpx.AsyncClient:
        if user is None:
            app.dependency_overrides.pop(current_active_user, None)
        else:
            app.dependency_overrides[current_active_user] = lambda: user
        return client

    return _login

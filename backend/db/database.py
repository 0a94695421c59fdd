from collections.abc import AsyncGenerator
import enum
from typing import Type

from sqlalchemy import Enum as SAEnum
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings


class Base(DeclarativeBase):
    pass


def enum_type(enum_cls: Type[enum.Enum], name: str) -> SAEnum:
    """Portable enum column storing the lowercase values ("gin_bar"), not member names."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=50,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


engine = create_async_engine(settings.database_url, echo=settings.database_echo)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


def load_models() -> None:
    # Register every table on Base.metadata before create_all
    import db.users  # noqa: F401
    import db.product  # noqa: F401
    import db.inventory  # noqa: F401
    import db.delivery  # noqa: F401
    import db.report  # noqa: F401
    import db.activity  # noqa: F401


async def create_db_and_tables():
    load_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session

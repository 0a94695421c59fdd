from fastapi import Depends
from fastapi_users.db import SQLAlchemyBaseUserTableUUID, SQLAlchemyUserDatabase
from sqlalchemy import Column, DateTime, String
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from core.enums import Location, UserRole
from .database import Base, enum_type, get_async_session


class User(SQLAlchemyBaseUserTableUUID, Base):
    __tablename__ = "users"

    username = Column(String(50), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(enum_type(UserRole, "user_role"), nullable=False, default=UserRole.BARMAN)
    # Home bar for bar staff; warehouse staff and admins usually have none
    location = Column(enum_type(Location, "location"), nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


async def get_user_db(session: AsyncSession = Depends(get_async_session)):
    yield SQLAlchemyUserDatabase(session, User)

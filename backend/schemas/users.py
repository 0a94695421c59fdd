# Pydantic schemas for user-related requests/responses
# fastapi-users base schemas carry email/password/is_active/is_superuser/is_verified;
# the bar staff fields (username, role, home location) are added here.

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi_users import schemas
from pydantic import BaseModel, field_validator

from core.enums import Location, UserRole


def _clean_username(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not (3 <= len(v) <= 50):
        raise ValueError("username must be 3-50 characters")
    return v


class UserRead(schemas.BaseUser[UUID]):
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole
    location: Optional[Location] = None
    last_login: Optional[datetime] = None


class UserCreate(schemas.BaseUserCreate):
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.BARMAN
    location: Optional[Location] = None

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        return _clean_username(v)


class UserUpdate(schemas.BaseUserUpdate):
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None
    location: Optional[Location] = None

    @field_validator("username")
    @classmethod
    def _username(cls, v: Optional[str]) -> Optional[str]:
        return _clean_username(v)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _min_length(cls, v: str) -> str:
        if len(v or "") < 8:
            raise ValueError("New password must be at least 8 characters long")
        return v

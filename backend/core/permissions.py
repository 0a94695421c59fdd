"""
Role/location capability checks.

`check_capability` is a pure function of (user, capability); the FastAPI
dependencies below only resolve the current user and translate a denied
verdict into Unauthorized/Forbidden. Ledger services trust the verdict and
never look at roles themselves.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional, Union
from uuid import UUID

from fastapi import Depends

from core.auth import current_active_user
from core.enums import UserRole
from core.errors import Forbidden, Unauthorized
from db.users import User


@dataclass(frozen=True)
class RolesIn:
    roles: FrozenSet[UserRole]


@dataclass(frozen=True)
class HasLocation:
    pass


@dataclass(frozen=True)
class AdminOrOwner:
    target_id: UUID


Capability = Union[RolesIn, HasLocation, AdminOrOwner]


def check_capability(user: Optional[User], capability: Capability) -> bool:
    if user is None or not user.is_active:
        return False
    if isinstance(capability, RolesIn):
        return UserRole(user.role) in capability.roles
    if isinstance(capability, HasLocation):
        return user.location is not None
    if isinstance(capability, AdminOrOwner):
        return UserRole(user.role) == UserRole.ADMIN or user.id == capability.target_id
    raise TypeError(f"unknown capability: {capability!r}")


def _enforce(user: Optional[User], capability: Capability, message: Optional[str] = None) -> User:
    if user is None:
        raise Unauthorized()
    if not check_capability(user, capability):
        raise Forbidden(message)
    return user


def require_roles(*roles: UserRole):
    capability = RolesIn(frozenset(roles))

    async def _dep(user: User = Depends(current_active_user)) -> User:
        return _enforce(user, capability)

    return _dep


async def require_location(user: User = Depends(current_active_user)) -> User:
    return _enforce(user, HasLocation(), "Forbidden - No location assigned")


def require_admin_or_owner(user: User, target_id: UUID) -> User:
    return _enforce(user, AdminOrOwner(target_id))


# Role sets used by the routers
STOCK_ADMINS = (UserRole.ADMIN, UserRole.WAREHOUSE_MANAGER)
TRANSFER_ROLES = (UserRole.ADMIN, UserRole.WAREHOUSE_MANAGER, UserRole.BAR_MANAGER)
MANAGERS = (UserRole.ADMIN, UserRole.BAR_MANAGER, UserRole.WAREHOUSE_MANAGER)
ADMINS = (UserRole.ADMIN,)

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi_users import exceptions as fu_exceptions
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import UserManager, current_active_user, get_user_manager
from core.enums import ActivityType
from core.errors import Conflict, NotFound, ValidationError
from core.permissions import ADMINS, MANAGERS, require_admin_or_owner, require_roles
from core.responses import ok
from db.database import get_async_session
from db.users import User
from schemas.users import UserRead, UserUpdate
from services.activity import log_activity

router = APIRouter()


def _out(user: User) -> dict:
    return UserRead.model_validate(user, from_attributes=True).model_dump(mode="json")


async def _get_user(db: AsyncSession, user_id: UUID) -> User:
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise NotFound("User not found")
    return user


@router.get("/")
async def list_users(
    user: User = Depends(require_roles(*MANAGERS)),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(User).order_by(func.lower(User.username).asc()))
    return ok([_out(u) for u in res.scalars().all()])


@router.get("/{user_id}")
async def get_user(
    user_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    require_admin_or_owner(user, user_id)
    return ok(_out(await _get_user(db, user_id)))


@router.put("/{user_id}")
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    request: Request,
    admin: User = Depends(require_roles(*ADMINS)),
    user_manager: UserManager = Depends(get_user_manager),
    db: AsyncSession = Depends(get_async_session),
):
    target = await _get_user(db, user_id)
    try:
        updated = await user_manager.update(payload, target, safe=False, request=request)
    except fu_exceptions.UserAlreadyExists:
        raise Conflict("A user with this email already exists")
    except fu_exceptions.InvalidPasswordException as e:
        raise ValidationError(str(e.reason))
    out = _out(updated)

    await log_activity(
        db,
        actor_id=admin.id,
        activity_type=ActivityType.UPDATE,
        entity_type="user",
        description=f"Updated user: {updated.username}",
        metadata={"user_id": str(updated.id)},
        ip_address=request.client.host if request.client else None,
    )
    return ok({"user": out}, "User updated successfully")


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: UUID,
    request: Request,
    admin: User = Depends(require_roles(*ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    target = await _get_user(db, user_id)
    target.is_active = False
    await db.commit()

    await log_activity(
        db,
        actor_id=admin.id,
        activity_type=ActivityType.DELETE,
        entity_type="user",
        description=f"Deactivated user: {target.username}",
        metadata={"user_id": str(target.id)},
        ip_address=request.client.host if request.client else None,
    )
    return ok(message="User deactivated successfully")

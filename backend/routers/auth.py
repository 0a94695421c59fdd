from fastapi import APIRouter, Depends, Request, status
from fastapi_users import exceptions as fu_exceptions
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import UserManager, current_active_user, get_user_manager
from core.enums import ActivityType, UserRole
from core.errors import Conflict, Unauthorized, ValidationError
from core.permissions import ADMINS, require_roles
from core.responses import ok
from db.database import get_async_session
from db.users import User
from schemas.users import ChangePasswordRequest, UserCreate, UserRead
from services.activity import log_activity

router = APIRouter()


def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.get("/me")
async def me(user: User = Depends(current_active_user)):
    return ok({"user": UserRead.model_validate(user, from_attributes=True).model_dump(mode="json")})


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(
    payload: UserCreate,
    request: Request,
    admin: User = Depends(require_roles(*ADMINS)),
    user_manager: UserManager = Depends(get_user_manager),
    db: AsyncSession = Depends(get_async_session),
):
    """Staff accounts are created by an admin; there is no self sign-up."""
    try:
        new_user = await user_manager.create(payload, safe=False, request=request)
    except fu_exceptions.UserAlreadyExists:
        raise Conflict("A user with this email already exists")
    except fu_exceptions.InvalidPasswordException as e:
        raise ValidationError(str(e.reason))
    out = UserRead.model_validate(new_user, from_attributes=True).model_dump(mode="json")

    await log_activity(
        db,
        actor_id=admin.id,
        activity_type=ActivityType.CREATE,
        entity_type="user",
        description=f"Created new user: {new_user.username}",
        metadata={"user_id": str(new_user.id), "role": UserRole(new_user.role).value},
        ip_address=_client_ip(request),
    )
    return ok({"user": out}, "User created successfully")


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    user: User = Depends(current_active_user),
    user_manager: UserManager = Depends(get_user_manager),
    db: AsyncSession = Depends(get_async_session),
):
    verified, _ = user_manager.password_helper.verify_and_update(payload.current_password, user.hashed_password)
    if not verified:
        raise Unauthorized("Current password is incorrect")

    try:
        await user_manager.validate_password(payload.new_password, user)
    except fu_exceptions.InvalidPasswordException as e:
        raise ValidationError(str(e.reason))

    await user_manager.user_db.update(
        user, {"hashed_password": user_manager.password_helper.hash(payload.new_password)}
    )
    await log_activity(
        db,
        actor_id=user.id,
        activity_type=ActivityType.UPDATE,
        entity_type="user",
        description="Changed password",
        ip_address=_client_ip(request),
    )
    return ok(message="Password changed successfully")


@router.post("/logout")
async def logout(
    request: Request,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """JWTs are stateless: the client discards its token, this records the logout."""
    await log_activity(
        db,
        actor_id=user.id,
        activity_type=ActivityType.LOGOUT,
        description=f"User {user.username} logged out",
        ip_address=_client_ip(request),
    )
    return ok(message="Logged out successfully")

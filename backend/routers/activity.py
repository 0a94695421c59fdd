from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import ActivityType
from core.permissions import ADMINS, require_roles
from core.responses import ok
from db.database import get_async_session
from db.users import User
from services.activity import list_activity

router = APIRouter()


@router.get("/")
async def get_activity(
    user_id: Optional[UUID] = None,
    activity_type: Optional[ActivityType] = None,
    limit: int = Query(100, ge=1, le=1000),
    user: User = Depends(require_roles(*ADMINS)),
    db: AsyncSession = Depends(get_async_session),
):
    entries = await list_activity(db, user_id=user_id, activity_type=activity_type, limit=limit)
    return ok([e.to_schema for e in entries])

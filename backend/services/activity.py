"""
Append-only activity log.

Entries are written after the primary change has been committed, in their
own transaction on the same session. A failure here is logged and
swallowed so it can never undo or block the change it describes.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import ActivityType
from db.activity import ActivityLog

logger = logging.getLogger(__name__)


async def log_activity(
    db: AsyncSession,
    *,
    actor_id: UUID,
    activity_type: ActivityType,
    description: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> bool:
    try:
        db.add(
            ActivityLog(
                user_id=actor_id,
                activity_type=activity_type,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
                meta=metadata,
                ip_address=ip_address,
            )
        )
        await db.commit()
        return True
    except Exception:
        logger.exception("failed to log activity %s for user %s", activity_type, actor_id)
        try:
            await db.rollback()
        except Exception:
            logger.exception("rollback after activity log failure also failed")
        return False


async def list_activity(
    db: AsyncSession,
    *,
    user_id: Optional[UUID] = None,
    activity_type: Optional[ActivityType] = None,
    limit: int = 100,
) -> List[ActivityLog]:
    stmt = select(ActivityLog)
    if user_id:
        stmt = stmt.where(ActivityLog.user_id == user_id)
    if activity_type:
        stmt = stmt.where(ActivityLog.activity_type == activity_type)
    stmt = stmt.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())

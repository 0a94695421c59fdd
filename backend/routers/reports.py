from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.enums import ActivityType, ReportType
from core.errors import NotFound
from core.permissions import MANAGERS, require_roles
from core.responses import ok
from db.database import get_async_session
from db.report import Report
from db.users import User
from schemas.reports import ReportCreate
from services.activity import log_activity

router = APIRouter()


@router.get("/")
async def list_reports(
    report_type: Optional[ReportType] = None,
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(Report)
    if report_type:
        stmt = stmt.where(Report.report_type == report_type)
    res = await db.execute(stmt.order_by(Report.created_at.desc(), Report.id.desc()).limit(limit))
    return ok([r.to_schema for r in res.scalars().all()])


@router.get("/{report_id}")
async def get_report(
    report_id: int,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(Report).where(Report.id == report_id))
    report = res.scalar_one_or_none()
    if not report:
        raise NotFound("Report not found")
    return ok(report.to_schema)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: ReportCreate,
    request: Request,
    user: User = Depends(require_roles(*MANAGERS)),
    db: AsyncSession = Depends(get_async_session),
):
    actor_id = user.id
    report = Report(**payload.model_dump(), generated_by=actor_id)
    db.add(report)
    await db.commit()
    await db.refresh(report)
    out = report.to_schema

    await log_activity(
        db,
        actor_id=actor_id,
        activity_type=ActivityType.REPORT_GENERATED,
        entity_type="report",
        entity_id=out["id"],
        description=f"Generated {payload.report_type.value} report: {payload.title}",
        ip_address=request.client.host if request.client else None,
    )
    return ok({"report": out}, "Report created successfully")

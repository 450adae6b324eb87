"""Report and analytics routers."""


import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission, require_role
from hrms.auth.models import User
from hrms.common.constants import ReportStatus, ReportType, UserRole
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.reports.analytics import AnalyticsService
from hrms.reports.models import Report
from hrms.reports.schemas import ReportRequest, ReportResponse
from hrms.reports.service import ReportService

router = APIRouter(prefix="", tags=["reports"])
analytics_router = APIRouter(prefix="", tags=["analytics"])

_reports = require_permission("REPORT_GENERATE")
_analyst = require_role(UserRole.manager)


def _page(result) -> dict:
    return {
        "data": [ReportResponse.model_validate(r) for r in result.data],
        "meta": result.meta.model_dump(),
    }


def _many(rows) -> dict:
    return {"data": [ReportResponse.model_validate(r) for r in rows]}


# ═════════════════════════════════════════════════════════════════════
# Reports
# ═════════════════════════════════════════════════════════════════════


@router.post("", status_code=201)
async def generate_report(
    body: ReportRequest,
    actor: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    report = await ReportService.generate(db, body, actor=actor)
    message = (
        "Report generated" if report.status == ReportStatus.completed
        else "Report generation failed"
    )
    return {"data": ReportResponse.model_validate(report), "message": message}


@router.get("")
async def list_reports(
    report_type: Optional[ReportType] = Query(None),
    status: Optional[ReportStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    criteria = []
    if report_type is not None:
        criteria.append(Report.report_type == report_type)
    if status is not None:
        criteria.append(Report.status == status)
    return _page(await ReportService.list_reports(db, pagination, *criteria))


@router.get("/types")
async def list_report_types(_: User = Depends(_reports)):
    return {"data": [t.value for t in ReportType]}


@router.get("/statuses")
async def list_report_statuses(_: User = Depends(_reports)):
    return {"data": [s.value for s in ReportStatus]}


@router.get("/me")
async def my_reports(
    pagination: PaginationParams = Depends(),
    actor: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    return _page(await ReportService.list_reports(db, pagination, Report.created_by == actor.username))


@router.get("/type/{report_type}")
async def reports_by_type(
    report_type: ReportType,
    _: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    return _many(await ReportService.find(db, Report.report_type == report_type))


@router.get("/status/{status}")
async def reports_by_status(
    status: ReportStatus,
    _: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    return _many(await ReportService.find(db, Report.status == status))


@router.get("/date-range")
async def reports_in_range(
    start: datetime = Query(...),
    end: datetime = Query(...),
    _: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    return _many(await ReportService.in_range(db, start, end))


@router.get("/created-by/{username}")
async def reports_created_by(
    username: str,
    _: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    return _many(await ReportService.find(db, Report.created_by == username))


@router.get("/{report_id}")
async def get_report(
    report_id: uuid.UUID,
    _: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    return {"data": ReportResponse.model_validate(await ReportService.get(db, report_id))}


@router.get("/{report_id}/download")
async def download_report(
    report_id: uuid.UUID,
    _: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    filename, body = await ReportService.export(db, report_id)
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{report_id}", status_code=204)
async def delete_report(
    report_id: uuid.UUID,
    actor: User = Depends(_reports),
    db: AsyncSession = Depends(get_db),
):
    await ReportService.delete(db, report_id, actor=actor)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Analytics
# ═════════════════════════════════════════════════════════════════════


@analytics_router.get("/dashboard")
async def dashboard(_: User = Depends(_analyst), db: AsyncSession = Depends(get_db)):
    return {"data": await AnalyticsService.dashboard(db)}


@analytics_router.get("/kpis")
async def kpis(_: User = Depends(_analyst), db: AsyncSession = Depends(get_db)):
    return {"data": await AnalyticsService.kpis(db)}


@analytics_router.get("/employees")
async def employee_analytics(_: User = Depends(_analyst), db: AsyncSession = Depends(get_db)):
    return {"data": await AnalyticsService.employee_analytics(db)}


@analytics_router.get("/departments")
async def department_analytics(_: User = Depends(_analyst), db: AsyncSession = Depends(get_db)):
    return {"data": await AnalyticsService.department_analytics(db)}


@analytics_router.get("/leave")
async def leave_analytics(
    year: Optional[int] = Query(None, ge=1900, le=2100),
    _: User = Depends(_analyst),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await AnalyticsService.leave_analytics(db, year)}


@analytics_router.get("/performance")
async def performance_analytics(
    year: Optional[int] = Query(None, ge=1900, le=2100),
    _: User = Depends(_analyst),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await AnalyticsService.performance_analytics(db, year)}


@analytics_router.get("/payroll")
async def payroll_analytics(
    year: Optional[int] = Query(None, ge=1900, le=2100),
    _: User = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await AnalyticsService.payroll_analytics(db, year)}


@analytics_router.get("/positions")
async def position_analytics(_: User = Depends(_analyst), db: AsyncSession = Depends(get_db)):
    return {"data": await AnalyticsService.position_analytics(db)}


@analytics_router.get("/salary")
async def salary_analytics(
    _: User = Depends(require_role(UserRole.hr)),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await AnalyticsService.salary_analytics(db)}


@analytics_router.get("/attendance")
async def attendance_analytics(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    _: User = Depends(_analyst),
    db: AsyncSession = Depends(get_db),
):
    end = end_date or date.today()
    start = start_date or end - timedelta(days=30)
    return {"data": await AnalyticsService.attendance_analytics(db, start, end)}


@analytics_router.get("/trends")
async def hiring_trends(
    months: int = Query(12, ge=1, le=60),
    _: User = Depends(_analyst),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await AnalyticsService.hiring_trends(db, months)}

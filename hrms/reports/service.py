"""Report service — synchronous report generation and stored report queries."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Optional, Sequence

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction, ReportStatus, ReportType
from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.models import utcnow
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.reports.analytics import AnalyticsService
from hrms.reports.models import Report
from hrms.reports.schemas import ReportRequest

logger = logging.getLogger(__name__)

REPORT_SORT_FIELDS = ("created_at", "generated_at", "title", "report_type", "status")


def _actor_name(actor: Any) -> str:
    return getattr(actor, "username", None) or "system"


def _year(parameters: dict[str, Any]) -> Optional[int]:
    value = parameters.get("year")
    return int(value) if value is not None else None


async def _build_data(db: AsyncSession, body: ReportRequest) -> dict[str, Any]:
    """Compute the payload for one report type."""
    params = body.parameters
    kind = body.report_type

    if kind == ReportType.employees:
        return await AnalyticsService.employee_analytics(db)
    if kind == ReportType.departments:
        return await AnalyticsService.department_analytics(db)
    if kind == ReportType.attendance:
        end = body.end_date or date.today()
        start = body.start_date or end - timedelta(days=30)
        return await AnalyticsService.attendance_analytics(db, start, end)
    if kind == ReportType.performance:
        return await AnalyticsService.performance_analytics(db, _year(params))
    if kind == ReportType.payroll:
        return await AnalyticsService.payroll_analytics(db, _year(params))
    if kind == ReportType.turnover:
        months = int(params.get("months", 12))
        if months < 1:
            raise ValueError("months must be at least 1")
        trends = await AnalyticsService.hiring_trends(db, months)
        kpis = await AnalyticsService.kpis(db)
        return {
            "turnover_rate": kpis.turnover_rate,
            "retention_rate": kpis.retention_rate,
            "trends": [t.model_dump() for t in trends],
        }
    if kind == ReportType.demographics:
        employees = await AnalyticsService.employee_analytics(db)
        return {
            key: employees[key]
            for key in ("gender_distribution", "age_distribution", "tenure_distribution",
                        "employment_type_distribution")
        }
    # custom reports echo their parameters; a year, if given, must be numeric
    return {"parameters": params, "year": _year(params)}


class ReportService:

    @staticmethod
    async def get(db: AsyncSession, report_id: uuid.UUID) -> Report:
        report = await db.get(Report, report_id)
        if report is None:
            raise NotFoundException("Report", str(report_id))
        return report

    @staticmethod
    async def list_reports(
        db: AsyncSession,
        pagination: PaginationParams,
        *criteria,
    ) -> PaginatedResponse:
        query = select(Report).where(*criteria)
        query = apply_sorting(query, Report, pagination.sort or "-created_at", allowed=REPORT_SORT_FIELDS)
        return await paginate(db, query, pagination)

    @staticmethod
    async def find(db: AsyncSession, *criteria) -> Sequence[Report]:
        result = await db.execute(select(Report).where(*criteria).order_by(Report.created_at.desc()))
        return result.scalars().all()

    @staticmethod
    async def in_range(db: AsyncSession, start: datetime, end: datetime) -> Sequence[Report]:
        if start > end:
            raise BadRequestException("start must be on or before end")
        return await ReportService.find(db, Report.created_at >= start, Report.created_at <= end)

    @staticmethod
    async def generate(
        db: AsyncSession,
        body: ReportRequest,
        *,
        actor: Any = None,
    ) -> Report:
        parameters = dict(body.parameters)
        if body.start_date:
            parameters.setdefault("start_date", body.start_date.isoformat())
        if body.end_date:
            parameters.setdefault("end_date", body.end_date.isoformat())

        report = Report(
            report_type=body.report_type,
            title=body.title,
            description=body.description,
            status=ReportStatus.in_progress,
            parameters=parameters,
            created_by=_actor_name(actor),
            scheduled=body.scheduled,
            cron_expression=body.cron_expression,
        )
        db.add(report)
        await db.flush()

        try:
            async with db.begin_nested():
                data = await _build_data(db, body)
        except Exception as exc:
            logger.exception("Report %s (%s) failed", report.id, body.report_type.value)
            report.status = ReportStatus.failed
            report.error_message = str(exc) or exc.__class__.__name__
        else:
            report.data = jsonable_encoder(data)
            report.status = ReportStatus.completed
            report.generated_at = utcnow()
            logger.info("Generated report %s (%s)", report.id, body.report_type.value)

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="report",
            entity_id=str(report.id),
            new_values={"report_type": body.report_type.value, "status": report.status.value},
            description=f"Generated {body.report_type.value} report '{body.title}'",
            success=report.status == ReportStatus.completed,
            error_message=report.error_message,
            **actor_fields(actor),
        )
        await db.flush()
        await db.refresh(report)
        return report

    @staticmethod
    async def delete(db: AsyncSession, report_id: uuid.UUID, *, actor: Any = None) -> None:
        report = await ReportService.get(db, report_id)
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="report",
            entity_id=str(report.id),
            old_values={"title": report.title, "report_type": report.report_type.value},
            description=f"Deleted report '{report.title}'",
            **actor_fields(actor),
        )
        await db.delete(report)
        await db.flush()

    @staticmethod
    async def export(db: AsyncSession, report_id: uuid.UUID) -> tuple[str, bytes]:
        """Return ``(filename, body)`` for a completed report as JSON."""
        report = await ReportService.get(db, report_id)
        if report.status != ReportStatus.completed:
            raise BadRequestException("Only completed reports can be downloaded")
        payload = {
            "id": str(report.id),
            "title": report.title,
            "report_type": report.report_type.value,
            "generated_at": report.generated_at.isoformat() if report.generated_at else None,
            "parameters": report.parameters,
            "data": report.data,
        }
        filename = f"report-{report.report_type.value}-{report.id.hex[:8]}.json"
        return filename, json.dumps(payload, indent=2).encode("utf-8")

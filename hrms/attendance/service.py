"""Attendance service — clock in/out, breaks, corrections and summaries."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.attendance.models import AttendanceBreak, AttendanceCorrection, TimeAttendance
from hrms.attendance.schemas import (
    AttendanceSummary,
    BreakStartRequest,
    ClockInRequest,
    ClockOutRequest,
    CorrectionRequest,
)
from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AttendanceStatus, CorrectionStatus
from hrms.common.exceptions import BadRequestException, ForbiddenException, NotFoundException
from hrms.common.models import ensure_aware
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.config import settings
from hrms.employees.models import Employee

logger = logging.getLogger(__name__)

STANDARD_WORK_HOURS = Decimal("8.00")
TWO_PLACES = Decimal("0.01")


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def _scheduled(work_date: date, hhmm: str) -> datetime:
    return datetime.combine(work_date, _parse_hhmm(hhmm), tzinfo=timezone.utc)


def _minutes_between(start: datetime, end: datetime) -> int:
    return int((ensure_aware(end) - ensure_aware(start)).total_seconds() // 60)


def split_hours(worked_minutes: int) -> tuple[Decimal, Decimal, Decimal]:
    """``(total, regular, overtime)`` hours for *worked_minutes* (2 dp)."""
    total = (Decimal(max(worked_minutes, 0)) / Decimal(60)).quantize(TWO_PLACES, ROUND_HALF_UP)
    if total <= STANDARD_WORK_HOURS:
        return total, total, Decimal("0.00")
    return total, STANDARD_WORK_HOURS, total - STANDARD_WORK_HOURS


def _apply_late(record: TimeAttendance) -> None:
    record.late_minutes = 0
    if record.clock_in_time is None or record.scheduled_start_time is None:
        return
    if ensure_aware(record.clock_in_time) > ensure_aware(record.scheduled_start_time):
        record.late_minutes = _minutes_between(record.scheduled_start_time, record.clock_in_time)
    if record.remote_work:
        record.status = AttendanceStatus.remote_work
    elif record.late_minutes > 0:
        record.status = AttendanceStatus.late
    else:
        record.status = AttendanceStatus.present


def _apply_early_departure(record: TimeAttendance) -> None:
    record.early_departure_minutes = 0
    if record.clock_out_time is None or record.scheduled_end_time is None:
        return
    if ensure_aware(record.clock_out_time) < ensure_aware(record.scheduled_end_time):
        record.early_departure_minutes = _minutes_between(
            record.clock_out_time, record.scheduled_end_time,
        )
        if record.early_departure_minutes > 0 and record.status == AttendanceStatus.present:
            record.status = AttendanceStatus.left_early


class AttendanceService:

    # ── helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def get_record(db: AsyncSession, attendance_id: uuid.UUID) -> TimeAttendance:
        record = await db.get(TimeAttendance, attendance_id)
        if record is None:
            raise NotFoundException("TimeAttendance", str(attendance_id))
        return record

    @staticmethod
    async def _record_for(db: AsyncSession, employee_id: uuid.UUID, work_date: date) -> Optional[TimeAttendance]:
        result = await db.execute(
            select(TimeAttendance).where(
                TimeAttendance.employee_id == employee_id,
                TimeAttendance.work_date == work_date,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def open_record(db: AsyncSession, employee_id: uuid.UUID) -> Optional[TimeAttendance]:
        """Most recent record clocked in but not yet out."""
        result = await db.execute(
            select(TimeAttendance)
            .where(
                TimeAttendance.employee_id == employee_id,
                TimeAttendance.clock_in_time.is_not(None),
                TimeAttendance.clock_out_time.is_(None),
            )
            .order_by(TimeAttendance.work_date.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def active_break(db: AsyncSession, employee_id: uuid.UUID) -> Optional[AttendanceBreak]:
        result = await db.execute(
            select(AttendanceBreak)
            .join(TimeAttendance, TimeAttendance.id == AttendanceBreak.attendance_id)
            .where(
                TimeAttendance.employee_id == employee_id,
                AttendanceBreak.end_time.is_(None),
            )
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def _recalculate(db: AsyncSession, record: TimeAttendance) -> None:
        """Refresh break minutes and, once clocked out, the hour split."""
        break_total = (await db.execute(
            select(func.coalesce(func.sum(AttendanceBreak.duration_minutes), 0)).where(
                AttendanceBreak.attendance_id == record.id,
            )
        )).scalar_one()
        record.break_minutes = int(break_total)

        if record.clocked_out:
            worked = _minutes_between(record.clock_in_time, record.clock_out_time) - record.break_minutes
            record.total_hours, record.regular_hours, record.overtime_hours = split_hours(worked)

    # ── clock in / out ──────────────────────────────────────────────

    @staticmethod
    async def clock_in(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: ClockInRequest,
        *,
        ip_address: Optional[str] = None,
        actor: Any = None,
    ) -> TimeAttendance:
        if await db.get(Employee, employee_id) is None:
            raise NotFoundException("Employee", str(employee_id))

        clock_in_time = ensure_aware(data.clock_in_time) or datetime.now(timezone.utc)
        work_date = clock_in_time.date()

        record = await AttendanceService._record_for(db, employee_id, work_date)
        if record is not None and record.clock_in_time is not None:
            raise BadRequestException("Employee is already clocked in for today")
        if record is None:
            record = TimeAttendance(employee_id=employee_id, work_date=work_date)
            db.add(record)

        record.clock_in_time = clock_in_time
        record.scheduled_start_time = _scheduled(work_date, settings.ATTENDANCE_WORK_START)
        record.scheduled_end_time = _scheduled(work_date, settings.ATTENDANCE_WORK_END)
        record.work_location = data.work_location
        record.remote_work = data.remote_work
        record.notes = data.notes
        record.ip_address = ip_address
        record.status = AttendanceStatus.present
        _apply_late(record)
        await db.flush()
        logger.info("Clock-in for employee %s recorded as %s", employee_id, record.status.value)

        await create_audit_entry(
            db,
            action="CLOCK_IN",
            entity_type="time_attendance",
            entity_id=record.id,
            new_values={
                "clock_in_time": clock_in_time,
                "status": record.status.value,
                "late_minutes": record.late_minutes,
            },
            ip_address=ip_address,
            **actor_fields(actor),
        )
        return record

    @staticmethod
    async def clock_out(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: ClockOutRequest,
        *,
        actor: Any = None,
    ) -> TimeAttendance:
        record = await AttendanceService.open_record(db, employee_id)
        if record is None:
            raise BadRequestException("No clock-in record found for today")

        clock_out_time = ensure_aware(data.clock_out_time) or datetime.now(timezone.utc)
        if clock_out_time < ensure_aware(record.clock_in_time):
            raise BadRequestException("Clock-out time cannot be before clock-in time")

        open_break = await AttendanceService.active_break(db, employee_id)
        if open_break is not None:
            await AttendanceService._close_break(db, open_break, end_time=clock_out_time)
        record.clock_out_time = clock_out_time

        if data.notes and data.notes.strip():
            entry = f"Clock Out: {data.notes.strip()}"
            record.notes = f"{record.notes} | {entry}" if record.notes else entry

        await AttendanceService._recalculate(db, record)
        _apply_early_departure(record)
        await db.flush()

        await create_audit_entry(
            db,
            action="CLOCK_OUT",
            entity_type="time_attendance",
            entity_id=record.id,
            new_values={
                "clock_out_time": clock_out_time,
                "total_hours": record.total_hours,
                "overtime_hours": record.overtime_hours,
            },
            **actor_fields(actor),
        )
        return record

    # ── breaks ──────────────────────────────────────────────────────

    @staticmethod
    async def start_break(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: BreakStartRequest,
    ) -> AttendanceBreak:
        record = await AttendanceService.open_record(db, employee_id)
        if record is None:
            raise BadRequestException("Employee is not currently clocked in")
        if await AttendanceService.active_break(db, employee_id) is not None:
            raise BadRequestException("Employee is already on a break")

        brk = AttendanceBreak(
            attendance_id=record.id,
            break_type=data.break_type,
            start_time=ensure_aware(data.start_time) or datetime.now(timezone.utc),
            notes=data.notes,
        )
        db.add(brk)
        await db.flush()
        return brk

    @staticmethod
    async def _close_break(
        db: AsyncSession,
        brk: AttendanceBreak,
        *,
        end_time: Optional[datetime] = None,
    ) -> None:
        # a break never runs past the clock-out that closes it
        end_time = end_time or datetime.now(timezone.utc)
        start_time = ensure_aware(brk.start_time)
        if end_time < start_time:
            end_time = start_time
        brk.end_time = end_time
        brk.duration_minutes = _minutes_between(start_time, end_time)
        await db.flush()

        record = await AttendanceService.get_record(db, brk.attendance_id)
        await AttendanceService._recalculate(db, record)

    @staticmethod
    async def end_break(
        db: AsyncSession,
        employee_id: uuid.UUID,
        break_id: uuid.UUID,
    ) -> AttendanceBreak:
        brk = await db.get(AttendanceBreak, break_id)
        if brk is None:
            raise NotFoundException("AttendanceBreak", str(break_id))
        record = await AttendanceService.get_record(db, brk.attendance_id)
        if record.employee_id != employee_id:
            raise BadRequestException("Break does not belong to the specified employee")
        if brk.end_time is not None:
            raise BadRequestException("Break is already ended")

        await AttendanceService._close_break(db, brk)
        return brk

    @staticmethod
    async def breaks_for(db: AsyncSession, attendance_id: uuid.UUID) -> Sequence[AttendanceBreak]:
        await AttendanceService.get_record(db, attendance_id)
        result = await db.execute(
            select(AttendanceBreak)
            .where(AttendanceBreak.attendance_id == attendance_id)
            .order_by(AttendanceBreak.start_time)
        )
        return result.scalars().all()

    # ── corrections ─────────────────────────────────────────────────

    @staticmethod
    async def get_correction(db: AsyncSession, correction_id: uuid.UUID) -> AttendanceCorrection:
        correction = await db.get(AttendanceCorrection, correction_id)
        if correction is None:
            raise NotFoundException("AttendanceCorrection", str(correction_id))
        return correction

    @staticmethod
    async def submit_correction(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: CorrectionRequest,
        *,
        actor: Any = None,
    ) -> AttendanceCorrection:
        record = await AttendanceService.get_record(db, data.attendance_id)
        if record.employee_id != employee_id:
            raise BadRequestException("Attendance record does not belong to the specified employee")

        correction = AttendanceCorrection(
            attendance_id=record.id,
            employee_id=employee_id,
            requested_by=getattr(actor, "id", None),
            correction_type=data.correction_type,
            original_clock_in=record.clock_in_time,
            original_clock_out=record.clock_out_time,
            requested_clock_in=ensure_aware(data.requested_clock_in),
            requested_clock_out=ensure_aware(data.requested_clock_out),
            reason=data.reason,
            status=CorrectionStatus.pending,
        )
        db.add(correction)
        await db.flush()

        await create_audit_entry(
            db,
            action="SUBMIT_CORRECTION",
            entity_type="attendance_correction",
            entity_id=correction.id,
            new_values=data.model_dump(),
            **actor_fields(actor),
        )
        return correction

    @staticmethod
    def _require_pending(correction: AttendanceCorrection) -> None:
        if correction.status != CorrectionStatus.pending:
            raise BadRequestException("Correction is not in pending status")

    @staticmethod
    async def approve_correction(
        db: AsyncSession,
        correction_id: uuid.UUID,
        notes: Optional[str] = None,
        *,
        actor: Any = None,
    ) -> AttendanceCorrection:
        correction = await AttendanceService.get_correction(db, correction_id)
        AttendanceService._require_pending(correction)

        record = await AttendanceService.get_record(db, correction.attendance_id)
        if correction.requested_clock_in is not None:
            record.clock_in_time = correction.requested_clock_in
        if correction.requested_clock_out is not None:
            record.clock_out_time = correction.requested_clock_out
        if record.clocked_out and ensure_aware(record.clock_out_time) < ensure_aware(record.clock_in_time):
            raise BadRequestException("Corrected clock-out time cannot be before clock-in time")

        await AttendanceService._recalculate(db, record)
        _apply_late(record)
        _apply_early_departure(record)

        correction.status = CorrectionStatus.approved
        correction.reviewed_by = getattr(actor, "id", None)
        correction.reviewed_at = datetime.now(timezone.utc)
        correction.review_notes = notes
        await db.flush()

        await create_audit_entry(
            db,
            action="APPROVE_CORRECTION",
            entity_type="attendance_correction",
            entity_id=correction.id,
            old_values={
                "clock_in_time": correction.original_clock_in,
                "clock_out_time": correction.original_clock_out,
            },
            new_values={
                "clock_in_time": record.clock_in_time,
                "clock_out_time": record.clock_out_time,
                "total_hours": record.total_hours,
            },
            **actor_fields(actor),
        )
        return correction

    @staticmethod
    async def reject_correction(
        db: AsyncSession,
        correction_id: uuid.UUID,
        reason: str,
        *,
        actor: Any = None,
    ) -> AttendanceCorrection:
        correction = await AttendanceService.get_correction(db, correction_id)
        AttendanceService._require_pending(correction)

        correction.status = CorrectionStatus.rejected
        correction.reviewed_by = getattr(actor, "id", None)
        correction.reviewed_at = datetime.now(timezone.utc)
        correction.reason = f"{correction.reason} | Rejection: {reason}"
        await db.flush()

        await create_audit_entry(
            db,
            action="REJECT_CORRECTION",
            entity_type="attendance_correction",
            entity_id=correction.id,
            new_values={"reason": reason},
            **actor_fields(actor),
        )
        return correction

    @staticmethod
    async def cancel_correction(
        db: AsyncSession,
        correction_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> AttendanceCorrection:
        correction = await AttendanceService.get_correction(db, correction_id)
        if correction.employee_id != employee_id:
            raise ForbiddenException("You can only cancel your own corrections.")
        AttendanceService._require_pending(correction)
        correction.status = CorrectionStatus.cancelled
        await db.flush()
        return correction

    @staticmethod
    async def list_corrections(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[CorrectionStatus] = None,
    ) -> PaginatedResponse:
        query = select(AttendanceCorrection).order_by(AttendanceCorrection.created_at.desc())
        if employee_id is not None:
            query = query.where(AttendanceCorrection.employee_id == employee_id)
        if status is not None:
            query = query.where(AttendanceCorrection.status == status)
        return await paginate(db, query, pagination)

    # ── queries ─────────────────────────────────────────────────────

    @staticmethod
    async def today(db: AsyncSession, employee_id: uuid.UUID) -> Optional[TimeAttendance]:
        return await AttendanceService._record_for(
            db, employee_id, datetime.now(timezone.utc).date(),
        )

    @staticmethod
    async def history(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        query = (
            select(TimeAttendance)
            .where(TimeAttendance.employee_id == employee_id)
            .order_by(TimeAttendance.work_date.desc())
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def in_range(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> Sequence[TimeAttendance]:
        if start > end:
            raise BadRequestException("start_date must be on or before end_date")
        result = await db.execute(
            select(TimeAttendance)
            .where(
                TimeAttendance.employee_id == employee_id,
                TimeAttendance.work_date.between(start, end),
            )
            .order_by(TimeAttendance.work_date)
        )
        return result.scalars().all()

    @staticmethod
    async def summary(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> AttendanceSummary:
        records = await AttendanceService.in_range(db, employee_id, start, end)

        present = [
            r for r in records
            if r.status in (
                AttendanceStatus.present,
                AttendanceStatus.remote_work,
                AttendanceStatus.late,
                AttendanceStatus.left_early,
            )
        ]
        total = sum((r.total_hours or Decimal("0") for r in records), Decimal("0"))
        overtime = sum((r.overtime_hours or Decimal("0") for r in records), Decimal("0"))
        average = (
            (total / len(present)).quantize(TWO_PLACES, ROUND_HALF_UP)
            if present else Decimal("0.00")
        )

        return AttendanceSummary(
            employee_id=employee_id,
            period_start=start,
            period_end=end,
            total_days=len(records),
            days_present=len(present),
            days_absent=sum(1 for r in records if r.status == AttendanceStatus.absent),
            days_late=sum(1 for r in records if r.late_minutes > 0),
            remote_days=sum(1 for r in records if r.remote_work),
            total_hours=total,
            regular_hours=total - overtime,
            overtime_hours=overtime,
            average_hours_per_day=average,
        )

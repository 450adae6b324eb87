"""Attendance router — clock in/out, breaks, corrections, history and summaries."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.attendance.schemas import (
    AttendanceResponse,
    BreakResponse,
    BreakStartRequest,
    ClockInRequest,
    ClockOutRequest,
    CorrectionRejection,
    CorrectionRequest,
    CorrectionResponse,
    CorrectionReview,
)
from hrms.attendance.service import AttendanceService
from hrms.auth.dependencies import (
    get_current_user,
    has_role,
    linked_employee_id,
    require_permission,
)
from hrms.auth.models import User
from hrms.common.constants import CorrectionStatus, UserRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.pagination import PaginationParams
from hrms.database import get_db

router = APIRouter(prefix="", tags=["attendance"])

_clock = require_permission("ATTENDANCE_CLOCK")
_correct = require_permission("ATTENDANCE_CORRECT")


def _check_access(request: Request, user: User, employee_id: uuid.UUID) -> None:
    if user.employee_id == employee_id:
        return
    if not has_role(request, UserRole.manager):
        raise ForbiddenException("You can only view your own attendance.")


def _records(rows) -> dict:
    return {"data": [AttendanceResponse.model_validate(r) for r in rows]}


# ── Clock in / out ──────────────────────────────────────────────────

@router.post("/clock-in", status_code=201)
async def clock_in(
    request: Request,
    body: ClockInRequest,
    user: User = Depends(_clock),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.clock_in(
        db,
        linked_employee_id(user),
        body,
        ip_address=request.client.host if request.client else None,
        actor=user,
    )
    return {"data": AttendanceResponse.model_validate(record), "message": "Clocked in"}


@router.post("/clock-out")
async def clock_out(
    body: ClockOutRequest,
    user: User = Depends(_clock),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.clock_out(db, linked_employee_id(user), body, actor=user)
    return {"data": AttendanceResponse.model_validate(record), "message": "Clocked out"}


@router.get("/today")
async def today(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.today(db, linked_employee_id(user))
    return {"data": AttendanceResponse.model_validate(record) if record else None}


# ── Breaks ──────────────────────────────────────────────────────────

@router.post("/breaks/start", status_code=201)
async def start_break(
    body: BreakStartRequest,
    user: User = Depends(_clock),
    db: AsyncSession = Depends(get_db),
):
    brk = await AttendanceService.start_break(db, linked_employee_id(user), body)
    return {"data": BreakResponse.model_validate(brk), "message": "Break started"}


@router.get("/breaks/active")
async def active_break(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    brk = await AttendanceService.active_break(db, linked_employee_id(user))
    return {"data": BreakResponse.model_validate(brk) if brk else None}


@router.post("/breaks/{break_id}/end")
async def end_break(
    break_id: uuid.UUID,
    user: User = Depends(_clock),
    db: AsyncSession = Depends(get_db),
):
    brk = await AttendanceService.end_break(db, linked_employee_id(user), break_id)
    return {"data": BreakResponse.model_validate(brk), "message": "Break ended"}


# ── Corrections ─────────────────────────────────────────────────────

@router.post("/corrections", status_code=201)
async def submit_correction(
    body: CorrectionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    correction = await AttendanceService.submit_correction(
        db, linked_employee_id(user), body, actor=user,
    )
    return {"data": CorrectionResponse.model_validate(correction), "message": "Correction submitted"}


@router.get("/corrections")
async def list_corrections(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[CorrectionStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_correct),
    db: AsyncSession = Depends(get_db),
):
    result = await AttendanceService.list_corrections(
        db, pagination, employee_id=employee_id, status=status,
    )
    return {
        "data": [CorrectionResponse.model_validate(c) for c in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/corrections/me")
async def my_corrections(
    status: Optional[CorrectionStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await AttendanceService.list_corrections(
        db, pagination, employee_id=linked_employee_id(user), status=status,
    )
    return {
        "data": [CorrectionResponse.model_validate(c) for c in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/corrections/{correction_id}/approve")
async def approve_correction(
    correction_id: uuid.UUID,
    body: Optional[CorrectionReview] = None,
    actor: User = Depends(_correct),
    db: AsyncSession = Depends(get_db),
):
    correction = await AttendanceService.approve_correction(
        db, correction_id, body.notes if body else None, actor=actor,
    )
    return {"data": CorrectionResponse.model_validate(correction), "message": "Correction approved"}


@router.post("/corrections/{correction_id}/reject")
async def reject_correction(
    correction_id: uuid.UUID,
    body: CorrectionRejection,
    actor: User = Depends(_correct),
    db: AsyncSession = Depends(get_db),
):
    correction = await AttendanceService.reject_correction(
        db, correction_id, body.reason, actor=actor,
    )
    return {"data": CorrectionResponse.model_validate(correction), "message": "Correction rejected"}


@router.post("/corrections/{correction_id}/cancel")
async def cancel_correction(
    correction_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    correction = await AttendanceService.cancel_correction(
        db, correction_id, linked_employee_id(user),
    )
    return {"data": CorrectionResponse.model_validate(correction), "message": "Correction cancelled"}


# ── History / summaries ─────────────────────────────────────────────

@router.get("/me/history")
async def my_history(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await AttendanceService.history(db, linked_employee_id(user), pagination)
    return {
        "data": [AttendanceResponse.model_validate(r) for r in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/me/summary")
async def my_summary(
    start_date: date = Query(...),
    end_date: date = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await AttendanceService.summary(db, linked_employee_id(user), start_date, end_date)}


@router.get("/employee/{employee_id}/history")
async def employee_history(
    request: Request,
    employee_id: uuid.UUID,
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    result = await AttendanceService.history(db, employee_id, pagination)
    return {
        "data": [AttendanceResponse.model_validate(r) for r in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/employee/{employee_id}/range")
async def employee_range(
    request: Request,
    employee_id: uuid.UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    return _records(await AttendanceService.in_range(db, employee_id, start_date, end_date))


@router.get("/employee/{employee_id}/summary")
async def employee_summary(
    request: Request,
    employee_id: uuid.UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    return {"data": await AttendanceService.summary(db, employee_id, start_date, end_date)}


@router.get("/{attendance_id}")
async def get_record(
    request: Request,
    attendance_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.get_record(db, attendance_id)
    _check_access(request, user, record.employee_id)
    return {"data": AttendanceResponse.model_validate(record)}


@router.get("/{attendance_id}/breaks")
async def record_breaks(
    request: Request,
    attendance_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    record = await AttendanceService.get_record(db, attendance_id)
    _check_access(request, user, record.employee_id)
    rows = await AttendanceService.breaks_for(db, attendance_id)
    return {"data": [BreakResponse.model_validate(b) for b in rows]}

"""Position router — CRUD, vacancy queries and employee assignments."""


import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_role
from hrms.auth.models import User
from hrms.common.constants import PositionLevel, PositionStatus, UserRole
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.positions.models import Position
from hrms.positions.schemas import (
    AssignmentRequest,
    EndAssignmentRequest,
    PositionCreate,
    PositionHistoryResponse,
    PositionResponse,
    PositionUpdate,
)
from hrms.positions.service import PositionService

router = APIRouter(prefix="", tags=["positions"])

_hr = require_role(UserRole.hr)


def _many(positions) -> dict:
    return {"data": [PositionResponse.model_validate(p) for p in positions]}


def _history(rows) -> dict:
    return {"data": [PositionHistoryResponse.model_validate(r) for r in rows]}


@router.get("")
async def list_positions(
    pagination: PaginationParams = Depends(),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await PositionService.list_positions(db, pagination)
    return {
        "data": [PositionResponse.model_validate(p) for p in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("", status_code=201)
async def create_position(
    body: PositionCreate,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    position = await PositionService.create_position(db, body, actor=actor)
    return {"data": PositionResponse.model_validate(position), "message": "Position created"}


# ── Fixed paths (before /{position_id}) ─────────────────────────────

@router.get("/levels")
async def list_levels(_: User = Depends(get_current_user)):
    return {"data": [level.value for level in PositionLevel]}


@router.get("/statuses")
async def list_statuses(_: User = Depends(get_current_user)):
    return {"data": [status.value for status in PositionStatus]}


@router.get("/active")
async def active_positions(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.active(db))


@router.get("/available")
async def available_positions(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.available(db))


@router.get("/management")
async def management_positions(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.management(db))


@router.get("/search")
async def search_positions(
    title: str = Query(..., min_length=1),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.by_title(db, title))


@router.get("/salary-range")
async def by_salary_range(
    min_salary: Decimal = Query(..., ge=0),
    max_salary: Decimal = Query(..., ge=0),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.by_salary_overlap(db, min_salary, max_salary))


@router.get("/department/{department_id}")
async def by_department(
    department_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.find(db, Position.department_id == department_id))


@router.get("/department/{department_id}/entry-level")
async def entry_level(
    department_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.entry_level(db, department_id))


@router.get("/level/{level}")
async def by_level(
    level: PositionLevel,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await PositionService.find(db, Position.level == level))


@router.get("/employee/{employee_id}/history")
async def employee_history(
    employee_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _history(await PositionService.employee_history(db, employee_id))


@router.post("/employee/{employee_id}/end-assignment")
async def end_assignment(
    employee_id: uuid.UUID,
    body: EndAssignmentRequest,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    row = await PositionService.end_assignment(
        db, employee_id, body.end_date, body.notes, actor=actor,
    )
    return {"data": PositionHistoryResponse.model_validate(row), "message": "Assignment ended"}


# ── Single position ─────────────────────────────────────────────────

@router.get("/{position_id}")
async def get_position(
    position_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    position = await PositionService.get_position(db, position_id)
    return {"data": PositionResponse.model_validate(position)}


@router.put("/{position_id}")
async def update_position(
    position_id: uuid.UUID,
    body: PositionUpdate,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    position = await PositionService.update_position(db, position_id, body, actor=actor)
    return {"data": PositionResponse.model_validate(position), "message": "Position updated"}


@router.delete("/{position_id}", status_code=204)
async def delete_position(
    position_id: uuid.UUID,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await PositionService.delete_position(db, position_id, actor=actor)
    return Response(status_code=204)


@router.post("/{position_id}/assign", status_code=201)
async def assign_employee(
    position_id: uuid.UUID,
    body: AssignmentRequest,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    row = await PositionService.assign_employee(db, position_id, body, actor=actor)
    return {"data": PositionHistoryResponse.model_validate(row), "message": "Employee assigned"}


@router.get("/{position_id}/history")
async def position_history(
    position_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _history(await PositionService.position_history(db, position_id))


@router.get("/{position_id}/current-employees")
async def current_employees(
    position_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await PositionService.get_position(db, position_id)
    return _history(await PositionService.current_assignments(db, position_id))


@router.get("/{position_id}/statistics")
async def position_statistics(
    position_id: uuid.UUID,
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await PositionService.get_statistics(db, position_id)}

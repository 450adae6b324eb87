"""Position service — CRUD, vacancy queries and employee assignments."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import (
    MANAGEMENT_LEVELS,
    AuditAction,
    PositionLevel,
    PositionStatus,
)
from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.departments.models import Department
from hrms.employees.models import Employee
from hrms.payroll.models import PayGrade
from hrms.positions.models import EmployeePositionHistory, Position
from hrms.positions.schemas import (
    AssignmentRequest,
    PositionCreate,
    PositionStatistics,
    PositionUpdate,
)

SORT_FIELDS = ("title", "level", "status", "min_salary", "max_salary", "created_at")


def _validate(position: Position) -> None:
    """Re-check cross-field rules on the merged entity."""
    if (
        position.min_salary is not None
        and position.max_salary is not None
        and position.min_salary > position.max_salary
    ):
        raise BadRequestException("Minimum salary cannot be greater than maximum salary")
    if (
        position.min_experience_years is not None
        and position.max_experience_years is not None
        and position.min_experience_years > position.max_experience_years
    ):
        raise BadRequestException("Minimum experience cannot be greater than maximum experience")
    if position.number_of_openings > position.total_headcount:
        raise BadRequestException("Number of openings cannot exceed total headcount")
    if position.id is not None and position.reports_to_id == position.id:
        raise BadRequestException("Position cannot report to itself")


class PositionService:

    @staticmethod
    async def get_position(db: AsyncSession, position_id: uuid.UUID) -> Position:
        position = await db.get(Position, position_id)
        if position is None:
            raise NotFoundException("Position", str(position_id))
        return position

    @staticmethod
    async def list_positions(
        db: AsyncSession,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        query = apply_sorting(
            select(Position), Position, pagination.sort or "title", allowed=SORT_FIELDS,
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def create_position(
        db: AsyncSession,
        data: PositionCreate,
        *,
        actor: Any = None,
    ) -> Position:
        await _ensure_references(
            db,
            department_id=data.department_id,
            pay_grade_id=data.pay_grade_id,
            reports_to_id=data.reports_to_id,
        )
        position = Position(**data.model_dump())
        _validate(position)
        db.add(position)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="position",
            entity_id=position.id,
            new_values=data.model_dump(mode="json"),
            **actor_fields(actor),
        )
        return position

    @staticmethod
    async def update_position(
        db: AsyncSession,
        position_id: uuid.UUID,
        data: PositionUpdate,
        *,
        actor: Any = None,
    ) -> Position:
        position = await PositionService.get_position(db, position_id)
        changes = data.model_dump(exclude_unset=True)
        for field in ("title", "level", "status", "number_of_openings", "total_headcount"):
            if field in changes and changes[field] is None:
                raise BadRequestException(f"{field} cannot be null")
        if changes.get("reports_to_id") == position_id:
            raise BadRequestException("Position cannot report to itself")
        await _ensure_references(
            db,
            department_id=changes.get("department_id"),
            pay_grade_id=changes.get("pay_grade_id"),
            reports_to_id=changes.get("reports_to_id"),
        )

        old_values = {field: getattr(position, field) for field in changes}
        for field, value in changes.items():
            setattr(position, field, value)
        _validate(position)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="position",
            entity_id=position.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return position

    @staticmethod
    async def delete_position(
        db: AsyncSession,
        position_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> None:
        """Mark the position INACTIVE."""
        position = await PositionService.get_position(db, position_id)
        if await PositionService.current_assignments(db, position_id):
            raise BadRequestException(
                "Cannot delete position with current employees. Please reassign employees first."
            )
        position.status = PositionStatus.inactive
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="position",
            entity_id=position.id,
            new_values={"status": PositionStatus.inactive},
            **actor_fields(actor),
        )

    # ── Finders ─────────────────────────────────────────────────────

    @staticmethod
    async def find(db: AsyncSession, *conditions, order_by=None) -> Sequence[Position]:
        query = select(Position).where(*conditions)
        query = query.order_by(*(order_by or (Position.title,)))
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def active(db: AsyncSession) -> Sequence[Position]:
        return await PositionService.find(db, Position.status == PositionStatus.active)

    @staticmethod
    async def available(db: AsyncSession) -> Sequence[Position]:
        return await PositionService.find(
            db,
            Position.status == PositionStatus.active,
            Position.number_of_openings > 0,
            order_by=[Position.level, Position.title],
        )

    @staticmethod
    async def by_title(db: AsyncSession, title: str) -> Sequence[Position]:
        return await PositionService.find(db, Position.title.ilike(f"%{title.strip()}%"))

    @staticmethod
    async def by_salary_overlap(
        db: AsyncSession,
        min_salary: Decimal,
        max_salary: Decimal,
    ) -> Sequence[Position]:
        """Positions whose salary band overlaps ``[min_salary, max_salary]``."""
        if min_salary > max_salary:
            raise BadRequestException("min_salary cannot exceed max_salary")
        return await PositionService.find(
            db,
            or_(
                Position.min_salary.between(min_salary, max_salary),
                Position.max_salary.between(min_salary, max_salary),
                (Position.min_salary <= min_salary) & (Position.max_salary >= max_salary),
            ),
        )

    @staticmethod
    async def entry_level(db: AsyncSession, department_id: uuid.UUID) -> Sequence[Position]:
        return await PositionService.find(
            db,
            Position.department_id == department_id,
            Position.level.in_([PositionLevel.entry, PositionLevel.junior]),
            Position.status == PositionStatus.active,
            order_by=[Position.min_experience_years, Position.title],
        )

    @staticmethod
    async def management(db: AsyncSession) -> Sequence[Position]:
        return await PositionService.find(
            db,
            Position.level.in_(MANAGEMENT_LEVELS),
            Position.status == PositionStatus.active,
        )

    # ── Assignments ─────────────────────────────────────────────────

    @staticmethod
    async def assign_employee(
        db: AsyncSession,
        position_id: uuid.UUID,
        data: AssignmentRequest,
        *,
        actor: Any = None,
    ) -> EmployeePositionHistory:
        position = await PositionService.get_position(db, position_id)
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(data.employee_id))
        if position.status != PositionStatus.active or position.number_of_openings <= 0:
            raise BadRequestException("Position has no available openings")

        current = await _current_for_employee(db, employee.id)
        if current is not None:
            current.end_date = data.start_date - timedelta(days=1)
            current.notes = _append(current.notes, "Position change")
            await _release_opening(db, current.position_id)

        salary = data.salary if data.salary is not None else employee.salary
        history = EmployeePositionHistory(
            employee_id=employee.id,
            position_id=position.id,
            start_date=data.start_date,
            salary_at_start=salary,
            department_id=position.department_id,
            notes=data.notes,
        )
        db.add(history)

        employee.position_id = position.id
        employee.job_title = position.title
        if position.department_id is not None:
            employee.department_id = position.department_id
        if salary is not None:
            employee.salary = salary
        position.number_of_openings -= 1
        await db.flush()

        await create_audit_entry(
            db,
            action="ASSIGN_POSITION",
            entity_type="employee",
            entity_id=employee.id,
            new_values={"position_id": position.id, "start_date": data.start_date},
            **actor_fields(actor),
        )
        return history

    @staticmethod
    async def end_assignment(
        db: AsyncSession,
        employee_id: uuid.UUID,
        end_date: Optional[date] = None,
        notes: Optional[str] = None,
        *,
        actor: Any = None,
    ) -> EmployeePositionHistory:
        current = await _current_for_employee(db, employee_id)
        if current is None:
            raise BadRequestException("No current position found for employee")

        current.end_date = end_date or date.today()
        if notes:
            current.notes = _append(current.notes, notes)
        employee = await db.get(Employee, employee_id)
        if employee is not None and employee.position_id == current.position_id:
            employee.position_id = None
        await _release_opening(db, current.position_id)
        await db.flush()

        await create_audit_entry(
            db,
            action="END_POSITION",
            entity_type="employee",
            entity_id=employee_id,
            old_values={"position_id": current.position_id},
            **actor_fields(actor),
        )
        return current

    @staticmethod
    async def employee_history(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Sequence[EmployeePositionHistory]:
        result = await db.execute(
            select(EmployeePositionHistory)
            .where(EmployeePositionHistory.employee_id == employee_id)
            .order_by(EmployeePositionHistory.start_date.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def position_history(
        db: AsyncSession,
        position_id: uuid.UUID,
    ) -> Sequence[EmployeePositionHistory]:
        await PositionService.get_position(db, position_id)
        result = await db.execute(
            select(EmployeePositionHistory)
            .where(EmployeePositionHistory.position_id == position_id)
            .order_by(EmployeePositionHistory.start_date.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def current_assignments(
        db: AsyncSession,
        position_id: uuid.UUID,
    ) -> Sequence[EmployeePositionHistory]:
        result = await db.execute(
            select(EmployeePositionHistory).where(
                EmployeePositionHistory.position_id == position_id,
                EmployeePositionHistory.end_date.is_(None),
            )
        )
        return result.scalars().all()

    @staticmethod
    async def get_statistics(
        db: AsyncSession,
        position_id: uuid.UUID,
        *,
        today: Optional[date] = None,
    ) -> PositionStatistics:
        position = await PositionService.get_position(db, position_id)
        rows = await PositionService.position_history(db, position_id)
        today = today or date.today()

        tenures = [((r.end_date or today) - r.start_date).days for r in rows]
        total_assignments = (
            await db.execute(
                select(func.count(func.distinct(EmployeePositionHistory.employee_id)))
                .where(EmployeePositionHistory.position_id == position_id)
            )
        ).scalar_one()
        return PositionStatistics(
            position_id=position.id,
            title=position.title,
            total_assignments=total_assignments,
            current_employees=sum(1 for r in rows if r.end_date is None),
            average_tenure_days=round(sum(tenures) / len(tenures), 2) if tenures else None,
        )


# ── Internal helpers ────────────────────────────────────────────────

def _append(existing: Optional[str], text: str) -> str:
    return f"{existing} | {text}" if existing else text


async def _current_for_employee(
    db: AsyncSession,
    employee_id: uuid.UUID,
) -> Optional[EmployeePositionHistory]:
    result = await db.execute(
        select(EmployeePositionHistory)
        .where(
            EmployeePositionHistory.employee_id == employee_id,
            EmployeePositionHistory.end_date.is_(None),
        )
        .order_by(EmployeePositionHistory.start_date.desc())
    )
    return result.scalars().first()


async def _release_opening(db: AsyncSession, position_id: uuid.UUID) -> None:
    position = await db.get(Position, position_id)
    if position is not None and position.number_of_openings < position.total_headcount:
        position.number_of_openings += 1


async def _ensure_references(
    db: AsyncSession,
    *,
    department_id: Optional[uuid.UUID] = None,
    pay_grade_id: Optional[uuid.UUID] = None,
    reports_to_id: Optional[uuid.UUID] = None,
) -> None:
    for model, ref_id, name in (
        (Department, department_id, "Department"),
        (PayGrade, pay_grade_id, "PayGrade"),
        (Position, reports_to_id, "Position"),
    ):
        if ref_id is not None and await db.get(model, ref_id) is None:
            raise NotFoundException(name, str(ref_id))

"""Employee lifecycle transitions and their status history."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import EmployeeStatus
from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.employees.models import Employee, EmployeeStatusHistory
from hrms.employees.schemas import LifecycleAction, LifecycleStatistics
from hrms.notifications.service import notify_offboarding, notify_onboarding


class EmployeeLifecycleService:
    """ACTIVE / INACTIVE / TERMINATED / PROBATION transitions."""

    @staticmethod
    async def activate(
        db: AsyncSession,
        employee_id: uuid.UUID,
        action: LifecycleAction,
        *,
        actor: Any = None,
    ) -> Employee:
        employee = await _get(db, employee_id)
        if employee.status == EmployeeStatus.active:
            raise BadRequestException("Employee is already active.")
        if employee.status == EmployeeStatus.terminated:
            raise BadRequestException(
                "Cannot activate a terminated employee. Use rehire process instead."
            )
        return await _transition(
            db, employee, EmployeeStatus.active, action, "ACTIVATE", actor=actor,
        )

    @staticmethod
    async def deactivate(
        db: AsyncSession,
        employee_id: uuid.UUID,
        action: LifecycleAction,
        *,
        actor: Any = None,
    ) -> Employee:
        employee = await _get(db, employee_id)
        if employee.status == EmployeeStatus.inactive:
            raise BadRequestException("Employee is already inactive.")
        if employee.status == EmployeeStatus.terminated:
            raise BadRequestException("Cannot deactivate a terminated employee.")
        return await _transition(
            db, employee, EmployeeStatus.inactive, action, "DEACTIVATE", actor=actor,
        )

    @staticmethod
    async def terminate(
        db: AsyncSession,
        employee_id: uuid.UUID,
        action: LifecycleAction,
        *,
        actor: Any = None,
    ) -> Employee:
        employee = await _get(db, employee_id)
        if employee.status == EmployeeStatus.terminated:
            raise BadRequestException("Employee is already terminated.")
        employee.termination_date = action.effective_date or date.today()
        return await _transition(
            db, employee, EmployeeStatus.terminated, action, "TERMINATE", actor=actor,
        )

    @staticmethod
    async def onboard(
        db: AsyncSession,
        employee_id: uuid.UUID,
        action: LifecycleAction,
        *,
        actor: Any = None,
    ) -> Employee:
        """Move a new hire into PROBATION."""
        employee = await _get(db, employee_id)
        if employee.status == EmployeeStatus.probation:
            raise BadRequestException("Employee is already in onboarding (probation).")
        if employee.status == EmployeeStatus.terminated:
            raise BadRequestException("Cannot onboard a terminated employee.")
        if employee.hire_date is None:
            employee.hire_date = action.effective_date or date.today()

        employee = await _transition(
            db, employee, EmployeeStatus.probation, action, "ONBOARD", actor=actor,
        )
        await notify_onboarding(db, employee)
        return employee

    @staticmethod
    async def offboard(
        db: AsyncSession,
        employee_id: uuid.UUID,
        action: LifecycleAction,
        *,
        actor: Any = None,
    ) -> Employee:
        """Move a leaver to INACTIVE; *effective_date* is the last working day."""
        employee = await _get(db, employee_id)
        if employee.status == EmployeeStatus.terminated:
            raise BadRequestException("Cannot offboard a terminated employee.")
        employee.termination_date = action.effective_date or date.today()

        employee = await _transition(
            db, employee, EmployeeStatus.inactive, action, "OFFBOARD", actor=actor,
        )
        await notify_offboarding(db, employee)
        return employee

    # ── Queries ─────────────────────────────────────────────────────

    @staticmethod
    async def status_history(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        await _get(db, employee_id)
        query = (
            select(EmployeeStatusHistory)
            .where(EmployeeStatusHistory.employee_id == employee_id)
            .order_by(EmployeeStatusHistory.changed_at.desc(), EmployeeStatusHistory.id)
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def activated_between(db: AsyncSession, start: date, end: date) -> Sequence[Employee]:
        _check_range(start, end)
        sub = select(EmployeeStatusHistory.employee_id).where(
            EmployeeStatusHistory.new_status == EmployeeStatus.active,
            EmployeeStatusHistory.effective_date.between(start, end),
        )
        result = await db.execute(
            select(Employee).where(Employee.id.in_(sub)).order_by(Employee.last_name)
        )
        return result.scalars().all()

    @staticmethod
    async def terminated_between(db: AsyncSession, start: date, end: date) -> Sequence[Employee]:
        _check_range(start, end)
        result = await db.execute(
            select(Employee)
            .where(
                Employee.status == EmployeeStatus.terminated,
                Employee.termination_date.between(start, end),
            )
            .order_by(Employee.termination_date)
        )
        return result.scalars().all()

    @staticmethod
    async def get_statistics(db: AsyncSession) -> LifecycleStatistics:
        rows = (
            await db.execute(
                select(EmployeeStatusHistory.new_status, func.count(EmployeeStatusHistory.id))
                .group_by(EmployeeStatusHistory.new_status)
            )
        ).all()
        counts = {status: count for status, count in rows}
        return LifecycleStatistics(
            total_status_changes=sum(counts.values()),
            activations=counts.get(EmployeeStatus.active, 0),
            deactivations=counts.get(EmployeeStatus.inactive, 0),
            terminations=counts.get(EmployeeStatus.terminated, 0),
            onboardings=counts.get(EmployeeStatus.probation, 0),
        )


# ── Internal helpers ────────────────────────────────────────────────

async def _get(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee


def _check_range(start: date, end: date) -> None:
    if start > end:
        raise BadRequestException("start_date must be on or before end_date")


async def _transition(
    db: AsyncSession,
    employee: Employee,
    new_status: EmployeeStatus,
    action: LifecycleAction,
    audit_action: str,
    *,
    actor: Any = None,
) -> Employee:
    previous: Optional[EmployeeStatus] = employee.status
    employee.status = new_status
    if actor is not None:
        employee.updated_by = actor.id

    db.add(
        EmployeeStatusHistory(
            employee_id=employee.id,
            previous_status=previous,
            new_status=new_status,
            reason=action.reason,
            notes=action.notes,
            effective_date=action.effective_date or date.today(),
            changed_by=actor.username if actor is not None else "SYSTEM",
        )
    )
    await db.flush()

    await create_audit_entry(
        db,
        action=audit_action,
        entity_type="employee",
        entity_id=employee.id,
        description=action.reason,
        old_values={"status": previous},
        new_values={"status": new_status},
        **actor_fields(actor),
    )
    return employee

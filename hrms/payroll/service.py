"""Payroll service layer — pay grades, salary changes, bonuses, deductions."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import (
    AuditAction,
    BonusStatus,
    DeductionStatus,
    PayGradeStatus,
)
from hrms.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.employees.models import Employee
from hrms.payroll.models import Bonus, Deduction, PayGrade, SalaryHistory
from hrms.payroll.schemas import (
    BonusCreate,
    BonusUpdate,
    CompensationSummary,
    DeductionCreate,
    DeductionLine,
    DeductionUpdate,
    PayGradeCreate,
    PayGradeResponse,
    PayGradeUpdate,
    SalaryUpdateRequest,
)


async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee


def _reject_nulls(changes: dict, fields: Sequence[str]) -> None:
    for field in fields:
        if field in changes and changes[field] is None:
            raise BadRequestException(f"{field} cannot be null")


# ═════════════════════════════════════════════════════════════════════
# Pay grades
# ═════════════════════════════════════════════════════════════════════


class PayGradeService:

    @staticmethod
    async def get(db: AsyncSession, grade_id: uuid.UUID) -> PayGrade:
        grade = await db.get(PayGrade, grade_id)
        if grade is None:
            raise NotFoundException("PayGrade", str(grade_id))
        return grade

    @staticmethod
    async def list_grades(
        db: AsyncSession,
        *,
        status: Optional[PayGradeStatus] = None,
    ) -> Sequence[PayGrade]:
        query = select(PayGrade).order_by(PayGrade.grade_level, PayGrade.grade_code)
        if status is not None:
            query = query.where(PayGrade.status == status)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def create(db: AsyncSession, data: PayGradeCreate, *, actor: Any = None) -> PayGrade:
        await _ensure_grade_code_free(db, data.grade_code)
        grade = PayGrade(**data.model_dump())
        db.add(grade)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="pay_grade",
            entity_id=grade.id,
            new_values=data.model_dump(mode="json"),
            **actor_fields(actor),
        )
        return grade

    @staticmethod
    async def update(
        db: AsyncSession,
        grade_id: uuid.UUID,
        data: PayGradeUpdate,
        *,
        actor: Any = None,
    ) -> PayGrade:
        grade = await PayGradeService.get(db, grade_id)
        changes = data.model_dump(exclude_unset=True)
        _reject_nulls(changes, ("grade_code", "name", "min_salary", "max_salary", "grade_level", "status"))
        if "grade_code" in changes and changes["grade_code"] != grade.grade_code:
            await _ensure_grade_code_free(db, changes["grade_code"])

        old_values = {field: getattr(grade, field) for field in changes}
        for field, value in changes.items():
            setattr(grade, field, value)
        if grade.min_salary > grade.max_salary:
            raise BadRequestException("min_salary cannot exceed max_salary")
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="pay_grade",
            entity_id=grade.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return grade

    @staticmethod
    async def delete(db: AsyncSession, grade_id: uuid.UUID, *, actor: Any = None) -> None:
        grade = await PayGradeService.get(db, grade_id)
        in_use = (
            await db.execute(
                select(func.count(Employee.id)).where(Employee.pay_grade_id == grade_id)
            )
        ).scalar_one()
        if in_use:
            raise BadRequestException(
                f"Cannot delete pay grade assigned to {in_use} employee(s)."
            )
        await db.delete(grade)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="pay_grade",
            entity_id=grade_id,
            old_values={"grade_code": grade.grade_code},
            **actor_fields(actor),
        )

    @staticmethod
    async def suitable_for(db: AsyncSession, salary: Decimal) -> Sequence[PayGrade]:
        """Active grades whose band contains *salary*."""
        result = await db.execute(
            select(PayGrade)
            .where(
                PayGrade.status == PayGradeStatus.active,
                PayGrade.min_salary <= salary,
                PayGrade.max_salary >= salary,
            )
            .order_by(PayGrade.grade_level)
        )
        return result.scalars().all()


async def _ensure_grade_code_free(db: AsyncSession, code: str) -> None:
    existing = await db.execute(select(PayGrade.id).where(PayGrade.grade_code == code))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("grade_code", code)


# ═════════════════════════════════════════════════════════════════════
# Salary
# ═════════════════════════════════════════════════════════════════════


class SalaryService:

    @staticmethod
    async def get_salary(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        return await _get_employee(db, employee_id)

    @staticmethod
    async def update_salary(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: SalaryUpdateRequest,
        *,
        actor: Any = None,
    ) -> SalaryHistory:
        """Record a salary change and apply it to the employee."""
        employee = await _get_employee(db, employee_id)

        history = SalaryHistory(
            employee_id=employee.id,
            previous_salary=employee.salary,
            new_salary=data.new_salary,
            effective_date=data.effective_date,
            change_reason=data.change_reason,
            notes=data.notes,
            approved_by=actor.username if actor is not None else None,
        )
        db.add(history)
        old_salary = employee.salary
        employee.salary = data.new_salary
        await db.flush()

        await create_audit_entry(
            db,
            action="SALARY_CHANGE",
            entity_type="employee",
            entity_id=employee.id,
            description=data.change_reason.value,
            old_values={"salary": old_salary},
            new_values={"salary": data.new_salary},
            **actor_fields(actor),
        )
        return history

    @staticmethod
    async def history(db: AsyncSession, employee_id: uuid.UUID) -> Sequence[SalaryHistory]:
        await _get_employee(db, employee_id)
        result = await db.execute(
            select(SalaryHistory)
            .where(SalaryHistory.employee_id == employee_id)
            .order_by(SalaryHistory.effective_date.desc(), SalaryHistory.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def current_salaries(
        db: AsyncSession,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        query = (
            select(Employee)
            .where(Employee.salary.is_not(None))
            .order_by(Employee.last_name, Employee.first_name)
        )
        return await paginate(db, query, pagination)


# ═════════════════════════════════════════════════════════════════════
# Bonuses
# ═════════════════════════════════════════════════════════════════════


class BonusService:

    @staticmethod
    async def get(db: AsyncSession, bonus_id: uuid.UUID) -> Bonus:
        bonus = await db.get(Bonus, bonus_id)
        if bonus is None:
            raise NotFoundException("Bonus", str(bonus_id))
        return bonus

    @staticmethod
    async def list_bonuses(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[BonusStatus] = None,
    ) -> PaginatedResponse:
        query = select(Bonus).order_by(Bonus.award_date.desc(), Bonus.id)
        if employee_id is not None:
            query = query.where(Bonus.employee_id == employee_id)
        if status is not None:
            query = query.where(Bonus.status == status)
        return await paginate(db, query, pagination)

    @staticmethod
    async def create(db: AsyncSession, data: BonusCreate, *, actor: Any = None) -> Bonus:
        await _get_employee(db, data.employee_id)
        bonus = Bonus(**data.model_dump())
        db.add(bonus)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="bonus",
            entity_id=bonus.id,
            new_values=data.model_dump(mode="json"),
            **actor_fields(actor),
        )
        return bonus

    @staticmethod
    async def update(
        db: AsyncSession,
        bonus_id: uuid.UUID,
        data: BonusUpdate,
        *,
        actor: Any = None,
    ) -> Bonus:
        bonus = await BonusService.get(db, bonus_id)
        if bonus.status == BonusStatus.paid:
            raise BadRequestException("Paid bonuses cannot be modified.")
        changes = data.model_dump(exclude_unset=True)
        _reject_nulls(changes, ("bonus_type", "amount", "award_date"))
        for field, value in changes.items():
            setattr(bonus, field, value)
        if bonus.payment_date is not None and bonus.payment_date < bonus.award_date:
            raise BadRequestException("Payment date cannot be before award date")
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="bonus",
            entity_id=bonus.id,
            new_values=changes,
            **actor_fields(actor),
        )
        return bonus

    @staticmethod
    async def approve(db: AsyncSession, bonus_id: uuid.UUID, *, actor: Any = None) -> Bonus:
        bonus = await BonusService.get(db, bonus_id)
        if bonus.status != BonusStatus.pending:
            raise BadRequestException("Only pending bonuses can be approved.")
        bonus.status = BonusStatus.approved
        bonus.approved_by = actor.username if actor is not None else None
        await db.flush()
        await create_audit_entry(
            db,
            action="APPROVE",
            entity_type="bonus",
            entity_id=bonus.id,
            new_values={"status": BonusStatus.approved},
            **actor_fields(actor),
        )
        return bonus

    @staticmethod
    async def mark_paid(
        db: AsyncSession,
        bonus_id: uuid.UUID,
        payment_date: Optional[date] = None,
        *,
        actor: Any = None,
    ) -> Bonus:
        bonus = await BonusService.get(db, bonus_id)
        if bonus.status != BonusStatus.approved:
            raise BadRequestException("Only approved bonuses can be marked as paid.")
        paid_on = payment_date or date.today()
        if paid_on < bonus.award_date:
            raise BadRequestException("Payment date cannot be before award date")
        bonus.status = BonusStatus.paid
        bonus.payment_date = paid_on
        await db.flush()
        await create_audit_entry(
            db,
            action="PAY",
            entity_type="bonus",
            entity_id=bonus.id,
            new_values={"status": BonusStatus.paid, "payment_date": paid_on},
            **actor_fields(actor),
        )
        return bonus

    @staticmethod
    async def delete(db: AsyncSession, bonus_id: uuid.UUID, *, actor: Any = None) -> None:
        bonus = await BonusService.get(db, bonus_id)
        if bonus.status == BonusStatus.paid:
            raise BadRequestException("Paid bonuses cannot be deleted.")
        await db.delete(bonus)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="bonus",
            entity_id=bonus_id,
            **actor_fields(actor),
        )


# ═════════════════════════════════════════════════════════════════════
# Deductions
# ═════════════════════════════════════════════════════════════════════


class DeductionService:

    @staticmethod
    async def get(db: AsyncSession, deduction_id: uuid.UUID) -> Deduction:
        deduction = await db.get(Deduction, deduction_id)
        if deduction is None:
            raise NotFoundException("Deduction", str(deduction_id))
        return deduction

    @staticmethod
    async def list_deductions(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[DeductionStatus] = None,
    ) -> PaginatedResponse:
        query = select(Deduction).order_by(Deduction.effective_date.desc(), Deduction.id)
        if employee_id is not None:
            query = query.where(Deduction.employee_id == employee_id)
        if status is not None:
            query = query.where(Deduction.status == status)
        return await paginate(db, query, pagination)

    @staticmethod
    async def create(db: AsyncSession, data: DeductionCreate, *, actor: Any = None) -> Deduction:
        await _get_employee(db, data.employee_id)
        deduction = Deduction(**data.model_dump(), year_to_date_amount=Decimal("0"))
        db.add(deduction)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="deduction",
            entity_id=deduction.id,
            new_values=data.model_dump(mode="json"),
            **actor_fields(actor),
        )
        return deduction

    @staticmethod
    async def update(
        db: AsyncSession,
        deduction_id: uuid.UUID,
        data: DeductionUpdate,
        *,
        actor: Any = None,
    ) -> Deduction:
        deduction = await DeductionService.get(db, deduction_id)
        changes = data.model_dump(exclude_unset=True)
        _reject_nulls(changes, ("deduction_type", "effective_date", "status"))
        for field, value in changes.items():
            setattr(deduction, field, value)

        if (deduction.amount is None) == (deduction.percentage is None):
            raise BadRequestException("Exactly one of amount or percentage must be provided")
        if deduction.end_date is not None and deduction.end_date < deduction.effective_date:
            raise BadRequestException("End date cannot be before effective date")
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="deduction",
            entity_id=deduction.id,
            new_values=changes,
            **actor_fields(actor),
        )
        return deduction

    @staticmethod
    async def delete(db: AsyncSession, deduction_id: uuid.UUID, *, actor: Any = None) -> None:
        deduction = await DeductionService.get(db, deduction_id)
        await db.delete(deduction)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="deduction",
            entity_id=deduction_id,
            **actor_fields(actor),
        )


# ═════════════════════════════════════════════════════════════════════
# Compensation summary
# ═════════════════════════════════════════════════════════════════════


async def compensation_summary(db: AsyncSession, employee_id: uuid.UUID) -> CompensationSummary:
    employee = await _get_employee(db, employee_id)

    total_bonuses = (
        await db.execute(
            select(func.coalesce(func.sum(Bonus.amount), 0)).where(
                Bonus.employee_id == employee_id,
                Bonus.status.in_([BonusStatus.approved, BonusStatus.paid]),
            )
        )
    ).scalar_one()

    today = date.today()
    deductions = (
        await db.execute(
            select(Deduction)
            .where(
                Deduction.employee_id == employee_id,
                Deduction.status == DeductionStatus.active,
                # in force today: started, and not yet ended
                Deduction.effective_date <= today,
                or_(Deduction.end_date.is_(None), Deduction.end_date >= today),
            )
            .order_by(Deduction.deduction_type)
        )
    ).scalars().all()

    gross = employee.salary or Decimal("0")
    lines = [
        DeductionLine(id=d.id, deduction_type=d.deduction_type, amount=d.calculate(gross))
        for d in deductions
    ]
    total_deductions = sum((line.amount for line in lines), Decimal("0"))

    grade = None
    if employee.pay_grade_id is not None:
        pay_grade = await db.get(PayGrade, employee.pay_grade_id)
        if pay_grade is not None:
            grade = PayGradeResponse.model_validate(pay_grade)

    return CompensationSummary(
        employee_id=employee.id,
        current_salary=employee.salary,
        pay_grade=grade,
        total_bonuses=Decimal(str(total_bonuses)),
        active_deductions=lines,
        total_deductions=total_deductions,
        net_estimate=(employee.salary - total_deductions) if employee.salary is not None else None,
    )

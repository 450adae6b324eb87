"""Payroll router — pay grades, salaries, bonuses, deductions, compensation."""


import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, linked_employee_id, require_permission
from hrms.auth.models import User
from hrms.common.constants import BonusStatus, DeductionStatus, PayGradeStatus
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.payroll import service
from hrms.payroll.schemas import (
    BonusCreate,
    BonusPayment,
    BonusResponse,
    BonusUpdate,
    DeductionCreate,
    DeductionResponse,
    DeductionUpdate,
    EmployeeSalary,
    PayGradeCreate,
    PayGradeResponse,
    PayGradeUpdate,
    SalaryHistoryResponse,
    SalaryUpdateRequest,
)

router = APIRouter(prefix="", tags=["payroll"])

_read = require_permission("PAYROLL_READ")
_manage = require_permission("PAYROLL_MANAGE")


def _salary(employee) -> EmployeeSalary:
    return EmployeeSalary(
        employee_id=employee.id,
        employee_code=employee.employee_id,
        name=employee.full_name,
        salary=employee.salary,
        pay_grade_id=employee.pay_grade_id,
    )


# ═════════════════════════════════════════════════════════════════════
# Pay grades
# ═════════════════════════════════════════════════════════════════════


@router.get("/pay-grades")
async def list_pay_grades(
    status: Optional[PayGradeStatus] = Query(None),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    grades = await service.PayGradeService.list_grades(db, status=status)
    return {"data": [PayGradeResponse.model_validate(g) for g in grades]}


@router.post("/pay-grades", status_code=201)
async def create_pay_grade(
    body: PayGradeCreate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    grade = await service.PayGradeService.create(db, body, actor=actor)
    return {"data": PayGradeResponse.model_validate(grade), "message": "Pay grade created"}


@router.get("/pay-grades/suitable")
async def suitable_pay_grades(
    salary: Decimal = Query(..., gt=0),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    grades = await service.PayGradeService.suitable_for(db, salary)
    return {"data": [PayGradeResponse.model_validate(g) for g in grades]}


@router.get("/pay-grades/{grade_id}")
async def get_pay_grade(
    grade_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    grade = await service.PayGradeService.get(db, grade_id)
    return {"data": PayGradeResponse.model_validate(grade)}


@router.put("/pay-grades/{grade_id}")
async def update_pay_grade(
    grade_id: uuid.UUID,
    body: PayGradeUpdate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    grade = await service.PayGradeService.update(db, grade_id, body, actor=actor)
    return {"data": PayGradeResponse.model_validate(grade), "message": "Pay grade updated"}


@router.delete("/pay-grades/{grade_id}", status_code=204)
async def delete_pay_grade(
    grade_id: uuid.UUID,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await service.PayGradeService.delete(db, grade_id, actor=actor)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Salaries
# ═════════════════════════════════════════════════════════════════════


@router.get("/salaries")
async def current_salaries(
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    result = await service.SalaryService.current_salaries(db, pagination)
    return {"data": [_salary(e) for e in result.data], "meta": result.meta.model_dump()}


@router.get("/salaries/{employee_id}")
async def get_salary(
    employee_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    employee = await service.SalaryService.get_salary(db, employee_id)
    return {"data": _salary(employee)}


@router.put("/salaries/{employee_id}")
async def update_salary(
    employee_id: uuid.UUID,
    body: SalaryUpdateRequest,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    history = await service.SalaryService.update_salary(db, employee_id, body, actor=actor)
    return {"data": SalaryHistoryResponse.model_validate(history), "message": "Salary updated"}


@router.post("/salaries/{employee_id}/adjust")
async def adjust_salary(
    employee_id: uuid.UUID,
    body: SalaryUpdateRequest,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    history = await service.SalaryService.update_salary(db, employee_id, body, actor=actor)
    return {"data": SalaryHistoryResponse.model_validate(history), "message": "Salary adjusted"}


@router.get("/salaries/{employee_id}/history")
async def salary_history(
    employee_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    rows = await service.SalaryService.history(db, employee_id)
    return {"data": [SalaryHistoryResponse.model_validate(r) for r in rows]}


# ═════════════════════════════════════════════════════════════════════
# Bonuses
# ═════════════════════════════════════════════════════════════════════


@router.get("/bonuses")
async def list_bonuses(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[BonusStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    result = await service.BonusService.list_bonuses(
        db, pagination, employee_id=employee_id, status=status,
    )
    return {
        "data": [BonusResponse.model_validate(b) for b in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/bonuses", status_code=201)
async def create_bonus(
    body: BonusCreate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    bonus = await service.BonusService.create(db, body, actor=actor)
    return {"data": BonusResponse.model_validate(bonus), "message": "Bonus created"}


@router.get("/bonuses/{bonus_id}")
async def get_bonus(
    bonus_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return {"data": BonusResponse.model_validate(await service.BonusService.get(db, bonus_id))}


@router.put("/bonuses/{bonus_id}")
async def update_bonus(
    bonus_id: uuid.UUID,
    body: BonusUpdate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    bonus = await service.BonusService.update(db, bonus_id, body, actor=actor)
    return {"data": BonusResponse.model_validate(bonus), "message": "Bonus updated"}


@router.post("/bonuses/{bonus_id}/approve")
async def approve_bonus(
    bonus_id: uuid.UUID,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    bonus = await service.BonusService.approve(db, bonus_id, actor=actor)
    return {"data": BonusResponse.model_validate(bonus), "message": "Bonus approved"}


@router.post("/bonuses/{bonus_id}/pay")
async def pay_bonus(
    bonus_id: uuid.UUID,
    body: BonusPayment,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    bonus = await service.BonusService.mark_paid(db, bonus_id, body.payment_date, actor=actor)
    return {"data": BonusResponse.model_validate(bonus), "message": "Bonus marked as paid"}


@router.delete("/bonuses/{bonus_id}", status_code=204)
async def delete_bonus(
    bonus_id: uuid.UUID,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await service.BonusService.delete(db, bonus_id, actor=actor)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Deductions
# ═════════════════════════════════════════════════════════════════════


@router.get("/deductions")
async def list_deductions(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[DeductionStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    result = await service.DeductionService.list_deductions(
        db, pagination, employee_id=employee_id, status=status,
    )
    return {
        "data": [DeductionResponse.model_validate(d) for d in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/deductions", status_code=201)
async def create_deduction(
    body: DeductionCreate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    deduction = await service.DeductionService.create(db, body, actor=actor)
    return {"data": DeductionResponse.model_validate(deduction), "message": "Deduction created"}


@router.get("/deductions/{deduction_id}")
async def get_deduction(
    deduction_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    deduction = await service.DeductionService.get(db, deduction_id)
    return {"data": DeductionResponse.model_validate(deduction)}


@router.put("/deductions/{deduction_id}")
async def update_deduction(
    deduction_id: uuid.UUID,
    body: DeductionUpdate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    deduction = await service.DeductionService.update(db, deduction_id, body, actor=actor)
    return {"data": DeductionResponse.model_validate(deduction), "message": "Deduction updated"}


@router.delete("/deductions/{deduction_id}", status_code=204)
async def delete_deduction(
    deduction_id: uuid.UUID,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await service.DeductionService.delete(db, deduction_id, actor=actor)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Compensation
# ═════════════════════════════════════════════════════════════════════


@router.get("/compensation/me")
async def my_compensation(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await service.compensation_summary(db, linked_employee_id(user))}


@router.get("/compensation/{employee_id}")
async def compensation(
    employee_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await service.compensation_summary(db, employee_id)}

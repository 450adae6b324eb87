"""Payroll Pydantic schemas: pay grades, salary changes, bonuses, deductions."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hrms.common.constants import (
    BonusStatus,
    BonusType,
    DeductionStatus,
    DeductionType,
    PayGradeStatus,
    SalaryChangeReason,
)


# ═════════════════════════════════════════════════════════════════════
# Pay grades
# ═════════════════════════════════════════════════════════════════════


class PayGradeCreate(BaseModel):
    grade_code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    min_salary: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    max_salary: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    grade_level: int = Field(..., ge=1)
    status: PayGradeStatus = PayGradeStatus.active

    @model_validator(mode="after")
    def _check_band(self) -> "PayGradeCreate":
        if self.min_salary > self.max_salary:
            raise ValueError("min_salary cannot exceed max_salary")
        return self


class PayGradeUpdate(BaseModel):
    grade_code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    min_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    max_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    grade_level: Optional[int] = Field(None, ge=1)
    status: Optional[PayGradeStatus] = None


class PayGradeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    grade_code: str
    name: str
    description: Optional[str] = None
    min_salary: Decimal
    max_salary: Decimal
    grade_level: int
    status: PayGradeStatus
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Salary
# ═════════════════════════════════════════════════════════════════════


class SalaryUpdateRequest(BaseModel):
    new_salary: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    effective_date: date
    change_reason: SalaryChangeReason
    notes: Optional[str] = None

    @field_validator("effective_date")
    @classmethod
    def _not_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Effective date cannot be in the future")
        return v


class SalaryHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    previous_salary: Optional[Decimal] = None
    new_salary: Decimal
    effective_date: date
    change_reason: SalaryChangeReason
    notes: Optional[str] = None
    approved_by: Optional[str] = None
    change_amount: Optional[Decimal] = None
    change_percentage: Optional[float] = None
    created_at: datetime


class EmployeeSalary(BaseModel):
    employee_id: uuid.UUID
    employee_code: str
    name: str
    salary: Optional[Decimal] = None
    pay_grade_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Bonuses
# ═════════════════════════════════════════════════════════════════════


class _BonusDates(BaseModel):
    @model_validator(mode="after")
    def _check_dates(self):
        award = getattr(self, "award_date", None)
        payment = getattr(self, "payment_date", None)
        if award is not None and award > date.today():
            raise ValueError("Award date cannot be in the future")
        if award is not None and payment is not None and payment < award:
            raise ValueError("Payment date cannot be before award date")
        start = getattr(self, "performance_period_start", None)
        end = getattr(self, "performance_period_end", None)
        if start is not None and end is not None and start > end:
            raise ValueError("Performance period start must be on or before its end")
        return self


class BonusCreate(_BonusDates):
    employee_id: uuid.UUID
    bonus_type: BonusType
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    award_date: date
    payment_date: Optional[date] = None
    performance_period_start: Optional[date] = None
    performance_period_end: Optional[date] = None
    notes: Optional[str] = None


class BonusUpdate(_BonusDates):
    bonus_type: Optional[BonusType] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    award_date: Optional[date] = None
    payment_date: Optional[date] = None
    performance_period_start: Optional[date] = None
    performance_period_end: Optional[date] = None
    notes: Optional[str] = None


class BonusPayment(BaseModel):
    payment_date: Optional[date] = None


class BonusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    bonus_type: BonusType
    amount: Decimal
    description: Optional[str] = None
    award_date: date
    payment_date: Optional[date] = None
    performance_period_start: Optional[date] = None
    performance_period_end: Optional[date] = None
    status: BonusStatus
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Deductions
# ═════════════════════════════════════════════════════════════════════


class _DeductionRules(BaseModel):
    @model_validator(mode="after")
    def _check(self):
        effective = getattr(self, "effective_date", None)
        end = getattr(self, "end_date", None)
        if effective is not None and end is not None and end < effective:
            raise ValueError("End date cannot be before effective date")
        return self


class DeductionCreate(_DeductionRules):
    employee_id: uuid.UUID
    deduction_type: DeductionType
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    percentage: Optional[Decimal] = Field(None, gt=0, le=100, max_digits=5, decimal_places=2)
    description: Optional[str] = None
    effective_date: date
    end_date: Optional[date] = None
    status: DeductionStatus = DeductionStatus.active
    is_pre_tax: bool = False
    is_mandatory: bool = False
    frequency: Optional[str] = Field(None, max_length=50)
    employer_contribution: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    annual_limit: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)

    @model_validator(mode="after")
    def _amount_xor_percentage(self) -> "DeductionCreate":
        if (self.amount is None) == (self.percentage is None):
            raise ValueError("Exactly one of amount or percentage must be provided")
        return self


class DeductionUpdate(_DeductionRules):
    deduction_type: Optional[DeductionType] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    percentage: Optional[Decimal] = Field(None, gt=0, le=100, max_digits=5, decimal_places=2)
    description: Optional[str] = None
    effective_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[DeductionStatus] = None
    is_pre_tax: Optional[bool] = None
    is_mandatory: Optional[bool] = None
    frequency: Optional[str] = Field(None, max_length=50)
    employer_contribution: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    annual_limit: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    year_to_date_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class DeductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    deduction_type: DeductionType
    amount: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    description: Optional[str] = None
    effective_date: date
    end_date: Optional[date] = None
    status: DeductionStatus
    is_pre_tax: bool
    is_mandatory: bool
    frequency: Optional[str] = None
    employer_contribution: Optional[Decimal] = None
    annual_limit: Optional[Decimal] = None
    year_to_date_amount: Decimal
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Compensation summary
# ═════════════════════════════════════════════════════════════════════


class DeductionLine(BaseModel):
    id: uuid.UUID
    deduction_type: DeductionType
    amount: Decimal


class CompensationSummary(BaseModel):
    employee_id: uuid.UUID
    current_salary: Optional[Decimal] = None
    pay_grade: Optional[PayGradeResponse] = None
    total_bonuses: Decimal
    active_deductions: list[DeductionLine]
    total_deductions: Decimal
    net_estimate: Optional[Decimal] = None

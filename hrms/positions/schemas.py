"""Position Pydantic schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import PositionLevel, PositionStatus


class _PositionRules(BaseModel):
    """Cross-field checks shared by create and update payloads."""

    @model_validator(mode="after")
    def _check_ranges(self):
        min_s, max_s = getattr(self, "min_salary", None), getattr(self, "max_salary", None)
        if min_s is not None and max_s is not None and min_s > max_s:
            raise ValueError("Minimum salary cannot be greater than maximum salary")
        min_e = getattr(self, "min_experience_years", None)
        max_e = getattr(self, "max_experience_years", None)
        if min_e is not None and max_e is not None and min_e > max_e:
            raise ValueError("Minimum experience cannot be greater than maximum experience")
        openings = getattr(self, "number_of_openings", None)
        headcount = getattr(self, "total_headcount", None)
        if openings is not None and headcount is not None and openings > headcount:
            raise ValueError("Number of openings cannot exceed total headcount")
        return self


class PositionCreate(_PositionRules):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    level: PositionLevel
    status: PositionStatus = PositionStatus.active
    min_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    max_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    pay_grade_id: Optional[uuid.UUID] = None
    required_qualifications: Optional[str] = None
    preferred_qualifications: Optional[str] = None
    required_skills: Optional[str] = None
    min_experience_years: Optional[int] = Field(None, ge=0)
    max_experience_years: Optional[int] = Field(None, ge=0)
    reports_to_id: Optional[uuid.UUID] = None
    number_of_openings: int = Field(0, ge=0)
    total_headcount: int = Field(1, ge=1)


class PositionUpdate(_PositionRules):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    level: Optional[PositionLevel] = None
    status: Optional[PositionStatus] = None
    min_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    max_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    pay_grade_id: Optional[uuid.UUID] = None
    required_qualifications: Optional[str] = None
    preferred_qualifications: Optional[str] = None
    required_skills: Optional[str] = None
    min_experience_years: Optional[int] = Field(None, ge=0)
    max_experience_years: Optional[int] = Field(None, ge=0)
    reports_to_id: Optional[uuid.UUID] = None
    number_of_openings: Optional[int] = Field(None, ge=0)
    total_headcount: Optional[int] = Field(None, ge=1)


class PositionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    level: PositionLevel
    status: PositionStatus
    min_salary: Optional[Decimal] = None
    max_salary: Optional[Decimal] = None
    pay_grade_id: Optional[uuid.UUID] = None
    required_qualifications: Optional[str] = None
    preferred_qualifications: Optional[str] = None
    required_skills: Optional[str] = None
    min_experience_years: Optional[int] = None
    max_experience_years: Optional[int] = None
    reports_to_id: Optional[uuid.UUID] = None
    number_of_openings: int
    total_headcount: int
    is_management: bool
    created_at: datetime
    updated_at: datetime


class AssignmentRequest(BaseModel):
    employee_id: uuid.UUID
    start_date: date
    salary: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = None


class EndAssignmentRequest(BaseModel):
    end_date: Optional[date] = None
    notes: Optional[str] = None


class PositionHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    position_id: uuid.UUID
    start_date: date
    end_date: Optional[date] = None
    salary_at_start: Optional[Decimal] = None
    department_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    is_current: bool


class PositionStatistics(BaseModel):
    position_id: uuid.UUID
    title: str
    total_assignments: int
    current_employees: int
    average_tenure_days: Optional[float] = None

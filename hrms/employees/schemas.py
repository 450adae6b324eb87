"""Employee Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response          → response bodies (read)
  - *Summary / *Node   → compact read representations
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from hrms.common.constants import EmployeeStatus, EmploymentType, GenderType

SSN_PATTERN = r"^\d{3}-\d{2}-\d{4}$"


# ═════════════════════════════════════════════════════════════════════
# Employee — write schemas
# ═════════════════════════════════════════════════════════════════════


class _EmployeeDateRules(BaseModel):
    @field_validator("birth_date", check_fields=False)
    @classmethod
    def _birth_date_in_past(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v >= date.today():
            raise ValueError("Birth date must be in the past")
        return v

    @field_validator("hire_date", check_fields=False)
    @classmethod
    def _hire_date_not_future(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v > date.today():
            raise ValueError("Hire date cannot be in the future")
        return v


class EmployeeCreate(_EmployeeDateRules):
    """Payload for creating a new employee."""

    employee_id: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    birth_date: Optional[date] = None
    gender: Optional[GenderType] = None
    address: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=50)
    job_title: str = Field(..., min_length=1, max_length=100)
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    manager_id: Optional[uuid.UUID] = None
    hire_date: date
    salary: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    pay_grade_id: Optional[uuid.UUID] = None
    employment_type: EmploymentType = EmploymentType.full_time
    status: EmployeeStatus = EmployeeStatus.active
    emergency_contact_name: Optional[str] = Field(None, max_length=100)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    emergency_contact_relationship: Optional[str] = Field(None, max_length=50)
    ssn: Optional[str] = Field(None, pattern=SSN_PATTERN)
    notes: Optional[str] = None


class EmployeeUpdate(_EmployeeDateRules):
    """Payload for partial-updating an employee. All fields optional."""

    employee_id: Optional[str] = Field(None, min_length=1, max_length=20)
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    birth_date: Optional[date] = None
    gender: Optional[GenderType] = None
    address: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=50)
    job_title: Optional[str] = Field(None, min_length=1, max_length=100)
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    manager_id: Optional[uuid.UUID] = None
    hire_date: Optional[date] = None
    salary: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    pay_grade_id: Optional[uuid.UUID] = None
    employment_type: Optional[EmploymentType] = None
    emergency_contact_name: Optional[str] = Field(None, max_length=100)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    emergency_contact_relationship: Optional[str] = Field(None, max_length=50)
    ssn: Optional[str] = Field(None, pattern=SSN_PATTERN)
    notes: Optional[str] = None
    profile_picture_url: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Employee — read schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeSummary(BaseModel):
    """Compact employee info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    first_name: str
    last_name: str
    email: str
    job_title: str
    status: EmployeeStatus


class EmployeeResponse(BaseModel):
    """Full employee representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[GenderType] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    job_title: str
    department_id: Optional[uuid.UUID] = None
    position_id: Optional[uuid.UUID] = None
    manager_id: Optional[uuid.UUID] = None
    hire_date: date
    termination_date: Optional[date] = None
    salary: Optional[Decimal] = None
    pay_grade_id: Optional[uuid.UUID] = None
    employment_type: EmploymentType
    status: EmployeeStatus
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    notes: Optional[str] = None
    profile_picture_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    # Enriched fields (set by service layer)
    department_name: Optional[str] = None
    position_title: Optional[str] = None
    manager_name: Optional[str] = None


class EmployeeStatistics(BaseModel):
    total: int
    active: int
    inactive: int
    terminated: int
    by_department: dict[str, int]
    by_employment_type: dict[str, int]
    average_salary: Optional[float] = None


# ═════════════════════════════════════════════════════════════════════
# Hierarchy
# ═════════════════════════════════════════════════════════════════════


class ManagerAssignment(BaseModel):
    manager_id: uuid.UUID


class OrgChartNode(BaseModel):
    """Recursive org-chart tree node."""

    id: uuid.UUID
    employee_id: str
    name: str
    job_title: str
    department: Optional[str] = None
    children: list["OrgChartNode"] = Field(default_factory=list)


OrgChartNode.model_rebuild()


class HierarchyStatistics(BaseModel):
    total_employees: int
    total_managers: int
    top_level_employees: int
    employees_with_manager: int
    average_span_of_control: float


# ═════════════════════════════════════════════════════════════════════
# Lifecycle
# ═════════════════════════════════════════════════════════════════════


class LifecycleAction(BaseModel):
    """Body for activate / deactivate / terminate / onboard / offboard."""

    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    effective_date: Optional[date] = None


class StatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    previous_status: Optional[EmployeeStatus] = None
    new_status: EmployeeStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    effective_date: date
    changed_by: Optional[str] = None
    changed_at: datetime


class LifecycleStatistics(BaseModel):
    total_status_changes: int
    activations: int
    deactivations: int
    terminations: int
    onboardings: int

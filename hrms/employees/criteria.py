"""Employee search criteria and the query builder that composes them."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import Select, and_, func, or_, select

from hrms.common.constants import EmployeeStatus, EmploymentType, GenderType
from hrms.common.exceptions import BadRequestException
from hrms.departments.models import Department
from hrms.employees.models import Employee
from hrms.positions.models import Position

EMPLOYEE_SORT_FIELDS = frozenset({
    "id", "employee_id", "first_name", "last_name", "email", "job_title",
    "salary", "hire_date", "birth_date", "status", "employment_type",
    "created_at", "updated_at", "phone", "city", "state", "postal_code",
})


class EmployeeSearchCriteria(BaseModel):
    """Optional filters combined with AND; ``global_search`` overrides them."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    employee_id: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[GenderType] = None
    status: Optional[EmployeeStatus] = None
    employment_type: Optional[EmploymentType] = None
    department_id: Optional[uuid.UUID] = None
    department_name: Optional[str] = None
    position_id: Optional[uuid.UUID] = None
    position_title: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    has_manager: Optional[bool] = None
    min_salary: Optional[Decimal] = Field(None, ge=0)
    max_salary: Optional[Decimal] = Field(None, ge=0)
    hire_date_from: Optional[date] = None
    hire_date_to: Optional[date] = None
    birth_date_from: Optional[date] = None
    birth_date_to: Optional[date] = None
    min_age: Optional[int] = Field(None, ge=0, le=150)
    max_age: Optional[int] = Field(None, ge=0, le=150)
    min_years_of_service: Optional[int] = Field(None, ge=0)
    max_years_of_service: Optional[int] = Field(None, ge=0)
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    address: Optional[str] = None
    global_search: Optional[str] = None

    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    sort_by: str = "last_name"
    sort_direction: Literal["asc", "desc"] = "asc"

    @model_validator(mode="after")
    def _check_ranges(self) -> "EmployeeSearchCriteria":
        if (
            self.min_salary is not None
            and self.max_salary is not None
            and self.min_salary > self.max_salary
        ):
            raise ValueError("min_salary cannot exceed max_salary")
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age cannot exceed max_age")
        return self


def _years_ago(today: date, years: int) -> date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return today.replace(year=today.year - years, day=28)


def _contains(column, value: str):
    return func.lower(column).like(f"%{value.strip().lower()}%")


def global_search_condition(term: str):
    """OR across names, email, business id, job title and phone."""
    return or_(
        _contains(Employee.first_name, term),
        _contains(Employee.last_name, term),
        _contains(Employee.email, term),
        _contains(Employee.employee_id, term),
        _contains(Employee.job_title, term),
        _contains(Employee.phone, term),
    )


def build_employee_query(
    criteria: EmployeeSearchCriteria,
    *,
    today: Optional[date] = None,
) -> Select:
    """Compose a ``SELECT employees`` from every populated criterion."""
    today = today or date.today()
    query = select(Employee)

    if criteria.global_search and criteria.global_search.strip():
        return apply_employee_sort(
            query.where(global_search_condition(criteria.global_search)),
            criteria.sort_by,
            criteria.sort_direction,
        )

    conditions: list = []
    c = criteria

    for column, value in (
        (Employee.first_name, c.first_name),
        (Employee.last_name, c.last_name),
        (Employee.email, c.email),
        (Employee.employee_id, c.employee_id),
        (Employee.job_title, c.job_title),
        (Employee.phone, c.phone),
        (Employee.city, c.city),
        (Employee.state, c.state),
        (Employee.postal_code, c.postal_code),
        (Employee.address, c.address),
    ):
        if value:
            conditions.append(_contains(column, value))

    if c.full_name:
        full = func.lower(Employee.first_name + " " + Employee.last_name)
        conditions.append(full.like(f"%{c.full_name.strip().lower()}%"))

    if c.gender is not None:
        conditions.append(Employee.gender == c.gender)
    if c.status is not None:
        conditions.append(Employee.status == c.status)
    if c.employment_type is not None:
        conditions.append(Employee.employment_type == c.employment_type)

    if c.department_id is not None:
        conditions.append(Employee.department_id == c.department_id)
    if c.department_name:
        query = query.join(Department, Employee.department_id == Department.id)
        conditions.append(_contains(Department.name, c.department_name))
    if c.position_id is not None:
        conditions.append(Employee.position_id == c.position_id)
    if c.position_title:
        query = query.join(Position, Employee.position_id == Position.id)
        conditions.append(_contains(Position.title, c.position_title))

    if c.manager_id is not None:
        conditions.append(Employee.manager_id == c.manager_id)
    if c.has_manager is not None:
        conditions.append(
            Employee.manager_id.is_not(None) if c.has_manager else Employee.manager_id.is_(None)
        )

    if c.min_salary is not None:
        conditions.append(Employee.salary >= c.min_salary)
    if c.max_salary is not None:
        conditions.append(Employee.salary <= c.max_salary)

    if c.hire_date_from is not None:
        conditions.append(Employee.hire_date >= c.hire_date_from)
    if c.hire_date_to is not None:
        conditions.append(Employee.hire_date <= c.hire_date_to)
    if c.birth_date_from is not None:
        conditions.append(Employee.birth_date >= c.birth_date_from)
    if c.birth_date_to is not None:
        conditions.append(Employee.birth_date <= c.birth_date_to)

    # Age N means born on or before today-N years and after today-(N+1) years
    if c.min_age is not None:
        conditions.append(Employee.birth_date <= _years_ago(today, c.min_age))
    if c.max_age is not None:
        conditions.append(Employee.birth_date > _years_ago(today, c.max_age + 1))

    if c.min_years_of_service is not None:
        conditions.append(Employee.hire_date <= _years_ago(today, c.min_years_of_service))
    if c.max_years_of_service is not None:
        conditions.append(Employee.hire_date > _years_ago(today, c.max_years_of_service + 1))

    if conditions:
        query = query.where(and_(*conditions))

    return apply_employee_sort(query, c.sort_by, c.sort_direction)


def apply_employee_sort(query: Select, sort_by: str, direction: str = "asc") -> Select:
    """ORDER BY a whitelisted field; unknown fields are a 400."""
    if sort_by not in EMPLOYEE_SORT_FIELDS:
        raise BadRequestException(
            f"Invalid sort field: {sort_by}",
            errors={"sort_by": [f"Allowed: {', '.join(sorted(EMPLOYEE_SORT_FIELDS))}"]},
        )
    column = getattr(Employee, sort_by)
    return query.order_by(column.desc() if direction == "desc" else column.asc(), Employee.id)

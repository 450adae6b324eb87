"""Employee service layer — async CRUD, search and reporting helpers.

Uses:
  - ``paginate()`` from hrms.common.pagination
  - ``build_employee_query`` from hrms.employees.criteria
  - ``EmployeeHierarchyService`` for manager validation
  - ``create_audit_entry`` from hrms.common.audit
"""

from __future__ import annotations

import csv
import io
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction, EmployeeStatus
from hrms.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.departments.models import Department
from hrms.employees.criteria import (
    EmployeeSearchCriteria,
    apply_employee_sort,
    build_employee_query,
    global_search_condition,
)
from hrms.employees.hierarchy import EmployeeHierarchyService
from hrms.employees.models import Employee
from hrms.employees.schemas import (
    EmployeeCreate,
    EmployeeResponse,
    EmployeeStatistics,
    EmployeeUpdate,
)
from hrms.payroll.models import PayGrade
from hrms.positions.models import Position

CSV_HEADER = [
    "Employee ID", "First Name", "Last Name", "Email", "Job Title", "Department",
    "Status", "Salary", "Hire Date", "Phone", "City", "State",
]


def with_refs(query: Select) -> Select:
    """Eager-load the relationships an ``EmployeeResponse`` reads."""
    return query.options(
        selectinload(Employee.department),
        selectinload(Employee.position),
        selectinload(Employee.manager),
    )


def to_response(employee: Employee) -> EmployeeResponse:
    resp = EmployeeResponse.model_validate(employee)
    if employee.department is not None:
        resp.department_name = employee.department.name
    if employee.position is not None:
        resp.position_title = employee.position.title
    if employee.manager is not None:
        resp.manager_name = employee.manager.full_name
    return resp


def _sort_parts(sort: Optional[str]) -> tuple[str, str]:
    if not sort:
        return "last_name", "asc"
    return sort.lstrip("-"), "desc" if sort.startswith("-") else "asc"


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD and query operations for employees."""

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        """Load an employee with department / position / manager."""
        result = await db.execute(
            with_refs(select(Employee).where(Employee.id == employee_id))
            .execution_options(populate_existing=True)
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    # ── List (paginated) ────────────────────────────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        status: Optional[EmployeeStatus] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = with_refs(select(Employee))
        if status is not None:
            query = query.where(Employee.status == status)
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        query = apply_employee_sort(query, *_sort_parts(pagination.sort))
        return await paginate(db, query, pagination)

    # ── Criteria search ─────────────────────────────────────────────

    @staticmethod
    async def search(
        db: AsyncSession,
        criteria: EmployeeSearchCriteria,
    ) -> PaginatedResponse:
        query = with_refs(build_employee_query(criteria))
        params = PaginationParams(page=criteria.page, page_size=criteria.page_size, sort=None)
        return await paginate(db, query, params)

    @staticmethod
    async def global_search(
        db: AsyncSession,
        term: str,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        query = with_refs(select(Employee).where(global_search_condition(term)))
        query = apply_employee_sort(query, *_sort_parts(pagination.sort))
        return await paginate(db, query, pagination)

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor: Any = None,
    ) -> Employee:
        """Create a new employee record."""
        await _ensure_unique(db, email=data.email, employee_id=data.employee_id)
        await _ensure_references(
            db,
            department_id=data.department_id,
            position_id=data.position_id,
            pay_grade_id=data.pay_grade_id,
        )
        if data.manager_id is not None:
            await EmployeeHierarchyService.validate_manager(db, None, data.manager_id)

        actor_id = actor.id if actor is not None else None
        employee = Employee(**data.model_dump(), created_by=actor_id, updated_by=actor_id)
        db.add(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="employee",
            entity_id=employee.id,
            description=f"Created employee {employee.employee_id}",
            new_values=data.model_dump(mode="json", exclude={"ssn"}),
            **actor_fields(actor),
        )
        return await EmployeeService.get_employee(db, employee.id)

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor: Any = None,
    ) -> Employee:
        """Partial-update an existing employee."""
        employee = await EmployeeService.get_employee(db, employee_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        for field in ("employee_id", "first_name", "last_name", "email", "job_title",
                      "hire_date", "employment_type"):
            if field in changes and changes[field] is None:
                raise BadRequestException(f"{field} cannot be null")

        await _ensure_unique(
            db,
            email=changes.get("email"),
            employee_id=changes.get("employee_id"),
            exclude_id=employee.id,
        )
        await _ensure_references(
            db,
            department_id=changes.get("department_id"),
            position_id=changes.get("position_id"),
            pay_grade_id=changes.get("pay_grade_id"),
        )
        if changes.get("manager_id") is not None:
            await EmployeeHierarchyService.validate_manager(db, employee.id, changes["manager_id"])

        old_values: dict[str, Any] = {}
        for field, value in changes.items():
            old_values[field] = getattr(employee, field, None)
            setattr(employee, field, value)

        employee.updated_by = actor.id if actor is not None else None
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="employee",
            entity_id=employee.id,
            old_values={k: v for k, v in old_values.items() if k != "ssn"},
            new_values={k: v for k, v in changes.items() if k != "ssn"},
            **actor_fields(actor),
        )
        return await EmployeeService.get_employee(db, employee.id)

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    async def delete_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> None:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))

        reports = (
            await db.execute(
                select(func.count(Employee.id)).where(Employee.manager_id == employee_id)
            )
        ).scalar_one()
        if reports:
            raise BadRequestException(
                f"Cannot delete employee who manages {reports} other employee(s). "
                "Reassign their subordinates first.",
            )

        snapshot = {"employee_id": employee.employee_id, "email": employee.email}
        await db.delete(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="employee",
            entity_id=employee_id,
            old_values=snapshot,
            **actor_fields(actor),
        )

    # ── Simple finders ──────────────────────────────────────────────

    @staticmethod
    async def find(db: AsyncSession, *conditions, order_by=None) -> Sequence[Employee]:
        query = with_refs(select(Employee).where(*conditions))
        query = query.order_by(*(order_by or (Employee.last_name, Employee.first_name)))
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def by_job_title(db: AsyncSession, job_title: str) -> Sequence[Employee]:
        return await EmployeeService.find(
            db, func.lower(Employee.job_title) == job_title.lower()
        )

    @staticmethod
    async def by_salary_range(
        db: AsyncSession,
        min_salary: Optional[Decimal],
        max_salary: Optional[Decimal],
    ) -> Sequence[Employee]:
        if min_salary is not None and max_salary is not None and min_salary > max_salary:
            raise BadRequestException("min_salary cannot exceed max_salary")
        conditions = [Employee.salary.is_not(None)]
        if min_salary is not None:
            conditions.append(Employee.salary >= min_salary)
        if max_salary is not None:
            conditions.append(Employee.salary <= max_salary)
        return await EmployeeService.find(db, *conditions, order_by=[Employee.salary])

    @staticmethod
    async def hired_between(db: AsyncSession, start: date, end: date) -> Sequence[Employee]:
        if start > end:
            raise BadRequestException("start_date must be on or before end_date")
        return await EmployeeService.find(
            db, Employee.hire_date.between(start, end), order_by=[Employee.hire_date],
        )

    @staticmethod
    async def recently_created(db: AsyncSession, days: int) -> Sequence[Employee]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        return await EmployeeService.find(
            db, Employee.created_at >= since, order_by=[Employee.created_at.desc()],
        )

    @staticmethod
    async def by_location(
        db: AsyncSession,
        *,
        city: Optional[str] = None,
        state: Optional[str] = None,
        postal_code: Optional[str] = None,
    ) -> Sequence[Employee]:
        conditions = []
        if city:
            conditions.append(func.lower(Employee.city) == city.lower())
        if state:
            conditions.append(func.lower(Employee.state) == state.lower())
        if postal_code:
            conditions.append(Employee.postal_code == postal_code)
        if not conditions:
            raise BadRequestException("At least one of city, state or postal_code is required")
        return await EmployeeService.find(db, *conditions)

    # ── Statistics ──────────────────────────────────────────────────

    @staticmethod
    async def get_statistics(db: AsyncSession) -> EmployeeStatistics:
        status_rows = (
            await db.execute(
                select(Employee.status, func.count(Employee.id)).group_by(Employee.status)
            )
        ).all()
        by_status = {row[0]: row[1] for row in status_rows}

        dept_rows = (
            await db.execute(
                select(Department.name, func.count(Employee.id))
                .join(Department, Employee.department_id == Department.id)
                .group_by(Department.name)
            )
        ).all()

        type_rows = (
            await db.execute(
                select(Employee.employment_type, func.count(Employee.id))
                .group_by(Employee.employment_type)
            )
        ).all()

        avg_salary = (
            await db.execute(
                select(func.avg(Employee.salary)).where(Employee.salary.is_not(None))
            )
        ).scalar()

        return EmployeeStatistics(
            total=sum(by_status.values()),
            active=by_status.get(EmployeeStatus.active, 0),
            inactive=by_status.get(EmployeeStatus.inactive, 0),
            terminated=by_status.get(EmployeeStatus.terminated, 0),
            by_department={name: count for name, count in dept_rows},
            by_employment_type={et.value: count for et, count in type_rows},
            average_salary=round(float(avg_salary), 2) if avg_salary is not None else None,
        )

    # ── CSV export ──────────────────────────────────────────────────

    @staticmethod
    def export_csv(employees: Sequence[Employee]) -> str:
        """Render employees as CSV; fields with separators or quotes are quoted."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for emp in employees:
            writer.writerow([
                emp.employee_id,
                emp.first_name,
                emp.last_name,
                emp.email,
                emp.job_title,
                emp.department.name if emp.department else "",
                emp.status.value,
                f"{emp.salary:.2f}" if emp.salary is not None else "",
                emp.hire_date.isoformat() if emp.hire_date else "",
                emp.phone or "",
                emp.city or "",
                emp.state or "",
            ])
        return buffer.getvalue()

    @staticmethod
    async def export_employees(
        db: AsyncSession,
        criteria: EmployeeSearchCriteria,
    ) -> str:
        rows = (await db.execute(with_refs(build_employee_query(criteria)))).scalars().all()
        return EmployeeService.export_csv(rows)


# ── Internal helpers ────────────────────────────────────────────────

async def _ensure_unique(
    db: AsyncSession,
    *,
    email: Optional[str] = None,
    employee_id: Optional[str] = None,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    for column, value, field in (
        (Employee.email, email, "email"),
        (Employee.employee_id, employee_id, "employee_id"),
    ):
        if value is None:
            continue
        query = select(Employee.id).where(column == value)
        if exclude_id is not None:
            query = query.where(Employee.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError(field, value)


async def _ensure_references(
    db: AsyncSession,
    *,
    department_id: Optional[uuid.UUID] = None,
    position_id: Optional[uuid.UUID] = None,
    pay_grade_id: Optional[uuid.UUID] = None,
) -> None:
    for model, ref_id, name in (
        (Department, department_id, "Department"),
        (Position, position_id, "Position"),
        (PayGrade, pay_grade_id, "PayGrade"),
    ):
        if ref_id is not None and await db.get(model, ref_id) is None:
            raise NotFoundException(name, str(ref_id))

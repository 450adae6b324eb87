"""Department service — CRUD, tree structure and employee transfers."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction, DepartmentStatus
from hrms.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hrms.common.filters import apply_search, apply_sorting
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.departments.models import Department
from hrms.departments.schemas import DepartmentCreate, DepartmentTreeNode, DepartmentUpdate
from hrms.employees.models import Employee

SORT_FIELDS = ("name", "code", "status", "location", "budget", "created_at")


class DepartmentService:

    @staticmethod
    async def get_department(db: AsyncSession, department_id: uuid.UUID) -> Department:
        department = await db.get(Department, department_id)
        if department is None:
            raise NotFoundException("Department", str(department_id))
        return department

    @staticmethod
    async def get_by_code(db: AsyncSession, code: str) -> Department:
        result = await db.execute(select(Department).where(Department.code == code))
        department = result.scalars().first()
        if department is None:
            raise NotFoundException("Department", code)
        return department

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        status: Optional[DepartmentStatus] = None,
    ) -> PaginatedResponse:
        query = select(Department)
        if status is not None:
            query = query.where(Department.status == status)
        query = apply_sorting(query, Department, pagination.sort or "name", allowed=SORT_FIELDS)
        return await paginate(db, query, pagination)

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor: Any = None,
    ) -> Department:
        await _ensure_code_free(db, data.code)
        if data.parent_department_id is not None:
            await DepartmentService.get_department(db, data.parent_department_id)
        if data.manager_id is not None:
            await _get_employee(db, data.manager_id)

        department = Department(**data.model_dump())
        db.add(department)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="department",
            entity_id=department.id,
            new_values=data.model_dump(mode="json"),
            **actor_fields(actor),
        )
        return department

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor: Any = None,
    ) -> Department:
        department = await DepartmentService.get_department(db, department_id)
        changes = data.model_dump(exclude_unset=True)
        for field in ("name", "code", "status"):
            if field in changes and changes[field] is None:
                raise BadRequestException(f"{field} cannot be null")
        # dissolving goes through delete_department and its checks
        if (
            changes.get("status") == DepartmentStatus.dissolved
            and department.status != DepartmentStatus.dissolved
        ):
            raise BadRequestException("Use DELETE to dissolve a department.")
        if "code" in changes and changes["code"] != department.code:
            await _ensure_code_free(db, changes["code"])

        old_values = {field: getattr(department, field) for field in changes}
        for field, value in changes.items():
            setattr(department, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="department",
            entity_id=department.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return department

    @staticmethod
    async def delete_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> None:
        """Mark the department DISSOLVED."""
        department = await DepartmentService.get_department(db, department_id)

        employees = await DepartmentService.employee_count(db, department_id)
        if employees:
            raise BadRequestException(
                f"Cannot delete department with {employees} employee(s). Transfer them first."
            )
        active_children = (
            await db.execute(
                select(func.count(Department.id)).where(
                    Department.parent_department_id == department_id,
                    Department.status != DepartmentStatus.dissolved,
                )
            )
        ).scalar_one()
        if active_children:
            raise BadRequestException("Cannot delete department with active sub-departments.")

        old_status = department.status
        department.status = DepartmentStatus.dissolved
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="department",
            entity_id=department.id,
            old_values={"status": old_status},
            new_values={"status": DepartmentStatus.dissolved},
            **actor_fields(actor),
        )

    # ── Manager / parent ────────────────────────────────────────────

    @staticmethod
    async def assign_manager(
        db: AsyncSession,
        department_id: uuid.UUID,
        manager_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> Department:
        department = await DepartmentService.get_department(db, department_id)
        await _get_employee(db, manager_id)
        old = department.manager_id
        department.manager_id = manager_id
        await db.flush()
        await create_audit_entry(
            db,
            action="ASSIGN_MANAGER",
            entity_type="department",
            entity_id=department.id,
            old_values={"manager_id": old},
            new_values={"manager_id": manager_id},
            **actor_fields(actor),
        )
        return department

    @staticmethod
    async def remove_manager(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> Department:
        department = await DepartmentService.get_department(db, department_id)
        if department.manager_id is None:
            raise BadRequestException("Department has no manager assigned.")
        old = department.manager_id
        department.manager_id = None
        await db.flush()
        await create_audit_entry(
            db,
            action="REMOVE_MANAGER",
            entity_type="department",
            entity_id=department.id,
            old_values={"manager_id": old},
            **actor_fields(actor),
        )
        return department

    @staticmethod
    async def set_parent(
        db: AsyncSession,
        department_id: uuid.UUID,
        parent_id: uuid.UUID,
    ) -> Department:
        department = await DepartmentService.get_department(db, department_id)
        if department_id == parent_id:
            raise BadRequestException("A department cannot be its own parent (circular reference).")
        await DepartmentService.get_department(db, parent_id)

        # Walk up from the proposed parent; meeting the department means a cycle
        current: Optional[uuid.UUID] = parent_id
        seen: set[uuid.UUID] = set()
        while current is not None and current not in seen:
            if current == department_id:
                raise BadRequestException(
                    "Setting this parent would create a circular reference in the department tree."
                )
            seen.add(current)
            current = (
                await db.execute(
                    select(Department.parent_department_id).where(Department.id == current)
                )
            ).scalar_one_or_none()

        department.parent_department_id = parent_id
        await db.flush()
        return department

    @staticmethod
    async def remove_parent(db: AsyncSession, department_id: uuid.UUID) -> Department:
        department = await DepartmentService.get_department(db, department_id)
        department.parent_department_id = None
        await db.flush()
        return department

    # ── Tree ────────────────────────────────────────────────────────

    @staticmethod
    async def get_tree(db: AsyncSession) -> list[DepartmentTreeNode]:
        rows = (
            await db.execute(
                select(Department)
                .where(Department.status != DepartmentStatus.dissolved)
                .order_by(Department.name)
            )
        ).scalars().all()

        children: dict[Optional[uuid.UUID], list[Department]] = {}
        for dept in rows:
            children.setdefault(dept.parent_department_id, []).append(dept)

        def _node(dept: Department) -> DepartmentTreeNode:
            return DepartmentTreeNode(
                id=dept.id,
                name=dept.name,
                code=dept.code,
                status=dept.status,
                manager_id=dept.manager_id,
                children=[_node(c) for c in children.get(dept.id, [])],
            )

        known = {d.id for d in rows}
        roots = [d for d in rows if d.parent_department_id is None or d.parent_department_id not in known]
        return [_node(r) for r in roots]

    @staticmethod
    async def get_sub_departments(db: AsyncSession, department_id: uuid.UUID) -> Sequence[Department]:
        await DepartmentService.get_department(db, department_id)
        result = await db.execute(
            select(Department)
            .where(Department.parent_department_id == department_id)
            .order_by(Department.name)
        )
        return result.scalars().all()

    # ── Finders ─────────────────────────────────────────────────────

    @staticmethod
    async def search(
        db: AsyncSession,
        *,
        name: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Sequence[Department]:
        query = select(Department)
        if name:
            query = apply_search(query, Department, name, ["name"])
        if location:
            query = apply_search(query, Department, location, ["location"])
        result = await db.execute(query.order_by(Department.name))
        return result.scalars().all()

    @staticmethod
    async def by_budget_range(
        db: AsyncSession,
        min_budget: Optional[Decimal],
        max_budget: Optional[Decimal],
    ) -> Sequence[Department]:
        if min_budget is not None and max_budget is not None and min_budget > max_budget:
            raise BadRequestException("min_budget cannot exceed max_budget")
        query = select(Department).where(Department.budget.is_not(None))
        if min_budget is not None:
            query = query.where(Department.budget >= min_budget)
        if max_budget is not None:
            query = query.where(Department.budget <= max_budget)
        return (await db.execute(query.order_by(Department.budget))).scalars().all()

    @staticmethod
    async def without_manager(db: AsyncSession) -> Sequence[Department]:
        result = await db.execute(
            select(Department)
            .where(
                Department.manager_id.is_(None),
                Department.status != DepartmentStatus.dissolved,
            )
            .order_by(Department.name)
        )
        return result.scalars().all()

    @staticmethod
    async def employee_count(db: AsyncSession, department_id: uuid.UUID) -> int:
        return (
            await db.execute(
                select(func.count(Employee.id)).where(Employee.department_id == department_id)
            )
        ).scalar_one()

    @staticmethod
    async def transfer_employee(
        db: AsyncSession,
        department_id: uuid.UUID,
        employee_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> Employee:
        department = await DepartmentService.get_department(db, department_id)
        if department.status != DepartmentStatus.active:
            raise BadRequestException("Employees can only be transferred into an active department.")
        employee = await _get_employee(db, employee_id)

        old = employee.department_id
        employee.department_id = department_id
        await db.flush()

        await create_audit_entry(
            db,
            action="TRANSFER",
            entity_type="employee",
            entity_id=employee.id,
            old_values={"department_id": old},
            new_values={"department_id": department_id},
            **actor_fields(actor),
        )
        return employee


async def _ensure_code_free(db: AsyncSession, code: str) -> None:
    existing = await db.execute(select(Department.id).where(Department.code == code))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("code", code)


async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee

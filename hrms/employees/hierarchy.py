"""Employee reporting hierarchy: manager assignment, chains, org chart."""

from __future__ import annotations

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.employees.models import Employee
from hrms.employees.schemas import HierarchyStatistics, OrgChartNode


class EmployeeHierarchyService:
    """Manager relationships between employees."""

    # ── Cycle check ─────────────────────────────────────────────────

    @staticmethod
    async def would_create_cycle(
        db: AsyncSession,
        employee_id: uuid.UUID,
        manager_id: uuid.UUID,
    ) -> bool:
        """Walk up from *manager_id*; a cycle exists if *employee_id* is an ancestor."""
        current: Optional[uuid.UUID] = manager_id
        seen: set[uuid.UUID] = set()
        while current is not None and current not in seen:
            if current == employee_id:
                return True
            seen.add(current)
            current = (
                await db.execute(select(Employee.manager_id).where(Employee.id == current))
            ).scalar_one_or_none()
        return False

    @staticmethod
    async def validate_manager(
        db: AsyncSession,
        employee_id: Optional[uuid.UUID],
        manager_id: uuid.UUID,
    ) -> Employee:
        """Return the proposed manager, or raise 400 / 404."""
        if employee_id is not None and employee_id == manager_id:
            raise BadRequestException("An employee cannot be their own manager.")

        manager = await db.get(Employee, manager_id)
        if manager is None:
            raise NotFoundException("Employee", str(manager_id))

        if employee_id is not None and await EmployeeHierarchyService.would_create_cycle(
            db, employee_id, manager_id,
        ):
            raise BadRequestException(
                "Assigning this manager would create a circular reference in the hierarchy.",
            )
        return manager

    # ── Assign / remove ─────────────────────────────────────────────

    @staticmethod
    async def assign_manager(
        db: AsyncSession,
        employee_id: uuid.UUID,
        manager_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> Employee:
        employee = await _get(db, employee_id)
        await EmployeeHierarchyService.validate_manager(db, employee_id, manager_id)

        old_manager = employee.manager_id
        employee.manager_id = manager_id
        await db.flush()

        await create_audit_entry(
            db,
            action="ASSIGN_MANAGER",
            entity_type="employee",
            entity_id=employee.id,
            old_values={"manager_id": old_manager},
            new_values={"manager_id": manager_id},
            **actor_fields(actor),
        )
        return employee

    @staticmethod
    async def remove_manager(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> Employee:
        employee = await _get(db, employee_id)
        if employee.manager_id is None:
            raise BadRequestException("Employee has no manager assigned.")

        old_manager = employee.manager_id
        employee.manager_id = None
        await db.flush()

        await create_audit_entry(
            db,
            action="REMOVE_MANAGER",
            entity_type="employee",
            entity_id=employee.id,
            old_values={"manager_id": old_manager},
            new_values={"manager_id": None},
            **actor_fields(actor),
        )
        return employee

    # ── Queries ─────────────────────────────────────────────────────

    @staticmethod
    async def get_subordinates(
        db: AsyncSession,
        manager_id: uuid.UUID,
        *,
        include_indirect: bool = False,
    ) -> Sequence[Employee]:
        """Direct reports, or the whole subtree when *include_indirect*."""
        await _get(db, manager_id)

        result: list[Employee] = []
        frontier = [manager_id]
        while frontier:
            rows = (
                await db.execute(
                    select(Employee)
                    .where(Employee.manager_id.in_(frontier))
                    .order_by(Employee.last_name, Employee.first_name)
                )
            ).scalars().all()
            result.extend(rows)
            if not include_indirect:
                break
            frontier = [e.id for e in rows]
        return result

    @staticmethod
    async def get_reporting_chain(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> list[Employee]:
        """Managers above the employee, nearest first."""
        employee = await _get(db, employee_id)
        chain: list[Employee] = []
        seen = {employee.id}
        current_id = employee.manager_id
        while current_id is not None and current_id not in seen:
            manager = await db.get(Employee, current_id)
            if manager is None:
                break
            chain.append(manager)
            seen.add(manager.id)
            current_id = manager.manager_id
        return chain

    @staticmethod
    async def get_managers(db: AsyncSession) -> Sequence[Employee]:
        """Employees with at least one direct report."""
        sub = select(Employee.manager_id).where(Employee.manager_id.is_not(None)).distinct()
        result = await db.execute(
            select(Employee)
            .where(Employee.id.in_(sub))
            .order_by(Employee.last_name, Employee.first_name)
        )
        return result.scalars().all()

    @staticmethod
    async def build_org_chart(db: AsyncSession) -> list[OrgChartNode]:
        """Top-level employees with their subordinates nested recursively."""
        result = await db.execute(
            select(Employee)
            .options(selectinload(Employee.department))
            .order_by(Employee.last_name, Employee.first_name)
        )
        all_employees = result.scalars().all()

        children_map: dict[Optional[uuid.UUID], list[Employee]] = {}
        for emp in all_employees:
            children_map.setdefault(emp.manager_id, []).append(emp)

        def _build_node(emp: Employee, path: frozenset) -> OrgChartNode:
            node = OrgChartNode(
                id=emp.id,
                employee_id=emp.employee_id,
                name=emp.full_name,
                job_title=emp.job_title,
                department=emp.department.name if emp.department else None,
            )
            for child in children_map.get(emp.id, []):
                if child.id not in path:
                    node.children.append(_build_node(child, path | {child.id}))
            return node

        return [_build_node(r, frozenset({r.id})) for r in children_map.get(None, [])]

    @staticmethod
    async def get_statistics(db: AsyncSession) -> HierarchyStatistics:
        total = (await db.execute(select(func.count(Employee.id)))).scalar_one()
        with_manager = (
            await db.execute(
                select(func.count(Employee.id)).where(Employee.manager_id.is_not(None))
            )
        ).scalar_one()
        managers = (
            await db.execute(select(func.count(func.distinct(Employee.manager_id))))
        ).scalar_one()

        span = round(with_manager / managers, 2) if managers else 0.0
        return HierarchyStatistics(
            total_employees=total,
            total_managers=managers,
            top_level_employees=total - with_manager,
            employees_with_manager=with_manager,
            average_span_of_control=span,
        )


async def _get(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee

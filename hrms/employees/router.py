"""Employee router — CRUD, search, hierarchy and lifecycle endpoints.

Routes:
    /employees                      — List, create employees
    /employees/search               — Criteria search (GET query / POST body)
    /employees/global-search        — OR search across common fields
    /employees/export               — CSV export of a criteria search
    /employees/hierarchy/...        — Manager assignment, chains, org chart
    /employees/lifecycle/...        — Status transitions and history
    /employees/{id}                 — Get, update, delete employee
"""


import uuid
from datetime import date
from decimal import Decimal
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission, require_role
from hrms.auth.models import User
from hrms.common.constants import EmployeeStatus, UserRole
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.employees.criteria import EmployeeSearchCriteria
from hrms.employees.hierarchy import EmployeeHierarchyService
from hrms.employees.lifecycle import EmployeeLifecycleService
from hrms.employees.models import Employee
from hrms.employees.schemas import (
    EmployeeCreate,
    EmployeeSummary,
    EmployeeUpdate,
    LifecycleAction,
    ManagerAssignment,
    StatusHistoryResponse,
)
from hrms.employees.service import EmployeeService, to_response

router = APIRouter(prefix="", tags=["employees"])

_reader = require_permission("EMPLOYEE_READ")
_hr = require_role(UserRole.hr)
_admin = require_role(UserRole.admin)


def _page(result) -> dict:
    return {
        "data": [to_response(emp).model_dump(mode="json") for emp in result.data],
        "meta": result.meta.model_dump(),
    }


def _list(employees) -> dict:
    return {"data": [to_response(emp).model_dump(mode="json") for emp in employees]}


def _summaries(employees) -> dict:
    return {"data": [EmployeeSummary.model_validate(emp) for emp in employees]}


# ═════════════════════════════════════════════════════════════════════
# Collection endpoints
# ═════════════════════════════════════════════════════════════════════


@router.get("")
async def list_employees(
    status: Optional[EmployeeStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    result = await EmployeeService.list_employees(
        db, pagination, status=status, department_id=department_id,
    )
    return _page(result)


@router.post("", status_code=201)
async def create_employee(
    body: EmployeeCreate,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.create_employee(db, body, actor=actor)
    return {"data": to_response(employee), "message": "Employee created successfully"}


# ── Search ──────────────────────────────────────────────────────────

@router.post("/search")
async def search_employees(
    criteria: EmployeeSearchCriteria,
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _page(await EmployeeService.search(db, criteria))


@router.get("/search")
async def search_employees_query(
    criteria: Annotated[EmployeeSearchCriteria, Query()],
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _page(await EmployeeService.search(db, criteria))


@router.get("/global-search")
async def global_search(
    q: str = Query(..., min_length=1),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _page(await EmployeeService.global_search(db, q, pagination))


@router.get("/export")
async def export_employees(
    criteria: Annotated[EmployeeSearchCriteria, Query()],
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    content = await EmployeeService.export_employees(db, criteria)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="employees.csv"'},
    )


# ── Finders ─────────────────────────────────────────────────────────

@router.get("/statistics")
async def employee_statistics(
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await EmployeeService.get_statistics(db)}


@router.get("/job-title/{job_title}")
async def by_job_title(
    job_title: str,
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _list(await EmployeeService.by_job_title(db, job_title))


@router.get("/department/{department_id}")
async def by_department(
    department_id: uuid.UUID,
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _page(
        await EmployeeService.list_employees(db, pagination, department_id=department_id)
    )


@router.get("/status/{status}")
async def by_status(
    status: EmployeeStatus,
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _page(await EmployeeService.list_employees(db, pagination, status=status))


@router.get("/salary-range")
async def by_salary_range(
    min_salary: Optional[Decimal] = Query(None, ge=0),
    max_salary: Optional[Decimal] = Query(None, ge=0),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _list(await EmployeeService.by_salary_range(db, min_salary, max_salary))


@router.get("/hired-between")
async def hired_between(
    start_date: date = Query(...),
    end_date: date = Query(...),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _list(await EmployeeService.hired_between(db, start_date, end_date))


@router.get("/recent")
async def recently_created(
    days: int = Query(30, ge=1, le=365),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _list(await EmployeeService.recently_created(db, days))


@router.get("/without-manager")
async def without_manager(
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _list(await EmployeeService.find(db, Employee.manager_id.is_(None)))


@router.get("/location")
async def by_location(
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    postal_code: Optional[str] = Query(None),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _list(
        await EmployeeService.by_location(db, city=city, state=state, postal_code=postal_code)
    )


# ═════════════════════════════════════════════════════════════════════
# Hierarchy
# ═════════════════════════════════════════════════════════════════════


@router.get("/hierarchy/org-chart")
async def org_chart(
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await EmployeeHierarchyService.build_org_chart(db)}


@router.get("/hierarchy/managers")
async def list_managers(
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _summaries(await EmployeeHierarchyService.get_managers(db))


@router.get("/hierarchy/statistics")
async def hierarchy_statistics(
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await EmployeeHierarchyService.get_statistics(db)}


@router.put("/hierarchy/{employee_id}/manager")
async def assign_manager(
    employee_id: uuid.UUID,
    body: ManagerAssignment,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeHierarchyService.assign_manager(db, employee_id, body.manager_id, actor=actor)
    employee = await EmployeeService.get_employee(db, employee_id)
    return {"data": to_response(employee), "message": "Manager assigned"}


@router.delete("/hierarchy/{employee_id}/manager")
async def remove_manager(
    employee_id: uuid.UUID,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeHierarchyService.remove_manager(db, employee_id, actor=actor)
    employee = await EmployeeService.get_employee(db, employee_id)
    return {"data": to_response(employee), "message": "Manager removed"}


@router.get("/hierarchy/{employee_id}/subordinates")
async def subordinates(
    employee_id: uuid.UUID,
    include_indirect: bool = Query(False),
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _summaries(
        await EmployeeHierarchyService.get_subordinates(
            db, employee_id, include_indirect=include_indirect,
        )
    )


@router.get("/hierarchy/{employee_id}/reporting-chain")
async def reporting_chain(
    employee_id: uuid.UUID,
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    return _summaries(await EmployeeHierarchyService.get_reporting_chain(db, employee_id))


# ═════════════════════════════════════════════════════════════════════
# Lifecycle
# ═════════════════════════════════════════════════════════════════════


@router.get("/lifecycle/statistics")
async def lifecycle_statistics(
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await EmployeeLifecycleService.get_statistics(db)}


@router.get("/lifecycle/activated")
async def activated_between(
    start_date: date = Query(...),
    end_date: date = Query(...),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _summaries(await EmployeeLifecycleService.activated_between(db, start_date, end_date))


@router.get("/lifecycle/terminated")
async def terminated_between(
    start_date: date = Query(...),
    end_date: date = Query(...),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _summaries(await EmployeeLifecycleService.terminated_between(db, start_date, end_date))


@router.get("/lifecycle/{employee_id}/history")
async def status_history(
    employee_id: uuid.UUID,
    pagination: PaginationParams = Depends(),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    result = await EmployeeLifecycleService.status_history(db, employee_id, pagination)
    return {
        "data": [StatusHistoryResponse.model_validate(h) for h in result.data],
        "meta": result.meta.model_dump(),
    }


async def _lifecycle_response(db: AsyncSession, employee_id: uuid.UUID, message: str) -> dict:
    employee = await EmployeeService.get_employee(db, employee_id)
    return {"data": to_response(employee), "message": message}


@router.post("/lifecycle/{employee_id}/activate")
async def activate(
    employee_id: uuid.UUID,
    body: LifecycleAction,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeLifecycleService.activate(db, employee_id, body, actor=actor)
    return await _lifecycle_response(db, employee_id, "Employee activated")


@router.post("/lifecycle/{employee_id}/deactivate")
async def deactivate(
    employee_id: uuid.UUID,
    body: LifecycleAction,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeLifecycleService.deactivate(db, employee_id, body, actor=actor)
    return await _lifecycle_response(db, employee_id, "Employee deactivated")


@router.post("/lifecycle/{employee_id}/terminate")
async def terminate(
    employee_id: uuid.UUID,
    body: LifecycleAction,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeLifecycleService.terminate(db, employee_id, body, actor=actor)
    return await _lifecycle_response(db, employee_id, "Employee terminated")


@router.post("/lifecycle/{employee_id}/onboard")
async def onboard(
    employee_id: uuid.UUID,
    body: LifecycleAction,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeLifecycleService.onboard(db, employee_id, body, actor=actor)
    return await _lifecycle_response(db, employee_id, "Employee onboarding started")


@router.post("/lifecycle/{employee_id}/offboard")
async def offboard(
    employee_id: uuid.UUID,
    body: LifecycleAction,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeLifecycleService.offboard(db, employee_id, body, actor=actor)
    return await _lifecycle_response(db, employee_id, "Employee offboarded")


# ═════════════════════════════════════════════════════════════════════
# Single employee
# ═════════════════════════════════════════════════════════════════════


@router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    _: User = Depends(_reader),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.get_employee(db, employee_id)
    return {"data": to_response(employee)}


@router.put("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.update_employee(db, employee_id, body, actor=actor)
    return {"data": to_response(employee), "message": "Employee updated successfully"}


@router.delete("/{employee_id}", status_code=204)
async def delete_employee(
    employee_id: uuid.UUID,
    actor: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeService.delete_employee(db, employee_id, actor=actor)
    return Response(status_code=204)

"""Department router — CRUD, tree, manager / parent assignment, transfers."""


import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_role
from hrms.auth.models import User
from hrms.common.constants import DepartmentStatus, UserRole
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.departments.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    ManagerRequest,
    ParentRequest,
    TransferRequest,
)
from hrms.departments.service import DepartmentService
from hrms.employees.schemas import EmployeeSummary

router = APIRouter(prefix="", tags=["departments"])

_hr = require_role(UserRole.hr)
_admin = require_role(UserRole.admin)


def _many(departments) -> dict:
    return {"data": [DepartmentResponse.model_validate(d) for d in departments]}


@router.get("")
async def list_departments(
    status: Optional[DepartmentStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await DepartmentService.list_departments(db, pagination, status=status)
    return {
        "data": [DepartmentResponse.model_validate(d) for d in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("", status_code=201)
async def create_department(
    body: DepartmentCreate,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.create_department(db, body, actor=actor)
    return {"data": DepartmentResponse.model_validate(department), "message": "Department created"}


# ── Fixed paths (before /{department_id}) ───────────────────────────

@router.get("/tree")
async def department_tree(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await DepartmentService.get_tree(db)}


@router.get("/search")
async def search_departments(
    name: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await DepartmentService.search(db, name=name, location=location))


@router.get("/budget-range")
async def by_budget_range(
    min_budget: Optional[Decimal] = Query(None, ge=0),
    max_budget: Optional[Decimal] = Query(None, ge=0),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _many(await DepartmentService.by_budget_range(db, min_budget, max_budget))


@router.get("/without-manager")
async def without_manager(
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _many(await DepartmentService.without_manager(db))


@router.get("/status/{status}")
async def by_status(
    status: DepartmentStatus,
    pagination: PaginationParams = Depends(),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await DepartmentService.list_departments(db, pagination, status=status)
    return {
        "data": [DepartmentResponse.model_validate(d) for d in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/code/{code}")
async def get_by_code(
    code: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.get_by_code(db, code)
    return {"data": DepartmentResponse.model_validate(department)}


# ── Single department ───────────────────────────────────────────────

@router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.get_department(db, department_id)
    return {"data": DepartmentResponse.model_validate(department)}


@router.put("/{department_id}")
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.update_department(db, department_id, body, actor=actor)
    return {"data": DepartmentResponse.model_validate(department), "message": "Department updated"}


@router.delete("/{department_id}", status_code=204)
async def delete_department(
    department_id: uuid.UUID,
    actor: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    await DepartmentService.delete_department(db, department_id, actor=actor)
    return Response(status_code=204)


@router.put("/{department_id}/manager")
async def assign_manager(
    department_id: uuid.UUID,
    body: ManagerRequest,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.assign_manager(
        db, department_id, body.manager_id, actor=actor,
    )
    return {"data": DepartmentResponse.model_validate(department), "message": "Manager assigned"}


@router.delete("/{department_id}/manager")
async def remove_manager(
    department_id: uuid.UUID,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.remove_manager(db, department_id, actor=actor)
    return {"data": DepartmentResponse.model_validate(department), "message": "Manager removed"}


@router.put("/{department_id}/parent")
async def set_parent(
    department_id: uuid.UUID,
    body: ParentRequest,
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.set_parent(db, department_id, body.parent_department_id)
    return {"data": DepartmentResponse.model_validate(department), "message": "Parent updated"}


@router.delete("/{department_id}/parent")
async def remove_parent(
    department_id: uuid.UUID,
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    department = await DepartmentService.remove_parent(db, department_id)
    return {"data": DepartmentResponse.model_validate(department), "message": "Parent removed"}


@router.get("/{department_id}/sub-departments")
async def sub_departments(
    department_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _many(await DepartmentService.get_sub_departments(db, department_id))


@router.get("/{department_id}/employee-count")
async def employee_count(
    department_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await DepartmentService.get_department(db, department_id)
    count = await DepartmentService.employee_count(db, department_id)
    return {"data": {"department_id": department_id, "count": count}}


@router.post("/{department_id}/transfer")
async def transfer_employee(
    department_id: uuid.UUID,
    body: TransferRequest,
    actor: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    employee = await DepartmentService.transfer_employee(
        db, department_id, body.employee_id, actor=actor,
    )
    return {"data": EmployeeSummary.model_validate(employee), "message": "Employee transferred"}

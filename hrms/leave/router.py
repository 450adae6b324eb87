"""Leave router — leave types, balances, the request workflow and supporting documents."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import (
    get_current_user,
    has_role,
    linked_employee_id,
    require_permission,
    require_role,
)
from hrms.auth.models import User
from hrms.common.constants import LeaveStatus, UserRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.leave.documents import LeaveDocumentService
from hrms.leave.models import LeaveDocument, LeaveRequest
from hrms.leave.schemas import (
    LeaveBalanceCreate,
    LeaveBalanceResponse,
    LeaveBalanceUpdate,
    LeaveDecision,
    LeaveDocumentResponse,
    LeaveDocumentUpdate,
    LeaveRejection,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from hrms.leave.service import LeaveBalanceService, LeaveRequestService, LeaveTypeService

router = APIRouter(prefix="", tags=["leave"])

_configure = require_permission("LEAVE_CONFIGURE")
_approve = require_permission("LEAVE_APPROVE")
_manager = require_role(UserRole.manager)
_hr = require_role(UserRole.hr)
_admin = require_role(UserRole.admin)


def _types(rows) -> dict:
    return {"data": [LeaveTypeResponse.model_validate(r) for r in rows]}


def _balances(rows) -> dict:
    return {"data": [LeaveBalanceResponse.model_validate(r) for r in rows]}


def _requests(rows) -> dict:
    return {"data": [LeaveRequestResponse.model_validate(r) for r in rows]}


def _check_owner_or(request: Request, user: User, employee_id: uuid.UUID, role: UserRole) -> None:
    """Callers may act on their own records; others need *role*."""
    if user.employee_id == employee_id:
        return
    if not has_role(request, role):
        raise ForbiddenException("You can only access your own leave records.")


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


@router.get("/types")
async def list_leave_types(
    active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _types(await LeaveTypeService.list_types(db, active=active, search=search))


@router.post("/types", status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    leave_type = await LeaveTypeService.create(db, body, actor=actor)
    return {"data": LeaveTypeResponse.model_validate(leave_type), "message": "Leave type created"}


@router.get("/types/active")
async def active_leave_types(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _types(await LeaveTypeService.list_types(db, active=True))


@router.get("/types/inactive")
async def inactive_leave_types(
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _types(await LeaveTypeService.list_types(db, active=False))


@router.get("/types/name-available")
async def leave_type_name_available(
    name: str = Query(..., min_length=1),
    exclude_id: Optional[uuid.UUID] = Query(None),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    available = await LeaveTypeService.name_available(db, name, exclude_id=exclude_id)
    return {"data": {"name": name, "available": available}}


@router.get("/types/name/{name}")
async def leave_type_by_name(
    name: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": LeaveTypeResponse.model_validate(await LeaveTypeService.get_by_name(db, name))}


@router.get("/types/{leave_type_id}")
async def get_leave_type(
    leave_type_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": LeaveTypeResponse.model_validate(await LeaveTypeService.get(db, leave_type_id))}


@router.put("/types/{leave_type_id}")
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    leave_type = await LeaveTypeService.update(db, leave_type_id, body, actor=actor)
    return {"data": LeaveTypeResponse.model_validate(leave_type), "message": "Leave type updated"}


@router.post("/types/{leave_type_id}/activate")
async def activate_leave_type(
    leave_type_id: uuid.UUID,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    leave_type = await LeaveTypeService.set_active(db, leave_type_id, True, actor=actor)
    return {"data": LeaveTypeResponse.model_validate(leave_type), "message": "Leave type activated"}


@router.post("/types/{leave_type_id}/deactivate")
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    leave_type = await LeaveTypeService.set_active(db, leave_type_id, False, actor=actor)
    return {"data": LeaveTypeResponse.model_validate(leave_type), "message": "Leave type deactivated"}


@router.delete("/types/{leave_type_id}", status_code=204)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    await LeaveTypeService.delete(db, leave_type_id, actor=actor)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Leave balances
# ═════════════════════════════════════════════════════════════════════


@router.get("/balances")
async def list_balances(
    year: Optional[int] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    result = await LeaveBalanceService.list_balances(db, pagination, year=year)
    return {
        "data": [LeaveBalanceResponse.model_validate(b) for b in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/balances", status_code=201)
async def create_balance(
    body: LeaveBalanceCreate,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    balance = await LeaveBalanceService.create(db, body, actor=actor)
    return {"data": LeaveBalanceResponse.model_validate(balance), "message": "Leave balance created"}


@router.get("/balances/me")
async def my_balances(
    year: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee_id = linked_employee_id(user)
    return _balances(await LeaveBalanceService.for_employee(db, employee_id, year or date.today().year))


@router.get("/balances/statistics")
async def balance_statistics(
    year: Optional[int] = Query(None),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await LeaveBalanceService.statistics(db, year or date.today().year)}


@router.get("/balances/expiring")
async def expiring_balances(
    year: Optional[int] = Query(None),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _balances(await LeaveBalanceService.expiring(db, year or date.today().year))


@router.get("/balances/check")
async def check_balance(
    request: Request,
    employee_id: uuid.UUID = Query(...),
    leave_type_id: uuid.UUID = Query(...),
    days: Decimal = Query(..., gt=0),
    year: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_owner_or(request, user, employee_id, UserRole.manager)
    result = await LeaveBalanceService.check(
        db, employee_id, leave_type_id, year or date.today().year, days,
    )
    return {"data": result}


@router.get("/balances/employee/{employee_id}")
async def employee_balances(
    request: Request,
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_owner_or(request, user, employee_id, UserRole.manager)
    return _balances(await LeaveBalanceService.for_employee(db, employee_id, year))


@router.get("/balances/employee/{employee_id}/current")
async def employee_current_balances(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_owner_or(request, user, employee_id, UserRole.manager)
    return _balances(await LeaveBalanceService.for_employee(db, employee_id, date.today().year))


@router.get("/balances/employee/{employee_id}/type/{leave_type_id}/year/{year}")
async def employee_type_balance(
    request: Request,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_owner_or(request, user, employee_id, UserRole.manager)
    balance = await LeaveBalanceService.get_for(db, employee_id, leave_type_id, year)
    return {"data": LeaveBalanceResponse.model_validate(balance)}


@router.post("/balances/employee/{employee_id}/initialize")
async def initialize_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None),
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    balances = await LeaveBalanceService.initialize_year(
        db, employee_id, year or date.today().year, actor=actor,
    )
    return {**_balances(balances), "message": "Leave balances initialized"}


@router.get("/balances/{balance_id}")
async def get_balance(
    balance_id: uuid.UUID,
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": LeaveBalanceResponse.model_validate(await LeaveBalanceService.get(db, balance_id))}


@router.put("/balances/{balance_id}")
async def update_balance(
    balance_id: uuid.UUID,
    body: LeaveBalanceUpdate,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    balance = await LeaveBalanceService.update(db, balance_id, body, actor=actor)
    return {"data": LeaveBalanceResponse.model_validate(balance), "message": "Leave balance updated"}


@router.delete("/balances/{balance_id}", status_code=204)
async def delete_balance(
    balance_id: uuid.UUID,
    actor: User = Depends(_configure),
    db: AsyncSession = Depends(get_db),
):
    await LeaveBalanceService.delete(db, balance_id, actor=actor)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Leave requests
# ═════════════════════════════════════════════════════════════════════


@router.get("/requests")
async def list_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    result = await LeaveRequestService.list_requests(
        db, pagination,
        employee_id=employee_id, status=status, leave_type_id=leave_type_id,
    )
    return {
        "data": [LeaveRequestResponse.model_validate(r) for r in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/requests", status_code=201)
async def create_request(
    request: Request,
    body: LeaveRequestCreate,
    user: User = Depends(require_permission("LEAVE_REQUEST")),
    db: AsyncSession = Depends(get_db),
):
    employee_id = body.employee_id or linked_employee_id(user)
    _check_owner_or(request, user, employee_id, UserRole.hr)
    leave_req = await LeaveRequestService.create(db, employee_id, body, actor=user)
    return {"data": LeaveRequestResponse.model_validate(leave_req), "message": "Leave request submitted"}


@router.get("/requests/me")
async def my_requests(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await LeaveRequestService.list_requests(
        db, pagination, employee_id=linked_employee_id(user), status=status,
    )
    return {
        "data": [LeaveRequestResponse.model_validate(r) for r in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/requests/pending")
async def pending_requests(
    _: User = Depends(_approve),
    db: AsyncSession = Depends(get_db),
):
    return _requests(await LeaveRequestService.find(db, LeaveRequest.status == LeaveStatus.pending))


@router.get("/requests/manager-queue")
async def manager_queue(
    user: User = Depends(_approve),
    db: AsyncSession = Depends(get_db),
):
    return _requests(await LeaveRequestService.manager_queue(db, linked_employee_id(user)))


@router.get("/requests/calendar")
async def leave_calendar(
    start_date: date = Query(...),
    end_date: date = Query(...),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _requests(await LeaveRequestService.calendar(db, start_date, end_date))


@router.get("/requests/date-range")
async def requests_in_range(
    start_date: date = Query(...),
    end_date: date = Query(...),
    status: Optional[LeaveStatus] = Query(None),
    _: User = Depends(_manager),
    db: AsyncSession = Depends(get_db),
):
    return _requests(await LeaveRequestService.in_range(db, start_date, end_date, status=status))


@router.get("/requests/employee/{employee_id}")
async def employee_requests(
    request: Request,
    employee_id: uuid.UUID,
    status: Optional[LeaveStatus] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_owner_or(request, user, employee_id, UserRole.manager)
    criteria = [LeaveRequest.employee_id == employee_id]
    if status is not None:
        criteria.append(LeaveRequest.status == status)
    return _requests(await LeaveRequestService.find(db, *criteria))


@router.get("/requests/employee/{employee_id}/upcoming")
async def employee_upcoming(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_owner_or(request, user, employee_id, UserRole.manager)
    return _requests(await LeaveRequestService.upcoming_for(db, employee_id))


@router.get("/requests/employee/{employee_id}/overlapping")
async def employee_overlapping(
    request: Request,
    employee_id: uuid.UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_owner_or(request, user, employee_id, UserRole.manager)
    return _requests(await LeaveRequestService.overlapping(db, employee_id, start_date, end_date))


@router.get("/requests/{request_id}")
async def get_request(
    request: Request,
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.get(db, request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.manager)
    return {"data": LeaveRequestResponse.model_validate(leave_req)}


@router.put("/requests/{request_id}")
async def update_request(
    request: Request,
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.get(db, request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.hr)
    leave_req = await LeaveRequestService.update(db, request_id, body, actor=user)
    return {"data": LeaveRequestResponse.model_validate(leave_req), "message": "Leave request updated"}


@router.post("/requests/{request_id}/approve")
async def approve_request(
    request_id: uuid.UUID,
    body: Optional[LeaveDecision] = None,
    actor: User = Depends(_approve),
    db: AsyncSession = Depends(get_db),
):
    comments = body.comments if body else None
    leave_req = await LeaveRequestService.approve(db, request_id, comments, actor=actor)
    return {"data": LeaveRequestResponse.model_validate(leave_req), "message": "Leave request approved"}


@router.post("/requests/{request_id}/reject")
async def reject_request(
    request_id: uuid.UUID,
    body: LeaveRejection,
    actor: User = Depends(_approve),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.reject(db, request_id, body.reason, actor=actor)
    return {"data": LeaveRequestResponse.model_validate(leave_req), "message": "Leave request rejected"}


@router.post("/requests/{request_id}/cancel")
async def cancel_request(
    request: Request,
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.get(db, request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.hr)
    leave_req = await LeaveRequestService.cancel(db, request_id, actor=user)
    return {"data": LeaveRequestResponse.model_validate(leave_req), "message": "Leave request cancelled"}


@router.delete("/requests/{request_id}", status_code=204)
async def delete_request(
    request: Request,
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.get(db, request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.hr)
    await LeaveRequestService.delete(db, request_id, actor=user)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Leave documents
# ═════════════════════════════════════════════════════════════════════


def _documents(rows) -> dict:
    return {"data": [LeaveDocumentResponse.model_validate(r) for r in rows]}


async def _check_document_access(
    request: Request, db: AsyncSession, user: User, document: LeaveDocument,
) -> None:
    """Uploader, the employee on the request, or HR."""
    if document.uploaded_by == user.id:
        return
    leave_req = await LeaveRequestService.get(db, document.leave_request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.hr)


@router.get("/documents")
async def list_documents(
    pagination: PaginationParams = Depends(),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    result = await LeaveDocumentService.list_documents(db, pagination)
    return {
        "data": [LeaveDocumentResponse.model_validate(d) for d in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/documents/statistics")
async def document_statistics(
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await LeaveDocumentService.statistics(db)}


@router.get("/documents/file-type")
async def documents_by_file_type(
    file_type: str = Query(..., min_length=1),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await LeaveDocumentService.by_file_type(db, file_type))


@router.get("/documents/between")
async def documents_uploaded_between(
    start: datetime = Query(...),
    end: datetime = Query(...),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await LeaveDocumentService.uploaded_between(db, start, end))


@router.get("/documents/uploader/{user_id}")
async def documents_by_uploader(
    user_id: uuid.UUID,
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await LeaveDocumentService.by_uploader(db, user_id))


@router.post("/documents/cleanup-orphaned")
async def cleanup_orphaned_documents(
    _: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    removed = await LeaveDocumentService.cleanup_orphaned_files(db)
    return {"data": {"removed": removed}, "message": f"Removed {removed} orphaned files"}


@router.get("/documents/request/{request_id}")
async def documents_for_request(
    request: Request,
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.get(db, request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.manager)
    return _documents(await LeaveDocumentService.for_request(db, request_id))


@router.get("/documents/request/{request_id}/total-size")
async def documents_total_size(
    request: Request,
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.get(db, request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.manager)
    total = await LeaveDocumentService.total_size(db, request_id)
    return {"data": {"leave_request_id": request_id, "total_size_bytes": total}}


@router.post("/documents/request/{request_id}", status_code=201)
async def upload_document(
    request: Request,
    request_id: uuid.UUID,
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    leave_req = await LeaveRequestService.get(db, request_id)
    _check_owner_or(request, user, leave_req.employee_id, UserRole.hr)
    document = await LeaveDocumentService.upload(
        db,
        request_id,
        filename=file.filename,
        content=await file.read(),
        content_type=file.content_type,
        description=description,
        actor=user,
    )
    return {"data": LeaveDocumentResponse.model_validate(document), "message": "Document uploaded"}


@router.get("/documents/{document_id}")
async def get_document(
    request: Request,
    document_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    document = await LeaveDocumentService.get(db, document_id)
    await _check_document_access(request, db, user, document)
    return {"data": LeaveDocumentResponse.model_validate(document)}


@router.get("/documents/{document_id}/exists")
async def document_exists(
    document_id: uuid.UUID,
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": {"exists": await LeaveDocumentService.file_exists(db, document_id)}}


@router.get("/documents/{document_id}/download")
async def download_document(
    request: Request,
    document_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    document = await LeaveDocumentService.get(db, document_id)
    await _check_document_access(request, db, user, document)
    document, content = await LeaveDocumentService.download(db, document_id)
    return Response(
        content=content,
        media_type=document.file_type,
        headers={"Content-Disposition": f'attachment; filename="{document.document_name}"'},
    )


@router.put("/documents/{document_id}")
async def update_document(
    request: Request,
    document_id: uuid.UUID,
    body: LeaveDocumentUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    document = await LeaveDocumentService.get(db, document_id)
    await _check_document_access(request, db, user, document)
    document = await LeaveDocumentService.update(db, document_id, body, actor=user)
    return {"data": LeaveDocumentResponse.model_validate(document), "message": "Document updated"}


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: uuid.UUID,
    user: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    await LeaveDocumentService.delete(db, document_id, actor=user)
    return Response(status_code=204)

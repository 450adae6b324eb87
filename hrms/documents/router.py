"""Documents router — types, categories, metadata, uploads and approval."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, has_role, require_permission
from hrms.auth.models import User
from hrms.common.constants import DocumentApprovalStatus, UserRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.documents.models import Document
from hrms.documents.schemas import (
    DocumentCategoryCreate,
    DocumentCategoryResponse,
    DocumentCategoryUpdate,
    DocumentCreate,
    DocumentResponse,
    DocumentReview,
    DocumentTypeCreate,
    DocumentTypeResponse,
    DocumentTypeUpdate,
    DocumentUpdate,
    EmployeeDocumentStats,
)
from hrms.documents.service import DocumentCategoryService, DocumentService, DocumentTypeService

router = APIRouter(prefix="", tags=["documents"])

_manage = require_permission("DOCUMENT_APPROVE")


def _check_owner(request: Request, user: User, employee_id: uuid.UUID) -> None:
    """Employees see their own documents; HR and above see everything."""
    if user.employee_id == employee_id:
        return
    if not has_role(request, UserRole.hr):
        raise ForbiddenException("You can only access your own documents.")


def _documents(rows) -> dict:
    return {"data": [DocumentResponse.model_validate(d) for d in rows]}


# ── Document types ──────────────────────────────────────────────────

@router.get("/types")
async def list_document_types(
    active: Optional[bool] = Query(None),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await DocumentTypeService.list_types(db, active=active)
    return {"data": [DocumentTypeResponse.model_validate(t) for t in rows]}


@router.post("/types", status_code=201)
async def create_document_type(
    body: DocumentTypeCreate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    doc_type = await DocumentTypeService.create(db, body, actor=actor)
    return {"data": DocumentTypeResponse.model_validate(doc_type), "message": "Document type created"}


@router.get("/types/{type_id}")
async def get_document_type(
    type_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": DocumentTypeResponse.model_validate(await DocumentTypeService.get(db, type_id))}


@router.put("/types/{type_id}")
async def update_document_type(
    type_id: uuid.UUID,
    body: DocumentTypeUpdate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    doc_type = await DocumentTypeService.update(db, type_id, body, actor=actor)
    return {"data": DocumentTypeResponse.model_validate(doc_type), "message": "Document type updated"}


@router.delete("/types/{type_id}", status_code=204)
async def delete_document_type(
    type_id: uuid.UUID,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await DocumentTypeService.delete(db, type_id, actor=actor)
    return Response(status_code=204)


# ── Document categories ─────────────────────────────────────────────

@router.get("/categories")
async def list_document_categories(
    active: Optional[bool] = Query(None),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await DocumentCategoryService.list_categories(db, active=active)
    return {"data": [DocumentCategoryResponse.model_validate(c) for c in rows]}


@router.post("/categories", status_code=201)
async def create_document_category(
    body: DocumentCategoryCreate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    category = await DocumentCategoryService.create(db, body, actor=actor)
    return {"data": DocumentCategoryResponse.model_validate(category), "message": "Document category created"}


@router.get("/categories/{category_id}")
async def get_document_category(
    category_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    category = await DocumentCategoryService.get(db, category_id)
    return {"data": DocumentCategoryResponse.model_validate(category)}


@router.put("/categories/{category_id}")
async def update_document_category(
    category_id: uuid.UUID,
    body: DocumentCategoryUpdate,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    category = await DocumentCategoryService.update(db, category_id, body, actor=actor)
    return {"data": DocumentCategoryResponse.model_validate(category), "message": "Document category updated"}


@router.delete("/categories/{category_id}", status_code=204)
async def delete_document_category(
    category_id: uuid.UUID,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await DocumentCategoryService.delete(db, category_id, actor=actor)
    return Response(status_code=204)


# ── Documents ───────────────────────────────────────────────────────

@router.get("")
async def list_documents(
    pagination: PaginationParams = Depends(),
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    result = await DocumentService.list_documents(db, pagination)
    return {
        "data": [DocumentResponse.model_validate(d) for d in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("", status_code=201)
async def create_document(
    request: Request,
    body: DocumentCreate,
    user: User = Depends(require_permission("FILE_UPLOAD")),
    db: AsyncSession = Depends(get_db),
):
    _check_owner(request, user, body.employee_id)
    document = await DocumentService.create(db, body, actor=user)
    return {"data": DocumentResponse.model_validate(document), "message": "Document created"}


@router.post("/upload", status_code=201)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    employee_id: uuid.UUID = Form(...),
    document_type_id: uuid.UUID = Form(...),
    category_id: Optional[uuid.UUID] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    expiry_date: Optional[date] = Form(None),
    confidential: bool = Form(False),
    user: User = Depends(require_permission("FILE_UPLOAD")),
    db: AsyncSession = Depends(get_db),
):
    """Upload a file as a new document version for an employee."""
    _check_owner(request, user, employee_id)
    content = await file.read()
    document = await DocumentService.upload(
        db,
        employee_id=employee_id,
        document_type_id=document_type_id,
        filename=file.filename,
        content=content,
        content_type=file.content_type,
        category_id=category_id,
        description=description,
        tags=tags,
        expiry_date=expiry_date,
        confidential=confidential,
        actor=user,
    )
    return {"data": DocumentResponse.model_validate(document), "message": "Document uploaded"}


@router.get("/search")
async def search_documents(
    q: str = Query(..., min_length=1),
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await DocumentService.search(db, q))


@router.get("/expiring")
async def expiring_documents(
    days: int = Query(30, ge=0, le=3650),
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await DocumentService.expiring_within(db, days))


@router.get("/expired")
async def expired_documents(
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await DocumentService.expired(db))


@router.get("/pending-approval")
async def pending_documents(
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await DocumentService.pending_approval(db))


@router.get("/status/{status}")
async def documents_by_status(
    status: DocumentApprovalStatus,
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return _documents(await DocumentService.find(db, Document.approval_status == status))


@router.get("/type/{type_id}")
async def documents_by_type(
    type_id: uuid.UUID,
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await DocumentTypeService.get(db, type_id)
    return _documents(await DocumentService.find(db, Document.document_type_id == type_id))


@router.get("/category/{category_id}")
async def documents_by_category(
    category_id: uuid.UUID,
    _: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await DocumentCategoryService.get(db, category_id)
    return _documents(await DocumentService.find(db, Document.category_id == category_id))


@router.get("/employee/{employee_id}")
async def employee_documents(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(require_permission("DOCUMENT_READ_OWN")),
    db: AsyncSession = Depends(get_db),
):
    _check_owner(request, user, employee_id)
    return _documents(await DocumentService.for_employee(db, employee_id))


@router.get("/employee/{employee_id}/active")
async def employee_active_documents(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(require_permission("DOCUMENT_READ_OWN")),
    db: AsyncSession = Depends(get_db),
):
    _check_owner(request, user, employee_id)
    return _documents(await DocumentService.for_employee(db, employee_id, active_only=True))


@router.get("/employee/{employee_id}/stats")
async def employee_document_stats(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(require_permission("DOCUMENT_READ_OWN")),
    db: AsyncSession = Depends(get_db),
):
    _check_owner(request, user, employee_id)
    stats = EmployeeDocumentStats(
        employee_id=employee_id,
        document_count=await DocumentService.count_for_employee(db, employee_id),
        total_size=await DocumentService.total_size(db, employee_id),
    )
    return {"data": stats}


@router.get("/employee/{employee_id}/has-type/{type_id}")
async def employee_has_document_type(
    request: Request,
    employee_id: uuid.UUID,
    type_id: uuid.UUID,
    user: User = Depends(require_permission("DOCUMENT_READ_OWN")),
    db: AsyncSession = Depends(get_db),
):
    _check_owner(request, user, employee_id)
    found = await DocumentService.has_type(db, employee_id, type_id)
    return {"data": {"employee_id": employee_id, "document_type_id": type_id, "has_document": found}}


@router.get("/{document_id}")
async def get_document(
    request: Request,
    document_id: uuid.UUID,
    user: User = Depends(require_permission("DOCUMENT_READ_OWN")),
    db: AsyncSession = Depends(get_db),
):
    document = await DocumentService.get(db, document_id)
    _check_owner(request, user, document.employee_id)
    return {"data": DocumentResponse.model_validate(document)}


@router.put("/{document_id}")
async def update_document(
    request: Request,
    document_id: uuid.UUID,
    body: DocumentUpdate,
    user: User = Depends(require_permission("FILE_UPLOAD")),
    db: AsyncSession = Depends(get_db),
):
    document = await DocumentService.get(db, document_id)
    _check_owner(request, user, document.employee_id)
    document = await DocumentService.update(db, document_id, body, actor=user)
    return {"data": DocumentResponse.model_validate(document), "message": "Document updated"}


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: uuid.UUID,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    await DocumentService.delete(db, document_id, actor=actor)
    return Response(status_code=204)


@router.get("/{document_id}/download")
async def download_document(
    request: Request,
    document_id: uuid.UUID,
    user: User = Depends(require_permission("DOCUMENT_READ_OWN")),
    db: AsyncSession = Depends(get_db),
):
    document = await DocumentService.get(db, document_id)
    _check_owner(request, user, document.employee_id)
    document, content = await DocumentService.download(db, document_id)
    return Response(
        content=content,
        media_type=document.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{document.name}"'},
    )


@router.post("/{document_id}/approve")
async def approve_document(
    document_id: uuid.UUID,
    body: Optional[DocumentReview] = None,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    notes = body.notes if body else None
    document = await DocumentService.approve(db, document_id, notes, actor=actor)
    return {"data": DocumentResponse.model_validate(document), "message": "Document approved"}


@router.post("/{document_id}/reject")
async def reject_document(
    document_id: uuid.UUID,
    body: Optional[DocumentReview] = None,
    actor: User = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    notes = body.notes if body else None
    document = await DocumentService.reject(db, document_id, notes, actor=actor)
    return {"data": DocumentResponse.model_validate(document), "message": "Document rejected"}

"""Document service — types, categories, versioned uploads and approval."""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction, DocumentApprovalStatus
from hrms.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.models import utcnow
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.documents.models import Document, DocumentCategory, DocumentType
from hrms.documents.schemas import (
    DocumentCategoryCreate,
    DocumentCategoryUpdate,
    DocumentCreate,
    DocumentTypeCreate,
    DocumentTypeUpdate,
    DocumentUpdate,
)
from hrms.employees.models import Employee
from hrms.files import storage
from hrms.notifications.service import notify_document_approved, notify_document_rejected

logger = logging.getLogger(__name__)

SORT_FIELDS = ("name", "version", "expiry_date", "approval_status", "created_at")


async def _ensure_employee(db: AsyncSession, employee_id: uuid.UUID) -> None:
    if await db.get(Employee, employee_id) is None:
        raise NotFoundException("Employee", str(employee_id))


# ═════════════════════════════════════════════════════════════════════
# Types and categories
# ═════════════════════════════════════════════════════════════════════


class DocumentTypeService:

    @staticmethod
    async def get(db: AsyncSession, type_id: uuid.UUID) -> DocumentType:
        doc_type = await db.get(DocumentType, type_id)
        if doc_type is None:
            raise NotFoundException("DocumentType", str(type_id))
        return doc_type

    @staticmethod
    async def list_types(db: AsyncSession, *, active: Optional[bool] = None) -> Sequence[DocumentType]:
        query = select(DocumentType).order_by(DocumentType.name)
        if active is not None:
            query = query.where(DocumentType.active == active)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(DocumentType.id).where(func.lower(DocumentType.name) == name.lower())
        if exclude_id is not None:
            query = query.where(DocumentType.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create(db: AsyncSession, data: DocumentTypeCreate, *, actor: Any = None) -> DocumentType:
        await DocumentTypeService._ensure_name_free(db, data.name)
        doc_type = DocumentType(**data.model_dump())
        db.add(doc_type)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="document_type",
            entity_id=doc_type.id,
            new_values=data.model_dump(),
            **actor_fields(actor),
        )
        return doc_type

    @staticmethod
    async def update(
        db: AsyncSession,
        type_id: uuid.UUID,
        data: DocumentTypeUpdate,
        *,
        actor: Any = None,
    ) -> DocumentType:
        doc_type = await DocumentTypeService.get(db, type_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and changes["name"].lower() != doc_type.name.lower():
            await DocumentTypeService._ensure_name_free(db, changes["name"], exclude_id=type_id)
        old_values = {field: getattr(doc_type, field) for field in changes}
        for field, value in changes.items():
            setattr(doc_type, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="document_type",
            entity_id=doc_type.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return doc_type

    @staticmethod
    async def delete(db: AsyncSession, type_id: uuid.UUID, *, actor: Any = None) -> None:
        doc_type = await DocumentTypeService.get(db, type_id)
        in_use = await db.scalar(
            select(func.count(Document.id)).where(Document.document_type_id == type_id)
        )
        if in_use:
            raise BadRequestException(
                f"Cannot delete document type that is used by {in_use} documents"
            )
        await db.delete(doc_type)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="document_type",
            entity_id=type_id,
            old_values={"name": doc_type.name},
            **actor_fields(actor),
        )


class DocumentCategoryService:

    @staticmethod
    async def get(db: AsyncSession, category_id: uuid.UUID) -> DocumentCategory:
        category = await db.get(DocumentCategory, category_id)
        if category is None:
            raise NotFoundException("DocumentCategory", str(category_id))
        return category

    @staticmethod
    async def list_categories(db: AsyncSession, *, active: Optional[bool] = None) -> Sequence[DocumentCategory]:
        query = select(DocumentCategory).order_by(DocumentCategory.name)
        if active is not None:
            query = query.where(DocumentCategory.active == active)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def _ensure_name_free(db: AsyncSession, name: str) -> None:
        query = select(DocumentCategory.id).where(func.lower(DocumentCategory.name) == name.lower())
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create(db: AsyncSession, data: DocumentCategoryCreate, *, actor: Any = None) -> DocumentCategory:
        await DocumentCategoryService._ensure_name_free(db, data.name)
        category = DocumentCategory(**data.model_dump())
        db.add(category)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="document_category",
            entity_id=category.id,
            new_values=data.model_dump(),
            **actor_fields(actor),
        )
        return category

    @staticmethod
    async def update(
        db: AsyncSession,
        category_id: uuid.UUID,
        data: DocumentCategoryUpdate,
        *,
        actor: Any = None,
    ) -> DocumentCategory:
        category = await DocumentCategoryService.get(db, category_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and changes["name"].lower() != category.name.lower():
            await DocumentCategoryService._ensure_name_free(db, changes["name"])
        for field, value in changes.items():
            setattr(category, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="document_category",
            entity_id=category.id,
            new_values=changes,
            **actor_fields(actor),
        )
        return category

    @staticmethod
    async def delete(db: AsyncSession, category_id: uuid.UUID, *, actor: Any = None) -> None:
        category = await DocumentCategoryService.get(db, category_id)
        in_use = await db.scalar(
            select(func.count(Document.id)).where(Document.category_id == category_id)
        )
        if in_use:
            raise BadRequestException(
                f"Cannot delete document category that is used by {in_use} documents"
            )
        await db.delete(category)
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="document_category",
            entity_id=category_id,
            old_values={"name": category.name},
            **actor_fields(actor),
        )


# ═════════════════════════════════════════════════════════════════════
# Documents
# ═════════════════════════════════════════════════════════════════════


class DocumentService:

    @staticmethod
    async def get(db: AsyncSession, document_id: uuid.UUID) -> Document:
        document = await db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Document", str(document_id))
        return document

    @staticmethod
    async def list_documents(db: AsyncSession, pagination: PaginationParams) -> PaginatedResponse:
        query = apply_sorting(select(Document), Document, pagination.sort or "-created_at", allowed=SORT_FIELDS)
        return await paginate(db, query, pagination)

    @staticmethod
    async def find(db: AsyncSession, *criteria) -> Sequence[Document]:
        query = select(Document).where(*criteria).order_by(Document.created_at.desc())
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def for_employee(db: AsyncSession, employee_id: uuid.UUID, *, active_only: bool = False) -> Sequence[Document]:
        await _ensure_employee(db, employee_id)
        criteria = [Document.employee_id == employee_id]
        if active_only:
            criteria.append(Document.active.is_(True))
        return await DocumentService.find(db, *criteria)

    @staticmethod
    async def search(db: AsyncSession, term: str) -> Sequence[Document]:
        pattern = f"%{term}%"
        return await DocumentService.find(
            db,
            Document.active.is_(True),
            or_(
                Document.name.ilike(pattern),
                Document.description.ilike(pattern),
                Document.tags.ilike(pattern),
            ),
        )

    @staticmethod
    async def _next_version(db: AsyncSession, employee_id: uuid.UUID, document_type_id: uuid.UUID) -> int:
        latest = await db.scalar(
            select(func.max(Document.version)).where(
                Document.employee_id == employee_id,
                Document.document_type_id == document_type_id,
                Document.active.is_(True),
            )
        )
        return (latest or 0) + 1

    @staticmethod
    async def create(
        db: AsyncSession,
        data: DocumentCreate,
        *,
        file_path: Optional[str] = None,
        mime_type: Optional[str] = None,
        file_size: Optional[int] = None,
        actor: Any = None,
    ) -> Document:
        await _ensure_employee(db, data.employee_id)
        doc_type = await DocumentTypeService.get(db, data.document_type_id)
        if data.category_id is not None:
            await DocumentCategoryService.get(db, data.category_id)

        document = Document(
            **data.model_dump(),
            file_path=file_path,
            mime_type=mime_type,
            file_size=file_size,
            version=await DocumentService._next_version(db, data.employee_id, data.document_type_id),
            approval_status=(
                DocumentApprovalStatus.pending if doc_type.requires_approval
                else DocumentApprovalStatus.approved
            ),
            uploaded_by=actor.id if actor is not None else None,
        )
        db.add(document)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="document",
            entity_id=document.id,
            new_values={
                "name": document.name,
                "document_type_id": document.document_type_id,
                "version": document.version,
                "approval_status": document.approval_status.value,
            },
            **actor_fields(actor),
        )
        return document

    @staticmethod
    async def upload(
        db: AsyncSession,
        *,
        employee_id: uuid.UUID,
        document_type_id: uuid.UUID,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
        category_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
        tags: Optional[str] = None,
        expiry_date: Optional[date] = None,
        confidential: bool = False,
        actor: Any = None,
    ) -> Document:
        """Validate *content* against the document type, store it and record the document."""
        await _ensure_employee(db, employee_id)
        doc_type = await DocumentTypeService.get(db, document_type_id)

        max_bytes = doc_type.max_file_size_mb * 1024 * 1024 if doc_type.max_file_size_mb else None
        # a type without an extension list accepts any extension
        ext = storage.validate_upload(
            filename, content, allowed=doc_type.allowed_extensions, max_bytes=max_bytes,
        )

        _, path = storage.store("documents", ext, content)
        logger.info("Stored document %s for employee %s at %s", filename, employee_id, path)

        data = DocumentCreate(
            employee_id=employee_id,
            document_type_id=document_type_id,
            category_id=category_id,
            name=filename[:255],
            description=description,
            expiry_date=expiry_date,
            confidential=confidential,
            tags=tags,
        )
        return await DocumentService.create(
            db,
            data,
            file_path=path,
            mime_type=content_type,
            file_size=len(content),
            actor=actor,
        )

    @staticmethod
    async def download(db: AsyncSession, document_id: uuid.UUID) -> tuple[Document, bytes]:
        document = await DocumentService.get(db, document_id)
        if not document.file_path:
            raise BadRequestException("Document has no attached file")
        return document, storage.read(document.file_path, entity_type="DocumentFile", entity_id=str(document_id))

    @staticmethod
    async def update(
        db: AsyncSession,
        document_id: uuid.UUID,
        data: DocumentUpdate,
        *,
        actor: Any = None,
    ) -> Document:
        document = await DocumentService.get(db, document_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("category_id") is not None:
            await DocumentCategoryService.get(db, changes["category_id"])
        if "name" in changes and changes["name"] is None:
            raise BadRequestException("name cannot be null")

        old_values = {field: getattr(document, field) for field in changes}
        for field, value in changes.items():
            setattr(document, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="document",
            entity_id=document.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return document

    @staticmethod
    async def delete(db: AsyncSession, document_id: uuid.UUID, *, actor: Any = None) -> None:
        """Soft delete: clears ``active``; the stored file is kept."""
        document = await DocumentService.get(db, document_id)
        document.active = False
        await db.flush()
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="document",
            entity_id=document.id,
            old_values={"active": True},
            new_values={"active": False},
            **actor_fields(actor),
        )

    @staticmethod
    async def approve(
        db: AsyncSession,
        document_id: uuid.UUID,
        notes: Optional[str] = None,
        *,
        actor: Any = None,
    ) -> Document:
        document = await DocumentService.get(db, document_id)
        document.approval_status = DocumentApprovalStatus.approved
        document.approved_by = actor.id if actor is not None else None
        document.approved_at = utcnow()
        document.approval_notes = notes
        await db.flush()

        await create_audit_entry(
            db,
            action="APPROVE",
            entity_type="document",
            entity_id=document.id,
            new_values={"approval_status": document.approval_status.value, "notes": notes},
            **actor_fields(actor),
        )
        await notify_document_approved(db, document)
        return document

    @staticmethod
    async def reject(
        db: AsyncSession,
        document_id: uuid.UUID,
        notes: Optional[str] = None,
        *,
        actor: Any = None,
    ) -> Document:
        document = await DocumentService.get(db, document_id)
        document.approval_status = DocumentApprovalStatus.rejected
        document.rejected_by = actor.id if actor is not None else None
        document.rejected_at = utcnow()
        document.rejection_notes = notes
        await db.flush()

        await create_audit_entry(
            db,
            action="REJECT",
            entity_type="document",
            entity_id=document.id,
            new_values={"approval_status": document.approval_status.value, "notes": notes},
            **actor_fields(actor),
        )
        await notify_document_rejected(db, document)
        return document

    # ── Expiry / approval queues ──────────────────────────────────────

    @staticmethod
    async def expiring_within(db: AsyncSession, days: int) -> Sequence[Document]:
        today = date.today()
        return await DocumentService.find(
            db,
            Document.active.is_(True),
            Document.expiry_date.is_not(None),
            Document.expiry_date >= today,
            Document.expiry_date <= today + timedelta(days=days),
        )

    @staticmethod
    async def expired(db: AsyncSession) -> Sequence[Document]:
        return await DocumentService.find(
            db,
            Document.active.is_(True),
            Document.expiry_date.is_not(None),
            Document.expiry_date < date.today(),
        )

    @staticmethod
    async def pending_approval(db: AsyncSession) -> Sequence[Document]:
        return await DocumentService.find(
            db,
            Document.active.is_(True),
            Document.approval_status == DocumentApprovalStatus.pending,
        )

    # ── Per-employee figures ──────────────────────────────────────────

    @staticmethod
    async def total_size(db: AsyncSession, employee_id: uuid.UUID) -> int:
        total = await db.scalar(
            select(func.coalesce(func.sum(Document.file_size), 0)).where(
                Document.employee_id == employee_id,
                Document.active.is_(True),
            )
        )
        return int(total or 0)

    @staticmethod
    async def count_for_employee(db: AsyncSession, employee_id: uuid.UUID) -> int:
        count = await db.scalar(
            select(func.count(Document.id)).where(
                Document.employee_id == employee_id,
                Document.active.is_(True),
            )
        )
        return count or 0

    @staticmethod
    async def has_type(db: AsyncSession, employee_id: uuid.UUID, document_type_id: uuid.UUID) -> bool:
        found = await db.scalar(
            select(Document.id).where(
                Document.employee_id == employee_id,
                Document.document_type_id == document_type_id,
                Document.active.is_(True),
            ).limit(1)
        )
        return found is not None

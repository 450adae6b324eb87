"""Supporting documents attached to leave requests, stored on local disk."""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction
from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.config import settings
from hrms.files import storage
from hrms.leave.models import LeaveDocument, LeaveRequest
from hrms.leave.schemas import LeaveDocumentStatistics, LeaveDocumentUpdate

logger = logging.getLogger(__name__)

SUBDIR = "leave-documents"
MAX_DOCUMENT_BYTES = 10 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "text/plain",
})

SORT_FIELDS = ("document_name", "file_type", "file_size", "created_at")


def _mime(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def _upload_dir() -> str:
    return os.path.join(settings.UPLOAD_DIR, SUBDIR)


class LeaveDocumentService:

    @staticmethod
    async def get(db: AsyncSession, document_id: uuid.UUID) -> LeaveDocument:
        document = await db.get(LeaveDocument, document_id)
        if document is None:
            raise NotFoundException("LeaveDocument", str(document_id))
        return document

    @staticmethod
    async def list_documents(db: AsyncSession, pagination: PaginationParams) -> PaginatedResponse:
        query = apply_sorting(
            select(LeaveDocument), LeaveDocument, pagination.sort or "-created_at", allowed=SORT_FIELDS,
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def _find(db: AsyncSession, *criteria) -> Sequence[LeaveDocument]:
        result = await db.execute(
            select(LeaveDocument).where(*criteria).order_by(LeaveDocument.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def for_request(db: AsyncSession, leave_request_id: uuid.UUID) -> Sequence[LeaveDocument]:
        if await db.get(LeaveRequest, leave_request_id) is None:
            raise NotFoundException("LeaveRequest", str(leave_request_id))
        return await LeaveDocumentService._find(db, LeaveDocument.leave_request_id == leave_request_id)

    @staticmethod
    async def by_file_type(db: AsyncSession, file_type: str) -> Sequence[LeaveDocument]:
        return await LeaveDocumentService._find(db, LeaveDocument.file_type == _mime(file_type))

    @staticmethod
    async def by_uploader(db: AsyncSession, user_id: uuid.UUID) -> Sequence[LeaveDocument]:
        return await LeaveDocumentService._find(db, LeaveDocument.uploaded_by == user_id)

    @staticmethod
    async def uploaded_between(db: AsyncSession, start: datetime, end: datetime) -> Sequence[LeaveDocument]:
        if start > end:
            raise BadRequestException("Start must not be after end")
        return await LeaveDocumentService._find(
            db, LeaveDocument.created_at >= start, LeaveDocument.created_at <= end,
        )

    # ── Upload / edit / delete ────────────────────────────────────────

    @staticmethod
    async def upload(
        db: AsyncSession,
        leave_request_id: uuid.UUID,
        *,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
        description: Optional[str] = None,
        actor: Any = None,
    ) -> LeaveDocument:
        leave_req = await db.get(LeaveRequest, leave_request_id)
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(leave_request_id))

        # the MIME whitelist decides, not the extension
        ext = storage.validate_upload(filename, content, allowed=set(), max_bytes=MAX_DOCUMENT_BYTES)
        mime = _mime(content_type)
        if mime not in ALLOWED_MIME_TYPES:
            raise BadRequestException(
                f"File type '{mime or 'unknown'}' is not allowed",
                errors={"file": ["Allowed: PDF, Word, JPEG, PNG, plain text"]},
            )

        stored_name, path = storage.store(SUBDIR, ext, content)
        document = LeaveDocument(
            leave_request_id=leave_req.id,
            document_name=filename,
            file_path=path,
            file_type=mime,
            file_size=len(content),
            description=description,
            uploaded_by=actor.id if actor is not None else None,
        )
        db.add(document)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="leave_document",
            entity_id=document.id,
            new_values={
                "leave_request_id": leave_req.id,
                "document_name": document.document_name,
                "file_type": mime,
                "file_size": document.file_size,
            },
            **actor_fields(actor),
        )
        logger.info("Stored leave document %s for request %s as %s", filename, leave_req.id, stored_name)
        return document

    @staticmethod
    async def update(
        db: AsyncSession, document_id: uuid.UUID, data: LeaveDocumentUpdate, *, actor: Any = None,
    ) -> LeaveDocument:
        document = await LeaveDocumentService.get(db, document_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        old = {k: getattr(document, k) for k in changes}
        for key, value in changes.items():
            setattr(document, key, value)
        await db.flush()

        if changes:
            await create_audit_entry(
                db,
                action=AuditAction.UPDATE,
                entity_type="leave_document",
                entity_id=document.id,
                old_values=old,
                new_values=changes,
                **actor_fields(actor),
            )
        return document

    @staticmethod
    async def delete(db: AsyncSession, document_id: uuid.UUID, *, actor: Any = None) -> None:
        """Remove the row and its file on disk."""
        document = await LeaveDocumentService.get(db, document_id)
        path = document.file_path
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="leave_document",
            entity_id=document.id,
            old_values={
                "leave_request_id": document.leave_request_id,
                "document_name": document.document_name,
            },
            **actor_fields(actor),
        )
        await db.delete(document)
        await db.flush()

        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning("Leave document file already gone: %s", path)

    @staticmethod
    async def download(db: AsyncSession, document_id: uuid.UUID) -> tuple[LeaveDocument, bytes]:
        document = await LeaveDocumentService.get(db, document_id)
        content = storage.read(document.file_path, entity_type="LeaveDocumentFile", entity_id=str(document_id))
        return document, content

    @staticmethod
    async def file_exists(db: AsyncSession, document_id: uuid.UUID) -> bool:
        document = await db.get(LeaveDocument, document_id)
        return document is not None and os.path.isfile(document.file_path)

    # ── Totals ────────────────────────────────────────────────────────

    @staticmethod
    async def total_size(db: AsyncSession, leave_request_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(LeaveDocument.file_size), 0))
            .where(LeaveDocument.leave_request_id == leave_request_id)
        )
        return int(result.scalar_one())

    @staticmethod
    async def statistics(db: AsyncSession) -> LeaveDocumentStatistics:
        def count_where(*criteria):
            return select(func.count(LeaveDocument.id)).where(*criteria)

        total, size = (await db.execute(
            select(func.count(LeaveDocument.id), func.coalesce(func.sum(LeaveDocument.file_size), 0))
        )).one()
        pdfs = (await db.execute(count_where(LeaveDocument.file_type == "application/pdf"))).scalar_one()
        images = (await db.execute(count_where(LeaveDocument.file_type.like("image/%")))).scalar_one()
        docs = (await db.execute(count_where(or_(
            LeaveDocument.file_type.contains("word"),
            LeaveDocument.file_type.contains("document"),
        )))).scalar_one()
        size = int(size)
        return LeaveDocumentStatistics(
            total_documents=total,
            total_size_bytes=size,
            total_size_mb=round(size / (1024 * 1024), 2),
            pdf_count=pdfs,
            image_count=images,
            document_count=docs,
        )

    @staticmethod
    async def cleanup_orphaned_files(db: AsyncSession) -> int:
        """Delete files in the documents directory that no row points at."""
        upload_dir = _upload_dir()
        if not os.path.isdir(upload_dir):
            return 0
        result = await db.execute(select(LeaveDocument.file_path))
        referenced = {os.path.basename(p) for p in result.scalars().all()}

        removed = 0
        for name in os.listdir(upload_dir):
            path = os.path.join(upload_dir, name)
            if name in referenced or not os.path.isfile(path):
                continue
            os.remove(path)
            removed += 1
        if removed:
            logger.info("Removed %d orphaned leave document files", removed)
        return removed

"""File service — checksummed uploads, employee photos and lifecycle."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction, FileStatus, FileType
from hrms.common.exceptions import AppException, BadRequestException, ConflictError, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.models import utcnow
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.employees.models import Employee
from hrms.files import storage
from hrms.files.models import StoredFile
from hrms.files.schemas import BulkUploadItem, FileResponse, FileStatistics, TypeStatistics

logger = logging.getLogger(__name__)

SORT_FIELDS = ("original_filename", "file_size", "file_type", "download_count", "created_at")


async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee


class FileService:

    @staticmethod
    async def get(db: AsyncSession, file_id: uuid.UUID) -> StoredFile:
        stored = await db.get(StoredFile, file_id)
        if stored is None:
            raise NotFoundException("File", str(file_id))
        return stored

    @staticmethod
    async def list_files(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        file_type: Optional[FileType] = None,
    ) -> PaginatedResponse:
        query = select(StoredFile).where(StoredFile.status != FileStatus.deleted)
        if file_type is not None:
            query = query.where(StoredFile.file_type == file_type)
        query = apply_sorting(query, StoredFile, pagination.sort or "-created_at", allowed=SORT_FIELDS)
        return await paginate(db, query, pagination)

    @staticmethod
    async def search(db: AsyncSession, term: str, pagination: PaginationParams) -> PaginatedResponse:
        pattern = f"%{term}%"
        query = (
            select(StoredFile)
            .where(
                StoredFile.status == FileStatus.active,
                or_(
                    StoredFile.original_filename.ilike(pattern),
                    StoredFile.description.ilike(pattern),
                    StoredFile.tags.ilike(pattern),
                ),
            )
            .order_by(StoredFile.created_at.desc())
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def for_employee(db: AsyncSession, employee_id: uuid.UUID) -> Sequence[StoredFile]:
        await _get_employee(db, employee_id)
        result = await db.execute(
            select(StoredFile)
            .where(StoredFile.employee_id == employee_id, StoredFile.status == FileStatus.active)
            .order_by(StoredFile.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def active_photo(db: AsyncSession, employee_id: uuid.UUID) -> Optional[StoredFile]:
        result = await db.execute(
            select(StoredFile)
            .where(
                StoredFile.employee_id == employee_id,
                StoredFile.file_type == FileType.employee_photo,
                StoredFile.status == FileStatus.active,
            )
            .order_by(StoredFile.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    # ── Upload ────────────────────────────────────────────────────────

    @staticmethod
    async def upload(
        db: AsyncSession,
        *,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
        file_type: FileType,
        employee_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
        tags: Optional[str] = None,
        is_public: bool = False,
        actor: Any = None,
    ) -> StoredFile:
        """
        Store an upload and record it.

        Raises:
            BadRequestException: empty, oversized, unsafe name or extension.
            ConflictError: the employee already has a file with the same checksum.
        """
        ext = storage.validate_upload(filename, content)
        checksum = storage.md5_checksum(content)

        employee = None
        if employee_id is not None:
            employee = await _get_employee(db, employee_id)
            duplicate = await db.scalar(
                select(StoredFile.id).where(
                    StoredFile.employee_id == employee_id,
                    StoredFile.checksum == checksum,
                    StoredFile.status != FileStatus.deleted,
                ).limit(1)
            )
            if duplicate is not None:
                raise ConflictError("checksum", checksum)

        stored_name, path = storage.store("files", ext, content)
        stored = StoredFile(
            filename=stored_name,
            original_filename=filename,
            file_path=path,
            mime_type=content_type,
            file_size=len(content),
            file_type=file_type,
            status=FileStatus.active,
            description=description,
            tags=tags,
            is_public=is_public,
            checksum=checksum,
            employee_id=employee_id,
            uploaded_by=actor.id if actor is not None else None,
        )

        if employee is not None and file_type == FileType.employee_photo:
            previous = await FileService.active_photo(db, employee.id)
            if previous is not None:
                previous.status = FileStatus.archived

        db.add(stored)
        await db.flush()

        if employee is not None and file_type == FileType.employee_photo:
            employee.profile_picture_url = stored.url

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="file",
            entity_id=stored.id,
            new_values={
                "original_filename": stored.original_filename,
                "file_type": stored.file_type.value,
                "file_size": stored.file_size,
                "employee_id": employee_id,
            },
            **actor_fields(actor),
        )
        logger.info("Stored file %s (%d bytes) as %s", filename, len(content), stored_name)
        return stored

    @staticmethod
    async def upload_photo(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
        actor: Any = None,
    ) -> StoredFile:
        if not content_type or not content_type.startswith("image/"):
            raise BadRequestException("File must be an image", errors={"file": ["File must be an image"]})
        await _get_employee(db, employee_id)
        return await FileService.upload(
            db,
            filename=filename,
            content=content,
            content_type=content_type,
            file_type=FileType.employee_photo,
            employee_id=employee_id,
            description="Employee profile photo",
            actor=actor,
        )

    @staticmethod
    async def bulk_upload(
        db: AsyncSession,
        files: list[tuple[Optional[str], bytes, Optional[str]]],
        *,
        file_type: FileType,
        employee_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
        tags: Optional[str] = None,
        is_public: bool = False,
        actor: Any = None,
    ) -> list[BulkUploadItem]:
        """Upload each ``(filename, content, content_type)``; failures are reported per file."""
        results: list[BulkUploadItem] = []
        for filename, content, content_type in files:
            try:
                stored = await FileService.upload(
                    db,
                    filename=filename,
                    content=content,
                    content_type=content_type,
                    file_type=file_type,
                    employee_id=employee_id,
                    description=description,
                    tags=tags,
                    is_public=is_public,
                    actor=actor,
                )
            except AppException as exc:
                logger.warning("Bulk upload skipped %s: %s", filename, exc.detail)
                results.append(BulkUploadItem(original_filename=filename, error=exc.detail))
                continue
            results.append(BulkUploadItem(
                original_filename=filename,
                file=FileResponse.model_validate(stored),
            ))
        return results

    # ── Download / lifecycle ──────────────────────────────────────────

    @staticmethod
    async def download(db: AsyncSession, file_id: uuid.UUID) -> tuple[StoredFile, bytes]:
        stored = await FileService.get(db, file_id)
        if stored.status != FileStatus.active:
            raise BadRequestException("File is not available for download")
        if stored.expired:
            raise BadRequestException("File has expired")

        content = storage.read(stored.file_path, entity_type="File", entity_id=str(file_id))
        stored.download_count += 1
        stored.last_accessed_at = utcnow()
        await db.flush()
        return stored, content

    @staticmethod
    async def delete(db: AsyncSession, file_id: uuid.UUID, *, actor: Any = None) -> None:
        """Soft delete; a deleted photo also clears the employee's profile picture."""
        stored = await FileService.get(db, file_id)
        old_status = stored.status
        stored.status = FileStatus.deleted

        if stored.file_type == FileType.employee_photo and stored.employee_id is not None:
            employee = await db.get(Employee, stored.employee_id)
            if employee is not None and employee.profile_picture_url == stored.url:
                employee.profile_picture_url = None
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="file",
            entity_id=stored.id,
            old_values={"status": old_status.value},
            new_values={"status": FileStatus.deleted.value},
            **actor_fields(actor),
        )

    @staticmethod
    async def delete_photo(db: AsyncSession, employee_id: uuid.UUID, *, actor: Any = None) -> None:
        employee = await _get_employee(db, employee_id)
        photo = await FileService.active_photo(db, employee_id)
        if photo is None:
            raise NotFoundException("EmployeePhoto", str(employee_id))
        await FileService.delete(db, photo.id, actor=actor)
        employee.profile_picture_url = None
        await db.flush()

    @staticmethod
    async def mark_expired(db: AsyncSession) -> int:
        """Flag ACTIVE files whose ``expires_at`` has passed; returns how many changed."""
        result = await db.execute(
            update(StoredFile)
            .where(
                StoredFile.status == FileStatus.active,
                StoredFile.expires_at.is_not(None),
                StoredFile.expires_at < utcnow(),
            )
            .values(status=FileStatus.expired)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            logger.info("Marked %d files as expired", count)
        return count

    # ── Statistics ────────────────────────────────────────────────────

    @staticmethod
    async def statistics(db: AsyncSession) -> FileStatistics:
        totals = (await db.execute(
            select(func.count(StoredFile.id), func.coalesce(func.sum(StoredFile.file_size), 0))
            .where(StoredFile.status == FileStatus.active)
        )).one()
        rows = (await db.execute(
            select(
                StoredFile.file_type,
                func.count(StoredFile.id),
                func.coalesce(func.sum(StoredFile.file_size), 0),
            )
            .where(StoredFile.status == FileStatus.active)
            .group_by(StoredFile.file_type)
        )).all()
        return FileStatistics(
            total_files=totals[0],
            total_size=int(totals[1]),
            by_type={
                file_type.value: TypeStatistics(count=count, size=int(size))
                for file_type, count, size in rows
            },
        )

    @staticmethod
    async def employee_statistics(db: AsyncSession, employee_id: uuid.UUID) -> FileStatistics:
        await _get_employee(db, employee_id)
        totals = (await db.execute(
            select(func.count(StoredFile.id), func.coalesce(func.sum(StoredFile.file_size), 0))
            .where(StoredFile.employee_id == employee_id, StoredFile.status == FileStatus.active)
        )).one()
        return FileStatistics(total_files=totals[0], total_size=int(totals[1]))

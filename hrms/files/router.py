"""Files router — uploads, downloads, employee photos and statistics."""


import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, has_role, require_permission, require_role
from hrms.auth.models import User
from hrms.common.constants import FileType, UserRole
from hrms.common.exceptions import ForbiddenException, NotFoundException
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.files.models import StoredFile
from hrms.files.schemas import FileMetadata, FileResponse
from hrms.files.service import FileService

router = APIRouter(prefix="", tags=["files"])

_upload = require_permission("FILE_UPLOAD")
_hr = require_role(UserRole.hr)


def _check_access(request: Request, user: User, stored: StoredFile) -> None:
    if stored.is_public or stored.uploaded_by == user.id:
        return
    if stored.employee_id is not None and stored.employee_id == user.employee_id:
        return
    if not has_role(request, UserRole.hr):
        raise ForbiddenException("You do not have access to this file.")


def _check_employee(request: Request, user: User, employee_id: Optional[uuid.UUID]) -> None:
    if employee_id is None or employee_id == user.employee_id:
        return
    if not has_role(request, UserRole.hr):
        raise ForbiddenException("You can only manage your own files.")


def _download(stored: StoredFile, content: bytes) -> Response:
    return Response(
        content=content,
        media_type=stored.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{stored.original_filename}"'},
    )


# ── Collection ──────────────────────────────────────────────────────

@router.get("")
async def list_files(
    file_type: Optional[FileType] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    result = await FileService.list_files(db, pagination, file_type=file_type)
    return {
        "data": [FileResponse.model_validate(f) for f in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/upload", status_code=201)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    file_type: FileType = Form(FileType.document),
    employee_id: Optional[uuid.UUID] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_public: bool = Form(False),
    user: User = Depends(_upload),
    db: AsyncSession = Depends(get_db),
):
    _check_employee(request, user, employee_id)
    stored = await FileService.upload(
        db,
        filename=file.filename,
        content=await file.read(),
        content_type=file.content_type,
        file_type=file_type,
        employee_id=employee_id,
        description=description,
        tags=tags,
        is_public=is_public,
        actor=user,
    )
    return {"data": FileResponse.model_validate(stored), "message": "File uploaded"}


@router.post("/bulk-upload", status_code=201)
async def bulk_upload(
    request: Request,
    files: List[UploadFile] = File(...),
    file_type: FileType = Form(FileType.document),
    employee_id: Optional[uuid.UUID] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_public: bool = Form(False),
    user: User = Depends(_upload),
    db: AsyncSession = Depends(get_db),
):
    """Upload several files; each entry carries either the stored file or its error."""
    _check_employee(request, user, employee_id)
    payload = [(f.filename, await f.read(), f.content_type) for f in files]
    results = await FileService.bulk_upload(
        db,
        payload,
        file_type=file_type,
        employee_id=employee_id,
        description=description,
        tags=tags,
        is_public=is_public,
        actor=user,
    )
    uploaded = sum(1 for r in results if r.error is None)
    return {"data": results, "message": f"{uploaded} of {len(results)} files uploaded"}


@router.get("/search")
async def search_files(
    q: str = Query(..., min_length=1),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    result = await FileService.search(db, q, pagination)
    return {
        "data": [FileResponse.model_validate(f) for f in result.data],
        "meta": result.meta.model_dump(),
    }


@router.get("/statistics")
async def file_statistics(
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await FileService.statistics(db)}


@router.post("/mark-expired")
async def mark_expired_files(
    _: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    count = await FileService.mark_expired(db)
    return {"data": {"expired": count}, "message": f"{count} files marked as expired"}


# ── Employee files / photo ──────────────────────────────────────────

@router.get("/employee/{employee_id}")
async def employee_files(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_employee(request, user, employee_id)
    rows = await FileService.for_employee(db, employee_id)
    return {"data": [FileResponse.model_validate(f) for f in rows]}


@router.get("/employee/{employee_id}/statistics")
async def employee_file_statistics(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_employee(request, user, employee_id)
    return {"data": await FileService.employee_statistics(db, employee_id)}


@router.get("/employee/{employee_id}/photo")
async def get_employee_photo(
    employee_id: uuid.UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    photo = await FileService.active_photo(db, employee_id)
    if photo is None:
        raise NotFoundException("EmployeePhoto", str(employee_id))
    return {"data": FileResponse.model_validate(photo)}


@router.post("/employee/{employee_id}/photo", status_code=201)
async def upload_employee_photo(
    request: Request,
    employee_id: uuid.UUID,
    file: UploadFile = File(...),
    user: User = Depends(_upload),
    db: AsyncSession = Depends(get_db),
):
    _check_employee(request, user, employee_id)
    photo = await FileService.upload_photo(
        db,
        employee_id,
        filename=file.filename,
        content=await file.read(),
        content_type=file.content_type,
        actor=user,
    )
    return {"data": FileResponse.model_validate(photo), "message": "Photo uploaded"}


@router.delete("/employee/{employee_id}/photo", status_code=204)
async def delete_employee_photo(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(_upload),
    db: AsyncSession = Depends(get_db),
):
    _check_employee(request, user, employee_id)
    await FileService.delete_photo(db, employee_id, actor=user)
    return Response(status_code=204)


# ── Single file ─────────────────────────────────────────────────────

@router.get("/{file_id}")
async def get_file(
    request: Request,
    file_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stored = await FileService.get(db, file_id)
    _check_access(request, user, stored)
    return {"data": FileResponse.model_validate(stored)}


@router.get("/{file_id}/metadata")
async def get_file_metadata(
    file_id: uuid.UUID,
    _: User = Depends(_hr),
    db: AsyncSession = Depends(get_db),
):
    return {"data": FileMetadata.model_validate(await FileService.get(db, file_id))}


@router.get("/{file_id}/download")
async def download_file(
    request: Request,
    file_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, await FileService.get(db, file_id))
    stored, content = await FileService.download(db, file_id)
    return _download(stored, content)


@router.delete("/{file_id}", status_code=204)
async def delete_file(
    request: Request,
    file_id: uuid.UUID,
    user: User = Depends(_upload),
    db: AsyncSession = Depends(get_db),
):
    stored = await FileService.get(db, file_id)
    if stored.uploaded_by != user.id and not has_role(request, UserRole.hr):
        raise ForbiddenException("You can only delete files you uploaded.")
    await FileService.delete(db, file_id, actor=user)
    return Response(status_code=204)

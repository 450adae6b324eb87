"""Audit log router — search, statistics and retention."""


import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.audit.schemas import AuditLogCreate, AuditLogFilter, AuditLogResponse
from hrms.audit.service import AuditService
from hrms.auth.dependencies import require_permission, require_role
from hrms.auth.models import User
from hrms.common.audit import AuditLog, request_context
from hrms.common.constants import UserRole
from hrms.common.pagination import PaginationParams
from hrms.database import get_db

router = APIRouter(prefix="", tags=["audit"])

_read = require_permission("AUDIT_READ")


def _page(result) -> dict:
    return {
        "data": [AuditLogResponse.model_validate(e) for e in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("", status_code=201)
async def create_audit_log(
    request: Request,
    body: AuditLogCreate,
    actor: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    entry = await AuditService.record(db, body, context=request_context(request), actor=actor)
    return {"data": AuditLogResponse.model_validate(entry), "message": "Audit entry recorded"}


@router.get("")
async def list_audit_logs(
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.search(db, pagination))


@router.get("/filter")
async def filter_audit_logs(
    user_id: Optional[uuid.UUID] = Query(None),
    username: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    ip_address: Optional[str] = Query(None),
    success: Optional[bool] = Query(None),
    security_event: Optional[bool] = Query(None),
    http_method: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    filters = AuditLogFilter(
        user_id=user_id,
        username=username,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        start=start,
        end=end,
        ip_address=ip_address,
        success=success,
        security_event=security_event,
        http_method=http_method,
    )
    return _page(await AuditService.filter(db, filters, pagination))


@router.get("/security-events")
async def security_events(
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.search(db, pagination, AuditLog.security_event.is_(True)))


@router.get("/failures")
async def failed_operations(
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.search(db, pagination, AuditLog.success.is_(False)))


@router.get("/date-range")
async def audit_logs_in_range(
    start: datetime = Query(...),
    end: datetime = Query(...),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.filter(db, AuditLogFilter(start=start, end=end), pagination))


@router.get("/statistics")
async def audit_statistics(
    days: int = Query(30, ge=1, le=3650),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await AuditService.statistics(db, days)}


@router.delete("/cleanup")
async def cleanup_audit_logs(
    days: int = Query(365, ge=1),
    actor: User = Depends(require_role(UserRole.super_admin)),
    db: AsyncSession = Depends(get_db),
):
    removed = await AuditService.cleanup(db, days, actor=actor)
    return {"data": {"removed": removed}, "message": f"Removed {removed} audit entries"}


@router.get("/user/{user_id}")
async def audit_logs_for_user(
    user_id: uuid.UUID,
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.search(db, pagination, AuditLog.user_id == user_id))


@router.get("/user/{user_id}/recent")
async def recent_user_activity(
    user_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    rows = await AuditService.recent_for_user(db, user_id)
    return {"data": [AuditLogResponse.model_validate(e) for e in rows]}


@router.get("/action/{action}")
async def audit_logs_by_action(
    action: str,
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.search(db, pagination, AuditLog.action == action.upper()))


@router.get("/entity/{entity_type}")
async def audit_logs_by_entity_type(
    entity_type: str,
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.search(db, pagination, AuditLog.entity_type == entity_type))


@router.get("/entity/{entity_type}/{entity_id}")
async def audit_logs_for_entity(
    entity_type: str,
    entity_id: str,
    pagination: PaginationParams = Depends(),
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return _page(await AuditService.search(
        db, pagination, AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id,
    ))


@router.get("/{entry_id}")
async def get_audit_log(
    entry_id: uuid.UUID,
    _: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return {"data": AuditLogResponse.model_validate(await AuditService.get(db, entry_id))}

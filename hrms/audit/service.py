"""Audit log queries, statistics and retention."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.audit.schemas import AuditLogCreate, AuditLogFilter, AuditStatistics, UserActivity
from hrms.common.audit import AuditLog, actor_fields, create_audit_entry
from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.models import utcnow
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate

logger = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "action", "username", "entity_type")
RECENT_ACTIVITY_LIMIT = 10
TOP_USERS_LIMIT = 10


def _filter_criteria(filters: AuditLogFilter) -> list:
    criteria = []
    if filters.user_id is not None:
        criteria.append(AuditLog.user_id == filters.user_id)
    if filters.username:
        criteria.append(func.lower(AuditLog.username) == filters.username.lower())
    if filters.action:
        criteria.append(AuditLog.action == filters.action.upper())
    if filters.entity_type:
        criteria.append(AuditLog.entity_type == filters.entity_type)
    if filters.entity_id:
        criteria.append(AuditLog.entity_id == filters.entity_id)
    if filters.start is not None:
        criteria.append(AuditLog.created_at >= filters.start)
    if filters.end is not None:
        criteria.append(AuditLog.created_at <= filters.end)
    if filters.ip_address:
        criteria.append(AuditLog.ip_address == filters.ip_address)
    if filters.success is not None:
        criteria.append(AuditLog.success.is_(filters.success))
    if filters.security_event is not None:
        criteria.append(AuditLog.security_event.is_(filters.security_event))
    if filters.http_method:
        criteria.append(AuditLog.http_method == filters.http_method.upper())
    return criteria


class AuditService:

    @staticmethod
    async def get(db: AsyncSession, entry_id: uuid.UUID) -> AuditLog:
        entry = await db.get(AuditLog, entry_id)
        if entry is None:
            raise NotFoundException("AuditLog", str(entry_id))
        return entry

    @staticmethod
    async def record(
        db: AsyncSession,
        data: AuditLogCreate,
        *,
        context: Optional[dict[str, Any]] = None,
        actor: Any = None,
    ) -> AuditLog:
        return await create_audit_entry(
            db,
            action=data.action.upper(),
            entity_type=data.entity_type,
            entity_id=data.entity_id,
            description=data.description,
            old_values=data.old_values,
            new_values=data.new_values,
            success=data.success,
            error_message=data.error_message,
            **(context or {}),
            **actor_fields(actor),
        )

    @staticmethod
    async def search(
        db: AsyncSession,
        pagination: PaginationParams,
        *criteria,
    ) -> PaginatedResponse:
        query = select(AuditLog).where(*criteria)
        query = apply_sorting(query, AuditLog, pagination.sort or "-created_at", allowed=SORT_FIELDS)
        return await paginate(db, query, pagination)

    @staticmethod
    async def filter(
        db: AsyncSession,
        filters: AuditLogFilter,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        if filters.start and filters.end and filters.start > filters.end:
            raise BadRequestException("start must be before end", errors={"start": ["start must be before end"]})
        return await AuditService.search(db, pagination, *_filter_criteria(filters))

    @staticmethod
    async def recent_for_user(db: AsyncSession, user_id: uuid.UUID) -> Sequence[AuditLog]:
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.user_id == user_id)
            .order_by(AuditLog.created_at.desc())
            .limit(RECENT_ACTIVITY_LIMIT)
        )
        return result.scalars().all()

    @staticmethod
    async def statistics(db: AsyncSession, days: int) -> AuditStatistics:
        since = utcnow() - timedelta(days=days)
        window = AuditLog.created_at >= since

        total = await db.scalar(select(func.count(AuditLog.id)).where(window)) or 0
        security = await db.scalar(
            select(func.count(AuditLog.id)).where(window, AuditLog.security_event.is_(True))
        ) or 0
        failures = await db.scalar(
            select(func.count(AuditLog.id)).where(window, AuditLog.success.is_(False))
        ) or 0

        by_action = (await db.execute(
            select(AuditLog.action, func.count(AuditLog.id)).where(window).group_by(AuditLog.action)
        )).all()
        by_entity = (await db.execute(
            select(AuditLog.entity_type, func.count(AuditLog.id))
            .where(window, AuditLog.entity_type.is_not(None))
            .group_by(AuditLog.entity_type)
        )).all()
        count_col = func.count(AuditLog.id).label("n")
        top_users = (await db.execute(
            select(AuditLog.username, count_col)
            .where(window)
            .group_by(AuditLog.username)
            .order_by(count_col.desc(), AuditLog.username)
            .limit(TOP_USERS_LIMIT)
        )).all()

        return AuditStatistics(
            days=days,
            since=since,
            total=total,
            security_events=security,
            failures=failures,
            by_action={action: count for action, count in by_action},
            by_entity_type={entity: count for entity, count in by_entity},
            top_users=[UserActivity(username=name, count=count) for name, count in top_users],
        )

    @staticmethod
    async def cleanup(db: AsyncSession, days: int, *, actor: Any = None) -> int:
        """Delete entries older than *days*; the cleanup itself is then audited."""
        if days < 1:
            raise BadRequestException("days must be at least 1", errors={"days": ["must be at least 1"]})
        cutoff: datetime = utcnow() - timedelta(days=days)
        result = await db.execute(
            delete(AuditLog)
            .where(AuditLog.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        removed = result.rowcount or 0
        logger.info("Removed %d audit entries older than %s", removed, cutoff.isoformat())

        await create_audit_entry(
            db,
            action="AUDIT_CLEANUP",
            entity_type="audit_log",
            description=f"Removed {removed} entries older than {days} days",
            new_values={"removed": removed, "cutoff": cutoff},
            **actor_fields(actor),
        )
        return removed

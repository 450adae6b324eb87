"""Audit log model and async helper for recording entity changes."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import INET, JSONB, UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import SECURITY_ACTIONS
from hrms.common.models import utcnow
from hrms.database import Base


# ── Mixin for models that track who changed them ───────────────────

class AuditMixin:
    """
    Add ``created_by`` / ``updated_by`` user references to a model::

        class Employee(Base, TimestampMixin, AuditMixin):
            ...
    """

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )


# ── Immutable audit table ───────────────────────────────────────────

class AuditLog(Base):
    """Immutable log of authentication events and data changes."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False, default="SYSTEM")
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50))
    entity_id: Mapped[Optional[str]] = mapped_column(String(64))
    description: Mapped[Optional[str]] = mapped_column(Text)
    old_values: Mapped[Optional[dict]] = mapped_column(JSONB)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONB)
    ip_address: Mapped[Optional[str]] = mapped_column(INET)
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    request_url: Mapped[Optional[str]] = mapped_column(String(500))
    http_method: Mapped[Optional[str]] = mapped_column(String(10))
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    security_event: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("ix_audit_logs_user_id", "user_id"),
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_audit_logs_created_at", "created_at"),
        Index("ix_audit_logs_action", "action"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog {self.action} {self.entity_type}"
            f"/{self.entity_id} by {self.username}>"
        )


# ── Helpers ─────────────────────────────────────────────────────────

def request_context(request: Optional[Request]) -> dict[str, Optional[str]]:
    """Client / request details to pass into :func:`create_audit_entry`."""
    if request is None:
        return {}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "request_url": str(request.url.path),
        "http_method": request.method,
    }


async def create_audit_entry(
    session: AsyncSession,
    *,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    actor_id: Optional[uuid.UUID] = None,
    username: Optional[str] = None,
    description: Optional[str] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    request_url: Optional[str] = None,
    http_method: Optional[str] = None,
    success: bool = True,
    error_message: Optional[str] = None,
) -> AuditLog:
    """
    Create and flush an audit-log entry.

    Args:
        session: Async SQLAlchemy session.
        action: LOGIN | CREATE | UPDATE | DELETE | TERMINATE | etc.
        entity_type: e.g. "employee", "leave_request".
        entity_id: Id of the affected entity (stored as text).
        actor_id: Id of the user performing the action.
        username: Stored alongside the id so it survives user deletion.
            Defaults to ``SYSTEM``; unauthenticated callers pass ``ANONYMOUS``.
        old_values: Previous state (for updates/deletes).
        new_values: New state (for creates/updates).
    """
    if username is None:
        username = "SYSTEM"

    entry = AuditLog(
        user_id=actor_id,
        username=username,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        description=description,
        old_values=jsonable_encoder(old_values) if old_values is not None else None,
        new_values=jsonable_encoder(new_values) if new_values is not None else None,
        ip_address=ip_address,
        user_agent=user_agent,
        request_url=request_url,
        http_method=http_method,
        success=success,
        error_message=error_message,
        security_event=action in SECURITY_ACTIONS,
    )
    session.add(entry)
    await session.flush()
    return entry


def actor_fields(actor: Any) -> dict[str, Any]:
    """``actor_id`` / ``username`` kwargs for an authenticated user (or None)."""
    if actor is None:
        return {}
    return {"actor_id": actor.id, "username": actor.username}

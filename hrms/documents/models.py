"""Document ORM models: types, categories and employee documents."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import DocumentApprovalStatus
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class DocumentType(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "document_types"

    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.String(500))
    allowed_file_types: Mapped[Optional[str]] = mapped_column(sa.String(255))
    max_file_size_mb: Mapped[int] = mapped_column(sa.Integer, default=10, nullable=False)
    requires_approval: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)

    @property
    def allowed_extensions(self) -> set[str]:
        if not self.allowed_file_types:
            return set()
        return {ext.strip().lower().lstrip(".") for ext in self.allowed_file_types.split(",") if ext.strip()}

    def allows_size(self, size: int) -> bool:
        if not self.max_file_size_mb:
            return True
        return size <= self.max_file_size_mb * 1024 * 1024


class DocumentCategory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "document_categories"

    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.String(500))
    color: Mapped[Optional[str]] = mapped_column(sa.String(50))
    icon: Mapped[Optional[str]] = mapped_column(sa.String(50))
    active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)


class Document(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "documents"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("document_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("document_categories.id", ondelete="SET NULL"),
        index=True,
    )
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(sa.String(500))
    mime_type: Mapped[Optional[str]] = mapped_column(sa.String(100))
    file_size: Mapped[Optional[int]] = mapped_column(sa.BigInteger)
    description: Mapped[Optional[str]] = mapped_column(sa.String(1000))
    expiry_date: Mapped[Optional[date]] = mapped_column(sa.Date, index=True)
    confidential: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    tags: Mapped[Optional[str]] = mapped_column(sa.String(500))
    version: Mapped[int] = mapped_column(sa.Integer, default=1, nullable=False)
    approval_status: Mapped[DocumentApprovalStatus] = mapped_column(
        sa.Enum(DocumentApprovalStatus, name="document_approval_status", native_enum=False, length=20),
        default=DocumentApprovalStatus.pending,
        nullable=False,
        index=True,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    approval_notes: Mapped[Optional[str]] = mapped_column(sa.String(1000))
    rejected_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejection_notes: Mapped[Optional[str]] = mapped_column(sa.String(1000))
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)

    @property
    def expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < date.today()

    def __repr__(self) -> str:
        return f"<Document {self.name} v{self.version}>"

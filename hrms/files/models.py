"""Stored file ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import FileStatus, FileType
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin, ensure_aware, utcnow
from hrms.database import Base


class StoredFile(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "files"

    filename: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    original_filename: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(sa.String(100))
    file_size: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    file_type: Mapped[FileType] = mapped_column(
        sa.Enum(FileType, name="file_type", native_enum=False, length=30),
        nullable=False,
        index=True,
    )
    status: Mapped[FileStatus] = mapped_column(
        sa.Enum(FileStatus, name="file_status", native_enum=False, length=20),
        default=FileStatus.active,
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(sa.String(500))
    tags: Mapped[Optional[str]] = mapped_column(sa.String(500))
    is_public: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    checksum: Mapped[Optional[str]] = mapped_column(sa.String(64), index=True)
    download_count: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    last_accessed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    expires_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
        index=True,
    )
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )

    @property
    def expired(self) -> bool:
        expires_at = ensure_aware(self.expires_at)
        return expires_at is not None and expires_at < utcnow()

    @property
    def downloadable(self) -> bool:
        return self.status == FileStatus.active and not self.expired

    @property
    def url(self) -> str:
        return f"/api/v1/files/{self.id}/download"

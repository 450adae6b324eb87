"""Report ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import ReportStatus, ReportType
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class Report(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "reports"

    report_type: Mapped[ReportType] = mapped_column(
        sa.Enum(ReportType, name="report_type", native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.String(1000))
    status: Mapped[ReportStatus] = mapped_column(
        sa.Enum(ReportStatus, name="report_status", native_enum=False, length=20),
        default=ReportStatus.pending,
        nullable=False,
        index=True,
    )
    parameters: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB)
    file_format: Mapped[str] = mapped_column(sa.String(10), default="JSON", nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_by: Mapped[str] = mapped_column(sa.String(100), nullable=False, index=True)
    scheduled: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    cron_expression: Mapped[Optional[str]] = mapped_column(sa.String(100))
    generated_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<Report {self.report_type.value} {self.title!r} {self.status.value}>"

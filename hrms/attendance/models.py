"""Attendance ORM models: daily time records, breaks and correction requests."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import AttendanceStatus, BreakType, CorrectionStatus
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class TimeAttendance(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One row per employee per work date."""

    __tablename__ = "time_attendance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
    )

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_date: Mapped[date] = mapped_column(sa.Date, nullable=False, index=True)
    clock_in_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    clock_out_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    scheduled_start_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    scheduled_end_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status", native_enum=False, length=20),
        default=AttendanceStatus.absent,
        nullable=False,
    )
    total_hours: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), default=Decimal("0"), nullable=False)
    regular_hours: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), default=Decimal("0"), nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(sa.Numeric(5, 2), default=Decimal("0"), nullable=False)
    break_minutes: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    late_minutes: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    early_departure_minutes: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.String(500))
    work_location: Mapped[Optional[str]] = mapped_column(sa.String(200))
    remote_work: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(sa.String(45))

    @property
    def clocked_in(self) -> bool:
        return self.clock_in_time is not None and self.clock_out_time is None

    @property
    def clocked_out(self) -> bool:
        return self.clock_in_time is not None and self.clock_out_time is not None


class AttendanceBreak(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "attendance_breaks"

    attendance_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("time_attendance.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    break_type: Mapped[BreakType] = mapped_column(
        sa.Enum(BreakType, name="break_type", native_enum=False, length=20),
        nullable=False,
    )
    start_time: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    duration_minutes: Mapped[Optional[int]] = mapped_column(sa.Integer)
    notes: Mapped[Optional[str]] = mapped_column(sa.String(500))

    @property
    def active(self) -> bool:
        return self.end_time is None


class AttendanceCorrection(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "attendance_corrections"

    attendance_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("time_attendance.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    requested_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    correction_type: Mapped[Optional[str]] = mapped_column(sa.String(30))
    original_clock_in: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    original_clock_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    requested_clock_in: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    requested_clock_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[CorrectionStatus] = mapped_column(
        sa.Enum(CorrectionStatus, name="correction_status", native_enum=False, length=20),
        default=CorrectionStatus.pending,
        nullable=False,
        index=True,
    )
    review_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

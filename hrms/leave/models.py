"""Leave management ORM models: LeaveType, LeaveBalance, LeaveRequest, LeaveDocument."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import LeaveStatus
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class LeaveType(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "leave_types"

    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    days_allowed_per_year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    carry_forward: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    max_carry_forward_days: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    min_notice_days: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    max_consecutive_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    requires_approval: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<LeaveType {self.name}>"


class LeaveBalance(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Per-employee, per-type, per-year allocation."""

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_type_id", "year",
            name="uq_leave_balance_employee_type_year",
        ),
    )

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    allocated_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False,
    )
    used_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False,
    )
    pending_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False,
    )
    carry_forward_days: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False,
    )

    leave_type: Mapped[LeaveType] = relationship(lazy="selectin")

    @property
    def remaining_days(self) -> Decimal:
        return (
            (self.allocated_days or Decimal("0"))
            + (self.carry_forward_days or Decimal("0"))
            - (self.used_days or Decimal("0"))
            - (self.pending_days or Decimal("0"))
        )

    def has_sufficient(self, days: Decimal) -> bool:
        return self.remaining_days >= days


class LeaveRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
    )

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    half_day: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", native_enum=False, length=20),
        default=LeaveStatus.pending,
        nullable=False,
        index=True,
    )
    approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    approval_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    leave_type: Mapped[LeaveType] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.employee_id} {self.start_date}..{self.end_date} {self.status}>"


class LeaveDocument(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Supporting file (medical note, ticket) attached to a leave request."""

    __tablename__ = "leave_documents"

    leave_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    file_type: Mapped[str] = mapped_column(sa.String(100), nullable=False, index=True)
    file_size: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.String(500))
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<LeaveDocument {self.document_name} ({self.file_type})>"

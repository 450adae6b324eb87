"""Position ORM models: Position, EmployeePositionHistory."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import MANAGEMENT_LEVELS, PositionLevel, PositionStatus
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class Position(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "positions"

    title: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )
    level: Mapped[PositionLevel] = mapped_column(
        sa.Enum(PositionLevel, name="position_level", native_enum=False, length=20),
        nullable=False,
    )
    status: Mapped[PositionStatus] = mapped_column(
        sa.Enum(PositionStatus, name="position_status", native_enum=False, length=20),
        default=PositionStatus.active,
        nullable=False,
    )
    min_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    max_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    pay_grade_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("pay_grades.id", ondelete="SET NULL"),
    )
    required_qualifications: Mapped[Optional[str]] = mapped_column(sa.Text)
    preferred_qualifications: Mapped[Optional[str]] = mapped_column(sa.Text)
    required_skills: Mapped[Optional[str]] = mapped_column(sa.Text)
    min_experience_years: Mapped[Optional[int]] = mapped_column(sa.Integer)
    max_experience_years: Mapped[Optional[int]] = mapped_column(sa.Integer)
    reports_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id", ondelete="SET NULL"),
    )
    number_of_openings: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    total_headcount: Mapped[int] = mapped_column(sa.Integer, default=1, nullable=False)

    # Relationships
    department: Mapped[Optional["Department"]] = relationship()
    reports_to: Mapped[Optional[Position]] = relationship(remote_side="Position.id")

    @property
    def is_management(self) -> bool:
        return self.level in MANAGEMENT_LEVELS


class EmployeePositionHistory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "employee_position_history"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("positions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    salary_at_start: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    # Relationships
    position: Mapped["Position"] = relationship()

    @property
    def is_current(self) -> bool:
        return self.end_date is None

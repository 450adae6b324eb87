"""Payroll ORM models: PayGrade, SalaryHistory, Bonus, Deduction."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import (
    BonusStatus,
    BonusType,
    DeductionStatus,
    DeductionType,
    PayGradeStatus,
    SalaryChangeReason,
)
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class PayGrade(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "pay_grades"

    grade_code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    min_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    max_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    grade_level: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    status: Mapped[PayGradeStatus] = mapped_column(
        sa.Enum(PayGradeStatus, name="pay_grade_status", native_enum=False, length=20),
        default=PayGradeStatus.active,
        nullable=False,
    )

    def covers(self, salary: Decimal) -> bool:
        return self.min_salary <= salary <= self.max_salary


class SalaryHistory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "salary_history"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    new_salary: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    effective_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    change_reason: Mapped[SalaryChangeReason] = mapped_column(
        sa.Enum(SalaryChangeReason, name="salary_change_reason", native_enum=False, length=30),
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(100))

    @property
    def change_amount(self) -> Optional[Decimal]:
        if self.previous_salary is None:
            return None
        return self.new_salary - self.previous_salary

    @property
    def change_percentage(self) -> Optional[float]:
        if not self.previous_salary:
            return None
        return round(float((self.new_salary - self.previous_salary) / self.previous_salary * 100), 2)


class Bonus(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "bonuses"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bonus_type: Mapped[BonusType] = mapped_column(
        sa.Enum(BonusType, name="bonus_type", native_enum=False, length=20),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    award_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    payment_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    performance_period_start: Mapped[Optional[date]] = mapped_column(sa.Date)
    performance_period_end: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[BonusStatus] = mapped_column(
        sa.Enum(BonusStatus, name="bonus_status", native_enum=False, length=20),
        default=BonusStatus.pending,
        nullable=False,
    )
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(100))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)


class Deduction(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "deductions"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    deduction_type: Mapped[DeductionType] = mapped_column(
        sa.Enum(DeductionType, name="deduction_type", native_enum=False, length=30),
        nullable=False,
    )
    amount: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    percentage: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 2))
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    effective_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[DeductionStatus] = mapped_column(
        sa.Enum(DeductionStatus, name="deduction_status", native_enum=False, length=20),
        default=DeductionStatus.active,
        nullable=False,
    )
    is_pre_tax: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    is_mandatory: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    frequency: Mapped[Optional[str]] = mapped_column(sa.String(50))
    employer_contribution: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    annual_limit: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    year_to_date_amount: Mapped[Decimal] = mapped_column(
        sa.Numeric(12, 2), default=Decimal("0"), nullable=False
    )

    def calculate(self, gross: Decimal) -> Decimal:
        """Deduction owed against *gross*; zero once the annual limit is reached."""
        if self.annual_limit is not None and self.year_to_date_amount >= self.annual_limit:
            return Decimal("0")
        if self.percentage is not None:
            return (gross * self.percentage / Decimal("100")).quantize(Decimal("0.01"))
        return self.amount or Decimal("0")

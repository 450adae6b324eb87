"""Employee ORM models: Employee, EmployeeStatusHistory."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.audit import AuditMixin
from hrms.common.constants import EmployeeStatus, EmploymentType, GenderType
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from hrms.database import Base


class Employee(UUIDPrimaryKeyMixin, TimestampMixin, AuditMixin, Base):
    __tablename__ = "employees"

    employee_id: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    birth_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    gender: Mapped[Optional[GenderType]] = mapped_column(
        sa.Enum(GenderType, name="gender_type", native_enum=False, length=10),
    )
    address: Mapped[Optional[str]] = mapped_column(sa.String(200))
    city: Mapped[Optional[str]] = mapped_column(sa.String(50))
    state: Mapped[Optional[str]] = mapped_column(sa.String(50))
    postal_code: Mapped[Optional[str]] = mapped_column(sa.String(20))
    country: Mapped[Optional[str]] = mapped_column(sa.String(50))
    job_title: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL"), index=True,
    )
    position_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("positions.id", ondelete="SET NULL"),
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"), index=True,
    )
    hire_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    termination_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    pay_grade_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("pay_grades.id", ondelete="SET NULL"),
    )
    employment_type: Mapped[EmploymentType] = mapped_column(
        sa.Enum(EmploymentType, name="employment_type", native_enum=False, length=20),
        default=EmploymentType.full_time,
        nullable=False,
    )
    status: Mapped[EmployeeStatus] = mapped_column(
        sa.Enum(EmployeeStatus, name="employee_status", native_enum=False, length=20),
        default=EmployeeStatus.active,
        nullable=False,
        index=True,
    )
    emergency_contact_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    emergency_contact_phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    emergency_contact_relationship: Mapped[Optional[str]] = mapped_column(sa.String(50))
    ssn: Mapped[Optional[str]] = mapped_column(sa.String(11))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    profile_picture_url: Mapped[Optional[str]] = mapped_column(sa.String(500))

    # Relationships
    department: Mapped[Optional["Department"]] = relationship(foreign_keys=[department_id])
    position: Mapped[Optional["Position"]] = relationship(foreign_keys=[position_id])
    pay_grade: Mapped[Optional["PayGrade"]] = relationship()
    manager: Mapped[Optional[Employee]] = relationship(
        remote_side="Employee.id", back_populates="subordinates"
    )
    subordinates: Mapped[list[Employee]] = relationship(
        back_populates="manager", passive_deletes=True
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def age(self, today: date) -> Optional[int]:
        if self.birth_date is None:
            return None
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years

    def __repr__(self) -> str:
        return f"<Employee {self.employee_id} {self.full_name}>"


class EmployeeStatusHistory(UUIDPrimaryKeyMixin, Base):
    """One row per lifecycle transition."""

    __tablename__ = "employee_status_history"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_status: Mapped[Optional[EmployeeStatus]] = mapped_column(
        sa.Enum(EmployeeStatus, name="employee_status", native_enum=False, length=20),
    )
    new_status: Mapped[EmployeeStatus] = mapped_column(
        sa.Enum(EmployeeStatus, name="employee_status", native_enum=False, length=20),
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.String(500))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    effective_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    changed_by: Mapped[Optional[str]] = mapped_column(sa.String(100))
    changed_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

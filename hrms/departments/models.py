"""Department ORM model."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import DepartmentStatus
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class Department(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "departments"

    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    location: Mapped[Optional[str]] = mapped_column(sa.String(200))
    budget: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(15, 2))
    cost_center: Mapped[Optional[str]] = mapped_column(sa.String(50))
    email: Mapped[Optional[str]] = mapped_column(sa.String(100))
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    status: Mapped[DepartmentStatus] = mapped_column(
        sa.Enum(DepartmentStatus, name="department_status", native_enum=False, length=20),
        default=DepartmentStatus.active,
        nullable=False,
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey(
            "employees.id", name="fk_department_manager", use_alter=True, ondelete="SET NULL"
        ),
    )
    parent_department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )

    # Relationships
    manager: Mapped[Optional["Employee"]] = relationship(foreign_keys=[manager_id])
    parent_department: Mapped[Optional[Department]] = relationship(
        remote_side="Department.id", back_populates="sub_departments"
    )
    sub_departments: Mapped[list[Department]] = relationship(
        back_populates="parent_department"
    )

    def __repr__(self) -> str:
        return f"<Department {self.code} {self.name}>"

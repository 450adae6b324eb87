"""Department Pydantic schemas."""


import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hrms.common.constants import DepartmentStatus


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=200)
    budget: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    cost_center: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    status: DepartmentStatus = DepartmentStatus.active
    manager_id: Optional[uuid.UUID] = None
    parent_department_id: Optional[uuid.UUID] = None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=200)
    budget: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    cost_center: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    status: Optional[DepartmentStatus] = None


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str
    description: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[Decimal] = None
    cost_center: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: DepartmentStatus
    manager_id: Optional[uuid.UUID] = None
    parent_department_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class DepartmentTreeNode(BaseModel):
    """Recursive department tree node."""

    id: uuid.UUID
    name: str
    code: str
    status: DepartmentStatus
    manager_id: Optional[uuid.UUID] = None
    children: list["DepartmentTreeNode"] = Field(default_factory=list)


DepartmentTreeNode.model_rebuild()


class ManagerRequest(BaseModel):
    manager_id: uuid.UUID


class ParentRequest(BaseModel):
    parent_department_id: uuid.UUID


class TransferRequest(BaseModel):
    employee_id: uuid.UUID

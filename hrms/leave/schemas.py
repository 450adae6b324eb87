"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update   → request bodies (write)
  - *Response           → response bodies (read)
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    days_allowed_per_year: int = Field(..., ge=0, le=365)
    carry_forward: bool = False
    max_carry_forward_days: int = Field(0, ge=0)
    min_notice_days: int = Field(0, ge=0)
    max_consecutive_days: Optional[int] = Field(None, ge=1)
    requires_approval: bool = True
    active: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    days_allowed_per_year: Optional[int] = Field(None, ge=0, le=365)
    carry_forward: Optional[bool] = None
    max_carry_forward_days: Optional[int] = Field(None, ge=0)
    min_notice_days: Optional[int] = Field(None, ge=0)
    max_consecutive_days: Optional[int] = Field(None, ge=1)
    requires_approval: Optional[bool] = None
    active: Optional[bool] = None


class LeaveTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    days_allowed_per_year: int
    carry_forward: bool
    max_carry_forward_days: int
    min_notice_days: int
    max_consecutive_days: Optional[int] = None
    requires_approval: bool
    active: bool
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceCreate(BaseModel):
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    allocated_days: Decimal = Field(..., ge=0, max_digits=5, decimal_places=1)
    used_days: Decimal = Field(Decimal("0"), ge=0, max_digits=5, decimal_places=1)
    carry_forward_days: Decimal = Field(Decimal("0"), ge=0, max_digits=5, decimal_places=1)


class LeaveBalanceUpdate(BaseModel):
    allocated_days: Optional[Decimal] = Field(None, ge=0, max_digits=5, decimal_places=1)
    used_days: Optional[Decimal] = Field(None, ge=0, max_digits=5, decimal_places=1)
    carry_forward_days: Optional[Decimal] = Field(None, ge=0, max_digits=5, decimal_places=1)


class LeaveBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_name: Optional[str] = None
    year: int
    allocated_days: Decimal
    used_days: Decimal
    pending_days: Decimal
    carry_forward_days: Decimal
    remaining_days: Decimal

    @model_validator(mode="before")
    @classmethod
    def _type_name(cls, data):
        if hasattr(data, "leave_type") and data.leave_type is not None:
            return {
                "id": data.id,
                "employee_id": data.employee_id,
                "leave_type_id": data.leave_type_id,
                "leave_type_name": data.leave_type.name,
                "year": data.year,
                "allocated_days": data.allocated_days,
                "used_days": data.used_days,
                "pending_days": data.pending_days,
                "carry_forward_days": data.carry_forward_days,
                "remaining_days": data.remaining_days,
            }
        return data


class BalanceCheck(BaseModel):
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    requested_days: Decimal
    remaining_days: Decimal
    sufficient: bool


class BalanceStatistics(BaseModel):
    year: int
    balances: int
    total_allocated: Decimal
    total_used: Decimal
    total_pending: Decimal
    total_carry_forward: Decimal
    utilization_rate: float


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class _DateRange(BaseModel):
    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date is not None and self.end_date is not None and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class LeaveRequestCreate(_DateRange):
    employee_id: Optional[uuid.UUID] = Field(
        None, description="Defaults to the caller's linked employee",
    )
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=2000)
    half_day: bool = False


class LeaveRequestUpdate(_DateRange):
    leave_type_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=2000)
    half_day: Optional[bool] = None


class LeaveDecision(BaseModel):
    comments: Optional[str] = Field(None, max_length=2000)


class LeaveRejection(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class LeaveRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    total_days: Decimal
    reason: Optional[str] = None
    half_day: bool
    status: LeaveStatus
    approver_id: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    approval_comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Document
# ═════════════════════════════════════════════════════════════════════


class LeaveDocumentUpdate(BaseModel):
    document_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=500)


class LeaveDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_request_id: uuid.UUID
    document_name: str
    file_type: str
    file_size: int
    description: Optional[str] = None
    uploaded_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class LeaveDocumentStatistics(BaseModel):
    total_documents: int
    total_size_bytes: int
    total_size_mb: float
    pdf_count: int
    image_count: int
    document_count: int

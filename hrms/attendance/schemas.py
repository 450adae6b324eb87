"""Attendance Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request            → request bodies (write)
  - *Response           → response bodies (read)
  - *Summary            → aggregated read representations
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import AttendanceStatus, BreakType, CorrectionStatus


# ═════════════════════════════════════════════════════════════════════
# Clock in / out
# ═════════════════════════════════════════════════════════════════════


class ClockInRequest(BaseModel):
    """Payload for clocking in. ``clock_in_time`` defaults to now."""

    clock_in_time: Optional[datetime] = None
    work_location: Optional[str] = Field(None, max_length=200)
    remote_work: bool = False
    notes: Optional[str] = Field(None, max_length=500)


class ClockOutRequest(BaseModel):
    clock_out_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=250)


class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    work_date: date
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    scheduled_start_time: Optional[datetime] = None
    scheduled_end_time: Optional[datetime] = None
    status: AttendanceStatus
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    break_minutes: int
    late_minutes: int
    early_departure_minutes: int
    notes: Optional[str] = None
    work_location: Optional[str] = None
    remote_work: bool
    ip_address: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Breaks
# ═════════════════════════════════════════════════════════════════════


class BreakStartRequest(BaseModel):
    break_type: BreakType
    start_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class BreakResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    attendance_id: uuid.UUID
    break_type: BreakType
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Corrections
# ═════════════════════════════════════════════════════════════════════


class CorrectionRequest(BaseModel):
    attendance_id: uuid.UUID
    correction_type: Optional[str] = Field(None, max_length=30)
    requested_clock_in: Optional[datetime] = None
    requested_clock_out: Optional[datetime] = None
    reason: str = Field(..., min_length=1, max_length=2000)

    @model_validator(mode="after")
    def _check_times(self) -> "CorrectionRequest":
        if (
            self.requested_clock_in is not None
            and self.requested_clock_out is not None
            and self.requested_clock_out <= self.requested_clock_in
        ):
            raise ValueError("requested_clock_out must be after requested_clock_in")
        return self


class CorrectionReview(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class CorrectionRejection(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class CorrectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    attendance_id: uuid.UUID
    employee_id: uuid.UUID
    requested_by: Optional[uuid.UUID] = None
    reviewed_by: Optional[uuid.UUID] = None
    correction_type: Optional[str] = None
    original_clock_in: Optional[datetime] = None
    original_clock_out: Optional[datetime] = None
    requested_clock_in: Optional[datetime] = None
    requested_clock_out: Optional[datetime] = None
    reason: str
    status: CorrectionStatus
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Summary
# ═════════════════════════════════════════════════════════════════════


class AttendanceSummary(BaseModel):
    employee_id: uuid.UUID
    period_start: date
    period_end: date
    total_days: int
    days_present: int
    days_absent: int
    days_late: int
    remote_days: int
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    average_hours_per_day: Decimal

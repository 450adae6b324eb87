"""Report and analytics schemas."""


import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import ReportStatus, ReportType


class ReportRequest(BaseModel):
    report_type: ReportType
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    parameters: dict[str, Any] = {}
    scheduled: bool = False
    cron_expression: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def _check(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        if self.scheduled and not self.cron_expression:
            raise ValueError("cron_expression is required for scheduled reports")
        return self


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    report_type: ReportType
    title: str
    description: Optional[str] = None
    status: ReportStatus
    parameters: Optional[dict[str, Any]] = None
    data: Optional[dict[str, Any]] = None
    file_format: str
    error_message: Optional[str] = None
    created_by: str
    scheduled: bool
    cron_expression: Optional[str] = None
    generated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class KpiSet(BaseModel):
    retention_rate: float
    turnover_rate: float
    leave_approval_rate: float
    review_completion_rate: float
    goal_completion_rate: float
    average_salary: float
    average_tenure_years: float


class MonthlyTrend(BaseModel):
    month: str
    hires: int
    terminations: int
    net_change: int

"""Performance Pydantic schemas: reviews and goals."""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import GoalPriority, GoalStatus, PerformanceRating, ReviewStatus


# ═════════════════════════════════════════════════════════════════════
# Reviews
# ═════════════════════════════════════════════════════════════════════


class _ReviewPeriod(BaseModel):
    @model_validator(mode="after")
    def _check_period(self):
        start, end = self.review_period_start, self.review_period_end
        if start is not None and end is not None and start > end:
            raise ValueError("review_period_start must be on or before review_period_end")
        return self


class ReviewCreate(_ReviewPeriod):
    employee_id: uuid.UUID
    reviewer_id: Optional[uuid.UUID] = None
    review_period_start: date
    review_period_end: date
    due_date: Optional[date] = None
    overall_rating: Optional[PerformanceRating] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    comments: Optional[str] = None


class ReviewUpdate(_ReviewPeriod):
    reviewer_id: Optional[uuid.UUID] = None
    review_period_start: Optional[date] = None
    review_period_end: Optional[date] = None
    due_date: Optional[date] = None
    overall_rating: Optional[PerformanceRating] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    comments: Optional[str] = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    reviewer_id: Optional[uuid.UUID] = None
    review_period_start: date
    review_period_end: date
    due_date: Optional[date] = None
    status: ReviewStatus
    overall_rating: Optional[PerformanceRating] = None
    rating_score: Optional[int] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    comments: Optional[str] = None
    completed_date: Optional[date] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Goals
# ═════════════════════════════════════════════════════════════════════


class _GoalDates(BaseModel):
    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date is not None and self.target_date is not None and self.start_date > self.target_date:
            raise ValueError("start_date must be on or before target_date")
        return self


class GoalCreate(_GoalDates):
    employee_id: uuid.UUID
    review_id: Optional[uuid.UUID] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    priority: GoalPriority = GoalPriority.medium
    start_date: Optional[date] = None
    target_date: Optional[date] = None


class GoalUpdate(_GoalDates):
    review_id: Optional[uuid.UUID] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Optional[GoalPriority] = None
    start_date: Optional[date] = None
    target_date: Optional[date] = None


class ProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100)


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    review_id: Optional[uuid.UUID] = None
    title: str
    description: Optional[str] = None
    status: GoalStatus
    priority: GoalPriority
    progress: int
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    completed_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

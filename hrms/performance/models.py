"""Performance ORM models: reviews and goals."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import GoalPriority, GoalStatus, PerformanceRating, ReviewStatus
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base


class PerformanceReview(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "performance_reviews"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
        index=True,
    )
    review_period_start: Mapped[date] = mapped_column(sa.Date, nullable=False)
    review_period_end: Mapped[date] = mapped_column(sa.Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    status: Mapped[ReviewStatus] = mapped_column(
        sa.Enum(ReviewStatus, name="review_status", native_enum=False, length=20),
        default=ReviewStatus.draft,
        nullable=False,
        index=True,
    )
    overall_rating: Mapped[Optional[PerformanceRating]] = mapped_column(
        sa.Enum(PerformanceRating, name="performance_rating", native_enum=False, length=30),
    )
    strengths: Mapped[Optional[str]] = mapped_column(sa.Text)
    areas_for_improvement: Mapped[Optional[str]] = mapped_column(sa.Text)
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    completed_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(100))
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    @property
    def rating_score(self) -> Optional[int]:
        return self.overall_rating.score if self.overall_rating else None

    @property
    def can_start(self) -> bool:
        return self.status in (ReviewStatus.draft, ReviewStatus.pending)

    @property
    def can_complete(self) -> bool:
        return self.status == ReviewStatus.in_progress


class Goal(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "goals"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    review_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("performance_reviews.id", ondelete="SET NULL"),
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[GoalStatus] = mapped_column(
        sa.Enum(GoalStatus, name="goal_status", native_enum=False, length=20),
        default=GoalStatus.not_started,
        nullable=False,
        index=True,
    )
    priority: Mapped[GoalPriority] = mapped_column(
        sa.Enum(GoalPriority, name="goal_priority", native_enum=False, length=20),
        default=GoalPriority.medium,
        nullable=False,
    )
    progress: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    target_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    completed_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    __table_args__ = (
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_goal_progress_range"),
    )

"""Performance service — review workflow and employee goals."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction, GoalPriority, GoalStatus, ReviewStatus
from hrms.common.exceptions import BadRequestException, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.employees.models import Employee
from hrms.notifications.service import notify_goal_assigned, notify_review_assigned
from hrms.performance.models import Goal, PerformanceReview
from hrms.performance.schemas import GoalCreate, GoalUpdate, ReviewCreate, ReviewUpdate

MAX_ACTIVE_GOALS = 10
ACTIVE_GOAL_STATUSES = (GoalStatus.not_started, GoalStatus.in_progress, GoalStatus.on_hold)
FINISHED_GOAL_STATUSES = (GoalStatus.completed, GoalStatus.cancelled)
REVIEW_SORT_FIELDS = ("review_period_start", "review_period_end", "due_date", "status", "created_at")


async def _ensure_employee(db: AsyncSession, employee_id: Optional[uuid.UUID]) -> None:
    if employee_id is not None and await db.get(Employee, employee_id) is None:
        raise NotFoundException("Employee", str(employee_id))


# ═════════════════════════════════════════════════════════════════════
# Reviews
# ═════════════════════════════════════════════════════════════════════


class ReviewService:

    @staticmethod
    async def get(db: AsyncSession, review_id: uuid.UUID) -> PerformanceReview:
        review = await db.get(PerformanceReview, review_id)
        if review is None:
            raise NotFoundException("PerformanceReview", str(review_id))
        return review

    @staticmethod
    async def list_reviews(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        reviewer_id: Optional[uuid.UUID] = None,
        status: Optional[ReviewStatus] = None,
    ) -> PaginatedResponse:
        query = select(PerformanceReview)
        if employee_id is not None:
            query = query.where(PerformanceReview.employee_id == employee_id)
        if reviewer_id is not None:
            query = query.where(PerformanceReview.reviewer_id == reviewer_id)
        if status is not None:
            query = query.where(PerformanceReview.status == status)
        query = apply_sorting(
            query, PerformanceReview, pagination.sort or "-review_period_end",
            allowed=REVIEW_SORT_FIELDS,
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def find(db: AsyncSession, *criteria) -> Sequence[PerformanceReview]:
        result = await db.execute(
            select(PerformanceReview)
            .where(*criteria)
            .order_by(PerformanceReview.review_period_end.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def overdue(db: AsyncSession) -> Sequence[PerformanceReview]:
        return await ReviewService.find(
            db,
            PerformanceReview.due_date < date.today(),
            PerformanceReview.status.not_in((ReviewStatus.completed, ReviewStatus.approved)),
        )

    @staticmethod
    async def in_period(db: AsyncSession, start: date, end: date) -> Sequence[PerformanceReview]:
        if start > end:
            raise BadRequestException("start_date must be on or before end_date")
        return await ReviewService.find(
            db,
            PerformanceReview.review_period_start <= end,
            PerformanceReview.review_period_end >= start,
        )

    @staticmethod
    async def create(
        db: AsyncSession,
        data: ReviewCreate,
        *,
        actor: Any = None,
    ) -> PerformanceReview:
        await _ensure_employee(db, data.employee_id)
        await _ensure_employee(db, data.reviewer_id)
        if data.reviewer_id == data.employee_id:
            raise BadRequestException("An employee cannot review themselves")

        review = PerformanceReview(**data.model_dump(), status=ReviewStatus.draft)
        db.add(review)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="performance_review",
            entity_id=review.id,
            new_values=data.model_dump(),
            **actor_fields(actor),
        )
        await notify_review_assigned(db, review)
        return review

    @staticmethod
    async def update(
        db: AsyncSession,
        review_id: uuid.UUID,
        data: ReviewUpdate,
        *,
        actor: Any = None,
    ) -> PerformanceReview:
        review = await ReviewService.get(db, review_id)
        if review.status == ReviewStatus.approved:
            raise BadRequestException("Approved reviews cannot be modified")

        changes = data.model_dump(exclude_unset=True)
        if "reviewer_id" in changes:
            await _ensure_employee(db, changes["reviewer_id"])

        old_values = {k: getattr(review, k) for k in changes}
        for field, value in changes.items():
            setattr(review, field, value)
        if review.review_period_start > review.review_period_end:
            raise BadRequestException(
                "Review period start must be on or before review period end",
                errors={"review_period_start": ["must be on or before review_period_end"]},
            )
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="performance_review",
            entity_id=review.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return review

    @staticmethod
    async def delete(
        db: AsyncSession,
        review_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> None:
        review = await ReviewService.get(db, review_id)
        linked = (await db.execute(select(Goal).where(Goal.review_id == review_id))).scalars().all()
        for goal in linked:
            goal.review_id = None

        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="performance_review",
            entity_id=review.id,
            old_values={"employee_id": review.employee_id, "status": review.status.value},
            **actor_fields(actor),
        )
        await db.delete(review)
        await db.flush()

    # ── transitions ─────────────────────────────────────────────────

    @staticmethod
    async def _transition(
        db: AsyncSession,
        review_id: uuid.UUID,
        allowed_from: tuple[ReviewStatus, ...],
        target: ReviewStatus,
        actor: Any,
    ) -> PerformanceReview:
        review = await ReviewService.get(db, review_id)
        if review.status not in allowed_from:
            raise BadRequestException(
                f"Cannot move review from {review.status.value} to {target.value}"
            )
        old_status = review.status
        review.status = target

        if target == ReviewStatus.completed:
            review.completed_date = date.today()
        elif target == ReviewStatus.approved:
            review.approved_by = getattr(actor, "username", None) or "SYSTEM"
            review.approved_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="REVIEW_" + target.name.upper(),
            entity_type="performance_review",
            entity_id=review.id,
            old_values={"status": old_status.value},
            new_values={"status": target.value},
            **actor_fields(actor),
        )
        return review

    @staticmethod
    async def submit(db: AsyncSession, review_id: uuid.UUID, *, actor: Any = None) -> PerformanceReview:
        return await ReviewService._transition(
            db, review_id, (ReviewStatus.draft,), ReviewStatus.pending, actor,
        )

    @staticmethod
    async def start(db: AsyncSession, review_id: uuid.UUID, *, actor: Any = None) -> PerformanceReview:
        return await ReviewService._transition(
            db, review_id, (ReviewStatus.draft, ReviewStatus.pending), ReviewStatus.in_progress, actor,
        )

    @staticmethod
    async def complete(db: AsyncSession, review_id: uuid.UUID, *, actor: Any = None) -> PerformanceReview:
        return await ReviewService._transition(
            db, review_id, (ReviewStatus.in_progress,), ReviewStatus.completed, actor,
        )

    @staticmethod
    async def approve(db: AsyncSession, review_id: uuid.UUID, *, actor: Any = None) -> PerformanceReview:
        return await ReviewService._transition(
            db, review_id, (ReviewStatus.completed,), ReviewStatus.approved, actor,
        )


# ═════════════════════════════════════════════════════════════════════
# Goals
# ═════════════════════════════════════════════════════════════════════


class GoalService:

    @staticmethod
    async def get(db: AsyncSession, goal_id: uuid.UUID) -> Goal:
        goal = await db.get(Goal, goal_id)
        if goal is None:
            raise NotFoundException("Goal", str(goal_id))
        return goal

    @staticmethod
    async def list_goals(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[GoalStatus] = None,
        priority: Optional[GoalPriority] = None,
    ) -> PaginatedResponse:
        query = select(Goal)
        if employee_id is not None:
            query = query.where(Goal.employee_id == employee_id)
        if status is not None:
            query = query.where(Goal.status == status)
        if priority is not None:
            query = query.where(Goal.priority == priority)
        query = apply_sorting(
            query, Goal, pagination.sort or "-created_at",
            allowed=("title", "status", "priority", "progress", "target_date", "created_at"),
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def find(db: AsyncSession, *criteria, limit: Optional[int] = None) -> Sequence[Goal]:
        query = select(Goal).where(*criteria).order_by(Goal.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def active_count(db: AsyncSession, employee_id: uuid.UUID) -> int:
        return (await db.execute(
            select(func.count()).select_from(Goal).where(
                Goal.employee_id == employee_id,
                Goal.status.in_(ACTIVE_GOAL_STATUSES),
            )
        )).scalar_one()

    @staticmethod
    async def can_create(db: AsyncSession, employee_id: uuid.UUID) -> bool:
        return await GoalService.active_count(db, employee_id) < MAX_ACTIVE_GOALS

    @staticmethod
    async def create(
        db: AsyncSession,
        data: GoalCreate,
        *,
        actor: Any = None,
    ) -> Goal:
        await _ensure_employee(db, data.employee_id)
        if data.review_id is not None:
            review = await ReviewService.get(db, data.review_id)
            if review.employee_id != data.employee_id:
                raise BadRequestException("Linked review belongs to a different employee")
        if not await GoalService.can_create(db, data.employee_id):
            raise BadRequestException(
                f"Employee already has the maximum of {MAX_ACTIVE_GOALS} active goals"
            )

        goal = Goal(**data.model_dump(), status=GoalStatus.not_started, progress=0)
        db.add(goal)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="goal",
            entity_id=goal.id,
            new_values=data.model_dump(),
            **actor_fields(actor),
        )
        await notify_goal_assigned(db, goal)
        return goal

    @staticmethod
    async def update(
        db: AsyncSession,
        goal_id: uuid.UUID,
        data: GoalUpdate,
        *,
        actor: Any = None,
    ) -> Goal:
        goal = await GoalService.get(db, goal_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("review_id") is not None:
            await ReviewService.get(db, changes["review_id"])

        old_values = {k: getattr(goal, k) for k in changes}
        for field, value in changes.items():
            setattr(goal, field, value)
        if goal.start_date and goal.target_date and goal.start_date > goal.target_date:
            raise BadRequestException("Goal start date must be on or before its target date")
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="goal",
            entity_id=goal.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return goal

    @staticmethod
    async def delete(db: AsyncSession, goal_id: uuid.UUID, *, actor: Any = None) -> None:
        goal = await GoalService.get(db, goal_id)
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="goal",
            entity_id=goal.id,
            old_values={"title": goal.title, "status": goal.status.value},
            **actor_fields(actor),
        )
        await db.delete(goal)
        await db.flush()

    # ── state changes ───────────────────────────────────────────────

    @staticmethod
    def _mark_completed(goal: Goal) -> None:
        goal.status = GoalStatus.completed
        goal.progress = 100
        goal.completed_date = date.today()

    @staticmethod
    async def update_progress(db: AsyncSession, goal_id: uuid.UUID, progress: int) -> Goal:
        goal = await GoalService.get(db, goal_id)
        if goal.status in FINISHED_GOAL_STATUSES:
            raise BadRequestException(f"Cannot update progress of a {goal.status.value} goal")

        goal.progress = progress
        if progress >= 100:
            GoalService._mark_completed(goal)
        elif progress > 0 and goal.status == GoalStatus.not_started:
            goal.status = GoalStatus.in_progress
        await db.flush()
        return goal

    @staticmethod
    async def _change(
        db: AsyncSession,
        goal_id: uuid.UUID,
        allowed_from: tuple[GoalStatus, ...],
        target: GoalStatus,
    ) -> Goal:
        goal = await GoalService.get(db, goal_id)
        if goal.status not in allowed_from:
            raise BadRequestException(
                f"Cannot move goal from {goal.status.value} to {target.value}"
            )
        if target == GoalStatus.completed:
            GoalService._mark_completed(goal)
        else:
            goal.status = target
            if target == GoalStatus.in_progress and goal.start_date is None:
                goal.start_date = date.today()
        await db.flush()
        return goal

    @staticmethod
    async def complete(db: AsyncSession, goal_id: uuid.UUID) -> Goal:
        return await GoalService._change(
            db, goal_id,
            (GoalStatus.not_started, GoalStatus.in_progress, GoalStatus.on_hold, GoalStatus.overdue),
            GoalStatus.completed,
        )

    @staticmethod
    async def start(db: AsyncSession, goal_id: uuid.UUID) -> Goal:
        return await GoalService._change(
            db, goal_id, (GoalStatus.not_started, GoalStatus.on_hold), GoalStatus.in_progress,
        )

    @staticmethod
    async def pause(db: AsyncSession, goal_id: uuid.UUID) -> Goal:
        return await GoalService._change(
            db, goal_id, (GoalStatus.in_progress,), GoalStatus.on_hold,
        )

    @staticmethod
    async def cancel(db: AsyncSession, goal_id: uuid.UUID) -> Goal:
        return await GoalService._change(
            db, goal_id,
            (GoalStatus.not_started, GoalStatus.in_progress, GoalStatus.on_hold, GoalStatus.overdue),
            GoalStatus.cancelled,
        )

    # ── queries ─────────────────────────────────────────────────────

    @staticmethod
    async def overdue(db: AsyncSession) -> Sequence[Goal]:
        return await GoalService.find(
            db,
            Goal.target_date < date.today(),
            Goal.status.not_in(FINISHED_GOAL_STATUSES),
        )

    @staticmethod
    async def due_within(db: AsyncSession, days: int) -> Sequence[Goal]:
        today = date.today()
        return await GoalService.find(
            db,
            Goal.target_date.between(today, today + timedelta(days=days)),
            Goal.status.not_in(FINISHED_GOAL_STATUSES),
        )

    @staticmethod
    async def high_priority(db: AsyncSession) -> Sequence[Goal]:
        return await GoalService.find(
            db,
            Goal.priority.in_((GoalPriority.high, GoalPriority.critical)),
            Goal.status.not_in(FINISHED_GOAL_STATUSES),
        )

    @staticmethod
    async def average_progress(
        db: AsyncSession,
        *,
        employee_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> float:
        query = select(func.avg(Goal.progress)).where(Goal.status != GoalStatus.cancelled)
        if employee_id is not None:
            query = query.where(Goal.employee_id == employee_id)
        if department_id is not None:
            query = query.join(Employee, Employee.id == Goal.employee_id).where(
                Employee.department_id == department_id,
            )
        value = (await db.execute(query)).scalar_one()
        return round(float(value), 2) if value is not None else 0.0

    @staticmethod
    async def completed_count(db: AsyncSession, employee_id: uuid.UUID) -> int:
        return (await db.execute(
            select(func.count()).select_from(Goal).where(
                Goal.employee_id == employee_id,
                Goal.status == GoalStatus.completed,
            )
        )).scalar_one()

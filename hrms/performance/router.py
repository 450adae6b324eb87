"""Performance router — reviews (with workflow transitions) and goals."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import (
    get_current_user,
    has_role,
    linked_employee_id,
    require_permission,
)
from hrms.auth.models import User
from hrms.common.constants import GoalPriority, GoalStatus, ReviewStatus, UserRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.performance.models import Goal, PerformanceReview
from hrms.performance.schemas import (
    GoalCreate,
    GoalResponse,
    GoalUpdate,
    ProgressUpdate,
    ReviewCreate,
    ReviewResponse,
    ReviewUpdate,
)
from hrms.performance.service import (
    ACTIVE_GOAL_STATUSES,
    MAX_ACTIVE_GOALS,
    GoalService,
    ReviewService,
)

router = APIRouter(prefix="", tags=["performance"])

_reviewer = require_permission("PERFORMANCE_REVIEW")


def _check_access(request: Request, user: User, employee_id: uuid.UUID) -> None:
    if user.employee_id == employee_id:
        return
    if not has_role(request, UserRole.manager):
        raise ForbiddenException("You can only access your own performance records.")


def _reviews(rows) -> dict:
    return {"data": [ReviewResponse.model_validate(r) for r in rows]}


def _goals(rows) -> dict:
    return {"data": [GoalResponse.model_validate(g) for g in rows]}


# ═════════════════════════════════════════════════════════════════════
# Reviews
# ═════════════════════════════════════════════════════════════════════


@router.get("/reviews")
async def list_reviews(
    employee_id: Optional[uuid.UUID] = Query(None),
    reviewer_id: Optional[uuid.UUID] = Query(None),
    status: Optional[ReviewStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    result = await ReviewService.list_reviews(
        db, pagination, employee_id=employee_id, reviewer_id=reviewer_id, status=status,
    )
    return {
        "data": [ReviewResponse.model_validate(r) for r in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/reviews", status_code=201)
async def create_review(
    body: ReviewCreate,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.create(db, body, actor=actor)
    return {"data": ReviewResponse.model_validate(review), "message": "Review created"}


@router.get("/reviews/all")
async def all_reviews(
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _reviews(await ReviewService.find(db))


@router.get("/reviews/me")
async def my_reviews(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee_id = linked_employee_id(user)
    return _reviews(await ReviewService.find(db, PerformanceReview.employee_id == employee_id))


@router.get("/reviews/overdue")
async def overdue_reviews(
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _reviews(await ReviewService.overdue(db))


@router.get("/reviews/period")
async def reviews_in_period(
    start_date: date = Query(...),
    end_date: date = Query(...),
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _reviews(await ReviewService.in_period(db, start_date, end_date))


@router.get("/reviews/status/{status}")
async def reviews_by_status(
    status: ReviewStatus,
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _reviews(await ReviewService.find(db, PerformanceReview.status == status))


@router.get("/reviews/employee/{employee_id}")
async def reviews_for_employee(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    return _reviews(await ReviewService.find(db, PerformanceReview.employee_id == employee_id))


@router.get("/reviews/reviewer/{reviewer_id}")
async def reviews_by_reviewer(
    reviewer_id: uuid.UUID,
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _reviews(await ReviewService.find(db, PerformanceReview.reviewer_id == reviewer_id))


@router.get("/reviews/{review_id}")
async def get_review(
    request: Request,
    review_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.get(db, review_id)
    _check_access(request, user, review.employee_id)
    return {"data": ReviewResponse.model_validate(review)}


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: uuid.UUID,
    body: ReviewUpdate,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.update(db, review_id, body, actor=actor)
    return {"data": ReviewResponse.model_validate(review), "message": "Review updated"}


@router.delete("/reviews/{review_id}", status_code=204)
async def delete_review(
    review_id: uuid.UUID,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    await ReviewService.delete(db, review_id, actor=actor)
    return Response(status_code=204)


@router.get("/reviews/{review_id}/can-start")
async def review_can_start(
    review_id: uuid.UUID,
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.get(db, review_id)
    return {"data": {"review_id": review.id, "can_start": review.can_start}}


@router.get("/reviews/{review_id}/can-complete")
async def review_can_complete(
    review_id: uuid.UUID,
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.get(db, review_id)
    return {"data": {"review_id": review.id, "can_complete": review.can_complete}}


@router.post("/reviews/{review_id}/submit")
async def submit_review(
    review_id: uuid.UUID,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.submit(db, review_id, actor=actor)
    return {"data": ReviewResponse.model_validate(review), "message": "Review submitted"}


@router.post("/reviews/{review_id}/start")
async def start_review(
    review_id: uuid.UUID,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.start(db, review_id, actor=actor)
    return {"data": ReviewResponse.model_validate(review), "message": "Review started"}


@router.post("/reviews/{review_id}/complete")
async def complete_review(
    review_id: uuid.UUID,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.complete(db, review_id, actor=actor)
    return {"data": ReviewResponse.model_validate(review), "message": "Review completed"}


@router.post("/reviews/{review_id}/approve")
async def approve_review(
    review_id: uuid.UUID,
    actor: User = Depends(require_permission("EMPLOYEE_UPDATE")),
    db: AsyncSession = Depends(get_db),
):
    review = await ReviewService.approve(db, review_id, actor=actor)
    return {"data": ReviewResponse.model_validate(review), "message": "Review approved"}


# ═════════════════════════════════════════════════════════════════════
# Goals
# ═════════════════════════════════════════════════════════════════════


@router.get("/goals")
async def list_goals(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[GoalStatus] = Query(None),
    priority: Optional[GoalPriority] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    result = await GoalService.list_goals(
        db, pagination, employee_id=employee_id, status=status, priority=priority,
    )
    return {
        "data": [GoalResponse.model_validate(g) for g in result.data],
        "meta": result.meta.model_dump(),
    }


@router.post("/goals", status_code=201)
async def create_goal(
    body: GoalCreate,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    goal = await GoalService.create(db, body, actor=actor)
    return {"data": GoalResponse.model_validate(goal), "message": "Goal created"}


@router.get("/goals/me")
async def my_goals(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _goals(await GoalService.find(db, Goal.employee_id == linked_employee_id(user)))


@router.get("/goals/overdue")
async def overdue_goals(
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _goals(await GoalService.overdue(db))


@router.get("/goals/due-soon")
async def goals_due_soon(
    days: int = Query(7, ge=0, le=365),
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _goals(await GoalService.due_within(db, days))


@router.get("/goals/high-priority")
async def high_priority_goals(
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _goals(await GoalService.high_priority(db))


@router.get("/goals/status/{status}")
async def goals_by_status(
    status: GoalStatus,
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return _goals(await GoalService.find(db, Goal.status == status))


@router.get("/goals/department/{department_id}/average-progress")
async def department_average_progress(
    department_id: uuid.UUID,
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    value = await GoalService.average_progress(db, department_id=department_id)
    return {"data": {"department_id": department_id, "average_progress": value}}


@router.get("/goals/employee/{employee_id}")
async def employee_goals(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    return _goals(await GoalService.find(db, Goal.employee_id == employee_id))


@router.get("/goals/employee/{employee_id}/active")
async def employee_active_goals(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    return _goals(await GoalService.find(
        db, Goal.employee_id == employee_id, Goal.status.in_(ACTIVE_GOAL_STATUSES),
    ))


@router.get("/goals/employee/{employee_id}/completed")
async def employee_completed_goals(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    return _goals(await GoalService.find(
        db, Goal.employee_id == employee_id, Goal.status == GoalStatus.completed,
    ))


@router.get("/goals/employee/{employee_id}/recent")
async def employee_recent_goals(
    request: Request,
    employee_id: uuid.UUID,
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    return _goals(await GoalService.find(db, Goal.employee_id == employee_id, limit=limit))


@router.get("/goals/employee/{employee_id}/statistics")
async def employee_goal_statistics(
    request: Request,
    employee_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _check_access(request, user, employee_id)
    active = await GoalService.active_count(db, employee_id)
    return {
        "data": {
            "employee_id": employee_id,
            "active_goals": active,
            "completed_goals": await GoalService.completed_count(db, employee_id),
            "average_progress": await GoalService.average_progress(db, employee_id=employee_id),
            "can_create": active < MAX_ACTIVE_GOALS,
        }
    }


@router.get("/goals/{goal_id}")
async def get_goal(
    request: Request,
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    goal = await GoalService.get(db, goal_id)
    _check_access(request, user, goal.employee_id)
    return {"data": GoalResponse.model_validate(goal)}


@router.put("/goals/{goal_id}")
async def update_goal(
    goal_id: uuid.UUID,
    body: GoalUpdate,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    goal = await GoalService.update(db, goal_id, body, actor=actor)
    return {"data": GoalResponse.model_validate(goal), "message": "Goal updated"}


@router.delete("/goals/{goal_id}", status_code=204)
async def delete_goal(
    goal_id: uuid.UUID,
    actor: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    await GoalService.delete(db, goal_id, actor=actor)
    return Response(status_code=204)


@router.put("/goals/{goal_id}/progress")
async def update_goal_progress(
    request: Request,
    goal_id: uuid.UUID,
    body: ProgressUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    goal = await GoalService.get(db, goal_id)
    _check_access(request, user, goal.employee_id)
    goal = await GoalService.update_progress(db, goal_id, body.progress)
    return {"data": GoalResponse.model_validate(goal), "message": "Progress updated"}


async def _goal_action(request: Request, user: User, db: AsyncSession, goal_id: uuid.UUID, action) -> dict:
    goal = await GoalService.get(db, goal_id)
    _check_access(request, user, goal.employee_id)
    goal = await action(db, goal_id)
    return {"data": GoalResponse.model_validate(goal)}


@router.post("/goals/{goal_id}/start")
async def start_goal(
    request: Request,
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {**await _goal_action(request, user, db, goal_id, GoalService.start), "message": "Goal started"}


@router.post("/goals/{goal_id}/pause")
async def pause_goal(
    request: Request,
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {**await _goal_action(request, user, db, goal_id, GoalService.pause), "message": "Goal paused"}


@router.post("/goals/{goal_id}/complete")
async def complete_goal(
    request: Request,
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {**await _goal_action(request, user, db, goal_id, GoalService.complete), "message": "Goal completed"}


@router.post("/goals/{goal_id}/cancel")
async def cancel_goal(
    goal_id: uuid.UUID,
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    goal = await GoalService.cancel(db, goal_id)
    return {"data": GoalResponse.model_validate(goal), "message": "Goal cancelled"}

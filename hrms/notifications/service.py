"""Notification service — CRUD, templates, preferences and workflow dispatchers."""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from hrms.auth.models import User
from hrms.common.constants import NotificationPriority, NotificationStatus, NotificationType
from hrms.common.exceptions import (
    BadRequestException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
)
from hrms.common.pagination import PaginationParams, build_meta
from hrms.notifications.email import email_service
from hrms.notifications.models import (
    Notification,
    NotificationPreference,
    NotificationTemplate,
)
from hrms.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
    PreferenceUpdate,
    TemplateCreate,
    TemplateUpdate,
)

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render_template(text: str, variables: dict[str, Any]) -> str:
    """Substitute ``{name}`` placeholders; unknown names are left in place."""
    return _PLACEHOLDER.sub(
        lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0),
        text,
    )


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        subject: str,
        message: str,
        notification_type: NotificationType = NotificationType.info,
        priority: NotificationPriority = NotificationPriority.medium,
        sender_id: Optional[uuid.UUID] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Any = None,
        action_url: Optional[str] = None,
    ) -> Notification:
        """Persist a notification and email it when the recipient opted in."""
        recipient = await db.get(User, recipient_id)
        if recipient is None:
            raise NotFoundException("User", str(recipient_id))

        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            notification_type=notification_type,
            priority=priority,
            subject=subject,
            message=message,
            related_entity_type=related_entity_type,
            related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
            action_url=action_url,
        )
        db.add(notification)
        await db.flush()

        await _deliver_email(db, recipient, notification)
        return notification

    @staticmethod
    async def create_from_template(
        db: AsyncSession,
        *,
        template_name: str,
        recipient_id: uuid.UUID,
        variables: dict[str, Any],
        priority: NotificationPriority = NotificationPriority.medium,
        sender_id: Optional[uuid.UUID] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Any = None,
        action_url: Optional[str] = None,
    ) -> Notification:
        template = await NotificationService.get_template_by_name(db, template_name)
        if not template.active:
            raise BadRequestException(f"Notification template '{template_name}' is inactive.")

        return await NotificationService.create_notification(
            db,
            recipient_id=recipient_id,
            subject=render_template(template.subject_template, variables),
            message=render_template(template.message_template, variables),
            notification_type=template.notification_type,
            priority=priority,
            sender_id=sender_id,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            action_url=action_url,
        )

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[NotificationStatus] = None,
        notification_type: Optional[NotificationType] = None,
        search: Optional[str] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for a user, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id)
        )

        if status is not None:
            query = query.where(Notification.status == status)
        else:
            query = query.where(Notification.status != NotificationStatus.deleted)
        if notification_type is not None:
            query = query.where(Notification.notification_type == notification_type)
        if search:
            term = f"%{search.strip()}%"
            query = query.where(
                or_(Notification.subject.ilike(term), Notification.message.ilike(term))
            )

        count_q = select(func.count()).select_from(query.order_by(None).subquery())
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        # Unread count is unfiltered; it drives the badge
        unread = await NotificationService.get_unread_count(db, user_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(**build_meta(pagination, total).model_dump(), unread=unread),
        )

    @staticmethod
    async def get_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification:
        notification = await db.get(Notification, notification_id)
        if notification is None or notification.status == NotificationStatus.deleted:
            raise NotFoundException("Notification", str(notification_id))
        if notification.recipient_id != user_id:
            raise ForbiddenException("You can only access your own notifications.")
        return notification

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await NotificationService.get_notification(db, notification_id, user_id)
        if notification.status == NotificationStatus.unread:
            notification.status = NotificationStatus.read
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.status == NotificationStatus.unread,
            )
            .values(status=NotificationStatus.read, read_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def delete_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        notification = await NotificationService.get_notification(db, notification_id, user_id)
        notification.status = NotificationStatus.deleted
        await db.flush()

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for a user."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.status == NotificationStatus.unread,
            )
        )
        return result.scalar_one()

    # ── Templates ───────────────────────────────────────────────────

    @staticmethod
    async def list_templates(
        db: AsyncSession,
        *,
        active: Optional[bool] = None,
    ) -> list[NotificationTemplate]:
        query = select(NotificationTemplate).order_by(NotificationTemplate.name)
        if active is not None:
            query = query.where(NotificationTemplate.active.is_(active))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def get_template(db: AsyncSession, template_id: uuid.UUID) -> NotificationTemplate:
        template = await db.get(NotificationTemplate, template_id)
        if template is None:
            raise NotFoundException("NotificationTemplate", str(template_id))
        return template

    @staticmethod
    async def get_template_by_name(db: AsyncSession, name: str) -> NotificationTemplate:
        result = await db.execute(
            select(NotificationTemplate).where(NotificationTemplate.name == name)
        )
        template = result.scalars().first()
        if template is None:
            raise NotFoundException("NotificationTemplate", name)
        return template

    @staticmethod
    async def create_template(db: AsyncSession, data: TemplateCreate) -> NotificationTemplate:
        await _ensure_template_name_free(db, data.name)
        template = NotificationTemplate(**data.model_dump())
        db.add(template)
        await db.flush()
        return template

    @staticmethod
    async def update_template(
        db: AsyncSession,
        template_id: uuid.UUID,
        data: TemplateUpdate,
    ) -> NotificationTemplate:
        template = await NotificationService.get_template(db, template_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] != template.name:
            await _ensure_template_name_free(db, changes["name"])
        for field, value in changes.items():
            setattr(template, field, value)
        await db.flush()
        return template

    @staticmethod
    async def delete_template(db: AsyncSession, template_id: uuid.UUID) -> None:
        template = await NotificationService.get_template(db, template_id)
        if template.system_template:
            raise BadRequestException("System templates cannot be deleted.")
        await db.delete(template)
        await db.flush()

    # ── Preferences ─────────────────────────────────────────────────

    @staticmethod
    async def get_preferences(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> list[NotificationPreference]:
        result = await db.execute(
            select(NotificationPreference)
            .where(NotificationPreference.user_id == user_id)
            .order_by(NotificationPreference.notification_type)
        )
        return list(result.scalars().all())

    @staticmethod
    async def upsert_preference(
        db: AsyncSession,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        data: PreferenceUpdate,
    ) -> NotificationPreference:
        pref = await _get_preference(db, user_id, notification_type)
        if pref is None:
            pref = NotificationPreference(user_id=user_id, notification_type=notification_type)
            db.add(pref)
        for field, value in data.model_dump().items():
            setattr(pref, field, value)
        await db.flush()
        return pref


# ── Helpers ─────────────────────────────────────────────────────────


async def _ensure_template_name_free(db: AsyncSession, name: str) -> None:
    existing = await db.execute(
        select(NotificationTemplate.id).where(NotificationTemplate.name == name)
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("name", name)


async def _get_preference(
    db: AsyncSession,
    user_id: uuid.UUID,
    notification_type: NotificationType,
) -> Optional[NotificationPreference]:
    result = await db.execute(
        select(NotificationPreference).where(
            NotificationPreference.user_id == user_id,
            NotificationPreference.notification_type == notification_type,
        )
    )
    return result.scalars().first()


async def _deliver_email(db: AsyncSession, recipient: User, notification: Notification) -> None:
    """Email the notification when the recipient's preference asks for it."""
    pref = await _get_preference(db, recipient.id, notification.notification_type)
    if pref is None or not pref.email_enabled:
        return

    sent = await run_in_threadpool(
        email_service.send,
        notification.subject,
        [recipient.email],
        f"<p>{notification.message}</p>",
        notification.message,
    )
    if sent:
        notification.email_sent = True
        notification.email_sent_at = datetime.now(timezone.utc)
        await db.flush()
    else:
        logger.warning("Notification %s was not emailed to %s", notification.id, recipient.email)


# ── Cross-module dispatchers ────────────────────────────────────────
# Imported by the employee, leave, performance and document services.
# They take ORM objects directly and never raise.


async def _user_for_employee(db: AsyncSession, employee_id: Optional[uuid.UUID]) -> Optional[User]:
    if employee_id is None:
        return None
    result = await db.execute(select(User).where(User.employee_id == employee_id))
    return result.scalars().first()


async def notify_employee(
    db: AsyncSession,
    employee_id: Optional[uuid.UUID],
    *,
    subject: str,
    message: str,
    notification_type: NotificationType,
    priority: NotificationPriority = NotificationPriority.medium,
    related_entity_type: Optional[str] = None,
    related_entity_id: Any = None,
    action_url: Optional[str] = None,
) -> Optional[Notification]:
    """Notify the user linked to *employee_id*; failures are logged."""
    try:
        # savepoint: a failed insert must not poison the caller's transaction
        async with db.begin_nested():
            user = await _user_for_employee(db, employee_id)
            if user is None:
                logger.debug("No user linked to employee %s; skipping notification", employee_id)
                return None
            return await NotificationService.create_notification(
                db,
                recipient_id=user.id,
                subject=subject,
                message=message,
                notification_type=notification_type,
                priority=priority,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
                action_url=action_url,
            )
    except Exception:
        logger.exception("Failed to notify employee %s (%s)", employee_id, notification_type.value)
        return None


async def notify_leave_request(db: AsyncSession, leave_request, approver_employee_id) -> None:
    """Tell the approver that a leave request needs review."""
    await notify_employee(
        db,
        approver_employee_id,
        subject="New Leave Request",
        message=(
            f"A leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} ({leave_request.total_days} day(s)) "
            f"requires your approval."
        ),
        notification_type=NotificationType.leave_request,
        related_entity_type="leave_request",
        related_entity_id=leave_request.id,
        action_url=f"/leave/requests/{leave_request.id}",
    )


async def notify_leave_approved(db: AsyncSession, leave_request) -> None:
    await notify_employee(
        db,
        leave_request.employee_id,
        subject="Leave Request Approved",
        message=(
            f"Your leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} has been approved."
        ),
        notification_type=NotificationType.leave_approval,
        related_entity_type="leave_request",
        related_entity_id=leave_request.id,
        action_url=f"/leave/requests/{leave_request.id}",
    )


async def notify_leave_rejected(db: AsyncSession, leave_request) -> None:
    reason = leave_request.rejection_reason or "No reason provided."
    await notify_employee(
        db,
        leave_request.employee_id,
        subject="Leave Request Rejected",
        message=(
            f"Your leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} has been rejected. Reason: {reason}"
        ),
        notification_type=NotificationType.leave_rejection,
        priority=NotificationPriority.high,
        related_entity_type="leave_request",
        related_entity_id=leave_request.id,
        action_url=f"/leave/requests/{leave_request.id}",
    )


async def notify_review_assigned(db: AsyncSession, review) -> None:
    await notify_employee(
        db,
        review.employee_id,
        subject="Performance Review Scheduled",
        message=(
            f"A performance review for {review.review_period_start} to "
            f"{review.review_period_end} has been created for you."
        ),
        notification_type=NotificationType.performance_review,
        related_entity_type="performance_review",
        related_entity_id=review.id,
        action_url=f"/performance/reviews/{review.id}",
    )


async def notify_goal_assigned(db: AsyncSession, goal) -> None:
    due = f" (target {goal.target_date})" if goal.target_date else ""
    await notify_employee(
        db,
        goal.employee_id,
        subject="New Goal Assigned",
        message=f"A new goal '{goal.title}'{due} has been assigned to you.",
        notification_type=NotificationType.goal_assigned,
        related_entity_type="goal",
        related_entity_id=goal.id,
        action_url=f"/performance/goals/{goal.id}",
    )


async def notify_document_approved(db: AsyncSession, document) -> None:
    await notify_employee(
        db,
        document.employee_id,
        subject="Document Approved",
        message=f"Your document '{document.name}' has been approved.",
        notification_type=NotificationType.document_approval,
        related_entity_type="document",
        related_entity_id=document.id,
    )


async def notify_document_rejected(db: AsyncSession, document) -> None:
    notes = document.rejection_notes or "No reason provided."
    await notify_employee(
        db,
        document.employee_id,
        subject="Document Rejected",
        message=f"Your document '{document.name}' has been rejected. Reason: {notes}",
        notification_type=NotificationType.document_rejection,
        priority=NotificationPriority.high,
        related_entity_type="document",
        related_entity_id=document.id,
    )


async def notify_onboarding(db: AsyncSession, employee) -> None:
    await notify_employee(
        db,
        employee.id,
        subject="Welcome aboard",
        message=(
            f"Welcome {employee.first_name}! Your onboarding has started "
            f"with a start date of {employee.hire_date}."
        ),
        notification_type=NotificationType.employee_onboarding,
        related_entity_type="employee",
        related_entity_id=employee.id,
    )


async def notify_offboarding(db: AsyncSession, employee) -> None:
    await notify_employee(
        db,
        employee.id,
        subject="Offboarding initiated",
        message=(
            f"Your offboarding has been initiated. Last working day: "
            f"{employee.termination_date}."
        ),
        notification_type=NotificationType.employee_offboarding,
        priority=NotificationPriority.high,
        related_entity_type="employee",
        related_entity_id=employee.id,
    )

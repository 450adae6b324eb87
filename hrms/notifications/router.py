"""Notification endpoints — inbox, templates and delivery preferences."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_user, require_role
from hrms.auth.models import User
from hrms.common.constants import NotificationStatus, NotificationType, UserRole
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.notifications.schemas import (
    NotificationCreate,
    NotificationFromTemplate,
    NotificationListResponse,
    NotificationResponse,
    PreferenceResponse,
    PreferenceUpdate,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from hrms.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])

_staff = require_role(UserRole.hr)
_admin = require_role(UserRole.admin)


# ── GET / — list current user's notifications ───────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    status: Optional[NotificationStatus] = Query(default=None),
    type: Optional[NotificationType] = Query(default=None, alias="type"),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the authenticated user (paginated)."""
    return await NotificationService.get_notifications(
        db, user.id, pagination, status=status, notification_type=type,
    )


@router.post("", status_code=201)
async def create_notification(
    body: NotificationCreate,
    sender: User = Depends(_staff),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.create_notification(
        db,
        recipient_id=body.recipient_id,
        sender_id=sender.id,
        subject=body.subject,
        message=body.message,
        notification_type=body.notification_type,
        priority=body.priority,
        related_entity_type=body.related_entity_type,
        related_entity_id=body.related_entity_id,
        action_url=body.action_url,
    )
    return {
        "data": NotificationResponse.model_validate(notification),
        "message": "Notification created",
    }


@router.post("/from-template", status_code=201)
async def create_from_template(
    body: NotificationFromTemplate,
    sender: User = Depends(_staff),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.create_from_template(
        db,
        template_name=body.template_name,
        recipient_id=body.recipient_id,
        variables=body.variables,
        priority=body.priority,
        sender_id=sender.id,
        related_entity_type=body.related_entity_type,
        related_entity_id=body.related_entity_id,
        action_url=body.action_url,
    )
    return {
        "data": NotificationResponse.model_validate(notification),
        "message": "Notification created",
    }


# Fixed paths are registered before /{notification_id} so they are not
# parsed as UUIDs.

@router.get("/unread-count")
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, user.id)
    return {"data": {"count": count}}


@router.get("/search", response_model=NotificationListResponse)
async def search_notifications(
    q: str = Query(..., min_length=1),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.get_notifications(db, user.id, pagination, search=q)


@router.put("/read-all")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── Templates ───────────────────────────────────────────────────────

@router.get("/templates")
async def list_templates(
    active: Optional[bool] = Query(default=None),
    _: User = Depends(_staff),
    db: AsyncSession = Depends(get_db),
):
    templates = await NotificationService.list_templates(db, active=active)
    return {"data": [TemplateResponse.model_validate(t) for t in templates]}


@router.post("/templates", status_code=201)
async def create_template(
    body: TemplateCreate,
    _: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await NotificationService.create_template(db, body)
    return {"data": TemplateResponse.model_validate(template), "message": "Template created"}


@router.get("/templates/{template_id}")
async def get_template(
    template_id: uuid.UUID,
    _: User = Depends(_staff),
    db: AsyncSession = Depends(get_db),
):
    template = await NotificationService.get_template(db, template_id)
    return {"data": TemplateResponse.model_validate(template)}


@router.put("/templates/{template_id}")
async def update_template(
    template_id: uuid.UUID,
    body: TemplateUpdate,
    _: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await NotificationService.update_template(db, template_id, body)
    return {"data": TemplateResponse.model_validate(template), "message": "Template updated"}


@router.delete("/templates/{template_id}", status_code=204)
async def delete_template(
    template_id: uuid.UUID,
    _: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService.delete_template(db, template_id)
    return Response(status_code=204)


# ── Preferences ─────────────────────────────────────────────────────

@router.get("/preferences")
async def get_preferences(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    prefs = await NotificationService.get_preferences(db, user.id)
    return {"data": [PreferenceResponse.model_validate(p) for p in prefs]}


@router.put("/preferences/{notification_type}")
async def upsert_preference(
    notification_type: NotificationType,
    body: PreferenceUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    pref = await NotificationService.upsert_preference(db, user.id, notification_type, body)
    return {"data": PreferenceResponse.model_validate(pref), "message": "Preference saved"}


# ── Single notification ─────────────────────────────────────────────

@router.get("/{notification_id}")
async def get_notification(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.get_notification(db, notification_id, user.id)
    return {"data": NotificationResponse.model_validate(notification)}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.mark_read(db, notification_id, user.id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService.delete_notification(db, notification_id, user.id)
    return Response(status_code=204)

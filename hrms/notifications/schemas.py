"""Notification Pydantic schemas for request / response validation."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from hrms.common.constants import NotificationPriority, NotificationStatus, NotificationType
from hrms.common.pagination import PaginationMeta

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ── Notifications ───────────────────────────────────────────────────

class NotificationCreate(BaseModel):
    recipient_id: uuid.UUID
    notification_type: NotificationType = NotificationType.info
    priority: NotificationPriority = NotificationPriority.medium
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    related_entity_type: Optional[str] = Field(None, max_length=50)
    related_entity_id: Optional[str] = Field(None, max_length=64)
    action_url: Optional[str] = Field(None, max_length=500)


class NotificationFromTemplate(BaseModel):
    template_name: str
    recipient_id: uuid.UUID
    variables: dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.medium
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    action_url: Optional[str] = None


class NotificationResponse(BaseModel):
    """Single notification in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    recipient_id: uuid.UUID
    sender_id: Optional[uuid.UUID] = None
    notification_type: NotificationType
    status: NotificationStatus
    priority: NotificationPriority
    subject: str
    message: str
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    action_url: Optional[str] = None
    read_at: Optional[datetime] = None
    email_sent: bool
    created_at: datetime


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    meta: NotificationListMeta


# ── Templates ───────────────────────────────────────────────────────

class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    notification_type: NotificationType
    subject_template: str = Field(..., min_length=1, max_length=200)
    message_template: str = Field(..., min_length=1)
    email_template: Optional[str] = None
    active: bool = True
    system_template: bool = False
    description: Optional[str] = Field(None, max_length=500)
    variables: Optional[list[str]] = None


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    notification_type: Optional[NotificationType] = None
    subject_template: Optional[str] = Field(None, min_length=1, max_length=200)
    message_template: Optional[str] = Field(None, min_length=1)
    email_template: Optional[str] = None
    active: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=500)
    variables: Optional[list[str]] = None


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    notification_type: NotificationType
    subject_template: str
    message_template: str
    email_template: Optional[str] = None
    active: bool
    system_template: bool
    description: Optional[str] = None
    variables: Optional[list[str]] = None
    created_at: datetime
    updated_at: datetime


# ── Preferences ─────────────────────────────────────────────────────

class PreferenceUpdate(BaseModel):
    in_app_enabled: bool = True
    email_enabled: bool = True
    sms_enabled: bool = False
    push_enabled: bool = False
    quiet_hours_start: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    quiet_hours_end: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    weekend_delivery: bool = True
    frequency_limit: Optional[int] = Field(None, ge=1)


class PreferenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    notification_type: NotificationType
    in_app_enabled: bool
    email_enabled: bool
    sms_enabled: bool
    push_enabled: bool
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    weekend_delivery: bool
    frequency_limit: Optional[int] = None

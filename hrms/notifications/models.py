"""Notification ORM models: Notification, NotificationTemplate, NotificationPreference."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrms.common.constants import NotificationPriority, NotificationStatus, NotificationType
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.database import Base

_TYPE_ENUM = sa.Enum(NotificationType, name="notification_type", native_enum=False, length=30)


class Notification(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "notifications"

    recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    notification_type: Mapped[NotificationType] = mapped_column(_TYPE_ENUM, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        sa.Enum(NotificationStatus, name="notification_status", native_enum=False, length=20),
        default=NotificationStatus.unread,
        nullable=False,
    )
    priority: Mapped[NotificationPriority] = mapped_column(
        sa.Enum(NotificationPriority, name="notification_priority", native_enum=False, length=10),
        default=NotificationPriority.medium,
        nullable=False,
    )
    subject: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    related_entity_type: Mapped[Optional[str]] = mapped_column(sa.String(50))
    related_entity_id: Mapped[Optional[str]] = mapped_column(sa.String(64))
    action_url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    read_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    email_sent: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    email_sent_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    __table_args__ = (
        sa.Index("ix_notifications_recipient_status", "recipient_id", "status"),
    )


class NotificationTemplate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "notification_templates"

    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(_TYPE_ENUM, nullable=False)
    subject_template: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    message_template: Mapped[str] = mapped_column(sa.Text, nullable=False)
    email_template: Mapped[Optional[str]] = mapped_column(sa.Text)
    active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    system_template: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.String(500))
    variables: Mapped[Optional[list]] = mapped_column(JSONB)


class NotificationPreference(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    notification_type: Mapped[NotificationType] = mapped_column(_TYPE_ENUM, nullable=False)
    in_app_enabled: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    email_enabled: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    sms_enabled: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    push_enabled: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    quiet_hours_start: Mapped[Optional[str]] = mapped_column(sa.String(5))
    quiet_hours_end: Mapped[Optional[str]] = mapped_column(sa.String(5))
    weekend_delivery: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    frequency_limit: Mapped[Optional[int]] = mapped_column(sa.Integer)

    __table_args__ = (
        sa.UniqueConstraint("user_id", "notification_type", name="uq_notification_pref_user_type"),
    )

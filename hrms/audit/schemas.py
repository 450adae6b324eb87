"""Audit log schemas."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuditLogCreate(BaseModel):
    """Manually recorded audit entry."""

    action: str = Field(..., min_length=1, max_length=50)
    entity_type: Optional[str] = Field(None, max_length=50)
    entity_id: Optional[str] = Field(None, max_length=64)
    description: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    success: bool = True
    error_message: Optional[str] = None


class AuditLogFilter(BaseModel):
    user_id: Optional[uuid.UUID] = None
    username: Optional[str] = None
    action: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    ip_address: Optional[str] = None
    success: Optional[bool] = None
    security_event: Optional[bool] = None
    http_method: Optional[str] = None


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    username: str
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    description: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_url: Optional[str] = None
    http_method: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    security_event: bool
    created_at: datetime

    @field_validator("ip_address", mode="before")
    @classmethod
    def _ip_to_str(cls, value: Any) -> Optional[str]:
        # asyncpg hands INET back as an ipaddress object
        return str(value) if value is not None else None


class UserActivity(BaseModel):
    username: str
    count: int


class AuditStatistics(BaseModel):
    days: int
    since: datetime
    total: int
    security_events: int
    failures: int
    by_action: dict[str, int]
    by_entity_type: dict[str, int]
    top_users: list[UserActivity]

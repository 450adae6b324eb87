"""User and role administration schemas."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ── Users ───────────────────────────────────────────────────────────

class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None


class UserRolesUpdate(BaseModel):
    role_ids: list[uuid.UUID] = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    enabled: bool
    account_non_locked: bool
    email_verified: bool
    failed_login_attempts: int
    last_login_at: Optional[datetime] = None
    employee_id: Optional[uuid.UUID] = None
    roles: list[str]
    created_at: datetime
    updated_at: datetime


# ── Roles / permissions ─────────────────────────────────────────────

class PermissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=255)
    permission_ids: list[uuid.UUID] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=255)


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    permissions: list[PermissionResponse] = []
    created_at: datetime
    updated_at: datetime

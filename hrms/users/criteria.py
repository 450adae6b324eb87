"""User search criteria."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel
from sqlalchemy import Select, func, select

from hrms.auth.models import Role, User


class UserSearchCriteria(BaseModel):
    """Optional filters combined with AND. Text fields match partially, ignoring case."""

    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    enabled: Optional[bool] = None
    email_verified: Optional[bool] = None
    role: Optional[str] = None


def _contains(column, value: str):
    return func.lower(column).like(f"%{value.strip().lower()}%")


def build_user_query(criteria: UserSearchCriteria) -> Select:
    query = select(User)
    for field in ("username", "email", "first_name", "last_name"):
        value = getattr(criteria, field)
        if value:
            query = query.where(_contains(getattr(User, field), value))
    if criteria.enabled is not None:
        query = query.where(User.enabled == criteria.enabled)
    if criteria.email_verified is not None:
        query = query.where(User.email_verified == criteria.email_verified)
    if criteria.role:
        query = query.where(User.roles.any(func.upper(Role.name) == criteria.role.strip().upper()))
    return query

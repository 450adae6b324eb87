"""Auth dependencies — JWT validation, RBAC enforcement."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.models import User, UserSession
from hrms.auth.service import hash_token
from hrms.common.constants import UserRole
from hrms.common.exceptions import BadRequestException, ForbiddenException
from hrms.config import settings
from hrms.database import get_db

# Role hierarchy — each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.super_admin: {
        UserRole.super_admin, UserRole.admin, UserRole.hr, UserRole.manager, UserRole.user,
    },
    UserRole.admin: {UserRole.admin, UserRole.hr, UserRole.manager, UserRole.user},
    UserRole.hr: {UserRole.hr, UserRole.manager, UserRole.user},
    UserRole.manager: {UserRole.manager, UserRole.user},
    UserRole.user: {UserRole.user},
}


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def effective_roles(role_names: list[str]) -> set[UserRole]:
    """Expand assigned role names through the hierarchy."""
    roles: set[UserRole] = set()
    for name in role_names:
        try:
            role = UserRole(name)
        except ValueError:
            # custom roles only carry their permissions
            continue
        roles |= _ROLE_HIERARCHY[role]
    return roles


def has_role(request: Request, role: UserRole) -> bool:
    """True when the authenticated caller holds *role* or a higher one."""
    return role in getattr(request.state, "user_roles", set())


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate JWT, verify session, return the authenticated User."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    # Verify session exists, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise HTTPException(status_code=401, detail="Session invalid or expired.")

    user = await db.get(User, uuid.UUID(payload["sub"]))
    if user is None or not user.enabled:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    # Roles come from the database so revocations apply immediately
    request.state.user_roles = effective_roles(user.role_names)
    request.state.permissions = set(user.permission_names)
    request.state.token_hash = hash_token(token)

    return user


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. ADMIN can access HR endpoints.
    """

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        if not request.state.user_roles.intersection(allowed_roles):
            raise ForbiddenException(
                detail=f"Access denied. Required role: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check


# ── Permission-based dependency ─────────────────────────────────────

def require_permission(permission: str) -> Callable:
    """Return a FastAPI dependency that enforces a specific permission."""

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        if permission not in request.state.permissions:
            raise ForbiddenException(
                detail=f"Permission '{permission}' is not granted.",
            )
        return user

    return _check


# ── Employee link ───────────────────────────────────────────────────

def linked_employee_id(user: User) -> uuid.UUID:
    """Employee record of a self-service caller, or 400 when unlinked."""
    if user.employee_id is None:
        raise BadRequestException("Current user is not linked to an employee record.")
    return user.employee_id

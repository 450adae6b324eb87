"""User administration and role management."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.models import Permission, Role, User, user_roles
from hrms.auth.service import revoke_all_user_sessions
from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction
from hrms.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hrms.common.filters import apply_sorting
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.users.criteria import UserSearchCriteria, build_user_query
from hrms.users.schemas import RoleCreate, RoleUpdate, UserUpdate

logger = logging.getLogger(__name__)

USER_SORT_FIELDS = (
    "username", "email", "first_name", "last_name", "enabled", "last_login_at", "created_at",
)


class UserService:

    @staticmethod
    async def get(db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    @staticmethod
    async def list_users(db: AsyncSession, pagination: PaginationParams) -> PaginatedResponse:
        query = apply_sorting(select(User), User, pagination.sort or "username", allowed=USER_SORT_FIELDS)
        return await paginate(db, query, pagination)

    @staticmethod
    async def search(
        db: AsyncSession,
        criteria: UserSearchCriteria,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        query = apply_sorting(
            build_user_query(criteria), User, pagination.sort or "username", allowed=USER_SORT_FIELDS,
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        data: UserUpdate,
        *,
        actor: Any = None,
    ) -> User:
        user = await UserService.get(db, user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes and changes["email"].lower() != user.email.lower():
            taken = await db.scalar(
                select(User.id).where(func.lower(User.email) == changes["email"].lower(), User.id != user_id)
            )
            if taken is not None:
                raise ConflictError("email", changes["email"])

        old_values = {field: getattr(user, field) for field in changes}
        for field, value in changes.items():
            setattr(user, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="user",
            entity_id=user.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return user

    @staticmethod
    async def set_roles(
        db: AsyncSession,
        user_id: uuid.UUID,
        role_ids: list[uuid.UUID],
        *,
        actor: Any = None,
    ) -> User:
        user = await UserService.get(db, user_id)
        roles = []
        for role_id in dict.fromkeys(role_ids):
            roles.append(await RoleService.get(db, role_id))

        old_roles = user.role_names
        user.roles = roles
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="user",
            entity_id=user.id,
            description="Roles replaced",
            old_values={"roles": old_roles},
            new_values={"roles": [r.name for r in roles]},
            **actor_fields(actor),
        )
        return user

    @staticmethod
    async def activate(db: AsyncSession, user_id: uuid.UUID, *, actor: Any = None) -> User:
        """Enable and unlock the account, clearing failed login attempts."""
        user = await UserService.get(db, user_id)
        user.enabled = True
        user.account_non_locked = True
        user.locked_until = None
        user.failed_login_attempts = 0
        await db.flush()

        await create_audit_entry(
            db,
            action="ACTIVATE",
            entity_type="user",
            entity_id=user.id,
            new_values={"enabled": True, "account_non_locked": True},
            **actor_fields(actor),
        )
        return user

    @staticmethod
    async def deactivate(db: AsyncSession, user_id: uuid.UUID, *, actor: Any = None) -> User:
        user = await UserService.get(db, user_id)
        if actor is not None and actor.id == user.id:
            raise BadRequestException("You cannot deactivate your own account")
        user.enabled = False
        await revoke_all_user_sessions(db, user.id)
        await db.flush()

        await create_audit_entry(
            db,
            action="DEACTIVATE",
            entity_type="user",
            entity_id=user.id,
            new_values={"enabled": False},
            **actor_fields(actor),
        )
        logger.info("User %s disabled", user.username)
        return user

    @staticmethod
    async def delete(db: AsyncSession, user_id: uuid.UUID, *, actor: Any = None) -> None:
        """Users are never removed; deleting one disables it."""
        await UserService.deactivate(db, user_id, actor=actor)


class RoleService:

    @staticmethod
    async def get(db: AsyncSession, role_id: uuid.UUID) -> Role:
        role = await db.get(Role, role_id)
        if role is None:
            raise NotFoundException("Role", str(role_id))
        return role

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Role:
        role = await db.scalar(select(Role).where(func.upper(Role.name) == name.upper()))
        if role is None:
            raise NotFoundException("Role", name)
        return role

    @staticmethod
    async def list_roles(db: AsyncSession) -> Sequence[Role]:
        return (await db.execute(select(Role).order_by(Role.name))).scalars().all()

    @staticmethod
    async def list_permissions(db: AsyncSession) -> Sequence[Permission]:
        return (await db.execute(select(Permission).order_by(Permission.name))).scalars().all()

    @staticmethod
    async def get_permission(db: AsyncSession, permission_id: uuid.UUID) -> Permission:
        permission = await db.get(Permission, permission_id)
        if permission is None:
            raise NotFoundException("Permission", str(permission_id))
        return permission

    @staticmethod
    async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(Role.id).where(func.upper(Role.name) == name.upper())
        if exclude_id is not None:
            query = query.where(Role.id != exclude_id)
        if await db.scalar(query) is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create(db: AsyncSession, data: RoleCreate, *, actor: Any = None) -> Role:
        name = data.name.strip().upper()
        await RoleService._ensure_name_free(db, name)
        permissions = [await RoleService.get_permission(db, pid) for pid in dict.fromkeys(data.permission_ids)]
        role = Role(name=name, description=data.description, permissions=permissions)
        db.add(role)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="role",
            entity_id=role.id,
            new_values={"name": role.name, "permissions": [p.name for p in permissions]},
            **actor_fields(actor),
        )
        return role

    @staticmethod
    async def update(db: AsyncSession, role_id: uuid.UUID, data: RoleUpdate, *, actor: Any = None) -> Role:
        role = await RoleService.get(db, role_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip().upper()
            if changes["name"] != role.name:
                await RoleService._ensure_name_free(db, changes["name"], exclude_id=role_id)

        old_values = {field: getattr(role, field) for field in changes}
        for field, value in changes.items():
            setattr(role, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="role",
            entity_id=role.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return role

    @staticmethod
    async def delete(db: AsyncSession, role_id: uuid.UUID, *, actor: Any = None) -> None:
        role = await RoleService.get(db, role_id)
        assigned = await db.scalar(
            select(func.count()).select_from(user_roles).where(user_roles.c.role_id == role_id)
        )
        if assigned:
            raise BadRequestException(f"Role '{role.name}' is assigned to {assigned} users")
        await db.delete(role)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="role",
            entity_id=role_id,
            old_values={"name": role.name},
            **actor_fields(actor),
        )

    @staticmethod
    async def add_permission(
        db: AsyncSession,
        role_id: uuid.UUID,
        permission_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> Role:
        role = await RoleService.get(db, role_id)
        permission = await RoleService.get_permission(db, permission_id)
        if permission not in role.permissions:
            role.permissions.append(permission)
            await db.flush()
            await create_audit_entry(
                db,
                action=AuditAction.UPDATE,
                entity_type="role",
                entity_id=role.id,
                description=f"Permission {permission.name} added",
                **actor_fields(actor),
            )
        return role

    @staticmethod
    async def remove_permission(
        db: AsyncSession,
        role_id: uuid.UUID,
        permission_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> Role:
        role = await RoleService.get(db, role_id)
        permission = await RoleService.get_permission(db, permission_id)
        if permission in role.permissions:
            role.permissions.remove(permission)
            await db.flush()
            await create_audit_entry(
                db,
                action=AuditAction.UPDATE,
                entity_type="role",
                entity_id=role.id,
                description=f"Permission {permission.name} removed",
                **actor_fields(actor),
            )
        return role

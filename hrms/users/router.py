"""User administration and role management routers (ADMIN and above)."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import require_permission
from hrms.auth.models import User
from hrms.common.pagination import PaginationParams
from hrms.database import get_db
from hrms.users.criteria import UserSearchCriteria
from hrms.users.schemas import (
    PermissionResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    UserResponse,
    UserRolesUpdate,
    UserUpdate,
)
from hrms.users.service import RoleService, UserService

router = APIRouter(prefix="", tags=["users"])
roles_router = APIRouter(prefix="", tags=["roles"])

_users = require_permission("USER_MANAGE")
_roles = require_permission("ROLE_MANAGE")


def _user_out(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        enabled=user.enabled,
        account_non_locked=user.account_non_locked,
        email_verified=user.email_verified,
        failed_login_attempts=user.failed_login_attempts,
        last_login_at=user.last_login_at,
        employee_id=user.employee_id,
        roles=user.role_names,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


# ═════════════════════════════════════════════════════════════════════
# Users
# ═════════════════════════════════════════════════════════════════════


@router.get("")
async def list_users(
    pagination: PaginationParams = Depends(),
    _: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    result = await UserService.list_users(db, pagination)
    return {"data": [_user_out(u) for u in result.data], "meta": result.meta.model_dump()}


@router.get("/search")
async def search_users(
    username: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    first_name: Optional[str] = Query(None),
    last_name: Optional[str] = Query(None),
    enabled: Optional[bool] = Query(None),
    email_verified: Optional[bool] = Query(None),
    role: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    criteria = UserSearchCriteria(
        username=username,
        email=email,
        first_name=first_name,
        last_name=last_name,
        enabled=enabled,
        email_verified=email_verified,
        role=role,
    )
    result = await UserService.search(db, criteria, pagination)
    return {"data": [_user_out(u) for u in result.data], "meta": result.meta.model_dump()}


@router.get("/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    _: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _user_out(await UserService.get(db, user_id))}


@router.put("/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    actor: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService.update(db, user_id, body, actor=actor)
    return {"data": _user_out(user), "message": "User updated"}


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: uuid.UUID,
    actor: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    await UserService.delete(db, user_id, actor=actor)
    return Response(status_code=204)


@router.get("/{user_id}/roles")
async def get_user_roles(
    user_id: uuid.UUID,
    _: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService.get(db, user_id)
    return {"data": [RoleResponse.model_validate(r) for r in user.roles]}


@router.put("/{user_id}/roles")
async def update_user_roles(
    user_id: uuid.UUID,
    body: UserRolesUpdate,
    actor: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService.set_roles(db, user_id, body.role_ids, actor=actor)
    return {"data": _user_out(user), "message": "Roles updated"}


@router.post("/{user_id}/activate")
async def activate_user(
    user_id: uuid.UUID,
    actor: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService.activate(db, user_id, actor=actor)
    return {"data": _user_out(user), "message": "User activated"}


@router.post("/{user_id}/deactivate")
async def deactivate_user(
    user_id: uuid.UUID,
    actor: User = Depends(_users),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService.deactivate(db, user_id, actor=actor)
    return {"data": _user_out(user), "message": "User deactivated"}


# ═════════════════════════════════════════════════════════════════════
# Roles
# ═════════════════════════════════════════════════════════════════════


@roles_router.get("")
async def list_roles(
    _: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    return {"data": [RoleResponse.model_validate(r) for r in await RoleService.list_roles(db)]}


@roles_router.post("", status_code=201)
async def create_role(
    body: RoleCreate,
    actor: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    role = await RoleService.create(db, body, actor=actor)
    return {"data": RoleResponse.model_validate(role), "message": "Role created"}


@roles_router.get("/permissions")
async def list_permissions(
    _: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    rows = await RoleService.list_permissions(db)
    return {"data": [PermissionResponse.model_validate(p) for p in rows]}


@roles_router.get("/name/{name}")
async def get_role_by_name(
    name: str,
    _: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    return {"data": RoleResponse.model_validate(await RoleService.get_by_name(db, name))}


@roles_router.get("/{role_id}")
async def get_role(
    role_id: uuid.UUID,
    _: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    return {"data": RoleResponse.model_validate(await RoleService.get(db, role_id))}


@roles_router.put("/{role_id}")
async def update_role(
    role_id: uuid.UUID,
    body: RoleUpdate,
    actor: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    role = await RoleService.update(db, role_id, body, actor=actor)
    return {"data": RoleResponse.model_validate(role), "message": "Role updated"}


@roles_router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: uuid.UUID,
    actor: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    await RoleService.delete(db, role_id, actor=actor)
    return Response(status_code=204)


@roles_router.get("/{role_id}/permissions")
async def get_role_permissions(
    role_id: uuid.UUID,
    _: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    role = await RoleService.get(db, role_id)
    return {"data": [PermissionResponse.model_validate(p) for p in role.permissions]}


@roles_router.post("/{role_id}/permissions/{permission_id}")
async def add_role_permission(
    role_id: uuid.UUID,
    permission_id: uuid.UUID,
    actor: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    role = await RoleService.add_permission(db, role_id, permission_id, actor=actor)
    return {"data": RoleResponse.model_validate(role), "message": "Permission added"}


@roles_router.delete("/{role_id}/permissions/{permission_id}")
async def remove_role_permission(
    role_id: uuid.UUID,
    permission_id: uuid.UUID,
    actor: User = Depends(_roles),
    db: AsyncSession = Depends(get_db),
):
    role = await RoleService.remove_permission(db, role_id, permission_id, actor=actor)
    return {"data": RoleResponse.model_validate(role), "message": "Permission removed"}

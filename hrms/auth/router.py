"""Auth router — login, registration, tokens, passwords, current user."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth import service
from hrms.auth.dependencies import get_current_user
from hrms.auth.models import User
from hrms.auth.schemas import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    MeResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserInfo,
)
from hrms.common.audit import create_audit_entry, request_context
from hrms.common.constants import AuditAction
from hrms.common.rate_limit import LOGIN_RATE_LIMIT, limiter
from hrms.database import get_db

router = APIRouter(prefix="", tags=["auth"])


def _user_info(user: User) -> UserInfo:
    return UserInfo(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        roles=user.role_names,
        employee_id=user.employee_id,
    )


# ── POST /login ─────────────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    context = request_context(request)
    user = await service.authenticate(db, body.username, body.password, context)
    access_token, refresh_token, expires_in = await service.create_session(
        db, user, context.get("ip_address"), context.get("user_agent"),
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        user=_user_info(user),
    )


# ── POST /register ──────────────────────────────────────────────────

@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await service.register_user(
        db,
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return {
        "data": _user_info(user),
        "message": "Registration successful. Please verify your email.",
    }


# ── POST /refresh — rotate token pair ───────────────────────────────

@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    access, refresh, expires_in = await service.refresh_access_token(db, body.refresh_token)
    return RefreshResponse(access_token=access, refresh_token=refresh, expires_in=expires_in)


# ── POST /logout — revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.revoke_session(db, request.state.token_hash)
    await create_audit_entry(
        db,
        action=AuditAction.LOGOUT,
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
        username=user.username,
        **request_context(request),
    )
    return {"message": "Logged out successfully"}


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        enabled=user.enabled,
        email_verified=user.email_verified,
        last_login_at=user.last_login_at,
        employee_id=user.employee_id,
        roles=user.role_names,
        permissions=user.permission_names,
    )


# ── Email verification ──────────────────────────────────────────────

@router.post("/verify-email")
async def verify_email(
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    await service.verify_email(db, token)
    return {"message": "Email verified successfully"}


@router.post("/resend-verification")
async def resend_verification(
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
):
    await service.resend_verification(db, body.email)
    return {"message": "Verification email sent"}


# ── Passwords ───────────────────────────────────────────────────────

@router.post("/forgot-password")
async def forgot_password(
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
):
    await service.forgot_password(db, body.email)
    return {"message": "If the email is registered, a reset link has been sent"}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    await service.reset_password(db, body.token, body.new_password, request_context(request))
    return {"message": "Password has been reset"}


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.change_password(db, user, body.current_password, body.new_password)
    return {"message": "Password changed successfully"}

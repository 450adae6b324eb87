"""Auth service — credentials, JWT management, session lifecycle."""

from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from werkzeug.security import check_password_hash, generate_password_hash

from hrms.auth.models import Role, User, UserSession
from hrms.common.audit import create_audit_entry
from hrms.common.constants import AuditAction, UserRole
from hrms.common.exceptions import (
    BadRequestException,
    ConflictError,
    NotFoundException,
    UnauthorizedException,
)
from hrms.common.models import ensure_aware
from hrms.config import settings
from hrms.notifications.email import send_password_reset_email, send_verification_email

logger = logging.getLogger(__name__)


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(user: User) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "roles": user.role_names,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def _create_refresh_token(user_id: uuid.UUID) -> str:
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,  # each refresh token is distinct
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ── Lookups ─────────────────────────────────────────────────────────

async def get_user_by_login(db: AsyncSession, login: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(or_(User.username == login, User.email == login.lower())),
    )
    return result.scalars().first()


async def get_role_by_name(db: AsyncSession, name: str) -> Role:
    result = await db.execute(select(Role).where(Role.name == name))
    role = result.scalars().first()
    if role is None:
        raise NotFoundException(entity_type="Role", entity_id=name)
    return role


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    user: User,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, str, int]:
    """Create JWT pair and persist session. Returns (access, refresh, expires_in)."""
    access_token, expires_in = create_access_token(user)
    refresh_token = _create_refresh_token(user.id)

    session = UserSession(
        user_id=user.id,
        token_hash=hash_token(access_token),
        refresh_token_hash=hash_token(refresh_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    )
    db.add(session)
    await db.flush()

    return access_token, refresh_token, expires_in


# ── Login ───────────────────────────────────────────────────────────

async def authenticate(
    db: AsyncSession,
    login: str,
    password: str,
    context: dict[str, Any],
) -> User:
    """Check credentials, applying the failed-attempt lockout policy.

    Failure bookkeeping is committed before the 401 is raised so that the
    request rollback does not undo it.
    """
    user = await get_user_by_login(db, login)
    now = datetime.now(timezone.utc)

    if user is None:
        await create_audit_entry(
            db,
            action=AuditAction.LOGIN_FAILED,
            entity_type="user",
            username="ANONYMOUS",
            description=f"Unknown user '{login}'",
            success=False,
            error_message="Invalid credentials",
            **context,
        )
        await db.commit()
        raise UnauthorizedException("Invalid username or password.")

    locked_until = ensure_aware(user.locked_until)
    if locked_until is not None and locked_until > now:
        raise UnauthorizedException("Account is locked. Try again later.")
    if locked_until is not None:
        # lock period elapsed
        user.locked_until = None
        user.account_non_locked = True
        user.failed_login_attempts = 0

    if not user.enabled:
        raise UnauthorizedException("Account is disabled.")

    if not verify_password(password, user.password_hash):
        user.failed_login_attempts += 1
        action = AuditAction.LOGIN_FAILED
        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.account_non_locked = False
            user.locked_until = now + timedelta(minutes=settings.ACCOUNT_LOCK_MINUTES)
            action = AuditAction.ACCOUNT_LOCKED
            logger.warning("Account %s locked after %d failed logins",
                           user.username, user.failed_login_attempts)
        await create_audit_entry(
            db,
            action=action,
            entity_type="user",
            entity_id=user.id,
            actor_id=user.id,
            username=user.username,
            success=False,
            error_message="Invalid credentials",
            **context,
        )
        await db.commit()
        raise UnauthorizedException("Invalid username or password.")

    user.failed_login_attempts = 0
    user.account_non_locked = True
    user.last_login_at = now
    await create_audit_entry(
        db,
        action=AuditAction.LOGIN,
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
        username=user.username,
        **context,
    )
    return user


# ── Registration / verification ─────────────────────────────────────

async def register_user(
    db: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> User:
    email = email.lower()
    existing = await db.execute(select(User.id).where(User.username == username))
    if existing.first():
        raise ConflictError(field="username", value=username)
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.first():
        raise ConflictError(field="email", value=email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        email_verification_token=secrets.token_urlsafe(32),
    )
    user.roles = [await get_role_by_name(db, UserRole.user.value)]
    db.add(user)
    await db.flush()

    await run_in_threadpool(
        send_verification_email, user.email, user.username, user.email_verification_token,
    )
    logger.info("Registered user %s", user.username)
    return user


async def verify_email(db: AsyncSession, token: str) -> User:
    result = await db.execute(select(User).where(User.email_verification_token == token))
    user = result.scalars().first()
    if user is None:
        raise BadRequestException("Invalid verification token.")
    user.email_verified = True
    user.email_verification_token = None
    await db.flush()
    return user


async def resend_verification(db: AsyncSession, email: str) -> None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalars().first()
    if user is None:
        raise NotFoundException(entity_type="User", entity_id=email)
    if user.email_verified:
        raise BadRequestException("Email is already verified.")
    user.email_verification_token = secrets.token_urlsafe(32)
    await db.flush()
    await run_in_threadpool(
        send_verification_email, user.email, user.username, user.email_verification_token,
    )


# ── Passwords ───────────────────────────────────────────────────────

async def forgot_password(db: AsyncSession, email: str) -> None:
    """Issue a reset token. Unknown emails are ignored silently."""
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalars().first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return
    user.password_reset_token = secrets.token_urlsafe(32)
    user.password_reset_expires_at = datetime.now(timezone.utc) + timedelta(
        hours=settings.PASSWORD_RESET_EXPIRY_HOURS
    )
    await db.flush()
    await run_in_threadpool(
        send_password_reset_email, user.email, user.username, user.password_reset_token,
    )


async def reset_password(
    db: AsyncSession, token: str, new_password: str, context: dict[str, Any],
) -> User:
    result = await db.execute(select(User).where(User.password_reset_token == token))
    user = result.scalars().first()
    if user is None:
        raise BadRequestException("Invalid password reset token.")
    expires_at = ensure_aware(user.password_reset_expires_at)
    if expires_at is None or expires_at < datetime.now(timezone.utc):
        raise BadRequestException("Password reset token has expired.")

    user.password_hash = hash_password(new_password)
    user.password_reset_token = None
    user.password_reset_expires_at = None
    user.failed_login_attempts = 0
    user.account_non_locked = True
    user.locked_until = None
    await revoke_all_user_sessions(db, user.id)
    await create_audit_entry(
        db,
        action=AuditAction.PASSWORD_RESET,
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
        username=user.username,
        **context,
    )
    return user


async def change_password(
    db: AsyncSession, user: User, current_password: str, new_password: str,
) -> None:
    if not verify_password(current_password, user.password_hash):
        raise BadRequestException("Current password is incorrect.")
    if current_password == new_password:
        raise BadRequestException("New password must differ from the current one.")
    user.password_hash = hash_password(new_password)
    await db.flush()


# ── Refresh (with token rotation + reuse detection) ─────────────────

async def refresh_access_token(
    db: AsyncSession,
    refresh_token_str: str,
) -> tuple[str, str, int]:
    """Validate refresh token, rotate it, and issue new token pair.

    Returns (new_access_token, new_refresh_token, expires_in).

    Each refresh token can only be used once. If a previously used
    (revoked) refresh token is presented, ALL sessions for that user
    are revoked.
    """
    try:
        payload = jwt.decode(
            refresh_token_str,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise UnauthorizedException("Invalid or expired refresh token.")

    if payload.get("type") != "refresh":
        raise UnauthorizedException("Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.refresh_token_hash == hash_token(refresh_token_str),
        ),
    )
    session = result.scalars().first()

    if session is None:
        raise UnauthorizedException("Invalid refresh token.")

    if session.is_revoked:
        await revoke_all_user_sessions(db, session.user_id)
        await db.commit()  # persist revocations before the rollback
        logger.warning("Refresh token reuse detected for user %s", session.user_id)
        raise UnauthorizedException(
            "Refresh token reuse detected. All sessions revoked.",
        )

    session.is_revoked = True
    await db.flush()

    user = await db.get(User, uuid.UUID(payload["sub"]))
    if user is None or not user.enabled:
        raise UnauthorizedException("User account is inactive or not found.")

    return await create_session(db, user, session.ip_address, session.user_agent)


# ── Revoke ──────────────────────────────────────────────────────────

async def revoke_all_user_sessions(db: AsyncSession, user_id: uuid.UUID) -> None:
    result = await db.execute(
        select(UserSession).where(
            UserSession.user_id == user_id,
            UserSession.is_revoked.is_(False),
        ),
    )
    for session in result.scalars().all():
        session.is_revoked = True
    await db.flush()


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its access-token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()

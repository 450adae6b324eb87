"""Auth module tests — login, lockout, tokens, sessions, registration, RBAC."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy import select

from hrms.auth.models import User, UserSession
from hrms.common.audit import AuditLog
from hrms.common.constants import AuditAction, UserRole
from hrms.config import settings
from tests.conftest import make_user


async def _login(client, username: str, password: str = "Secret123!"):
    return await client.post(
        "/api/v1/auth/login", json={"username": username, "password": password},
    )


# ── Login ───────────────────────────────────────────────────────────


async def test_login_returns_token_pair(client, db):
    user = await make_user(db, UserRole.hr, username="hr_login")
    await db.commit()

    resp = await _login(client, "hr_login")
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == settings.JWT_EXPIRY_HOURS * 3600
    assert body["user"]["username"] == "hr_login"
    assert body["user"]["roles"] == ["HR"]

    claims = jwt.decode(body["access_token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert claims["sub"] == str(user.id)
    assert claims["type"] == "access"


async def test_login_accepts_email(client, db):
    await make_user(db, username="by_email")
    await db.commit()

    resp = await _login(client, "by_email@example.com")
    assert resp.status_code == 200


async def test_login_wrong_password_is_401_and_audited(client, db, session_factory):
    await make_user(db, username="wrong_pw")
    await db.commit()

    resp = await _login(client, "wrong_pw", "nope")
    assert resp.status_code == 401

    async with session_factory() as s:
        entry = (await s.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.LOGIN_FAILED)
        )).scalars().first()
        assert entry is not None
        assert entry.security_event is True
        assert entry.success is False


async def test_account_locks_after_max_failed_logins(client, db, session_factory):
    await make_user(db, username="locky")
    await db.commit()

    for _ in range(settings.MAX_FAILED_LOGINS):
        await _login(client, "locky", "bad-password")

    resp = await _login(client, "locky")
    assert resp.status_code == 401
    assert "locked" in resp.json()["detail"].lower()

    async with session_factory() as s:
        user = (await s.execute(select(User).where(User.username == "locky"))).scalar_one()
        assert user.account_non_locked is False
        assert user.locked_until is not None


async def test_disabled_account_cannot_login(client, db):
    user = await make_user(db, username="disabled_one")
    user.enabled = False
    await db.commit()

    resp = await _login(client, "disabled_one")
    assert resp.status_code == 401


async def test_login_validation_error(client):
    resp = await client.post("/api/v1/auth/login", json={"username": ""})
    assert resp.status_code == 400
    assert resp.json()["title"] == "Validation Error"


# ── Current user / sessions ─────────────────────────────────────────


async def test_me_returns_roles_and_permissions(client, login_as):
    user, headers = await login_as(UserRole.manager)
    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == str(user.id)
    assert body["roles"] == ["MANAGER"]
    assert "LEAVE_APPROVE" in body["permissions"]
    assert "USER_MANAGE" not in body["permissions"]


async def test_me_without_token_is_401(client):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


async def test_me_with_expired_token_is_401(client, db):
    user = await make_user(db)
    await db.commit()
    token = jwt.encode(
        {
            "sub": str(user.id),
            "type": "access",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=5),
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_logout_revokes_session(client, login_as):
    _, headers = await login_as()
    resp = await client.post("/api/v1/auth/logout", headers=headers)
    assert resp.status_code == 200

    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401


async def test_session_records_client_ip(client, db, session_factory):
    await make_user(db, username="ip_user")
    await db.commit()
    resp = await _login(client, "ip_user")
    assert resp.status_code == 200

    async with session_factory() as s:
        session = (await s.execute(select(UserSession))).scalars().first()
        assert session.ip_address == "127.0.0.1"


# ── Refresh rotation ────────────────────────────────────────────────


async def test_refresh_rotates_tokens(client, db):
    await make_user(db, username="rotator")
    await db.commit()
    tokens = (await _login(client, "rotator")).json()

    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert resp.json()["refresh_token"] != tokens["refresh_token"]


async def test_refresh_reuse_revokes_all_sessions(client, db):
    await make_user(db, username="reuser")
    await db.commit()
    tokens = (await _login(client, "reuser")).json()

    first = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert first.status_code == 200

    reused = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert reused.status_code == 401
    assert "reuse" in reused.json()["detail"].lower()

    new_access = first.json()["access_token"]
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {new_access}"})
    assert resp.status_code == 401


async def test_access_token_rejected_as_refresh(client, login_as):
    _, headers = await login_as()
    access = headers["Authorization"].removeprefix("Bearer ")
    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": access})
    assert resp.status_code == 401


# ── Registration & passwords ────────────────────────────────────────


async def test_register_assigns_user_role(client):
    resp = await client.post("/api/v1/auth/register", json={
        "username": "newbie",
        "email": "Newbie@Example.com",
        "password": "LongEnough1",
    })
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["email"] == "newbie@example.com"
    assert data["roles"] == ["USER"]


async def test_register_duplicate_username_is_409(client, db):
    await make_user(db, username="taken")
    await db.commit()
    resp = await client.post("/api/v1/auth/register", json={
        "username": "taken",
        "email": "other@example.com",
        "password": "LongEnough1",
    })
    assert resp.status_code == 409


async def test_verify_email_with_token(client, session_factory):
    await client.post("/api/v1/auth/register", json={
        "username": "verifier",
        "email": "verifier@example.com",
        "password": "LongEnough1",
    })
    async with session_factory() as s:
        user = (await s.execute(select(User).where(User.username == "verifier"))).scalar_one()
        token = user.email_verification_token

    resp = await client.post("/api/v1/auth/verify-email", params={"token": token})
    assert resp.status_code == 200

    resp = await client.post("/api/v1/auth/verify-email", params={"token": token})
    assert resp.status_code == 400


async def test_forgot_password_unknown_email_is_silent(client):
    resp = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
    assert resp.status_code == 200


async def test_reset_password_flow(client, db, session_factory):
    await make_user(db, username="forgetful")
    await db.commit()
    await client.post("/api/v1/auth/forgot-password", json={"email": "forgetful@example.com"})

    async with session_factory() as s:
        user = (await s.execute(select(User).where(User.username == "forgetful"))).scalar_one()
        token = user.password_reset_token
    assert token

    resp = await client.post("/api/v1/auth/reset-password", json={
        "token": token, "new_password": "BrandNew123",
    })
    assert resp.status_code == 200
    assert (await _login(client, "forgetful", "BrandNew123")).status_code == 200


async def test_change_password_requires_current(client, login_as):
    _, headers = await login_as()
    resp = await client.post("/api/v1/auth/change-password", headers=headers, json={
        "current_password": "wrong-one", "new_password": "Another123",
    })
    assert resp.status_code == 400

    resp = await client.post("/api/v1/auth/change-password", headers=headers, json={
        "current_password": "Secret123!", "new_password": "Another123",
    })
    assert resp.status_code == 200


# ── RBAC ────────────────────────────────────────────────────────────


async def test_role_hierarchy_admin_reaches_hr_routes(client, admin_headers):
    resp = await client.get("/api/v1/files", headers=admin_headers)
    assert resp.status_code == 200


async def test_user_role_blocked_from_admin_routes(client, login_as):
    _, headers = await login_as(UserRole.user)
    resp = await client.get("/api/v1/users", headers=headers)
    assert resp.status_code == 403


# ── Rate limiting ───────────────────────────────────────────────────


async def test_login_is_rate_limited(client, db):
    await make_user(db, username="spammer")
    await db.commit()

    for _ in range(10):
        resp = await _login(client, "nobody", "x")
        assert resp.status_code == 401

    resp = await _login(client, "spammer")
    assert resp.status_code == 429

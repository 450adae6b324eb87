"""Unauthenticated health and token check endpoints."""

from __future__ import annotations

from httpx import AsyncClient

from hrms.common.constants import UserRole

BASE = "/api/v1/public"


async def test_health_needs_no_token(client: AsyncClient):
    resp = await client.get(f"{BASE}/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "UP"


async def test_auth_test_requires_token(client: AsyncClient):
    resp = await client.get(f"{BASE}/auth-test")
    assert resp.status_code == 401


async def test_auth_test_echoes_identity(client: AsyncClient, login_as):
    user, headers = await login_as(UserRole.manager)
    resp = await client.get(f"{BASE}/auth-test", headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["username"] == user.username
    assert data["roles"] == ["MANAGER"]


async def test_bad_token_rejected(client: AsyncClient):
    resp = await client.get(f"{BASE}/auth-test", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401

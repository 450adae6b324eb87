"""User administration and role management tests."""

from __future__ import annotations

from sqlalchemy import select

from hrms.auth.models import Permission, UserSession
from hrms.common.constants import UserRole
from tests.conftest import bearer_for, make_user


async def _role_id(client, headers, name: str) -> str:
    resp = await client.get(f"/api/v1/roles/name/{name}", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["id"]


async def _permission_id(db, name: str) -> str:
    permission = (await db.execute(select(Permission).where(Permission.name == name))).scalar_one()
    return str(permission.id)


# ── Users ───────────────────────────────────────────────────────────


async def test_list_and_search_users(client, db, admin_headers):
    await make_user(db, UserRole.hr, username="alice_hr")
    await make_user(db, UserRole.user, username="bob_user")
    await db.commit()

    listing = await client.get("/api/v1/users?page_size=100", headers=admin_headers)
    assert listing.json()["meta"]["total"] == 3

    by_name = await client.get("/api/v1/users/search?username=ALICE", headers=admin_headers)
    assert [u["username"] for u in by_name.json()["data"]] == ["alice_hr"]

    by_role = await client.get("/api/v1/users/search?role=hr", headers=admin_headers)
    assert [u["username"] for u in by_role.json()["data"]] == ["alice_hr"]
    assert by_role.json()["data"][0]["roles"] == ["HR"]


async def test_hr_cannot_manage_users(client, hr_headers):
    resp = await client.get("/api/v1/users", headers=hr_headers)
    assert resp.status_code == 403


async def test_update_user_email_conflict(client, db, admin_headers):
    first = await make_user(db, username="first")
    await make_user(db, username="second")
    await db.commit()

    ok = await client.put(
        f"/api/v1/users/{first.id}", json={"first_name": "Renamed"}, headers=admin_headers,
    )
    assert ok.json()["data"]["first_name"] == "Renamed"

    taken = await client.put(
        f"/api/v1/users/{first.id}", json={"email": "SECOND@example.com"}, headers=admin_headers,
    )
    assert taken.status_code == 409


async def test_deactivate_revokes_sessions(client, db, admin_headers, session_factory):
    target = await make_user(db, username="leaver")
    headers = await bearer_for(db, target)
    target_id = target.id

    resp = await client.post(f"/api/v1/users/{target_id}/deactivate", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["enabled"] is False

    async with session_factory() as s:
        sessions = (await s.execute(
            select(UserSession).where(UserSession.user_id == target_id)
        )).scalars().all()
    assert sessions and all(s.is_revoked for s in sessions)
    assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 401

    back = await client.post(f"/api/v1/users/{target_id}/activate", headers=admin_headers)
    assert back.json()["data"]["enabled"] is True
    assert back.json()["data"]["failed_login_attempts"] == 0


async def test_cannot_deactivate_self(client, login_as):
    admin, headers = await login_as(UserRole.admin)
    resp = await client.post(f"/api/v1/users/{admin.id}/deactivate", headers=headers)
    assert resp.status_code == 400


async def test_delete_user_disables_account(client, db, admin_headers):
    target = await make_user(db, username="gone")
    await db.commit()

    assert (await client.delete(f"/api/v1/users/{target.id}", headers=admin_headers)).status_code == 204
    kept = await client.get(f"/api/v1/users/{target.id}", headers=admin_headers)
    assert kept.status_code == 200
    assert kept.json()["data"]["enabled"] is False


async def test_replace_user_roles(client, db, admin_headers):
    target = await make_user(db, username="promoted")
    await db.commit()
    manager_id = await _role_id(client, admin_headers, "manager")
    hr_id = await _role_id(client, admin_headers, "HR")

    resp = await client.put(
        f"/api/v1/users/{target.id}/roles",
        json={"role_ids": [manager_id, hr_id, manager_id]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert sorted(resp.json()["data"]["roles"]) == ["HR", "MANAGER"]

    roles = await client.get(f"/api/v1/users/{target.id}/roles", headers=admin_headers)
    assert len(roles.json()["data"]) == 2

    empty = await client.put(f"/api/v1/users/{target.id}/roles", json={"role_ids": []}, headers=admin_headers)
    assert empty.status_code == 400


# ── Roles ───────────────────────────────────────────────────────────


async def test_seeded_roles_listed(client, admin_headers):
    resp = await client.get("/api/v1/roles", headers=admin_headers)
    names = {r["name"] for r in resp.json()["data"]}
    assert {"USER", "MANAGER", "HR", "ADMIN", "SUPER_ADMIN"} <= names


async def test_create_role_uppercases_and_rejects_duplicates(client, db, admin_headers):
    perm_id = await _permission_id(db, "REPORT_GENERATE")
    resp = await client.post(
        "/api/v1/roles",
        json={"name": "auditor", "description": "Read-only auditors", "permission_ids": [perm_id]},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["name"] == "AUDITOR"
    assert [p["name"] for p in data["permissions"]] == ["REPORT_GENERATE"]

    dup = await client.post("/api/v1/roles", json={"name": "Auditor"}, headers=admin_headers)
    assert dup.status_code == 409


async def test_role_permissions_add_and_remove(client, db, admin_headers):
    role = (await client.post("/api/v1/roles", json={"name": "clerk"}, headers=admin_headers)).json()["data"]
    perm_id = await _permission_id(db, "PAYROLL_READ")

    added = await client.post(f"/api/v1/roles/{role['id']}/permissions/{perm_id}", headers=admin_headers)
    assert [p["name"] for p in added.json()["data"]["permissions"]] == ["PAYROLL_READ"]
    again = await client.post(f"/api/v1/roles/{role['id']}/permissions/{perm_id}", headers=admin_headers)
    assert len(again.json()["data"]["permissions"]) == 1

    removed = await client.delete(f"/api/v1/roles/{role['id']}/permissions/{perm_id}", headers=admin_headers)
    assert removed.json()["data"]["permissions"] == []


async def test_assigned_role_cannot_be_deleted(client, db, admin_headers):
    role = (await client.post("/api/v1/roles", json={"name": "temp"}, headers=admin_headers)).json()["data"]
    target = await make_user(db, username="temp_user")
    await db.commit()
    await client.put(f"/api/v1/users/{target.id}/roles", json={"role_ids": [role["id"]]}, headers=admin_headers)

    resp = await client.delete(f"/api/v1/roles/{role['id']}", headers=admin_headers)
    assert resp.status_code == 400


async def test_rename_role(client, admin_headers):
    role = (await client.post("/api/v1/roles", json={"name": "interim"}, headers=admin_headers)).json()["data"]
    resp = await client.put(f"/api/v1/roles/{role['id']}", json={"name": "contractor"}, headers=admin_headers)
    assert resp.json()["data"]["name"] == "CONTRACTOR"
    taken = await client.put(f"/api/v1/roles/{role['id']}", json={"name": "hr"}, headers=admin_headers)
    assert taken.status_code == 409
    assert (await client.delete(f"/api/v1/roles/{role['id']}", headers=admin_headers)).status_code == 204


async def test_permissions_catalogue(client, admin_headers, manager_headers):
    resp = await client.get("/api/v1/roles/permissions", headers=admin_headers)
    names = {p["name"] for p in resp.json()["data"]}
    assert {"EMPLOYEE_READ", "USER_MANAGE", "AUDIT_CLEANUP"} <= names
    assert (await client.get("/api/v1/roles/permissions", headers=manager_headers)).status_code == 403

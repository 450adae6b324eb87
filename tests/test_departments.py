"""Tests for the departments module — CRUD, hierarchy, managers, transfers."""

from __future__ import annotations

from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import select

from hrms.common.audit import AuditLog
from tests.conftest import make_department, make_employee

BASE = "/api/v1/departments"


async def _create(client: AsyncClient, headers, **overrides) -> dict:
    payload = {"name": "Finance", "code": "FIN", **overrides}
    resp = await client.post(BASE, json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestDepartmentCrud:

    async def test_create_department(self, client: AsyncClient, hr_headers, db):
        data = await _create(client, hr_headers, budget="250000.00", location="Berlin")
        assert data["code"] == "FIN"
        assert data["status"] == "active"
        assert Decimal(data["budget"]) == Decimal("250000.00")

        audit = (await db.execute(
            select(AuditLog).where(AuditLog.entity_type == "department")
        )).scalars().all()
        assert [a.action for a in audit] == ["CREATE"]

    async def test_duplicate_code_conflicts(self, client: AsyncClient, hr_headers):
        await _create(client, hr_headers)
        resp = await client.post(BASE, json={"name": "Other", "code": "FIN"}, headers=hr_headers)
        assert resp.status_code == 409

    async def test_missing_name_is_validation_error(self, client: AsyncClient, hr_headers):
        resp = await client.post(BASE, json={"code": "X"}, headers=hr_headers)
        assert resp.status_code == 400
        assert resp.json()["title"] == "Validation Error"

    async def test_user_cannot_create(self, client: AsyncClient, user_headers):
        resp = await client.post(BASE, json={"name": "A", "code": "A"}, headers=user_headers)
        assert resp.status_code == 403

    async def test_get_by_id_and_code(self, client: AsyncClient, hr_headers):
        created = await _create(client, hr_headers)
        by_id = await client.get(f"{BASE}/{created['id']}", headers=hr_headers)
        by_code = await client.get(f"{BASE}/code/FIN", headers=hr_headers)
        assert by_id.json()["data"]["name"] == "Finance"
        assert by_code.json()["data"]["id"] == created["id"]

    async def test_update_department(self, client: AsyncClient, hr_headers):
        created = await _create(client, hr_headers)
        resp = await client.put(
            f"{BASE}/{created['id']}", json={"location": "Paris"}, headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["location"] == "Paris"

    async def test_update_cannot_null_name(self, client: AsyncClient, hr_headers):
        created = await _create(client, hr_headers)
        resp = await client.put(f"{BASE}/{created['id']}", json={"name": None}, headers=hr_headers)
        assert resp.status_code == 400

    async def test_update_to_taken_code_conflicts(self, client: AsyncClient, hr_headers):
        await _create(client, hr_headers)
        other = await _create(client, hr_headers, name="Legal", code="LEG")
        resp = await client.put(f"{BASE}/{other['id']}", json={"code": "FIN"}, headers=hr_headers)
        assert resp.status_code == 409

    async def test_list_paginated(self, client: AsyncClient, hr_headers):
        for i in range(3):
            await _create(client, hr_headers, name=f"Dept {i}", code=f"D{i}")
        resp = await client.get(f"{BASE}?page=1&page_size=2", headers=hr_headers)
        body = resp.json()
        assert len(body["data"]) == 2
        assert body["meta"]["total"] == 3

    async def test_invalid_sort_field_rejected(self, client: AsyncClient, hr_headers):
        resp = await client.get(f"{BASE}?sort=password", headers=hr_headers)
        assert resp.status_code == 400


class TestDepartmentDelete:

    async def test_delete_marks_dissolved(self, client: AsyncClient, admin_headers):
        created = await _create(client, admin_headers)
        resp = await client.delete(f"{BASE}/{created['id']}", headers=admin_headers)
        assert resp.status_code == 204

        fetched = await client.get(f"{BASE}/{created['id']}", headers=admin_headers)
        assert fetched.json()["data"]["status"] == "dissolved"

    async def test_delete_with_employees_rejected(self, client: AsyncClient, admin_headers, db):
        dept = await make_department(db, code="OPS")
        await make_employee(db, department_id=dept.id)
        await db.commit()

        resp = await client.delete(f"{BASE}/{dept.id}", headers=admin_headers)
        assert resp.status_code == 400

    async def test_delete_requires_admin(self, client: AsyncClient, hr_headers):
        created = await _create(client, hr_headers)
        resp = await client.delete(f"{BASE}/{created['id']}", headers=hr_headers)
        assert resp.status_code == 403

    async def test_update_cannot_dissolve(self, client: AsyncClient, admin_headers, db):
        dept = await make_department(db, code="LEGAL")
        await make_employee(db, department_id=dept.id)
        await db.commit()

        resp = await client.put(f"{BASE}/{dept.id}", json={"status": "dissolved"}, headers=admin_headers)
        assert resp.status_code == 400
        fetched = await client.get(f"{BASE}/{dept.id}", headers=admin_headers)
        assert fetched.json()["data"]["status"] == "active"

        other = await client.put(f"{BASE}/{dept.id}", json={"status": "inactive"}, headers=admin_headers)
        assert other.json()["data"]["status"] == "inactive"


class TestHierarchy:

    async def test_tree_nests_children(self, client: AsyncClient, hr_headers):
        root = await _create(client, hr_headers, name="Company", code="CO")
        child = await _create(client, hr_headers, name="Sales", code="SAL")
        resp = await client.put(
            f"{BASE}/{child['id']}/parent",
            json={"parent_department_id": root["id"]},
            headers=hr_headers,
        )
        assert resp.status_code == 200

        tree = (await client.get(f"{BASE}/tree", headers=hr_headers)).json()["data"]
        assert len(tree) == 1
        assert tree[0]["code"] == "CO"
        assert [c["code"] for c in tree[0]["children"]] == ["SAL"]

        subs = await client.get(f"{BASE}/{root['id']}/sub-departments", headers=hr_headers)
        assert [d["code"] for d in subs.json()["data"]] == ["SAL"]

    async def test_self_parent_rejected(self, client: AsyncClient, hr_headers):
        dept = await _create(client, hr_headers)
        resp = await client.put(
            f"{BASE}/{dept['id']}/parent",
            json={"parent_department_id": dept["id"]},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_cycle_rejected(self, client: AsyncClient, hr_headers):
        a = await _create(client, hr_headers, name="A", code="A")
        b = await _create(client, hr_headers, name="B", code="B")
        await client.put(
            f"{BASE}/{b['id']}/parent", json={"parent_department_id": a["id"]}, headers=hr_headers,
        )
        resp = await client.put(
            f"{BASE}/{a['id']}/parent", json={"parent_department_id": b["id"]}, headers=hr_headers,
        )
        assert resp.status_code == 400
        assert "circular" in resp.json()["detail"]

    async def test_remove_parent(self, client: AsyncClient, hr_headers):
        a = await _create(client, hr_headers, name="A", code="A")
        b = await _create(client, hr_headers, name="B", code="B", parent_department_id=a["id"])
        resp = await client.delete(f"{BASE}/{b['id']}/parent", headers=hr_headers)
        assert resp.json()["data"]["parent_department_id"] is None


class TestManagers:

    async def test_assign_and_remove_manager(self, client: AsyncClient, hr_headers, test_employee):
        dept = await _create(client, hr_headers)
        resp = await client.put(
            f"{BASE}/{dept['id']}/manager",
            json={"manager_id": str(test_employee.id)},
            headers=hr_headers,
        )
        assert resp.json()["data"]["manager_id"] == str(test_employee.id)

        without = await client.get(f"{BASE}/without-manager", headers=hr_headers)
        assert dept["id"] not in [d["id"] for d in without.json()["data"]]

        resp = await client.delete(f"{BASE}/{dept['id']}/manager", headers=hr_headers)
        assert resp.json()["data"]["manager_id"] is None

    async def test_remove_missing_manager_rejected(self, client: AsyncClient, hr_headers):
        dept = await _create(client, hr_headers)
        resp = await client.delete(f"{BASE}/{dept['id']}/manager", headers=hr_headers)
        assert resp.status_code == 400

    async def test_unknown_manager_not_found(self, client: AsyncClient, hr_headers):
        dept = await _create(client, hr_headers)
        resp = await client.put(
            f"{BASE}/{dept['id']}/manager",
            json={"manager_id": "00000000-0000-0000-0000-000000000001"},
            headers=hr_headers,
        )
        assert resp.status_code == 404


class TestFinders:

    async def test_search_by_name_and_location(self, client: AsyncClient, hr_headers):
        await _create(client, hr_headers, name="Research", code="R", location="Boston")
        await _create(client, hr_headers, name="Retail", code="RT", location="Denver")
        resp = await client.get(f"{BASE}/search?name=re&location=bos", headers=hr_headers)
        assert [d["code"] for d in resp.json()["data"]] == ["R"]

    async def test_budget_range(self, client: AsyncClient, hr_headers):
        await _create(client, hr_headers, name="Small", code="S", budget="1000")
        await _create(client, hr_headers, name="Large", code="L", budget="90000")
        await _create(client, hr_headers, name="None", code="N")
        resp = await client.get(f"{BASE}/budget-range?min_budget=500&max_budget=5000", headers=hr_headers)
        assert [d["code"] for d in resp.json()["data"]] == ["S"]

    async def test_budget_range_inverted_rejected(self, client: AsyncClient, hr_headers):
        resp = await client.get(f"{BASE}/budget-range?min_budget=10&max_budget=5", headers=hr_headers)
        assert resp.status_code == 400

    async def test_by_status(self, client: AsyncClient, hr_headers):
        await _create(client, hr_headers, name="Old", code="OLD", status="inactive")
        await _create(client, hr_headers)
        resp = await client.get(f"{BASE}/status/inactive", headers=hr_headers)
        assert [d["code"] for d in resp.json()["data"]] == ["OLD"]


class TestTransfers:

    async def test_transfer_employee(self, client: AsyncClient, hr_headers, test_employee, db):
        target = await _create(client, hr_headers, name="Support", code="SUP")
        resp = await client.post(
            f"{BASE}/{target['id']}/transfer",
            json={"employee_id": str(test_employee.id)},
            headers=hr_headers,
        )
        assert resp.status_code == 200

        count = await client.get(f"{BASE}/{target['id']}/employee-count", headers=hr_headers)
        assert count.json()["data"]["count"] == 1

        await db.refresh(test_employee)
        assert str(test_employee.department_id) == target["id"]

    async def test_transfer_into_inactive_rejected(self, client: AsyncClient, hr_headers, test_employee):
        target = await _create(client, hr_headers, name="Closed", code="CL", status="inactive")
        resp = await client.post(
            f"{BASE}/{target['id']}/transfer",
            json={"employee_id": str(test_employee.id)},
            headers=hr_headers,
        )
        assert resp.status_code == 400

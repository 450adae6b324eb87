"""Tests for positions — CRUD, openings, employee assignments."""

from __future__ import annotations

from decimal import Decimal

from httpx import AsyncClient

from tests.conftest import make_department, make_employee

BASE = "/api/v1/positions"


async def _create(client: AsyncClient, headers, **overrides) -> dict:
    payload = {
        "title": "Backend Engineer",
        "level": "mid",
        "min_salary": "60000",
        "max_salary": "90000",
        "number_of_openings": 2,
        "total_headcount": 3,
        **overrides,
    }
    resp = await client.post(BASE, json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestPositionCrud:

    async def test_create_position(self, client: AsyncClient, hr_headers):
        data = await _create(client, hr_headers)
        assert data["status"] == "active"
        assert data["is_management"] is False

    async def test_management_flag(self, client: AsyncClient, hr_headers):
        data = await _create(client, hr_headers, title="Director", level="director")
        assert data["is_management"] is True

        resp = await client.get(f"{BASE}/management", headers=hr_headers)
        assert [p["title"] for p in resp.json()["data"]] == ["Director"]

    async def test_salary_band_validated(self, client: AsyncClient, hr_headers):
        resp = await client.post(
            BASE,
            json={"title": "X", "level": "mid", "min_salary": "9", "max_salary": "1"},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_openings_cannot_exceed_headcount(self, client: AsyncClient, hr_headers):
        resp = await client.post(
            BASE,
            json={"title": "X", "level": "mid", "number_of_openings": 5, "total_headcount": 2},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_update_cannot_report_to_itself(self, client: AsyncClient, hr_headers):
        pos = await _create(client, hr_headers)
        resp = await client.put(
            f"{BASE}/{pos['id']}", json={"reports_to_id": pos["id"]}, headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_delete_marks_inactive(self, client: AsyncClient, hr_headers):
        pos = await _create(client, hr_headers)
        resp = await client.delete(f"{BASE}/{pos['id']}", headers=hr_headers)
        assert resp.status_code == 204
        fetched = await client.get(f"{BASE}/{pos['id']}", headers=hr_headers)
        assert fetched.json()["data"]["status"] == "inactive"

    async def test_user_cannot_create(self, client: AsyncClient, user_headers):
        resp = await client.post(BASE, json={"title": "X", "level": "mid"}, headers=user_headers)
        assert resp.status_code == 403

    async def test_levels_listed(self, client: AsyncClient, user_headers):
        resp = await client.get(f"{BASE}/levels", headers=user_headers)
        assert "entry" in resp.json()["data"]


class TestPositionFinders:

    async def test_available_and_search(self, client: AsyncClient, hr_headers):
        await _create(client, hr_headers, title="Data Engineer")
        await _create(client, hr_headers, title="Closed Role", number_of_openings=0)

        available = await client.get(f"{BASE}/available", headers=hr_headers)
        assert [p["title"] for p in available.json()["data"]] == ["Data Engineer"]

        found = await client.get(f"{BASE}/search?title=closed", headers=hr_headers)
        assert [p["title"] for p in found.json()["data"]] == ["Closed Role"]

    async def test_salary_overlap(self, client: AsyncClient, hr_headers):
        await _create(client, hr_headers, title="Low", min_salary="20000", max_salary="40000")
        await _create(client, hr_headers, title="High", min_salary="100000", max_salary="150000")

        resp = await client.get(
            f"{BASE}/salary-range?min_salary=35000&max_salary=50000", headers=hr_headers,
        )
        assert [p["title"] for p in resp.json()["data"]] == ["Low"]

    async def test_entry_level_by_department(self, client: AsyncClient, hr_headers, db):
        dept = await make_department(db)
        await db.commit()
        await _create(client, hr_headers, title="Intern", level="entry", department_id=str(dept.id))
        await _create(client, hr_headers, title="Staff", level="senior", department_id=str(dept.id))

        resp = await client.get(f"{BASE}/department/{dept.id}/entry-level", headers=hr_headers)
        assert [p["title"] for p in resp.json()["data"]] == ["Intern"]


class TestAssignments:

    async def test_assign_updates_employee_and_openings(self, client: AsyncClient, hr_headers, db):
        emp = await make_employee(db, salary=Decimal("50000"))
        await db.commit()
        pos = await _create(client, hr_headers)

        resp = await client.post(
            f"{BASE}/{pos['id']}/assign",
            json={"employee_id": str(emp.id), "start_date": "2024-01-01", "salary": "70000"},
            headers=hr_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["is_current"] is True

        position = (await client.get(f"{BASE}/{pos['id']}", headers=hr_headers)).json()["data"]
        assert position["number_of_openings"] == 1

        employee = (await client.get(f"/api/v1/employees/{emp.id}", headers=hr_headers)).json()["data"]
        assert employee["position_id"] == pos["id"]
        assert employee["job_title"] == "Backend Engineer"
        assert Decimal(employee["salary"]) == Decimal("70000")

    async def test_reassignment_closes_previous(self, client: AsyncClient, hr_headers, db):
        emp = await make_employee(db)
        await db.commit()
        first = await _create(client, hr_headers, title="First")
        second = await _create(client, hr_headers, title="Second")

        await client.post(
            f"{BASE}/{first['id']}/assign",
            json={"employee_id": str(emp.id), "start_date": "2024-01-01"},
            headers=hr_headers,
        )
        await client.post(
            f"{BASE}/{second['id']}/assign",
            json={"employee_id": str(emp.id), "start_date": "2024-06-01"},
            headers=hr_headers,
        )

        history = (await client.get(f"{BASE}/employee/{emp.id}/history", headers=hr_headers)).json()["data"]
        assert len(history) == 2
        assert history[0]["is_current"] is True
        assert history[1]["end_date"] == "2024-05-31"

        released = (await client.get(f"{BASE}/{first['id']}", headers=hr_headers)).json()["data"]
        assert released["number_of_openings"] == 2

    async def test_no_openings_rejected(self, client: AsyncClient, hr_headers, test_employee):
        pos = await _create(client, hr_headers, number_of_openings=0)
        resp = await client.post(
            f"{BASE}/{pos['id']}/assign",
            json={"employee_id": str(test_employee.id), "start_date": "2024-01-01"},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_end_assignment(self, client: AsyncClient, hr_headers, test_employee):
        pos = await _create(client, hr_headers)
        await client.post(
            f"{BASE}/{pos['id']}/assign",
            json={"employee_id": str(test_employee.id), "start_date": "2024-01-01"},
            headers=hr_headers,
        )

        resp = await client.post(
            f"{BASE}/employee/{test_employee.id}/end-assignment",
            json={"end_date": "2024-12-31", "notes": "Left team"},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["end_date"] == "2024-12-31"

        current = await client.get(f"{BASE}/{pos['id']}/current-employees", headers=hr_headers)
        assert current.json()["data"] == []

        again = await client.post(
            f"{BASE}/employee/{test_employee.id}/end-assignment", json={}, headers=hr_headers,
        )
        assert again.status_code == 400

    async def test_cannot_delete_occupied_position(self, client: AsyncClient, hr_headers, test_employee):
        pos = await _create(client, hr_headers)
        await client.post(
            f"{BASE}/{pos['id']}/assign",
            json={"employee_id": str(test_employee.id), "start_date": "2024-01-01"},
            headers=hr_headers,
        )
        resp = await client.delete(f"{BASE}/{pos['id']}", headers=hr_headers)
        assert resp.status_code == 400

    async def test_statistics(self, client: AsyncClient, hr_headers, test_employee):
        pos = await _create(client, hr_headers)
        await client.post(
            f"{BASE}/{pos['id']}/assign",
            json={"employee_id": str(test_employee.id), "start_date": "2024-01-01"},
            headers=hr_headers,
        )
        stats = (await client.get(f"{BASE}/{pos['id']}/statistics", headers=hr_headers)).json()["data"]
        assert stats["total_assignments"] == 1
        assert stats["current_employees"] == 1

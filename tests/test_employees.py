"""Tests for the employees module — CRUD, search, hierarchy, lifecycle."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import select

from hrms.common.constants import EmployeeStatus
from hrms.employees.models import EmployeeStatusHistory
from hrms.notifications.models import Notification
from tests.conftest import make_department, make_employee, make_user

BASE = "/api/v1/employees"


def _payload(**overrides) -> dict:
    data = {
        "employee_id": "EMP-100",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "job_title": "Analyst",
        "hire_date": "2023-03-01",
        "salary": "72000.00",
    }
    data.update(overrides)
    return data


class TestEmployeeCrud:

    async def test_create_employee(self, client: AsyncClient, hr_headers, db):
        dept = await make_department(db, name="Research")
        await db.commit()

        resp = await client.post(
            BASE, json=_payload(department_id=str(dept.id)), headers=hr_headers,
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        assert data["employee_id"] == "EMP-100"
        assert data["department_name"] == "Research"
        assert data["status"] == "active"
        assert "ssn" not in data

    async def test_duplicate_email_conflicts(self, client: AsyncClient, hr_headers):
        await client.post(BASE, json=_payload(), headers=hr_headers)
        resp = await client.post(
            BASE, json=_payload(employee_id="EMP-101"), headers=hr_headers,
        )
        assert resp.status_code == 409

    async def test_duplicate_business_id_conflicts(self, client: AsyncClient, hr_headers):
        await client.post(BASE, json=_payload(), headers=hr_headers)
        resp = await client.post(
            BASE, json=_payload(email="other@example.com"), headers=hr_headers,
        )
        assert resp.status_code == 409

    async def test_future_hire_date_rejected(self, client: AsyncClient, hr_headers):
        future = (date.today() + timedelta(days=5)).isoformat()
        resp = await client.post(BASE, json=_payload(hire_date=future), headers=hr_headers)
        assert resp.status_code == 400

    async def test_bad_ssn_rejected(self, client: AsyncClient, hr_headers):
        resp = await client.post(BASE, json=_payload(ssn="123456789"), headers=hr_headers)
        assert resp.status_code == 400

    async def test_unknown_department_not_found(self, client: AsyncClient, hr_headers):
        resp = await client.post(
            BASE,
            json=_payload(department_id="00000000-0000-0000-0000-000000000009"),
            headers=hr_headers,
        )
        assert resp.status_code == 404

    async def test_user_can_read_but_not_create(self, client: AsyncClient, user_headers, test_employee):
        read = await client.get(f"{BASE}/{test_employee.id}", headers=user_headers)
        assert read.status_code == 200
        create = await client.post(BASE, json=_payload(), headers=user_headers)
        assert create.status_code == 403

    async def test_update_employee(self, client: AsyncClient, hr_headers, test_employee):
        resp = await client.put(
            f"{BASE}/{test_employee.id}", json={"job_title": "Lead"}, headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["job_title"] == "Lead"

    async def test_update_required_field_to_null_rejected(self, client: AsyncClient, hr_headers, test_employee):
        resp = await client.put(
            f"{BASE}/{test_employee.id}", json={"first_name": None}, headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_delete_employee(self, client: AsyncClient, admin_headers, test_employee):
        resp = await client.delete(f"{BASE}/{test_employee.id}", headers=admin_headers)
        assert resp.status_code == 204
        missing = await client.get(f"{BASE}/{test_employee.id}", headers=admin_headers)
        assert missing.status_code == 404

    async def test_delete_manager_with_reports_rejected(self, client: AsyncClient, admin_headers, db):
        boss = await make_employee(db, first_name="Boss")
        await make_employee(db, manager_id=boss.id)
        await db.commit()

        resp = await client.delete(f"{BASE}/{boss.id}", headers=admin_headers)
        assert resp.status_code == 400


class TestEmployeeSearch:

    async def test_criteria_search(self, client: AsyncClient, hr_headers, db):
        dept = await make_department(db, name="Marketing")
        await make_employee(db, first_name="Mia", department_id=dept.id, job_title="Designer")
        await make_employee(db, first_name="Max", job_title="Designer")
        await db.commit()

        resp = await client.post(
            f"{BASE}/search",
            json={"job_title": "design", "department_name": "market"},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert [e["first_name"] for e in resp.json()["data"]] == ["Mia"]

    async def test_salary_bounds_inverted_rejected(self, client: AsyncClient, hr_headers):
        resp = await client.post(
            f"{BASE}/search", json={"min_salary": 100, "max_salary": 10}, headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_unknown_sort_rejected(self, client: AsyncClient, hr_headers):
        resp = await client.get(f"{BASE}/search?sort_by=ssn", headers=hr_headers)
        assert resp.status_code == 400

    async def test_global_search(self, client: AsyncClient, hr_headers, db):
        await make_employee(db, first_name="Zed", last_name="Quill")
        await make_employee(db, first_name="Amy", last_name="Pond")
        await db.commit()

        resp = await client.get(f"{BASE}/global-search?q=quil", headers=hr_headers)
        assert [e["last_name"] for e in resp.json()["data"]] == ["Quill"]

    async def test_salary_range(self, client: AsyncClient, hr_headers, db):
        await make_employee(db, first_name="Low", salary=Decimal("30000"))
        await make_employee(db, first_name="High", salary=Decimal("150000"))
        await db.commit()

        resp = await client.get(f"{BASE}/salary-range?min_salary=100000", headers=hr_headers)
        assert [e["first_name"] for e in resp.json()["data"]] == ["High"]

    async def test_hired_between(self, client: AsyncClient, hr_headers, db):
        await make_employee(db, first_name="Old", hire_date=date(2015, 5, 1))
        await make_employee(db, first_name="New", hire_date=date(2023, 5, 1))
        await db.commit()

        resp = await client.get(
            f"{BASE}/hired-between?start_date=2023-01-01&end_date=2023-12-31", headers=hr_headers,
        )
        assert [e["first_name"] for e in resp.json()["data"]] == ["New"]

    async def test_location_requires_a_field(self, client: AsyncClient, hr_headers):
        resp = await client.get(f"{BASE}/location", headers=hr_headers)
        assert resp.status_code == 400

    async def test_export_csv(self, client: AsyncClient, hr_headers, db):
        await make_employee(db, first_name="Comma", last_name="Smith, Jr.")
        await db.commit()

        resp = await client.get(f"{BASE}/export", headers=hr_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.splitlines()
        assert lines[0].startswith("Employee ID,First Name,Last Name")
        assert '"Smith, Jr."' in lines[1]

    async def test_statistics(self, client: AsyncClient, hr_headers, db):
        await make_employee(db)
        await make_employee(db, status=EmployeeStatus.terminated)
        await db.commit()

        data = (await client.get(f"{BASE}/statistics", headers=hr_headers)).json()["data"]
        assert data["total"] == 2
        assert data["terminated"] == 1


class TestHierarchy:

    async def test_assign_manager_and_chain(self, client: AsyncClient, hr_headers, db):
        ceo = await make_employee(db, first_name="Ceo")
        vp = await make_employee(db, first_name="Vp", manager_id=ceo.id)
        dev = await make_employee(db, first_name="Dev")
        await db.commit()

        resp = await client.put(
            f"{BASE}/hierarchy/{dev.id}/manager",
            json={"manager_id": str(vp.id)},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["manager_id"] == str(vp.id)

        chain = await client.get(f"{BASE}/hierarchy/{dev.id}/reporting-chain", headers=hr_headers)
        assert [e["first_name"] for e in chain.json()["data"]] == ["Vp", "Ceo"]

        direct = await client.get(f"{BASE}/hierarchy/{ceo.id}/subordinates", headers=hr_headers)
        everyone = await client.get(
            f"{BASE}/hierarchy/{ceo.id}/subordinates?include_indirect=true", headers=hr_headers,
        )
        assert [e["first_name"] for e in direct.json()["data"]] == ["Vp"]
        assert {e["first_name"] for e in everyone.json()["data"]} == {"Vp", "Dev"}

    async def test_self_manager_rejected(self, client: AsyncClient, hr_headers, test_employee):
        resp = await client.put(
            f"{BASE}/hierarchy/{test_employee.id}/manager",
            json={"manager_id": str(test_employee.id)},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_cycle_rejected(self, client: AsyncClient, hr_headers, db):
        top = await make_employee(db, first_name="Top")
        mid = await make_employee(db, first_name="Mid", manager_id=top.id)
        low = await make_employee(db, first_name="Low", manager_id=mid.id)
        await db.commit()

        resp = await client.put(
            f"{BASE}/hierarchy/{top.id}/manager",
            json={"manager_id": str(low.id)},
            headers=hr_headers,
        )
        assert resp.status_code == 400
        assert "circular" in resp.json()["detail"]

    async def test_remove_manager(self, client: AsyncClient, hr_headers, db):
        boss = await make_employee(db, first_name="Boss")
        emp = await make_employee(db, manager_id=boss.id)
        await db.commit()

        resp = await client.delete(f"{BASE}/hierarchy/{emp.id}/manager", headers=hr_headers)
        assert resp.json()["data"]["manager_id"] is None
        again = await client.delete(f"{BASE}/hierarchy/{emp.id}/manager", headers=hr_headers)
        assert again.status_code == 400

    async def test_org_chart(self, client: AsyncClient, hr_headers, db):
        root = await make_employee(db, first_name="Root")
        await make_employee(db, first_name="Leaf", manager_id=root.id)
        await db.commit()

        chart = (await client.get(f"{BASE}/hierarchy/org-chart", headers=hr_headers)).json()["data"]
        assert len(chart) == 1
        assert chart[0]["children"][0]["name"].startswith("Leaf")

    async def test_statistics_average_span_two_decimals(self, client: AsyncClient, hr_headers, db):
        bosses = [await make_employee(db, first_name=f"Boss{i}") for i in range(3)]
        for boss, reports in zip(bosses, (2, 2, 1)):
            for _ in range(reports):
                await make_employee(db, manager_id=boss.id)
        await db.commit()

        stats = (await client.get(f"{BASE}/hierarchy/statistics", headers=hr_headers)).json()["data"]
        assert stats["total_employees"] == 8
        assert stats["total_managers"] == 3
        assert stats["employees_with_manager"] == 5
        assert stats["top_level_employees"] == 3
        assert stats["average_span_of_control"] == 1.67


class TestLifecycle:

    async def test_terminate_records_history(self, client: AsyncClient, hr_headers, test_employee, db):
        resp = await client.post(
            f"{BASE}/lifecycle/{test_employee.id}/terminate",
            json={"reason": "Restructuring", "effective_date": "2024-06-30"},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "terminated"
        assert data["termination_date"] == "2024-06-30"

        history = await client.get(f"{BASE}/lifecycle/{test_employee.id}/history", headers=hr_headers)
        entry = history.json()["data"][0]
        assert entry["previous_status"] == "active"
        assert entry["new_status"] == "terminated"
        assert entry["reason"] == "Restructuring"

        terminated = await client.get(
            f"{BASE}/lifecycle/terminated?start_date=2024-01-01&end_date=2024-12-31",
            headers=hr_headers,
        )
        assert [e["id"] for e in terminated.json()["data"]] == [str(test_employee.id)]

    async def test_terminated_cannot_be_activated(self, client: AsyncClient, hr_headers, test_employee):
        await client.post(f"{BASE}/lifecycle/{test_employee.id}/terminate", json={}, headers=hr_headers)
        resp = await client.post(
            f"{BASE}/lifecycle/{test_employee.id}/activate", json={}, headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_already_active_rejected(self, client: AsyncClient, hr_headers, test_employee):
        resp = await client.post(
            f"{BASE}/lifecycle/{test_employee.id}/activate", json={}, headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_deactivate_then_activate(self, client: AsyncClient, hr_headers, test_employee):
        off = await client.post(
            f"{BASE}/lifecycle/{test_employee.id}/deactivate", json={}, headers=hr_headers,
        )
        assert off.json()["data"]["status"] == "inactive"
        on = await client.post(
            f"{BASE}/lifecycle/{test_employee.id}/activate", json={}, headers=hr_headers,
        )
        assert on.json()["data"]["status"] == "active"

        stats = (await client.get(f"{BASE}/lifecycle/statistics", headers=hr_headers)).json()["data"]
        assert stats["total_status_changes"] == 2
        assert stats["activations"] == 1
        assert stats["deactivations"] == 1

    async def test_onboard_notifies_linked_user(self, client: AsyncClient, hr_headers, test_employee, db):
        user = await make_user(db, employee_id=test_employee.id)
        await db.commit()

        resp = await client.post(
            f"{BASE}/lifecycle/{test_employee.id}/onboard", json={}, headers=hr_headers,
        )
        assert resp.json()["data"]["status"] == "probation"

        notes = (await db.execute(
            select(Notification).where(Notification.recipient_id == user.id)
        )).scalars().all()
        assert [n.subject for n in notes] == ["Welcome aboard"]

    async def test_offboard_sets_last_day(self, client: AsyncClient, hr_headers, test_employee):
        resp = await client.post(
            f"{BASE}/lifecycle/{test_employee.id}/offboard",
            json={"effective_date": "2025-01-31"},
            headers=hr_headers,
        )
        data = resp.json()["data"]
        assert data["status"] == "inactive"
        assert data["termination_date"] == "2025-01-31"

    async def test_history_rows_persisted(self, client: AsyncClient, hr_headers, test_employee, db):
        await client.post(f"{BASE}/lifecycle/{test_employee.id}/deactivate", json={}, headers=hr_headers)
        rows = (await db.execute(
            select(EmployeeStatusHistory).where(EmployeeStatusHistory.employee_id == test_employee.id)
        )).scalars().all()
        assert len(rows) == 1
        assert rows[0].changed_by.startswith("hr_")

    async def test_onboard_twice_rejected(self, client: AsyncClient, hr_headers, test_employee):
        first = await client.post(f"{BASE}/lifecycle/{test_employee.id}/onboard", json={}, headers=hr_headers)
        assert first.json()["data"]["status"] == "probation"
        again = await client.post(f"{BASE}/lifecycle/{test_employee.id}/onboard", json={}, headers=hr_headers)
        assert again.status_code == 400

    async def test_terminated_is_final_for_other_transitions(
        self, client: AsyncClient, hr_headers, test_employee,
    ):
        await client.post(f"{BASE}/lifecycle/{test_employee.id}/terminate", json={}, headers=hr_headers)
        for action in ("onboard", "offboard", "deactivate", "terminate"):
            resp = await client.post(
                f"{BASE}/lifecycle/{test_employee.id}/{action}", json={}, headers=hr_headers,
            )
            assert resp.status_code == 400, action

        history = await client.get(f"{BASE}/lifecycle/{test_employee.id}/history", headers=hr_headers)
        assert len(history.json()["data"]) == 1

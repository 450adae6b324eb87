"""Tests for payroll — pay grades, salary changes, bonuses, deductions."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from httpx import AsyncClient

from tests.conftest import make_employee

BASE = "/api/v1/payroll"
TODAY = date.today().isoformat()


async def _grade(client: AsyncClient, headers, **overrides) -> dict:
    payload = {
        "grade_code": "G1",
        "name": "Grade 1",
        "min_salary": "40000",
        "max_salary": "60000",
        "grade_level": 1,
        **overrides,
    }
    resp = await client.post(f"{BASE}/pay-grades", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _bonus(client: AsyncClient, headers, employee_id, **overrides) -> dict:
    payload = {
        "employee_id": str(employee_id),
        "bonus_type": "performance",
        "amount": "1500.00",
        "award_date": TODAY,
        **overrides,
    }
    resp = await client.post(f"{BASE}/bonuses", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestPayGrades:

    async def test_create_and_duplicate(self, client: AsyncClient, hr_headers):
        grade = await _grade(client, hr_headers)
        assert grade["status"] == "active"
        dup = await client.post(
            f"{BASE}/pay-grades",
            json={"grade_code": "G1", "name": "x", "min_salary": "1", "max_salary": "2", "grade_level": 2},
            headers=hr_headers,
        )
        assert dup.status_code == 409

    async def test_inverted_band_rejected(self, client: AsyncClient, hr_headers):
        resp = await client.post(
            f"{BASE}/pay-grades",
            json={"grade_code": "G9", "name": "x", "min_salary": "9", "max_salary": "1", "grade_level": 1},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_update_band_checked_against_stored_values(self, client: AsyncClient, hr_headers):
        grade = await _grade(client, hr_headers)
        resp = await client.put(
            f"{BASE}/pay-grades/{grade['id']}", json={"min_salary": "70000"}, headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_suitable_grades(self, client: AsyncClient, hr_headers):
        await _grade(client, hr_headers)
        await _grade(
            client, hr_headers, grade_code="G2", name="Grade 2",
            min_salary="55000", max_salary="80000", grade_level=2,
        )
        resp = await client.get(f"{BASE}/pay-grades/suitable?salary=57000", headers=hr_headers)
        assert [g["grade_code"] for g in resp.json()["data"]] == ["G1", "G2"]
        resp = await client.get(f"{BASE}/pay-grades/suitable?salary=75000", headers=hr_headers)
        assert [g["grade_code"] for g in resp.json()["data"]] == ["G2"]

    async def test_grade_in_use_cannot_be_deleted(self, client: AsyncClient, hr_headers, test_employee):
        grade = await _grade(client, hr_headers)
        await client.put(
            f"/api/v1/employees/{test_employee.id}",
            json={"pay_grade_id": grade["id"]},
            headers=hr_headers,
        )
        resp = await client.delete(f"{BASE}/pay-grades/{grade['id']}", headers=hr_headers)
        assert resp.status_code == 400

    async def test_manager_cannot_read_payroll(self, client: AsyncClient, manager_headers):
        resp = await client.get(f"{BASE}/pay-grades", headers=manager_headers)
        assert resp.status_code == 403


class TestSalary:

    async def test_salary_change_recorded(self, client: AsyncClient, hr_headers, test_employee):
        resp = await client.put(
            f"{BASE}/salaries/{test_employee.id}",
            json={"new_salary": "66000.00", "effective_date": TODAY, "change_reason": "merit_increase"},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert Decimal(data["previous_salary"]) == Decimal("60000.00")
        assert Decimal(data["change_amount"]) == Decimal("6000.00")
        assert data["change_percentage"] == 10.0
        assert data["approved_by"].startswith("hr_")

        current = (await client.get(f"{BASE}/salaries/{test_employee.id}", headers=hr_headers)).json()["data"]
        assert Decimal(current["salary"]) == Decimal("66000.00")

        history = await client.get(f"{BASE}/salaries/{test_employee.id}/history", headers=hr_headers)
        assert len(history.json()["data"]) == 1

    async def test_future_effective_date_rejected(self, client: AsyncClient, hr_headers, test_employee):
        future = (date.today() + timedelta(days=3)).isoformat()
        resp = await client.post(
            f"{BASE}/salaries/{test_employee.id}/adjust",
            json={"new_salary": "1", "effective_date": future, "change_reason": "promotion"},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_salary_list(self, client: AsyncClient, hr_headers, db):
        await make_employee(db, first_name="Paid")
        await make_employee(db, first_name="Unpaid", salary=None)
        await db.commit()
        resp = await client.get(f"{BASE}/salaries", headers=hr_headers)
        assert resp.json()["meta"]["total"] == 1


class TestBonuses:

    async def test_lifecycle(self, client: AsyncClient, hr_headers, test_employee):
        bonus = await _bonus(client, hr_headers, test_employee.id)
        assert bonus["status"] == "pending"

        early_pay = await client.post(f"{BASE}/bonuses/{bonus['id']}/pay", json={}, headers=hr_headers)
        assert early_pay.status_code == 400

        approved = await client.post(f"{BASE}/bonuses/{bonus['id']}/approve", headers=hr_headers)
        assert approved.json()["data"]["status"] == "approved"

        paid = await client.post(
            f"{BASE}/bonuses/{bonus['id']}/pay", json={"payment_date": TODAY}, headers=hr_headers,
        )
        assert paid.json()["data"]["status"] == "paid"
        assert paid.json()["data"]["payment_date"] == TODAY

        edit = await client.put(f"{BASE}/bonuses/{bonus['id']}", json={"amount": "10"}, headers=hr_headers)
        assert edit.status_code == 400
        delete = await client.delete(f"{BASE}/bonuses/{bonus['id']}", headers=hr_headers)
        assert delete.status_code == 400

    async def test_future_award_rejected(self, client: AsyncClient, hr_headers, test_employee):
        future = (date.today() + timedelta(days=1)).isoformat()
        resp = await client.post(
            f"{BASE}/bonuses",
            json={"employee_id": str(test_employee.id), "bonus_type": "spot", "amount": "5", "award_date": future},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_filter_by_status(self, client: AsyncClient, hr_headers, test_employee):
        first = await _bonus(client, hr_headers, test_employee.id)
        await _bonus(client, hr_headers, test_employee.id, bonus_type="spot")
        await client.post(f"{BASE}/bonuses/{first['id']}/approve", headers=hr_headers)

        resp = await client.get(f"{BASE}/bonuses?status=approved", headers=hr_headers)
        assert [b["id"] for b in resp.json()["data"]] == [first["id"]]


class TestDeductions:

    async def test_amount_xor_percentage(self, client: AsyncClient, hr_headers, test_employee):
        both = await client.post(
            f"{BASE}/deductions",
            json={
                "employee_id": str(test_employee.id),
                "deduction_type": "federal_tax",
                "amount": "100",
                "percentage": "10",
                "effective_date": TODAY,
            },
            headers=hr_headers,
        )
        neither = await client.post(
            f"{BASE}/deductions",
            json={"employee_id": str(test_employee.id), "deduction_type": "federal_tax", "effective_date": TODAY},
            headers=hr_headers,
        )
        assert both.status_code == 400
        assert neither.status_code == 400

    async def test_update_keeps_exclusivity(self, client: AsyncClient, hr_headers, test_employee):
        created = (await client.post(
            f"{BASE}/deductions",
            json={
                "employee_id": str(test_employee.id),
                "deduction_type": "health_insurance",
                "amount": "200",
                "effective_date": TODAY,
            },
            headers=hr_headers,
        )).json()["data"]
        resp = await client.put(
            f"{BASE}/deductions/{created['id']}", json={"percentage": "5"}, headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_compensation_summary(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        bonus = await _bonus(client, hr_headers, test_employee.id, amount="1000.00")
        await client.post(f"{BASE}/bonuses/{bonus['id']}/approve", headers=hr_headers)
        await _bonus(client, hr_headers, test_employee.id, amount="999.00")

        for body in (
            {"deduction_type": "federal_tax", "percentage": "10"},
            {"deduction_type": "health_insurance", "amount": "500"},
        ):
            resp = await client.post(
                f"{BASE}/deductions",
                json={"employee_id": str(test_employee.id), "effective_date": TODAY, **body},
                headers=hr_headers,
            )
            assert resp.status_code == 201, resp.text

        data = (await client.get(f"{BASE}/compensation/me", headers=user_headers)).json()["data"]
        assert Decimal(data["total_bonuses"]) == Decimal("1000.00")
        assert Decimal(data["total_deductions"]) == Decimal("6500.00")
        assert Decimal(data["net_estimate"]) == Decimal("53500.00")
        assert len(data["active_deductions"]) == 2

    async def test_summary_counts_only_deductions_in_force(
        self, client: AsyncClient, hr_headers, user_headers, test_employee,
    ):
        today = date.today()
        for body in (
            {"deduction_type": "union_dues", "amount": "50", "effective_date": TODAY},
            {"deduction_type": "loan", "amount": "300", "effective_date": (today + timedelta(days=1)).isoformat()},
            {
                "deduction_type": "garnishment",
                "amount": "700",
                "effective_date": (today - timedelta(days=30)).isoformat(),
                "end_date": (today - timedelta(days=1)).isoformat(),
            },
            {"deduction_type": "pension", "amount": "20", "effective_date": TODAY, "end_date": TODAY},
        ):
            resp = await client.post(
                f"{BASE}/deductions",
                json={"employee_id": str(test_employee.id), **body},
                headers=hr_headers,
            )
            assert resp.status_code == 201, resp.text

        data = (await client.get(f"{BASE}/compensation/me", headers=user_headers)).json()["data"]
        assert sorted(d["deduction_type"] for d in data["active_deductions"]) == ["pension", "union_dues"]
        assert Decimal(data["total_deductions"]) == Decimal("70.00")

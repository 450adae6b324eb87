"""Tests for leave — types, balances, and the request approval workflow."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import select

from hrms.common.constants import UserRole
from hrms.leave.service import calculate_total_days
from hrms.notifications.models import Notification
from tests.conftest import bearer_for, make_employee, make_user

BASE = "/api/v1/leave"
YEAR = date.today().year + 1


def _d(month: int, day: int) -> str:
    return date(YEAR, month, day).isoformat()


async def _leave_type(client: AsyncClient, headers, **overrides) -> dict:
    payload = {"name": "Annual", "days_allowed_per_year": 10, **overrides}
    resp = await client.post(f"{BASE}/types", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _initialize(client: AsyncClient, headers, employee_id, year: int = YEAR) -> list[dict]:
    resp = await client.post(
        f"{BASE}/balances/employee/{employee_id}/initialize?year={year}", headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def _balance(client: AsyncClient, headers, employee_id, leave_type_id) -> dict:
    resp = await client.get(
        f"{BASE}/balances/employee/{employee_id}/type/{leave_type_id}/year/{YEAR}",
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


class TestTotalDays:

    def test_inclusive_range(self):
        assert calculate_total_days(date(2025, 3, 3), date(2025, 3, 7)) == Decimal("5")

    def test_single_half_day(self):
        assert calculate_total_days(date(2025, 3, 3), date(2025, 3, 3), True) == Decimal("0.5")

    def test_half_day_flag_ignored_on_ranges(self):
        assert calculate_total_days(date(2025, 3, 3), date(2025, 3, 4), True) == Decimal("2")


class TestLeaveTypes:

    async def test_create_and_duplicate(self, client: AsyncClient, hr_headers):
        await _leave_type(client, hr_headers)
        resp = await client.post(
            f"{BASE}/types", json={"name": "Annual", "days_allowed_per_year": 5}, headers=hr_headers,
        )
        assert resp.status_code == 409

    async def test_user_cannot_configure(self, client: AsyncClient, user_headers):
        resp = await client.post(
            f"{BASE}/types", json={"name": "Sick", "days_allowed_per_year": 5}, headers=user_headers,
        )
        assert resp.status_code == 403

    async def test_deactivate_and_activate(self, client: AsyncClient, hr_headers):
        lt = await _leave_type(client, hr_headers)
        off = await client.post(f"{BASE}/types/{lt['id']}/deactivate", headers=hr_headers)
        assert off.json()["data"]["active"] is False

        inactive = await client.get(f"{BASE}/types/inactive", headers=hr_headers)
        assert [t["name"] for t in inactive.json()["data"]] == ["Annual"]

        on = await client.post(f"{BASE}/types/{lt['id']}/activate", headers=hr_headers)
        assert on.json()["data"]["active"] is True

    async def test_name_available(self, client: AsyncClient, hr_headers):
        lt = await _leave_type(client, hr_headers)
        taken = await client.get(f"{BASE}/types/name-available?name=Annual", headers=hr_headers)
        own = await client.get(
            f"{BASE}/types/name-available?name=Annual&exclude_id={lt['id']}", headers=hr_headers,
        )
        assert taken.json()["data"]["available"] is False
        assert own.json()["data"]["available"] is True

    async def test_delete_unused_type(self, client: AsyncClient, hr_headers):
        lt = await _leave_type(client, hr_headers)
        resp = await client.delete(f"{BASE}/types/{lt['id']}", headers=hr_headers)
        assert resp.status_code == 204


class TestBalances:

    async def test_initialize_creates_one_per_active_type(self, client: AsyncClient, hr_headers, test_employee):
        await _leave_type(client, hr_headers)
        await _leave_type(client, hr_headers, name="Sick", days_allowed_per_year=5)
        await _leave_type(client, hr_headers, name="Old", days_allowed_per_year=3, active=False)

        balances = await _initialize(client, hr_headers, test_employee.id)
        assert sorted(b["leave_type_name"] for b in balances) == ["Annual", "Sick"]

        again = await _initialize(client, hr_headers, test_employee.id)
        assert {b["id"] for b in again} == {b["id"] for b in balances}

    async def test_carry_forward_capped(self, client: AsyncClient, hr_headers, test_employee):
        lt = await _leave_type(client, hr_headers, carry_forward=True, max_carry_forward_days=3)
        await client.post(
            f"{BASE}/balances",
            json={
                "employee_id": str(test_employee.id),
                "leave_type_id": lt["id"],
                "year": YEAR - 1,
                "allocated_days": "10",
                "used_days": "2",
            },
            headers=hr_headers,
        )

        balances = await _initialize(client, hr_headers, test_employee.id)
        assert Decimal(balances[0]["carry_forward_days"]) == Decimal("3")
        assert Decimal(balances[0]["remaining_days"]) == Decimal("13")

    async def test_duplicate_balance_conflicts(self, client: AsyncClient, hr_headers, test_employee):
        lt = await _leave_type(client, hr_headers)
        body = {
            "employee_id": str(test_employee.id),
            "leave_type_id": lt["id"],
            "year": YEAR,
            "allocated_days": "10",
        }
        first = await client.post(f"{BASE}/balances", json=body, headers=hr_headers)
        assert first.status_code == 201
        second = await client.post(f"{BASE}/balances", json=body, headers=hr_headers)
        assert second.status_code == 409

    async def test_check_balance(self, client: AsyncClient, hr_headers, test_employee):
        lt = await _leave_type(client, hr_headers)
        await _initialize(client, hr_headers, test_employee.id)

        ok = await client.get(
            f"{BASE}/balances/check?employee_id={test_employee.id}&leave_type_id={lt['id']}"
            f"&days=4&year={YEAR}",
            headers=hr_headers,
        )
        too_many = await client.get(
            f"{BASE}/balances/check?employee_id={test_employee.id}&leave_type_id={lt['id']}"
            f"&days=11&year={YEAR}",
            headers=hr_headers,
        )
        assert ok.json()["data"]["sufficient"] is True
        assert too_many.json()["data"]["sufficient"] is False

    async def test_user_cannot_read_other_balances(self, client: AsyncClient, user_headers, db):
        other = await make_employee(db, first_name="Other")
        await db.commit()
        resp = await client.get(f"{BASE}/balances/employee/{other.id}", headers=user_headers)
        assert resp.status_code == 403


class TestRequestWorkflow:

    async def _setup(self, client, hr_headers, employee_id, **type_overrides) -> dict:
        lt = await _leave_type(client, hr_headers, **type_overrides)
        await _initialize(client, hr_headers, employee_id)
        return lt

    async def test_submit_reserves_pending_days(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)

        resp = await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(3, 2), "end_date": _d(3, 4)},
            headers=user_headers,
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["employee_id"] == str(test_employee.id)
        assert Decimal(data["total_days"]) == Decimal("3")

        balance = await _balance(client, hr_headers, test_employee.id, lt["id"])
        assert Decimal(balance["pending_days"]) == Decimal("3")
        assert Decimal(balance["remaining_days"]) == Decimal("7")

    async def test_approve_moves_pending_to_used(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        req = (await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(4, 1), "end_date": _d(4, 2)},
            headers=user_headers,
        )).json()["data"]

        resp = await client.post(
            f"{BASE}/requests/{req['id']}/approve", json={"comments": "Enjoy"}, headers=hr_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "approved"
        assert resp.json()["data"]["approval_comments"] == "Enjoy"

        balance = await _balance(client, hr_headers, test_employee.id, lt["id"])
        assert Decimal(balance["pending_days"]) == Decimal("0")
        assert Decimal(balance["used_days"]) == Decimal("2")

        again = await client.post(f"{BASE}/requests/{req['id']}/approve", headers=hr_headers)
        assert again.status_code == 400

    async def test_reject_releases_pending(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        req = (await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(5, 1), "end_date": _d(5, 5)},
            headers=user_headers,
        )).json()["data"]

        resp = await client.post(
            f"{BASE}/requests/{req['id']}/reject", json={"reason": "Busy period"}, headers=hr_headers,
        )
        assert resp.json()["data"]["rejection_reason"] == "Busy period"

        balance = await _balance(client, hr_headers, test_employee.id, lt["id"])
        assert Decimal(balance["remaining_days"]) == Decimal("10")

    async def test_cancel_approved_restores_used(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        req = (await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(6, 1), "end_date": _d(6, 3)},
            headers=user_headers,
        )).json()["data"]
        await client.post(f"{BASE}/requests/{req['id']}/approve", headers=hr_headers)

        resp = await client.post(f"{BASE}/requests/{req['id']}/cancel", headers=user_headers)
        assert resp.json()["data"]["status"] == "cancelled"

        balance = await _balance(client, hr_headers, test_employee.id, lt["id"])
        assert Decimal(balance["used_days"]) == Decimal("0")

        again = await client.post(f"{BASE}/requests/{req['id']}/cancel", headers=user_headers)
        assert again.status_code == 400

    async def test_insufficient_balance(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id, days_allowed_per_year=2)
        resp = await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(7, 1), "end_date": _d(7, 5)},
            headers=user_headers,
        )
        assert resp.status_code == 400
        assert "total_days" in resp.json()["errors"]

    async def test_overlap_rejected(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(8, 1), "end_date": _d(8, 3)},
            headers=user_headers,
        )
        resp = await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(8, 3), "end_date": _d(8, 4)},
            headers=user_headers,
        )
        assert resp.status_code == 400
        assert "overlaps" in resp.json()["detail"]

    async def test_max_consecutive_days(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id, max_consecutive_days=2)
        resp = await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(9, 1), "end_date": _d(9, 3)},
            headers=user_headers,
        )
        assert resp.status_code == 400
        assert "end_date" in resp.json()["errors"]

    async def test_end_before_start_rejected(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        resp = await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(9, 5), "end_date": _d(9, 1)},
            headers=user_headers,
        )
        assert resp.status_code == 400

    async def test_update_pending_recomputes(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        req = (await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(10, 1), "end_date": _d(10, 2)},
            headers=user_headers,
        )).json()["data"]

        resp = await client.put(
            f"{BASE}/requests/{req['id']}", json={"end_date": _d(10, 4)}, headers=user_headers,
        )
        assert Decimal(resp.json()["data"]["total_days"]) == Decimal("4")

        balance = await _balance(client, hr_headers, test_employee.id, lt["id"])
        assert Decimal(balance["pending_days"]) == Decimal("4")

    async def test_delete_pending(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        req = (await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(11, 1), "end_date": _d(11, 1)},
            headers=user_headers,
        )).json()["data"]

        resp = await client.delete(f"{BASE}/requests/{req['id']}", headers=user_headers)
        assert resp.status_code == 204

        balance = await _balance(client, hr_headers, test_employee.id, lt["id"])
        assert Decimal(balance["pending_days"]) == Decimal("0")

    async def test_user_cannot_approve(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        req = (await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(3, 9), "end_date": _d(3, 9)},
            headers=user_headers,
        )).json()["data"]
        resp = await client.post(f"{BASE}/requests/{req['id']}/approve", headers=user_headers)
        assert resp.status_code == 403

    async def test_user_cannot_submit_for_someone_else(self, client: AsyncClient, hr_headers, user_headers, db):
        other = await make_employee(db, first_name="Other")
        await db.commit()
        lt = await _leave_type(client, hr_headers)
        resp = await client.post(
            f"{BASE}/requests",
            json={
                "employee_id": str(other.id),
                "leave_type_id": lt["id"],
                "start_date": _d(3, 2),
                "end_date": _d(3, 2),
            },
            headers=user_headers,
        )
        assert resp.status_code == 403

    async def test_manager_queue_and_notification(self, client: AsyncClient, hr_headers, login_as, db):
        boss = await make_employee(db, first_name="Boss")
        report = await make_employee(db, first_name="Report", manager_id=boss.id)
        boss_user, boss_headers = await login_as(UserRole.manager, employee_id=boss.id)
        report_user = await make_user(db, employee_id=report.id)
        await db.commit()

        lt = await self._setup(client, hr_headers, report.id)
        report_headers = await bearer_for(db, report_user)
        await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(2, 2), "end_date": _d(2, 3)},
            headers=report_headers,
        )

        queue = await client.get(f"{BASE}/requests/manager-queue", headers=boss_headers)
        assert [r["employee_id"] for r in queue.json()["data"]] == [str(report.id)]

        notes = (await db.execute(
            select(Notification).where(Notification.recipient_id == boss_user.id)
        )).scalars().all()
        assert len(notes) == 1

    async def test_my_requests(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(1, 5), "end_date": _d(1, 5)},
            headers=user_headers,
        )
        resp = await client.get(f"{BASE}/requests/me", headers=user_headers)
        assert resp.json()["meta"]["total"] == 1

    async def test_calendar_lists_approved(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        lt = await self._setup(client, hr_headers, test_employee.id)
        req = (await client.post(
            f"{BASE}/requests",
            json={"leave_type_id": lt["id"], "start_date": _d(12, 1), "end_date": _d(12, 2)},
            headers=user_headers,
        )).json()["data"]
        await client.post(f"{BASE}/requests/{req['id']}/approve", headers=hr_headers)

        resp = await client.get(
            f"{BASE}/requests/calendar?start_date={_d(11, 25)}&end_date={_d(12, 31)}",
            headers=user_headers,
        )
        assert [r["id"] for r in resp.json()["data"]] == [req["id"]]

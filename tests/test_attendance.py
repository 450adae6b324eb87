"""Tests for attendance — clock in/out, hours split, breaks, corrections."""

from __future__ import annotations

from decimal import Decimal

from httpx import AsyncClient

from hrms.attendance.service import split_hours
from tests.conftest import bearer_for, make_employee, make_user

BASE = "/api/v1/attendance"


async def _clock_in(client: AsyncClient, headers, when: str | None = None, **extra) -> dict:
    body = dict(extra)
    if when:
        body["clock_in_time"] = when
    resp = await client.post(f"{BASE}/clock-in", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _clock_out(client: AsyncClient, headers, when: str | None = None) -> dict:
    body = {"clock_out_time": when} if when else {}
    resp = await client.post(f"{BASE}/clock-out", json=body, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


class TestSplitHours:

    def test_regular_day(self):
        assert split_hours(450) == (Decimal("7.50"), Decimal("7.50"), Decimal("0.00"))

    def test_overtime(self):
        assert split_hours(570) == (Decimal("9.50"), Decimal("8.00"), Decimal("1.50"))

    def test_negative_clamped(self):
        assert split_hours(-10)[0] == Decimal("0.00")


class TestClocking:

    async def test_on_time_full_day(self, client: AsyncClient, user_headers):
        record = await _clock_in(client, user_headers, "2024-03-04T09:00:00Z")
        assert record["status"] == "present"
        assert record["late_minutes"] == 0
        assert record["ip_address"] == "127.0.0.1"

        done = await _clock_out(client, user_headers, "2024-03-04T17:00:00Z")
        assert Decimal(done["total_hours"]) == Decimal("8.00")
        assert Decimal(done["overtime_hours"]) == Decimal("0.00")
        assert done["early_departure_minutes"] == 0

    async def test_late_arrival_and_overtime(self, client: AsyncClient, user_headers):
        record = await _clock_in(client, user_headers, "2024-03-05T09:15:00Z")
        assert record["status"] == "late"
        assert record["late_minutes"] == 15

        done = await _clock_out(client, user_headers, "2024-03-05T18:45:00Z")
        assert Decimal(done["total_hours"]) == Decimal("9.50")
        assert Decimal(done["regular_hours"]) == Decimal("8.00")
        assert Decimal(done["overtime_hours"]) == Decimal("1.50")

    async def test_early_departure(self, client: AsyncClient, user_headers):
        await _clock_in(client, user_headers, "2024-03-06T09:00:00Z")
        done = await _clock_out(client, user_headers, "2024-03-06T16:30:00Z")
        assert done["status"] == "left_early"
        assert done["early_departure_minutes"] == 30

    async def test_remote_work_status(self, client: AsyncClient, user_headers):
        record = await _clock_in(
            client, user_headers, "2024-03-07T09:30:00Z", remote_work=True, work_location="Home",
        )
        assert record["status"] == "remote_work"
        assert record["late_minutes"] == 30

    async def test_double_clock_in_rejected(self, client: AsyncClient, user_headers):
        await _clock_in(client, user_headers, "2024-03-08T09:00:00Z")
        resp = await client.post(
            f"{BASE}/clock-in", json={"clock_in_time": "2024-03-08T10:00:00Z"}, headers=user_headers,
        )
        assert resp.status_code == 400

    async def test_clock_out_without_clock_in(self, client: AsyncClient, user_headers):
        resp = await client.post(f"{BASE}/clock-out", json={}, headers=user_headers)
        assert resp.status_code == 400

    async def test_clock_out_before_clock_in_rejected(self, client: AsyncClient, user_headers):
        await _clock_in(client, user_headers, "2024-03-11T09:00:00Z")
        resp = await client.post(
            f"{BASE}/clock-out", json={"clock_out_time": "2024-03-11T08:00:00Z"}, headers=user_headers,
        )
        assert resp.status_code == 400

    async def test_unlinked_user_rejected(self, client: AsyncClient, hr_headers):
        resp = await client.post(f"{BASE}/clock-in", json={}, headers=hr_headers)
        assert resp.status_code == 400

    async def test_today(self, client: AsyncClient, user_headers):
        empty = await client.get(f"{BASE}/today", headers=user_headers)
        assert empty.json()["data"] is None

        await _clock_in(client, user_headers)
        resp = await client.get(f"{BASE}/today", headers=user_headers)
        assert resp.json()["data"]["clock_in_time"] is not None


class TestBreaks:

    async def test_break_cycle(self, client: AsyncClient, user_headers):
        record = await _clock_in(client, user_headers)

        started = await client.post(
            f"{BASE}/breaks/start", json={"break_type": "lunch_break"}, headers=user_headers,
        )
        assert started.status_code == 201
        brk = started.json()["data"]

        active = await client.get(f"{BASE}/breaks/active", headers=user_headers)
        assert active.json()["data"]["id"] == brk["id"]

        twice = await client.post(
            f"{BASE}/breaks/start", json={"break_type": "coffee_break"}, headers=user_headers,
        )
        assert twice.status_code == 400

        ended = await client.post(f"{BASE}/breaks/{brk['id']}/end", headers=user_headers)
        assert ended.json()["data"]["end_time"] is not None
        assert ended.json()["data"]["duration_minutes"] == 0

        listed = await client.get(f"{BASE}/{record['id']}/breaks", headers=user_headers)
        assert len(listed.json()["data"]) == 1

        again = await client.post(f"{BASE}/breaks/{brk['id']}/end", headers=user_headers)
        assert again.status_code == 400

    async def test_break_requires_clock_in(self, client: AsyncClient, user_headers):
        resp = await client.post(
            f"{BASE}/breaks/start", json={"break_type": "lunch_break"}, headers=user_headers,
        )
        assert resp.status_code == 400

    async def test_clock_out_closes_open_break(self, client: AsyncClient, user_headers):
        await _clock_in(client, user_headers)
        await client.post(f"{BASE}/breaks/start", json={"break_type": "lunch_break"}, headers=user_headers)
        await _clock_out(client, user_headers)

        active = await client.get(f"{BASE}/breaks/active", headers=user_headers)
        assert active.json()["data"] is None

    async def test_open_break_ends_at_clock_out_time(self, client: AsyncClient, user_headers):
        record = await _clock_in(client, user_headers, "2024-04-01T09:00:00Z")
        await client.post(
            f"{BASE}/breaks/start",
            json={"break_type": "lunch_break", "start_time": "2024-04-01T12:00:00Z"},
            headers=user_headers,
        )
        done = await _clock_out(client, user_headers, "2024-04-01T17:00:00Z")
        assert done["break_minutes"] == 300
        assert Decimal(done["total_hours"]) == Decimal("3.00")

        breaks = (await client.get(f"{BASE}/{record['id']}/breaks", headers=user_headers)).json()["data"]
        assert breaks[0]["duration_minutes"] == 300
        assert breaks[0]["end_time"].startswith("2024-04-01T17:00:00")


class TestCorrections:

    async def _worked_day(self, client, headers) -> dict:
        await _clock_in(client, headers, "2024-04-01T09:30:00Z")
        return await _clock_out(client, headers, "2024-04-01T17:00:00Z")

    async def test_approve_recalculates(self, client: AsyncClient, user_headers, hr_headers):
        record = await self._worked_day(client, user_headers)
        assert record["late_minutes"] == 30

        submitted = await client.post(
            f"{BASE}/corrections",
            json={
                "attendance_id": record["id"],
                "requested_clock_in": "2024-04-01T09:00:00Z",
                "reason": "Badge reader was down",
            },
            headers=user_headers,
        )
        assert submitted.status_code == 201
        correction = submitted.json()["data"]
        assert correction["status"] == "pending"

        approved = await client.post(
            f"{BASE}/corrections/{correction['id']}/approve",
            json={"notes": "Verified"},
            headers=hr_headers,
        )
        assert approved.json()["data"]["status"] == "approved"
        assert approved.json()["data"]["review_notes"] == "Verified"

        fixed = (await client.get(f"{BASE}/{record['id']}", headers=user_headers)).json()["data"]
        assert fixed["late_minutes"] == 0
        assert fixed["status"] == "present"
        assert Decimal(fixed["total_hours"]) == Decimal("8.00")

    async def test_reject_appends_reason(self, client: AsyncClient, user_headers, hr_headers):
        record = await self._worked_day(client, user_headers)
        correction = (await client.post(
            f"{BASE}/corrections",
            json={"attendance_id": record["id"], "reason": "Forgot"},
            headers=user_headers,
        )).json()["data"]

        rejected = await client.post(
            f"{BASE}/corrections/{correction['id']}/reject",
            json={"reason": "No evidence"},
            headers=hr_headers,
        )
        data = rejected.json()["data"]
        assert data["status"] == "rejected"
        assert data["reason"] == "Forgot | Rejection: No evidence"

        again = await client.post(
            f"{BASE}/corrections/{correction['id']}/approve", headers=hr_headers,
        )
        assert again.status_code == 400

    async def test_owner_can_cancel(self, client: AsyncClient, user_headers):
        record = await self._worked_day(client, user_headers)
        correction = (await client.post(
            f"{BASE}/corrections",
            json={"attendance_id": record["id"], "reason": "Typo"},
            headers=user_headers,
        )).json()["data"]

        resp = await client.post(f"{BASE}/corrections/{correction['id']}/cancel", headers=user_headers)
        assert resp.json()["data"]["status"] == "cancelled"

        mine = await client.get(f"{BASE}/corrections/me?status=cancelled", headers=user_headers)
        assert mine.json()["meta"]["total"] == 1

    async def test_user_cannot_approve(self, client: AsyncClient, user_headers):
        record = await self._worked_day(client, user_headers)
        correction = (await client.post(
            f"{BASE}/corrections",
            json={"attendance_id": record["id"], "reason": "x"},
            headers=user_headers,
        )).json()["data"]
        resp = await client.post(f"{BASE}/corrections/{correction['id']}/approve", headers=user_headers)
        assert resp.status_code == 403

    async def test_times_are_optional_but_ordered(self, client: AsyncClient, user_headers):
        record = await self._worked_day(client, user_headers)
        note_only = await client.post(
            f"{BASE}/corrections",
            json={"attendance_id": record["id"], "reason": "Worked from the lab"},
            headers=user_headers,
        )
        assert note_only.status_code == 201

        inverted = await client.post(
            f"{BASE}/corrections",
            json={
                "attendance_id": record["id"],
                "requested_clock_in": "2024-04-01T17:00:00Z",
                "requested_clock_out": "2024-04-01T09:00:00Z",
                "reason": "Swapped",
            },
            headers=user_headers,
        )
        assert inverted.status_code == 400

    async def test_cannot_correct_someone_elses_record(self, client: AsyncClient, user_headers, db):
        other = await make_employee(db, first_name="Other")
        other_user = await make_user(db, employee_id=other.id)
        other_headers = await bearer_for(db, other_user)
        record = await self._worked_day(client, other_headers)

        resp = await client.post(
            f"{BASE}/corrections",
            json={"attendance_id": record["id"], "reason": "Not mine"},
            headers=user_headers,
        )
        assert resp.status_code == 400


class TestHistoryAndSummary:

    async def test_summary(self, client: AsyncClient, user_headers):
        await _clock_in(client, user_headers, "2024-05-06T09:00:00Z")
        await _clock_out(client, user_headers, "2024-05-06T19:00:00Z")
        await _clock_in(client, user_headers, "2024-05-07T09:10:00Z", remote_work=True)
        await _clock_out(client, user_headers, "2024-05-07T17:10:00Z")

        data = (await client.get(
            f"{BASE}/me/summary?start_date=2024-05-01&end_date=2024-05-31", headers=user_headers,
        )).json()["data"]
        assert data["total_days"] == 2
        assert data["days_present"] == 2
        assert data["days_late"] == 1
        assert data["remote_days"] == 1
        assert Decimal(data["total_hours"]) == Decimal("18.00")
        assert Decimal(data["overtime_hours"]) == Decimal("2.00")
        assert Decimal(data["average_hours_per_day"]) == Decimal("9.00")

    async def test_history_paginated(self, client: AsyncClient, user_headers):
        for day in (13, 14, 15):
            await _clock_in(client, user_headers, f"2024-05-{day}T09:00:00Z")
            await _clock_out(client, user_headers, f"2024-05-{day}T17:00:00Z")

        resp = await client.get(f"{BASE}/me/history?page_size=2", headers=user_headers)
        body = resp.json()
        assert body["meta"]["total"] == 3
        assert body["data"][0]["work_date"] == "2024-05-15"

    async def test_other_employee_requires_manager(self, client: AsyncClient, user_headers, manager_headers, db):
        other = await make_employee(db, first_name="Other")
        await db.commit()

        denied = await client.get(f"{BASE}/employee/{other.id}/history", headers=user_headers)
        allowed = await client.get(f"{BASE}/employee/{other.id}/history", headers=manager_headers)
        assert denied.status_code == 403
        assert allowed.status_code == 200

    async def test_range_validation(self, client: AsyncClient, user_headers, test_employee):
        resp = await client.get(
            f"{BASE}/employee/{test_employee.id}/range?start_date=2024-05-10&end_date=2024-05-01",
            headers=user_headers,
        )
        assert resp.status_code == 400

"""Tests for performance reviews and goals."""

from __future__ import annotations

from datetime import date, timedelta

from httpx import AsyncClient

from tests.conftest import make_employee

BASE = "/api/v1/performance"


async def _review(client: AsyncClient, headers, employee_id, **overrides) -> dict:
    payload = {
        "employee_id": str(employee_id),
        "review_period_start": "2024-01-01",
        "review_period_end": "2024-06-30",
        **overrides,
    }
    resp = await client.post(f"{BASE}/reviews", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _goal(client: AsyncClient, headers, employee_id, **overrides) -> dict:
    payload = {"employee_id": str(employee_id), "title": "Ship the thing", **overrides}
    resp = await client.post(f"{BASE}/goals", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestReviews:

    async def test_create_starts_as_draft_and_notifies(
        self, client: AsyncClient, manager_headers, user_headers, test_employee,
    ):
        review = await _review(
            client, manager_headers, test_employee.id, overall_rating="meets_expectations_plus",
        )
        assert review["status"] == "draft"
        assert review["rating_score"] == 4

        inbox = await client.get("/api/v1/notifications", headers=user_headers)
        assert [n["subject"] for n in inbox.json()["data"]] == ["Performance Review Scheduled"]

    async def test_self_review_rejected(self, client: AsyncClient, manager_headers, test_employee):
        resp = await client.post(
            f"{BASE}/reviews",
            json={
                "employee_id": str(test_employee.id),
                "reviewer_id": str(test_employee.id),
                "review_period_start": "2024-01-01",
                "review_period_end": "2024-06-30",
            },
            headers=manager_headers,
        )
        assert resp.status_code == 400

    async def test_inverted_period_rejected(self, client: AsyncClient, manager_headers, test_employee):
        resp = await client.post(
            f"{BASE}/reviews",
            json={
                "employee_id": str(test_employee.id),
                "review_period_start": "2024-06-30",
                "review_period_end": "2024-01-01",
            },
            headers=manager_headers,
        )
        assert resp.status_code == 400

    async def test_workflow(self, client: AsyncClient, manager_headers, hr_headers, test_employee):
        review = await _review(client, manager_headers, test_employee.id)
        rid = review["id"]

        assert (await client.get(f"{BASE}/reviews/{rid}/can-start", headers=manager_headers)).json()["data"]["can_start"]
        early = await client.post(f"{BASE}/reviews/{rid}/complete", headers=manager_headers)
        assert early.status_code == 400

        submitted = await client.post(f"{BASE}/reviews/{rid}/submit", headers=manager_headers)
        assert submitted.json()["data"]["status"] == "pending"
        started = await client.post(f"{BASE}/reviews/{rid}/start", headers=manager_headers)
        assert started.json()["data"]["status"] == "in_progress"
        completed = await client.post(f"{BASE}/reviews/{rid}/complete", headers=manager_headers)
        assert completed.json()["data"]["completed_date"] == date.today().isoformat()

        manager_approve = await client.post(f"{BASE}/reviews/{rid}/approve", headers=manager_headers)
        assert manager_approve.status_code == 403

        approved = await client.post(f"{BASE}/reviews/{rid}/approve", headers=hr_headers)
        data = approved.json()["data"]
        assert data["status"] == "approved"
        assert data["approved_by"].startswith("hr_")

        locked = await client.put(f"{BASE}/reviews/{rid}", json={"comments": "late"}, headers=hr_headers)
        assert locked.status_code == 400

    async def test_update_checks_stored_period(self, client: AsyncClient, manager_headers, test_employee):
        review = await _review(client, manager_headers, test_employee.id)
        resp = await client.put(
            f"{BASE}/reviews/{review['id']}",
            json={"review_period_start": "2025-01-01"},
            headers=manager_headers,
        )
        assert resp.status_code == 400
        assert "review_period_start" in resp.json()["errors"]

    async def test_overdue_and_period(self, client: AsyncClient, manager_headers, test_employee):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        late = await _review(client, manager_headers, test_employee.id, due_date=yesterday)
        await _review(
            client, manager_headers, test_employee.id,
            review_period_start="2023-01-01", review_period_end="2023-06-30",
        )

        overdue = await client.get(f"{BASE}/reviews/overdue", headers=manager_headers)
        assert [r["id"] for r in overdue.json()["data"]] == [late["id"]]

        period = await client.get(
            f"{BASE}/reviews/period?start_date=2024-03-01&end_date=2024-03-31", headers=manager_headers,
        )
        assert [r["id"] for r in period.json()["data"]] == [late["id"]]

    async def test_access_rules(self, client: AsyncClient, manager_headers, user_headers, test_employee, db):
        other = await make_employee(db, first_name="Other")
        await db.commit()
        mine = await _review(client, manager_headers, test_employee.id)
        theirs = await _review(client, manager_headers, other.id)

        assert (await client.get(f"{BASE}/reviews/{mine['id']}", headers=user_headers)).status_code == 200
        assert (await client.get(f"{BASE}/reviews/{theirs['id']}", headers=user_headers)).status_code == 403
        me = await client.get(f"{BASE}/reviews/me", headers=user_headers)
        assert [r["id"] for r in me.json()["data"]] == [mine["id"]]
        assert (await client.get(f"{BASE}/reviews", headers=user_headers)).status_code == 403

    async def test_delete_unlinks_goals(self, client: AsyncClient, manager_headers, test_employee):
        review = await _review(client, manager_headers, test_employee.id)
        goal = await _goal(client, manager_headers, test_employee.id, review_id=review["id"])

        resp = await client.delete(f"{BASE}/reviews/{review['id']}", headers=manager_headers)
        assert resp.status_code == 204
        kept = await client.get(f"{BASE}/goals/{goal['id']}", headers=manager_headers)
        assert kept.json()["data"]["review_id"] is None


class TestGoals:

    async def test_progress_moves_status(self, client: AsyncClient, manager_headers, user_headers, test_employee):
        goal = await _goal(client, manager_headers, test_employee.id)
        assert goal["status"] == "not_started"

        partial = await client.put(
            f"{BASE}/goals/{goal['id']}/progress", json={"progress": 40}, headers=user_headers,
        )
        assert partial.json()["data"]["status"] == "in_progress"

        done = await client.put(
            f"{BASE}/goals/{goal['id']}/progress", json={"progress": 100}, headers=user_headers,
        )
        data = done.json()["data"]
        assert data["status"] == "completed"
        assert data["completed_date"] == date.today().isoformat()

        again = await client.put(
            f"{BASE}/goals/{goal['id']}/progress", json={"progress": 50}, headers=user_headers,
        )
        assert again.status_code == 400

    async def test_progress_bounds(self, client: AsyncClient, manager_headers, test_employee):
        goal = await _goal(client, manager_headers, test_employee.id)
        resp = await client.put(
            f"{BASE}/goals/{goal['id']}/progress", json={"progress": 101}, headers=manager_headers,
        )
        assert resp.status_code == 400

    async def test_transitions(self, client: AsyncClient, manager_headers, user_headers, test_employee):
        goal = await _goal(client, manager_headers, test_employee.id)
        gid = goal["id"]

        bad_pause = await client.post(f"{BASE}/goals/{gid}/pause", headers=user_headers)
        assert bad_pause.status_code == 400

        started = await client.post(f"{BASE}/goals/{gid}/start", headers=user_headers)
        assert started.json()["data"]["start_date"] == date.today().isoformat()
        paused = await client.post(f"{BASE}/goals/{gid}/pause", headers=user_headers)
        assert paused.json()["data"]["status"] == "on_hold"

        assert (await client.post(f"{BASE}/goals/{gid}/cancel", headers=user_headers)).status_code == 403
        cancelled = await client.post(f"{BASE}/goals/{gid}/cancel", headers=manager_headers)
        assert cancelled.json()["data"]["status"] == "cancelled"
        assert (await client.post(f"{BASE}/goals/{gid}/complete", headers=user_headers)).status_code == 400

    async def test_active_goal_limit(self, client: AsyncClient, manager_headers, test_employee):
        for n in range(10):
            await _goal(client, manager_headers, test_employee.id, title=f"Goal {n}")
        resp = await client.post(
            f"{BASE}/goals",
            json={"employee_id": str(test_employee.id), "title": "One too many"},
            headers=manager_headers,
        )
        assert resp.status_code == 400

        stats = await client.get(
            f"{BASE}/goals/employee/{test_employee.id}/statistics", headers=manager_headers,
        )
        assert stats.json()["data"]["active_goals"] == 10
        assert stats.json()["data"]["can_create"] is False

    async def test_review_must_belong_to_employee(self, client: AsyncClient, manager_headers, test_employee, db):
        other = await make_employee(db, first_name="Other")
        await db.commit()
        review = await _review(client, manager_headers, other.id)
        resp = await client.post(
            f"{BASE}/goals",
            json={"employee_id": str(test_employee.id), "title": "x", "review_id": review["id"]},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    async def test_average_progress_ignores_cancelled(
        self, client: AsyncClient, manager_headers, test_employee,
    ):
        first = await _goal(client, manager_headers, test_employee.id)
        second = await _goal(client, manager_headers, test_employee.id)
        dropped = await _goal(client, manager_headers, test_employee.id)
        await client.put(f"{BASE}/goals/{first['id']}/progress", json={"progress": 30}, headers=manager_headers)
        await client.put(f"{BASE}/goals/{second['id']}/progress", json={"progress": 60}, headers=manager_headers)
        await client.put(f"{BASE}/goals/{dropped['id']}/progress", json={"progress": 90}, headers=manager_headers)
        await client.post(f"{BASE}/goals/{dropped['id']}/cancel", headers=manager_headers)

        resp = await client.get(
            f"{BASE}/goals/department/{test_employee.department_id}/average-progress",
            headers=manager_headers,
        )
        assert resp.json()["data"]["average_progress"] == 45.0

    async def test_due_soon_overdue_and_priority(self, client: AsyncClient, manager_headers, test_employee):
        today = date.today()
        late = await _goal(
            client, manager_headers, test_employee.id,
            start_date=(today - timedelta(days=30)).isoformat(),
            target_date=(today - timedelta(days=1)).isoformat(),
        )
        soon = await _goal(
            client, manager_headers, test_employee.id,
            target_date=(today + timedelta(days=3)).isoformat(), priority="critical",
        )

        overdue = await client.get(f"{BASE}/goals/overdue", headers=manager_headers)
        assert [g["id"] for g in overdue.json()["data"]] == [late["id"]]
        due = await client.get(f"{BASE}/goals/due-soon?days=7", headers=manager_headers)
        assert [g["id"] for g in due.json()["data"]] == [soon["id"]]
        urgent = await client.get(f"{BASE}/goals/high-priority", headers=manager_headers)
        assert [g["id"] for g in urgent.json()["data"]] == [soon["id"]]

    async def test_user_sees_own_goals_only(self, client: AsyncClient, manager_headers, user_headers, test_employee, db):
        other = await make_employee(db, first_name="Other")
        await db.commit()
        await _goal(client, manager_headers, test_employee.id)
        foreign = await _goal(client, manager_headers, other.id)

        me = await client.get(f"{BASE}/goals/me", headers=user_headers)
        assert len(me.json()["data"]) == 1
        assert (await client.get(f"{BASE}/goals/{foreign['id']}", headers=user_headers)).status_code == 403
        assert (
            await client.get(f"{BASE}/goals/employee/{other.id}", headers=user_headers)
        ).status_code == 403

"""Notification test suite — inbox operations, templates, preferences and
the dispatch helpers other modules call.
"""

from __future__ import annotations

import uuid

from httpx import AsyncClient
from sqlalchemy import select

from hrms.common.constants import NotificationType, UserRole
from hrms.common.pagination import PaginationParams
from hrms.notifications.email import email_service
from hrms.notifications.models import Notification
from hrms.notifications.service import NotificationService, notify_employee, render_template
from tests.conftest import make_user

BASE = "/api/v1/notifications"


async def _send(client: AsyncClient, headers, recipient_id, subject="Hello", **overrides):
    resp = await client.post(
        BASE,
        json={"recipient_id": str(recipient_id), "subject": subject, "message": "Body", **overrides},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


# ── Rendering ───────────────────────────────────────────────────────


class TestRenderTemplate:

    def test_substitutes_known_placeholders(self):
        assert render_template("Hi {name}, {days} days", {"name": "Ann", "days": 3}) == "Hi Ann, 3 days"

    def test_unknown_placeholders_are_kept(self):
        assert render_template("Hi {name} {missing}", {"name": "Ann"}) == "Hi Ann {missing}"


# ── Inbox ───────────────────────────────────────────────────────────


class TestInbox:

    async def test_list_and_unread_count(self, client: AsyncClient, hr_headers, user_headers, employee_user):
        user, _ = employee_user
        for n in range(3):
            await _send(client, hr_headers, user.id, subject=f"Note {n}")

        resp = await client.get(f"{BASE}?page_size=2", headers=user_headers)
        body = resp.json()
        assert len(body["data"]) == 2
        assert body["meta"]["total"] == 3
        assert body["meta"]["unread"] == 3

        count = await client.get(f"{BASE}/unread-count", headers=user_headers)
        assert count.json()["data"]["count"] == 3

    async def test_mark_read_and_read_all(self, client: AsyncClient, hr_headers, user_headers, employee_user):
        user, _ = employee_user
        first = await _send(client, hr_headers, user.id)
        await _send(client, hr_headers, user.id)

        read = await client.put(f"{BASE}/{first['id']}/read", headers=user_headers)
        assert read.json()["data"]["status"] == "read"
        assert read.json()["data"]["read_at"] is not None

        bulk = await client.put(f"{BASE}/read-all", headers=user_headers)
        assert bulk.json()["data"]["count"] == 1
        unread = await client.get(f"{BASE}?status=unread", headers=user_headers)
        assert unread.json()["data"] == []

    async def test_filter_by_type_and_search(self, client: AsyncClient, hr_headers, user_headers, employee_user):
        user, _ = employee_user
        await _send(client, hr_headers, user.id, subject="Payday", notification_type="payroll_update")
        await _send(client, hr_headers, user.id, subject="Party")

        by_type = await client.get(f"{BASE}?type=payroll_update", headers=user_headers)
        assert [n["subject"] for n in by_type.json()["data"]] == ["Payday"]
        found = await client.get(f"{BASE}/search?q=part", headers=user_headers)
        assert [n["subject"] for n in found.json()["data"]] == ["Party"]

    async def test_delete_hides_notification(self, client: AsyncClient, hr_headers, user_headers, employee_user):
        user, _ = employee_user
        note = await _send(client, hr_headers, user.id)

        assert (await client.delete(f"{BASE}/{note['id']}", headers=user_headers)).status_code == 204
        assert (await client.get(f"{BASE}/{note['id']}", headers=user_headers)).status_code == 404
        assert (await client.get(BASE, headers=user_headers)).json()["meta"]["total"] == 0

    async def test_other_users_notification_is_forbidden(
        self, client: AsyncClient, hr_headers, user_headers, db,
    ):
        stranger = await make_user(db, UserRole.user)
        await db.commit()
        note = await _send(client, hr_headers, stranger.id)
        resp = await client.get(f"{BASE}/{note['id']}", headers=user_headers)
        assert resp.status_code == 403

    async def test_only_staff_can_send(self, client: AsyncClient, user_headers, employee_user):
        user, _ = employee_user
        resp = await client.post(
            BASE,
            json={"recipient_id": str(user.id), "subject": "x", "message": "y"},
            headers=user_headers,
        )
        assert resp.status_code == 403

    async def test_unknown_recipient(self, client: AsyncClient, hr_headers):
        resp = await client.post(
            BASE,
            json={"recipient_id": str(uuid.uuid4()), "subject": "x", "message": "y"},
            headers=hr_headers,
        )
        assert resp.status_code == 404


# ── Templates ───────────────────────────────────────────────────────


class TestTemplates:

    async def _template(self, client, headers, **overrides):
        payload = {
            "name": "leave_reminder",
            "notification_type": "reminder",
            "subject_template": "Reminder for {name}",
            "message_template": "You have {days} days left.",
            **overrides,
        }
        resp = await client.post(f"{BASE}/templates", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    async def test_send_from_template(self, client: AsyncClient, admin_headers, hr_headers, user_headers, employee_user):
        user, _ = employee_user
        await self._template(client, admin_headers)

        resp = await client.post(
            f"{BASE}/from-template",
            json={
                "template_name": "leave_reminder",
                "recipient_id": str(user.id),
                "variables": {"name": "Jane", "days": 4},
            },
            headers=hr_headers,
        )
        data = resp.json()["data"]
        assert data["subject"] == "Reminder for Jane"
        assert data["message"] == "You have 4 days left."
        assert data["notification_type"] == "reminder"

    async def test_inactive_template_rejected(self, client: AsyncClient, admin_headers, hr_headers, employee_user):
        user, _ = employee_user
        await self._template(client, admin_headers, active=False)
        resp = await client.post(
            f"{BASE}/from-template",
            json={"template_name": "leave_reminder", "recipient_id": str(user.id)},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_template_management(self, client: AsyncClient, admin_headers, hr_headers):
        template = await self._template(client, admin_headers)

        assert (await client.post(
            f"{BASE}/templates",
            json={"name": "x", "notification_type": "info", "subject_template": "s", "message_template": "m"},
            headers=hr_headers,
        )).status_code == 403
        dup = await client.post(
            f"{BASE}/templates",
            json={"name": "leave_reminder", "notification_type": "info", "subject_template": "s", "message_template": "m"},
            headers=admin_headers,
        )
        assert dup.status_code == 409

        listed = await client.get(f"{BASE}/templates?active=true", headers=hr_headers)
        assert [t["name"] for t in listed.json()["data"]] == ["leave_reminder"]

        updated = await client.put(
            f"{BASE}/templates/{template['id']}", json={"active": False}, headers=admin_headers,
        )
        assert updated.json()["data"]["active"] is False
        assert (await client.delete(f"{BASE}/templates/{template['id']}", headers=admin_headers)).status_code == 204

    async def test_system_template_cannot_be_deleted(self, client: AsyncClient, admin_headers):
        template = await self._template(client, admin_headers, system_template=True)
        resp = await client.delete(f"{BASE}/templates/{template['id']}", headers=admin_headers)
        assert resp.status_code == 400


# ── Preferences and email ───────────────────────────────────────────


class TestPreferences:

    async def test_upsert_preference(self, client: AsyncClient, user_headers):
        url = f"{BASE}/preferences/leave_approval"
        first = await client.put(url, json={"email_enabled": False}, headers=user_headers)
        assert first.json()["data"]["email_enabled"] is False
        second = await client.put(url, json={"email_enabled": True, "quiet_hours_start": "22:00"}, headers=user_headers)
        assert second.json()["data"]["quiet_hours_start"] == "22:00"

        prefs = await client.get(f"{BASE}/preferences", headers=user_headers)
        assert len(prefs.json()["data"]) == 1

    async def test_bad_quiet_hours(self, client: AsyncClient, user_headers):
        resp = await client.put(
            f"{BASE}/preferences/info", json={"quiet_hours_start": "25:00"}, headers=user_headers,
        )
        assert resp.status_code == 400

    async def test_email_only_when_opted_in(self, client: AsyncClient, hr_headers, user_headers, employee_user, monkeypatch):
        user, _ = employee_user
        sent = []
        monkeypatch.setattr(email_service, "send", lambda subject, to, html, text=None: sent.append(subject) or True)

        quiet = await _send(client, hr_headers, user.id, subject="Quiet")
        assert quiet["email_sent"] is False

        await client.put(f"{BASE}/preferences/info", json={"email_enabled": True}, headers=user_headers)
        loud = await _send(client, hr_headers, user.id, subject="Loud")
        assert loud["email_sent"] is True
        assert sent == ["Loud"]


# ── Dispatch helpers ────────────────────────────────────────────────


class TestNotifyEmployee:

    async def test_notifies_linked_user(self, db, employee_user, test_employee):
        user, _ = employee_user
        note = await notify_employee(
            db,
            test_employee.id,
            subject="Heads up",
            message="Something happened",
            notification_type=NotificationType.alert,
        )
        assert note is not None
        assert note.recipient_id == user.id

    async def test_unlinked_employee_is_skipped(self, db, test_employee):
        note = await notify_employee(
            db,
            test_employee.id,
            subject="Nobody home",
            message="-",
            notification_type=NotificationType.info,
        )
        assert note is None
        rows = (await db.execute(select(Notification))).scalars().all()
        assert rows == []

    async def test_service_pagination_meta(self, db, employee_user):
        user, _ = employee_user
        for n in range(5):
            await NotificationService.create_notification(
                db, recipient_id=user.id, subject=f"N{n}", message="m",
            )
        page = await NotificationService.get_notifications(
            db, user.id, PaginationParams(page=2, page_size=2),
        )
        assert len(page.data) == 2
        assert page.meta.total == 5
        assert page.meta.total_pages == 3
        assert page.meta.has_prev is True

    async def test_failed_insert_leaves_session_usable(self, db, employee_user, test_employee, monkeypatch):
        async def broken(session, **kwargs):
            # subject is NOT NULL, so the flush fails inside the database
            session.add(Notification(recipient_id=kwargs["recipient_id"], subject=None, message="m"))
            await session.flush()

        monkeypatch.setattr(NotificationService, "create_notification", staticmethod(broken))
        note = await notify_employee(
            db,
            test_employee.id,
            subject="Lost",
            message="-",
            notification_type=NotificationType.info,
        )
        assert note is None

        test_employee.job_title = "Staff Engineer"
        await db.flush()
        await db.commit()
        rows = (await db.execute(select(Notification))).scalars().all()
        assert rows == []

"""Tests for documents attached to leave requests."""

from __future__ import annotations

import os
import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from hrms.common.constants import UserRole
from hrms.config import settings
from hrms.leave.documents import SUBDIR
from hrms.leave.models import LeaveDocument, LeaveRequest, LeaveType

BASE = "/api/v1/leave/documents"
PDF = b"%PDF-1.4 medical certificate"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@pytest.fixture
async def leave_request(db, test_employee) -> LeaveRequest:
    leave_type = LeaveType(name="Sick", days_allowed_per_year=10)
    db.add(leave_type)
    await db.flush()
    start = date.today() + timedelta(days=7)
    leave_req = LeaveRequest(
        employee_id=test_employee.id,
        leave_type_id=leave_type.id,
        start_date=start,
        end_date=start + timedelta(days=1),
        total_days=Decimal("2"),
    )
    db.add(leave_req)
    await db.commit()
    return leave_req


async def _upload(client: AsyncClient, headers, request_id, *, name="note.pdf", content=PDF,
                  mime="application/pdf", **form):
    return await client.post(
        f"{BASE}/request/{request_id}",
        files={"file": (name, content, mime)},
        data=form,
        headers=headers,
    )


class TestUpload:

    async def test_owner_uploads_and_downloads(self, client: AsyncClient, user_headers, leave_request):
        resp = await _upload(client, user_headers, leave_request.id, description="GP note")
        assert resp.status_code == 201, resp.text
        doc = resp.json()["data"]
        assert doc["document_name"] == "note.pdf"
        assert doc["file_type"] == "application/pdf"
        assert doc["file_size"] == len(PDF)
        assert doc["description"] == "GP note"

        download = await client.get(f"{BASE}/{doc['id']}/download", headers=user_headers)
        assert download.status_code == 200
        assert download.content == PDF
        assert download.headers["content-type"] == "application/pdf"
        assert 'filename="note.pdf"' in download.headers["content-disposition"]

        listed = await client.get(f"{BASE}/request/{leave_request.id}", headers=user_headers)
        assert [d["id"] for d in listed.json()["data"]] == [doc["id"]]

        size = await client.get(f"{BASE}/request/{leave_request.id}/total-size", headers=user_headers)
        assert size.json()["data"]["total_size_bytes"] == len(PDF)

    async def test_rejects_unlisted_mime_type(self, client: AsyncClient, user_headers, leave_request):
        resp = await _upload(client, user_headers, leave_request.id, name="a.zip", mime="application/zip")
        assert resp.status_code == 400

    async def test_rejects_empty_file(self, client: AsyncClient, user_headers, leave_request):
        resp = await _upload(client, user_headers, leave_request.id, content=b"")
        assert resp.status_code == 400

    async def test_rejects_oversized_file(self, client: AsyncClient, user_headers, leave_request):
        resp = await _upload(client, user_headers, leave_request.id, content=b"x" * (10 * 1024 * 1024 + 1))
        assert resp.status_code == 400

    async def test_unknown_request_is_404(self, client: AsyncClient, hr_headers):
        resp = await _upload(client, hr_headers, "00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    async def test_other_employee_cannot_upload_or_read(
        self, client: AsyncClient, login_as, user_headers, leave_request,
    ):
        _, stranger = await login_as(UserRole.user)
        assert (await _upload(client, stranger, leave_request.id)).status_code == 403

        doc = (await _upload(client, user_headers, leave_request.id)).json()["data"]
        assert (await client.get(f"{BASE}/{doc['id']}", headers=stranger)).status_code == 403
        assert (await client.get(f"{BASE}/{doc['id']}/download", headers=stranger)).status_code == 403


class TestManage:

    async def test_uploader_can_rename(self, client: AsyncClient, user_headers, leave_request):
        doc = (await _upload(client, user_headers, leave_request.id)).json()["data"]
        resp = await client.put(
            f"{BASE}/{doc['id']}",
            json={"document_name": "certificate.pdf", "description": "signed"},
            headers=user_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["document_name"] == "certificate.pdf"
        assert resp.json()["data"]["description"] == "signed"

    async def test_delete_removes_file_from_disk(
        self, client: AsyncClient, user_headers, hr_headers, leave_request, session_factory,
    ):
        doc = (await _upload(client, user_headers, leave_request.id)).json()["data"]
        async with session_factory() as s:
            path = (await s.get(LeaveDocument, uuid.UUID(doc["id"]))).file_path
        assert os.path.isfile(path)

        exists = await client.get(f"{BASE}/{doc['id']}/exists", headers=hr_headers)
        assert exists.json()["data"]["exists"] is True

        assert (await client.delete(f"{BASE}/{doc['id']}", headers=user_headers)).status_code == 403
        assert (await client.delete(f"{BASE}/{doc['id']}", headers=hr_headers)).status_code == 204
        assert not os.path.exists(path)
        assert (await client.get(f"{BASE}/{doc['id']}", headers=hr_headers)).status_code == 404

        exists = await client.get(f"{BASE}/{doc['id']}/exists", headers=hr_headers)
        assert exists.json()["data"]["exists"] is False

    async def test_lists_by_file_type_and_uploader(
        self, client: AsyncClient, employee_user, hr_headers, leave_request,
    ):
        user, headers = employee_user
        await _upload(client, headers, leave_request.id)
        await _upload(client, headers, leave_request.id, name="scan.png", content=b"\x89PNG", mime="image/png")

        pngs = await client.get(f"{BASE}/file-type", params={"file_type": "image/png"}, headers=hr_headers)
        assert [d["document_name"] for d in pngs.json()["data"]] == ["scan.png"]

        mine = await client.get(f"{BASE}/uploader/{user.id}", headers=hr_headers)
        assert len(mine.json()["data"]) == 2

        page = await client.get(BASE, headers=hr_headers)
        assert page.json()["meta"]["total"] == 2

    async def test_lists_need_hr(self, client: AsyncClient, user_headers):
        assert (await client.get(BASE, headers=user_headers)).status_code == 403
        assert (await client.get(f"{BASE}/statistics", headers=user_headers)).status_code == 403

    async def test_inverted_upload_window_is_400(self, client: AsyncClient, hr_headers):
        resp = await client.get(
            f"{BASE}/between",
            params={"start": "2025-02-01T00:00:00Z", "end": "2025-01-01T00:00:00Z"},
            headers=hr_headers,
        )
        assert resp.status_code == 400

    async def test_statistics(self, client: AsyncClient, user_headers, hr_headers, leave_request):
        await _upload(client, user_headers, leave_request.id)
        await _upload(client, user_headers, leave_request.id, name="x.png", content=b"\x89PNG", mime="image/png")
        await _upload(client, user_headers, leave_request.id, name="x.docx", content=b"PK docx", mime=DOCX)

        stats = (await client.get(f"{BASE}/statistics", headers=hr_headers)).json()["data"]
        assert stats["total_documents"] == 3
        assert stats["total_size_bytes"] == len(PDF) + 4 + 7
        assert stats["pdf_count"] == 1
        assert stats["image_count"] == 1
        assert stats["document_count"] == 1
        assert stats["total_size_mb"] == 0.0


class TestCleanup:

    async def test_removes_only_unreferenced_files(
        self, client: AsyncClient, user_headers, admin_headers, hr_headers, leave_request, session_factory,
    ):
        doc = (await _upload(client, user_headers, leave_request.id)).json()["data"]
        async with session_factory() as s:
            kept = (await s.get(LeaveDocument, uuid.UUID(doc["id"]))).file_path
        stray = os.path.join(settings.UPLOAD_DIR, SUBDIR, "stray.pdf")
        with open(stray, "wb") as f:
            f.write(b"left behind")

        assert (await client.post(f"{BASE}/cleanup-orphaned", headers=hr_headers)).status_code == 403

        resp = await client.post(f"{BASE}/cleanup-orphaned", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["removed"] >= 1
        assert not os.path.exists(stray)
        assert os.path.isfile(kept)

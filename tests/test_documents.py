"""Tests for document types, categories, uploads and approval."""

from __future__ import annotations

from datetime import date, timedelta

from httpx import AsyncClient

from tests.conftest import make_employee

BASE = "/api/v1/documents"


async def _type(client: AsyncClient, headers, **overrides) -> dict:
    payload = {"name": "Passport", "allowed_file_types": "pdf,png", "max_file_size_mb": 1, **overrides}
    resp = await client.post(f"{BASE}/types", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _upload(client: AsyncClient, headers, employee_id, type_id, *, name="scan.pdf",
                  content=b"%PDF-1.4 test", **form):
    return await client.post(
        f"{BASE}/upload",
        files={"file": (name, content, "application/pdf")},
        data={"employee_id": str(employee_id), "document_type_id": type_id, **form},
        headers=headers,
    )


class TestTypesAndCategories:

    async def test_type_names_are_unique_ignoring_case(self, client: AsyncClient, hr_headers):
        await _type(client, hr_headers)
        dup = await client.post(f"{BASE}/types", json={"name": "PASSPORT"}, headers=hr_headers)
        assert dup.status_code == 409

    async def test_user_can_list_but_not_create(self, client: AsyncClient, hr_headers, user_headers):
        await _type(client, hr_headers)
        assert (await client.get(f"{BASE}/types", headers=user_headers)).status_code == 200
        resp = await client.post(f"{BASE}/types", json={"name": "Visa"}, headers=user_headers)
        assert resp.status_code == 403

    async def test_type_in_use_cannot_be_deleted(self, client: AsyncClient, hr_headers, test_employee):
        doc_type = await _type(client, hr_headers)
        assert (await _upload(client, hr_headers, test_employee.id, doc_type["id"])).status_code == 201
        resp = await client.delete(f"{BASE}/types/{doc_type['id']}", headers=hr_headers)
        assert resp.status_code == 400

    async def test_category_crud(self, client: AsyncClient, hr_headers):
        created = await client.post(f"{BASE}/categories", json={"name": "Identity"}, headers=hr_headers)
        cid = created.json()["data"]["id"]
        dup = await client.post(f"{BASE}/categories", json={"name": "identity"}, headers=hr_headers)
        assert dup.status_code == 409

        updated = await client.put(f"{BASE}/categories/{cid}", json={"active": False}, headers=hr_headers)
        assert updated.json()["data"]["active"] is False
        active = await client.get(f"{BASE}/categories?active=true", headers=hr_headers)
        assert active.json()["data"] == []

        assert (await client.delete(f"{BASE}/categories/{cid}", headers=hr_headers)).status_code == 204


class TestUploads:

    async def test_upload_and_download(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        doc_type = await _type(client, hr_headers)
        resp = await _upload(client, user_headers, test_employee.id, doc_type["id"], tags="travel")
        assert resp.status_code == 201, resp.text
        doc = resp.json()["data"]
        assert doc["version"] == 1
        assert doc["file_size"] == len(b"%PDF-1.4 test")
        assert doc["approval_status"] == "approved"

        download = await client.get(f"{BASE}/{doc['id']}/download", headers=user_headers)
        assert download.status_code == 200
        assert download.content == b"%PDF-1.4 test"
        assert 'filename="scan.pdf"' in download.headers["content-disposition"]

    async def test_versions_increment_per_type(self, client: AsyncClient, hr_headers, test_employee):
        doc_type = await _type(client, hr_headers)
        first = (await _upload(client, hr_headers, test_employee.id, doc_type["id"])).json()["data"]
        second = (await _upload(client, hr_headers, test_employee.id, doc_type["id"])).json()["data"]
        assert (first["version"], second["version"]) == (1, 2)

        await client.delete(f"{BASE}/{second['id']}", headers=hr_headers)
        third = (await _upload(client, hr_headers, test_employee.id, doc_type["id"])).json()["data"]
        assert third["version"] == 2

    async def test_extension_and_size_rules(self, client: AsyncClient, hr_headers, test_employee):
        doc_type = await _type(client, hr_headers)
        wrong_ext = await _upload(client, hr_headers, test_employee.id, doc_type["id"], name="run.exe")
        assert wrong_ext.status_code == 400
        assert "file" in wrong_ext.json()["errors"]

        too_big = await _upload(
            client, hr_headers, test_employee.id, doc_type["id"], content=b"x" * (1024 * 1024 + 1),
        )
        assert too_big.status_code == 400

        empty = await _upload(client, hr_headers, test_employee.id, doc_type["id"], content=b"")
        assert empty.status_code == 400

    async def test_type_without_extension_list_accepts_anything(
        self, client: AsyncClient, hr_headers, test_employee,
    ):
        doc_type = await _type(client, hr_headers, name="Misc", allowed_file_types=None)
        resp = await _upload(client, hr_headers, test_employee.id, doc_type["id"], name="notes.xyz")
        assert resp.status_code == 201

    async def test_user_cannot_upload_for_someone_else(self, client: AsyncClient, hr_headers, user_headers, db):
        other = await make_employee(db, first_name="Other")
        await db.commit()
        doc_type = await _type(client, hr_headers)
        resp = await _upload(client, user_headers, other.id, doc_type["id"])
        assert resp.status_code == 403


class TestApproval:

    async def test_approval_flow(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        doc_type = await _type(client, hr_headers, requires_approval=True)
        doc = (await _upload(client, user_headers, test_employee.id, doc_type["id"])).json()["data"]
        assert doc["approval_status"] == "pending"

        queue = await client.get(f"{BASE}/pending-approval", headers=hr_headers)
        assert [d["id"] for d in queue.json()["data"]] == [doc["id"]]
        assert (await client.post(f"{BASE}/{doc['id']}/approve", headers=user_headers)).status_code == 403

        rejected = await client.post(
            f"{BASE}/{doc['id']}/reject", json={"notes": "Blurry scan"}, headers=hr_headers,
        )
        assert rejected.json()["data"]["approval_status"] == "rejected"
        assert rejected.json()["data"]["rejection_notes"] == "Blurry scan"

        approved = await client.post(f"{BASE}/{doc['id']}/approve", headers=hr_headers)
        assert approved.json()["data"]["approval_status"] == "approved"
        assert approved.json()["data"]["approved_at"] is not None

        inbox = await client.get("/api/v1/notifications", headers=user_headers)
        subjects = sorted(n["subject"] for n in inbox.json()["data"])
        assert subjects == ["Document Approved", "Document Rejected"]


class TestQueries:

    async def test_metadata_document_and_expiry(self, client: AsyncClient, hr_headers, test_employee):
        doc_type = await _type(client, hr_headers)
        today = date.today()

        def body(name, expiry):
            return {
                "employee_id": str(test_employee.id),
                "document_type_id": doc_type["id"],
                "name": name,
                "expiry_date": expiry.isoformat(),
            }

        soon = await client.post(BASE, json=body("Visa", today + timedelta(days=10)), headers=hr_headers)
        old = await client.post(BASE, json=body("Old visa", today - timedelta(days=1)), headers=hr_headers)
        assert soon.status_code == 201
        assert old.json()["data"]["expired"] is True

        expiring = await client.get(f"{BASE}/expiring?days=30", headers=hr_headers)
        assert [d["name"] for d in expiring.json()["data"]] == ["Visa"]
        expired = await client.get(f"{BASE}/expired", headers=hr_headers)
        assert [d["name"] for d in expired.json()["data"]] == ["Old visa"]

    async def test_search_and_employee_stats(self, client: AsyncClient, hr_headers, user_headers, test_employee):
        doc_type = await _type(client, hr_headers)
        await _upload(client, hr_headers, test_employee.id, doc_type["id"], name="contract.pdf", tags="hr")
        await _upload(client, hr_headers, test_employee.id, doc_type["id"], name="id.png")

        found = await client.get(f"{BASE}/search?q=contract", headers=hr_headers)
        assert [d["name"] for d in found.json()["data"]] == ["contract.pdf"]

        stats = await client.get(f"{BASE}/employee/{test_employee.id}/stats", headers=user_headers)
        assert stats.json()["data"]["document_count"] == 2
        assert stats.json()["data"]["total_size"] == 2 * len(b"%PDF-1.4 test")

        has = await client.get(
            f"{BASE}/employee/{test_employee.id}/has-type/{doc_type['id']}", headers=user_headers,
        )
        assert has.json()["data"]["has_document"] is True

    async def test_delete_is_soft(self, client: AsyncClient, hr_headers, test_employee):
        doc_type = await _type(client, hr_headers)
        doc = (await _upload(client, hr_headers, test_employee.id, doc_type["id"])).json()["data"]

        assert (await client.delete(f"{BASE}/{doc['id']}", headers=hr_headers)).status_code == 204
        kept = await client.get(f"{BASE}/{doc['id']}", headers=hr_headers)
        assert kept.json()["data"]["active"] is False
        active = await client.get(f"{BASE}/employee/{test_employee.id}/active", headers=hr_headers)
        assert active.json()["data"] == []
        # stored file survives the soft delete
        assert (await client.get(f"{BASE}/{doc['id']}/download", headers=hr_headers)).status_code == 200

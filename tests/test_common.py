"""Tests for common utilities — filters, sorting, pagination, error envelope, logging."""

from __future__ import annotations

import json
import logging
from datetime import date

import fastapi
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.exceptions import BadRequestException
from hrms.common.filters import _get_column, apply_filters, apply_search, apply_sorting
from hrms.common.logging import RequestJsonFormatter, request_id_var
from hrms.common.pagination import PaginationParams, paginate
from hrms.employees.models import Employee
from tests.conftest import make_department, make_employee


async def _names(db: AsyncSession, query) -> list[str]:
    return [e.first_name for e in (await db.execute(query)).scalars().all()]


class TestApplyFilters:

    async def test_filter_by_equality(self, db: AsyncSession):
        dept = await make_department(db)
        await make_employee(db, first_name="Alice", department_id=dept.id)
        await make_employee(db, first_name="Bob", department_id=dept.id)

        query = apply_filters(select(Employee), Employee, {"first_name": "Alice"})
        assert await _names(db, query) == ["Alice"]

    async def test_none_values_skipped(self, db: AsyncSession):
        await make_employee(db)
        query = apply_filters(select(Employee), Employee, {"first_name": None})
        assert len(await _names(db, query)) == 1

    async def test_ilike_and_range(self, db: AsyncSession):
        await make_employee(db, first_name="Alexander", hire_date=date(2024, 1, 1))
        await make_employee(db, first_name="Alexa", hire_date=date(2025, 6, 1))
        await make_employee(db, first_name="Bobby", hire_date=date(2025, 7, 1))

        query = apply_filters(select(Employee), Employee, {
            "first_name__ilike": "alex",
            "hire_date__from": date(2025, 1, 1),
            "hire_date__to": date(2025, 12, 31),
        })
        assert await _names(db, query) == ["Alexa"]

    async def test_in_and_isnull(self, db: AsyncSession):
        dept = await make_department(db)
        await make_employee(db, first_name="A", department_id=dept.id)
        await make_employee(db, first_name="B")
        await make_employee(db, first_name="C")

        query = apply_filters(select(Employee), Employee, {
            "first_name__in": ["A", "B"],
            "department_id__isnull": True,
        })
        assert await _names(db, query) == ["B"]

    async def test_unknown_column_ignored(self, db: AsyncSession):
        await make_employee(db)
        query = apply_filters(select(Employee), Employee, {"nonexistent": "x"})
        assert len(await _names(db, query)) == 1


class TestApplySorting:

    async def test_ascending_and_descending(self, db: AsyncSession):
        for name in ("Charlie", "Alice", "Bob"):
            await make_employee(db, first_name=name)

        asc = apply_sorting(select(Employee), Employee, "first_name")
        desc = apply_sorting(select(Employee), Employee, "-first_name")
        assert await _names(db, asc) == ["Alice", "Bob", "Charlie"]
        assert await _names(db, desc) == ["Charlie", "Bob", "Alice"]

    def test_none_is_noop(self):
        query = select(Employee)
        assert apply_sorting(query, Employee, None) is query

    def test_field_outside_allow_list_rejected(self):
        with pytest.raises(BadRequestException):
            apply_sorting(select(Employee), Employee, "salary", allowed=("first_name",))

    def test_unknown_field_rejected(self):
        with pytest.raises(BadRequestException):
            apply_sorting(select(Employee), Employee, "-bogus")

    def test_private_attribute_not_a_column(self):
        assert _get_column(Employee, "_sa_class_manager") is None
        assert _get_column(Employee, "first_name") is not None


class TestApplySearch:

    async def test_matches_any_column(self, db: AsyncSession):
        await make_employee(db, first_name="Grace", last_name="Hopper")
        await make_employee(db, first_name="Alan", last_name="Turing")

        query = apply_search(select(Employee), Employee, "hop", ["first_name", "last_name"])
        assert await _names(db, query) == ["Grace"]

    def test_blank_search_is_noop(self):
        query = select(Employee)
        assert apply_search(query, Employee, "   ", ["first_name"]) is query


class TestPagination:

    async def test_meta_for_middle_page(self, db: AsyncSession):
        for i in range(7):
            await make_employee(db, first_name=f"P{i}")

        params = PaginationParams(page=2, page_size=3, sort=None)
        result = await paginate(db, select(Employee).order_by(Employee.first_name), params)
        assert [e.first_name for e in result.data] == ["P3", "P4", "P5"]
        assert result.meta.total == 7
        assert result.meta.total_pages == 3
        assert result.meta.has_next is True
        assert result.meta.has_prev is True

    async def test_empty_result(self, db: AsyncSession):
        params = PaginationParams(page=1, page_size=10, sort=None)
        result = await paginate(db, select(Employee), params)
        assert result.data == []
        assert result.meta.total_pages == 0
        assert result.meta.has_next is False


class TestErrorEnvelope:

    async def test_not_found_uses_problem_json(self, client, hr_headers):
        resp = await client.get(
            "/api/v1/departments/00000000-0000-0000-0000-000000000000", headers=hr_headers,
        )
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["status"] == 404
        assert body["instance"].startswith("/api/v1/departments/")

    async def test_request_id_echoed(self, client):
        resp = await client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"


class TestJsonLogging:

    def _format(self) -> dict:
        formatter = RequestJsonFormatter("%(timestamp) %(level) %(name) %(message)")
        record = logging.LogRecord("hrms.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        return json.loads(formatter.format(record))

    def test_record_fields(self):
        line = self._format()
        assert line["message"] == "hello world"
        assert line["name"] == "hrms.test"
        assert line["level"] == "INFO"
        assert line["timestamp"]
        assert "request_id" not in line

    def test_request_id_attached_inside_a_request(self):
        token = request_id_var.set("req-42")
        try:
            assert self._format()["request_id"] == "req-42"
        finally:
            request_id_var.reset(token)


class TestDependencyFloors:

    def test_fastapi_at_least_0_115(self):
        major, minor = (int(p) for p in fastapi.__version__.split(".")[:2])
        assert (major, minor) >= (0, 115)

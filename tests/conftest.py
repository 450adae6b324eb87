"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os
import tempfile

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="hrms-uploads-")
os.environ["EMAIL_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from hrms import models  # noqa: F401
from hrms.auth.models import Role, User
from hrms.auth.seed import seed_roles_and_permissions
from hrms.auth.service import create_session, hash_password
from hrms.common.constants import EmployeeStatus, EmploymentType, UserRole
from hrms.database import Base, get_db
from hrms.departments.models import Department
from hrms.employees.models import Employee
from hrms.main import create_app

# ── SQLite compat: compile PG-specific types to TEXT ────────────────


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables and default roles before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with TestSessionFactory() as session:
        await seed_roles_and_permissions(session)
        await session.commit()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrms.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    """The factory the app sessions use, for reading back what a request committed."""
    return TestSessionFactory


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

async def make_department(
    db: AsyncSession,
    *,
    name: str = "Engineering",
    code: Optional[str] = None,
    budget: Optional[Decimal] = None,
) -> Department:
    dept = Department(name=name, code=code or f"D{uuid.uuid4().hex[:6].upper()}", budget=budget)
    db.add(dept)
    await db.flush()
    return dept


async def make_employee(
    db: AsyncSession,
    *,
    first_name: str = "Test",
    last_name: str = "User",
    email: Optional[str] = None,
    department_id: Optional[uuid.UUID] = None,
    manager_id: Optional[uuid.UUID] = None,
    hire_date: date = date(2022, 1, 15),
    salary: Optional[Decimal] = Decimal("60000.00"),
    status: EmployeeStatus = EmployeeStatus.active,
    job_title: str = "Engineer",
) -> Employee:
    suffix = uuid.uuid4().hex[:6]
    employee = Employee(
        employee_id=f"EMP-{suffix.upper()}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{suffix}@example.com",
        job_title=job_title,
        department_id=department_id,
        manager_id=manager_id,
        hire_date=hire_date,
        salary=salary,
        employment_type=EmploymentType.full_time,
        status=status,
    )
    db.add(employee)
    await db.flush()
    return employee


async def make_user(
    db: AsyncSession,
    role: UserRole = UserRole.user,
    *,
    username: Optional[str] = None,
    employee_id: Optional[uuid.UUID] = None,
    password: str = "Secret123!",
) -> User:
    role_row = (await db.execute(select(Role).where(Role.name == role.value))).scalar_one()
    name = username or f"{role.value.lower()}_{uuid.uuid4().hex[:6]}"
    user = User(
        username=name,
        email=f"{name}@example.com",
        password_hash=hash_password(password),
        first_name=name.title(),
        last_name="Tester",
        enabled=True,
        email_verified=True,
        employee_id=employee_id,
        roles=[role_row],
    )
    db.add(user)
    await db.flush()
    return user


async def bearer_for(db: AsyncSession, user: User) -> dict[str, str]:
    """Persist a session for *user* and return Bearer auth headers."""
    access, _, _ = await create_session(db, user, "127.0.0.1", "pytest")
    await db.commit()
    return {"Authorization": f"Bearer {access}"}


# ── Auth fixtures ───────────────────────────────────────────────────

@pytest.fixture
def login_as(db):
    """``await login_as(UserRole.hr, employee_id=...)`` → (user, headers)."""

    async def _login(role: UserRole = UserRole.user, **kwargs):
        user = await make_user(db, role, **kwargs)
        return user, await bearer_for(db, user)

    return _login


@pytest.fixture
async def admin_headers(login_as) -> dict[str, str]:
    _, headers = await login_as(UserRole.admin)
    return headers


@pytest.fixture
async def super_admin_headers(login_as) -> dict[str, str]:
    _, headers = await login_as(UserRole.super_admin)
    return headers


@pytest.fixture
async def hr_headers(login_as) -> dict[str, str]:
    _, headers = await login_as(UserRole.hr)
    return headers


@pytest.fixture
async def manager_headers(login_as) -> dict[str, str]:
    _, headers = await login_as(UserRole.manager)
    return headers


@pytest.fixture
async def test_employee(db) -> Employee:
    dept = await make_department(db)
    employee = await make_employee(db, department_id=dept.id)
    await db.commit()
    return employee


@pytest.fixture
async def employee_user(db, test_employee):
    """A USER-role account linked to ``test_employee`` → (user, headers)."""
    user = await make_user(db, UserRole.user, employee_id=test_employee.id)
    return user, await bearer_for(db, user)


@pytest.fixture
async def user_headers(employee_user) -> dict[str, str]:
    return employee_user[1]


def utc(days: int = 0, hours: int = 0) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days, hours=hours)

"""HRMS — FastAPI application factory."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hrms import models  # noqa: F401
from hrms.attendance.router import router as attendance_router
from hrms.audit.router import router as audit_router
from hrms.auth.router import router as auth_router
from hrms.auth.seed import seed_roles_and_permissions
from hrms.common.exceptions import register_exception_handlers
from hrms.common.logging import request_id_var, setup_logging
from hrms.common.rate_limit import limiter
from hrms.config import settings
from hrms.database import async_session_factory
from hrms.departments.router import router as departments_router
from hrms.documents.router import router as documents_router
from hrms.employees.router import router as employees_router
from hrms.files.router import router as files_router
from hrms.leave.router import router as leave_router
from hrms.notifications.router import router as notifications_router
from hrms.payroll.router import router as payroll_router
from hrms.performance.router import router as performance_router
from hrms.positions.router import router as positions_router
from hrms.public.router import router as public_router
from hrms.reports.router import analytics_router
from hrms.reports.router import router as reports_router
from hrms.users.router import roles_router
from hrms.users.router import router as users_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.SEED_DEFAULT_ROLES:
        async with async_session_factory() as session:
            await seed_roles_and_permissions(session)
            await session.commit()
    logger.info("HRMS started (%s)", settings.ENVIRONMENT)
    yield
    logger.info("HRMS stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="HRMS",
        description="Human resource management API",
        version=VERSION,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_var.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = req_id
        return response

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": VERSION,
            "environment": settings.ENVIRONMENT,
        }

    app.include_router(auth_router, prefix="/api/v1/auth")
    app.include_router(users_router, prefix="/api/v1/users")
    app.include_router(roles_router, prefix="/api/v1/roles")
    app.include_router(employees_router, prefix="/api/v1/employees")
    app.include_router(departments_router, prefix="/api/v1/departments")
    app.include_router(positions_router, prefix="/api/v1/positions")
    app.include_router(leave_router, prefix="/api/v1/leave")
    app.include_router(attendance_router, prefix="/api/v1/attendance")
    app.include_router(payroll_router, prefix="/api/v1/payroll")
    app.include_router(performance_router, prefix="/api/v1/performance")
    app.include_router(documents_router, prefix="/api/v1/documents")
    app.include_router(files_router, prefix="/api/v1/files")
    app.include_router(notifications_router, prefix="/api/v1/notifications")
    app.include_router(audit_router, prefix="/api/v1/audit")
    app.include_router(reports_router, prefix="/api/v1/reports")
    app.include_router(analytics_router, prefix="/api/v1/analytics")
    app.include_router(public_router, prefix="/api/v1/public")

    return app


app = create_app()

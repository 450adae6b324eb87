"""Common module — shared utilities for the HRMS backend."""

from hrms.common.audit import (
    AuditLog,
    AuditMixin,
    actor_fields,
    create_audit_entry,
    request_context,
)
from hrms.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    AuditAction,
    UserRole,
)
from hrms.common.exceptions import (
    AppException,
    BadRequestException,
    ConflictError,
    DuplicateException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from hrms.common.filters import apply_filters, apply_search, apply_sorting
from hrms.common.models import TimestampMixin, UUIDPrimaryKeyMixin
from hrms.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditLog",
    "AuditMixin",
    "actor_fields",
    "create_audit_entry",
    "request_context",
    # Constants
    "AuditAction",
    "UserRole",
    "PERMISSIONS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "BadRequestException",
    "ConflictError",
    "DuplicateException",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    "apply_sorting",
    # Models
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]

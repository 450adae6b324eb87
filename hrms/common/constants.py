"""Enums and constants for the HRMS backend."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    user = "USER"
    manager = "MANAGER"
    hr = "HR"
    admin = "ADMIN"
    super_admin = "SUPER_ADMIN"


# ── Employee ────────────────────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    terminated = "terminated"
    on_leave = "on_leave"
    probation = "probation"


class EmploymentType(str, enum.Enum):
    full_time = "full_time"
    part_time = "part_time"
    contract = "contract"
    intern = "intern"
    temporary = "temporary"


class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"


# ── Department / Position ───────────────────────────────────────────

class DepartmentStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    under_review = "under_review"
    merged = "merged"
    dissolved = "dissolved"


class PositionLevel(str, enum.Enum):
    entry = "entry"
    junior = "junior"
    mid = "mid"
    senior = "senior"
    lead = "lead"
    principal = "principal"
    manager = "manager"
    senior_manager = "senior_manager"
    director = "director"
    vp = "vp"
    executive = "executive"


MANAGEMENT_LEVELS = (
    PositionLevel.manager,
    PositionLevel.senior_manager,
    PositionLevel.director,
    PositionLevel.vp,
    PositionLevel.executive,
)


class PositionStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    frozen = "frozen"
    obsolete = "obsolete"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# ── Payroll ─────────────────────────────────────────────────────────

class PayGradeStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    deprecated = "deprecated"


class SalaryChangeReason(str, enum.Enum):
    promotion = "promotion"
    annual_review = "annual_review"
    market_adjustment = "market_adjustment"
    merit_increase = "merit_increase"
    cost_of_living = "cost_of_living"
    role_change = "role_change"
    demotion = "demotion"
    disciplinary = "disciplinary"
    initial_salary = "initial_salary"
    contract_renewal = "contract_renewal"
    reclassification = "reclassification"
    union_agreement = "union_agreement"
    company_restructure = "company_restructure"
    other = "other"


class BonusType(str, enum.Enum):
    performance = "performance"
    signing = "signing"
    retention = "retention"
    annual = "annual"
    quarterly = "quarterly"
    project = "project"
    spot = "spot"
    referral = "referral"
    sales = "sales"
    profit_sharing = "profit_sharing"
    holiday = "holiday"
    milestone = "milestone"
    safety = "safety"
    attendance = "attendance"
    other = "other"


class BonusStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    paid = "paid"
    cancelled = "cancelled"
    rejected = "rejected"


class DeductionType(str, enum.Enum):
    federal_tax = "federal_tax"
    state_tax = "state_tax"
    local_tax = "local_tax"
    social_security = "social_security"
    medicare = "medicare"
    health_insurance = "health_insurance"
    dental_insurance = "dental_insurance"
    vision_insurance = "vision_insurance"
    life_insurance = "life_insurance"
    retirement_401k = "retirement_401k"
    pension = "pension"
    union_dues = "union_dues"
    garnishment = "garnishment"
    loan = "loan"
    charitable = "charitable"
    parking = "parking"
    other = "other"


class DeductionStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    terminated = "terminated"
    pending = "pending"


# ── Performance ─────────────────────────────────────────────────────

class ReviewStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    approved = "approved"


class PerformanceRating(str, enum.Enum):
    exceeds_expectations = "exceeds_expectations"
    meets_expectations_plus = "meets_expectations_plus"
    meets_expectations = "meets_expectations"
    needs_improvement = "needs_improvement"
    unsatisfactory = "unsatisfactory"

    @property
    def score(self) -> int:
        return _RATING_SCORES[self]


_RATING_SCORES: dict[PerformanceRating, int] = {
    PerformanceRating.exceeds_expectations: 5,
    PerformanceRating.meets_expectations_plus: 4,
    PerformanceRating.meets_expectations: 3,
    PerformanceRating.needs_improvement: 2,
    PerformanceRating.unsatisfactory: 1,
}


class GoalStatus(str, enum.Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    completed = "completed"
    overdue = "overdue"
    cancelled = "cancelled"
    on_hold = "on_hold"


class GoalPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    left_early = "left_early"
    sick = "sick"
    on_leave = "on_leave"
    holiday = "holiday"
    remote_work = "remote_work"


class BreakType(str, enum.Enum):
    lunch_break = "lunch_break"
    coffee_break = "coffee_break"
    personal_break = "personal_break"
    meeting_break = "meeting_break"
    emergency_break = "emergency_break"


class CorrectionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# ── Documents / Files ───────────────────────────────────────────────

class DocumentApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class FileType(str, enum.Enum):
    employee_photo = "employee_photo"
    document = "document"
    resume = "resume"
    contract = "contract"
    id_document = "id_document"
    certificate = "certificate"
    training_material = "training_material"
    report = "report"
    backup = "backup"
    temp = "temp"


class FileStatus(str, enum.Enum):
    uploading = "uploading"
    active = "active"
    archived = "archived"
    deleted = "deleted"
    corrupted = "corrupted"
    quarantined = "quarantined"
    expired = "expired"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    leave_request = "leave_request"
    leave_approval = "leave_approval"
    leave_rejection = "leave_rejection"
    performance_review = "performance_review"
    goal_assigned = "goal_assigned"
    goal_due = "goal_due"
    document_approval = "document_approval"
    document_rejection = "document_rejection"
    payroll_update = "payroll_update"
    employee_onboarding = "employee_onboarding"
    employee_offboarding = "employee_offboarding"
    system_announcement = "system_announcement"
    reminder = "reminder"
    alert = "alert"
    info = "info"


class NotificationStatus(str, enum.Enum):
    unread = "unread"
    read = "read"
    archived = "archived"
    deleted = "deleted"


class NotificationPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


# ── Reports ─────────────────────────────────────────────────────────

class ReportType(str, enum.Enum):
    employees = "employees"
    departments = "departments"
    attendance = "attendance"
    performance = "performance"
    payroll = "payroll"
    turnover = "turnover"
    demographics = "demographics"
    custom = "custom"


class ReportStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


# ── Audit actions ───────────────────────────────────────────────────

class AuditAction:
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    LOGIN_FAILED = "LOGIN_FAILED"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    READ = "READ"
    ACCESS = "ACCESS"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"
    PASSWORD_RESET = "PASSWORD_RESET"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    PERMISSION_DENIED = "PERMISSION_DENIED"


SECURITY_ACTIONS = frozenset({
    AuditAction.LOGIN,
    AuditAction.LOGOUT,
    AuditAction.LOGIN_FAILED,
    AuditAction.PASSWORD_RESET,
    AuditAction.ACCOUNT_LOCKED,
    AuditAction.PERMISSION_DENIED,
})


# ── Role-based permissions ──────────────────────────────────────────

_USER_PERMISSIONS = [
    "EMPLOYEE_READ",
    "LEAVE_REQUEST",
    "LEAVE_READ_OWN",
    "ATTENDANCE_CLOCK",
    "ATTENDANCE_READ_OWN",
    "PERFORMANCE_READ_OWN",
    "NOTIFICATION_READ_OWN",
    "DOCUMENT_READ_OWN",
    "FILE_UPLOAD",
]

_MANAGER_PERMISSIONS = _USER_PERMISSIONS + [
    "LEAVE_APPROVE",
    "ATTENDANCE_READ_TEAM",
    "PERFORMANCE_REVIEW",
]

_HR_PERMISSIONS = _MANAGER_PERMISSIONS + [
    "EMPLOYEE_CREATE",
    "EMPLOYEE_UPDATE",
    "EMPLOYEE_LIFECYCLE",
    "DEPARTMENT_MANAGE",
    "POSITION_MANAGE",
    "LEAVE_CONFIGURE",
    "ATTENDANCE_CORRECT",
    "PAYROLL_READ",
    "PAYROLL_MANAGE",
    "DOCUMENT_APPROVE",
    "NOTIFICATION_SEND",
    "REPORT_GENERATE",
]

_ADMIN_PERMISSIONS = _HR_PERMISSIONS + [
    "EMPLOYEE_DELETE",
    "USER_MANAGE",
    "ROLE_MANAGE",
    "AUDIT_READ",
    "NOTIFICATION_TEMPLATES",
]

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.user: _USER_PERMISSIONS,
    UserRole.manager: _MANAGER_PERMISSIONS,
    UserRole.hr: _HR_PERMISSIONS,
    UserRole.admin: _ADMIN_PERMISSIONS,
    UserRole.super_admin: _ADMIN_PERMISSIONS + ["AUDIT_CLEANUP", "SYSTEM_CONFIGURE"],
}

ROLE_DESCRIPTIONS: dict[UserRole, str] = {
    UserRole.user: "Regular employee self-service access",
    UserRole.manager: "Line manager with team approvals",
    UserRole.hr: "Human resources staff",
    UserRole.admin: "System administrator",
    UserRole.super_admin: "Unrestricted administrator",
}

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
MAX_ACTIVE_GOALS = 10
STANDARD_WORK_HOURS = 8

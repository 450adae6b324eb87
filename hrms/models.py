"""Import every ORM module so ``Base.metadata`` and relationship targets are complete."""

import hrms.auth.models  # noqa: F401
import hrms.common.audit  # noqa: F401
import hrms.departments.models  # noqa: F401
import hrms.positions.models  # noqa: F401
import hrms.employees.models  # noqa: F401
import hrms.leave.models  # noqa: F401
import hrms.attendance.models  # noqa: F401
import hrms.payroll.models  # noqa: F401
import hrms.performance.models  # noqa: F401
import hrms.documents.models  # noqa: F401
import hrms.files.models  # noqa: F401
import hrms.notifications.models  # noqa: F401
import hrms.reports.models  # noqa: F401

"""Analytics service — read-only aggregation queries across HR modules.

Counting and grouping run in the database; date bucketing (ages, tenure,
monthly trends) is done in Python over the narrow columns it needs so the
queries stay portable between PostgreSQL and SQLite.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.attendance.models import TimeAttendance
from hrms.common.constants import (
    DepartmentStatus,
    EmployeeStatus,
    GoalStatus,
    LeaveStatus,
    ReviewStatus,
)
from hrms.departments.models import Department
from hrms.employees.models import Employee
from hrms.leave.models import LeaveRequest, LeaveType
from hrms.payroll.models import Bonus, SalaryHistory
from hrms.performance.models import Goal, PerformanceReview
from hrms.positions.models import Position
from hrms.reports.schemas import KpiSet, MonthlyTrend

FINISHED_REVIEW_STATUSES = (ReviewStatus.completed, ReviewStatus.approved)
SALARY_BANDS = ((Decimal("50000"), "0-50k"), (Decimal("100000"), "50k-100k"))


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _money(value: Optional[Decimal]) -> float:
    return float(round(value or Decimal("0"), 2))


def _years_between(start: date, end: date) -> int:
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


def _enum_counts(rows) -> dict[str, int]:
    return {(key.value if hasattr(key, "value") else str(key)): count for key, count in rows}


async def _count(db: AsyncSession, column, *criteria) -> int:
    return await db.scalar(select(func.count(column)).where(*criteria)) or 0


async def _grouped(db: AsyncSession, column, *criteria) -> dict[str, int]:
    rows = (await db.execute(
        select(column, func.count()).where(*criteria).group_by(column)
    )).all()
    return _enum_counts(rows)


class AnalyticsService:

    # ── Employees ─────────────────────────────────────────────────────

    @staticmethod
    async def employee_analytics(db: AsyncSession) -> dict[str, Any]:
        today = date.today()
        by_status = await _grouped(db, Employee.status)
        by_type = await _grouped(db, Employee.employment_type)
        by_gender = await _grouped(db, Employee.gender, Employee.gender.is_not(None))

        dept_rows = (await db.execute(
            select(Department.name, func.count(Employee.id))
            .join(Employee, Employee.department_id == Department.id)
            .group_by(Department.name)
            .order_by(Department.name)
        )).all()

        hires_last_year = await _count(db, Employee.id, Employee.hire_date >= today - timedelta(days=365))
        avg_salary = await db.scalar(
            select(func.avg(Employee.salary)).where(
                Employee.status == EmployeeStatus.active, Employee.salary.is_not(None),
            )
        )

        dates = (await db.execute(
            select(Employee.birth_date, Employee.hire_date).where(
                Employee.status != EmployeeStatus.terminated,
            )
        )).all()
        ages: Counter = Counter()
        tenure: Counter = Counter()
        for birth_date, hire_date in dates:
            if birth_date is not None:
                age = _years_between(birth_date, today)
                ages["under 30" if age < 30 else "30-40" if age <= 40 else "41+"] += 1
            years = _years_between(hire_date, today)
            tenure["0-1 years" if years < 2 else "2-5 years" if years <= 5 else "5+ years"] += 1

        return {
            "total_employees": sum(by_status.values()),
            "status_distribution": by_status,
            "employment_type_distribution": by_type,
            "gender_distribution": by_gender,
            "department_distribution": {name: count for name, count in dept_rows},
            "hires_last_year": hires_last_year,
            "average_salary": _money(avg_salary),
            "age_distribution": dict(ages),
            "tenure_distribution": dict(tenure),
        }

    # ── Departments ───────────────────────────────────────────────────

    @staticmethod
    async def department_analytics(db: AsyncSession) -> dict[str, Any]:
        live = Department.status.not_in((DepartmentStatus.merged, DepartmentStatus.dissolved))
        total = await _count(db, Department.id, live)
        rows = (await db.execute(
            select(Department.name, func.count(Employee.id))
            .outerjoin(
                Employee,
                (Employee.department_id == Department.id)
                & (Employee.status != EmployeeStatus.terminated),
            )
            .where(live)
            .group_by(Department.id, Department.name)
            .order_by(Department.name)
        )).all()
        counts = [{"department": name, "employee_count": count} for name, count in rows]
        budget = await db.scalar(select(func.sum(Department.budget)).where(live))

        result: dict[str, Any] = {
            "total_departments": total,
            "status_distribution": await _grouped(db, Department.status),
            "employee_counts": counts,
            "average_employees_per_department": (
                round(sum(c["employee_count"] for c in counts) / len(counts), 2) if counts else 0.0
            ),
            "total_budget": _money(budget),
        }
        if counts:
            ordered = sorted(counts, key=lambda c: c["employee_count"])
            result["largest_department"] = ordered[-1]
            result["smallest_department"] = ordered[0]
        return result

    # ── Leave ─────────────────────────────────────────────────────────

    @staticmethod
    async def leave_analytics(db: AsyncSession, year: Optional[int] = None) -> dict[str, Any]:
        criteria = []
        if year is not None:
            criteria = [
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            ]
        by_status = await _grouped(db, LeaveRequest.status, *criteria)
        type_rows = (await db.execute(
            select(LeaveType.name, func.count(LeaveRequest.id))
            .join(LeaveType, LeaveType.id == LeaveRequest.leave_type_id)
            .where(*criteria)
            .group_by(LeaveType.name)
        )).all()
        approved_days = await db.scalar(
            select(func.sum(LeaveRequest.total_days)).where(
                LeaveRequest.status == LeaveStatus.approved, *criteria,
            )
        )
        total = sum(by_status.values())
        approved = by_status.get(LeaveStatus.approved.value, 0)
        return {
            "year": year,
            "total_requests": total,
            "status_distribution": by_status,
            "type_distribution": {name: count for name, count in type_rows},
            "approved_days": float(approved_days or 0),
            "approval_rate": _rate(approved, total),
        }

    # ── Performance ───────────────────────────────────────────────────

    @staticmethod
    async def performance_analytics(db: AsyncSession, year: Optional[int] = None) -> dict[str, Any]:
        criteria = []
        if year is not None:
            criteria = [
                PerformanceReview.review_period_end >= date(year, 1, 1),
                PerformanceReview.review_period_end <= date(year, 12, 31),
            ]
        by_status = await _grouped(db, PerformanceReview.status, *criteria)
        ratings = await _grouped(
            db, PerformanceReview.overall_rating, PerformanceReview.overall_rating.is_not(None), *criteria,
        )
        total = sum(by_status.values())
        finished = sum(by_status.get(s.value, 0) for s in FINISHED_REVIEW_STATUSES)

        rating_rows = (await db.execute(
            select(PerformanceReview.overall_rating).where(
                PerformanceReview.overall_rating.is_not(None), *criteria,
            )
        )).scalars().all()
        average_rating = (
            round(sum(r.score for r in rating_rows) / len(rating_rows), 2) if rating_rows else 0.0
        )

        goals = await _grouped(db, Goal.status)
        goal_total = sum(count for status, count in goals.items() if status != GoalStatus.cancelled.value)
        return {
            "year": year,
            "total_reviews": total,
            "status_distribution": by_status,
            "rating_distribution": ratings,
            "average_rating": average_rating,
            "completion_rate": _rate(finished, total),
            "goal_status_distribution": goals,
            "goal_completion_rate": _rate(goals.get(GoalStatus.completed.value, 0), goal_total),
        }

    # ── Payroll / salary ──────────────────────────────────────────────

    @staticmethod
    async def payroll_analytics(db: AsyncSession, year: Optional[int] = None) -> dict[str, Any]:
        active = (Employee.status == EmployeeStatus.active, Employee.salary.is_not(None))
        total, average, minimum, maximum = (await db.execute(
            select(
                func.sum(Employee.salary),
                func.avg(Employee.salary),
                func.min(Employee.salary),
                func.max(Employee.salary),
            ).where(*active)
        )).one()

        salaries = (await db.execute(select(Employee.salary).where(*active))).scalars().all()
        bands: Counter = Counter()
        for salary in salaries:
            for limit, label in SALARY_BANDS:
                if salary < limit:
                    bands[label] += 1
                    break
            else:
                bands["100k+"] += 1

        dept_rows = (await db.execute(
            select(Department.name, func.sum(Employee.salary), func.avg(Employee.salary))
            .join(Department, Department.id == Employee.department_id)
            .where(*active)
            .group_by(Department.name)
            .order_by(Department.name)
        )).all()

        year = year or date.today().year
        in_year_bonus = (Bonus.award_date >= date(year, 1, 1), Bonus.award_date <= date(year, 12, 31))
        in_year_salary = (
            SalaryHistory.effective_date >= date(year, 1, 1),
            SalaryHistory.effective_date <= date(year, 12, 31),
        )
        bonus_total = await db.scalar(select(func.sum(Bonus.amount)).where(*in_year_bonus))

        return {
            "year": year,
            "total_salary_expense": _money(total),
            "average_salary": _money(average),
            "min_salary": _money(minimum),
            "max_salary": _money(maximum),
            "salary_distribution": dict(bands),
            "department_breakdown": [
                {"department": name, "total": _money(dept_total), "average": _money(dept_avg)}
                for name, dept_total, dept_avg in dept_rows
            ],
            "bonus_total": _money(bonus_total),
            "bonus_count": await _count(db, Bonus.id, *in_year_bonus),
            "salary_changes": await _count(db, SalaryHistory.id, *in_year_salary),
        }

    @staticmethod
    async def position_analytics(db: AsyncSession) -> dict[str, Any]:
        by_level = await _grouped(db, Position.level)
        openings, headcount = (await db.execute(
            select(func.sum(Position.number_of_openings), func.sum(Position.total_headcount))
        )).one()
        filled = (await db.execute(
            select(Position.title, func.count(Employee.id))
            .join(Employee, Employee.position_id == Position.id)
            .where(Employee.status != EmployeeStatus.terminated)
            .group_by(Position.title)
            .order_by(func.count(Employee.id).desc())
        )).all()
        return {
            "total_positions": sum(by_level.values()),
            "level_distribution": by_level,
            "status_distribution": await _grouped(db, Position.status),
            "open_positions": int(openings or 0),
            "total_headcount": int(headcount or 0),
            "employees_by_position": {title: count for title, count in filled},
        }

    @staticmethod
    async def salary_analytics(db: AsyncSession) -> dict[str, Any]:
        rows = (await db.execute(
            select(Position.level, func.avg(Employee.salary), func.count(Employee.id))
            .join(Position, Position.id == Employee.position_id)
            .where(Employee.status == EmployeeStatus.active, Employee.salary.is_not(None))
            .group_by(Position.level)
        )).all()
        reasons = await _grouped(db, SalaryHistory.change_reason)
        return {
            "average_by_level": {
                level.value: {"average": _money(avg), "employees": count} for level, avg, count in rows
            },
            "change_reasons": reasons,
        }

    # ── Attendance ────────────────────────────────────────────────────

    @staticmethod
    async def attendance_analytics(db: AsyncSession, start: date, end: date) -> dict[str, Any]:
        window = (TimeAttendance.work_date >= start, TimeAttendance.work_date <= end)
        total_hours, overtime = (await db.execute(
            select(func.sum(TimeAttendance.total_hours), func.sum(TimeAttendance.overtime_hours)).where(*window)
        )).one()
        return {
            "start_date": start,
            "end_date": end,
            "records": await _count(db, TimeAttendance.id, *window),
            "status_distribution": await _grouped(db, TimeAttendance.status, *window),
            "total_hours": float(total_hours or 0),
            "overtime_hours": float(overtime or 0),
            "remote_days": await _count(db, TimeAttendance.id, TimeAttendance.remote_work.is_(True), *window),
        }

    # ── Trends / KPIs / dashboard ─────────────────────────────────────

    @staticmethod
    async def hiring_trends(db: AsyncSession, months: int = 12) -> list[MonthlyTrend]:
        """Hires and terminations per calendar month, oldest first, ending this month."""
        today = date.today()
        keys: list[str] = []
        year, month = today.year, today.month
        for _ in range(months):
            keys.append(f"{year:04d}-{month:02d}")
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        keys.reverse()
        first = date(int(keys[0][:4]), int(keys[0][5:]), 1)

        hires = Counter(
            d.strftime("%Y-%m")
            for d in (await db.execute(select(Employee.hire_date).where(Employee.hire_date >= first))).scalars()
        )
        exits = Counter(
            d.strftime("%Y-%m")
            for d in (await db.execute(
                select(Employee.termination_date).where(Employee.termination_date >= first)
            )).scalars()
        )
        return [
            MonthlyTrend(month=k, hires=hires[k], terminations=exits[k], net_change=hires[k] - exits[k])
            for k in keys
        ]

    @staticmethod
    async def kpis(db: AsyncSession) -> KpiSet:
        today = date.today()
        year_ago = today - timedelta(days=365)

        headcount = await _count(db, Employee.id, Employee.status != EmployeeStatus.terminated)
        left = await _count(
            db, Employee.id, Employee.termination_date.is_not(None), Employee.termination_date >= year_ago,
        )
        start_headcount = headcount + left
        leave = await AnalyticsService.leave_analytics(db)
        performance = await AnalyticsService.performance_analytics(db)
        avg_salary = await db.scalar(
            select(func.avg(Employee.salary)).where(
                Employee.status == EmployeeStatus.active, Employee.salary.is_not(None),
            )
        )
        hire_dates = (await db.execute(
            select(Employee.hire_date).where(Employee.status != EmployeeStatus.terminated)
        )).scalars().all()
        tenure = (
            round(sum((today - d).days for d in hire_dates) / len(hire_dates) / 365.25, 2)
            if hire_dates else 0.0
        )
        return KpiSet(
            retention_rate=_rate(headcount, start_headcount),
            turnover_rate=_rate(left, start_headcount),
            leave_approval_rate=leave["approval_rate"],
            review_completion_rate=performance["completion_rate"],
            goal_completion_rate=performance["goal_completion_rate"],
            average_salary=_money(avg_salary),
            average_tenure_years=tenure,
        )

    @staticmethod
    async def dashboard(db: AsyncSession) -> dict[str, Any]:
        employees = await AnalyticsService.employee_analytics(db)
        departments = await AnalyticsService.department_analytics(db)
        leave = await AnalyticsService.leave_analytics(db)
        performance = await AnalyticsService.performance_analytics(db)
        payroll = await AnalyticsService.payroll_analytics(db)
        return {
            "employees": {
                "total": employees["total_employees"],
                "status_distribution": employees["status_distribution"],
                "hires_last_year": employees["hires_last_year"],
            },
            "departments": {
                "total": departments["total_departments"],
                "employee_counts": departments["employee_counts"],
            },
            "leave": {
                "pending": leave["status_distribution"].get(LeaveStatus.pending.value, 0),
                "approved": leave["status_distribution"].get(LeaveStatus.approved.value, 0),
                "rejected": leave["status_distribution"].get(LeaveStatus.rejected.value, 0),
                "approval_rate": leave["approval_rate"],
            },
            "performance": {
                "total_reviews": performance["total_reviews"],
                "completion_rate": performance["completion_rate"],
                "average_rating": performance["average_rating"],
            },
            "payroll": {
                "total_salary_expense": payroll["total_salary_expense"],
                "average_salary": payroll["average_salary"],
            },
        }

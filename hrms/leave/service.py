"""Leave service layer — leave types, yearly balances and the request workflow.

Balance bookkeeping:
  - creating a request reserves its days in ``pending_days``
  - approval moves them from ``pending_days`` to ``used_days``
  - rejection, cancellation or deletion of a pending request releases them
  - cancelling an approved request gives ``used_days`` back
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.audit import actor_fields, create_audit_entry
from hrms.common.constants import AuditAction, LeaveStatus
from hrms.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hrms.common.filters import apply_search, apply_sorting
from hrms.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrms.employees.models import Employee
from hrms.leave.models import LeaveBalance, LeaveRequest, LeaveType
from hrms.leave.schemas import (
    BalanceCheck,
    BalanceStatistics,
    LeaveBalanceCreate,
    LeaveBalanceUpdate,
    LeaveRequestCreate,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeUpdate,
)
from hrms.notifications.service import (
    notify_leave_approved,
    notify_leave_rejected,
    notify_leave_request,
)

ZERO = Decimal("0")
HALF_DAY = Decimal("0.5")
ACTIVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)
REQUEST_SORT_FIELDS = ("start_date", "end_date", "status", "total_days", "created_at")


def calculate_total_days(start: date, end: date, half_day: bool = False) -> Decimal:
    """Inclusive calendar days; a single-day half-day request counts 0.5."""
    if half_day and start == end:
        return HALF_DAY
    return Decimal((end - start).days + 1)


async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee


def _approver_employee_id(actor: Any) -> Optional[uuid.UUID]:
    return getattr(actor, "employee_id", None) if actor is not None else None


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeService:

    @staticmethod
    async def get(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> LeaveType:
        result = await db.execute(
            select(LeaveType).where(func.lower(LeaveType.name) == name.lower())
        )
        leave_type = result.scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", name)
        return leave_type

    @staticmethod
    async def list_types(
        db: AsyncSession,
        *,
        active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Sequence[LeaveType]:
        query = select(LeaveType).order_by(LeaveType.name)
        if active is not None:
            query = query.where(LeaveType.active.is_(active))
        query = apply_search(query, LeaveType, search, ["name", "description"])
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def name_available(
        db: AsyncSession,
        name: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> bool:
        query = select(func.count()).select_from(LeaveType).where(
            func.lower(LeaveType.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        return (await db.execute(query)).scalar_one() == 0

    @staticmethod
    async def create(
        db: AsyncSession,
        data: LeaveTypeCreate,
        *,
        actor: Any = None,
    ) -> LeaveType:
        if not await LeaveTypeService.name_available(db, data.name):
            raise ConflictError("name", data.name)

        leave_type = LeaveType(**data.model_dump())
        db.add(leave_type)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="leave_type",
            entity_id=leave_type.id,
            new_values=data.model_dump(),
            description=f"Created leave type {leave_type.name}",
            **actor_fields(actor),
        )
        return leave_type

    @staticmethod
    async def update(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        *,
        actor: Any = None,
    ) -> LeaveType:
        leave_type = await LeaveTypeService.get(db, leave_type_id)
        changes = data.model_dump(exclude_unset=True)

        if "name" in changes and not await LeaveTypeService.name_available(
            db, changes["name"], exclude_id=leave_type_id,
        ):
            raise ConflictError("name", changes["name"])

        old_values = {k: getattr(leave_type, k) for k in changes}
        for field, value in changes.items():
            setattr(leave_type, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="leave_type",
            entity_id=leave_type.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return leave_type

    @staticmethod
    async def set_active(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        active: bool,
        *,
        actor: Any = None,
    ) -> LeaveType:
        return await LeaveTypeService.update(
            db, leave_type_id, LeaveTypeUpdate(active=active), actor=actor,
        )

    @staticmethod
    async def delete(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> None:
        leave_type = await LeaveTypeService.get(db, leave_type_id)
        in_use = (await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.leave_type_id == leave_type_id,
            )
        )).scalar_one()
        if in_use:
            raise BadRequestException(
                f"Cannot delete leave type '{leave_type.name}': "
                f"{in_use} leave request(s) reference it"
            )

        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="leave_type",
            entity_id=leave_type.id,
            old_values={"name": leave_type.name},
            **actor_fields(actor),
        )
        await db.delete(leave_type)
        await db.flush()


# ═════════════════════════════════════════════════════════════════════
# Leave balances
# ═════════════════════════════════════════════════════════════════════


_remaining_expr = (
    LeaveBalance.allocated_days
    + LeaveBalance.carry_forward_days
    - LeaveBalance.used_days
    - LeaveBalance.pending_days
)


class LeaveBalanceService:

    @staticmethod
    async def get(db: AsyncSession, balance_id: uuid.UUID) -> LeaveBalance:
        balance = await db.get(LeaveBalance, balance_id)
        if balance is None:
            raise NotFoundException("LeaveBalance", str(balance_id))
        return balance

    @staticmethod
    async def find(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def get_for(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> LeaveBalance:
        balance = await LeaveBalanceService.find(db, employee_id, leave_type_id, year)
        if balance is None:
            raise NotFoundException(
                "LeaveBalance", f"{employee_id}/{leave_type_id}/{year}",
            )
        return balance

    @staticmethod
    async def list_balances(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        year: Optional[int] = None,
    ) -> PaginatedResponse:
        query = select(LeaveBalance).order_by(LeaveBalance.year.desc(), LeaveBalance.employee_id)
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        return await paginate(db, query, pagination)

    @staticmethod
    async def for_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> Sequence[LeaveBalance]:
        await _get_employee(db, employee_id)
        query = select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        query = query.order_by(LeaveBalance.year.desc())
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def create(
        db: AsyncSession,
        data: LeaveBalanceCreate,
        *,
        actor: Any = None,
    ) -> LeaveBalance:
        await _get_employee(db, data.employee_id)
        await LeaveTypeService.get(db, data.leave_type_id)
        if await LeaveBalanceService.find(db, data.employee_id, data.leave_type_id, data.year):
            raise ConflictError(
                "year", f"{data.year} (balance already exists for this employee and type)",
            )

        balance = LeaveBalance(**data.model_dump(), pending_days=ZERO)
        db.add(balance)
        await db.flush()
        await db.refresh(balance, ["leave_type"])

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="leave_balance",
            entity_id=balance.id,
            new_values=data.model_dump(),
            **actor_fields(actor),
        )
        return balance

    @staticmethod
    async def update(
        db: AsyncSession,
        balance_id: uuid.UUID,
        data: LeaveBalanceUpdate,
        *,
        actor: Any = None,
    ) -> LeaveBalance:
        balance = await LeaveBalanceService.get(db, balance_id)
        changes = data.model_dump(exclude_unset=True)
        old_values = {k: getattr(balance, k) for k in changes}
        for field, value in changes.items():
            setattr(balance, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="leave_balance",
            entity_id=balance.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return balance

    @staticmethod
    async def delete(
        db: AsyncSession,
        balance_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> None:
        balance = await LeaveBalanceService.get(db, balance_id)
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="leave_balance",
            entity_id=balance.id,
            old_values={"employee_id": balance.employee_id, "year": balance.year},
            **actor_fields(actor),
        )
        await db.delete(balance)
        await db.flush()

    @staticmethod
    async def carry_forward_for(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        previous_year: int,
    ) -> Decimal:
        """Days carried into the next year from *previous_year*'s balance."""
        if not leave_type.carry_forward:
            return ZERO
        previous = await LeaveBalanceService.find(db, employee_id, leave_type.id, previous_year)
        if previous is None or previous.remaining_days <= 0:
            return ZERO
        if leave_type.max_carry_forward_days:
            return min(previous.remaining_days, Decimal(leave_type.max_carry_forward_days))
        return previous.remaining_days

    @staticmethod
    async def initialize_year(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        *,
        actor: Any = None,
    ) -> list[LeaveBalance]:
        """Ensure a balance exists for every active leave type.

        Existing balances are returned untouched.
        """
        employee = await _get_employee(db, employee_id)
        leave_types = await LeaveTypeService.list_types(db, active=True)

        balances: list[LeaveBalance] = []
        created = 0
        for leave_type in leave_types:
            existing = await LeaveBalanceService.find(db, employee_id, leave_type.id, year)
            if existing is not None:
                balances.append(existing)
                continue

            carry = ZERO
            if leave_type.carry_forward and year > employee.hire_date.year:
                carry = await LeaveBalanceService.carry_forward_for(
                    db, employee_id, leave_type, year - 1,
                )
            balance = LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                year=year,
                allocated_days=Decimal(leave_type.days_allowed_per_year),
                used_days=ZERO,
                pending_days=ZERO,
                carry_forward_days=carry,
            )
            db.add(balance)
            balances.append(balance)
            created += 1

        await db.flush()
        for balance in balances:
            await db.refresh(balance, ["leave_type"])

        if created:
            await create_audit_entry(
                db,
                action="INITIALIZE_LEAVE_BALANCES",
                entity_type="employee",
                entity_id=employee_id,
                new_values={"year": year, "created": created},
                **actor_fields(actor),
            )
        return balances

    @staticmethod
    async def check(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: Decimal,
    ) -> BalanceCheck:
        balance = await LeaveBalanceService.get_for(db, employee_id, leave_type_id, year)
        return BalanceCheck(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            requested_days=days,
            remaining_days=balance.remaining_days,
            sufficient=balance.has_sufficient(days),
        )

    @staticmethod
    async def statistics(db: AsyncSession, year: int) -> BalanceStatistics:
        row = (await db.execute(
            select(
                func.count(LeaveBalance.id),
                func.coalesce(func.sum(LeaveBalance.allocated_days), 0),
                func.coalesce(func.sum(LeaveBalance.used_days), 0),
                func.coalesce(func.sum(LeaveBalance.pending_days), 0),
                func.coalesce(func.sum(LeaveBalance.carry_forward_days), 0),
            ).where(LeaveBalance.year == year)
        )).one()
        count, allocated, used, pending, carry = row
        allocated, used = Decimal(str(allocated)), Decimal(str(used))
        pool = allocated + Decimal(str(carry))
        return BalanceStatistics(
            year=year,
            balances=count,
            total_allocated=allocated,
            total_used=used,
            total_pending=Decimal(str(pending)),
            total_carry_forward=Decimal(str(carry)),
            utilization_rate=round(float(used / pool * 100), 2) if pool else 0.0,
        )

    @staticmethod
    async def expiring(db: AsyncSession, year: int) -> Sequence[LeaveBalance]:
        """Balances with days left on types that do not carry forward."""
        result = await db.execute(
            select(LeaveBalance)
            .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
            .where(
                LeaveBalance.year == year,
                LeaveType.carry_forward.is_(False),
                _remaining_expr > 0,
            )
        )
        return result.scalars().all()

    # ── reservation helpers used by the request workflow ────────────

    @staticmethod
    async def _balance_for_request(db: AsyncSession, req: LeaveRequest) -> LeaveBalance:
        balance = await LeaveBalanceService.find(
            db, req.employee_id, req.leave_type_id, req.start_date.year,
        )
        if balance is None:
            raise BadRequestException(
                f"No leave balance found for year {req.start_date.year}",
                errors={"leave_type_id": ["Leave balance has not been initialized"]},
            )
        return balance

    @staticmethod
    async def reserve(db: AsyncSession, req: LeaveRequest) -> None:
        balance = await LeaveBalanceService._balance_for_request(db, req)
        if not balance.has_sufficient(req.total_days):
            raise BadRequestException(
                "Insufficient leave balance",
                errors={"total_days": [
                    f"Requested {req.total_days} day(s), "
                    f"available {balance.remaining_days}"
                ]},
            )
        balance.pending_days += req.total_days

    @staticmethod
    async def release(db: AsyncSession, req: LeaveRequest) -> None:
        balance = await LeaveBalanceService.find(
            db, req.employee_id, req.leave_type_id, req.start_date.year,
        )
        if balance is not None:
            balance.pending_days = max(ZERO, balance.pending_days - req.total_days)

    @staticmethod
    async def consume(db: AsyncSession, req: LeaveRequest) -> None:
        balance = await LeaveBalanceService._balance_for_request(db, req)
        balance.pending_days = max(ZERO, balance.pending_days - req.total_days)
        balance.used_days += req.total_days

    @staticmethod
    async def restore(db: AsyncSession, req: LeaveRequest) -> None:
        balance = await LeaveBalanceService.find(
            db, req.employee_id, req.leave_type_id, req.start_date.year,
        )
        if balance is not None:
            balance.used_days = max(ZERO, balance.used_days - req.total_days)


# ═════════════════════════════════════════════════════════════════════
# Leave requests
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestService:

    @staticmethod
    async def get(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        leave_req = await db.get(LeaveRequest, request_id)
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        leave_type_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = select(LeaveRequest)
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if leave_type_id is not None:
            query = query.where(LeaveRequest.leave_type_id == leave_type_id)
        query = apply_sorting(
            query, LeaveRequest, pagination.sort or "-start_date", allowed=REQUEST_SORT_FIELDS,
        )
        return await paginate(db, query, pagination)

    @staticmethod
    async def find(db: AsyncSession, *criteria) -> Sequence[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest).where(*criteria).order_by(LeaveRequest.start_date.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def in_range(
        db: AsyncSession,
        start: date,
        end: date,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> Sequence[LeaveRequest]:
        """Requests whose dates overlap ``[start, end]``."""
        if start > end:
            raise BadRequestException("start_date must be on or before end_date")
        criteria = [LeaveRequest.start_date <= end, LeaveRequest.end_date >= start]
        if status is not None:
            criteria.append(LeaveRequest.status == status)
        return await LeaveRequestService.find(db, *criteria)

    @staticmethod
    async def calendar(db: AsyncSession, start: date, end: date) -> Sequence[LeaveRequest]:
        return await LeaveRequestService.in_range(db, start, end, status=LeaveStatus.approved)

    @staticmethod
    async def overlapping(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Sequence[LeaveRequest]:
        criteria = [
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(ACTIVE_STATUSES),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        ]
        if exclude_id is not None:
            criteria.append(LeaveRequest.id != exclude_id)
        return await LeaveRequestService.find(db, *criteria)

    @staticmethod
    async def manager_queue(db: AsyncSession, manager_id: uuid.UUID) -> Sequence[LeaveRequest]:
        """Pending requests of the manager's direct reports, oldest first."""
        result = await db.execute(
            select(LeaveRequest)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .where(
                Employee.manager_id == manager_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .order_by(LeaveRequest.created_at)
        )
        return result.scalars().all()

    # ── validation ──────────────────────────────────────────────────

    @staticmethod
    async def _validate(
        db: AsyncSession,
        leave_req: LeaveRequest,
        leave_type: LeaveType,
    ) -> None:
        errors: dict[str, list[str]] = {}

        if leave_req.start_date > leave_req.end_date:
            errors.setdefault("start_date", []).append("start_date must be on or before end_date")

        if not leave_type.active:
            errors.setdefault("leave_type_id", []).append(f"Leave type '{leave_type.name}' is inactive")

        earliest = date.today() + timedelta(days=leave_type.min_notice_days or 0)
        if leave_type.min_notice_days and leave_req.start_date < earliest:
            errors.setdefault("start_date", []).append(
                f"{leave_type.name} requires at least {leave_type.min_notice_days} "
                f"day(s) advance notice"
            )

        if leave_type.max_consecutive_days and leave_req.total_days > leave_type.max_consecutive_days:
            errors.setdefault("end_date", []).append(
                f"{leave_type.name} allows a maximum of "
                f"{leave_type.max_consecutive_days} consecutive day(s)"
            )

        if errors:
            raise BadRequestException("Leave request validation failed", errors=errors)

        clashes = await LeaveRequestService.overlapping(
            db,
            leave_req.employee_id,
            leave_req.start_date,
            leave_req.end_date,
            exclude_id=leave_req.id,
        )
        if clashes:
            raise BadRequestException(
                "Leave request overlaps with an existing pending or approved request",
                errors={"start_date": [f"Overlaps request {clashes[0].id}"]},
            )

    # ── workflow ────────────────────────────────────────────────────

    @staticmethod
    async def create(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        actor: Any = None,
    ) -> LeaveRequest:
        employee = await _get_employee(db, employee_id)
        leave_type = await LeaveTypeService.get(db, data.leave_type_id)

        leave_req = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=data.leave_type_id,
            start_date=data.start_date,
            end_date=data.end_date,
            half_day=data.half_day,
            reason=data.reason,
            total_days=calculate_total_days(data.start_date, data.end_date, data.half_day),
            status=LeaveStatus.pending,
        )
        await LeaveRequestService._validate(db, leave_req, leave_type)
        await LeaveBalanceService.reserve(db, leave_req)

        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.CREATE,
            entity_type="leave_request",
            entity_id=leave_req.id,
            new_values={
                "leave_type": leave_type.name,
                "start_date": data.start_date,
                "end_date": data.end_date,
                "total_days": leave_req.total_days,
            },
            **actor_fields(actor),
        )

        if employee.manager_id is not None:
            await notify_leave_request(db, leave_req, employee.manager_id)
        return leave_req

    @staticmethod
    def _require_pending(leave_req: LeaveRequest, verb: str) -> None:
        if leave_req.status != LeaveStatus.pending:
            raise BadRequestException(
                f"Only pending leave requests can be {verb}; "
                f"this request is {leave_req.status.value}"
            )

    @staticmethod
    async def update(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: LeaveRequestUpdate,
        *,
        actor: Any = None,
    ) -> LeaveRequest:
        leave_req = await LeaveRequestService.get(db, request_id)
        LeaveRequestService._require_pending(leave_req, "updated")

        changes = data.model_dump(exclude_unset=True)
        old_values = {k: getattr(leave_req, k) for k in changes}

        await LeaveBalanceService.release(db, leave_req)
        for field, value in changes.items():
            setattr(leave_req, field, value)
        leave_req.total_days = calculate_total_days(
            leave_req.start_date, leave_req.end_date, leave_req.half_day,
        )

        leave_type = await LeaveTypeService.get(db, leave_req.leave_type_id)
        await LeaveRequestService._validate(db, leave_req, leave_type)
        await LeaveBalanceService.reserve(db, leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action=AuditAction.UPDATE,
            entity_type="leave_request",
            entity_id=leave_req.id,
            old_values=old_values,
            new_values=changes,
            **actor_fields(actor),
        )
        return leave_req

    @staticmethod
    async def approve(
        db: AsyncSession,
        request_id: uuid.UUID,
        comments: Optional[str] = None,
        *,
        actor: Any = None,
    ) -> LeaveRequest:
        leave_req = await LeaveRequestService.get(db, request_id)
        LeaveRequestService._require_pending(leave_req, "approved")

        await LeaveBalanceService.consume(db, leave_req)
        leave_req.status = LeaveStatus.approved
        leave_req.approver_id = _approver_employee_id(actor)
        leave_req.approved_at = datetime.now(timezone.utc)
        leave_req.approval_comments = comments
        await db.flush()

        await create_audit_entry(
            db,
            action="APPROVE",
            entity_type="leave_request",
            entity_id=leave_req.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.approved.value, "comments": comments},
            **actor_fields(actor),
        )
        await notify_leave_approved(db, leave_req)
        return leave_req

    @staticmethod
    async def reject(
        db: AsyncSession,
        request_id: uuid.UUID,
        reason: str,
        *,
        actor: Any = None,
    ) -> LeaveRequest:
        leave_req = await LeaveRequestService.get(db, request_id)
        LeaveRequestService._require_pending(leave_req, "rejected")

        await LeaveBalanceService.release(db, leave_req)
        leave_req.status = LeaveStatus.rejected
        leave_req.approver_id = _approver_employee_id(actor)
        leave_req.approved_at = datetime.now(timezone.utc)
        leave_req.rejection_reason = reason
        await db.flush()

        await create_audit_entry(
            db,
            action="REJECT",
            entity_type="leave_request",
            entity_id=leave_req.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.rejected.value, "reason": reason},
            **actor_fields(actor),
        )
        await notify_leave_rejected(db, leave_req)
        return leave_req

    @staticmethod
    async def cancel(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> LeaveRequest:
        leave_req = await LeaveRequestService.get(db, request_id)
        old_status = leave_req.status

        if old_status == LeaveStatus.pending:
            await LeaveBalanceService.release(db, leave_req)
        elif old_status == LeaveStatus.approved:
            await LeaveBalanceService.restore(db, leave_req)
        else:
            raise BadRequestException(
                f"Cannot cancel a leave request with status '{old_status.value}'"
            )

        leave_req.status = LeaveStatus.cancelled
        await db.flush()

        await create_audit_entry(
            db,
            action="CANCEL",
            entity_type="leave_request",
            entity_id=leave_req.id,
            old_values={"status": old_status.value},
            new_values={"status": LeaveStatus.cancelled.value},
            **actor_fields(actor),
        )
        return leave_req

    @staticmethod
    async def delete(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor: Any = None,
    ) -> None:
        leave_req = await LeaveRequestService.get(db, request_id)
        LeaveRequestService._require_pending(leave_req, "deleted")

        await LeaveBalanceService.release(db, leave_req)
        await create_audit_entry(
            db,
            action=AuditAction.DELETE,
            entity_type="leave_request",
            entity_id=leave_req.id,
            old_values={
                "employee_id": leave_req.employee_id,
                "start_date": leave_req.start_date,
                "end_date": leave_req.end_date,
            },
            **actor_fields(actor),
        )
        await db.delete(leave_req)
        await db.flush()

    @staticmethod
    async def upcoming_for(db: AsyncSession, employee_id: uuid.UUID) -> Sequence[LeaveRequest]:
        return await LeaveRequestService.find(
            db,
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == LeaveStatus.approved,
            LeaveRequest.start_date >= date.today(),
        )

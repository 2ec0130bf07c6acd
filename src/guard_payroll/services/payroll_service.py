"""Payroll service - generation and workflow operations on payroll records."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from guard_payroll.calculators.engine import PayrollEngine
from guard_payroll.calculators.money import CENT, to_decimal
from guard_payroll.calculators.types import AmountBreakdown, Deductions, Earnings
from guard_payroll.config import Settings, get_settings
from guard_payroll.errors import (
    ConcurrentModificationError,
    DuplicatePayrollError,
    PayrollNotFoundError,
    PayrollValidationError,
)
from guard_payroll.models import (
    PayrollAdjustment,
    PayrollRecord,
    PayrollRevision,
    PayrollSequence,
)
from guard_payroll.models.base import utcnow
from guard_payroll.services.audit import AuditLogger
from guard_payroll.services.state_machine import PayrollStateMachine, PayrollStatus
from guard_payroll.services.stores import (
    SqlAttendanceStore,
    SqlGuardDirectory,
    SqlSettingsStore,
)

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100
HISTORY_LIMIT = 12
# Largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal("9999999999.99")

PAYMENT_METHODS = ("bank_transfer", "cash", "cheque", "upi")
# Methods that must carry a transaction reference
ELECTRONIC_PAYMENT_METHODS = ("bank_transfer", "upi")
ADJUSTMENT_TYPES = ("addition", "deduction")


def validate_period(month: Any, year: Any) -> None:
    """Reject months outside 1-12 and years outside 2000-2100."""
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise PayrollValidationError("Month must be between 1 and 12", month=month)
    if isinstance(year, bool) or not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
        raise PayrollValidationError(
            f"Year must be between {MIN_YEAR} and {MAX_YEAR}", year=year
        )


def validate_amount(label: str, raw: Any) -> Decimal:
    try:
        amount = to_decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise PayrollValidationError(f"{label} must be a number", value=repr(raw)) from None
    if not amount.is_finite() or amount < 0:
        raise PayrollValidationError(f"{label} cannot be negative", value=str(amount))
    if amount > MAX_AMOUNT:
        raise PayrollValidationError(f"{label} is too large", value=str(amount))
    if amount != amount.quantize(CENT):
        raise PayrollValidationError(
            f"{label} cannot have more than 2 decimal places", value=str(amount)
        )
    return amount


def validate_components(
    values: Mapping[str, Any] | None,
    breakdown: type[AmountBreakdown],
    label: str,
) -> dict[str, Decimal]:
    """Check override keys against the component set and amounts against Money."""
    if not values:
        return {}
    unknown = set(values) - set(breakdown.component_names())
    if unknown:
        raise PayrollValidationError(
            f"Unknown {label} components: {', '.join(sorted(unknown))}"
        )
    return {
        name: validate_amount(f"{label} '{name}'", raw)
        for name, raw in values.items()
        if raw is not None
    }


def validate_payment(payment_method: str, transaction_reference: str | None) -> None:
    if payment_method not in PAYMENT_METHODS:
        raise PayrollValidationError(
            f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}",
            payment_method=payment_method,
        )
    if payment_method in ELECTRONIC_PAYMENT_METHODS and not (
        transaction_reference and transaction_reference.strip()
    ):
        raise PayrollValidationError(
            "Transaction reference is required for bank transfer and UPI payments",
            payment_method=payment_method,
        )


def format_payroll_number(month: int, year: int, sequence: int) -> str:
    return f"PAY-{year}{month:02d}-{sequence:05d}"


class PayrollService:
    """Service for the payroll record lifecycle.

    Operations:
    - generate: compute and persist a pending payroll for a guard-month
    - update / add_adjustment: edit financials, capturing a revision first
    - verify / approve / reject / pay: workflow transitions
    - delete: remove an unpaid, unlocked payroll
    - get / list_payrolls / history / payslip: read models

    Every mutating operation re-reads the record and applies its precondition
    in a conditional UPDATE; if another writer got there first the operation
    fails with ConcurrentModificationError instead of overwriting.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.guards = SqlGuardDirectory(session)
        self.settings_store = SqlSettingsStore(session)
        self.engine = PayrollEngine(
            self.guards, SqlAttendanceStore(session), self.settings_store
        )
        self.audit = AuditLogger(session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, payroll_id: UUID) -> PayrollRecord:
        """Load a payroll fresh from the database."""
        result = await self.session.execute(
            select(PayrollRecord)
            .where(PayrollRecord.payroll_record_id == payroll_id)
            .execution_options(populate_existing=True)
        )
        payroll = result.scalar_one_or_none()
        if payroll is None:
            raise PayrollNotFoundError(payroll_id)
        return payroll

    async def find_existing(
        self, guard_id: UUID, month: int, year: int
    ) -> PayrollRecord | None:
        result = await self.session.execute(
            select(PayrollRecord).where(
                PayrollRecord.guard_id == guard_id,
                PayrollRecord.month == month,
                PayrollRecord.year == year,
            )
        )
        return result.scalar_one_or_none()

    async def list_payrolls(
        self,
        guard_id: UUID | None = None,
        month: int | None = None,
        year: int | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[PayrollRecord], int]:
        """List payrolls newest first, returning (page items, total count)."""
        query = select(PayrollRecord)
        if guard_id is not None:
            query = query.where(PayrollRecord.guard_id == guard_id)
        if month is not None:
            query = query.where(PayrollRecord.month == month)
        if year is not None:
            query = query.where(PayrollRecord.year == year)
        if status is not None:
            query = query.where(PayrollRecord.status == status)

        count_result = await self.session.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = (
            query.order_by(
                PayrollRecord.year.desc(),
                PayrollRecord.month.desc(),
                PayrollRecord.created_at.desc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def history(self, guard_id: UUID, limit: int = HISTORY_LIMIT) -> list[PayrollRecord]:
        """Most recent payrolls of a guard by period."""
        await self.guards.load(guard_id)
        result = await self.session.execute(
            select(PayrollRecord)
            .where(PayrollRecord.guard_id == guard_id)
            .order_by(PayrollRecord.year.desc(), PayrollRecord.month.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def payslip(self, payroll_id: UUID) -> dict[str, Any]:
        """Structured payslip for display or printing."""
        payroll = await self.get(payroll_id)
        guard = payroll.guard
        company_name = await self.settings_store.get_setting(
            "company_name", self.settings.company_name
        )
        return {
            "company_name": company_name,
            "payroll_number": payroll.payroll_number,
            "period": payroll.period_label,
            "period_start": payroll.period_start,
            "period_end": payroll.period_end,
            "status": payroll.status,
            "guard": {
                "guard_id": guard.guard_id,
                "guard_code": guard.guard_code,
                "name": guard.full_name,
                "designation": guard.designation,
                "pf_number": guard.pf_number,
                "esi_number": guard.esi_number,
            },
            "attendance": payroll.attendance_summary.to_dict(),
            "earnings": payroll.earnings.to_dict(),
            "deductions": payroll.deductions.to_dict(),
            "gross_salary": payroll.gross_salary,
            "total_deductions": payroll.total_deductions,
            "net_salary": payroll.net_salary,
            "payment": {
                "method": payroll.payment_method,
                "transaction_reference": payroll.transaction_reference,
                "paid_at": payroll.paid_at,
                "details": payroll.payment_details or {},
            },
        }

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        guard_id: UUID,
        month: int,
        year: int,
        actor_id: str,
        earnings: Mapping[str, Any] | None = None,
        deductions: Mapping[str, Any] | None = None,
        remarks: str | None = None,
    ) -> PayrollRecord:
        """Compute and persist a new pending payroll for a guard-month.

        Raises DuplicatePayrollError if one already exists for the period,
        whether found up front or rejected by the unique constraint.
        """
        validate_period(month, year)
        earnings_overrides = validate_components(earnings, Earnings, "Earnings")
        deduction_overrides = validate_components(deductions, Deductions, "Deductions")

        if await self.find_existing(guard_id, month, year) is not None:
            raise DuplicatePayrollError(guard_id, month, year)

        result = await self.engine.calculate(
            guard_id, month, year, earnings_overrides, deduction_overrides
        )
        payroll_number = await self._next_payroll_number(month, year)
        now = utcnow()

        payroll = PayrollRecord(
            payroll_number=payroll_number,
            guard_id=guard_id,
            month=month,
            year=year,
            period_start=result.period_start,
            period_end=result.period_end,
            status=PayrollStatus.PENDING.value,
            generated_by=actor_id,
            generated_at=now,
            created_by=actor_id,
            remarks=remarks,
            is_locked=False,
            revision=1,
            adjustments=[],
            revisions=[],
        )
        payroll.set_attendance(result.attendance)
        payroll.apply_financials(result.earnings, result.deductions)

        try:
            async with self.session.begin_nested():
                self.session.add(payroll)
        except IntegrityError:
            raise DuplicatePayrollError(guard_id, month, year) from None

        await self.audit.record(
            actor_id,
            "create",
            payroll.payroll_record_id,
            f"Generated payroll {payroll_number} for {result.guard.full_name} "
            f"({month}/{year})",
            reference=payroll_number,
            after=payroll.financial_snapshot(),
        )
        return payroll

    async def _next_payroll_number(self, month: int, year: int) -> str:
        sequence = PayrollSequence()
        self.session.add(sequence)
        await self.session.flush()
        return format_payroll_number(month, year, sequence.payroll_sequence_id)

    # ------------------------------------------------------------------
    # Financial edits
    # ------------------------------------------------------------------

    async def update(
        self,
        payroll_id: UUID,
        actor_id: str,
        earnings: Mapping[str, Any] | None = None,
        deductions: Mapping[str, Any] | None = None,
        remarks: str | None = None,
        deduction_remarks: str | None = None,
        reason: str | None = None,
    ) -> PayrollRecord:
        """Edit earnings/deductions components and re-derive totals."""
        earnings_changes = validate_components(earnings, Earnings, "Earnings")
        deduction_changes = validate_components(deductions, Deductions, "Deductions")

        payroll = await self.get(payroll_id)
        PayrollStateMachine.ensure_financials_mutable(payroll, "update")
        before = payroll.financial_snapshot()

        await self._capture_revision(payroll, actor_id, reason or "Payroll updated")

        payroll.apply_financials(
            payroll.earnings.with_changes(earnings_changes),
            payroll.deductions.with_changes(deduction_changes),
        )
        if remarks is not None:
            payroll.remarks = remarks
        if deduction_remarks is not None:
            payroll.deduction_remarks = deduction_remarks
        payroll.updated_by = actor_id
        await self.session.flush()

        await self.audit.record(
            actor_id,
            "update",
            payroll.payroll_record_id,
            f"Updated payroll {payroll.payroll_number}",
            reference=payroll.payroll_number,
            before=before,
            after=payroll.financial_snapshot(),
        )
        return payroll

    async def add_adjustment(
        self,
        payroll_id: UUID,
        actor_id: str,
        adjustment_type: str,
        category: str,
        amount: Any,
        reason: str,
    ) -> PayrollRecord:
        """Append a manual adjustment, folding it into the catch-all component."""
        if adjustment_type not in ADJUSTMENT_TYPES:
            raise PayrollValidationError(
                "Adjustment type must be 'addition' or 'deduction'",
                adjustment_type=adjustment_type,
            )
        if not category or not category.strip():
            raise PayrollValidationError("Adjustment category is required")
        if not reason or not reason.strip():
            raise PayrollValidationError("Adjustment reason is required")
        value = validate_amount("Adjustment amount", amount)

        payroll = await self.get(payroll_id)
        PayrollStateMachine.ensure_financials_mutable(payroll, "adjust")
        before = payroll.financial_snapshot()

        await self._capture_revision(payroll, actor_id, f"Adjustment: {reason}")

        payroll.adjustments.append(
            PayrollAdjustment(
                adjustment_type=adjustment_type,
                category=category,
                amount=value,
                reason=reason,
                added_by=actor_id,
            )
        )
        if adjustment_type == "addition":
            payroll.apply_financials(earnings=payroll.earnings.add_to_catch_all(value))
        else:
            payroll.apply_financials(deductions=payroll.deductions.add_to_catch_all(value))
        payroll.updated_by = actor_id
        await self.session.flush()

        await self.audit.record(
            actor_id,
            "adjustment",
            payroll.payroll_record_id,
            f"Added {adjustment_type} of {value} ({category}) to payroll "
            f"{payroll.payroll_number}",
            reference=payroll.payroll_number,
            before=before,
            after=payroll.financial_snapshot(),
        )
        return payroll

    async def _capture_revision(
        self, payroll: PayrollRecord, actor_id: str, reason: str
    ) -> None:
        """Bump the revision counter and snapshot the pre-edit financials."""
        current = payroll.revision
        snapshot = payroll.financial_snapshot()

        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_record_id == payroll.payroll_record_id,
                PayrollRecord.revision == current,
                PayrollRecord.is_locked.is_(False),
                PayrollRecord.status.in_(sorted(PayrollStateMachine.FINANCIALLY_MUTABLE)),
            )
            .values(revision=current + 1, updated_by=actor_id, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise ConcurrentModificationError(
                f"Payroll {payroll.payroll_number} was modified concurrently",
                payroll_id=str(payroll.payroll_record_id),
            )

        payroll.revisions.append(
            PayrollRevision(
                revision=current,
                data=snapshot,
                reason=reason,
                changed_by=actor_id,
            )
        )

    # ------------------------------------------------------------------
    # Workflow transitions
    # ------------------------------------------------------------------

    async def verify(
        self, payroll_id: UUID, actor_id: str, remarks: str | None = None
    ) -> PayrollRecord:
        payroll = await self.get(payroll_id)
        values: dict[str, Any] = {"verified_by": actor_id, "verified_at": utcnow()}
        if remarks is not None:
            values["remarks"] = remarks
        await self._transition(payroll, PayrollStatus.VERIFIED.value, actor_id, values)
        await self.audit.record(
            actor_id,
            "verify",
            payroll.payroll_record_id,
            f"Verified payroll {payroll.payroll_number}",
            reference=payroll.payroll_number,
        )
        return payroll

    async def approve(
        self, payroll_id: UUID, actor_id: str, remarks: str | None = None
    ) -> PayrollRecord:
        payroll = await self.get(payroll_id)
        values: dict[str, Any] = {"approved_by": actor_id, "approved_at": utcnow()}
        if remarks is not None:
            values["remarks"] = remarks
        await self._transition(payroll, PayrollStatus.APPROVED.value, actor_id, values)
        await self.audit.record(
            actor_id,
            "approve",
            payroll.payroll_record_id,
            f"Approved payroll {payroll.payroll_number}",
            reference=payroll.payroll_number,
        )
        return payroll

    async def reject(self, payroll_id: UUID, actor_id: str, reason: str) -> PayrollRecord:
        """Cancel a payroll that has not been paid."""
        if not reason or not reason.strip():
            raise PayrollValidationError("Rejection reason is required")

        payroll = await self.get(payroll_id)
        await self._transition(
            payroll,
            PayrollStatus.CANCELLED.value,
            actor_id,
            {
                "rejected_by": actor_id,
                "rejected_at": utcnow(),
                "rejection_reason": reason,
            },
        )
        await self.audit.record(
            actor_id,
            "reject",
            payroll.payroll_record_id,
            f"Rejected payroll {payroll.payroll_number}: {reason}",
            reference=payroll.payroll_number,
        )
        return payroll

    async def pay(
        self,
        payroll_id: UUID,
        actor_id: str,
        payment_method: str,
        transaction_reference: str | None = None,
        bank_details: Mapping[str, Any] | None = None,
        cheque_details: Mapping[str, Any] | None = None,
        remarks: str | None = None,
    ) -> PayrollRecord:
        """Record payment of an approved payroll and lock it."""
        validate_payment(payment_method, transaction_reference)

        payroll = await self.get(payroll_id)
        details: dict[str, Any] = {}
        if payment_method == "bank_transfer":
            details["bank_details"] = dict(bank_details or payroll.guard.bank_details)
        if payment_method == "cheque" and cheque_details:
            details["cheque_details"] = dict(cheque_details)

        values: dict[str, Any] = {
            "payment_method": payment_method,
            "transaction_reference": transaction_reference or None,
            "payment_details": details,
            "paid_at": utcnow(),
            "paid_by": actor_id,
            "is_locked": True,
        }
        if remarks is not None:
            values["remarks"] = remarks
        await self._transition(payroll, PayrollStatus.PAID.value, actor_id, values)

        await self.audit.record(
            actor_id,
            "payment",
            payroll.payroll_record_id,
            f"Paid payroll {payroll.payroll_number} via {payment_method}",
            reference=payroll.payroll_number,
            after={
                "payment_method": payment_method,
                "transaction_reference": transaction_reference,
                "net_salary": str(payroll.net_salary),
            },
        )
        return payroll

    async def _transition(
        self,
        payroll: PayrollRecord,
        to_status: str,
        actor_id: str,
        values: dict[str, Any],
    ) -> None:
        """Move a payroll to a new status if it is still where we read it."""
        from_status = payroll.status
        PayrollStateMachine.validate_transition(from_status, to_status)

        result = await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.payroll_record_id == payroll.payroll_record_id,
                PayrollRecord.status == from_status,
                PayrollRecord.is_locked.is_(False),
            )
            .values(status=to_status, updated_by=actor_id, updated_at=utcnow(), **values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise ConcurrentModificationError(
                f"Payroll {payroll.payroll_number} changed before it could move "
                f"to '{to_status}'",
                payroll_id=str(payroll.payroll_record_id),
            )
        logger.info(
            "Payroll %s moved %s -> %s by %s",
            payroll.payroll_number,
            from_status,
            to_status,
            actor_id,
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete(self, payroll_id: UUID, actor_id: str) -> None:
        payroll = await self.get(payroll_id)
        PayrollStateMachine.ensure_deletable(payroll)
        snapshot = payroll.financial_snapshot()
        payroll_number = payroll.payroll_number

        await self.session.delete(payroll)
        await self.session.flush()

        await self.audit.record(
            actor_id,
            "delete",
            payroll_id,
            f"Deleted payroll {payroll_number}",
            reference=payroll_number,
            before=snapshot,
        )

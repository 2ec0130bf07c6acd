"""Bulk payroll generation and payment."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from guard_payroll.config import Settings
from guard_payroll.errors import DuplicatePayrollError, PayrollError, PayrollValidationError
from guard_payroll.models import PayrollRecord
from guard_payroll.services.payroll_service import (
    PAYMENT_METHODS,
    PayrollService,
    validate_period,
)
from guard_payroll.services.state_machine import InvalidTransitionError, PayrollStatus

logger = logging.getLogger(__name__)


class ItemOutcome(str, Enum):
    """Outcome bucket of one batch item."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BatchItemOutcome:
    """What happened to one input item of a batch call."""

    item_id: UUID
    outcome: ItemOutcome
    payroll_id: UUID | None = None
    payroll_number: str | None = None
    net_salary: Decimal | None = None
    error: str | None = None

    @classmethod
    def succeeded(cls, item_id: UUID, payroll: PayrollRecord) -> BatchItemOutcome:
        return cls(
            item_id=item_id,
            outcome=ItemOutcome.SUCCESS,
            payroll_id=payroll.payroll_record_id,
            payroll_number=payroll.payroll_number,
            net_salary=payroll.net_salary,
        )


@dataclass
class BatchResult:
    """Per-item outcomes of a batch call; every input lands in exactly one list."""

    success: list[BatchItemOutcome] = field(default_factory=list)
    failed: list[BatchItemOutcome] = field(default_factory=list)
    skipped: list[BatchItemOutcome] = field(default_factory=list)

    def add(self, item: BatchItemOutcome) -> None:
        if item.outcome == ItemOutcome.SUCCESS:
            self.success.append(item)
        elif item.outcome == ItemOutcome.SKIPPED:
            self.skipped.append(item)
        else:
            self.failed.append(item)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "success": len(self.success),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }

    @property
    def total(self) -> int:
        return len(self.success) + len(self.failed) + len(self.skipped)


class BatchService:
    """Drives generation and payment across many guards or payrolls.

    Items are processed sequentially, each inside its own SAVEPOINT, so a
    failed item rolls back only its own writes and never aborts the batch.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.payrolls = PayrollService(session, settings)

    async def bulk_generate(
        self,
        month: int,
        year: int,
        actor_id: str,
        guard_ids: Iterable[UUID] | None = None,
        remarks: str | None = None,
    ) -> BatchResult:
        """Generate payrolls for the given guards, or every active guard."""
        validate_period(month, year)
        if guard_ids is None:
            targets = await self.payrolls.guards.list_active_guard_ids()
        else:
            targets = list(guard_ids)

        result = BatchResult()
        for guard_id in targets:
            try:
                async with self.session.begin_nested():
                    payroll = await self.payrolls.generate(
                        guard_id, month, year, actor_id, remarks=remarks
                    )
            except DuplicatePayrollError as exc:
                result.add(
                    BatchItemOutcome(guard_id, ItemOutcome.SKIPPED, error=exc.message)
                )
            except PayrollError as exc:
                logger.warning("Bulk generate failed for guard %s: %s", guard_id, exc)
                result.add(BatchItemOutcome(guard_id, ItemOutcome.FAILED, error=exc.message))
            except Exception as exc:
                logger.exception("Unexpected error generating payroll for guard %s", guard_id)
                result.add(BatchItemOutcome(guard_id, ItemOutcome.FAILED, error=str(exc)))
            else:
                result.add(BatchItemOutcome.succeeded(guard_id, payroll))

        await self._record_summary(
            actor_id,
            "bulk_generate",
            f"Bulk generated payroll: {len(result.success)} success, "
            f"{len(result.failed)} failed, {len(result.skipped)} skipped",
            result,
            {"month": month, "year": year},
        )
        return result

    async def bulk_pay(
        self,
        payroll_ids: Iterable[UUID],
        actor_id: str,
        payment_method: str,
        transaction_references: Mapping[UUID, str] | None = None,
        batch_reference: str | None = None,
        remarks: str | None = None,
    ) -> BatchResult:
        """Pay approved payrolls; anything not approved is a per-item failure.

        A payroll's transaction reference comes from ``transaction_references``
        or falls back to ``batch_reference``.
        """
        if payment_method not in PAYMENT_METHODS:
            raise PayrollValidationError(
                f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}",
                payment_method=payment_method,
            )
        references = transaction_references or {}

        result = BatchResult()
        for payroll_id in payroll_ids:
            reference = references.get(payroll_id) or batch_reference
            try:
                async with self.session.begin_nested():
                    payroll = await self.payrolls.pay(
                        payroll_id,
                        actor_id,
                        payment_method,
                        transaction_reference=reference,
                        remarks=remarks,
                    )
            except InvalidTransitionError as exc:
                message = exc.message
                if exc.to_status == PayrollStatus.PAID.value:
                    message = f"Payroll is not approved (status: {exc.from_status})"
                logger.warning("Bulk pay skipped payroll %s: %s", payroll_id, message)
                result.add(BatchItemOutcome(payroll_id, ItemOutcome.FAILED, error=message))
            except PayrollError as exc:
                logger.warning("Bulk pay failed for payroll %s: %s", payroll_id, exc)
                result.add(
                    BatchItemOutcome(payroll_id, ItemOutcome.FAILED, error=exc.message)
                )
            except Exception as exc:
                logger.exception("Unexpected error paying payroll %s", payroll_id)
                result.add(BatchItemOutcome(payroll_id, ItemOutcome.FAILED, error=str(exc)))
            else:
                result.add(BatchItemOutcome.succeeded(payroll_id, payroll))

        await self._record_summary(
            actor_id,
            "bulk_pay",
            f"Bulk processed payments: {len(result.success)} success, "
            f"{len(result.failed)} failed",
            result,
            {"payment_method": payment_method, "batch_reference": batch_reference},
        )
        return result

    async def _record_summary(
        self,
        actor_id: str,
        action: str,
        description: str,
        result: BatchResult,
        context: dict[str, Any],
    ) -> None:
        await self.payrolls.audit.record(
            actor_id,
            action,
            None,
            description,
            entity_type="payroll_batch",
            after={
                **context,
                "counts": result.counts,
                "failed": [
                    {"item_id": str(item.item_id), "error": item.error}
                    for item in result.failed
                ],
            },
        )

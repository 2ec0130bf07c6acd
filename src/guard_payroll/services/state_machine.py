"""Payroll record state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from guard_payroll.errors import ConflictError, InvalidStateError

if TYPE_CHECKING:
    from guard_payroll.models import PayrollRecord


class PayrollStatus(str, Enum):
    """Payroll record status values."""

    DRAFT = "draft"
    PENDING = "pending"
    VERIFIED = "verified"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=from_status, to_status=to_status)


class PayrollStateMachine:
    """State machine for payroll status transitions.

    Allowed transitions:
    - draft → pending
    - pending → verified
    - verified → approved
    - approved → paid (locks the record)
    - draft/pending/verified/approved → cancelled (reject)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.DRAFT.value: [PayrollStatus.PENDING.value, PayrollStatus.CANCELLED.value],
        PayrollStatus.PENDING.value: [PayrollStatus.VERIFIED.value, PayrollStatus.CANCELLED.value],
        PayrollStatus.VERIFIED.value: [PayrollStatus.APPROVED.value, PayrollStatus.CANCELLED.value],
        PayrollStatus.APPROVED.value: [PayrollStatus.PAID.value, PayrollStatus.CANCELLED.value],
        PayrollStatus.PAID.value: [],  # Terminal state
        PayrollStatus.CANCELLED.value: [],  # Terminal state
    }

    # Statuses where earnings/deductions may still be edited
    FINANCIALLY_MUTABLE = {
        PayrollStatus.DRAFT.value,
        PayrollStatus.PENDING.value,
        PayrollStatus.VERIFIED.value,
        PayrollStatus.APPROVED.value,
    }

    # Statuses where the record may be deleted
    DELETABLE = {
        PayrollStatus.DRAFT.value,
        PayrollStatus.PENDING.value,
        PayrollStatus.VERIFIED.value,
        PayrollStatus.CANCELLED.value,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return list(cls.VALID_TRANSITIONS.get(current_status, []))

    @classmethod
    def can_modify_financials(cls, payroll: PayrollRecord) -> bool:
        """Check if earnings/deductions (update, adjustment) can change."""
        return not payroll.is_locked and payroll.status in cls.FINANCIALLY_MUTABLE

    @classmethod
    def can_delete(cls, payroll: PayrollRecord) -> bool:
        return not payroll.is_locked and payroll.status in cls.DELETABLE

    @classmethod
    def ensure_financials_mutable(cls, payroll: PayrollRecord, operation: str) -> None:
        """Raise InvalidStateError if the record's financials are frozen."""
        if payroll.is_locked or payroll.status == PayrollStatus.PAID.value:
            raise InvalidStateError(
                f"Cannot {operation} a paid or locked payroll",
                status=payroll.status,
            )
        if not cls.can_modify_financials(payroll):
            raise InvalidStateError(
                f"Cannot {operation} a payroll in '{payroll.status}' status",
                status=payroll.status,
            )

    @classmethod
    def ensure_deletable(cls, payroll: PayrollRecord) -> None:
        if payroll.is_locked or payroll.status == PayrollStatus.PAID.value:
            raise InvalidStateError(
                "Cannot delete a paid or locked payroll", status=payroll.status
            )
        if not cls.can_delete(payroll):
            raise InvalidStateError(
                f"Cannot delete a payroll in '{payroll.status}' status",
                status=payroll.status,
            )

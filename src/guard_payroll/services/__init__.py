"""Payroll services."""

from guard_payroll.services.batch_service import BatchItemOutcome, BatchResult, BatchService
from guard_payroll.services.payroll_service import PayrollService
from guard_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollStateMachine,
    PayrollStatus,
)

__all__ = [
    "BatchItemOutcome",
    "BatchResult",
    "BatchService",
    "InvalidTransitionError",
    "PayrollService",
    "PayrollStateMachine",
    "PayrollStatus",
]

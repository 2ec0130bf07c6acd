"""Domain error taxonomy.

Every error carries the HTTP-equivalent status class it maps to so the API
layer can translate without a lookup table. Partial batch failure is not an
error; see ``services.batch_service``.
"""

from __future__ import annotations

from typing import Any


class PayrollError(Exception):
    """Base class for payroll domain errors."""

    status_code: int = 400
    code: str = "PAYROLL_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)


class NotFoundError(PayrollError):
    """A referenced resource does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class GuardNotFoundError(NotFoundError):
    """Guard is missing from the guard directory."""

    code = "GUARD_NOT_FOUND"

    def __init__(self, guard_id: Any):
        self.guard_id = guard_id
        super().__init__("Guard not found", guard_id=str(guard_id))


class PayrollNotFoundError(NotFoundError):
    """Payroll record does not exist."""

    code = "PAYROLL_NOT_FOUND"

    def __init__(self, payroll_id: Any):
        self.payroll_id = payroll_id
        super().__init__("Payroll not found", payroll_id=str(payroll_id))


class ConflictError(PayrollError):
    """Operation conflicts with existing state."""

    status_code = 409
    code = "CONFLICT"


class DuplicatePayrollError(ConflictError):
    """A payroll already exists for the guard and period."""

    code = "PAYROLL_EXISTS"

    def __init__(self, guard_id: Any, month: int, year: int):
        self.guard_id = guard_id
        self.month = month
        self.year = year
        super().__init__(
            f"Payroll already exists for {month}/{year}",
            guard_id=str(guard_id),
            month=month,
            year=year,
        )


class ConcurrentModificationError(ConflictError):
    """The record changed between read and write."""

    code = "CONCURRENT_MODIFICATION"


class InvalidStateError(PayrollError):
    """Operation is not allowed on a locked, paid or cancelled record."""

    code = "INVALID_STATE"


class PayrollValidationError(PayrollError):
    """Malformed input, rejected before any computation."""

    code = "VALIDATION_ERROR"


class RateConfigurationError(PayrollError):
    """A configured payroll rate is not usable."""

    status_code = 500
    code = "RATE_CONFIGURATION_ERROR"

    def __init__(self, key: str, value: Any):
        self.key = key
        self.value = value
        super().__init__(
            f"Setting '{key}' must be a non-negative number, got {value!r}",
            key=key,
        )

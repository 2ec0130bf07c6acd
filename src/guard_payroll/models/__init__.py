"""SQLAlchemy ORM models."""

from guard_payroll.models.base import Base
from guard_payroll.models.guard import AttendanceRecord, Guard, SystemSetting
from guard_payroll.models.payroll import (
    AuditEvent,
    PayrollAdjustment,
    PayrollRecord,
    PayrollRevision,
    PayrollSequence,
)

__all__ = [
    "AttendanceRecord",
    "AuditEvent",
    "Base",
    "Guard",
    "PayrollAdjustment",
    "PayrollRecord",
    "PayrollRevision",
    "PayrollSequence",
    "SystemSetting",
]

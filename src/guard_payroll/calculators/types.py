"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Mapping, TypeVar
from uuid import UUID

from guard_payroll.calculators.money import ZERO, to_decimal

# Assumed paid days in a month and hours in a shift
STANDARD_WORKING_DAYS = Decimal("26")
STANDARD_SHIFT_HOURS = Decimal("8")

# ESI applies only at or below this gross wage
ESI_WAGE_CEILING = Decimal("21000")


class AttendanceStatus(str, Enum):
    """Daily attendance status values."""

    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half_day"
    LATE = "late"
    ON_LEAVE = "on_leave"
    HOLIDAY = "holiday"
    WEEK_OFF = "week_off"


class GuardStatus(str, Enum):
    """Employment status of a guard."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"
    TERMINATED = "terminated"
    SUSPENDED = "suspended"
    TRAINING = "training"


@dataclass(frozen=True)
class AttendanceEntry:
    """One day of attendance as supplied by the attendance store."""

    status: str
    is_late: bool = False
    worked_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO


@dataclass(frozen=True)
class AttendanceSummary:
    """Monthly attendance counts and hour totals for one guard."""

    total_days: int = 0
    present_days: int = 0
    absent_days: int = 0
    half_days: int = 0
    late_days: int = 0
    leave_days: int = 0
    total_hours_worked: Decimal = ZERO
    overtime_hours: Decimal = ZERO

    @property
    def effective_days(self) -> Decimal:
        """Present days with half days counted at half weight."""
        return Decimal(self.present_days) + Decimal("0.5") * Decimal(self.half_days)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_hours_worked"] = str(self.total_hours_worked)
        data["overtime_hours"] = str(self.overtime_hours)
        return data


B = TypeVar("B", bound="AmountBreakdown")


class AmountBreakdown:
    """Shared behaviour for the fixed-field earnings/deductions records."""

    # Name of the catch-all component adjustments are folded into
    catch_all: ClassVar[str]

    @classmethod
    def component_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))  # type: ignore[arg-type]

    @property
    def total(self) -> Decimal:
        return sum((getattr(self, name) for name in self.component_names()), ZERO)

    def to_dict(self) -> dict[str, str]:
        """Serialize amounts as strings for JSON storage."""
        return {name: str(getattr(self, name)) for name in self.component_names()}

    def with_changes(self: B, changes: Mapping[str, Any]) -> B:
        """Return a copy with some components replaced."""
        return replace(self, **{k: to_decimal(v) for k, v in changes.items()})  # type: ignore[type-var]

    def add_to_catch_all(self: B, amount: Decimal) -> B:
        current = getattr(self, self.catch_all)
        return replace(self, **{self.catch_all: current + amount})  # type: ignore[type-var]


@dataclass(frozen=True)
class Earnings(AmountBreakdown):
    """Itemized earnings of a payroll record."""

    catch_all: ClassVar[str] = "other_earnings"

    basic_salary: Decimal = ZERO
    hra: Decimal = ZERO
    travel_allowance: Decimal = ZERO
    food_allowance: Decimal = ZERO
    medical_allowance: Decimal = ZERO
    special_allowance: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    bonus: Decimal = ZERO
    incentive: Decimal = ZERO
    arrears: Decimal = ZERO
    other_earnings: Decimal = ZERO


@dataclass(frozen=True)
class Deductions(AmountBreakdown):
    """Itemized deductions of a payroll record."""

    catch_all: ClassVar[str] = "other_deductions"

    pf: Decimal = ZERO
    esi: Decimal = ZERO
    professional_tax: Decimal = ZERO
    income_tax: Decimal = ZERO
    loan_deduction: Decimal = ZERO
    advance_deduction: Decimal = ZERO
    absent_deduction: Decimal = ZERO
    late_deduction: Decimal = ZERO
    uniform_deduction: Decimal = ZERO
    other_deductions: Decimal = ZERO


@dataclass(frozen=True)
class SalaryStructure:
    """Salary components configured on a guard."""

    basic_salary: Decimal = ZERO
    hra: Decimal = ZERO
    travel_allowance: Decimal = ZERO
    food_allowance: Decimal = ZERO
    medical_allowance: Decimal = ZERO
    special_allowance: Decimal = ZERO

    def component(self, name: str) -> Decimal | None:
        """Configured value for an earnings component, if the guard has one."""
        return getattr(self, name, None)


@dataclass(frozen=True)
class GuardProfile:
    """What the payroll engine needs to know about a guard."""

    guard_id: UUID
    guard_code: str
    full_name: str
    status: str
    salary: SalaryStructure
    pf_eligible: bool = False
    esi_eligible: bool = False
    bank_details: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PayrollRates:
    """Resolved configurable payroll rates."""

    pf_percentage: Decimal
    esi_percentage: Decimal
    professional_tax: Decimal
    overtime_multiplier: Decimal
    late_deduction_per_day: Decimal

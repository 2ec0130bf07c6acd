"""Payroll calculation engine."""

from guard_payroll.calculators.attendance import AttendanceAggregator
from guard_payroll.calculators.deductions import DeductionCalculator
from guard_payroll.calculators.earnings import EarningsCalculator
from guard_payroll.calculators.engine import CalculationResult, PayrollEngine
from guard_payroll.calculators.rate_resolver import RateResolver

__all__ = [
    "AttendanceAggregator",
    "CalculationResult",
    "DeductionCalculator",
    "EarningsCalculator",
    "PayrollEngine",
    "RateResolver",
]

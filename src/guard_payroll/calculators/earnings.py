"""Earnings calculation with attendance pro-ration."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from guard_payroll.calculators.money import ZERO, round_half_up, to_decimal
from guard_payroll.calculators.types import (
    STANDARD_SHIFT_HOURS,
    STANDARD_WORKING_DAYS,
    AttendanceSummary,
    Earnings,
    SalaryStructure,
)


class EarningsCalculator:
    """Builds itemized earnings for one guard-month.

    Each component is the caller's override if given, else the guard's
    configured value, else zero. Overtime pay, unless overridden, is paid at
    the hourly equivalent of the monthly basic times the overtime multiplier.
    Only basic salary is then pro-rated by attendance; allowances are fixed.
    """

    @staticmethod
    def monthly_basic(
        salary: SalaryStructure, overrides: Mapping[str, Any] | None = None
    ) -> Decimal:
        """Contractual basic salary before pro-ration."""
        overrides = overrides or {}
        if overrides.get("basic_salary") is not None:
            return to_decimal(overrides["basic_salary"])
        return salary.basic_salary

    @staticmethod
    def prorate(amount: Decimal, summary: AttendanceSummary) -> Decimal:
        """Scale by effective days over standard days, multiplying first."""
        return round_half_up(amount * summary.effective_days / STANDARD_WORKING_DAYS)

    def calculate(
        self,
        salary: SalaryStructure,
        summary: AttendanceSummary,
        overtime_multiplier: Decimal,
        overrides: Mapping[str, Any] | None = None,
    ) -> Earnings:
        overrides = overrides or {}
        components: dict[str, Decimal] = {}

        for name in Earnings.component_names():
            if overrides.get(name) is not None:
                components[name] = to_decimal(overrides[name])
            elif name == "overtime_pay":
                components[name] = self._overtime_pay(
                    self.monthly_basic(salary, overrides), summary, overtime_multiplier
                )
            else:
                configured = salary.component(name)
                components[name] = configured if configured is not None else ZERO

        components["basic_salary"] = self.prorate(components["basic_salary"], summary)
        return Earnings(**components)

    def _overtime_pay(
        self,
        monthly_basic: Decimal,
        summary: AttendanceSummary,
        overtime_multiplier: Decimal,
    ) -> Decimal:
        if summary.overtime_hours <= 0:
            return ZERO
        hours_in_month = STANDARD_WORKING_DAYS * STANDARD_SHIFT_HOURS
        return round_half_up(
            summary.overtime_hours * monthly_basic * overtime_multiplier / hours_in_month
        )

"""Statutory and attendance-derived deductions."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from guard_payroll.calculators.money import ZERO, round_half_up, to_decimal
from guard_payroll.calculators.types import (
    ESI_WAGE_CEILING,
    STANDARD_WORKING_DAYS,
    AttendanceSummary,
    Deductions,
    Earnings,
    GuardProfile,
    PayrollRates,
)

HUNDRED = Decimal("100")


class DeductionCalculator:
    """Builds itemized deductions for one guard-month.

    - PF: percentage of the pro-rated basic, for PF-eligible guards.
    - ESI: percentage of gross, for ESI-eligible guards whose gross is at or
      below the statutory wage ceiling.
    - Professional tax: flat configured amount.
    - Absence: one day of monthly basic per absent day.
    - Lateness: flat amount per late day.
    Any component the caller overrides is taken as given.
    """

    def calculate(
        self,
        guard: GuardProfile,
        rates: PayrollRates,
        summary: AttendanceSummary,
        earnings: Earnings,
        monthly_basic: Decimal,
        overrides: Mapping[str, Any] | None = None,
    ) -> Deductions:
        overrides = overrides or {}
        computed = {
            "pf": self.provident_fund(guard, rates, earnings.basic_salary),
            "esi": self.employee_state_insurance(guard, rates, earnings.total),
            "professional_tax": rates.professional_tax,
            "absent_deduction": self.absence_penalty(summary, monthly_basic),
            "late_deduction": Decimal(summary.late_days) * rates.late_deduction_per_day,
        }

        components: dict[str, Decimal] = {}
        for name in Deductions.component_names():
            if overrides.get(name) is not None:
                components[name] = to_decimal(overrides[name])
            else:
                components[name] = computed.get(name, ZERO)
        return Deductions(**components)

    @staticmethod
    def provident_fund(
        guard: GuardProfile, rates: PayrollRates, basic_salary: Decimal
    ) -> Decimal:
        if not guard.pf_eligible:
            return ZERO
        return round_half_up(basic_salary * rates.pf_percentage / HUNDRED)

    @staticmethod
    def employee_state_insurance(
        guard: GuardProfile, rates: PayrollRates, gross_salary: Decimal
    ) -> Decimal:
        if not guard.esi_eligible or gross_salary > ESI_WAGE_CEILING:
            return ZERO
        return round_half_up(gross_salary * rates.esi_percentage / HUNDRED)

    @staticmethod
    def absence_penalty(summary: AttendanceSummary, monthly_basic: Decimal) -> Decimal:
        if summary.absent_days == 0:
            return ZERO
        return round_half_up(
            Decimal(summary.absent_days) * monthly_basic / STANDARD_WORKING_DAYS
        )

"""Payroll calculation engine - main orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Protocol
from uuid import UUID

from guard_payroll.calculators.attendance import (
    AttendanceAggregator,
    AttendanceSource,
    month_date_range,
)
from guard_payroll.calculators.deductions import DeductionCalculator
from guard_payroll.calculators.earnings import EarningsCalculator
from guard_payroll.calculators.rate_resolver import RateResolver, SettingsProvider
from guard_payroll.calculators.types import (
    AttendanceSummary,
    Deductions,
    Earnings,
    GuardProfile,
    PayrollRates,
)


class GuardSource(Protocol):
    """Read access to the guard directory."""

    async def get_guard(self, guard_id: UUID) -> GuardProfile:
        """Return the guard or raise GuardNotFoundError."""
        ...


@dataclass
class CalculationResult:
    """Computed payroll figures for one guard-month."""

    guard: GuardProfile
    month: int
    year: int
    period_start: date
    period_end: date
    attendance: AttendanceSummary
    rates: PayrollRates
    earnings: Earnings
    deductions: Deductions

    @property
    def gross_salary(self) -> Decimal:
        return self.earnings.total

    @property
    def total_deductions(self) -> Decimal:
        return self.deductions.total

    @property
    def net_salary(self) -> Decimal:
        return self.gross_salary - self.total_deductions


class PayrollEngine:
    """Main payroll calculation engine.

    Calculation pipeline (stable order per guard):
    1) Load the guard (fails if missing)
    2) Summarize attendance for the calendar month
    3) Resolve configurable rates
    4) Build earnings, pro-rating basic salary
    5) Build deductions against the finished earnings
    """

    def __init__(
        self,
        guards: GuardSource,
        attendance: AttendanceSource,
        settings: SettingsProvider,
    ):
        self.guards = guards
        self.aggregator = AttendanceAggregator(attendance)
        self.rate_resolver = RateResolver(settings)
        self.earnings_calculator = EarningsCalculator()
        self.deduction_calculator = DeductionCalculator()

    async def calculate(
        self,
        guard_id: UUID,
        month: int,
        year: int,
        earnings_overrides: Mapping[str, Any] | None = None,
        deduction_overrides: Mapping[str, Any] | None = None,
    ) -> CalculationResult:
        """Compute a guard's payroll for a month."""
        guard = await self.guards.get_guard(guard_id)
        summary = await self.aggregator.summarize_month(guard_id, month, year)
        rates = await self.rate_resolver.resolve()

        earnings = self.earnings_calculator.calculate(
            guard.salary,
            summary,
            rates.overtime_multiplier,
            earnings_overrides,
        )
        deductions = self.deduction_calculator.calculate(
            guard,
            rates,
            summary,
            earnings,
            EarningsCalculator.monthly_basic(guard.salary, earnings_overrides),
            deduction_overrides,
        )

        period_start, period_end = month_date_range(month, year)
        return CalculationResult(
            guard=guard,
            month=month,
            year=year,
            period_start=period_start,
            period_end=period_end,
            attendance=summary,
            rates=rates,
            earnings=earnings,
            deductions=deductions,
        )

"""Payroll rate resolution from the settings store."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from guard_payroll.calculators.money import to_decimal
from guard_payroll.calculators.types import PayrollRates
from guard_payroll.errors import RateConfigurationError

PF_PERCENTAGE = "pf_percentage"
ESI_PERCENTAGE = "esi_percentage"
PROFESSIONAL_TAX = "professional_tax"
OVERTIME_RATE_MULTIPLIER = "overtime_rate_multiplier"
LATE_DEDUCTION_PER_DAY = "late_deduction_per_day"

DEFAULT_RATES: dict[str, Decimal] = {
    PF_PERCENTAGE: Decimal("12"),
    ESI_PERCENTAGE: Decimal("0.75"),
    PROFESSIONAL_TAX: Decimal("200"),
    OVERTIME_RATE_MULTIPLIER: Decimal("1.5"),
    LATE_DEDUCTION_PER_DAY: Decimal("50"),
}


class SettingsProvider(Protocol):
    """Read access to named configuration values."""

    async def get_setting(self, key: str, default: Any = None) -> Any:
        ...


class RateResolver:
    """Resolves the configurable payroll rates.

    Each rate is looked up by key with its documented default. A stored
    value that is not a non-negative number is a configuration error, never
    silently replaced by the default.
    """

    def __init__(self, settings: SettingsProvider):
        self.settings = settings

    async def resolve(self) -> PayrollRates:
        """Resolve all rates used by the calculators."""
        return PayrollRates(
            pf_percentage=await self.resolve_rate(PF_PERCENTAGE),
            esi_percentage=await self.resolve_rate(ESI_PERCENTAGE),
            professional_tax=await self.resolve_rate(PROFESSIONAL_TAX),
            overtime_multiplier=await self.resolve_rate(OVERTIME_RATE_MULTIPLIER),
            late_deduction_per_day=await self.resolve_rate(LATE_DEDUCTION_PER_DAY),
        )

    async def resolve_rate(self, key: str) -> Decimal:
        """Resolve a single rate by key."""
        raw = await self.settings.get_setting(key, DEFAULT_RATES[key])
        return self._coerce(key, raw)

    @staticmethod
    def _coerce(key: str, raw: Any) -> Decimal:
        try:
            value = to_decimal(raw)
        except (InvalidOperation, TypeError, ValueError):
            raise RateConfigurationError(key, raw) from None
        if not value.is_finite() or value < 0:
            raise RateConfigurationError(key, raw)
        return value

"""Monthly attendance aggregation."""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from guard_payroll.calculators.money import ZERO, to_decimal
from guard_payroll.calculators.types import AttendanceEntry, AttendanceStatus, AttendanceSummary


class AttendanceSource(Protocol):
    """Read access to per-day attendance records."""

    async def list_attendance(
        self, guard_id: UUID, start_date: date, end_date: date
    ) -> list[AttendanceEntry]:
        ...


def month_date_range(month: int, year: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def summarize(entries: Iterable[AttendanceEntry]) -> AttendanceSummary:
    """Fold attendance entries into counts and hour totals.

    A ``late`` status counts as a present day that was late; otherwise
    lateness comes from the entry's ``is_late`` flag. Holidays and week-offs
    only count toward ``total_days``.
    """
    total = present = absent = half = late = leave = 0
    hours: Decimal = ZERO
    overtime: Decimal = ZERO

    for entry in entries:
        total += 1
        status = entry.status
        if status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE):
            present += 1
        elif status == AttendanceStatus.ABSENT:
            absent += 1
        elif status == AttendanceStatus.HALF_DAY:
            half += 1
        elif status == AttendanceStatus.ON_LEAVE:
            leave += 1

        if entry.is_late or status == AttendanceStatus.LATE:
            late += 1

        hours += to_decimal(entry.worked_hours or 0)
        overtime += to_decimal(entry.overtime_hours or 0)

    return AttendanceSummary(
        total_days=total,
        present_days=present,
        absent_days=absent,
        half_days=half,
        late_days=late,
        leave_days=leave,
        total_hours_worked=hours,
        overtime_hours=overtime,
    )


class AttendanceAggregator:
    """Summarizes a guard's attendance for a calendar month."""

    def __init__(self, source: AttendanceSource):
        self.source = source

    async def summarize_month(
        self, guard_id: UUID, month: int, year: int
    ) -> AttendanceSummary:
        start_date, end_date = month_date_range(month, year)
        entries = await self.source.list_attendance(guard_id, start_date, end_date)
        return summarize(entries)

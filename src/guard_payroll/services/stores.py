"""Database-backed collaborators consumed by the payroll engine."""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guard_payroll.calculators.types import AttendanceEntry, GuardProfile, GuardStatus
from guard_payroll.errors import GuardNotFoundError
from guard_payroll.models import AttendanceRecord, Guard, SystemSetting


class SqlGuardDirectory:
    """Guard Directory over the ``guard`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self, guard_id: UUID) -> Guard:
        guard = await self.session.get(Guard, guard_id)
        if guard is None:
            raise GuardNotFoundError(guard_id)
        return guard

    async def get_guard(self, guard_id: UUID) -> GuardProfile:
        guard = await self.load(guard_id)
        return guard.to_profile()

    async def list_active_guard_ids(self) -> list[UUID]:
        result = await self.session.execute(
            select(Guard.guard_id)
            .where(Guard.status == GuardStatus.ACTIVE.value)
            .order_by(Guard.guard_code)
        )
        return list(result.scalars().all())


class SqlAttendanceStore:
    """Attendance Store over the ``attendance_record`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_attendance(
        self, guard_id: UUID, start_date: date, end_date: date
    ) -> list[AttendanceEntry]:
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.guard_id == guard_id,
                AttendanceRecord.attendance_date >= start_date,
                AttendanceRecord.attendance_date <= end_date,
            )
            .order_by(AttendanceRecord.attendance_date)
        )
        return [record.to_entry() for record in result.scalars().all()]


class SqlSettingsStore:
    """Settings Store over the ``system_setting`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_setting(self, key: str, default: Any = None) -> Any:
        result = await self.session.execute(
            select(SystemSetting.value).where(SystemSetting.key == key)
        )
        value = result.scalar_one_or_none()
        return default if value is None else value

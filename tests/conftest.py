"""Pytest fixtures for guard payroll tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from guard_payroll.database import enable_sqlite_savepoints
from guard_payroll.models import AttendanceRecord, Base, Guard, SystemSetting
from tests.fakes import attendance_entries

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ACTOR = "admin-1"


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Data fixtures
# ============================================================================


@pytest.fixture
def make_guard(session: AsyncSession):
    """Factory inserting a guard; keyword arguments override the defaults."""
    counter = {"n": 0}

    async def _make(**overrides: Any) -> Guard:
        counter["n"] += 1
        values: dict[str, Any] = {
            "guard_code": f"NIS-{counter['n']:04d}",
            "first_name": "Ravi",
            "last_name": f"Kumar {counter['n']}",
            "designation": "Security Guard",
            "status": "active",
            "basic_salary": Decimal("15000"),
            "pf_applicable": True,
            "pf_number": "MH/BAN/12345",
            "esi_applicable": True,
            "esi_number": "31-00-123456",
            "bank_account_number": "001234567890",
            "bank_name": "State Bank of India",
            "ifsc_code": "SBIN0001234",
            "created_by": ACTOR,
        }
        values.update(overrides)
        guard = Guard(**values)
        session.add(guard)
        await session.flush()
        return guard

    return _make


@pytest.fixture
def record_attendance(session: AsyncSession):
    """Factory inserting one attendance row per day from the 1st of the month."""

    async def _record(
        guard: Guard,
        month: int,
        year: int,
        present: int = 0,
        absent: int = 0,
        half_day: int = 0,
        late: int = 0,
        on_leave: int = 0,
        overtime_hours: Decimal = Decimal("0"),
    ) -> list[AttendanceRecord]:
        entries = attendance_entries(present, absent, half_day, late, on_leave, overtime_hours)
        start = date(year, month, 1)
        records = [
            AttendanceRecord(
                guard_id=guard.guard_id,
                attendance_date=start + timedelta(days=i),
                shift="day",
                status=entry.status,
                is_late=entry.is_late,
                worked_hours=entry.worked_hours,
                overtime_hours=entry.overtime_hours,
            )
            for i, entry in enumerate(entries)
        ]
        session.add_all(records)
        await session.flush()
        return records

    return _record


@pytest.fixture
def set_setting(session: AsyncSession):
    """Factory inserting a Settings Store value."""

    async def _set(key: str, value: Any, category: str = "payroll") -> SystemSetting:
        setting = SystemSetting(key=key, value=value, category=category)
        session.add(setting)
        await session.flush()
        return setting

    return _set

"""Guard directory, attendance and settings store models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from guard_payroll.calculators.money import ZERO
from guard_payroll.calculators.types import (
    AttendanceEntry,
    GuardProfile,
    SalaryStructure,
)
from guard_payroll.models.base import AuditedMixin, Base, JSONType, Money, TimestampMixin


class Guard(Base, AuditedMixin):
    """Security guard employed by the agency."""

    __tablename__ = "guard"

    guard_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    guard_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    designation: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    # Salary structure
    basic_salary: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    hra: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    travel_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    food_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    medical_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    special_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)

    # Statutory schemes
    pf_applicable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pf_number: Mapped[str | None] = mapped_column(String, nullable=True)
    esi_applicable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    esi_number: Mapped[str | None] = mapped_column(String, nullable=True)

    # Bank details
    bank_account_number: Mapped[str | None] = mapped_column(String, nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String, nullable=True)
    ifsc_code: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'on_leave', 'terminated', 'suspended', 'training')",
            name="guard_status_check",
        ),
        CheckConstraint("basic_salary >= 0", name="guard_basic_salary_check"),
        Index("ix_guard_status", "status"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def bank_details(self) -> dict[str, str]:
        details = {
            "account_number": self.bank_account_number,
            "bank_name": self.bank_name,
            "ifsc_code": self.ifsc_code,
        }
        return {k: v for k, v in details.items() if v}

    def to_profile(self) -> GuardProfile:
        """Project into the shape the payroll engine consumes."""
        return GuardProfile(
            guard_id=self.guard_id,
            guard_code=self.guard_code,
            full_name=self.full_name,
            status=self.status,
            salary=SalaryStructure(
                basic_salary=self.basic_salary,
                hra=self.hra,
                travel_allowance=self.travel_allowance,
                food_allowance=self.food_allowance,
                medical_allowance=self.medical_allowance,
                special_allowance=self.special_allowance,
            ),
            pf_eligible=self.pf_applicable,
            esi_eligible=self.esi_applicable,
            bank_details=self.bank_details,
        )


class AttendanceRecord(Base, TimestampMixin):
    """One day of attendance for a guard."""

    __tablename__ = "attendance_record"

    attendance_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    guard_id: Mapped[UUID] = mapped_column(
        ForeignKey("guard.guard_id", ondelete="CASCADE"),
        nullable=False,
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False)
    shift: Mapped[str] = mapped_column(String, nullable=False, default="day")
    status: Mapped[str] = mapped_column(String, nullable=False, default="present")
    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    worked_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "guard_id", "attendance_date", "shift", name="attendance_guard_date_shift_unique"
        ),
        CheckConstraint(
            "status IN ('present', 'absent', 'half_day', 'late', 'on_leave', 'holiday', 'week_off')",
            name="attendance_status_check",
        ),
        CheckConstraint("shift IN ('day', 'evening', 'night')", name="attendance_shift_check"),
        Index("ix_attendance_guard_date", "guard_id", "attendance_date"),
    )

    def to_entry(self) -> AttendanceEntry:
        return AttendanceEntry(
            status=self.status,
            is_late=self.is_late,
            worked_hours=self.worked_hours,
            overtime_hours=self.overtime_hours,
        )


class SystemSetting(Base, TimestampMixin):
    """Key/value configuration entry."""

    __tablename__ = "system_setting"

    system_setting_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    value: Mapped[Any] = mapped_column(JSONType, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_editable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "category IN ('general', 'company', 'payroll', 'attendance', "
            "'notifications', 'security', 'backup', 'integration')",
            name="system_setting_category_check",
        ),
    )

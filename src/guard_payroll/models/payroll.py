"""Payroll record, its append-only history, and the audit trail."""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guard_payroll.calculators.money import ZERO
from guard_payroll.calculators.types import AttendanceSummary, Deductions, Earnings
from guard_payroll.models.base import AuditedMixin, Base, JSONType, Money, TimestampMixin, utcnow

if TYPE_CHECKING:
    from guard_payroll.models.guard import Guard


class PayrollSequence(Base, TimestampMixin):
    """Monotonic counter backing human-readable payroll numbers.

    Rows are never deleted, so a number is never handed out twice even when
    the payroll that used it is deleted.
    """

    __tablename__ = "payroll_sequence"

    payroll_sequence_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )


class PayrollRecord(Base, AuditedMixin):
    """One guard's payroll for one calendar month."""

    __tablename__ = "payroll_record"

    payroll_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    guard_id: Mapped[UUID] = mapped_column(
        ForeignKey("guard.guard_id", ondelete="RESTRICT"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    # Attendance summary
    total_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    present_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    absent_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    half_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leave_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours_worked: Mapped[Decimal] = mapped_column(
        Numeric(8, 2), nullable=False, default=ZERO
    )
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)

    # Earnings
    basic_salary: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    hra: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    travel_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    food_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    medical_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    special_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    overtime_pay: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    bonus: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    incentive: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    arrears: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    other_earnings: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)

    # Deductions
    pf: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    esi: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    professional_tax: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    income_tax: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    loan_deduction: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    advance_deduction: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    absent_deduction: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    late_deduction: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    uniform_deduction: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    deduction_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Derived totals, always written by recompute_totals()
    gross_salary: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    net_salary: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)

    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    # Approvals
    generated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    generated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Payment
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    transaction_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String, nullable=True)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("guard_id", "month", "year", name="payroll_guard_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_month_check"),
        CheckConstraint(
            "status IN ('draft', 'pending', 'verified', 'approved', 'paid', 'cancelled')",
            name="payroll_status_check",
        ),
        CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('bank_transfer', 'cash', 'cheque', 'upi')",
            name="payroll_payment_method_check",
        ),
        CheckConstraint("revision >= 1", name="payroll_revision_check"),
        Index("ix_payroll_period", "month", "year"),
        Index("ix_payroll_status", "status"),
    )

    # Relationships
    guard: Mapped[Guard] = relationship(lazy="selectin")
    adjustments: Mapped[list[PayrollAdjustment]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PayrollAdjustment.added_at",
    )
    revisions: Mapped[list[PayrollRevision]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PayrollRevision.revision",
    )

    @property
    def earnings(self) -> Earnings:
        return Earnings(**{name: getattr(self, name) for name in Earnings.component_names()})

    @property
    def deductions(self) -> Deductions:
        return Deductions(
            **{name: getattr(self, name) for name in Deductions.component_names()}
        )

    @property
    def attendance_summary(self) -> AttendanceSummary:
        return AttendanceSummary(
            total_days=self.total_days,
            present_days=self.present_days,
            absent_days=self.absent_days,
            half_days=self.half_days,
            late_days=self.late_days,
            leave_days=self.leave_days,
            total_hours_worked=self.total_hours_worked,
            overtime_hours=self.overtime_hours,
        )

    @property
    def period_label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def set_attendance(self, summary: AttendanceSummary) -> None:
        self.total_days = summary.total_days
        self.present_days = summary.present_days
        self.absent_days = summary.absent_days
        self.half_days = summary.half_days
        self.late_days = summary.late_days
        self.leave_days = summary.leave_days
        self.total_hours_worked = summary.total_hours_worked
        self.overtime_hours = summary.overtime_hours

    def apply_financials(
        self,
        earnings: Earnings | None = None,
        deductions: Deductions | None = None,
    ) -> None:
        """Write earnings and/or deductions and re-derive all totals."""
        if earnings is not None:
            for name in Earnings.component_names():
                setattr(self, name, getattr(earnings, name))
        if deductions is not None:
            for name in Deductions.component_names():
                setattr(self, name, getattr(deductions, name))
        self.recompute_totals()

    def recompute_totals(self) -> None:
        self.gross_salary = self.earnings.total
        self.total_deductions = self.deductions.total
        self.net_salary = self.gross_salary - self.total_deductions

    def financial_snapshot(self) -> dict[str, Any]:
        """JSON-safe copy of earnings, deductions and totals."""
        return {
            "earnings": self.earnings.to_dict(),
            "deductions": self.deductions.to_dict(),
            "gross_salary": str(self.gross_salary),
            "total_deductions": str(self.total_deductions),
            "net_salary": str(self.net_salary),
        }


class PayrollAdjustment(Base):
    """Manual addition or deduction applied to a payroll record."""

    __tablename__ = "payroll_adjustment"

    payroll_adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_record_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_record.payroll_record_id", ondelete="CASCADE"),
        nullable=False,
    )
    adjustment_type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    added_by: Mapped[str] = mapped_column(String, nullable=False)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "adjustment_type IN ('addition', 'deduction')",
            name="payroll_adjustment_type_check",
        ),
        CheckConstraint("amount >= 0", name="payroll_adjustment_amount_check"),
    )

    payroll: Mapped[PayrollRecord] = relationship(back_populates="adjustments")


class PayrollRevision(Base):
    """Financial snapshot taken immediately before a post-generation edit."""

    __tablename__ = "payroll_revision"

    payroll_revision_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_record_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_record.payroll_record_id", ondelete="CASCADE"),
        nullable=False,
    )
    revision: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by: Mapped[str] = mapped_column(String, nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("payroll_record_id", "revision", name="payroll_revision_unique"),
    )

    payroll: Mapped[PayrollRecord] = relationship(back_populates="revisions")


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor_id: Mapped[str] = mapped_column(String, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reference: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    before_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    after_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (Index("ix_audit_event_entity", "entity_type", "entity_id"),)

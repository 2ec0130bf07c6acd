"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from guard_payroll.services.batch_service import ItemOutcome

Month = Annotated[int, Field(ge=1, le=12)]
Year = Annotated[int, Field(ge=2000, le=2100)]
Amount = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]

PaymentMethod = Literal["bank_transfer", "cash", "cheque", "upi"]


# ============================================================================
# Component schemas
# ============================================================================


class EarningsInput(BaseModel):
    """Earnings overrides; omitted components keep their computed value."""

    model_config = ConfigDict(extra="forbid")

    basic_salary: Amount | None = None
    hra: Amount | None = None
    travel_allowance: Amount | None = None
    food_allowance: Amount | None = None
    medical_allowance: Amount | None = None
    special_allowance: Amount | None = None
    overtime_pay: Amount | None = None
    bonus: Amount | None = None
    incentive: Amount | None = None
    arrears: Amount | None = None
    other_earnings: Amount | None = None


class DeductionsInput(BaseModel):
    """Deduction overrides; omitted components keep their computed value."""

    model_config = ConfigDict(extra="forbid")

    pf: Amount | None = None
    esi: Amount | None = None
    professional_tax: Amount | None = None
    income_tax: Amount | None = None
    loan_deduction: Amount | None = None
    advance_deduction: Amount | None = None
    absent_deduction: Amount | None = None
    late_deduction: Amount | None = None
    uniform_deduction: Amount | None = None
    other_deductions: Amount | None = None


class EarningsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    basic_salary: Decimal
    hra: Decimal
    travel_allowance: Decimal
    food_allowance: Decimal
    medical_allowance: Decimal
    special_allowance: Decimal
    overtime_pay: Decimal
    bonus: Decimal
    incentive: Decimal
    arrears: Decimal
    other_earnings: Decimal


class DeductionsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pf: Decimal
    esi: Decimal
    professional_tax: Decimal
    income_tax: Decimal
    loan_deduction: Decimal
    advance_deduction: Decimal
    absent_deduction: Decimal
    late_deduction: Decimal
    uniform_deduction: Decimal
    other_deductions: Decimal


class AttendanceSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_days: int
    present_days: int
    absent_days: int
    half_days: int
    late_days: int
    leave_days: int
    total_hours_worked: Decimal
    overtime_hours: Decimal


# ============================================================================
# Payroll request schemas
# ============================================================================


class GeneratePayrollRequest(BaseModel):
    """Schema for generating one guard's payroll."""

    guard_id: UUID
    month: Month
    year: Year
    earnings: EarningsInput | None = None
    deductions: DeductionsInput | None = None
    remarks: str | None = None


class BulkGenerateRequest(BaseModel):
    """Schema for bulk generation over listed guards or every active guard."""

    month: Month
    year: Year
    guard_ids: Annotated[list[UUID], Field(min_length=1)] | None = None
    all_active_guards: bool = False
    remarks: str | None = None

    @model_validator(mode="after")
    def require_explicit_target(self) -> "BulkGenerateRequest":
        if self.all_active_guards == (self.guard_ids is not None):
            raise ValueError("Provide exactly one of guard_ids or all_active_guards")
        return self


class UpdatePayrollRequest(BaseModel):
    """Schema for editing a payroll's financials."""

    earnings: EarningsInput | None = None
    deductions: DeductionsInput | None = None
    remarks: str | None = None
    deduction_remarks: str | None = None
    reason: str | None = None


class AdjustmentRequest(BaseModel):
    """Schema for a manual adjustment."""

    type: Literal["addition", "deduction"]
    category: str = Field(min_length=1)
    amount: Amount
    reason: str = Field(min_length=1)


class WorkflowRequest(BaseModel):
    """Optional body for verify/approve."""

    remarks: str | None = None


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1)


class ChequeDetails(BaseModel):
    cheque_number: str | None = None
    cheque_date: date | None = None
    bank_name: str | None = None


class PaymentRequest(BaseModel):
    """Schema for paying an approved payroll."""

    payment_method: PaymentMethod
    transaction_reference: str | None = None
    bank_details: dict[str, str] | None = None
    cheque_details: ChequeDetails | None = None
    remarks: str | None = None

    @model_validator(mode="after")
    def require_reference_for_electronic(self) -> "PaymentRequest":
        if self.payment_method in ("bank_transfer", "upi") and not self.transaction_reference:
            raise ValueError(
                "Transaction ID is required for bank transfer and UPI payments"
            )
        return self


class BulkPayRequest(BaseModel):
    """Schema for paying many approved payrolls with one method."""

    payroll_ids: list[UUID] = Field(min_length=1)
    payment_method: PaymentMethod
    transaction_references: dict[UUID, str] | None = None
    batch_reference: str | None = None
    remarks: str | None = None


# ============================================================================
# Payroll response schemas
# ============================================================================


class AdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_adjustment_id: UUID
    adjustment_type: str
    category: str
    amount: Decimal
    reason: str
    added_by: str
    added_at: datetime


class RevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    revision: int
    data: dict[str, Any]
    reason: str
    changed_by: str
    changed_at: datetime


class PayrollResponse(BaseModel):
    """Schema for payroll response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_record_id: UUID
    payroll_number: str
    guard_id: UUID
    month: int
    year: int
    period_start: date
    period_end: date
    attendance_summary: AttendanceSummaryResponse
    earnings: EarningsResponse
    deductions: DeductionsResponse
    deduction_remarks: str | None = None
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: str
    generated_by: str | None = None
    generated_at: datetime | None = None
    verified_by: str | None = None
    verified_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    payment_method: str | None = None
    transaction_reference: str | None = None
    payment_details: dict[str, Any] | None = None
    paid_at: datetime | None = None
    paid_by: str | None = None
    remarks: str | None = None
    is_locked: bool
    revision: int
    adjustments: list[AdjustmentResponse] = []
    revisions: list[RevisionResponse] = []
    created_by: str
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


class PayrollSummaryResponse(BaseModel):
    """Schema for payroll rows in listings."""

    model_config = ConfigDict(from_attributes=True)

    payroll_record_id: UUID
    payroll_number: str
    guard_id: UUID
    month: int
    year: int
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: str
    is_locked: bool
    paid_at: datetime | None = None


class PayrollListResponse(BaseModel):
    """Schema for listing payrolls."""

    items: list[PayrollSummaryResponse]
    total: int
    page: int
    page_size: int


class BatchItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    outcome: ItemOutcome
    payroll_id: UUID | None = None
    payroll_number: str | None = None
    net_salary: Decimal | None = None
    error: str | None = None


class BatchResultResponse(BaseModel):
    """Per-item outcomes of a batch call."""

    model_config = ConfigDict(from_attributes=True)

    success: list[BatchItemResponse]
    failed: list[BatchItemResponse]
    skipped: list[BatchItemResponse]
    counts: dict[str, int]


class PayslipGuard(BaseModel):
    guard_id: UUID
    guard_code: str
    name: str
    designation: str | None = None
    pf_number: str | None = None
    esi_number: str | None = None


class PayslipPayment(BaseModel):
    method: str | None = None
    transaction_reference: str | None = None
    paid_at: datetime | None = None
    details: dict[str, Any] = {}


class PayslipResponse(BaseModel):
    """Schema for a printable payslip."""

    company_name: str
    payroll_number: str
    period: str
    period_start: date
    period_end: date
    status: str
    guard: PayslipGuard
    attendance: AttendanceSummaryResponse
    earnings: EarningsResponse
    deductions: DeductionsResponse
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    payment: PayslipPayment


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None

"""Payroll API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from guard_payroll.api.dependencies import ActorId, DbSession
from guard_payroll.api.schemas import (
    AdjustmentRequest,
    BatchResultResponse,
    BulkGenerateRequest,
    BulkPayRequest,
    ErrorResponse,
    GeneratePayrollRequest,
    PaymentRequest,
    PayrollListResponse,
    PayrollResponse,
    PayrollSummaryResponse,
    PayslipResponse,
    RejectRequest,
    UpdatePayrollRequest,
    WorkflowRequest,
)
from guard_payroll.services.batch_service import BatchService
from guard_payroll.services.payroll_service import PayrollService
from guard_payroll.services.state_machine import PayrollStatus

router = APIRouter(prefix="/payroll", tags=["payroll"])

PayrollId = Annotated[UUID, Path(description="Payroll record ID")]

ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ============================================================================
# Reads
# ============================================================================


@router.get("", response_model=PayrollListResponse)
async def list_payrolls(
    db: DbSession,
    guard_id: UUID | None = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: Annotated[int | None, Query(ge=2000, le=2100)] = None,
    status_filter: Annotated[PayrollStatus | None, Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> PayrollListResponse:
    """List payrolls with optional filters, newest period first."""
    service = PayrollService(db)
    items, total = await service.list_payrolls(
        guard_id=guard_id,
        month=month,
        year=year,
        status=status_filter.value if status_filter else None,
        page=page,
        page_size=page_size,
    )
    return PayrollListResponse(
        items=[PayrollSummaryResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/guard/{guard_id}/history",
    response_model=list[PayrollSummaryResponse],
    responses=ERRORS,
)
async def guard_history(db: DbSession, guard_id: UUID) -> list[PayrollSummaryResponse]:
    """Last twelve payrolls of a guard."""
    payrolls = await PayrollService(db).history(guard_id)
    return [PayrollSummaryResponse.model_validate(p) for p in payrolls]


@router.get("/{payroll_id}", response_model=PayrollResponse, responses=ERRORS)
async def get_payroll(db: DbSession, payroll_id: PayrollId) -> PayrollResponse:
    payroll = await PayrollService(db).get(payroll_id)
    return PayrollResponse.model_validate(payroll)


@router.get("/{payroll_id}/payslip", response_model=PayslipResponse, responses=ERRORS)
async def get_payslip(db: DbSession, payroll_id: PayrollId) -> PayslipResponse:
    payslip = await PayrollService(db).payslip(payroll_id)
    return PayslipResponse.model_validate(payslip)


# ============================================================================
# Generation
# ============================================================================


@router.post(
    "/generate",
    response_model=PayrollResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def generate_payroll(
    db: DbSession, actor_id: ActorId, payload: GeneratePayrollRequest
) -> PayrollResponse:
    """Generate a guard's payroll for a month from attendance."""
    payroll = await PayrollService(db).generate(
        payload.guard_id,
        payload.month,
        payload.year,
        actor_id,
        earnings=payload.earnings.model_dump(exclude_none=True) if payload.earnings else None,
        deductions=(
            payload.deductions.model_dump(exclude_none=True) if payload.deductions else None
        ),
        remarks=payload.remarks,
    )
    await db.commit()
    return PayrollResponse.model_validate(payroll)


@router.post("/bulk-generate", response_model=BatchResultResponse)
async def bulk_generate(
    db: DbSession, actor_id: ActorId, payload: BulkGenerateRequest
) -> BatchResultResponse:
    """Generate payrolls for many guards; per-guard failures do not abort the batch."""
    result = await BatchService(db).bulk_generate(
        payload.month,
        payload.year,
        actor_id,
        guard_ids=None if payload.all_active_guards else payload.guard_ids,
        remarks=payload.remarks,
    )
    await db.commit()
    return BatchResultResponse.model_validate(result)


@router.post("/bulk-pay", response_model=BatchResultResponse)
async def bulk_pay(
    db: DbSession, actor_id: ActorId, payload: BulkPayRequest
) -> BatchResultResponse:
    """Pay many approved payrolls; per-record failures do not abort the batch."""
    result = await BatchService(db).bulk_pay(
        payload.payroll_ids,
        actor_id,
        payload.payment_method,
        transaction_references=payload.transaction_references,
        batch_reference=payload.batch_reference,
        remarks=payload.remarks,
    )
    await db.commit()
    return BatchResultResponse.model_validate(result)


# ============================================================================
# Financial edits
# ============================================================================


@router.put("/{payroll_id}", response_model=PayrollResponse, responses=ERRORS)
async def update_payroll(
    db: DbSession,
    actor_id: ActorId,
    payroll_id: PayrollId,
    payload: UpdatePayrollRequest,
) -> PayrollResponse:
    payroll = await PayrollService(db).update(
        payroll_id,
        actor_id,
        earnings=payload.earnings.model_dump(exclude_none=True) if payload.earnings else None,
        deductions=(
            payload.deductions.model_dump(exclude_none=True) if payload.deductions else None
        ),
        remarks=payload.remarks,
        deduction_remarks=payload.deduction_remarks,
        reason=payload.reason,
    )
    await db.commit()
    return PayrollResponse.model_validate(payroll)


@router.post(
    "/{payroll_id}/adjustments",
    response_model=PayrollResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def add_adjustment(
    db: DbSession,
    actor_id: ActorId,
    payroll_id: PayrollId,
    payload: AdjustmentRequest,
) -> PayrollResponse:
    payroll = await PayrollService(db).add_adjustment(
        payroll_id,
        actor_id,
        payload.type,
        payload.category,
        payload.amount,
        payload.reason,
    )
    await db.commit()
    return PayrollResponse.model_validate(payroll)


# ============================================================================
# Workflow
# ============================================================================


@router.patch("/{payroll_id}/verify", response_model=PayrollResponse, responses=ERRORS)
async def verify_payroll(
    db: DbSession,
    actor_id: ActorId,
    payroll_id: PayrollId,
    payload: WorkflowRequest | None = None,
) -> PayrollResponse:
    payroll = await PayrollService(db).verify(
        payroll_id, actor_id, remarks=payload.remarks if payload else None
    )
    await db.commit()
    return PayrollResponse.model_validate(payroll)


@router.patch("/{payroll_id}/approve", response_model=PayrollResponse, responses=ERRORS)
async def approve_payroll(
    db: DbSession,
    actor_id: ActorId,
    payroll_id: PayrollId,
    payload: WorkflowRequest | None = None,
) -> PayrollResponse:
    payroll = await PayrollService(db).approve(
        payroll_id, actor_id, remarks=payload.remarks if payload else None
    )
    await db.commit()
    return PayrollResponse.model_validate(payroll)


@router.patch("/{payroll_id}/reject", response_model=PayrollResponse, responses=ERRORS)
async def reject_payroll(
    db: DbSession,
    actor_id: ActorId,
    payroll_id: PayrollId,
    payload: RejectRequest,
) -> PayrollResponse:
    payroll = await PayrollService(db).reject(payroll_id, actor_id, payload.reason)
    await db.commit()
    return PayrollResponse.model_validate(payroll)


@router.post("/{payroll_id}/pay", response_model=PayrollResponse, responses=ERRORS)
async def pay_payroll(
    db: DbSession,
    actor_id: ActorId,
    payroll_id: PayrollId,
    payload: PaymentRequest,
) -> PayrollResponse:
    """Record payment; the payroll is locked afterwards."""
    payroll = await PayrollService(db).pay(
        payroll_id,
        actor_id,
        payload.payment_method,
        transaction_reference=payload.transaction_reference,
        bank_details=payload.bank_details,
        cheque_details=(
            payload.cheque_details.model_dump(mode="json", exclude_none=True)
            if payload.cheque_details
            else None
        ),
        remarks=payload.remarks,
    )
    await db.commit()
    return PayrollResponse.model_validate(payroll)


@router.delete(
    "/{payroll_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERRORS,
)
async def delete_payroll(db: DbSession, actor_id: ActorId, payroll_id: PayrollId) -> Response:
    await PayrollService(db).delete(payroll_id, actor_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

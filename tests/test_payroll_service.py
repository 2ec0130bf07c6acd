"""Tests for payroll generation and workflow operations."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from guard_payroll.errors import (
    ConcurrentModificationError,
    DuplicatePayrollError,
    GuardNotFoundError,
    InvalidStateError,
    PayrollNotFoundError,
    PayrollValidationError,
)
from guard_payroll.models import AuditEvent, PayrollRecord
from guard_payroll.services.payroll_service import PayrollService, format_payroll_number
from guard_payroll.services.state_machine import InvalidTransitionError

ACTOR = "hr-manager"


@pytest.fixture
async def guard(make_guard, record_attendance, set_setting):
    """PF-only guard with 24 present and 2 absent days in March 2024."""
    guard = await make_guard(esi_applicable=False)
    await record_attendance(guard, 3, 2024, present=24, absent=2)
    await set_setting("professional_tax", 0)
    return guard


@pytest.fixture
def service(session) -> PayrollService:
    return PayrollService(session)


async def approved_payroll(service: PayrollService, guard) -> PayrollRecord:
    payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
    await service.verify(payroll.payroll_record_id, "supervisor")
    return await service.approve(payroll.payroll_record_id, "director")


async def count_payrolls(session) -> int:
    result = await session.execute(select(func.count()).select_from(PayrollRecord))
    return result.scalar_one()


class TestGenerate:
    """Test payroll generation."""

    async def test_generate_reference_month(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        assert payroll.status == "pending"
        assert payroll.revision == 1
        assert payroll.is_locked is False
        assert payroll.present_days == 24
        assert payroll.absent_days == 2
        assert payroll.basic_salary == Decimal("13846")
        assert payroll.gross_salary == Decimal("13846")
        assert payroll.pf == Decimal("1662")
        assert payroll.absent_deduction == Decimal("1154")
        assert payroll.net_salary == Decimal("11030")
        assert payroll.generated_by == ACTOR
        assert payroll.period_label == "March 2024"

    async def test_payroll_number_format(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        assert payroll.payroll_number == "PAY-202403-00001"
        assert format_payroll_number(11, 2025, 42) == "PAY-202511-00042"

    async def test_generate_records_audit_event(self, session, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        result = await session.execute(
            select(AuditEvent).where(AuditEvent.entity_id == payroll.payroll_record_id)
        )
        events = result.scalars().all()
        assert [e.action for e in events] == ["create"]
        assert events[0].actor_id == ACTOR
        assert events[0].reference == payroll.payroll_number
        assert Decimal(events[0].after_json["net_salary"]) == Decimal("11030")

    async def test_second_generate_is_conflict(self, session, service, guard):
        await service.generate(guard.guard_id, 3, 2024, ACTOR)

        with pytest.raises(DuplicatePayrollError) as exc_info:
            await service.generate(guard.guard_id, 3, 2024, ACTOR)

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Payroll already exists for 3/2024"
        assert await count_payrolls(session) == 1

    async def test_unique_constraint_catches_race(self, session, service, guard, monkeypatch):
        """Test that storage rejects a duplicate the pre-check missed."""
        await service.generate(guard.guard_id, 3, 2024, ACTOR)

        async def nothing_found(*args):
            return None

        monkeypatch.setattr(service, "find_existing", nothing_found)

        with pytest.raises(DuplicatePayrollError):
            await service.generate(guard.guard_id, 3, 2024, ACTOR)

        assert await count_payrolls(session) == 1

    async def test_payroll_numbers_never_reused(self, service, guard):
        first = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.delete(first.payroll_record_id, ACTOR)

        second = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        assert first.payroll_number == "PAY-202403-00001"
        assert second.payroll_number == "PAY-202403-00002"

    async def test_different_month_is_not_duplicate(self, service, guard):
        march = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        april = await service.generate(guard.guard_id, 4, 2024, ACTOR)

        assert march.payroll_record_id != april.payroll_record_id
        assert april.basic_salary == Decimal("0")

    async def test_missing_guard_not_found(self, session, service):
        with pytest.raises(GuardNotFoundError) as exc_info:
            await service.generate(uuid4(), 3, 2024, ACTOR)

        assert exc_info.value.status_code == 404
        assert await count_payrolls(session) == 0

    async def test_overrides_applied(self, service, guard):
        payroll = await service.generate(
            guard.guard_id,
            3,
            2024,
            ACTOR,
            earnings={"bonus": 1000},
            deductions={"advance_deduction": "500"},
            remarks="Festival bonus",
        )

        assert payroll.bonus == Decimal("1000")
        assert payroll.advance_deduction == Decimal("500")
        assert payroll.net_salary == Decimal("11530")
        assert payroll.remarks == "Festival bonus"

    @pytest.mark.parametrize(
        "month,year",
        [(0, 2024), (13, 2024), (3, 1999), (3, 2101)],
    )
    async def test_period_validated(self, session, service, guard, month, year):
        with pytest.raises(PayrollValidationError):
            await service.generate(guard.guard_id, month, year, ACTOR)

        assert await count_payrolls(session) == 0

    async def test_negative_override_rejected(self, service, guard):
        with pytest.raises(PayrollValidationError):
            await service.generate(guard.guard_id, 3, 2024, ACTOR, earnings={"bonus": -1})

    async def test_unknown_component_rejected(self, service, guard):
        with pytest.raises(PayrollValidationError):
            await service.generate(guard.guard_id, 3, 2024, ACTOR, earnings={"tips": 10})


class TestWorkflow:
    """Test verify/approve/reject/pay transitions."""

    async def test_verify_then_approve(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        payroll = await service.verify(payroll.payroll_record_id, "supervisor")
        assert payroll.status == "verified"
        assert payroll.verified_by == "supervisor"
        assert payroll.verified_at is not None

        payroll = await service.approve(payroll.payroll_record_id, "director")
        assert payroll.status == "approved"
        assert payroll.approved_by == "director"

    async def test_approve_pending_fails_and_keeps_status(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        with pytest.raises(InvalidTransitionError):
            await service.approve(payroll.payroll_record_id, "director")

        reloaded = await service.get(payroll.payroll_record_id)
        assert reloaded.status == "pending"
        assert reloaded.approved_by is None

    async def test_verify_twice_fails(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.verify(payroll.payroll_record_id, "supervisor")

        with pytest.raises(InvalidTransitionError):
            await service.verify(payroll.payroll_record_id, "supervisor")

    async def test_reject_cancels(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        payroll = await service.reject(payroll.payroll_record_id, "director", "Wrong attendance")

        assert payroll.status == "cancelled"
        assert payroll.rejected_by == "director"
        assert payroll.rejection_reason == "Wrong attendance"
        assert payroll.is_locked is False

    async def test_reject_requires_reason(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        with pytest.raises(PayrollValidationError):
            await service.reject(payroll.payroll_record_id, "director", "  ")

    async def test_cancelled_is_terminal(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.reject(payroll.payroll_record_id, "director", "Duplicate")

        with pytest.raises(InvalidTransitionError):
            await service.verify(payroll.payroll_record_id, "supervisor")
        with pytest.raises(InvalidTransitionError):
            await service.pay(payroll.payroll_record_id, "accounts", "cash")

        reloaded = await service.get(payroll.payroll_record_id)
        assert reloaded.status == "cancelled"

    async def test_cancelled_record_is_frozen(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.reject(payroll.payroll_record_id, "director", "Wrong bonus")

        with pytest.raises(InvalidStateError):
            await service.update(payroll.payroll_record_id, ACTOR, earnings={"bonus": 1})
        with pytest.raises(InvalidStateError):
            await service.add_adjustment(
                payroll.payroll_record_id, ACTOR, "addition", "bonus", 1, "Late fix"
            )

        reloaded = await service.get(payroll.payroll_record_id)
        assert reloaded.revision == 1

    async def test_pay_locks_record(self, service, guard):
        payroll = await approved_payroll(service, guard)

        payroll = await service.pay(
            payroll.payroll_record_id, "accounts", "bank_transfer", "UTR123456"
        )

        assert payroll.status == "paid"
        assert payroll.is_locked is True
        assert payroll.paid_by == "accounts"
        assert payroll.paid_at is not None
        assert payroll.transaction_reference == "UTR123456"
        assert payroll.payment_details["bank_details"]["ifsc_code"] == "SBIN0001234"

    async def test_pay_requires_approval(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        with pytest.raises(InvalidTransitionError):
            await service.pay(payroll.payroll_record_id, "accounts", "cash")

    @pytest.mark.parametrize("method", ["bank_transfer", "upi"])
    async def test_electronic_payment_requires_reference(self, service, guard, method):
        payroll = await approved_payroll(service, guard)

        with pytest.raises(PayrollValidationError):
            await service.pay(payroll.payroll_record_id, "accounts", method)

        reloaded = await service.get(payroll.payroll_record_id)
        assert reloaded.status == "approved"

    async def test_cash_and_cheque_need_no_reference(self, service, guard, make_guard):
        payroll = await approved_payroll(service, guard)
        paid = await service.pay(payroll.payroll_record_id, "accounts", "cash")
        assert paid.status == "paid"
        assert paid.transaction_reference is None

        other = await make_guard()
        cheque_payroll = await approved_payroll(service, other)
        paid = await service.pay(
            cheque_payroll.payroll_record_id,
            "accounts",
            "cheque",
            cheque_details={"cheque_number": "004512", "bank_name": "HDFC"},
        )
        assert paid.payment_details["cheque_details"]["cheque_number"] == "004512"

    async def test_unknown_payment_method(self, service, guard):
        payroll = await approved_payroll(service, guard)

        with pytest.raises(PayrollValidationError):
            await service.pay(payroll.payroll_record_id, "accounts", "crypto", "x")

    async def test_stale_status_is_concurrent_modification(self, session, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        # Another writer verifies behind this session's back
        await session.execute(
            update(PayrollRecord)
            .where(PayrollRecord.payroll_record_id == payroll.payroll_record_id)
            .values(status="verified")
            .execution_options(synchronize_session=False)
        )
        assert payroll.status == "pending"

        with pytest.raises(ConcurrentModificationError):
            await service._transition(payroll, "verified", "supervisor", {})

    async def test_transitions_audited(self, session, service, guard):
        payroll = await approved_payroll(service, guard)
        await service.pay(payroll.payroll_record_id, "accounts", "cash")

        result = await session.execute(
            select(AuditEvent.action)
            .where(AuditEvent.entity_id == payroll.payroll_record_id)
        )
        assert sorted(result.scalars().all()) == ["approve", "create", "payment", "verify"]


class TestLocking:
    """Test that a paid payroll cannot change."""

    async def test_paid_record_rejects_edits(self, service, guard):
        payroll = await approved_payroll(service, guard)
        await service.pay(payroll.payroll_record_id, "accounts", "cash")
        payroll_id = payroll.payroll_record_id

        with pytest.raises(InvalidStateError):
            await service.update(payroll_id, ACTOR, earnings={"bonus": 100})
        with pytest.raises(InvalidStateError):
            await service.add_adjustment(payroll_id, ACTOR, "addition", "bonus", 100, "Late")
        with pytest.raises(InvalidStateError):
            await service.delete(payroll_id, ACTOR)
        with pytest.raises(InvalidTransitionError):
            await service.reject(payroll_id, ACTOR, "Too late")

        reloaded = await service.get(payroll_id)
        assert reloaded.is_locked is True
        assert reloaded.status == "paid"
        assert reloaded.bonus == Decimal("0")


class TestRevisions:
    """Test revision capture on financial edits."""

    async def test_update_captures_revision(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        payroll = await service.update(
            payroll.payroll_record_id,
            "supervisor",
            earnings={"bonus": 1000},
            deductions={"loan_deduction": 250},
            reason="Diwali bonus",
        )

        assert payroll.revision == 2
        assert len(payroll.revisions) == 1
        snapshot = payroll.revisions[0]
        assert snapshot.revision == 1
        assert snapshot.reason == "Diwali bonus"
        assert snapshot.changed_by == "supervisor"
        assert Decimal(snapshot.data["gross_salary"]) == Decimal("13846")
        assert Decimal(snapshot.data["net_salary"]) == Decimal("11030")
        assert Decimal(snapshot.data["earnings"]["bonus"]) == Decimal("0")

        assert payroll.gross_salary == Decimal("14846")
        assert payroll.total_deductions == Decimal("3066")
        assert payroll.net_salary == Decimal("11780")

    async def test_each_update_appends(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.update(payroll.payroll_record_id, ACTOR, earnings={"bonus": 100})
        payroll = await service.update(
            payroll.payroll_record_id, ACTOR, earnings={"bonus": 200}
        )

        assert payroll.revision == 3
        assert [r.revision for r in payroll.revisions] == [1, 2]
        assert Decimal(payroll.revisions[1].data["earnings"]["bonus"]) == Decimal("100")

    async def test_update_in_verified_state(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.verify(payroll.payroll_record_id, "supervisor")

        payroll = await service.update(
            payroll.payroll_record_id, ACTOR, remarks="Checked", deduction_remarks="Uniform"
        )

        assert payroll.status == "verified"
        assert payroll.remarks == "Checked"
        assert payroll.deduction_remarks == "Uniform"
        assert payroll.revision == 2

    async def test_update_audit_has_before_and_after(self, session, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.update(payroll.payroll_record_id, ACTOR, earnings={"arrears": 400})

        result = await session.execute(
            select(AuditEvent).where(AuditEvent.action == "update")
        )
        event = result.scalar_one()
        assert Decimal(event.before_json["net_salary"]) == Decimal("11030")
        assert Decimal(event.after_json["net_salary"]) == Decimal("11430")

    async def test_stale_revision_is_concurrent_modification(self, session, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await session.execute(
            update(PayrollRecord)
            .where(PayrollRecord.payroll_record_id == payroll.payroll_record_id)
            .values(revision=5)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConcurrentModificationError):
            await service._capture_revision(payroll, ACTOR, "stale")


class TestAdjustments:
    """Test manual adjustments."""

    async def test_addition_goes_to_other_earnings(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        payroll = await service.add_adjustment(
            payroll.payroll_record_id, "supervisor", "addition", "night_allowance", 600,
            "Extra night shifts",
        )

        assert payroll.other_earnings == Decimal("600")
        assert payroll.gross_salary == Decimal("14446")
        assert payroll.net_salary == Decimal("11630")
        assert payroll.revision == 2
        assert len(payroll.revisions) == 1
        assert len(payroll.adjustments) == 1
        adjustment = payroll.adjustments[0]
        assert adjustment.adjustment_type == "addition"
        assert adjustment.category == "night_allowance"
        assert adjustment.added_by == "supervisor"

    async def test_deduction_goes_to_other_deductions(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        payroll = await service.add_adjustment(
            payroll.payroll_record_id, ACTOR, "deduction", "damage", "150.50", "Lost radio"
        )

        assert payroll.other_deductions == Decimal("150.50")
        assert payroll.net_salary == Decimal("10879.50")

    async def test_adjustments_accumulate(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.add_adjustment(
            payroll.payroll_record_id, ACTOR, "addition", "bonus", 100, "One"
        )
        payroll = await service.add_adjustment(
            payroll.payroll_record_id, ACTOR, "addition", "bonus", 50, "Two"
        )

        assert payroll.other_earnings == Decimal("150")
        assert len(payroll.adjustments) == 2

    @pytest.mark.parametrize(
        "adjustment_type,amount,reason",
        [("bonus", 100, "x"), ("addition", -5, "x"), ("addition", 100, "")],
    )
    async def test_invalid_adjustment(self, service, guard, adjustment_type, amount, reason):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        with pytest.raises(PayrollValidationError):
            await service.add_adjustment(
                payroll.payroll_record_id, ACTOR, adjustment_type, "misc", amount, reason
            )


class TestAmountPrecision:
    """Test that stored totals always match the stored components."""

    async def test_sub_cent_override_rejected(self, session, service, guard):
        with pytest.raises(PayrollValidationError, match="2 decimal places"):
            await service.generate(
                guard.guard_id,
                3,
                2024,
                ACTOR,
                earnings={"hra": "0.005", "travel_allowance": "0.005"},
            )

        assert await count_payrolls(session) == 0

    async def test_sub_cent_update_rejected(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        with pytest.raises(PayrollValidationError):
            await service.update(
                payroll.payroll_record_id, ACTOR, deductions={"loan_deduction": "10.001"}
            )

        assert payroll.revision == 1
        assert payroll.loan_deduction == Decimal("0")

    async def test_sub_cent_adjustment_rejected(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        with pytest.raises(PayrollValidationError):
            await service.add_adjustment(
                payroll.payroll_record_id, ACTOR, "addition", "bonus", "0.005", "Rounding"
            )

        assert payroll.adjustments == []

    async def test_trailing_zeros_accepted(self, service, guard):
        payroll = await service.generate(
            guard.guard_id, 3, 2024, ACTOR, earnings={"bonus": "100.500"}
        )

        assert payroll.bonus == Decimal("100.50")

    async def test_amount_beyond_column_range_rejected(self, service, guard):
        with pytest.raises(PayrollValidationError, match="too large"):
            await service.generate(
                guard.guard_id, 3, 2024, ACTOR, earnings={"bonus": "10000000000"}
            )

    async def test_totals_match_components_after_reload(
        self, session, session_factory, service, guard
    ):
        payroll = await service.generate(
            guard.guard_id,
            3,
            2024,
            ACTOR,
            earnings={"hra": "0.25", "travel_allowance": "0.35"},
            deductions={"uniform_deduction": "12.45"},
        )
        await service.add_adjustment(
            payroll.payroll_record_id, ACTOR, "addition", "bonus", "0.05", "Cents"
        )
        await session.commit()

        async with session_factory() as fresh:
            stored = await fresh.get(PayrollRecord, payroll.payroll_record_id)

            assert stored.gross_salary == stored.earnings.total
            assert stored.total_deductions == stored.deductions.total
            assert stored.net_salary == stored.gross_salary - stored.total_deductions
            assert stored.gross_salary == Decimal("13846.65")
            assert stored.total_deductions == Decimal("2828.45")
            assert stored.net_salary == Decimal("11018.20")


class TestDelete:
    async def test_delete_pending(self, session, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        await service.delete(payroll.payroll_record_id, ACTOR)

        with pytest.raises(PayrollNotFoundError):
            await service.get(payroll.payroll_record_id)
        result = await session.execute(select(AuditEvent).where(AuditEvent.action == "delete"))
        assert Decimal(result.scalar_one().before_json["net_salary"]) == Decimal("11030")

    async def test_delete_cancelled(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)
        await service.reject(payroll.payroll_record_id, ACTOR, "Wrong month")

        await service.delete(payroll.payroll_record_id, ACTOR)

    async def test_delete_approved_fails(self, service, guard):
        payroll = await approved_payroll(service, guard)

        with pytest.raises(InvalidStateError):
            await service.delete(payroll.payroll_record_id, ACTOR)

    async def test_delete_missing(self, service):
        with pytest.raises(PayrollNotFoundError):
            await service.delete(uuid4(), ACTOR)


class TestReadModels:
    """Test listing, history and payslip."""

    async def test_list_filters_and_paginates(self, service, guard, make_guard):
        other = await make_guard()
        for month in (1, 2, 3):
            await service.generate(guard.guard_id, month, 2024, ACTOR)
        await service.generate(other.guard_id, 3, 2024, ACTOR)

        items, total = await service.list_payrolls(month=3, year=2024)
        assert total == 2

        items, total = await service.list_payrolls(guard_id=guard.guard_id, page_size=2)
        assert total == 3
        assert [p.month for p in items] == [3, 2]

        items, total = await service.list_payrolls(guard_id=guard.guard_id, page=2, page_size=2)
        assert [p.month for p in items] == [1]

        items, total = await service.list_payrolls(status="approved")
        assert total == 0

    async def test_history_last_twelve(self, service, guard):
        for year in (2023, 2024):
            for month in range(1, 13):
                await service.generate(guard.guard_id, month, year, ACTOR)

        history = await service.history(guard.guard_id)

        assert len(history) == 12
        assert (history[0].year, history[0].month) == (2024, 12)
        assert (history[-1].year, history[-1].month) == (2024, 1)

    async def test_history_unknown_guard(self, service):
        with pytest.raises(GuardNotFoundError):
            await service.history(uuid4())

    async def test_payslip(self, service, guard, set_setting):
        await set_setting("company_name", "Neha Industrial Security Pvt Ltd", "company")
        payroll = await approved_payroll(service, guard)
        await service.pay(payroll.payroll_record_id, "accounts", "upi", "UPI-778")

        payslip = await service.payslip(payroll.payroll_record_id)

        assert payslip["company_name"] == "Neha Industrial Security Pvt Ltd"
        assert payslip["payroll_number"] == payroll.payroll_number
        assert payslip["period"] == "March 2024"
        assert payslip["guard"]["guard_code"] == guard.guard_code
        assert payslip["attendance"]["present_days"] == 24
        assert Decimal(payslip["earnings"]["basic_salary"]) == Decimal("13846")
        assert payslip["net_salary"] == Decimal("11030")
        assert payslip["payment"]["method"] == "upi"
        assert payslip["payment"]["transaction_reference"] == "UPI-778"

    async def test_payslip_company_name_falls_back_to_config(self, service, guard):
        payroll = await service.generate(guard.guard_id, 3, 2024, ACTOR)

        payslip = await service.payslip(payroll.payroll_record_id)

        assert payslip["company_name"] == service.settings.company_name

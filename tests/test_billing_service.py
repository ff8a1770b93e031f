from datetime import timedelta
from decimal import Decimal

import pytest

from smartmess.models.billing import Billing
from smartmess.models.common.enums import (
    AdjustmentType,
    BillingPaymentStatus,
    MembershipPaymentStatus,
    PaymentMethod,
    PricingPeriod,
    TransactionStatus,
)
from smartmess.models.mess import MessProfile
from smartmess.schemas.billing import AdjustmentCreate, BillingCreate, PaymentRecord, RefundRequest
from smartmess.services.base import ErrorCode
from smartmess.services.billing.billing_service import BillingService, calculate_base_amount

from .conftest import OWNER_ID


@pytest.fixture
def service(db):
    return BillingService(db)


@pytest.fixture
def bill(service, membership, today):
    return service.create_billing(
        BillingCreate(membership_id=membership.id, period_start=today, period_end=today + timedelta(days=29)),
        OWNER_ID,
    ).data


def _pay(service, bill, **fields):
    fields.setdefault("payment_method", PaymentMethod.UPI)
    return service.record_payment(bill.id, PaymentRecord(**fields), OWNER_ID)


class TestFinalAmount:
    def test_discount_and_penalty(self):
        billing = Billing(total_amount=Decimal("1000"))
        billing.add_adjustment(AdjustmentType.DISCOUNT, Decimal("100"), "Early bird", OWNER_ID)
        billing.add_adjustment(AdjustmentType.PENALTY, Decimal("50"), "Late", OWNER_ID)

        assert billing.final_amount == Decimal("950")

    def test_never_below_zero(self):
        billing = Billing(total_amount=Decimal("100"))
        billing.add_adjustment(AdjustmentType.LEAVE_CREDIT, Decimal("250"), "Long leave", OWNER_ID)

        assert billing.final_amount == Decimal("0")

    @pytest.mark.parametrize(
        "period, expected",
        [
            (PricingPeriod.DAILY, Decimal("83.33")),
            (PricingPeriod.WEEKLY, Decimal("625.00")),
            (PricingPeriod.MONTHLY, Decimal("2500.00")),
            (PricingPeriod.YEARLY, Decimal("30000.00")),
        ],
    )
    def test_base_amount_scales_with_period(self, period, expected):
        assert calculate_base_amount(Decimal("2500"), period) == expected


class TestCreateBilling:
    def test_amounts_and_due_date(self, bill, membership, today):
        assert bill.base_amount == Decimal("2500.00")
        assert bill.tax_amount == Decimal("450.00")
        assert bill.total_amount == Decimal("2950.00")
        assert bill.plan_name == "Monthly Full"
        assert bill.payment_status == BillingPaymentStatus.PENDING
        assert bill.due_date == today + timedelta(days=36)
        assert membership.payment_amount == Decimal("2950.00")
        assert membership.payment_due_date == bill.due_date

    def test_initial_adjustments(self, service, membership, today):
        result = service.create_billing(
            BillingCreate(
                membership_id=membership.id,
                period_start=today,
                period_end=today + timedelta(days=29),
                adjustments=[AdjustmentCreate(adjustment_type=AdjustmentType.DISCOUNT, amount=100, reason="Referral")],
            ),
            OWNER_ID,
        )

        assert result.data.final_amount == Decimal("2850.00")

    def test_other_mess_is_not_found(self, db, service, membership, today):
        other = MessProfile(owner_id="owner-0002", name="Other Mess")
        db.add(other)
        db.commit()

        result = service.create_billing(
            BillingCreate(membership_id=membership.id, period_start=today, period_end=today),
            OWNER_ID,
            mess_id=other.id,
        )

        assert result.error.code == ErrorCode.NOT_FOUND

    def test_past_due_bill_is_stored_overdue(self, service, membership, today):
        result = service.create_billing(
            BillingCreate(
                membership_id=membership.id,
                period_start=today - timedelta(days=40),
                period_end=today - timedelta(days=10),
            ),
            OWNER_ID,
        )

        assert result.data.payment_status == BillingPaymentStatus.OVERDUE
        assert result.data.days_overdue == 3


class TestAdjustments:
    def test_discount_tracks_discount_amount(self, service, bill):
        result = service.apply_adjustment(
            bill.id,
            AdjustmentCreate(adjustment_type=AdjustmentType.DISCOUNT, amount=Decimal("150"), reason="Festival"),
            OWNER_ID,
        )

        assert result.data.discount_amount == Decimal("150.00")
        assert result.data.final_amount == Decimal("2800.00")

    def test_paid_bill_cannot_be_adjusted(self, service, bill):
        _pay(service, bill)

        result = service.apply_adjustment(
            bill.id,
            AdjustmentCreate(adjustment_type=AdjustmentType.PENALTY, amount=Decimal("10"), reason="Late"),
            OWNER_ID,
        )

        assert result.error.code == ErrorCode.CONFLICT


class TestPayments:
    def test_payment_marks_bill_and_membership_paid(self, service, bill, membership, today):
        result = _pay(service, bill, gateway_name="razorpay")

        assert result.is_success
        transaction = result.data["transaction"]
        assert transaction.transaction_id.startswith("TXN_")
        assert transaction.amount == Decimal("2950.00")
        assert transaction.status == TransactionStatus.SUCCESS
        assert bill.payment_status == BillingPaymentStatus.PAID
        assert bill.transaction_id == transaction.transaction_id
        assert membership.payment_status == MembershipPaymentStatus.PAID
        assert membership.next_payment_date == today + timedelta(days=30)

    def test_second_payment_conflicts(self, service, bill):
        _pay(service, bill)

        assert _pay(service, bill).error.code == ErrorCode.CONFLICT

    def test_refund(self, service, bill):
        transaction = _pay(service, bill).data["transaction"]

        result = service.process_refund(
            transaction.transaction_id,
            RefundRequest(refund_amount=Decimal("500"), refund_reason="Moved out"),
            OWNER_ID,
        )

        assert result.is_success
        assert result.data.refund_id.startswith("REF_")
        assert result.data.status == TransactionStatus.REFUNDED
        assert result.data.refunded_by == OWNER_ID
        assert bill.payment_status == BillingPaymentStatus.REFUNDED

    def test_refund_cannot_exceed_payment(self, service, bill):
        transaction = _pay(service, bill).data["transaction"]

        result = service.process_refund(
            transaction.id,
            RefundRequest(refund_amount=Decimal("3000"), refund_reason="Too much"),
            OWNER_ID,
        )

        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert result.message == "Refund amount cannot exceed transaction amount"

    def test_refund_only_once(self, service, bill):
        transaction = _pay(service, bill).data["transaction"]
        request = RefundRequest(refund_amount=Decimal("100"), refund_reason="Partial")
        service.process_refund(transaction.id, request, OWNER_ID)

        again = service.process_refund(transaction.id, request, OWNER_ID)

        assert again.error.code == ErrorCode.BUSINESS_RULE_VIOLATION
        assert again.message == "Cannot refund non-successful transaction"


class TestOverdue:
    def test_overdue_excludes_paid_and_future_bills(self, service, membership, make_membership, full_plan, today):
        late = service.create_billing(
            BillingCreate(
                membership_id=membership.id,
                period_start=today - timedelta(days=60),
                period_end=today - timedelta(days=31),
            ),
            OWNER_ID,
        ).data
        settled = service.create_billing(
            BillingCreate(
                membership_id=make_membership(full_plan).id,
                period_start=today - timedelta(days=60),
                period_end=today - timedelta(days=31),
            ),
            OWNER_ID,
        ).data
        _pay(service, settled)
        service.create_billing(
            BillingCreate(membership_id=membership.id, period_start=today, period_end=today + timedelta(days=29)),
            OWNER_ID,
        )

        result = service.find_overdue()

        assert [b.id for b in result.data] == [late.id]
        assert result.metadata == {"count": 1}

    def test_membership_history(self, service, bill, membership):
        assert [b.id for b in service.list_for_membership(membership.id).data] == [bill.id]

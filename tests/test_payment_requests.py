from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from smartmess.core.utils import DateTimeUtils
from smartmess.models.billing import Transaction
from smartmess.models.common.enums import (
    CreditTransactionType,
    MembershipPaymentStatus,
    MembershipStatus,
    PaymentMethod,
    PaymentRequestStatus,
    PricingPeriod,
)
from smartmess.models.credits import CreditTransaction
from smartmess.models.mess import MessProfile
from smartmess.schemas.mess.payment_request import PaymentApprovalRequest, PaymentRejectionRequest
from smartmess.services.base import ErrorCode
from smartmess.services.billing.payment_request_service import PaymentRequestService, subscription_end_for
from smartmess.services.credits.credit_service import CreditService

from .conftest import OWNER_ID


@pytest.fixture
def service(db):
    return PaymentRequestService(db)


@pytest.mark.parametrize(
    "period, expected",
    [
        (PricingPeriod.WEEKLY, date(2026, 2, 7)),
        (PricingPeriod.MONTHLY, date(2026, 2, 28)),
        (PricingPeriod.SIX_MONTHS, date(2026, 7, 31)),
        (None, date(2026, 2, 28)),
    ],
)
def test_subscription_end_for(period, expected):
    assert subscription_end_for(date(2026, 1, 31), period) == expected


class TestApprove:
    def test_insufficient_credits_leaves_request_untouched(self, db, service, mess, slabs, pending_request, funded_credits):
        credits = funded_credits(5)

        result = service.approve(mess.id, pending_request.id, OWNER_ID)

        assert result.error.code == ErrorCode.INSUFFICIENT_CREDITS
        assert result.error.details == {
            "requiredCredits": 10,
            "availableCredits": 5,
            "redirectTo": "/mess-owner/platform-subscription",
        }
        assert result.message.startswith("Insufficient credits to approve this user. You need 10 credits")
        assert pending_request.status == MembershipStatus.PENDING
        assert pending_request.payment_request_status == PaymentRequestStatus.SENT
        assert credits.available_credits == 5
        assert db.execute(select(Transaction)).scalars().all() == []

    def test_approval_charges_and_activates(self, db, service, mess, slabs, pending_request, funded_credits, today):
        credits = funded_credits(25)

        result = service.approve(
            mess.id,
            pending_request.id,
            OWNER_ID,
            PaymentApprovalRequest(payment_method=PaymentMethod.UPI),
        )

        assert result.is_success
        assert result.data["credits_deducted"] == 10
        assert result.data["remaining_credits"] == 15
        assert credits.used_credits == 10

        membership = result.data["membership"]
        assert membership.status == MembershipStatus.ACTIVE
        assert membership.payment_status == MembershipPaymentStatus.PAID
        assert membership.payment_request_status == PaymentRequestStatus.APPROVED
        assert membership.subscription_start_date == today
        assert membership.subscription_end_date == DateTimeUtils.add_months(today, 1)
        assert membership.payment_amount == Decimal("2500.00")

        transaction = db.execute(select(Transaction)).scalar_one()
        assert transaction.transaction_id == result.data["transaction_id"]
        assert transaction.transaction_id.startswith("TXN_")
        assert transaction.payment_method == PaymentMethod.UPI

        [charge] = db.execute(
            select(CreditTransaction).where(CreditTransaction.transaction_type == CreditTransactionType.DEDUCTION)
        ).scalars().all()
        assert charge.amount == -10
        assert charge.reference_id == pending_request.user_id

    def test_existing_reference_becomes_transaction_id(self, service, mess, slabs, pending_request, funded_credits):
        funded_credits(25)

        result = service.approve(
            mess.id,
            pending_request.id,
            OWNER_ID,
            PaymentApprovalRequest(transaction_reference="UPI-7781"),
        )

        assert result.data["transaction_id"] == "UPI-7781"

    def test_free_during_trial(self, db, service, mess, slabs, pending_request):
        CreditService(db).initialize(mess.id)

        result = service.approve(mess.id, pending_request.id, OWNER_ID)

        assert result.is_success
        assert result.data["credits_deducted"] == 0
        assert result.data["remaining_credits"] == 0

    def test_second_approval_conflicts(self, service, mess, slabs, pending_request, funded_credits):
        funded_credits(25)
        service.approve(mess.id, pending_request.id, OWNER_ID)

        again = service.approve(mess.id, pending_request.id, OWNER_ID)

        assert again.error.code == ErrorCode.CONFLICT
        assert again.message == "This payment request has already been approved"

    def test_other_mess_is_not_found(self, db, service, slabs, pending_request, funded_credits):
        funded_credits(25)
        other = MessProfile(owner_id="owner-0002", name="Other Mess")
        db.add(other)
        db.commit()

        result = service.approve(other.id, pending_request.id, "owner-0002")

        assert result.error.code == ErrorCode.NOT_FOUND

    def test_without_credit_account(self, service, mess, pending_request):
        result = service.approve(mess.id, pending_request.id, OWNER_ID)

        assert result.error.code == ErrorCode.NOT_FOUND
        assert pending_request.status == MembershipStatus.PENDING


class TestReject:
    def test_reject_records_remarks(self, service, mess, pending_request):
        result = service.reject(
            mess.id,
            pending_request.id,
            OWNER_ID,
            PaymentRejectionRequest(remarks="Screenshot unreadable"),
        )

        assert result.is_success
        assert pending_request.payment_request_status == PaymentRequestStatus.REJECTED
        assert pending_request.payment_remarks == "Screenshot unreadable"
        assert pending_request.status == MembershipStatus.PENDING

    def test_rejected_request_cannot_be_approved(self, service, mess, slabs, pending_request, funded_credits):
        funded_credits(25)
        service.reject(mess.id, pending_request.id, OWNER_ID)

        result = service.approve(mess.id, pending_request.id, OWNER_ID)

        assert result.error.code == ErrorCode.CONFLICT
        assert result.message == "This payment request has already been rejected"

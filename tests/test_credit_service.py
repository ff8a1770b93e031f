from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from smartmess.core.exceptions import BusinessRuleError
from smartmess.core.utils import utc_now
from smartmess.models.common.enums import CreditAccountStatus, CreditTransactionType
from smartmess.models.credits import CreditTransaction, FreeTrialSettings
from smartmess.schemas.credits import (
    CreditAdjustmentRequest,
    CreditPlanCreate,
    CreditPurchaseRequest,
    CreditSlabCreate,
)
from smartmess.services.base import ErrorCode
from smartmess.services.credits.credit_service import CreditService, tiered_credits
from smartmess.services.credits.mess_billing_service import MessBillingService

from .conftest import ADMIN_ID, OWNER_ID

BANDS = [
    SimpleNamespace(min_users=11, max_users=50, credits_per_user=8),
    SimpleNamespace(min_users=1, max_users=10, credits_per_user=10),
]


@pytest.fixture
def service(db):
    return CreditService(db)


def _ledger(db, mess):
    stmt = select(CreditTransaction).where(CreditTransaction.mess_id == mess.id).order_by(CreditTransaction.created_at)
    return db.execute(stmt).scalars().all()


class TestTieredCredits:
    @pytest.mark.parametrize(
        "users, expected",
        [(0, 0), (1, 10), (10, 100), (11, 108), (15, 140), (50, 420), (60, 420)],
    )
    def test_each_band_bills_its_own_members(self, users, expected):
        assert tiered_credits(BANDS, users)["total_credits"] == expected

    def test_breakdown_per_band(self):
        breakdown = tiered_credits(BANDS, 15)["breakdown"]
        assert [(b["users"], b["subtotal"]) for b in breakdown] == [(10, 100), (5, 40)]

    def test_no_active_slabs(self):
        with pytest.raises(BusinessRuleError):
            tiered_credits([], 3)


class TestAccount:
    def test_initialize_starts_trial(self, db, service, mess):
        result = service.initialize(mess.id)

        credits = result.data
        assert credits.status == CreditAccountStatus.TRIAL
        assert credits.is_trial_active
        assert credits.trial_end_date - credits.trial_start_date == timedelta(days=7)
        assert credits.available_credits == 0
        [entry] = _ledger(db, mess)
        assert entry.transaction_type == CreditTransactionType.TRIAL
        assert entry.amount == 100

    def test_initialize_is_idempotent(self, service, mess):
        first = service.initialize(mess.id).data
        assert service.initialize(mess.id).data.id == first.id

    def test_purchase_raw_amount(self, service, mess, funded_credits):
        funded_credits(50)

        result = service.purchase_credits(mess.id, CreditPurchaseRequest(amount=200), OWNER_ID)

        assert result.is_success
        assert result.data["credits"].available_credits == 250
        transaction = result.data["transaction"]
        assert transaction.transaction_type == CreditTransactionType.PURCHASE
        assert transaction.amount == 200
        assert transaction.balance_after == 250

    def test_purchase_plan_adds_bonus_and_reactivates(self, service, mess, funded_credits):
        credits = funded_credits(0)
        credits.status = CreditAccountStatus.EXPIRED
        plan = service.create_plan(
            CreditPlanCreate(name="Growth", base_credits=1000, bonus_credits=100, price=Decimal("999"))
        ).data

        result = service.purchase_credits(mess.id, CreditPurchaseRequest(plan_id=plan.id))

        assert result.data["credits"].available_credits == 1100
        assert result.data["credits"].status == CreditAccountStatus.ACTIVE
        assert result.data["transaction"].price_paid == Decimal("999.00")

    def test_purchase_inactive_plan(self, service, mess, funded_credits):
        funded_credits(0)
        plan = service.create_plan(CreditPlanCreate(name="Old", base_credits=10, price=Decimal("10"))).data
        service.deactivate_plan(plan.id)

        result = service.purchase_credits(mess.id, CreditPurchaseRequest(plan_id=plan.id))

        assert result.error.code == ErrorCode.BUSINESS_RULE_VIOLATION
        assert result.message == "Invalid or inactive credit plan"

    def test_admin_adjustments(self, db, service, mess, funded_credits):
        funded_credits(30)

        added = service.adjust_credits(
            CreditAdjustmentRequest(mess_id=mess.id, amount=20, description="Goodwill"), ADMIN_ID
        )
        removed = service.adjust_credits(
            CreditAdjustmentRequest(mess_id=mess.id, amount=-45, description="Correction"), ADMIN_ID
        )

        assert added.data.amount == 20
        assert removed.data.amount == -45
        assert removed.data.balance_after == 5
        assert removed.data.transaction_type == CreditTransactionType.ADJUSTMENT

    def test_negative_adjustment_beyond_balance(self, service, mess, funded_credits):
        credits = funded_credits(10)

        result = service.adjust_credits(
            CreditAdjustmentRequest(mess_id=mess.id, amount=-11, description="Too much"), ADMIN_ID
        )

        assert result.error.code == ErrorCode.INSUFFICIENT_CREDITS
        assert result.error.details == {"requiredCredits": 11, "availableCredits": 10}
        assert credits.available_credits == 10

    def test_adjust_without_account(self, service, mess):
        result = service.adjust_credits(
            CreditAdjustmentRequest(mess_id=mess.id, amount=5, description="x"), ADMIN_ID
        )
        assert result.error.code == ErrorCode.NOT_FOUND

    def test_deduct_needs_balance_or_trial(self, service, mess, funded_credits):
        funded_credits(0)

        result = service.deduct_credits(mess.id, 5, "Report export")

        assert result.error.code == ErrorCode.INSUFFICIENT_CREDITS
        assert result.message == "Insufficient credits or trial expired"

    def test_deduct_is_all_or_nothing(self, db, service, mess, funded_credits):
        credits = funded_credits(4)

        assert not service.deduct_credits(mess.id, 5, "Report export")
        assert service.deduct_credits(mess.id, 4, "Report export")
        assert credits.available_credits == 0
        assert credits.used_credits == 4


class TestFreeTrial:
    def test_activate_for_new_mess(self, service, mess):
        result = service.activate_free_trial(mess.id)

        assert result.is_success
        assert result.data.status == CreditAccountStatus.TRIAL
        assert result.message == "Free trial activated! You now have 7 days of full access."

    def test_running_trial_cannot_restart(self, service, mess):
        service.initialize(mess.id)

        result = service.activate_free_trial(mess.id)

        assert result.message == "Trial is already active"

    def test_trial_limit(self, service, mess):
        credits = service.initialize(mess.id).data
        credits.trial_end_date = utc_now() - timedelta(days=1)
        service.db.commit()

        result = service.activate_free_trial(mess.id)

        assert result.error.code == ErrorCode.BUSINESS_RULE_VIOLATION
        assert result.message == "Maximum trial limit reached"

    def test_globally_disabled(self, db, service, mess):
        db.add(FreeTrialSettings(is_globally_enabled=False))
        db.commit()

        result = service.activate_free_trial(mess.id)

        assert result.message == "Free trials are currently disabled"


class TestCatalog:
    def test_overlapping_slab_rejected(self, service, slabs):
        result = service.create_slab(CreditSlabCreate(min_users=45, max_users=80, credits_per_user=6), ADMIN_ID)

        assert result.error.code == ErrorCode.BUSINESS_RULE_VIOLATION

    def test_deactivated_slab_frees_its_band(self, service, slabs):
        service.deactivate_slab(slabs[1].id)

        created = service.create_slab(CreditSlabCreate(min_users=11, max_users=100, credits_per_user=5), ADMIN_ID)

        assert created.is_success
        assert [s.max_users for s in service.list_slabs().data] == [10, 100]

    def test_credit_details_project_next_bill(self, service, mess, slabs, membership, funded_credits):
        funded_credits(25)

        details = service.get_credit_details(mess.id).data

        assert details["current_user_count"] == 1
        assert details["next_billing_amount"] == 10


class TestMessBilling:
    def test_new_user_requirement_is_marginal(self, db, mess, slabs, make_membership, full_plan, funded_credits):
        for _ in range(10):
            make_membership(full_plan)
        credits = funded_credits(100)

        check = MessBillingService(db).new_user_requirement(credits)

        assert check["required_credits"] == 8
        assert check["current_user_count"] == 10
        assert check["sufficient"]

    def test_new_user_free_during_trial(self, db, mess, slabs):
        credits = CreditService(db).initialize(mess.id).data

        result = MessBillingService(db).deduct_credits_for_new_user(mess.id, "member-x")

        assert result.data == {"credits_deducted": 0, "remaining_credits": 0, "in_trial": True}
        assert credits.used_credits == 0

    def test_generate_and_pay_monthly_bill(self, db, mess, slabs, make_membership, full_plan, funded_credits):
        for _ in range(3):
            make_membership(full_plan)
        credits = funded_credits(100)
        billing = MessBillingService(db)

        bill = billing.generate_pending_bill(mess.id).data
        paid = billing.pay_pending_bill(mess.id)

        assert bill["total_credits"] == 30
        assert paid.is_success
        assert credits.available_credits == 70
        assert credits.pending_bill_amount == 0
        assert credits.last_billing_amount == 30
        assert credits.monthly_user_count == 3
        assert credits.next_billing_date - credits.last_billing_date == timedelta(days=30)

    def test_pay_without_pending_bill(self, db, mess, funded_credits):
        funded_credits(10)

        result = MessBillingService(db).pay_pending_bill(mess.id)

        assert result.message == "No pending bill to pay"

    def test_pay_bill_beyond_balance(self, db, mess, funded_credits):
        credits = funded_credits(10)
        credits.pending_bill_amount = 25
        db.commit()

        result = MessBillingService(db).pay_pending_bill(mess.id)

        assert result.error.code == ErrorCode.INSUFFICIENT_CREDITS
        assert result.message == "Insufficient credits to pay bill"
        assert credits.pending_bill_amount == 25

    def test_low_credit_warning(self, db, mess, slabs, membership, funded_credits):
        funded_credits(40)

        status = MessBillingService(db).check_low_credits(mess.id).data

        assert status["is_low"]
        assert status["threshold"] == 100
        assert status["estimated_months_remaining"] == 4

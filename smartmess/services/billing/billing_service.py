"""
Member billing service.

Creates per-period invoices from the meal-plan price, applies typed
adjustments, records payments and refunds, and keeps the subscription
extension snapshot of the open bill in step with off-day extensions.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from smartmess.config.settings import settings
from smartmess.core.exceptions import (
    BusinessRuleError,
    ResourceNotFoundError,
    StateConflictError,
    ValidationError,
)
from smartmess.core.utils import CurrencyUtils, IDGenerator, local_today, utc_now
from smartmess.models.billing import Billing, Transaction
from smartmess.models.common.enums import (
    AdjustmentType,
    BillingPaymentStatus,
    MembershipPaymentStatus,
    PricingPeriod,
    TransactionStatus,
    TransactionType,
)
from smartmess.models.mess import MessMembership
from smartmess.repositories.billing.billing_repository import BillingRepository, TransactionRepository
from smartmess.repositories.mess.mess_repository import MealPlanRepository, MembershipRepository
from smartmess.schemas.billing import AdjustmentCreate, BillingCreate, PaymentRecord, RefundRequest
from smartmess.services.base import BaseService, ServiceResult

# Plan price multiplier per billing period; plan prices are monthly
PERIOD_PRICE_FACTORS = {
    PricingPeriod.DAILY: Decimal(1) / Decimal(30),
    PricingPeriod.WEEKLY: Decimal(1) / Decimal(4),
    PricingPeriod.FIFTEEN_DAYS: Decimal(1) / Decimal(2),
    PricingPeriod.MONTHLY: Decimal(1),
    PricingPeriod.THREE_MONTHS: Decimal(3),
    PricingPeriod.SIX_MONTHS: Decimal(6),
    PricingPeriod.YEARLY: Decimal(12),
}


def calculate_base_amount(plan_amount: Decimal, period: PricingPeriod) -> Decimal:
    """Plan price scaled to the billing period."""
    factor = PERIOD_PRICE_FACTORS.get(PricingPeriod(period), Decimal(1))
    return CurrencyUtils.to_money(Decimal(str(plan_amount)) * factor)


def calculate_tax(base_amount: Decimal) -> Decimal:
    return CurrencyUtils.to_money(base_amount * settings.GST_RATE)


class BillingService(BaseService[Billing, BillingRepository]):
    """
    Invoice lifecycle for memberships.

    - create_billing / apply_adjustment
    - record_payment / process_refund
    - find_overdue / list_for_membership
    - record_subscription_extension / revert_subscription_extension
    """

    def __init__(self, db_session: Session):
        super().__init__(BillingRepository(db_session), db_session)
        self.transaction_repository = TransactionRepository(db_session)
        self.membership_repository = MembershipRepository(db_session)
        self.plan_repository = MealPlanRepository(db_session)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _get_billing(self, billing_id: str, mess_id: Optional[str] = None) -> Billing:
        billing = self.repository.get_by_id(billing_id)
        if billing is None or (mess_id and billing.mess_id != mess_id):
            raise ResourceNotFoundError("Billing record", billing_id)
        return billing

    def _get_transaction(self, transaction_ref: str, mess_id: Optional[str] = None) -> Transaction:
        transaction = (
            self.transaction_repository.get_by_id(transaction_ref)
            or self.transaction_repository.get_by_transaction_id(transaction_ref)
        )
        if transaction is None or (mess_id and transaction.mess_id != mess_id):
            raise ResourceNotFoundError("Transaction", transaction_ref)
        return transaction

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def create_billing(
        self,
        data: BillingCreate,
        actor_id: str,
        mess_id: Optional[str] = None,
    ) -> ServiceResult[Billing]:
        """
        Create an invoice for one membership billing period.

        Args:
            data: Billing period, plan and initial adjustments
            actor_id: User creating the bill
            mess_id: Restrict to memberships of this mess

        Returns:
            ServiceResult containing the stored Billing
        """
        try:
            membership = self.membership_repository.get_by_id(data.membership_id)
            if membership is None or (mess_id and membership.mess_id != mess_id):
                raise ResourceNotFoundError("Membership", data.membership_id)

            plan_id = data.plan_id or membership.meal_plan_id
            plan = self.plan_repository.get_by_id(plan_id) if plan_id else None
            if plan is None:
                raise ResourceNotFoundError("Meal plan", plan_id, "Meal plan not found")

            base_amount = calculate_base_amount(plan.pricing_amount, data.billing_period)
            tax_amount = calculate_tax(base_amount)
            due_date = data.period_end + timedelta(days=settings.PAYMENT_DUE_DAYS)

            billing = Billing(
                user_id=membership.user_id,
                mess_id=membership.mess_id,
                membership_id=membership.id,
                period_start=data.period_start,
                period_end=data.period_end,
                billing_period=data.billing_period,
                plan_id=plan.id,
                plan_name=plan.name,
                base_amount=base_amount,
                discount_amount=Decimal("0"),
                tax_amount=tax_amount,
                total_amount=base_amount + tax_amount,
                payment_status=BillingPaymentStatus.PENDING,
                due_date=due_date,
                generated_by=data.generated_by,
                notes=data.notes,
                tags=data.tags,
            )
            for adjustment in data.adjustments:
                billing.add_adjustment(
                    adjustment.adjustment_type,
                    adjustment.amount,
                    adjustment.reason,
                    actor_id,
                )
            self.repository.create(billing)

            membership.payment_amount = billing.total_amount
            membership.payment_due_date = due_date
            membership.next_payment_date = due_date

            self._commit()
            self._logger.info(
                f"Billing {billing.id} created for membership {membership.id}",
                extra={"total_amount": str(billing.total_amount), "due_date": due_date.isoformat()},
            )
            return ServiceResult.success(billing, message="Billing record created successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "create billing", data.membership_id)

    def apply_adjustment(
        self,
        billing_id: str,
        data: AdjustmentCreate,
        actor_id: str,
        mess_id: Optional[str] = None,
    ) -> ServiceResult[Billing]:
        try:
            billing = self._get_billing(billing_id, mess_id)
            if not billing.is_open:
                raise StateConflictError(
                    f"Cannot adjust a bill with status '{billing.payment_status.value}'"
                )
            billing.add_adjustment(data.adjustment_type, data.amount, data.reason, actor_id)
            if billing.adjustments[-1].adjustment_type == AdjustmentType.DISCOUNT:
                billing.discount_amount = (billing.discount_amount or Decimal("0")) + data.amount
            self._commit()
            self._logger.info(
                f"Adjustment {data.adjustment_type.value} of {data.amount} applied to billing {billing.id}"
            )
            return ServiceResult.success(billing, message="Adjustment applied successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "apply adjustment", billing_id)

    def list_for_membership(
        self,
        membership_id: str,
        mess_id: Optional[str] = None,
    ) -> ServiceResult[List[Billing]]:
        try:
            membership = self.membership_repository.get_by_id(membership_id)
            if membership is None or (mess_id and membership.mess_id != mess_id):
                raise ResourceNotFoundError("Membership", membership_id)
            return ServiceResult.success(self.repository.list_for_membership(membership_id))
        except Exception as e:
            return self._handle_exception(e, "list billing records", membership_id)

    def find_overdue(self, mess_id: Optional[str] = None) -> ServiceResult[List[Billing]]:
        """Unpaid bills past their due date, flagging any still marked pending."""
        try:
            bills = self.repository.find_overdue(local_today(), mess_id)
            flagged = 0
            for bill in bills:
                if bill.payment_status == BillingPaymentStatus.PENDING:
                    bill.payment_status = BillingPaymentStatus.OVERDUE
                    flagged += 1
            if flagged:
                self._commit()
                self._logger.info(f"Marked {flagged} billing records overdue")
            return ServiceResult.success(bills, metadata={"count": len(bills)})
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "find overdue billing records", mess_id)

    # -------------------------------------------------------------------------
    # Payments & refunds
    # -------------------------------------------------------------------------

    def record_payment(
        self,
        billing_id: str,
        data: PaymentRecord,
        actor_id: str,
        mess_id: Optional[str] = None,
    ) -> ServiceResult[dict]:
        """
        Record a successful payment against a bill.

        Creates a success transaction, marks the bill paid and the
        membership paid for the next billing cycle.
        """
        try:
            billing = self._get_billing(billing_id, mess_id)
            if not billing.is_open:
                raise StateConflictError(
                    f"Billing record is already {billing.payment_status.value}"
                )

            amount = CurrencyUtils.to_money(data.amount if data.amount is not None else billing.final_amount)
            transaction = Transaction(
                transaction_id=IDGenerator.generate_transaction_id(),
                user_id=billing.user_id,
                mess_id=billing.mess_id,
                membership_id=billing.membership_id,
                billing_id=billing.id,
                transaction_type=TransactionType.PAYMENT,
                amount=amount,
                currency=settings.CURRENCY,
                status=TransactionStatus.SUCCESS,
                payment_method=data.payment_method,
                gateway_name=data.gateway_name,
                gateway_transaction_id=data.gateway_transaction_id,
                gateway_response=data.gateway_response,
                description=(
                    f"Payment for {billing.plan_name} - "
                    f"{billing.period_start.isoformat()} to {billing.period_end.isoformat()}"
                ),
                extra_data={"recordedBy": actor_id},
                processed_at=utc_now(),
            )
            self.transaction_repository.create(transaction)
            billing.mark_as_paid(transaction.transaction_id, data.payment_method, data.gateway_response)

            membership = self.membership_repository.get_by_id(billing.membership_id)
            if membership is not None:
                today = local_today()
                membership.payment_status = MembershipPaymentStatus.PAID
                membership.last_payment_date = today
                membership.next_payment_date = today + timedelta(days=settings.BILLING_CYCLE_DAYS)

            self._commit()
            self._logger.info(
                f"Payment {transaction.transaction_id} recorded for billing {billing.id}",
                extra={"amount": str(amount), "payment_method": data.payment_method.value},
            )
            return ServiceResult.success(
                {"billing": billing, "transaction": transaction},
                message="Payment processed successfully",
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "record payment", billing_id)

    def process_refund(
        self,
        transaction_ref: str,
        data: RefundRequest,
        actor_id: str,
        mess_id: Optional[str] = None,
    ) -> ServiceResult[Transaction]:
        """
        Refund a successful transaction.

        Args:
            transaction_ref: Row id or public TXN_ id of the transaction
            data: Refund amount and reason
            actor_id: User issuing the refund
        """
        try:
            transaction = self._get_transaction(transaction_ref, mess_id)
            if not transaction.is_refundable:
                raise BusinessRuleError("Cannot refund non-successful transaction")
            if data.refund_amount > transaction.amount:
                raise ValidationError(
                    "Refund amount cannot exceed transaction amount",
                    field="refundAmount",
                )

            transaction.refund_id = IDGenerator.generate_refund_id()
            transaction.refund_amount = CurrencyUtils.to_money(data.refund_amount)
            transaction.refund_reason = data.refund_reason
            transaction.refunded_at = utc_now()
            transaction.refunded_by = actor_id
            transaction.gateway_refund_id = data.gateway_refund_id
            transaction.status = TransactionStatus.REFUNDED

            if transaction.billing_id:
                billing = self.repository.get_by_id(transaction.billing_id)
                if billing is not None:
                    billing.payment_status = BillingPaymentStatus.REFUNDED

            self._commit()
            self._logger.info(
                f"Refund {transaction.refund_id} processed for {transaction.transaction_id}",
                extra={"refund_amount": str(transaction.refund_amount)},
            )
            return ServiceResult.success(transaction, message="Refund processed successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "process refund", transaction_ref)

    # -------------------------------------------------------------------------
    # Subscription extension snapshot
    # -------------------------------------------------------------------------
    # Called by the off-day reconciler inside its own savepoint: these
    # methods flush but never commit.

    def record_subscription_extension(
        self,
        membership: MessMembership,
        missed_meals: int,
        days_added: int,
        end_date_before: Optional[date],
        end_date_after: date,
        actor_id: str,
        reason: str,
    ) -> Optional[str]:
        """
        Fold an applied extension into the membership's open bill.

        Returns:
            Id of the updated bill, or None when the membership has none open
        """
        billing = self.repository.find_open_for_membership(membership.id)
        if billing is None:
            return None

        billing.extension_meals = (billing.extension_meals or 0) + missed_meals
        billing.extension_days = (billing.extension_days or 0) + days_added
        if billing.extension_original_end_date is None:
            billing.extension_original_end_date = end_date_before
        billing.extension_new_end_date = end_date_after
        billing.add_adjustment(
            AdjustmentType.SUBSCRIPTION_EXTENSION,
            Decimal("0"),
            f"{reason}: +{days_added} day(s) for {missed_meals} missed meal(s)",
            actor_id,
        )
        self.db.flush()
        return billing.id

    def revert_subscription_extension(
        self,
        billing_id: Optional[str],
        missed_meals: int,
        days_removed: int,
        new_end_date: Optional[date],
        actor_id: str,
        reason: str,
    ) -> bool:
        """Roll a previously recorded extension out of its bill's snapshot."""
        if not billing_id:
            return False
        billing = self.repository.get_by_id(billing_id)
        if billing is None:
            return False

        billing.extension_meals = max(0, (billing.extension_meals or 0) - missed_meals)
        billing.extension_days = max(0, (billing.extension_days or 0) - days_removed)
        if billing.extension_days == 0:
            billing.extension_original_end_date = None
            billing.extension_new_end_date = None
        else:
            billing.extension_new_end_date = new_end_date
        billing.add_adjustment(
            AdjustmentType.SUBSCRIPTION_EXTENSION,
            Decimal("0"),
            f"{reason}: -{days_removed} day(s) reversed",
            actor_id,
        )
        self.db.flush()
        return True

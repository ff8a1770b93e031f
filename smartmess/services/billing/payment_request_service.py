"""
Payment-request approval.

Approving a member's payment request charges the mess its per-member
platform credits and activates the membership in one unit of work:
either both happen or neither does.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from smartmess.config.settings import settings
from smartmess.core.exceptions import InsufficientCreditsError, ResourceNotFoundError, StateConflictError
from smartmess.core.utils import DateTimeUtils, IDGenerator, local_today, utc_now
from smartmess.models.billing import Transaction
from smartmess.models.common.enums import (
    MembershipPaymentStatus,
    MembershipStatus,
    PaymentMethod,
    PaymentRequestStatus,
    PricingPeriod,
    TransactionStatus,
    TransactionType,
)
from smartmess.models.mess import MessMembership
from smartmess.repositories.billing.billing_repository import TransactionRepository
from smartmess.repositories.mess.mess_repository import MealPlanRepository, MembershipRepository
from smartmess.schemas.mess.payment_request import PaymentApprovalRequest, PaymentRejectionRequest
from smartmess.services.base import BaseService, ServiceResult
from smartmess.services.credits.mess_billing_service import MessBillingService

PERIOD_DAYS = {
    PricingPeriod.DAILY: 1,
    PricingPeriod.WEEKLY: 7,
    PricingPeriod.FIFTEEN_DAYS: 15,
}

PERIOD_MONTHS = {
    PricingPeriod.MONTHLY: 1,
    PricingPeriod.THREE_MONTHS: 3,
    PricingPeriod.SIX_MONTHS: 6,
    PricingPeriod.YEARLY: 12,
}


def subscription_end_for(start: date, period: Optional[PricingPeriod]) -> date:
    """End date of a subscription period starting on start (monthly by default)."""
    period = PricingPeriod(period) if period else PricingPeriod.MONTHLY
    if period in PERIOD_DAYS:
        return start + timedelta(days=PERIOD_DAYS[period])
    return DateTimeUtils.add_months(start, PERIOD_MONTHS.get(period, 1))


class PaymentRequestService(BaseService[MessMembership, MembershipRepository]):
    """Approve or reject member payment requests for a mess."""

    def __init__(self, db_session: Session):
        super().__init__(MembershipRepository(db_session), db_session)
        self.plan_repository = MealPlanRepository(db_session)
        self.transaction_repository = TransactionRepository(db_session)
        self.mess_billing_service = MessBillingService(db_session)

    def _get_open_request(self, mess_id: str, membership_id: str) -> MessMembership:
        membership = self.repository.get_for_update(membership_id)
        if membership is None or membership.mess_id != mess_id:
            raise ResourceNotFoundError("Membership", membership_id, "Membership not found")
        if membership.payment_request_status == PaymentRequestStatus.APPROVED:
            raise StateConflictError("This payment request has already been approved")
        if membership.payment_request_status == PaymentRequestStatus.REJECTED:
            raise StateConflictError("This payment request has already been rejected")
        return membership

    def approve(
        self,
        mess_id: str,
        membership_id: str,
        actor_id: str,
        data: Optional[PaymentApprovalRequest] = None,
    ) -> ServiceResult[Dict[str, Any]]:
        """
        Charge the admission credits and activate the membership.

        Args:
            mess_id: Mess of the approving owner
            membership_id: Membership whose request is approved
            actor_id: Approving user
            data: Payment method and optional existing reference

        Returns:
            ServiceResult with the membership, credits deducted and the
            remaining balance. Insufficient credits fail with the required
            and available amounts and where to buy more.
        """
        data = data or PaymentApprovalRequest()
        try:
            membership = self._get_open_request(mess_id, membership_id)
            credits = self.mess_billing_service.credit_service.get_account(mess_id, for_update=True)

            try:
                _, credit_transaction = self.mess_billing_service.charge_new_user(credits, membership.user_id)
            except InsufficientCreditsError as e:
                error = InsufficientCreditsError(
                    e.required_credits,
                    e.available_credits,
                    (
                        f"Insufficient credits to approve this user. You need {e.required_credits} "
                        f"credits but only have {e.available_credits} available. "
                        f"Please purchase more credits to continue."
                    ),
                )
                error.details["redirectTo"] = settings.PURCHASE_REDIRECT_PATH
                raise error from e

            plan = self.plan_repository.get_by_id(membership.meal_plan_id) if membership.meal_plan_id else None
            today = local_today()
            end = subscription_end_for(today, plan.pricing_period if plan else None)
            amount = membership.payment_amount
            if amount is None:
                amount = plan.pricing_amount if plan else Decimal("0")
            method = data.payment_method or PaymentMethod.CASH

            membership.status = MembershipStatus.ACTIVE
            membership.payment_status = MembershipPaymentStatus.PAID
            membership.payment_request_status = PaymentRequestStatus.APPROVED
            membership.payment_method = method
            membership.payment_amount = amount
            membership.last_payment_date = today
            membership.subscription_start_date = today
            membership.subscription_end_date = end
            membership.payment_due_date = end
            membership.next_payment_date = end

            transaction = self.transaction_repository.create(
                Transaction(
                    transaction_id=data.transaction_reference or IDGenerator.generate_transaction_id(),
                    user_id=membership.user_id,
                    mess_id=membership.mess_id,
                    membership_id=membership.id,
                    transaction_type=TransactionType.PAYMENT,
                    amount=amount,
                    currency=settings.CURRENCY,
                    status=TransactionStatus.SUCCESS,
                    payment_method=method,
                    description=f"Payment for {plan.name if plan else 'meal plan'} - Approved payment request",
                    extra_data={"approvedBy": actor_id},
                    processed_at=utc_now(),
                )
            )
            self._commit()

            credits_deducted = -credit_transaction.amount if credit_transaction is not None else 0
            self._logger.info(
                f"Payment request approved for membership {membership.id}",
                extra={"credits_deducted": credits_deducted, "actor_id": actor_id},
            )
            return ServiceResult.success(
                {
                    "membership": membership,
                    "credits_deducted": credits_deducted,
                    "remaining_credits": credits.available_credits,
                    "transaction_id": transaction.transaction_id,
                },
                message="Payment request approved and credits deducted successfully",
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "approve payment request", membership_id)

    def reject(
        self,
        mess_id: str,
        membership_id: str,
        actor_id: str,
        data: Optional[PaymentRejectionRequest] = None,
    ) -> ServiceResult[MessMembership]:
        data = data or PaymentRejectionRequest()
        try:
            membership = self._get_open_request(mess_id, membership_id)
            membership.payment_request_status = PaymentRequestStatus.REJECTED
            if data.remarks:
                membership.payment_remarks = data.remarks
            self._commit()
            self._logger.info(
                f"Payment request rejected for membership {membership.id}",
                extra={"actor_id": actor_id},
            )
            return ServiceResult.success(membership, message="Payment request rejected successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "reject payment request", membership_id)

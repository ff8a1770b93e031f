"""
Tiered platform billing for messes.

A mess pays credits per active member according to the slab schedule:
immediately when a member is admitted, and monthly for its whole roster.
"""

from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from smartmess.config.settings import settings
from smartmess.core.exceptions import BusinessRuleError, InsufficientCreditsError
from smartmess.core.utils import utc_now
from smartmess.models.common.enums import CreditAccountStatus
from smartmess.models.credits import CreditTransaction, MessCredits
from smartmess.repositories.credits.credit_repository import MessCreditsRepository
from smartmess.services.base import BaseService, ServiceResult
from smartmess.services.credits.credit_service import CreditService


class MessBillingService(BaseService[MessCredits, MessCreditsRepository]):
    """
    Slab-priced credit charges.

    - calculate_tiered_credits
    - check_credits_sufficient_for_new_user / deduct_credits_for_new_user
    - calculate_monthly_bill / generate_pending_bill / pay_pending_bill
    - check_low_credits
    """

    def __init__(self, db_session: Session):
        super().__init__(MessCreditsRepository(db_session), db_session)
        self.credit_service = CreditService(db_session)
        self.membership_repository = self.credit_service.membership_repository

    # -------------------------------------------------------------------------
    # New member charge
    # -------------------------------------------------------------------------

    def new_user_requirement(self, credits: MessCredits) -> Dict[str, Any]:
        """
        Marginal credits needed to admit one more active member.

        Free during a running trial; otherwise tiered(n + 1) - tiered(n).
        """
        current = self.membership_repository.count_active(credits.mess_id)
        available = credits.recalculate_available()
        in_trial = credits.is_trial_running(utc_now())
        if in_trial:
            required = 0
        else:
            required = (
                self.credit_service.tiered_credits(current + 1)["total_credits"]
                - self.credit_service.tiered_credits(current)["total_credits"]
            )
        return {
            "sufficient": in_trial or available >= required,
            "required_credits": required,
            "available_credits": available,
            "current_user_count": current,
            "new_user_count": current + 1,
            "in_trial": in_trial,
        }

    def charge_new_user(
        self,
        credits: MessCredits,
        user_id: str,
    ) -> Tuple[Dict[str, Any], Optional[CreditTransaction]]:
        """
        Deduct the admission charge for user_id without committing.

        Raises:
            InsufficientCreditsError: If the balance does not cover the charge
        """
        check = self.new_user_requirement(credits)
        if check["in_trial"] or check["required_credits"] <= 0:
            return check, None
        if not check["sufficient"]:
            raise InsufficientCreditsError(check["required_credits"], check["available_credits"])

        current, new = check["current_user_count"], check["new_user_count"]
        transaction = self.credit_service.consume(
            credits,
            check["required_credits"],
            f"User added: Credits for user count {current} → {new} (immediate charge)",
            reference_id=user_id,
            extra_data={
                "userId": user_id,
                "previousUserCount": current,
                "newUserCount": new,
                "isImmediateCharge": True,
            },
        )
        return check, transaction

    def calculate_tiered_credits(self, user_count: int) -> ServiceResult[Dict[str, Any]]:
        try:
            return ServiceResult.success(self.credit_service.tiered_credits(user_count))
        except Exception as e:
            return self._handle_exception(e, "calculate tiered credits", user_count)

    def check_credits_sufficient_for_new_user(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        try:
            credits = self.credit_service.get_account(mess_id)
            return ServiceResult.success(self.new_user_requirement(credits))
        except Exception as e:
            return self._handle_exception(e, "check credits for new user", mess_id)

    def deduct_credits_for_new_user(self, mess_id: str, user_id: str) -> ServiceResult[Dict[str, Any]]:
        try:
            credits = self.credit_service.get_account(mess_id, for_update=True)
            check, transaction = self.charge_new_user(credits, user_id)
            self._commit()
            deducted = -transaction.amount if transaction is not None else 0
            return ServiceResult.success(
                {
                    "credits_deducted": deducted,
                    "remaining_credits": credits.available_credits,
                    "in_trial": check["in_trial"],
                },
                message="No credits deducted during trial" if check["in_trial"] else "Credits deducted successfully",
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "deduct credits for new user", mess_id)

    # -------------------------------------------------------------------------
    # Monthly bill
    # -------------------------------------------------------------------------

    def _monthly_bill(self, credits: MessCredits) -> Dict[str, Any]:
        user_count = self.membership_repository.count_active(credits.mess_id)
        tiers = self.credit_service.tiered_credits(user_count)
        available = credits.recalculate_available()
        return {
            "mess_id": credits.mess_id,
            "user_count": user_count,
            "total_credits": tiers["total_credits"],
            "breakdown": tiers["breakdown"],
            "can_afford": available >= tiers["total_credits"],
            "available_credits": available,
        }

    def calculate_monthly_bill(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        try:
            credits = self.credit_service.get_account(mess_id)
            return ServiceResult.success(self._monthly_bill(credits))
        except Exception as e:
            return self._handle_exception(e, "calculate monthly bill", mess_id)

    def generate_pending_bill(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        """Stamp the current monthly bill as the amount due."""
        try:
            credits = self.credit_service.get_account(mess_id, for_update=True)
            bill = self._monthly_bill(credits)
            credits.pending_bill_amount = bill["total_credits"]
            self._commit()
            self._logger.info(
                f"Pending bill of {bill['total_credits']} credits generated for mess {mess_id}",
                extra={"user_count": bill["user_count"]},
            )
            return ServiceResult.success(bill, message="Monthly bill generated")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "generate monthly bill", mess_id)

    def pay_pending_bill(self, mess_id: str) -> ServiceResult[MessCredits]:
        try:
            credits = self.credit_service.get_account(mess_id, for_update=True)
            pending = credits.pending_bill_amount or 0
            if pending <= 0:
                raise BusinessRuleError("No pending bill to pay")
            if credits.recalculate_available() < pending:
                raise InsufficientCreditsError(
                    pending,
                    credits.available_credits,
                    "Insufficient credits to pay bill",
                )

            user_count = self.membership_repository.count_active(mess_id)
            self.credit_service.consume(
                credits,
                pending,
                f"Monthly billing for {user_count} users",
                require_access=False,
                extra_data={"userCount": user_count, "isMonthlyBill": True},
            )
            now = utc_now()
            credits.last_billing_date = now
            credits.next_billing_date = now + timedelta(days=settings.BILLING_CYCLE_DAYS)
            credits.last_billing_amount = pending
            credits.pending_bill_amount = 0
            credits.monthly_user_count = user_count
            credits.status = CreditAccountStatus.ACTIVE
            self._commit()
            self._logger.info(f"Mess {mess_id} paid monthly bill of {pending} credits")
            return ServiceResult.success(credits, message="Bill paid successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "pay monthly bill", mess_id)

    def check_low_credits(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        try:
            credits = self.credit_service.get_account(mess_id)
            available = credits.recalculate_available()
            threshold = credits.low_credit_threshold or settings.LOW_CREDIT_THRESHOLD
            try:
                bill = self._monthly_bill(credits)["total_credits"]
            except BusinessRuleError:
                bill = 0
            return ServiceResult.success({
                "is_low": available < threshold,
                "available_credits": available,
                "threshold": threshold,
                "estimated_months_remaining": available // bill if bill > 0 else None,
            })
        except Exception as e:
            return self._handle_exception(e, "check low credits", mess_id)

"""
Subscription status gate.

Decides whether a mess may use paid platform features: an unexpired
trial, a positive credit balance, or a paid billing period each keep the
subscription active.
"""

from datetime import timedelta
from typing import Any, Dict

from sqlalchemy.orm import Session

from smartmess.config.settings import settings
from smartmess.core.utils import utc_now
from smartmess.models.common.enums import CreditAccountStatus
from smartmess.models.credits import MessCredits
from smartmess.repositories.credits.credit_repository import MessCreditsRepository
from smartmess.services.base import BaseService, ServiceResult
from smartmess.services.credits.credit_service import CreditService

EXPIRED_MESSAGE = (
    "Your subscription has expired. Please go to the Subscription section "
    "and pay the bill to continue using the platform."
)

# Always reachable so an expired mess can pay
ALWAYS_ALLOWED_MODULES = frozenset({"subscription", "platform-subscription"})

RESTRICTED_MODULES = frozenset({
    "billing",
    "user-management",
    "meal-management",
    "chat",
    "feedback",
    "leave-management",
})


class SubscriptionCheckService(BaseService[MessCredits, MessCreditsRepository]):
    """Trial / credits / paid-period decision for a mess."""

    def __init__(self, db_session: Session):
        super().__init__(MessCreditsRepository(db_session), db_session)
        self.credit_service = CreditService(db_session)

    def get_status(self, mess_id: str) -> Dict[str, Any]:
        """
        Compute the subscription status, creating the credit record when
        the mess has none (a trial when trials are enabled, else suspended).
        Does not commit.
        """
        credits = self.credit_service.ensure_account(
            mess_id,
            start_trial=True,
            fallback_status=CreditAccountStatus.SUSPENDED,
        )
        now = utc_now()

        is_trial_active = credits.is_trial_running(now)
        has_credits = credits.recalculate_available() > 0

        is_in_paid_period = False
        if credits.status == CreditAccountStatus.ACTIVE and credits.last_billing_date is not None:
            if credits.next_billing_date is not None:
                is_in_paid_period = now < credits.next_billing_date
            else:
                grace_end = credits.last_billing_date + timedelta(days=settings.PAID_GRACE_DAYS)
                is_in_paid_period = now < grace_end

        is_active = is_trial_active or has_credits or is_in_paid_period
        return {
            "is_active": is_active,
            "is_trial_active": is_trial_active,
            "is_expired": not is_active,
            "has_credits": has_credits,
            "is_in_paid_period": is_in_paid_period,
            "available_credits": credits.available_credits,
            "status": credits.status,
            "trial_end_date": credits.trial_end_date,
            "next_billing_date": credits.next_billing_date,
            "message": "" if is_active else EXPIRED_MESSAGE,
        }

    def check_status(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        try:
            status = self.get_status(mess_id)
            self._commit()
            if status["is_expired"]:
                self._logger.info(f"Subscription expired for mess {mess_id}")
            return ServiceResult.success(status)
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "check subscription status", mess_id)

    def _decision(self, mess_id: str, operation: str, allowed_when_expired: bool = False) -> ServiceResult[Dict[str, Any]]:
        try:
            status = self.get_status(mess_id)
            self._commit()
            allowed = allowed_when_expired or status["is_active"]
            return ServiceResult.success({
                "allowed": allowed,
                "reason": None if allowed else (status["message"] or "Subscription expired"),
                "status": status,
            })
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, operation, mess_id)

    def can_accept_new_users(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        return self._decision(mess_id, "check new user access")

    def can_add_meals(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        return self._decision(mess_id, "check meal access")

    def can_access_module(self, mess_id: str, module: str) -> ServiceResult[Dict[str, Any]]:
        """Restricted modules require an active subscription; others never do."""
        module = (module or "").strip().lower()
        return self._decision(
            mess_id,
            "check module access",
            allowed_when_expired=module in ALWAYS_ALLOWED_MODULES or module not in RESTRICTED_MODULES,
        )

"""
Platform credit ledger service.

Every balance change on a MessCredits row is written together with an
append-only CreditTransaction carrying the signed amount. Low-level
helpers (ensure_account, consume, tiered_credits) raise domain
exceptions and never commit; callers compose them into one unit of work.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from smartmess.config.settings import settings
from smartmess.core.exceptions import (
    BusinessRuleError,
    CreditAccountNotFoundError,
    InsufficientCreditsError,
    ResourceNotFoundError,
    ValidationError,
)
from smartmess.core.utils import utc_now
from smartmess.models.common.enums import (
    CreditAccountStatus,
    CreditTransactionStatus,
    CreditTransactionType,
)
from smartmess.models.credits import (
    CreditPurchasePlan,
    CreditSlab,
    CreditTransaction,
    FreeTrialSettings,
    MessCredits,
)
from smartmess.repositories.credits.credit_repository import (
    CreditPurchasePlanRepository,
    CreditSlabRepository,
    CreditTransactionRepository,
    FreeTrialSettingsRepository,
    MessCreditsRepository,
)
from smartmess.repositories.mess.mess_repository import MembershipRepository
from smartmess.schemas.credits import (
    CreditAdjustmentRequest,
    CreditPlanCreate,
    CreditPurchaseRequest,
    CreditSlabCreate,
)
from smartmess.services.base import BaseService, ServiceResult

NO_SLABS_MESSAGE = "No active credit slabs found. Please contact admin."


def tiered_credits(slabs: List[CreditSlab], user_count: int) -> Dict[str, Any]:
    """
    Credits owed for user_count members under the slab schedule.

    Each slab bills the members that fall inside its [min, max] band at
    its own per-user rate.

    Raises:
        BusinessRuleError: If no slab is active
    """
    if user_count <= 0:
        return {"user_count": max(0, user_count), "total_credits": 0, "breakdown": []}
    if not slabs:
        raise BusinessRuleError(NO_SLABS_MESSAGE)

    total = 0
    breakdown = []
    for slab in sorted(slabs, key=lambda s: s.min_users):
        if user_count < slab.min_users:
            break
        users = min(user_count, slab.max_users) - slab.min_users + 1
        subtotal = users * slab.credits_per_user
        total += subtotal
        breakdown.append({
            "min_users": slab.min_users,
            "max_users": slab.max_users,
            "users": users,
            "credits_per_user": slab.credits_per_user,
            "subtotal": subtotal,
        })
    return {"user_count": user_count, "total_credits": total, "breakdown": breakdown}


class CreditService(BaseService[MessCredits, MessCreditsRepository]):
    """
    Credit balances, trials, purchases and the admin catalog.

    Features:
    - initialize / purchase / deduct / adjust credits
    - free trial activation bounded by FreeTrialSettings
    - credit slab and purchase plan catalog
    """

    def __init__(self, db_session: Session):
        super().__init__(MessCreditsRepository(db_session), db_session)
        self.transaction_repository = CreditTransactionRepository(db_session)
        self.slab_repository = CreditSlabRepository(db_session)
        self.plan_repository = CreditPurchasePlanRepository(db_session)
        self.trial_settings_repository = FreeTrialSettingsRepository(db_session)
        self.membership_repository = MembershipRepository(db_session)

    # -------------------------------------------------------------------------
    # Ledger primitives (no commit)
    # -------------------------------------------------------------------------

    def get_trial_settings(self) -> FreeTrialSettings:
        """Platform trial settings, created with defaults on first use."""
        trial_settings = self.trial_settings_repository.get_current()
        if trial_settings is None:
            trial_settings = self.trial_settings_repository.create(
                FreeTrialSettings(
                    is_globally_enabled=True,
                    default_trial_days=settings.DEFAULT_TRIAL_DAYS,
                    trial_credits=settings.DEFAULT_TRIAL_CREDITS,
                    max_trials_per_mess=settings.DEFAULT_MAX_TRIALS_PER_MESS,
                )
            )
        return trial_settings

    def get_account(self, mess_id: str, for_update: bool = False) -> MessCredits:
        credits = self.repository.get_by_mess(mess_id, for_update=for_update)
        if credits is None:
            raise CreditAccountNotFoundError(mess_id)
        return credits

    def ensure_account(
        self,
        mess_id: str,
        start_trial: bool = True,
        initial_credits: int = 0,
        fallback_status: CreditAccountStatus = CreditAccountStatus.ACTIVE,
    ) -> MessCredits:
        """
        Return the mess's credit record, creating it when missing.

        A new record starts a trial when asked to and trials are globally
        enabled; otherwise it takes fallback_status.
        """
        credits = self.repository.get_by_mess(mess_id)
        if credits is not None:
            return credits

        trial_settings = self.get_trial_settings()
        in_trial = start_trial and trial_settings.is_globally_enabled
        now = utc_now()
        credits = MessCredits(
            mess_id=mess_id,
            total_credits=initial_credits,
            used_credits=0,
            available_credits=initial_credits,
            is_trial_active=in_trial,
            trial_start_date=now if in_trial else None,
            trial_end_date=now + timedelta(days=trial_settings.default_trial_days) if in_trial else None,
            status=CreditAccountStatus.TRIAL if in_trial else fallback_status,
            low_credit_threshold=settings.LOW_CREDIT_THRESHOLD,
        )
        self.repository.create(credits)

        if in_trial:
            self.record_transaction(
                credits,
                CreditTransactionType.TRIAL,
                trial_settings.trial_credits,
                f"Free trial activated - {trial_settings.default_trial_days} days",
            )
        self._logger.info(
            f"Credit account created for mess {mess_id}",
            extra={"status": credits.status.value, "in_trial": in_trial},
        )
        return credits

    def record_transaction(
        self,
        credits: MessCredits,
        transaction_type: CreditTransactionType,
        amount: int,
        description: str,
        **fields: Any,
    ) -> CreditTransaction:
        credits.recalculate_available()
        return self.transaction_repository.create(
            CreditTransaction(
                mess_id=credits.mess_id,
                transaction_type=transaction_type,
                amount=amount,
                balance_after=credits.available_credits,
                description=description,
                status=CreditTransactionStatus.COMPLETED,
                **fields,
            )
        )

    def consume(
        self,
        credits: MessCredits,
        amount: int,
        description: str,
        now: Optional[datetime] = None,
        require_access: bool = True,
        transaction_type: CreditTransactionType = CreditTransactionType.DEDUCTION,
        **fields: Any,
    ) -> CreditTransaction:
        """
        Deduct amount credits all-or-nothing.

        Raises:
            InsufficientCreditsError: If the mess cannot pay in full
        """
        available = credits.recalculate_available()
        if require_access and not credits.can_access_paid_features(now or utc_now()):
            raise InsufficientCreditsError(amount, available, "Insufficient credits or trial expired")
        if available < amount:
            raise InsufficientCreditsError(amount, available)

        credits.consume_credits(amount)
        return self.record_transaction(credits, transaction_type, -amount, description, **fields)

    def tiered_credits(self, user_count: int) -> Dict[str, Any]:
        return tiered_credits(self.slab_repository.list_active(), user_count)

    # -------------------------------------------------------------------------
    # Account operations
    # -------------------------------------------------------------------------

    def initialize(
        self,
        mess_id: str,
        start_trial: bool = True,
        initial_credits: int = 0,
    ) -> ServiceResult[MessCredits]:
        """
        Create the credit record of a mess, or return the existing one.

        Args:
            mess_id: Mess to initialize
            start_trial: Start a free trial when trials are enabled
            initial_credits: Opening balance

        Returns:
            ServiceResult containing the MessCredits record
        """
        try:
            credits = self.ensure_account(mess_id, start_trial, initial_credits)
            self._commit()
            return ServiceResult.success(credits, message="Mess credits initialized")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "initialize mess credits", mess_id)

    def purchase_credits(
        self,
        mess_id: str,
        data: CreditPurchaseRequest,
        actor_id: Optional[str] = None,
    ) -> ServiceResult[Dict[str, Any]]:
        try:
            credits = self.ensure_account(mess_id)
            plan: Optional[CreditPurchasePlan] = None
            if data.plan_id:
                plan = self.plan_repository.get_by_id(data.plan_id)
                if plan is None or not plan.is_active:
                    raise BusinessRuleError("Invalid or inactive credit plan")
                amount = plan.total_credits
                description = f"Credit purchase - {plan.name}"
            else:
                amount = data.amount
                description = f"Credit purchase - {amount} credits"

            credits.add_credits(amount)
            if credits.status == CreditAccountStatus.EXPIRED:
                credits.status = CreditAccountStatus.ACTIVE

            transaction = self.record_transaction(
                credits,
                CreditTransactionType.PURCHASE,
                amount,
                description,
                reference_id=data.payment_reference,
                plan_id=plan.id if plan else None,
                price_paid=plan.price if plan else None,
                processed_by=actor_id,
            )
            self._commit()
            self._logger.info(
                f"Mess {mess_id} purchased {amount} credits",
                extra={"plan_id": data.plan_id, "available_credits": credits.available_credits},
            )
            return ServiceResult.success(
                {"credits": credits, "transaction": transaction},
                message=f"Successfully purchased {amount} credits",
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "purchase credits", mess_id)

    def deduct_credits(
        self,
        mess_id: str,
        amount: int,
        description: str,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult[CreditTransaction]:
        try:
            if amount <= 0:
                raise ValidationError("Deduction amount must be positive", field="amount")
            credits = self.get_account(mess_id, for_update=True)
            transaction = self.consume(
                credits,
                amount,
                description,
                reference_id=reference_id,
                extra_data=metadata,
            )
            self._commit()
            return ServiceResult.success(transaction, message="Credits deducted successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "deduct credits", mess_id)

    def adjust_credits(
        self,
        data: CreditAdjustmentRequest,
        actor_id: str,
    ) -> ServiceResult[CreditTransaction]:
        """Admin correction; positive adds credits, negative removes them."""
        try:
            credits = self.get_account(data.mess_id, for_update=True)
            if data.amount > 0:
                credits.add_credits(data.amount)
                transaction = self.record_transaction(
                    credits,
                    CreditTransactionType.ADJUSTMENT,
                    data.amount,
                    data.description,
                    processed_by=actor_id,
                )
            else:
                transaction = self.consume(
                    credits,
                    -data.amount,
                    data.description,
                    require_access=False,
                    transaction_type=CreditTransactionType.ADJUSTMENT,
                    processed_by=actor_id,
                )
            self._commit()
            self._logger.info(
                f"Credits adjusted by {data.amount} for mess {data.mess_id}",
                extra={"actor_id": actor_id},
            )
            return ServiceResult.success(transaction, message="Credits adjusted successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "adjust credits", data.mess_id)

    def activate_free_trial(self, mess_id: str) -> ServiceResult[MessCredits]:
        try:
            trial_settings = self.get_trial_settings()
            if not trial_settings.is_globally_enabled:
                raise BusinessRuleError("Free trials are currently disabled")

            credits = self.ensure_account(mess_id, start_trial=False)
            now = utc_now()
            if credits.is_trial_running(now):
                raise BusinessRuleError("Trial is already active")
            if self.transaction_repository.count_trials(mess_id) >= trial_settings.max_trials_per_mess:
                raise BusinessRuleError("Maximum trial limit reached")

            credits.is_trial_active = True
            credits.trial_start_date = now
            credits.trial_end_date = now + timedelta(days=trial_settings.default_trial_days)
            credits.status = CreditAccountStatus.TRIAL
            self.record_transaction(
                credits,
                CreditTransactionType.TRIAL,
                trial_settings.trial_credits,
                f"Free trial activated - {trial_settings.default_trial_days} days",
            )
            self._commit()
            return ServiceResult.success(
                credits,
                message=(
                    f"Free trial activated! You now have "
                    f"{trial_settings.default_trial_days} days of full access."
                ),
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "activate free trial", mess_id)

    def get_credit_details(self, mess_id: str) -> ServiceResult[Dict[str, Any]]:
        """Balance, recent ledger entries and the projected next bill."""
        try:
            credits = self.ensure_account(mess_id)
            self._commit()

            user_count = self.membership_repository.count_active(mess_id)
            try:
                next_billing_amount = self.tiered_credits(user_count)["total_credits"]
            except BusinessRuleError:
                next_billing_amount = 0

            return ServiceResult.success({
                "credits": credits,
                "recent_transactions": self.transaction_repository.recent_for_mess(mess_id, 10),
                "current_user_count": user_count,
                "next_billing_amount": next_billing_amount,
            })
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "fetch credit details", mess_id)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    def create_slab(self, data: CreditSlabCreate, actor_id: str) -> ServiceResult[CreditSlab]:
        try:
            if self.slab_repository.find_overlapping(data.min_users, data.max_users):
                raise BusinessRuleError("Slab range overlaps with an existing active slab")
            slab = self.slab_repository.create(
                CreditSlab(
                    min_users=data.min_users,
                    max_users=data.max_users,
                    credits_per_user=data.credits_per_user,
                    is_active=True,
                    created_by=actor_id,
                )
            )
            self._commit()
            return ServiceResult.success(slab, message="Credit slab created successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "create credit slab")

    def list_slabs(self) -> ServiceResult[List[CreditSlab]]:
        try:
            return ServiceResult.success(self.slab_repository.list_active())
        except Exception as e:
            return self._handle_exception(e, "list credit slabs")

    def deactivate_slab(self, slab_id: str) -> ServiceResult[CreditSlab]:
        try:
            slab = self.slab_repository.get_by_id(slab_id)
            if slab is None:
                raise ResourceNotFoundError("Credit slab", slab_id)
            slab.is_active = False
            self._commit()
            return ServiceResult.success(slab, message="Credit slab deactivated")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "deactivate credit slab", slab_id)

    def create_plan(self, data: CreditPlanCreate) -> ServiceResult[CreditPurchasePlan]:
        try:
            plan = self.plan_repository.create(
                CreditPurchasePlan(
                    name=data.name,
                    description=data.description,
                    base_credits=data.base_credits,
                    bonus_credits=data.bonus_credits,
                    price=data.price,
                    currency=data.currency,
                    is_active=True,
                )
            )
            self._commit()
            return ServiceResult.success(plan, message="Credit plan created successfully")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "create credit plan")

    def list_plans(self) -> ServiceResult[List[CreditPurchasePlan]]:
        try:
            return ServiceResult.success(self.plan_repository.list_active())
        except Exception as e:
            return self._handle_exception(e, "list credit plans")

    def deactivate_plan(self, plan_id: str) -> ServiceResult[CreditPurchasePlan]:
        try:
            plan = self.plan_repository.get_by_id(plan_id)
            if plan is None:
                raise ResourceNotFoundError("Credit plan", plan_id)
            plan.is_active = False
            self._commit()
            return ServiceResult.success(plan, message="Credit plan deactivated")
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "deactivate credit plan", plan_id)

# --- File: smartmess/schemas/credits/credits.py ---
"""
Platform credit schemas: balances, ledger entries, catalog and the
subscription status the route gate consults.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from smartmess.models.common.enums import (
    CreditAccountStatus,
    CreditTransactionStatus,
    CreditTransactionType,
)
from smartmess.schemas.common.base import BaseCreateSchema, BaseResponseSchema, CamelSchema

__all__ = [
    "CreditPurchaseRequest",
    "CreditAdjustmentRequest",
    "CreditSlabCreate",
    "CreditPlanCreate",
    "MessCreditsResponse",
    "CreditTransactionResponse",
    "CreditDetails",
    "CreditPurchaseResult",
    "CreditSlabResponse",
    "CreditPlanResponse",
    "TierBreakdown",
    "TieredCredits",
    "NewUserCreditCheck",
    "MonthlyBill",
    "LowCreditStatus",
    "SubscriptionStatus",
    "AccessDecision",
]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class CreditPurchaseRequest(CamelSchema):
    """Either a catalog plan or a raw credit amount."""

    plan_id: Optional[str] = None
    amount: Optional[int] = Field(default=None, gt=0)
    payment_reference: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def check_source(self) -> "CreditPurchaseRequest":
        if not self.plan_id and self.amount is None:
            raise ValueError("Provide either planId or amount")
        return self


class CreditAdjustmentRequest(CamelSchema):
    mess_id: str
    amount: int = Field(..., description="Positive adds credits, negative deducts")
    description: str = Field(..., min_length=1, max_length=500)

    @field_validator("amount")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Adjustment amount cannot be zero")
        return v


class CreditSlabCreate(BaseCreateSchema):
    min_users: int = Field(..., ge=1)
    max_users: int = Field(..., ge=1)
    credits_per_user: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_range(self) -> "CreditSlabCreate":
        if self.max_users < self.min_users:
            raise ValueError("maxUsers must be greater than or equal to minUsers")
        return self


class CreditPlanCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    base_credits: int = Field(..., ge=0)
    bonus_credits: int = Field(default=0, ge=0)
    price: Decimal = Field(..., ge=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class MessCreditsResponse(BaseResponseSchema):
    mess_id: str
    total_credits: int
    used_credits: int
    available_credits: int
    is_trial_active: bool
    trial_start_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    trial_credits_used: int = 0
    status: CreditAccountStatus
    last_billing_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    last_billing_amount: int = 0
    pending_bill_amount: int = 0
    monthly_user_count: int = 0
    low_credit_threshold: int = 100
    auto_renewal: bool = True


class CreditTransactionResponse(BaseResponseSchema):
    mess_id: str
    transaction_type: CreditTransactionType = Field(serialization_alias="type")
    amount: int
    balance_after: int = 0
    description: str
    reference_id: Optional[str] = None
    plan_id: Optional[str] = None
    price_paid: Optional[Decimal] = None
    processed_by: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = Field(default=None, serialization_alias="metadata")
    status: CreditTransactionStatus


class CreditDetails(CamelSchema):
    credits: MessCreditsResponse
    recent_transactions: List[CreditTransactionResponse] = Field(default_factory=list)
    current_user_count: int = 0
    next_billing_amount: int = 0


class CreditPurchaseResult(CamelSchema):
    credits: MessCreditsResponse
    transaction: CreditTransactionResponse


class CreditSlabResponse(BaseResponseSchema):
    min_users: int
    max_users: int
    credits_per_user: int
    is_active: bool


class CreditPlanResponse(BaseResponseSchema):
    name: str
    description: Optional[str] = None
    base_credits: int
    bonus_credits: int
    total_credits: int
    price: Decimal
    currency: str
    is_active: bool


class TierBreakdown(CamelSchema):
    min_users: int
    max_users: int
    users: int
    credits_per_user: int
    subtotal: int


class TieredCredits(CamelSchema):
    user_count: int
    total_credits: int
    breakdown: List[TierBreakdown] = Field(default_factory=list)


class NewUserCreditCheck(CamelSchema):
    sufficient: bool
    required_credits: int
    available_credits: int
    current_user_count: int
    new_user_count: int
    in_trial: bool = False


class MonthlyBill(CamelSchema):
    mess_id: str
    user_count: int
    total_credits: int
    breakdown: List[TierBreakdown] = Field(default_factory=list)
    can_afford: bool
    available_credits: int


class LowCreditStatus(CamelSchema):
    is_low: bool
    available_credits: int
    threshold: int
    estimated_months_remaining: Optional[int] = Field(
        default=None,
        description="Whole months the balance covers; null when the bill is zero",
    )


class SubscriptionStatus(CamelSchema):
    is_active: bool
    is_trial_active: bool
    is_expired: bool
    has_credits: bool
    is_in_paid_period: bool
    available_credits: int
    status: CreditAccountStatus
    trial_end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    message: str = ""


class AccessDecision(CamelSchema):
    allowed: bool
    reason: Optional[str] = None

from smartmess.schemas.credits.credits import (
    AccessDecision,
    CreditAdjustmentRequest,
    CreditDetails,
    CreditPlanCreate,
    CreditPlanResponse,
    CreditPurchaseResult,
    CreditPurchaseRequest,
    CreditSlabCreate,
    CreditSlabResponse,
    CreditTransactionResponse,
    LowCreditStatus,
    MessCreditsResponse,
    MonthlyBill,
    NewUserCreditCheck,
    SubscriptionStatus,
    TierBreakdown,
    TieredCredits,
)

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

from smartmess.models.credits.credit_catalog import CreditPurchasePlan, CreditSlab, FreeTrialSettings
from smartmess.models.credits.mess_credits import CreditTransaction, MessCredits

__all__ = [
    "MessCredits",
    "CreditTransaction",
    "CreditSlab",
    "CreditPurchasePlan",
    "FreeTrialSettings",
]

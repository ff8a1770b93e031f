from smartmess.models.billing.billing import Billing, BillingAdjustment
from smartmess.models.billing.transaction import Transaction

__all__ = ["Billing", "BillingAdjustment", "Transaction"]

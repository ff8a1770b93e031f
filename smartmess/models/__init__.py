"""
ORM models. Importing this package registers every table on Base.metadata.
"""

from smartmess.models.base.base_model import Base, BaseModel, TimestampModel
from smartmess.models.billing import Billing, BillingAdjustment, Transaction
from smartmess.models.chat import ChatMessage, ChatRoom
from smartmess.models.credits import (
    CreditPurchasePlan,
    CreditSlab,
    CreditTransaction,
    FreeTrialSettings,
    MessCredits,
)
from smartmess.models.leave import UserLeave
from smartmess.models.mess import (
    DefaultOffDaySettings,
    MealPlan,
    MessMembership,
    MessOffDay,
    MessProfile,
    OffDayAudit,
    OffDayExtension,
)

__all__ = [
    "Base",
    "BaseModel",
    "TimestampModel",
    "MessProfile",
    "MealPlan",
    "MessMembership",
    "MessOffDay",
    "OffDayExtension",
    "OffDayAudit",
    "DefaultOffDaySettings",
    "UserLeave",
    "Billing",
    "BillingAdjustment",
    "Transaction",
    "MessCredits",
    "CreditTransaction",
    "CreditSlab",
    "CreditPurchasePlan",
    "FreeTrialSettings",
    "ChatRoom",
    "ChatMessage",
]

"""
Enumeration types shared by the ORM models, schemas and services.
"""

from enum import Enum
from typing import Type

from sqlalchemy import Enum as SQLEnum

__all__ = [
    "MealType",
    "ALL_MEALS",
    "UserRole",
    "MembershipStatus",
    "MembershipPaymentStatus",
    "PaymentRequestStatus",
    "PricingPeriod",
    "OffDayStatus",
    "ExtensionState",
    "ExtensionRecordStatus",
    "AuditAction",
    "OffDayPattern",
    "LeaveStatus",
    "BillingPaymentStatus",
    "PaymentMethod",
    "AdjustmentType",
    "SUBTRACTIVE_ADJUSTMENTS",
    "BillingGeneratedBy",
    "TransactionType",
    "TransactionStatus",
    "CreditAccountStatus",
    "CreditTransactionType",
    "CreditTransactionStatus",
    "ChatMessageType",
    "enum_column",
]


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


ALL_MEALS = (MealType.BREAKFAST.value, MealType.LUNCH.value, MealType.DINNER.value)


class UserRole(str, Enum):
    USER = "user"
    MESS_OWNER = "mess-owner"
    ADMIN = "admin"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class MembershipPaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentRequestStatus(str, Enum):
    NONE = "none"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"


class PricingPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    FIFTEEN_DAYS = "15days"
    MONTHLY = "monthly"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    YEARLY = "yearly"


class OffDayStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class ExtensionState(str, Enum):
    """Progress of the subscription extension attached to an off day"""
    NONE = "none"
    PENDING = "pending"
    APPLIED = "applied"
    PARTIAL = "partial"
    REVERSED = "reversed"


class ExtensionRecordStatus(str, Enum):
    APPLIED = "applied"
    REVERSED = "reversed"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OffDayPattern(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NONE = "none"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXTENDED = "extended"
    CANCELLED = "cancelled"


class BillingPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    OVERDUE = "overdue"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    UPI = "upi"
    ONLINE = "online"
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"


class AdjustmentType(str, Enum):
    DISCOUNT = "discount"
    PENALTY = "penalty"
    LEAVE_CREDIT = "leave_credit"
    LATE_FEE = "late_fee"
    REFUND = "refund"
    BONUS = "bonus"
    SUBSCRIPTION_EXTENSION = "subscription_extension"


# Adjustment types that reduce the amount a member owes
SUBTRACTIVE_ADJUSTMENTS = frozenset({
    AdjustmentType.DISCOUNT,
    AdjustmentType.LEAVE_CREDIT,
    AdjustmentType.REFUND,
})


class BillingGeneratedBy(str, Enum):
    SYSTEM = "system"
    ADMIN = "admin"
    MESS_OWNER = "mess_owner"


class TransactionType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    SUBSCRIPTION = "subscription"
    LEAVE_CREDIT = "leave_credit"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CreditAccountStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class CreditTransactionType(str, Enum):
    PURCHASE = "purchase"
    DEDUCTION = "deduction"
    BONUS = "bonus"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    TRIAL = "trial"


class CreditTransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ChatMessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"


def enum_column(enum_cls: Type[Enum], name: str) -> SQLEnum:
    """Portable enum column type persisted by value (VARCHAR + CHECK)"""
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )

# --- File: smartmess/schemas/mess/payment_request.py ---
"""
Payment-request approval schemas.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import Field

from smartmess.models.common.enums import (
    MembershipPaymentStatus,
    MembershipStatus,
    PaymentMethod,
    PaymentRequestStatus,
)
from smartmess.schemas.common.base import BaseResponseSchema, CamelSchema

__all__ = [
    "PaymentApprovalRequest",
    "PaymentRejectionRequest",
    "MembershipResponse",
    "PaymentApprovalResult",
]


class PaymentApprovalRequest(CamelSchema):
    payment_method: Optional[PaymentMethod] = Field(
        default=None,
        description="How the member paid; cash when not given",
    )
    transaction_reference: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Existing payment reference to reuse as the transaction id",
    )


class PaymentRejectionRequest(CamelSchema):
    remarks: Optional[str] = Field(default=None, max_length=500)


class MembershipResponse(BaseResponseSchema):
    user_id: str
    mess_id: str
    meal_plan_id: Optional[str] = None
    status: MembershipStatus
    payment_status: MembershipPaymentStatus
    payment_request_status: PaymentRequestStatus
    subscription_start_date: Optional[date] = None
    subscription_end_date: Optional[date] = None
    leave_extension_meals: int = 0
    payment_amount: Optional[Decimal] = None
    last_payment_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    payment_due_date: Optional[date] = None


class PaymentApprovalResult(CamelSchema):
    membership: MembershipResponse
    credits_deducted: int = 0
    remaining_credits: int = 0
    transaction_id: str

# --- File: smartmess/schemas/billing/billing.py ---
"""
Member billing schemas: invoice creation, adjustments, payments and
refunds.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from smartmess.core.utils import parse_calendar_date
from smartmess.models.common.enums import (
    AdjustmentType,
    BillingGeneratedBy,
    BillingPaymentStatus,
    PaymentMethod,
    PricingPeriod,
    TransactionStatus,
    TransactionType,
)
from smartmess.schemas.common.base import BaseCreateSchema, BaseResponseSchema, CamelSchema

__all__ = [
    "AdjustmentCreate",
    "BillingCreate",
    "PaymentRecord",
    "RefundRequest",
    "AdjustmentResponse",
    "BillingResponse",
    "TransactionResponse",
    "PaymentResult",
    "RefundResult",
]


class AdjustmentCreate(CamelSchema):
    adjustment_type: AdjustmentType = Field(..., alias="type")
    amount: Decimal = Field(..., ge=0)
    reason: str = Field(..., min_length=1, max_length=500)


class BillingCreate(BaseCreateSchema):
    membership_id: str
    plan_id: Optional[str] = Field(default=None, description="Defaults to the membership's plan")
    period_start: date
    period_end: date
    billing_period: PricingPeriod = PricingPeriod.MONTHLY
    adjustments: List[AdjustmentCreate] = Field(default_factory=list)
    generated_by: BillingGeneratedBy = BillingGeneratedBy.SYSTEM
    notes: Optional[str] = Field(default=None, max_length=1000)
    tags: Optional[List[str]] = None

    @field_validator("period_start", "period_end", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Optional[date]:
        return parse_calendar_date(v)

    @model_validator(mode="after")
    def check_period(self) -> "BillingCreate":
        if self.period_end < self.period_start:
            raise ValueError("periodEnd cannot be before periodStart")
        return self


class PaymentRecord(CamelSchema):
    payment_method: PaymentMethod
    amount: Optional[Decimal] = Field(default=None, gt=0, description="Defaults to the amount owed")
    gateway_name: Optional[str] = Field(default=None, max_length=50)
    gateway_transaction_id: Optional[str] = Field(default=None, max_length=100)
    gateway_response: Optional[Dict[str, Any]] = None


class RefundRequest(CamelSchema):
    refund_amount: Decimal = Field(..., gt=0)
    refund_reason: str = Field(..., min_length=1, max_length=500)
    gateway_refund_id: Optional[str] = Field(default=None, max_length=100)


class AdjustmentResponse(CamelSchema):
    adjustment_type: AdjustmentType = Field(serialization_alias="type")
    amount: Decimal
    reason: str
    applied_by: str
    applied_at: datetime


class BillingResponse(BaseResponseSchema):
    user_id: str
    mess_id: str
    membership_id: str
    period_start: date
    period_end: date
    billing_period: PricingPeriod
    plan_id: Optional[str] = None
    plan_name: str
    base_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    final_amount: Decimal
    payment_status: BillingPaymentStatus
    payment_method: Optional[PaymentMethod] = None
    due_date: date
    paid_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    days_overdue: int = 0
    extension_meals: int = 0
    extension_days: int = 0
    extension_original_end_date: Optional[date] = None
    extension_new_end_date: Optional[date] = None
    generated_by: BillingGeneratedBy
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    adjustments: List[AdjustmentResponse] = Field(default_factory=list)


class TransactionResponse(BaseResponseSchema):
    transaction_id: str
    user_id: str
    mess_id: str
    membership_id: Optional[str] = None
    billing_id: Optional[str] = None
    transaction_type: TransactionType = Field(serialization_alias="type")
    amount: Decimal
    currency: str
    status: TransactionStatus
    payment_method: PaymentMethod
    gateway_name: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    description: str
    extra_data: Optional[Dict[str, Any]] = Field(default=None, serialization_alias="metadata")
    processed_at: Optional[datetime] = None
    refund_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refunded_by: Optional[str] = None


class PaymentResult(CamelSchema):
    billing: BillingResponse
    transaction: TransactionResponse


class RefundResult(CamelSchema):
    refund_id: str
    refund_amount: Decimal
    transaction: TransactionResponse

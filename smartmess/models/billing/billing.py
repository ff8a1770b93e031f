"""
Member billing models.

A billing record covers one period of one membership. Adjustments are
typed deltas; the amount finally owed is derived from them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smartmess.core.utils import local_today, utc_now
from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import (
    SUBTRACTIVE_ADJUSTMENTS,
    AdjustmentType,
    BillingGeneratedBy,
    BillingPaymentStatus,
    PaymentMethod,
    PricingPeriod,
    enum_column,
)

__all__ = [
    "Billing",
    "BillingAdjustment",
]


class Billing(TimestampModel):
    """
    Invoice for one membership billing period.

    Holds the plan snapshot, payment state, adjustment history and, when
    off days moved the subscription, the extension snapshot.
    """

    __tablename__ = "billings"
    __table_args__ = (
        CheckConstraint("period_end >= period_start", name="ck_billing_period_order"),
        CheckConstraint("total_amount >= 0", name="ck_billing_total_positive"),
        Index("ix_billing_membership_period", "membership_id", "period_start"),
        Index("ix_billing_mess_status_due", "mess_id", "payment_status", "due_date"),
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    membership_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_memberships.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Billing period
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period: Mapped[PricingPeriod] = mapped_column(
        enum_column(PricingPeriod, "billing_period_enum"),
        nullable=False,
    )

    # Subscription snapshot
    plan_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Payment
    payment_status: Mapped[BillingPaymentStatus] = mapped_column(
        enum_column(BillingPaymentStatus, "billing_payment_status_enum"),
        nullable=False,
        default=BillingPaymentStatus.PENDING,
    )
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        enum_column(PaymentMethod, "billing_payment_method_enum"),
        nullable=True,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    gateway_response: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Subscription extension snapshot
    extension_meals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extension_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extension_original_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    extension_new_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Metadata
    generated_by: Mapped[BillingGeneratedBy] = mapped_column(
        enum_column(BillingGeneratedBy, "billing_generated_by_enum"),
        nullable=False,
        default=BillingGeneratedBy.SYSTEM,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    adjustments: Mapped[List["BillingAdjustment"]] = relationship(
        back_populates="billing",
        cascade="all, delete-orphan",
        order_by="BillingAdjustment.applied_at",
    )

    @property
    def final_amount(self) -> Decimal:
        """Total after adjustments, never below zero."""
        amount = Decimal(self.total_amount or 0)
        for adjustment in self.adjustments:
            if adjustment.adjustment_type in SUBTRACTIVE_ADJUSTMENTS:
                amount -= adjustment.amount
            else:
                amount += adjustment.amount
        return max(Decimal("0"), amount)

    @property
    def days_overdue(self) -> int:
        if self.payment_status == BillingPaymentStatus.PAID:
            return 0
        return max(0, (local_today() - self.due_date).days)

    @property
    def is_open(self) -> bool:
        return self.payment_status in (
            BillingPaymentStatus.PENDING,
            BillingPaymentStatus.OVERDUE,
        )

    def add_adjustment(
        self,
        adjustment_type: AdjustmentType,
        amount: Decimal,
        reason: str,
        applied_by: str,
    ) -> "BillingAdjustment":
        adjustment = BillingAdjustment(
            adjustment_type=AdjustmentType(adjustment_type),
            amount=Decimal(str(amount)),
            reason=reason,
            applied_by=applied_by,
            applied_at=utc_now(),
        )
        self.adjustments.append(adjustment)
        return adjustment

    def mark_as_paid(
        self,
        transaction_id: str,
        payment_method: PaymentMethod,
        gateway_response: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.payment_status = BillingPaymentStatus.PAID
        self.payment_method = payment_method
        self.transaction_id = transaction_id
        self.paid_date = utc_now()
        if gateway_response is not None:
            self.gateway_response = gateway_response


class BillingAdjustment(TimestampModel):
    """Typed delta applied to a billing record"""

    __tablename__ = "billing_adjustments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_billing_adjustment_amount_positive"),
    )

    billing_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("billings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        enum_column(AdjustmentType, "billing_adjustment_type_enum"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    applied_by: Mapped[str] = mapped_column(String(36), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    billing: Mapped["Billing"] = relationship(back_populates="adjustments")


@event.listens_for(Billing, 'before_insert')
@event.listens_for(Billing, 'before_update')
def mark_overdue_on_save(mapper, connection, target):
    """Pending bills past their due date become overdue when saved."""
    if target.payment_status is None:
        target.payment_status = BillingPaymentStatus.PENDING
    if (
        target.payment_status == BillingPaymentStatus.PENDING
        and target.due_date is not None
        and target.due_date < local_today()
    ):
        target.payment_status = BillingPaymentStatus.OVERDUE

"""
Platform credit balance and credit ledger models.

Every mutation of a MessCredits row is paired with an append-only
CreditTransaction carrying the signed amount.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import (
    CreditAccountStatus,
    CreditTransactionStatus,
    CreditTransactionType,
    enum_column,
)

__all__ = [
    "MessCredits",
    "CreditTransaction",
]


class MessCredits(TimestampModel):
    """
    Credit balance, trial window and platform billing state of a mess.

    available_credits is kept equal to max(0, total - used) on every flush.
    """

    __tablename__ = "mess_credits"
    __table_args__ = (
        CheckConstraint("total_credits >= 0", name="ck_mess_credits_total_positive"),
        CheckConstraint("used_credits >= 0", name="ck_mess_credits_used_positive"),
        Index("ix_mess_credits_status_next_billing", "status", "next_billing_date"),
    )

    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    total_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    used_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Trial window
    is_trial_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trial_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    trial_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    trial_credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Platform billing
    status: Mapped[CreditAccountStatus] = mapped_column(
        enum_column(CreditAccountStatus, "mess_credits_status_enum"),
        nullable=False,
        default=CreditAccountStatus.TRIAL,
    )
    last_billing_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_billing_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_billing_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending_bill_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_user_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    low_credit_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    auto_renewal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def recalculate_available(self) -> int:
        self.available_credits = max(0, (self.total_credits or 0) - (self.used_credits or 0))
        return self.available_credits

    def is_trial_running(self, now: datetime) -> bool:
        return bool(
            self.is_trial_active
            and self.trial_end_date is not None
            and now < self.trial_end_date
        )

    def can_access_paid_features(self, now: datetime) -> bool:
        return self.recalculate_available() > 0 or self.is_trial_running(now)

    def add_credits(self, amount: int) -> None:
        self.total_credits = (self.total_credits or 0) + amount
        self.recalculate_available()

    def consume_credits(self, amount: int) -> None:
        self.used_credits = (self.used_credits or 0) + amount
        self.recalculate_available()


class CreditTransaction(TimestampModel):
    """Append-only credit ledger entry; deductions carry negative amounts"""

    __tablename__ = "credit_transactions"
    __table_args__ = (
        Index("ix_credit_transaction_mess_created", "mess_id", "created_at"),
        Index("ix_credit_transaction_mess_type", "mess_id", "transaction_type"),
    )

    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    transaction_type: Mapped[CreditTransactionType] = mapped_column(
        enum_column(CreditTransactionType, "credit_transaction_type_enum"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    plan_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("credit_purchase_plans.id", ondelete="SET NULL"),
        nullable=True,
    )
    price_paid: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    extra_data: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    status: Mapped[CreditTransactionStatus] = mapped_column(
        enum_column(CreditTransactionStatus, "credit_transaction_status_enum"),
        nullable=False,
        default=CreditTransactionStatus.COMPLETED,
    )


@event.listens_for(MessCredits, 'before_insert')
@event.listens_for(MessCredits, 'before_update')
def sync_available_credits(mapper, connection, target):
    """Keep available credits derived from total and used."""
    target.recalculate_available()

"""
Payment transaction model.

A transaction records one money movement with its gateway metadata;
refunds fill the nested refund columns of the original payment.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from smartmess.core.utils import IDGenerator
from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import (
    PaymentMethod,
    TransactionStatus,
    TransactionType,
    enum_column,
)

__all__ = ["Transaction"]


class Transaction(TimestampModel):
    """Payment, refund or adjustment event for a member"""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transaction_amount_positive"),
        CheckConstraint(
            "refund_amount IS NULL OR refund_amount <= amount",
            name="ck_transaction_refund_within_amount",
        ),
        Index("ix_transaction_mess_created", "mess_id", "created_at"),
        Index("ix_transaction_user_status", "user_id", "status"),
    )

    transaction_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        default=IDGenerator.generate_transaction_id,
        comment="Public id TXN_<epoch ms>_<RANDOM6>",
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    membership_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    billing_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("billings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        enum_column(TransactionType, "transaction_type_enum"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    status: Mapped[TransactionStatus] = mapped_column(
        enum_column(TransactionStatus, "transaction_status_enum"),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod, "transaction_payment_method_enum"),
        nullable=False,
    )

    # Gateway
    gateway_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    gateway_transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gateway_response: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    description: Mapped[str] = mapped_column(Text, nullable=False)
    extra_data: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Refund
    refund_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, unique=True)
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    refunded_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    gateway_refund_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    @property
    def is_refundable(self) -> bool:
        return self.status == TransactionStatus.SUCCESS

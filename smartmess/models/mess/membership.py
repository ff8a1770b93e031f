"""
Mess membership model.

One row per (user, mess, plan) subscription. Reconciliation moves the
subscription end date; payment approval activates it.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import (
    MembershipPaymentStatus,
    MembershipStatus,
    PaymentMethod,
    PaymentRequestStatus,
    enum_column,
)

if TYPE_CHECKING:
    from smartmess.models.mess.mess_profile import MealPlan

__all__ = ["MessMembership"]


class MessMembership(TimestampModel):
    """
    Member subscription to a meal plan.

    subscription_end_date only moves forward through recorded off-day
    extensions and moves back only by replaying one of those records.
    """

    __tablename__ = "mess_memberships"
    __table_args__ = (
        CheckConstraint(
            "leave_extension_meals >= 0",
            name="ck_membership_leave_extension_meals_positive",
        ),
        Index("ix_membership_mess_status", "mess_id", "status"),
        Index("ix_membership_user_mess", "user_id", "mess_id"),
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    meal_plan_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("meal_plans.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[MembershipStatus] = mapped_column(
        enum_column(MembershipStatus, "membership_status_enum"),
        nullable=False,
        default=MembershipStatus.PENDING,
    )
    payment_status: Mapped[MembershipPaymentStatus] = mapped_column(
        enum_column(MembershipPaymentStatus, "membership_payment_status_enum"),
        nullable=False,
        default=MembershipPaymentStatus.PENDING,
    )
    payment_request_status: Mapped[PaymentRequestStatus] = mapped_column(
        enum_column(PaymentRequestStatus, "payment_request_status_enum"),
        nullable=False,
        default=PaymentRequestStatus.NONE,
    )

    # Subscription window (calendar dates)
    subscription_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    subscription_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    leave_extension_meals: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Cumulative meals credited back as subscription days",
    )

    # Payment tracking
    payment_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        enum_column(PaymentMethod, "membership_payment_method_enum"),
        nullable=True,
    )
    last_payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    meal_plan: Mapped[Optional["MealPlan"]] = relationship(back_populates="memberships")

    @property
    def is_payment_request_settled(self) -> bool:
        """Approved and rejected requests are terminal"""
        return self.payment_request_status in (
            PaymentRequestStatus.APPROVED,
            PaymentRequestStatus.REJECTED,
        )

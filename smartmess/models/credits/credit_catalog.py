"""
Platform-wide credit catalog: tiered per-user slabs, purchasable credit
plans and the free-trial policy.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from smartmess.models.base.base_model import TimestampModel

__all__ = [
    "CreditSlab",
    "CreditPurchasePlan",
    "FreeTrialSettings",
]


class CreditSlab(TimestampModel):
    """
    Per-user credit price for a band of member counts.

    Active slabs must not overlap; a mess with n members pays each band
    for the members that fall inside it.
    """

    __tablename__ = "credit_slabs"
    __table_args__ = (
        CheckConstraint("min_users >= 1", name="ck_credit_slab_min_users_positive"),
        CheckConstraint("max_users >= min_users", name="ck_credit_slab_range_order"),
        CheckConstraint("credits_per_user >= 0", name="ck_credit_slab_credits_positive"),
    )

    min_users: Mapped[int] = mapped_column(Integer, nullable=False)
    max_users: Mapped[int] = mapped_column(Integer, nullable=False)
    credits_per_user: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)


class CreditPurchasePlan(TimestampModel):
    __tablename__ = "credit_purchase_plans"
    __table_args__ = (
        CheckConstraint("base_credits >= 0", name="ck_credit_plan_base_positive"),
        CheckConstraint("bonus_credits >= 0", name="ck_credit_plan_bonus_positive"),
        CheckConstraint("price >= 0", name="ck_credit_plan_price_positive"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    bonus_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def total_credits(self) -> int:
        return (self.base_credits or 0) + (self.bonus_credits or 0)


class FreeTrialSettings(TimestampModel):
    """Global free-trial policy; a single row."""

    __tablename__ = "free_trial_settings"

    is_globally_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    default_trial_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    trial_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    max_trials_per_mess: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

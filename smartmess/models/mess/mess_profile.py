"""
Mess profile and meal plan models.

A mess profile identifies the tenant a mess owner operates; meal plans
are the read-only catalog the reconciler and billing consult.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import ALL_MEALS, PricingPeriod, enum_column

if TYPE_CHECKING:
    from smartmess.models.mess.membership import MessMembership

__all__ = [
    "MessProfile",
    "MealPlan",
]


class MessProfile(TimestampModel):
    """Mess (canteen) operated by a single owner."""

    __tablename__ = "mess_profiles"

    owner_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        unique=True,
        index=True,
        comment="User id of the mess owner",
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    meal_plans: Mapped[List["MealPlan"]] = relationship(
        back_populates="mess",
        cascade="all, delete-orphan",
    )


class MealPlan(TimestampModel):
    """
    Subscription plan offered by a mess.

    The breakfast/lunch/dinner flags are the plan's meal options: a plan
    without dinner is unaffected by a dinner-only closure.
    """

    __tablename__ = "meal_plans"
    __table_args__ = (
        CheckConstraint("pricing_amount >= 0", name="ck_meal_plan_amount_positive"),
        CheckConstraint("meals_per_day >= 1", name="ck_meal_plan_meals_per_day_positive"),
        Index("ix_meal_plan_mess_active", "mess_id", "is_active"),
    )

    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pricing_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Price for one pricing period",
    )
    pricing_period: Mapped[PricingPeriod] = mapped_column(
        enum_column(PricingPeriod, "pricing_period_enum"),
        nullable=False,
        default=PricingPeriod.MONTHLY,
    )
    meals_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    breakfast: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    lunch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    dinner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    leave_rules: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Leave policy (max leave days, extension allowed, notice hours)",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    mess: Mapped["MessProfile"] = relationship(back_populates="meal_plans")
    memberships: Mapped[List["MessMembership"]] = relationship(back_populates="meal_plan")

    @property
    def enabled_meals(self) -> Set[str]:
        """Meal types this plan actually serves"""
        return {meal for meal in ALL_MEALS if getattr(self, meal)}

    @property
    def available_meals_per_day(self) -> int:
        """
        Meals a member receives per day, used to turn missed meals into days.

        Counts the enabled meal options, falling back to meals_per_day when
        no option is flagged.
        """
        return len(self.enabled_meals) or max(1, self.meals_per_day or 3)

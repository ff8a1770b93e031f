"""
Default off-day schedule for a mess (weekly or monthly recurring closures).
"""

from typing import List, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import ALL_MEALS, OffDayPattern, enum_column

__all__ = ["DefaultOffDaySettings"]


class DefaultOffDaySettings(TimestampModel):
    """Recurring closure pattern; one row per mess."""

    __tablename__ = "default_off_day_settings"
    __table_args__ = (
        CheckConstraint(
            "weekly_day_of_week BETWEEN 0 AND 6",
            name="ck_off_day_settings_day_of_week",
        ),
    )

    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    pattern: Mapped[OffDayPattern] = mapped_column(
        enum_column(OffDayPattern, "off_day_pattern_enum"),
        nullable=False,
        default=OffDayPattern.NONE,
    )

    weekly_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    weekly_day_of_week: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0 = Sunday ... 6 = Saturday",
    )
    weekly_meal_types: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=lambda: list(ALL_MEALS)
    )

    monthly_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    monthly_days: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)
    monthly_meal_types: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=lambda: list(ALL_MEALS)
    )

    billing_deduction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

"""
Personal leave model.

Only approved leaves count when a mess-wide closure is reconciled:
meals a member already excused through leave are not credited twice.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import ALL_MEALS, LeaveStatus, enum_column

__all__ = ["UserLeave"]


class UserLeave(TimestampModel):
    """Member leave over an inclusive date range with per-boundary meal sets."""

    __tablename__ = "user_leaves"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_user_leave_date_order"),
        Index("ix_user_leave_user_status_dates", "user_id", "status", "start_date", "end_date"),
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    membership_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    meal_types: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=lambda: list(ALL_MEALS)
    )
    start_date_meal_types: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    end_date_meal_types: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    status: Mapped[LeaveStatus] = mapped_column(
        enum_column(LeaveStatus, "user_leave_status_enum"),
        nullable=False,
        default=LeaveStatus.PENDING,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

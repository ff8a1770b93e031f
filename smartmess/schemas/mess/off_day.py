# --- File: smartmess/schemas/mess/off_day.py ---
"""
Mess off-day schemas: create/update/cancel requests, responses, stats
and the default recurring schedule.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from smartmess.core.utils import parse_calendar_date
from smartmess.models.common.enums import AuditAction, ExtensionState, MealType, OffDayPattern, OffDayStatus
from smartmess.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
    CamelSchema,
)
from smartmess.schemas.common.response import PaginationInfo

__all__ = [
    "OffDayCreate",
    "OffDayUpdate",
    "OffDayCancel",
    "OffDayResponse",
    "OffDayCreateResult",
    "ReversalInfo",
    "OffDayCancelResult",
    "OffDayResumeResult",
    "OffDayList",
    "OffDayStats",
    "OffDayAuditResponse",
    "WeeklyOffDaySettings",
    "MonthlyOffDaySettings",
    "OffDaySettingsSave",
    "OffDaySettingsResponse",
]

INVALID_DATE_MESSAGE = "Invalid date format. Please provide dates in YYYY-MM-DD format."


def _calendar_date(value: Any) -> Optional[date]:
    try:
        return parse_calendar_date(value)
    except (TypeError, ValueError):
        raise ValueError(INVALID_DATE_MESSAGE)


def _lower_meals(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [v.strip().lower() if isinstance(v, str) else v for v in value]
    return value


class _AnnouncementMixin(CamelSchema):
    send_announcement: bool = Field(default=False, description="Post a notice to the mess chat")
    announcement_message: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Custom reason text for the announcement",
    )


class OffDayCreate(BaseCreateSchema, _AnnouncementMixin):
    """
    Off-day creation payload.

    Either off_date (single day) or start_date + end_date (inclusive
    range). When both forms are sent the single date wins.
    """

    off_date: Optional[date] = Field(default=None, description="Single closure date")
    start_date: Optional[date] = Field(default=None, description="First day of a range")
    end_date: Optional[date] = Field(default=None, description="Last day of a range")

    meal_types: Optional[List[MealType]] = Field(default=None)
    start_date_meal_types: Optional[List[MealType]] = Field(default=None)
    end_date_meal_types: Optional[List[MealType]] = Field(default=None)

    reason: str = Field(..., min_length=1, max_length=500)
    subscription_extension: bool = Field(default=False)
    extension_days: Optional[int] = Field(default=None)

    @field_validator("off_date", "start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Optional[date]:
        return _calendar_date(v)

    @field_validator("meal_types", "start_date_meal_types", "end_date_meal_types", mode="before")
    @classmethod
    def normalize_meal_types(cls, v: Any) -> Any:
        return _lower_meals(v)

    @property
    def is_range(self) -> bool:
        return self.off_date is None and self.start_date is not None and self.end_date is not None


class OffDayUpdate(BaseUpdateSchema, _AnnouncementMixin):
    """Partial update; omitted fields keep their stored values."""

    off_date: Optional[date] = None
    reason: Optional[str] = Field(default=None, max_length=500)
    meal_types: Optional[List[MealType]] = None
    billing_deduction: Optional[bool] = None
    subscription_extension: Optional[bool] = None
    extension_days: Optional[int] = None

    @field_validator("off_date", mode="before")
    @classmethod
    def parse_off_date(cls, v: Any) -> Optional[date]:
        return _calendar_date(v)

    @field_validator("meal_types", mode="before")
    @classmethod
    def normalize_meal_types(cls, v: Any) -> Any:
        return _lower_meals(v)


class OffDayCancel(_AnnouncementMixin):
    """Cancellation options."""


class OffDayResponse(BaseResponseSchema):
    mess_id: str
    off_date: date
    is_range: bool = False
    range_start_date: Optional[date] = None
    range_end_date: Optional[date] = None
    meal_types: List[str] = Field(default_factory=list)
    start_date_meal_types: Optional[List[str]] = None
    end_date_meal_types: Optional[List[str]] = None
    reason: str
    billing_deduction: bool = False
    subscription_extension: bool = False
    extension_days: int = 1
    status: OffDayStatus
    extension_state: ExtensionState
    failed_membership_ids: Optional[List[str]] = None
    created_by: str
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None


class OffDayCreateResult(CamelSchema):
    off_day: OffDayResponse
    memberships_extended: int = 0
    failed_membership_ids: List[str] = Field(default_factory=list)
    announcement_sent: bool = False


class ReversalInfo(CamelSchema):
    billing_deduction_reversed: bool
    subscription_extension_reversed: bool
    extension_days_reversed: Optional[int] = None
    memberships_reversed: int = 0


class OffDayCancelResult(CamelSchema):
    off_day: OffDayResponse
    reversal_info: ReversalInfo
    announcement_sent: bool = False


class OffDayResumeResult(CamelSchema):
    off_day: OffDayResponse
    memberships_extended: int = 0
    failed_membership_ids: List[str] = Field(default_factory=list)


class OffDayList(CamelSchema):
    off_days: List[OffDayResponse]
    pagination: PaginationInfo


class OffDayStats(CamelSchema):
    total: int = 0
    this_week: int = 0
    this_month: int = 0
    upcoming: int = 0


class OffDayAuditResponse(BaseResponseSchema):
    mess_id: str
    off_day_id: str
    action: AuditAction
    actor_id: str
    changes: Optional[Dict[str, Any]] = Field(default=None, description="Field name -> {from, to}")
    snapshot: Optional[Dict[str, Any]] = None
    note: Optional[str] = None


class WeeklyOffDaySettings(CamelSchema):
    enabled: bool = False
    day_of_week: int = Field(default=0, ge=0, le=6, description="0 = Sunday")
    meal_types: List[MealType] = Field(default_factory=lambda: list(MealType))

    @field_validator("meal_types", mode="before")
    @classmethod
    def normalize_meal_types(cls, v: Any) -> Any:
        return _lower_meals(v)


class MonthlyOffDaySettings(CamelSchema):
    enabled: bool = False
    days_of_month: List[int] = Field(default_factory=list)
    meal_types: List[MealType] = Field(default_factory=lambda: list(MealType))

    @field_validator("days_of_month")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        for day in v:
            if day < 1 or day > 31:
                raise ValueError("Days of month must be between 1 and 31")
        return sorted(set(v))

    @field_validator("meal_types", mode="before")
    @classmethod
    def normalize_meal_types(cls, v: Any) -> Any:
        return _lower_meals(v)


class OffDaySettingsSave(CamelSchema):
    pattern: OffDayPattern = OffDayPattern.NONE
    weekly_settings: Optional[WeeklyOffDaySettings] = None
    monthly_settings: Optional[MonthlyOffDaySettings] = None
    billing_deduction: bool = False


class OffDaySettingsResponse(CamelSchema):
    id: str
    mess_id: str
    pattern: OffDayPattern
    weekly_settings: WeeklyOffDaySettings
    monthly_settings: MonthlyOffDaySettings
    billing_deduction: bool = False
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, settings) -> "OffDaySettingsResponse":
        return cls(
            id=settings.id,
            mess_id=settings.mess_id,
            pattern=settings.pattern,
            weekly_settings=WeeklyOffDaySettings(
                enabled=settings.weekly_enabled,
                day_of_week=settings.weekly_day_of_week,
                meal_types=settings.weekly_meal_types,
            ),
            monthly_settings=MonthlyOffDaySettings(
                enabled=settings.monthly_enabled,
                days_of_month=settings.monthly_days or [],
                meal_types=settings.monthly_meal_types,
            ),
            billing_deduction=settings.billing_deduction,
            updated_at=settings.updated_at,
        )

"""
Chat announcement texts for mess closures and the default schedule.
"""

from datetime import date
from typing import Iterable, Optional

from smartmess.models.common.enums import ALL_MEALS
from smartmess.services.mess.meal_reconciler import off_day_closed_meals

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def format_date(value: date) -> str:
    """e.g. 'Wednesday, 21 October 2026'"""
    return f"{value.strftime('%A')}, {value.day} {value.strftime('%B')} {value.year}"


def format_meals(meals: Optional[Iterable[str]]) -> str:
    names = [str(m).capitalize() for m in (meals or [])]
    if not names:
        return "All meals"
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return " and ".join(names)
    return ", ".join(names[:-1]) + ", and " + names[-1]


def _ordered(meals: Iterable[str]) -> list:
    meals = set(meals)
    return [m for m in ALL_MEALS if m in meals]


def _reason_text(custom: Optional[str], *fallbacks: Optional[str]) -> str:
    if custom and custom.strip():
        return custom.strip()
    for reason in fallbacks:
        if reason:
            return reason
    return ""


def closure_notice(off_day, custom_reason: Optional[str] = None) -> str:
    reason = _reason_text(custom_reason, off_day.reason) or "Not specified"
    closed = off_day_closed_meals(off_day)
    if len(closed) > 1:
        meals = _ordered(m for day_meals in closed.values() for m in day_meals)
        lines = [
            "**Mess Closure Notice**",
            "",
            f"**Dates:** {format_date(off_day.start_date)} to {format_date(off_day.end_date)}",
            f"**Meals Affected:** {format_meals(meals)}",
            f"**Reason:** {reason}",
            "",
            "Please make alternative arrangements for your meals during this period.",
        ]
    else:
        meals = _ordered(closed[off_day.start_date])
        lines = [
            "**Mess Closure Notice**",
            "",
            f"**Date:** {format_date(off_day.start_date)}",
            f"**Meals Affected:** {format_meals(meals)}",
            f"**Reason:** {reason}",
            "",
            "Please make alternative arrangements for your meals on this day.",
        ]
    return "\n".join(lines)


def closure_update(off_day, custom_reason: Optional[str] = None) -> str:
    reason = _reason_text(custom_reason, off_day.reason) or "Not specified"
    return "\n".join([
        "**Mess Closure Update**",
        "",
        f"**Updated Date:** {format_date(off_day.off_date)}",
        f"**Meals Affected:** {format_meals(off_day.meal_types)}",
        f"**Reason:** {reason}",
        "",
        "Please note the changes and make necessary arrangements.",
    ])


def closure_cancelled(off_day, custom_reason: Optional[str] = None) -> str:
    reason = _reason_text(custom_reason, off_day.reason)
    lines = ["**Mess Closure Cancelled**", ""]
    is_span = off_day.is_range and off_day.end_date != off_day.start_date
    if is_span:
        day_count = (off_day.end_date - off_day.start_date).days + 1
        lines.append(
            f"**Cancelled Date Range:** {format_date(off_day.start_date)} to {format_date(off_day.end_date)}"
        )
        lines.append(f"**Total Days:** {day_count} days")
    else:
        lines.append(f"**Cancelled Date:** {format_date(off_day.off_date)}")
    lines.append(f"**Meals That Were Off:** {format_meals(off_day.meal_types)}")
    if reason:
        lines.append(f"**Original Reason:** {reason}")
    lines.append("")
    if is_span:
        lines.append(
            "Good news! The mess will be operational as usual during this period. "
            "Normal meal service will be available."
        )
    else:
        lines.append("Good news! The mess will be operational as usual. Normal meal service will be available.")
    return "\n".join(lines)


def schedule_notice(schedule) -> str:
    lines = ["**Default Mess Off Schedule Updated**", ""]
    if schedule.weekly_enabled:
        day_name = DAY_NAMES[max(0, min(6, schedule.weekly_day_of_week or 0))]
        lines.append(f"**Weekly**: {day_name}")
        lines.append(f"**Meals**: {format_meals(_ordered(schedule.weekly_meal_types or ALL_MEALS))}")
        lines.append("")
    if schedule.monthly_enabled:
        days = ", ".join(str(d) for d in sorted(schedule.monthly_days or []))
        lines.append(f"**Monthly**: Days {days or '-'}")
        lines.append(f"**Meals**: {format_meals(_ordered(schedule.monthly_meal_types or ALL_MEALS))}")
        lines.append("")
    if not schedule.weekly_enabled and not schedule.monthly_enabled:
        lines.append("No default mess off pattern is currently enabled.")
    return "\n".join(lines).rstrip("\n")

"""
Meal reconciliation between mess closures, member plans and personal leave.

Pure functions: nothing here touches the database. The off-day service
feeds in ORM rows (or anything exposing the same attributes) and turns
the results into membership changes.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from smartmess.core.utils import DateTimeUtils
from smartmess.models.common.enums import ALL_MEALS

MealsByDate = Dict[date, FrozenSet[str]]


@dataclass(frozen=True)
class MembershipExtension:
    """Extension computed for one membership before it is applied"""

    membership_id: str
    user_id: str
    missed_meals: int
    days_added: int


def normalize_meals(meals: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Known meal names from a meal-type list; empty when none are given."""
    if not meals:
        return frozenset()
    return frozenset(str(m).lower() for m in meals if str(m).lower() in ALL_MEALS)


def _or_all(meals: Optional[Iterable[str]]) -> FrozenSet[str]:
    return normalize_meals(meals) or frozenset(ALL_MEALS)


def closed_meals_by_date(
    start: date,
    end: Optional[date] = None,
    meal_types: Optional[Sequence[str]] = None,
    start_date_meal_types: Optional[Sequence[str]] = None,
    end_date_meal_types: Optional[Sequence[str]] = None,
    is_range: bool = False,
) -> MealsByDate:
    """
    Meals the mess is closed for on each date of a closure.

    A single-day closure closes ``meal_types``. A range closes
    ``start_date_meal_types`` on its first day, ``end_date_meal_types`` on
    its last day and every meal in between. Missing lists mean all meals.
    """
    if not is_range or end is None:
        return {start: _or_all(meal_types)}

    first = _or_all(start_date_meal_types)
    last = _or_all(end_date_meal_types)
    result: MealsByDate = {}
    for day in DateTimeUtils.iter_dates(start, end):
        if day == start:
            result[day] = first
        elif day == end:
            result[day] = last
        else:
            result[day] = frozenset(ALL_MEALS)
    return result


def off_day_closed_meals(off_day) -> MealsByDate:
    """closed_meals_by_date for a stored off-day record."""
    return closed_meals_by_date(
        off_day.start_date,
        off_day.end_date,
        meal_types=off_day.meal_types,
        start_date_meal_types=off_day.start_date_meal_types,
        end_date_meal_types=off_day.end_date_meal_types,
        is_range=bool(off_day.is_range),
    )


def leave_meals_for_date(leave, day: date) -> FrozenSet[str]:
    """
    Meals a personal leave excuses on one date.

    Boundary days use the leave's own start/end lists, falling back to the
    leave's meal_types and then to all meals. The first day wins when a
    leave starts and ends on the same date.
    """
    if day < leave.start_date or day > leave.end_date:
        return frozenset()
    default = _or_all(leave.meal_types)
    if day == leave.start_date:
        return normalize_meals(leave.start_date_meal_types) or default
    if day == leave.end_date:
        return normalize_meals(leave.end_date_meal_types) or default
    return default


def excused_meals_by_date(leaves: Iterable, dates: Iterable[date]) -> MealsByDate:
    """Union of the meals excused by any of the leaves, per date."""
    leaves = list(leaves)
    excused: MealsByDate = {}
    for day in dates:
        meals = set()
        for leave in leaves:
            meals |= leave_meals_for_date(leave, day)
        excused[day] = frozenset(meals)
    return excused


def compute_missed_meals(
    closed: MealsByDate,
    plan_meals: Iterable[str],
    leaves: Iterable = (),
) -> int:
    """
    Meals a member actually loses to a closure.

    Per date: closed meals the plan serves, minus meals the member was
    already excused from by approved personal leave. Summed over dates.
    """
    plan_meals = normalize_meals(plan_meals)
    if not plan_meals:
        return 0
    excused = excused_meals_by_date(leaves, closed.keys())
    missed = 0
    for day, meals in closed.items():
        eligible = meals & plan_meals
        missed += len(eligible - excused.get(day, frozenset()))
    return missed


def extension_days_for(missed_meals: int, meals_per_day: int) -> int:
    """Whole subscription days covering the missed meals (ceiling)."""
    if missed_meals <= 0:
        return 0
    return math.ceil(missed_meals / max(1, meals_per_day or 0))


def plan_membership_extensions(
    closed: MealsByDate,
    memberships: Iterable,
    plans: Dict[str, object],
    leaves_by_user: Dict[str, List],
) -> List[MembershipExtension]:
    """
    Compute every (membership, extension) pair for a closure.

    Memberships without a known plan and memberships that miss no meals
    are left out.
    """
    planned: List[MembershipExtension] = []
    for membership in memberships:
        plan = plans.get(membership.meal_plan_id)
        if plan is None:
            continue
        missed = compute_missed_meals(
            closed,
            plan.enabled_meals,
            leaves_by_user.get(membership.user_id, ()),
        )
        if missed <= 0:
            continue
        planned.append(
            MembershipExtension(
                membership_id=membership.id,
                user_id=membership.user_id,
                missed_meals=missed,
                days_added=extension_days_for(missed, plan.available_meals_per_day),
            )
        )
    return planned


__all__ = [
    "MealsByDate",
    "MembershipExtension",
    "normalize_meals",
    "closed_meals_by_date",
    "off_day_closed_meals",
    "leave_meals_for_date",
    "excused_meals_by_date",
    "compute_missed_meals",
    "extension_days_for",
    "plan_membership_extensions",
]

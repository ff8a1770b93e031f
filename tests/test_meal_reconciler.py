from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from smartmess.services.mess.meal_reconciler import (
    closed_meals_by_date,
    compute_missed_meals,
    extension_days_for,
    leave_meals_for_date,
    normalize_meals,
    plan_membership_extensions,
)

ALL = frozenset({"breakfast", "lunch", "dinner"})
DAY = date(2026, 11, 10)


def _leave(start, end, meal_types=None, start_meals=None, end_meals=None):
    return SimpleNamespace(
        start_date=start,
        end_date=end,
        meal_types=meal_types,
        start_date_meal_types=start_meals,
        end_date_meal_types=end_meals,
    )


def _plan(meals, per_day=None):
    return SimpleNamespace(enabled_meals=set(meals), available_meals_per_day=per_day or len(meals))


class TestClosedMeals:
    def test_single_day_uses_meal_types(self):
        closed = closed_meals_by_date(DAY, meal_types=["lunch", "Dinner"])
        assert closed == {DAY: frozenset({"lunch", "dinner"})}

    def test_single_day_without_meals_closes_everything(self):
        assert closed_meals_by_date(DAY) == {DAY: ALL}

    def test_range_uses_boundary_lists(self):
        end = DAY + timedelta(days=2)
        closed = closed_meals_by_date(
            DAY,
            end,
            start_date_meal_types=["dinner"],
            end_date_meal_types=["breakfast"],
            is_range=True,
        )
        assert closed == {
            DAY: frozenset({"dinner"}),
            DAY + timedelta(days=1): ALL,
            end: frozenset({"breakfast"}),
        }

    def test_unknown_meal_names_are_ignored(self):
        assert normalize_meals(["snack", "LUNCH"]) == frozenset({"lunch"})


class TestLeaveMeals:
    def test_outside_leave(self):
        leave = _leave(DAY, DAY + timedelta(days=1))
        assert leave_meals_for_date(leave, DAY - timedelta(days=1)) == frozenset()

    def test_boundaries_fall_back_to_meal_types(self):
        leave = _leave(DAY, DAY + timedelta(days=2), meal_types=["lunch"], end_meals=["breakfast"])
        assert leave_meals_for_date(leave, DAY) == frozenset({"lunch"})
        assert leave_meals_for_date(leave, DAY + timedelta(days=1)) == frozenset({"lunch"})
        assert leave_meals_for_date(leave, DAY + timedelta(days=2)) == frozenset({"breakfast"})

    def test_same_day_leave_prefers_start_list(self):
        leave = _leave(DAY, DAY, start_meals=["dinner"], end_meals=["breakfast"])
        assert leave_meals_for_date(leave, DAY) == frozenset({"dinner"})


class TestMissedMeals:
    def test_plan_without_dinner(self):
        closed = closed_meals_by_date(DAY)
        assert compute_missed_meals(closed, {"breakfast", "lunch"}) == 2

    def test_leave_covering_the_closure_misses_nothing(self):
        closed = closed_meals_by_date(DAY)
        leave = _leave(DAY - timedelta(days=1), DAY + timedelta(days=1))
        assert compute_missed_meals(closed, ALL, [leave]) == 0

    def test_partial_leave_subtracts_only_excused_meals(self):
        closed = closed_meals_by_date(DAY, DAY + timedelta(days=1), is_range=True)
        leave = _leave(DAY, DAY, meal_types=["breakfast"])
        assert compute_missed_meals(closed, ALL, [leave]) == 5

    def test_empty_plan(self):
        assert compute_missed_meals(closed_meals_by_date(DAY), []) == 0


@pytest.mark.parametrize(
    "missed, per_day, expected",
    [(4, 3, 2), (3, 3, 1), (1, 3, 1), (0, 3, 0), (2, 0, 2)],
)
def test_extension_days_for(missed, per_day, expected):
    assert extension_days_for(missed, per_day) == expected


def test_plan_membership_extensions_skips_unknown_plans_and_zero_misses():
    closed = closed_meals_by_date(DAY, meal_types=["dinner"])
    memberships = [
        SimpleNamespace(id="m1", user_id="u1", meal_plan_id="full"),
        SimpleNamespace(id="m2", user_id="u2", meal_plan_id="day"),
        SimpleNamespace(id="m3", user_id="u3", meal_plan_id=None),
        SimpleNamespace(id="m4", user_id="u4", meal_plan_id="full"),
    ]
    plans = {"full": _plan(ALL), "day": _plan({"breakfast", "lunch"})}
    leaves = {"u4": [_leave(DAY, DAY)]}

    planned = plan_membership_extensions(closed, memberships, plans, leaves)

    assert [(p.membership_id, p.missed_meals, p.days_added) for p in planned] == [("m1", 1, 1)]

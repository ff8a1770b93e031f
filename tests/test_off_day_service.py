from datetime import timedelta

import pytest
from sqlalchemy import func, select

from smartmess.models.chat import ChatMessage
from smartmess.models.common.enums import (
    AuditAction,
    ExtensionRecordStatus,
    ExtensionState,
    LeaveStatus,
    MembershipStatus,
    OffDayPattern,
    OffDayStatus,
)
from smartmess.models.mess import MessOffDay, MessProfile, OffDayExtension
from smartmess.repositories.mess.off_day_repository import OffDayAuditRepository
from smartmess.schemas.billing import BillingCreate
from smartmess.schemas.mess.off_day import (
    OffDayCancel,
    OffDayCreate,
    OffDaySettingsSave,
    OffDayUpdate,
    WeeklyOffDaySettings,
)
from smartmess.services.base import ErrorCode
from smartmess.services.billing.billing_service import BillingService
from smartmess.services.mess.off_day_service import OffDayService

from .conftest import OWNER_ID


@pytest.fixture
def service(db):
    return OffDayService(db)


def _create(service, mess, day, **fields):
    fields.setdefault("reason", "Staff holiday")
    return service.create_off_day(mess.id, OWNER_ID, OffDayCreate(off_date=day, **fields))


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestCreateAndCancel:
    def test_extension_is_applied_and_exactly_reversed(self, db, service, mess, membership, today):
        end_before = membership.subscription_end_date

        created = _create(service, mess, today + timedelta(days=3), subscription_extension=True)

        assert created.is_success
        off_day = created.data["off_day"]
        assert created.data["memberships_extended"] == 1
        assert off_day.extension_state == ExtensionState.APPLIED
        assert membership.subscription_end_date == end_before + timedelta(days=1)
        assert membership.leave_extension_meals == 3

        cancelled = service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        assert cancelled.is_success
        assert cancelled.data["reversal_info"]["memberships_reversed"] == 1
        assert cancelled.data["reversal_info"]["extension_days_reversed"] == 1
        assert off_day.status == OffDayStatus.CANCELLED
        assert off_day.extension_state == ExtensionState.REVERSED
        assert off_day.cancelled_by == OWNER_ID
        assert membership.subscription_end_date == end_before
        assert membership.leave_extension_meals == 0

    def test_plan_without_dinner_misses_two_meals(self, service, mess, make_membership, no_dinner_plan, today):
        member = make_membership(no_dinner_plan)
        end_before = member.subscription_end_date

        _create(service, mess, today + timedelta(days=1), subscription_extension=True)

        assert member.leave_extension_meals == 2
        assert member.subscription_end_date == end_before + timedelta(days=1)

    def test_without_extension_memberships_are_untouched(self, db, service, mess, membership, today):
        end_before = membership.subscription_end_date

        created = _create(service, mess, today + timedelta(days=1))

        assert created.data["off_day"].extension_state == ExtensionState.NONE
        assert membership.subscription_end_date == end_before
        assert _count(db, OffDayExtension) == 0

    def test_past_date_is_rejected_without_changes(self, db, service, mess, membership, today):
        end_before = membership.subscription_end_date

        result = _create(service, mess, today - timedelta(days=1), subscription_extension=True)

        assert not result.is_success
        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert result.message == "Off date cannot be in the past"
        assert _count(db, MessOffDay) == 0
        assert membership.subscription_end_date == end_before

    def test_today_is_allowed(self, service, mess, today):
        assert _create(service, mess, today).is_success

    def test_duplicate_active_date_conflicts(self, db, service, mess, today):
        day = today + timedelta(days=2)
        first = _create(service, mess, day)

        second = _create(service, mess, day)

        assert not second.is_success
        assert second.error.code == ErrorCode.CONFLICT
        assert second.message == f"An off day already exists for {day.isoformat()}"

        service.cancel_off_day(mess.id, first.data["off_day"].id, OWNER_ID)
        assert _create(service, mess, day).is_success
        assert _count(db, MessOffDay) == 2

    def test_range_overlapping_single_day_conflicts(self, service, mess, today):
        _create(service, mess, today + timedelta(days=3))

        result = service.create_off_day(
            mess.id,
            OWNER_ID,
            OffDayCreate(start_date=today + timedelta(days=2), end_date=today + timedelta(days=4), reason="Repairs"),
        )

        assert result.error.code == ErrorCode.CONFLICT

    def test_cancel_twice_does_not_reverse_twice(self, service, mess, membership, today):
        end_before = membership.subscription_end_date
        off_day = _create(service, mess, today + timedelta(days=3), subscription_extension=True).data["off_day"]
        assert service.cancel_off_day(mess.id, off_day.id, OWNER_ID).is_success

        again = service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        assert not again.is_success
        assert again.error.code == ErrorCode.CONFLICT
        assert membership.subscription_end_date == end_before
        assert membership.leave_extension_meals == 0

    def test_cancel_unknown_off_day(self, service, mess):
        result = service.cancel_off_day(mess.id, "missing", OWNER_ID)
        assert result.error.code == ErrorCode.NOT_FOUND

    def test_reversal_replays_recorded_delta_after_leave_changes(
        self, service, mess, membership, approved_leave, today
    ):
        day = today + timedelta(days=3)
        end_before = membership.subscription_end_date
        off_day = _create(service, mess, day, subscription_extension=True).data["off_day"]

        # Approved after the closure; a recomputation would now find zero missed meals
        approved_leave(membership, day, day)
        service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        assert membership.subscription_end_date == end_before
        assert membership.leave_extension_meals == 0

    def test_existing_leave_reduces_missed_meals(self, service, mess, membership, approved_leave, today):
        day = today + timedelta(days=3)
        approved_leave(membership, day, day, meal_types=["breakfast", "lunch"])

        _create(service, mess, day, subscription_extension=True)

        assert membership.leave_extension_meals == 1

    def test_pending_leave_is_ignored(self, service, mess, membership, approved_leave, today):
        day = today + timedelta(days=3)
        approved_leave(membership, day, day, status=LeaveStatus.PENDING)

        _create(service, mess, day, subscription_extension=True)

        assert membership.leave_extension_meals == 3

    def test_range_with_boundary_meals(self, service, mess, membership, make_membership, no_dinner_plan, today):
        day_scholar = make_membership(no_dinner_plan)
        full_end = membership.subscription_end_date
        scholar_end = day_scholar.subscription_end_date

        result = service.create_off_day(
            mess.id,
            OWNER_ID,
            OffDayCreate(
                start_date=today + timedelta(days=2),
                end_date=today + timedelta(days=4),
                start_date_meal_types=["dinner"],
                end_date_meal_types=["breakfast"],
                reason="Kitchen renovation",
                subscription_extension=True,
            ),
        )

        assert result.is_success
        off_day = result.data["off_day"]
        assert off_day.is_range
        assert off_day.range_end_date == today + timedelta(days=4)
        assert membership.leave_extension_meals == 5
        assert membership.subscription_end_date == full_end + timedelta(days=2)
        assert day_scholar.leave_extension_meals == 3
        assert day_scholar.subscription_end_date == scholar_end + timedelta(days=2)

    def test_range_end_before_start(self, service, mess, today):
        result = service.create_off_day(
            mess.id,
            OWNER_ID,
            OffDayCreate(start_date=today + timedelta(days=4), end_date=today + timedelta(days=2), reason="x"),
        )
        assert result.error.code == ErrorCode.VALIDATION_ERROR

    def test_inactive_memberships_are_not_extended(self, service, mess, make_membership, full_plan, today):
        inactive = make_membership(full_plan, status=MembershipStatus.INACTIVE)
        end_before = inactive.subscription_end_date

        _create(service, mess, today + timedelta(days=1), subscription_extension=True)

        assert inactive.subscription_end_date == end_before

    def test_cancel_restores_missing_end_date(self, service, mess, make_membership, full_plan, today):
        member = make_membership(full_plan, status=MembershipStatus.PENDING, subscription_end_date=None)

        off_day = _create(service, mess, today, subscription_extension=True).data["off_day"]

        assert member.subscription_end_date == today + timedelta(days=1)
        assert member.leave_extension_meals == 3

        service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        assert member.subscription_end_date is None
        assert member.leave_extension_meals == 0


class TestExtensionSaga:
    def test_partial_failure_then_resume(self, db, service, mess, make_membership, full_plan, monkeypatch, today):
        healthy = make_membership(full_plan)
        flaky = make_membership(full_plan)
        healthy_end = healthy.subscription_end_date
        flaky_end = flaky.subscription_end_date

        original = service.billing_service.record_subscription_extension

        def failing_for_flaky(membership, *args):
            if membership.id == flaky.id:
                raise RuntimeError("billing store unavailable")
            return original(membership, *args)

        monkeypatch.setattr(service.billing_service, "record_subscription_extension", failing_for_flaky)

        created = _create(service, mess, today + timedelta(days=3), subscription_extension=True)

        assert created.is_success
        off_day = created.data["off_day"]
        assert created.data["memberships_extended"] == 1
        assert created.data["failed_membership_ids"] == [flaky.id]
        assert off_day.extension_state == ExtensionState.PARTIAL
        assert off_day.failed_membership_ids == [flaky.id]
        assert healthy.subscription_end_date == healthy_end + timedelta(days=1)
        assert flaky.subscription_end_date == flaky_end
        assert flaky.leave_extension_meals == 0

        monkeypatch.setattr(service.billing_service, "record_subscription_extension", original)
        resumed = service.resume_extensions(mess.id, off_day.id, OWNER_ID)

        assert resumed.is_success
        assert resumed.data["memberships_extended"] == 1
        assert off_day.extension_state == ExtensionState.APPLIED
        assert off_day.failed_membership_ids is None
        assert healthy.subscription_end_date == healthy_end + timedelta(days=1)
        assert flaky.subscription_end_date == flaky_end + timedelta(days=1)

        service.cancel_off_day(mess.id, off_day.id, OWNER_ID)
        assert healthy.subscription_end_date == healthy_end
        assert flaky.subscription_end_date == flaky_end

    def test_cancelling_partial_off_day_reverses_only_applied_rows(
        self, db, service, mess, make_membership, full_plan, monkeypatch, today
    ):
        healthy = make_membership(full_plan)
        flaky = make_membership(full_plan)
        flaky_end = flaky.subscription_end_date
        original = service.billing_service.record_subscription_extension

        def failing_for_flaky(membership, *args):
            if membership.id == flaky.id:
                raise RuntimeError("billing store unavailable")
            return original(membership, *args)

        monkeypatch.setattr(service.billing_service, "record_subscription_extension", failing_for_flaky)
        off_day = _create(service, mess, today + timedelta(days=3), subscription_extension=True).data["off_day"]

        result = service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        assert result.data["reversal_info"]["memberships_reversed"] == 1
        assert flaky.subscription_end_date == flaky_end
        rows = db.execute(select(OffDayExtension)).scalars().all()
        assert [(r.membership_id, r.status) for r in rows] == [(healthy.id, ExtensionRecordStatus.REVERSED)]

    def test_resume_requires_extension(self, service, mess, today):
        off_day = _create(service, mess, today + timedelta(days=1)).data["off_day"]

        result = service.resume_extensions(mess.id, off_day.id, OWNER_ID)

        assert result.error.code == ErrorCode.BUSINESS_RULE_VIOLATION

    def test_open_bill_tracks_extension_snapshot(self, db, service, mess, membership, today):
        billing = BillingService(db).create_billing(
            BillingCreate(
                membership_id=membership.id,
                period_start=today,
                period_end=today + timedelta(days=29),
            ),
            OWNER_ID,
        ).data
        end_before = membership.subscription_end_date

        off_day = _create(service, mess, today + timedelta(days=3), subscription_extension=True).data["off_day"]

        assert billing.extension_meals == 3
        assert billing.extension_days == 1
        assert billing.extension_original_end_date == end_before
        assert billing.extension_new_end_date == end_before + timedelta(days=1)

        service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        assert billing.extension_meals == 0
        assert billing.extension_days == 0
        assert billing.extension_new_end_date is None
        assert billing.final_amount == billing.total_amount


class TestUpdate:
    def test_update_records_audit_diff(self, db, service, mess, today):
        off_day = _create(service, mess, today + timedelta(days=2)).data["off_day"]

        result = service.update_off_day(
            mess.id,
            off_day.id,
            OWNER_ID,
            OffDayUpdate(reason="Water supply maintenance", meal_types=["lunch"]),
        )

        assert result.is_success
        assert off_day.meal_types == ["lunch"]
        audits = OffDayAuditRepository(db).list_for_off_day(off_day.id)
        assert [a.action for a in audits] == [AuditAction.UPDATE, AuditAction.CREATE]
        assert audits[0].changes == {
            "reason": {"from": "Staff holiday", "to": "Water supply maintenance"},
            "mealTypes": {"from": ["breakfast", "lunch", "dinner"], "to": ["lunch"]},
        }

    def test_update_does_not_recompute_extensions(self, service, mess, membership, today):
        off_day = _create(service, mess, today + timedelta(days=2), subscription_extension=True).data["off_day"]
        extended_end = membership.subscription_end_date

        service.update_off_day(mess.id, off_day.id, OWNER_ID, OffDayUpdate(meal_types=["dinner"]))

        assert membership.subscription_end_date == extended_end
        assert membership.leave_extension_meals == 3

    def test_update_cancelled_off_day_conflicts(self, service, mess, today):
        off_day = _create(service, mess, today + timedelta(days=2)).data["off_day"]
        service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        result = service.update_off_day(mess.id, off_day.id, OWNER_ID, OffDayUpdate(reason="Changed"))

        assert result.error.code == ErrorCode.CONFLICT

    def test_moving_onto_another_off_day_conflicts(self, service, mess, today):
        _create(service, mess, today + timedelta(days=2))
        second = _create(service, mess, today + timedelta(days=5)).data["off_day"]

        result = service.update_off_day(
            mess.id, second.id, OWNER_ID, OffDayUpdate(off_date=today + timedelta(days=2))
        )

        assert result.error.code == ErrorCode.CONFLICT
        assert second.off_date == today + timedelta(days=5)

    def test_extension_days_must_be_positive(self, service, mess, today):
        result = _create(service, mess, today + timedelta(days=2), subscription_extension=True, extension_days=0)

        assert result.error.code == ErrorCode.VALIDATION_ERROR

    def test_non_positive_extension_days_rejected_without_extension(self, db, service, mess, today):
        result = _create(service, mess, today + timedelta(days=2), extension_days=-2)

        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert result.message == "Extension days must be at least 1"
        assert _count(db, MessOffDay) == 0

    def test_update_rejects_zero_extension_days(self, service, mess, today):
        off_day = _create(service, mess, today + timedelta(days=2)).data["off_day"]

        result = service.update_off_day(mess.id, off_day.id, OWNER_ID, OffDayUpdate(extension_days=0))

        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert off_day.extension_days == 1


class TestHistory:
    def test_history_newest_first(self, service, mess, today):
        off_day = _create(service, mess, today + timedelta(days=2)).data["off_day"]
        service.update_off_day(mess.id, off_day.id, OWNER_ID, OffDayUpdate(reason="Cook on leave"))
        service.cancel_off_day(mess.id, off_day.id, OWNER_ID)

        result = service.get_history(mess.id, off_day.id)

        assert result.is_success
        assert [a.action for a in result.data] == [AuditAction.DELETE, AuditAction.UPDATE, AuditAction.CREATE]
        assert all(a.actor_id == OWNER_ID for a in result.data)

    def test_other_mess_off_day_is_not_found(self, db, service, mess, today):
        off_day = _create(service, mess, today + timedelta(days=2)).data["off_day"]
        other = MessProfile(owner_id="owner-0002", name="Other Mess")
        db.add(other)
        db.commit()

        result = service.get_history(other.id, off_day.id)

        assert result.error.code == ErrorCode.NOT_FOUND


class TestListingAndStats:
    def test_list_filters_and_paginates(self, service, mess, today):
        for offset in (1, 2, 3):
            _create(service, mess, today + timedelta(days=offset))

        upcoming = service.list_off_days(mess.id, "upcoming", page=1, limit=2)
        past = service.list_off_days(mess.id, "past")

        assert len(upcoming.data["off_days"]) == 2
        assert upcoming.data["pagination"].total == 3
        assert upcoming.data["pagination"].pages == 2
        assert past.data["off_days"] == []

    def test_list_rejects_unknown_filter(self, service, mess):
        assert service.list_off_days(mess.id, "someday").error.code == ErrorCode.VALIDATION_ERROR

    def test_stats_count_active_only(self, service, mess, today):
        _create(service, mess, today + timedelta(days=1))
        cancelled = _create(service, mess, today + timedelta(days=2)).data["off_day"]
        service.cancel_off_day(mess.id, cancelled.id, OWNER_ID)

        stats = service.get_off_day_stats(mess.id).data

        assert stats["total"] == 1
        assert stats["upcoming"] == 1


class TestAnnouncements:
    def test_announcement_posted_to_default_room(self, db, service, mess, chat_room, today):
        result = _create(service, mess, today + timedelta(days=1), send_announcement=True)

        assert result.data["announcement_sent"] is True
        message = db.execute(select(ChatMessage)).scalars().one()
        assert message.room_id == chat_room.id
        assert "**Mess Closure Notice**" in message.content
        assert "**Reason:** Staff holiday" in message.content

    def test_missing_room_does_not_fail_operation(self, service, mess, today):
        result = _create(service, mess, today + timedelta(days=1), send_announcement=True)

        assert result.is_success
        assert result.data["announcement_sent"] is False

    def test_cancel_announcement_uses_custom_reason(self, db, service, mess, chat_room, today):
        off_day = _create(service, mess, today + timedelta(days=1)).data["off_day"]

        result = service.cancel_off_day(
            mess.id,
            off_day.id,
            OWNER_ID,
            OffDayCancel(send_announcement=True, announcement_message="Cook is back"),
        )

        assert result.data["announcement_sent"] is True
        message = db.execute(select(ChatMessage)).scalars().one()
        assert "**Mess Closure Cancelled**" in message.content
        assert "**Original Reason:** Cook is back" in message.content


class TestDefaultSettings:
    def test_defaults_created_on_first_read(self, service, mess):
        schedule = service.get_default_settings(mess.id).data

        assert schedule.pattern == OffDayPattern.NONE
        assert schedule.weekly_enabled is False
        assert schedule.monthly_days == []

    def test_weekly_pattern_requires_weekly_settings(self, service, mess):
        result = service.save_default_settings(mess.id, OWNER_ID, OffDaySettingsSave(pattern=OffDayPattern.WEEKLY))

        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert result.message == "Weekly settings must be enabled for weekly pattern"

    def test_save_weekly_schedule_and_announce(self, db, service, mess, chat_room):
        result = service.save_default_settings(
            mess.id,
            OWNER_ID,
            OffDaySettingsSave(
                pattern=OffDayPattern.WEEKLY,
                weekly_settings=WeeklyOffDaySettings(enabled=True, day_of_week=0, meal_types=["dinner"]),
            ),
        )

        assert result.is_success
        schedule = result.data
        assert schedule.weekly_day_of_week == 0
        assert schedule.weekly_meal_types == ["dinner"]
        assert schedule.updated_by == OWNER_ID
        message = db.execute(select(ChatMessage)).scalars().one()
        assert "**Weekly**: Sunday" in message.content
        assert "**Meals**: Dinner" in message.content

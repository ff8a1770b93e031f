"""
Mess off-day service.

Mess closures extend member subscriptions in proportion to the meals each
member actually misses. Extensions are applied membership by membership,
each in its own savepoint together with an OffDayExtension row; cancelling
replays those rows in reverse, so reversal is exact even when plans or
leaves changed in between.
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartmess.core.exceptions import (
    BusinessRuleError,
    DuplicateEntryError,
    ResourceNotFoundError,
    StateConflictError,
    ValidationError,
)
from smartmess.core.utils import DateTimeUtils, local_today, utc_now
from smartmess.models.common.enums import (
    ALL_MEALS,
    AuditAction,
    ExtensionRecordStatus,
    ExtensionState,
    MealType,
    OffDayPattern,
    OffDayStatus,
)
from smartmess.models.mess import DefaultOffDaySettings, MessOffDay, OffDayAudit, OffDayExtension
from smartmess.repositories.leave.user_leave_repository import UserLeaveRepository
from smartmess.repositories.mess.mess_repository import MealPlanRepository, MembershipRepository
from smartmess.repositories.mess.off_day_repository import (
    OffDayAuditRepository,
    OffDayExtensionRepository,
    OffDayRepository,
    OffDaySettingsRepository,
)
from smartmess.schemas.common.response import PaginationInfo
from smartmess.schemas.mess.off_day import OffDayCancel, OffDayCreate, OffDaySettingsSave, OffDayUpdate
from smartmess.services.base import BaseService, ServiceResult
from smartmess.services.billing.billing_service import BillingService
from smartmess.services.communication.chat_service import ChatService
from smartmess.services.mess import off_day_notices
from smartmess.services.mess.meal_reconciler import (
    MembershipExtension,
    off_day_closed_meals,
    plan_membership_extensions,
)

DATE_FILTERS = ("all", "upcoming", "past")
CANCEL_NOTE = "Cancelled by mess owner"


def _meal_values(meals: Optional[Iterable[Any]]) -> Optional[List[str]]:
    if meals is None:
        return None
    values = {MealType(m).value for m in meals}
    return [m for m in ALL_MEALS if m in values]


def _resolve_extension_days(enabled: bool, value: Optional[int], current: int = 1) -> int:
    if value is not None and value < 1:
        message = "Extension days must be at least 1"
        if enabled:
            message += " when subscription extension is enabled"
        raise ValidationError(message, field="extensionDays")
    if value is None:
        return max(1, current or 1)
    return value


def _tracked_fields(off_day: MessOffDay) -> Dict[str, Any]:
    return {
        "offDate": off_day.off_date.isoformat() if off_day.off_date else None,
        "reason": off_day.reason,
        "mealTypes": list(off_day.meal_types or []),
        "subscriptionExtension": bool(off_day.subscription_extension),
        "extensionDays": off_day.extension_days,
    }


class OffDayService(BaseService[MessOffDay, OffDayRepository]):
    """
    Mess closure lifecycle.

    - create / update / cancel with audit trail and chat announcements
    - subscription extension saga and its exact reversal
    - listing, stats and the default recurring schedule
    """

    def __init__(self, db_session: Session):
        super().__init__(OffDayRepository(db_session), db_session)
        self.extension_repository = OffDayExtensionRepository(db_session)
        self.audit_repository = OffDayAuditRepository(db_session)
        self.settings_repository = OffDaySettingsRepository(db_session)
        self.membership_repository = MembershipRepository(db_session)
        self.plan_repository = MealPlanRepository(db_session)
        self.leave_repository = UserLeaveRepository(db_session)
        self.billing_service = BillingService(db_session)
        self.chat_service = ChatService(db_session)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_off_day(self, mess_id: str, off_day_id: str) -> MessOffDay:
        off_day = self.repository.get_for_mess(off_day_id, mess_id)
        if off_day is None:
            raise ResourceNotFoundError("Off day", off_day_id, "Off day not found")
        return off_day

    def _ensure_no_overlap(
        self,
        mess_id: str,
        start: date,
        end: date,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = [
            od for od in self.repository.find_active_overlapping(mess_id, start, end)
            if od.id != exclude_id
        ]
        if existing:
            conflict = min(max(start, od.start_date) for od in existing)
            raise StateConflictError(f"An off day already exists for {conflict.isoformat()}")

    def _audit(
        self,
        off_day: MessOffDay,
        action: AuditAction,
        actor_id: str,
        changes: Optional[Dict[str, Any]] = None,
        note: Optional[str] = None,
    ) -> OffDayAudit:
        return self.audit_repository.create(
            OffDayAudit(
                mess_id=off_day.mess_id,
                off_day_id=off_day.id,
                action=action,
                actor_id=actor_id,
                changes=changes,
                snapshot=off_day.snapshot(),
                note=note,
            )
        )

    def _announce(self, off_day: MessOffDay, actor_id: str, content: str) -> bool:
        return self.chat_service.announce(off_day.mess_id, actor_id, content)

    # -------------------------------------------------------------------------
    # Extension saga
    # -------------------------------------------------------------------------

    def plan_extensions(self, off_day: MessOffDay) -> List[MembershipExtension]:
        """Extensions every active or pending member is owed for a closure."""
        closed = off_day_closed_meals(off_day)
        memberships = self.membership_repository.find_extendable(off_day.mess_id)
        plans = self.plan_repository.get_map(m.meal_plan_id for m in memberships)
        leaves = self.leave_repository.approved_by_user(
            {m.user_id for m in memberships},
            off_day.start_date,
            off_day.end_date,
        )
        return plan_membership_extensions(closed, memberships, plans, leaves)

    def _apply_extension(self, off_day: MessOffDay, planned: MembershipExtension, actor_id: str) -> OffDayExtension:
        membership = self.membership_repository.get_by_id(planned.membership_id)
        if membership is None:
            raise ResourceNotFoundError("Membership", planned.membership_id)

        end_before = membership.subscription_end_date
        end_after = (end_before or local_today()) + timedelta(days=planned.days_added)
        membership.subscription_end_date = end_after
        membership.leave_extension_meals = (membership.leave_extension_meals or 0) + planned.missed_meals

        billing_id = self.billing_service.record_subscription_extension(
            membership,
            planned.missed_meals,
            planned.days_added,
            end_before,
            end_after,
            actor_id,
            f"Mess off day {off_day.start_date.isoformat()}",
        )
        return self.extension_repository.create(
            OffDayExtension(
                off_day_id=off_day.id,
                membership_id=membership.id,
                user_id=membership.user_id,
                missed_meals=planned.missed_meals,
                days_added=planned.days_added,
                end_date_before=end_before,
                end_date_after=end_after,
                billing_id=billing_id,
                status=ExtensionRecordStatus.APPLIED,
                applied_at=utc_now(),
            )
        )

    def _run_extension_saga(self, off_day: MessOffDay, actor_id: str) -> Tuple[int, List[str]]:
        """
        Apply every extension not yet recorded for the off day and commit.

        A membership that fails is rolled back to its savepoint, logged and
        reported; the off day is then left in the partial state for resume.
        """
        try:
            planned = self.plan_extensions(off_day)
            recorded = self.extension_repository.recorded_membership_ids(off_day.id)
        except Exception as e:
            self._logger.error(f"Extension planning failed for off day {off_day.id}: {e}", exc_info=True)
            self._rollback()
            off_day.extension_state = ExtensionState.PARTIAL
            self._commit()
            return 0, []

        applied = 0
        failed: List[str] = []
        for item in planned:
            if item.membership_id in recorded:
                continue
            try:
                with self.db.begin_nested():
                    self._apply_extension(off_day, item, actor_id)
                applied += 1
            except Exception as e:
                self._logger.warning(
                    f"Subscription extension failed for membership {item.membership_id}: {e}",
                    extra={"off_day_id": off_day.id, "membership_id": item.membership_id},
                )
                failed.append(item.membership_id)

        off_day.failed_membership_ids = failed or None
        off_day.extension_state = ExtensionState.PARTIAL if failed else ExtensionState.APPLIED
        self._commit()
        self._logger.info(
            f"Off day {off_day.id} extended {applied} memberships",
            extra={"failed_count": len(failed), "extension_state": off_day.extension_state.value},
        )
        return applied, failed

    def _reverse_extensions(self, off_day: MessOffDay, actor_id: str) -> int:
        """Replay applied extension rows backwards. Does not commit."""
        reversed_count = 0
        now = utc_now()
        reason = f"Mess off day {off_day.start_date.isoformat()} cancelled"
        for row in self.extension_repository.list_for_off_day(off_day.id, ExtensionRecordStatus.APPLIED):
            membership = self.membership_repository.get_by_id(row.membership_id)
            if membership is not None:
                if row.end_date_before is None and membership.subscription_end_date == row.end_date_after:
                    # the extension set the first end date
                    membership.subscription_end_date = None
                elif membership.subscription_end_date is not None:
                    membership.subscription_end_date -= timedelta(days=row.days_added)
                membership.leave_extension_meals = max(
                    0, (membership.leave_extension_meals or 0) - row.missed_meals
                )
                self.billing_service.revert_subscription_extension(
                    row.billing_id,
                    row.missed_meals,
                    row.days_added,
                    membership.subscription_end_date,
                    actor_id,
                    reason,
                )
            row.status = ExtensionRecordStatus.REVERSED
            row.reversed_at = now
            reversed_count += 1
        self.db.flush()
        return reversed_count

    # -------------------------------------------------------------------------
    # Off-day operations
    # -------------------------------------------------------------------------

    def create_off_day(
        self,
        mess_id: str,
        actor_id: str,
        data: OffDayCreate,
    ) -> ServiceResult[Dict[str, Any]]:
        """
        Create a closure for one date or an inclusive range.

        Args:
            mess_id: Mess being closed
            actor_id: Mess owner creating the closure
            data: Dates, meals, reason and extension options

        Returns:
            ServiceResult with the off day, extension counts and whether an
            announcement was posted
        """
        try:
            today = local_today()
            if data.off_date is not None:
                start = end = data.off_date
                is_range = False
                if start < today:
                    raise ValidationError("Off date cannot be in the past", field="offDate")
            elif data.is_range:
                start, end = data.start_date, data.end_date
                is_range = True
                if end < start:
                    raise ValidationError("End date cannot be before start date", field="endDate")
                if start < today:
                    raise ValidationError("Off day cannot be in the past", field="startDate")
            else:
                raise ValidationError("Provide either offDate or startDate and endDate")

            extension_days = _resolve_extension_days(data.subscription_extension, data.extension_days)
            self._ensure_no_overlap(mess_id, start, end)

            if is_range:
                meal_types = list(ALL_MEALS)
                start_meals = _meal_values(data.start_date_meal_types) or list(ALL_MEALS)
                end_meals = _meal_values(data.end_date_meal_types) or list(ALL_MEALS)
            else:
                meal_types = _meal_values(data.meal_types) or list(ALL_MEALS)
                start_meals = end_meals = None

            off_day = MessOffDay(
                mess_id=mess_id,
                off_date=start,
                is_range=is_range,
                range_start_date=start if is_range else None,
                range_end_date=end if is_range else None,
                meal_types=meal_types,
                start_date_meal_types=start_meals,
                end_date_meal_types=end_meals,
                reason=data.reason,
                billing_deduction=False,
                subscription_extension=data.subscription_extension,
                extension_days=extension_days,
                status=OffDayStatus.ACTIVE,
                extension_state=(
                    ExtensionState.PENDING if data.subscription_extension else ExtensionState.NONE
                ),
                created_by=actor_id,
            )
            try:
                self.repository.create(off_day)
            except DuplicateEntryError:
                raise StateConflictError(f"An off day already exists for {start.isoformat()}")

            self._audit(off_day, AuditAction.CREATE, actor_id)
            self._commit()
            self._logger.info(
                f"Off day {off_day.id} created for mess {mess_id}",
                extra={"start": start.isoformat(), "end": end.isoformat(), "is_range": is_range},
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "create off day", mess_id)

        extended, failed = 0, []
        if off_day.subscription_extension:
            extended, failed = self._run_extension_saga(off_day, actor_id)

        announced = False
        if data.send_announcement:
            announced = self._announce(
                off_day,
                actor_id,
                off_day_notices.closure_notice(off_day, data.announcement_message),
            )

        return ServiceResult.success(
            {
                "off_day": off_day,
                "memberships_extended": extended,
                "failed_membership_ids": failed,
                "announcement_sent": announced,
            },
            message="Mess off day created successfully",
        )

    def update_off_day(
        self,
        mess_id: str,
        off_day_id: str,
        actor_id: str,
        data: OffDayUpdate,
    ) -> ServiceResult[MessOffDay]:
        """Merge the given fields. Applied extensions are left as they are."""
        try:
            off_day = self._get_off_day(mess_id, off_day_id)
            if not off_day.is_active:
                raise StateConflictError("Cannot update a cancelled off day")
            before = _tracked_fields(off_day)

            if data.off_date is not None and data.off_date != off_day.off_date:
                if data.off_date < local_today():
                    raise ValidationError("Off date cannot be in the past", field="offDate")
                if off_day.is_range:
                    if data.off_date > off_day.range_end_date:
                        raise ValidationError("End date cannot be before start date", field="offDate")
                    self._ensure_no_overlap(mess_id, data.off_date, off_day.range_end_date, off_day.id)
                    off_day.range_start_date = data.off_date
                else:
                    self._ensure_no_overlap(mess_id, data.off_date, data.off_date, off_day.id)
                off_day.off_date = data.off_date

            if data.reason is not None:
                off_day.reason = data.reason
            if data.meal_types is not None:
                off_day.meal_types = _meal_values(data.meal_types) or list(ALL_MEALS)
            if data.billing_deduction is not None:
                off_day.billing_deduction = data.billing_deduction
            if data.subscription_extension is not None:
                off_day.subscription_extension = data.subscription_extension
            if data.extension_days is not None or data.subscription_extension:
                off_day.extension_days = _resolve_extension_days(
                    off_day.subscription_extension,
                    data.extension_days,
                    off_day.extension_days,
                )

            after = _tracked_fields(off_day)
            changes = {
                key: {"from": before[key], "to": after[key]}
                for key in before
                if before[key] != after[key]
            }
            try:
                self.db.flush()
            except IntegrityError:
                raise StateConflictError(f"An off day already exists for {off_day.off_date.isoformat()}")
            if changes:
                self._audit(off_day, AuditAction.UPDATE, actor_id, changes=changes)
            self._commit()
            self._logger.info(
                f"Off day {off_day.id} updated",
                extra={"changed_fields": sorted(changes)},
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "update off day", off_day_id)

        if data.send_announcement:
            self._announce(
                off_day,
                actor_id,
                off_day_notices.closure_update(off_day, data.announcement_message),
            )
        return ServiceResult.success(off_day, message="Mess off day updated successfully")

    def cancel_off_day(
        self,
        mess_id: str,
        off_day_id: str,
        actor_id: str,
        data: Optional[OffDayCancel] = None,
    ) -> ServiceResult[Dict[str, Any]]:
        """
        Soft-delete a closure and replay its recorded extensions backwards.

        Cancelling twice is a conflict, so no extension is reversed twice.
        """
        data = data or OffDayCancel()
        try:
            off_day = self._get_off_day(mess_id, off_day_id)
            if not off_day.is_active:
                raise StateConflictError("Off day is already cancelled")

            memberships_reversed = self._reverse_extensions(off_day, actor_id)
            reversal_info = {
                "billing_deduction_reversed": bool(off_day.billing_deduction),
                "subscription_extension_reversed": bool(off_day.subscription_extension),
                "extension_days_reversed": off_day.extension_days if off_day.subscription_extension else None,
                "memberships_reversed": memberships_reversed,
            }

            self._audit(off_day, AuditAction.DELETE, actor_id, note=CANCEL_NOTE)
            off_day.status = OffDayStatus.CANCELLED
            off_day.cancelled_by = actor_id
            off_day.cancelled_at = utc_now()
            if memberships_reversed or off_day.extension_state in (
                ExtensionState.APPLIED,
                ExtensionState.PARTIAL,
            ):
                off_day.extension_state = ExtensionState.REVERSED
            self._commit()
            self._logger.info(
                f"Off day {off_day.id} cancelled",
                extra={"memberships_reversed": memberships_reversed},
            )
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "cancel off day", off_day_id)

        announced = False
        if data.send_announcement:
            announced = self._announce(
                off_day,
                actor_id,
                off_day_notices.closure_cancelled(off_day, data.announcement_message),
            )
        return ServiceResult.success(
            {"off_day": off_day, "reversal_info": reversal_info, "announcement_sent": announced},
            message="Mess off day cancelled successfully. Changes have been reversed.",
        )

    def resume_extensions(
        self,
        mess_id: str,
        off_day_id: str,
        actor_id: str,
    ) -> ServiceResult[Dict[str, Any]]:
        """Apply the extensions a partial saga left out."""
        try:
            off_day = self._get_off_day(mess_id, off_day_id)
            if not off_day.is_active:
                raise StateConflictError("Off day is already cancelled")
            if not off_day.subscription_extension:
                raise BusinessRuleError("Subscription extension is not enabled for this off day")
        except Exception as e:
            return self._handle_exception(e, "resume off day extensions", off_day_id)

        extended, failed = self._run_extension_saga(off_day, actor_id)
        return ServiceResult.success(
            {"off_day": off_day, "memberships_extended": extended, "failed_membership_ids": failed},
            message="Subscription extensions resumed",
        )

    def list_off_days(
        self,
        mess_id: str,
        date_filter: str = "all",
        page: int = 1,
        limit: int = 10,
    ) -> ServiceResult[Dict[str, Any]]:
        try:
            if date_filter not in DATE_FILTERS:
                raise ValidationError(f"Invalid filter '{date_filter}'", field="filter")
            page = max(1, page)
            limit = max(1, min(100, limit))
            off_days, total = self.repository.list_paginated(mess_id, date_filter, local_today(), page, limit)
            return ServiceResult.success({
                "off_days": off_days,
                "pagination": PaginationInfo.build(page, limit, total),
            })
        except Exception as e:
            return self._handle_exception(e, "list off days", mess_id)

    def get_history(self, mess_id: str, off_day_id: str) -> ServiceResult[List[OffDayAudit]]:
        """Audit trail of one off day, newest first."""
        try:
            off_day = self._get_off_day(mess_id, off_day_id)
            return ServiceResult.success(self.audit_repository.list_for_off_day(off_day.id))
        except Exception as e:
            return self._handle_exception(e, "fetch off day history", off_day_id)

    def get_off_day_stats(self, mess_id: str) -> ServiceResult[Dict[str, int]]:
        try:
            today = local_today()
            week_start = datetime.combine(DateTimeUtils.start_of_week(today), time.min)
            month_start = datetime.combine(today.replace(day=1), time.min)
            return ServiceResult.success(self.repository.get_stats(mess_id, today, week_start, month_start))
        except Exception as e:
            return self._handle_exception(e, "fetch off day stats", mess_id)

    # -------------------------------------------------------------------------
    # Default schedule
    # -------------------------------------------------------------------------

    def _get_or_create_settings(self, mess_id: str) -> DefaultOffDaySettings:
        schedule = self.settings_repository.get_by_mess(mess_id)
        if schedule is None:
            schedule = self.settings_repository.create(
                DefaultOffDaySettings(
                    mess_id=mess_id,
                    pattern=OffDayPattern.NONE,
                    weekly_enabled=False,
                    weekly_day_of_week=0,
                    weekly_meal_types=list(ALL_MEALS),
                    monthly_enabled=False,
                    monthly_days=[],
                    monthly_meal_types=list(ALL_MEALS),
                    billing_deduction=False,
                )
            )
        return schedule

    def get_default_settings(self, mess_id: str) -> ServiceResult[DefaultOffDaySettings]:
        try:
            schedule = self._get_or_create_settings(mess_id)
            self._commit()
            return ServiceResult.success(schedule)
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "fetch default off day settings", mess_id)

    def save_default_settings(
        self,
        mess_id: str,
        actor_id: str,
        data: OffDaySettingsSave,
    ) -> ServiceResult[DefaultOffDaySettings]:
        try:
            weekly, monthly = data.weekly_settings, data.monthly_settings
            if data.pattern == OffDayPattern.WEEKLY and not (weekly and weekly.enabled):
                raise ValidationError("Weekly settings must be enabled for weekly pattern")
            if data.pattern == OffDayPattern.MONTHLY and not (monthly and monthly.enabled):
                raise ValidationError("Monthly settings must be enabled for monthly pattern")

            schedule = self._get_or_create_settings(mess_id)
            schedule.pattern = data.pattern
            if weekly is not None:
                schedule.weekly_enabled = weekly.enabled
                schedule.weekly_day_of_week = weekly.day_of_week
                schedule.weekly_meal_types = _meal_values(weekly.meal_types) or list(ALL_MEALS)
            if monthly is not None:
                schedule.monthly_enabled = monthly.enabled
                schedule.monthly_days = list(monthly.days_of_month)
                schedule.monthly_meal_types = _meal_values(monthly.meal_types) or list(ALL_MEALS)
            schedule.billing_deduction = data.billing_deduction
            schedule.updated_by = actor_id
            self._commit()
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, "save default off day settings", mess_id)

        self.chat_service.announce(mess_id, actor_id, off_day_notices.schedule_notice(schedule))
        return ServiceResult.success(schedule, message="Default off day settings saved successfully")

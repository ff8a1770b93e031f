"""
Mess off-day models.

Provides the closure record, the per-membership extension ledger that
makes reversal an exact replay, and the audit trail.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smartmess.models.base.base_model import TimestampModel
from smartmess.models.common.enums import (
    ALL_MEALS,
    AuditAction,
    ExtensionRecordStatus,
    ExtensionState,
    OffDayStatus,
    enum_column,
)

if TYPE_CHECKING:
    from smartmess.models.mess.membership import MessMembership

__all__ = [
    "MessOffDay",
    "OffDayExtension",
    "OffDayAudit",
]


class MessOffDay(TimestampModel):
    """
    Mess-wide closure for one date or an inclusive date range.

    Never hard-deleted: cancelling flips status to 'cancelled'. At most
    one active record may start on a given date for a mess.
    """

    __tablename__ = "mess_off_days"
    __table_args__ = (
        CheckConstraint(
            "range_end_date IS NULL OR range_end_date >= range_start_date",
            name="ck_off_day_range_order",
        ),
        CheckConstraint("extension_days >= 1", name="ck_off_day_extension_days_positive"),
        Index(
            "uq_off_day_active_mess_date",
            "mess_id",
            "off_date",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_off_day_mess_status_date", "mess_id", "status", "off_date"),
    )

    mess_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    off_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Closure date; first day of the range for range closures",
    )

    is_range: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    range_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    range_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    meal_types: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: list(ALL_MEALS),
    )
    start_date_meal_types: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    end_date_meal_types: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    billing_deduction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subscription_extension: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    extension_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[OffDayStatus] = mapped_column(
        enum_column(OffDayStatus, "off_day_status_enum"),
        nullable=False,
        default=OffDayStatus.ACTIVE,
    )
    extension_state: Mapped[ExtensionState] = mapped_column(
        enum_column(ExtensionState, "off_day_extension_state_enum"),
        nullable=False,
        default=ExtensionState.NONE,
    )
    failed_membership_ids: Mapped[Optional[List[str]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Memberships whose extension could not be applied or reversed",
    )

    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    extensions: Mapped[List["OffDayExtension"]] = relationship(
        back_populates="off_day",
        cascade="all, delete-orphan",
        order_by="OffDayExtension.created_at",
    )

    @property
    def start_date(self) -> date:
        return self.range_start_date if self.is_range and self.range_start_date else self.off_date

    @property
    def end_date(self) -> date:
        return self.range_end_date if self.is_range and self.range_end_date else self.off_date

    @property
    def is_active(self) -> bool:
        return self.status == OffDayStatus.ACTIVE

    def snapshot(self) -> Dict[str, Any]:
        """Serializable copy of the record for the audit trail"""
        return self.to_dict()


class OffDayExtension(TimestampModel):
    """
    Extension applied to one membership because of one off day.

    Written in the same savepoint as the membership change, so the rows
    of an off day are exactly the extensions that took effect. Reversal
    replays these numbers instead of recomputing them.
    """

    __tablename__ = "mess_off_day_extensions"
    __table_args__ = (
        UniqueConstraint("off_day_id", "membership_id", name="uq_off_day_extension_membership"),
        CheckConstraint("missed_meals > 0", name="ck_off_day_extension_missed_positive"),
        CheckConstraint("days_added > 0", name="ck_off_day_extension_days_positive"),
    )

    off_day_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_off_days.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    membership_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_memberships.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)

    missed_meals: Mapped[int] = mapped_column(Integer, nullable=False)
    days_added: Mapped[int] = mapped_column(Integer, nullable=False)
    end_date_before: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date_after: Mapped[date] = mapped_column(Date, nullable=False)
    billing_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        comment="Open bill whose extension snapshot was updated",
    )

    status: Mapped[ExtensionRecordStatus] = mapped_column(
        enum_column(ExtensionRecordStatus, "off_day_extension_status_enum"),
        nullable=False,
        default=ExtensionRecordStatus.APPLIED,
    )
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    reversed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    off_day: Mapped["MessOffDay"] = relationship(back_populates="extensions")
    membership: Mapped["MessMembership"] = relationship()


class OffDayAudit(TimestampModel):
    """Append-only history of create/update/delete actions on off days"""

    __tablename__ = "mess_off_day_audits"
    __table_args__ = (
        Index("ix_off_day_audit_off_day_created", "off_day_id", "created_at"),
    )

    mess_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    off_day_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mess_off_days.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[AuditAction] = mapped_column(
        enum_column(AuditAction, "off_day_audit_action_enum"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    changes: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Field name -> {'from': old, 'to': new}",
    )
    snapshot: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

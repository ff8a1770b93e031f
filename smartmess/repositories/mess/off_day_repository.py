"""
Off-day repositories: closures, extension ledger, audit trail and the
recurring schedule.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from smartmess.models.common.enums import ExtensionRecordStatus, OffDayStatus
from smartmess.models.mess import DefaultOffDaySettings, MessOffDay, OffDayAudit, OffDayExtension
from smartmess.repositories.base.base_repository import BaseRepository


class OffDayRepository(BaseRepository[MessOffDay]):
    """Queries over mess closures"""

    def __init__(self, db: Session):
        super().__init__(MessOffDay, db)

    @staticmethod
    def _span_start():
        return MessOffDay.off_date

    @staticmethod
    def _span_end():
        return func.coalesce(MessOffDay.range_end_date, MessOffDay.off_date)

    def get_for_mess(self, off_day_id: str, mess_id: str) -> Optional[MessOffDay]:
        return self.find_one_by(id=off_day_id, mess_id=mess_id)

    def find_active_overlapping(self, mess_id: str, start: date, end: date) -> List[MessOffDay]:
        """Active closures whose span shares at least one day with [start, end]"""
        stmt = select(MessOffDay).where(
            MessOffDay.mess_id == mess_id,
            MessOffDay.status == OffDayStatus.ACTIVE,
            self._span_start() <= end,
            self._span_end() >= start,
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_paginated(
        self,
        mess_id: str,
        date_filter: str,
        today: date,
        page: int,
        limit: int,
    ) -> Tuple[List[MessOffDay], int]:
        conditions = [MessOffDay.mess_id == mess_id]
        if date_filter == "upcoming":
            conditions.append(self._span_end() >= today)
        elif date_filter == "past":
            conditions.append(self._span_end() < today)

        total = int(self.db.execute(
            select(func.count()).select_from(MessOffDay).where(*conditions)
        ).scalar_one())

        stmt = (
            select(MessOffDay)
            .where(*conditions)
            .order_by(MessOffDay.updated_at.desc(), MessOffDay.off_date.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def get_stats(
        self,
        mess_id: str,
        today: date,
        week_start: datetime,
        month_start: datetime,
    ) -> Dict[str, int]:
        active = and_(MessOffDay.mess_id == mess_id, MessOffDay.status == OffDayStatus.ACTIVE)

        def _count(*extra) -> int:
            stmt = select(func.count()).select_from(MessOffDay).where(active, *extra)
            return int(self.db.execute(stmt).scalar_one())

        return {
            "total": _count(),
            "thisWeek": _count(MessOffDay.created_at >= week_start),
            "thisMonth": _count(MessOffDay.created_at >= month_start),
            "upcoming": _count(self._span_end() >= today),
        }


class OffDayExtensionRepository(BaseRepository[OffDayExtension]):
    """Per-membership extension ledger of an off day"""

    def __init__(self, db: Session):
        super().__init__(OffDayExtension, db)

    def list_for_off_day(
        self,
        off_day_id: str,
        status: Optional[ExtensionRecordStatus] = None,
    ) -> List[OffDayExtension]:
        stmt = select(OffDayExtension).where(OffDayExtension.off_day_id == off_day_id)
        if status is not None:
            stmt = stmt.where(OffDayExtension.status == status)
        stmt = stmt.order_by(OffDayExtension.applied_at, OffDayExtension.id)
        return list(self.db.execute(stmt).scalars().all())

    def recorded_membership_ids(self, off_day_id: str) -> Set[str]:
        stmt = select(OffDayExtension.membership_id).where(OffDayExtension.off_day_id == off_day_id)
        return set(self.db.execute(stmt).scalars().all())


class OffDayAuditRepository(BaseRepository[OffDayAudit]):
    def __init__(self, db: Session):
        super().__init__(OffDayAudit, db)

    def list_for_off_day(self, off_day_id: str) -> List[OffDayAudit]:
        """Audit entries of an off day, newest first"""
        stmt = (
            select(OffDayAudit)
            .where(OffDayAudit.off_day_id == off_day_id)
            .order_by(OffDayAudit.created_at.desc(), OffDayAudit.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())


class OffDaySettingsRepository(BaseRepository[DefaultOffDaySettings]):
    def __init__(self, db: Session):
        super().__init__(DefaultOffDaySettings, db)

    def get_by_mess(self, mess_id: str) -> Optional[DefaultOffDaySettings]:
        return self.find_one_by(mess_id=mess_id)

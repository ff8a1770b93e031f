"""
Personal leave repository.
"""

from datetime import date
from typing import Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from smartmess.models.common.enums import LeaveStatus
from smartmess.models.leave import UserLeave
from smartmess.repositories.base.base_repository import BaseRepository


class UserLeaveRepository(BaseRepository[UserLeave]):
    def __init__(self, db: Session):
        super().__init__(UserLeave, db)

    def find_approved_overlapping(self, user_id: str, start: date, end: date) -> List[UserLeave]:
        """Approved leaves of a user that share at least one day with [start, end]"""
        stmt = select(UserLeave).where(
            UserLeave.user_id == user_id,
            UserLeave.status == LeaveStatus.APPROVED,
            UserLeave.start_date <= end,
            UserLeave.end_date >= start,
        )
        return list(self.db.execute(stmt).scalars().all())

    def approved_by_user(
        self,
        user_ids: Iterable[str],
        start: date,
        end: date,
    ) -> Dict[str, List[UserLeave]]:
        """Approved overlapping leaves for many users, grouped by user id"""
        ids = set(user_ids)
        grouped: Dict[str, List[UserLeave]] = {uid: [] for uid in ids}
        if not ids:
            return grouped
        stmt = select(UserLeave).where(
            UserLeave.user_id.in_(ids),
            UserLeave.status == LeaveStatus.APPROVED,
            UserLeave.start_date <= end,
            UserLeave.end_date >= start,
        )
        for leave in self.db.execute(stmt).scalars():
            grouped[leave.user_id].append(leave)
        return grouped

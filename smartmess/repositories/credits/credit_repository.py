"""
Credit ledger repositories.
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from smartmess.models.common.enums import CreditTransactionType
from smartmess.models.credits import (
    CreditPurchasePlan,
    CreditSlab,
    CreditTransaction,
    FreeTrialSettings,
    MessCredits,
)
from smartmess.repositories.base.base_repository import BaseRepository


class MessCreditsRepository(BaseRepository[MessCredits]):
    def __init__(self, db: Session):
        super().__init__(MessCredits, db)

    def get_by_mess(self, mess_id: str, for_update: bool = False) -> Optional[MessCredits]:
        stmt = select(MessCredits).where(MessCredits.mess_id == mess_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()


class CreditTransactionRepository(BaseRepository[CreditTransaction]):
    def __init__(self, db: Session):
        super().__init__(CreditTransaction, db)

    def recent_for_mess(self, mess_id: str, limit: int = 10) -> List[CreditTransaction]:
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.mess_id == mess_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_trials(self, mess_id: str) -> int:
        stmt = select(func.count()).select_from(CreditTransaction).where(
            CreditTransaction.mess_id == mess_id,
            CreditTransaction.transaction_type == CreditTransactionType.TRIAL,
        )
        return int(self.db.execute(stmt).scalar_one())


class CreditSlabRepository(BaseRepository[CreditSlab]):
    def __init__(self, db: Session):
        super().__init__(CreditSlab, db)

    def list_active(self) -> List[CreditSlab]:
        stmt = (
            select(CreditSlab)
            .where(CreditSlab.is_active.is_(True))
            .order_by(CreditSlab.min_users)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_overlapping(self, min_users: int, max_users: int) -> List[CreditSlab]:
        stmt = select(CreditSlab).where(
            CreditSlab.is_active.is_(True),
            CreditSlab.min_users <= max_users,
            CreditSlab.max_users >= min_users,
        )
        return list(self.db.execute(stmt).scalars().all())


class CreditPurchasePlanRepository(BaseRepository[CreditPurchasePlan]):
    def __init__(self, db: Session):
        super().__init__(CreditPurchasePlan, db)

    def list_active(self) -> List[CreditPurchasePlan]:
        stmt = (
            select(CreditPurchasePlan)
            .where(CreditPurchasePlan.is_active.is_(True))
            .order_by(CreditPurchasePlan.price)
        )
        return list(self.db.execute(stmt).scalars().all())


class FreeTrialSettingsRepository(BaseRepository[FreeTrialSettings]):
    def __init__(self, db: Session):
        super().__init__(FreeTrialSettings, db)

    def get_current(self) -> Optional[FreeTrialSettings]:
        stmt = select(FreeTrialSettings).order_by(FreeTrialSettings.created_at).limit(1)
        return self.db.execute(stmt).scalars().first()

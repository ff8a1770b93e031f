"""
Repositories for mess profiles, meal plans and memberships.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from smartmess.models.common.enums import MembershipStatus
from smartmess.models.mess import MealPlan, MessMembership, MessProfile
from smartmess.repositories.base.base_repository import BaseRepository


class MessProfileRepository(BaseRepository[MessProfile]):
    def __init__(self, db: Session):
        super().__init__(MessProfile, db)

    def get_by_owner(self, owner_id: str) -> Optional[MessProfile]:
        return self.find_one_by(owner_id=owner_id)


class MealPlanRepository(BaseRepository[MealPlan]):
    def __init__(self, db: Session):
        super().__init__(MealPlan, db)

    def get_map(self, plan_ids: Iterable[str]) -> Dict[str, MealPlan]:
        ids = {pid for pid in plan_ids if pid}
        if not ids:
            return {}
        stmt = select(MealPlan).where(MealPlan.id.in_(ids))
        return {plan.id: plan for plan in self.db.execute(stmt).scalars()}


class MembershipRepository(BaseRepository[MessMembership]):
    """Membership access used by reconciliation, approval and credit pricing"""

    def __init__(self, db: Session):
        super().__init__(MessMembership, db)

    def find_extendable(self, mess_id: str) -> List[MessMembership]:
        """Active and pending memberships of a mess, in a stable order"""
        stmt = (
            select(MessMembership)
            .where(
                MessMembership.mess_id == mess_id,
                MessMembership.status.in_([MembershipStatus.ACTIVE, MembershipStatus.PENDING]),
            )
            .order_by(MessMembership.created_at, MessMembership.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_active(self, mess_id: str) -> int:
        stmt = select(func.count()).select_from(MessMembership).where(
            MessMembership.mess_id == mess_id,
            MessMembership.status == MembershipStatus.ACTIVE,
        )
        return int(self.db.execute(stmt).scalar_one())

"""
Billing and transaction repositories.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from smartmess.models.billing import Billing, Transaction
from smartmess.models.common.enums import BillingPaymentStatus
from smartmess.repositories.base.base_repository import BaseRepository

OPEN_STATUSES = (BillingPaymentStatus.PENDING, BillingPaymentStatus.OVERDUE)


class BillingRepository(BaseRepository[Billing]):
    def __init__(self, db: Session):
        super().__init__(Billing, db)

    def find_open_for_membership(self, membership_id: str) -> Optional[Billing]:
        """Most recent unpaid bill of a membership"""
        stmt = (
            select(Billing)
            .where(
                Billing.membership_id == membership_id,
                Billing.payment_status.in_(OPEN_STATUSES),
            )
            .order_by(Billing.period_start.desc(), Billing.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def list_for_membership(self, membership_id: str) -> List[Billing]:
        stmt = (
            select(Billing)
            .where(Billing.membership_id == membership_id)
            .order_by(Billing.period_start.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_overdue(self, today: date, mess_id: Optional[str] = None) -> List[Billing]:
        """Bills already flagged overdue plus pending ones whose due date has passed"""
        stmt = select(Billing).where(
            or_(
                Billing.payment_status == BillingPaymentStatus.OVERDUE,
                (Billing.payment_status == BillingPaymentStatus.PENDING) & (Billing.due_date < today),
            )
        )
        if mess_id:
            stmt = stmt.where(Billing.mess_id == mess_id)
        stmt = stmt.order_by(Billing.due_date)
        return list(self.db.execute(stmt).scalars().all())


class TransactionRepository(BaseRepository[Transaction]):
    def __init__(self, db: Session):
        super().__init__(Transaction, db)

    def get_by_transaction_id(self, transaction_id: str) -> Optional[Transaction]:
        return self.find_one_by(transaction_id=transaction_id)

    def list_for_billing(self, billing_id: str) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.billing_id == billing_id)
            .order_by(Transaction.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

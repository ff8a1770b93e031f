"""
Member billing endpoints: invoices, adjustments, payments and refunds.

Mess owners work on the memberships of their own mess; admins on any.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartmess.api import deps
from smartmess.core.exceptions import ValidationError
from smartmess.schemas.billing import (
    AdjustmentCreate,
    BillingCreate,
    BillingResponse,
    PaymentRecord,
    PaymentResult,
    RefundRequest,
    RefundResult,
)
from smartmess.services.billing.billing_service import BillingService

router = APIRouter(prefix="/billing", tags=["Billing"])


def get_mess_scope(
    current_user: deps.CurrentUser = Depends(deps.get_owner_or_admin),
    db: Session = Depends(deps.get_db),
) -> Optional[str]:
    """Mess id the caller is limited to; None for admins."""
    if current_user.is_admin:
        return None
    mess = deps.find_owned_mess(db, current_user.id)
    if mess is None:
        raise ValidationError(deps.NO_MESS_MESSAGE)
    return mess.id


@router.post("", status_code=201)
def create_billing(
    payload: BillingCreate,
    current_user: deps.CurrentUser = Depends(deps.get_owner_or_admin),
    mess_id: Optional[str] = Depends(get_mess_scope),
    db: Session = Depends(deps.get_db),
):
    result = BillingService(db).create_billing(payload, current_user.id, mess_id)
    return deps.respond(result, BillingResponse, status_code=201)


@router.get("/overdue")
def list_overdue(
    mess_id: Optional[str] = Depends(get_mess_scope),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(BillingService(db).find_overdue(mess_id), BillingResponse, many=True)


@router.get("/membership/{membership_id}")
def list_membership_billing(
    membership_id: str,
    mess_id: Optional[str] = Depends(get_mess_scope),
    db: Session = Depends(deps.get_db),
):
    result = BillingService(db).list_for_membership(membership_id, mess_id)
    return deps.respond(result, BillingResponse, many=True)


@router.post("/{billing_id}/adjustments")
def apply_adjustment(
    billing_id: str,
    payload: AdjustmentCreate,
    current_user: deps.CurrentUser = Depends(deps.get_owner_or_admin),
    mess_id: Optional[str] = Depends(get_mess_scope),
    db: Session = Depends(deps.get_db),
):
    result = BillingService(db).apply_adjustment(billing_id, payload, current_user.id, mess_id)
    return deps.respond(result, BillingResponse)


@router.post("/{billing_id}/pay")
def record_payment(
    billing_id: str,
    payload: PaymentRecord,
    current_user: deps.CurrentUser = Depends(deps.get_owner_or_admin),
    mess_id: Optional[str] = Depends(get_mess_scope),
    db: Session = Depends(deps.get_db),
):
    result = BillingService(db).record_payment(billing_id, payload, current_user.id, mess_id)
    return deps.respond(result, PaymentResult)


@router.post("/transactions/{transaction_id}/refund")
def refund_transaction(
    transaction_id: str,
    payload: RefundRequest,
    current_user: deps.CurrentUser = Depends(deps.get_owner_or_admin),
    mess_id: Optional[str] = Depends(get_mess_scope),
    db: Session = Depends(deps.get_db),
):
    """Refund a successful payment by row id or TXN reference."""
    result = BillingService(db).process_refund(transaction_id, payload, current_user.id, mess_id)
    if result.is_success:
        transaction = result.data
        result.data = {
            "refund_id": transaction.refund_id,
            "refund_amount": transaction.refund_amount,
            "transaction": transaction,
        }
    return deps.respond(result, RefundResult)

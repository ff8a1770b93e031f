"""
Member payment-request endpoints.

Approval charges the mess its per-member platform credits and activates
the membership; both happen or neither does.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from smartmess.api import deps
from smartmess.core.exceptions import ValidationError
from smartmess.models.mess import MessMembership, MessProfile
from smartmess.repositories.mess.mess_repository import MembershipRepository
from smartmess.schemas.mess.payment_request import (
    MembershipResponse,
    PaymentApprovalRequest,
    PaymentApprovalResult,
    PaymentRejectionRequest,
)
from smartmess.services.base import ServiceResult
from smartmess.services.billing.payment_request_service import PaymentRequestService

router = APIRouter(prefix="/payment-requests", tags=["Payment Requests"])


def _resolve_mess_id(
    membership_id: str,
    current_user: deps.CurrentUser,
    db: Session,
) -> Optional[str]:
    """Owners act on their own mess; admins on the membership's mess."""
    if current_user.is_admin:
        membership: Optional[MessMembership] = MembershipRepository(db).get_by_id(membership_id)
        return membership.mess_id if membership else None
    mess: Optional[MessProfile] = deps.find_owned_mess(db, current_user.id)
    if mess is None:
        raise ValidationError(deps.NO_MESS_MESSAGE)
    return mess.id


@router.post("/{membership_id}/approve")
def approve_payment_request(
    membership_id: str,
    payload: Optional[PaymentApprovalRequest] = Body(default=None),
    current_user: deps.CurrentUser = Depends(deps.get_owner_or_admin),
    db: Session = Depends(deps.get_db),
):
    mess_id = _resolve_mess_id(membership_id, current_user, db)
    if mess_id is None:
        return deps.respond(ServiceResult.not_found("Membership", membership_id, "Membership not found"))
    if not current_user.is_admin:
        deps.ensure_can_accept_users(db, mess_id)
    result = PaymentRequestService(db).approve(mess_id, membership_id, current_user.id, payload)
    return deps.respond(result, PaymentApprovalResult)


@router.post("/{membership_id}/reject")
def reject_payment_request(
    membership_id: str,
    payload: Optional[PaymentRejectionRequest] = Body(default=None),
    current_user: deps.CurrentUser = Depends(deps.get_owner_or_admin),
    db: Session = Depends(deps.get_db),
):
    mess_id = _resolve_mess_id(membership_id, current_user, db)
    if mess_id is None:
        return deps.respond(ServiceResult.not_found("Membership", membership_id, "Membership not found"))
    result = PaymentRequestService(db).reject(mess_id, membership_id, current_user.id, payload)
    return deps.respond(result, MembershipResponse)

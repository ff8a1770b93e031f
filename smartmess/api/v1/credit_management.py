"""
Platform credit endpoints.

Mess owners see their balance, buy credits, start a free trial and pay
the monthly bill; admins adjust balances and maintain the slab and plan
catalog.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartmess.api import deps
from smartmess.models.mess import MessProfile
from smartmess.schemas.credits import (
    AccessDecision,
    CreditAdjustmentRequest,
    CreditDetails,
    CreditPlanCreate,
    CreditPlanResponse,
    CreditPurchaseRequest,
    CreditPurchaseResult,
    CreditSlabCreate,
    CreditSlabResponse,
    CreditTransactionResponse,
    LowCreditStatus,
    MessCreditsResponse,
    MonthlyBill,
    NewUserCreditCheck,
    SubscriptionStatus,
    TieredCredits,
)
from smartmess.services.credits.credit_service import CreditService
from smartmess.services.credits.mess_billing_service import MessBillingService
from smartmess.services.credits.subscription_check_service import SubscriptionCheckService

router = APIRouter(prefix="/credit-management", tags=["Credit Management"])


# ------------------------------------------------------------------ #
# Mess owner
# ------------------------------------------------------------------ #
@router.get("/credits")
def get_credits(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    """Balance, the last ten ledger entries and the projected monthly bill."""
    return deps.respond(CreditService(db).get_credit_details(mess.id), CreditDetails)


@router.post("/purchase")
def purchase_credits(
    payload: CreditPurchaseRequest,
    current_user: deps.CurrentUser = Depends(deps.get_mess_owner),
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    result = CreditService(db).purchase_credits(mess.id, payload, current_user.id)
    return deps.respond(result, CreditPurchaseResult)


@router.post("/trial/activate")
def activate_trial(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(CreditService(db).activate_free_trial(mess.id), MessCreditsResponse)


@router.get("/subscription-status")
def subscription_status(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(SubscriptionCheckService(db).check_status(mess.id), SubscriptionStatus)


@router.get("/module-access/{module}")
def module_access(
    module: str,
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(SubscriptionCheckService(db).can_access_module(mess.id, module), AccessDecision)


@router.get("/new-user-check")
def new_user_check(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    """Credits an extra member would cost right now."""
    result = MessBillingService(db).check_credits_sufficient_for_new_user(mess.id)
    return deps.respond(result, NewUserCreditCheck)


@router.get("/monthly-bill")
def monthly_bill(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(MessBillingService(db).calculate_monthly_bill(mess.id), MonthlyBill)


@router.post("/monthly-bill/generate")
def generate_monthly_bill(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(MessBillingService(db).generate_pending_bill(mess.id), MonthlyBill)


@router.post("/pay-bill")
def pay_bill(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(MessBillingService(db).pay_pending_bill(mess.id), MessCreditsResponse)


@router.get("/low-credits")
def low_credits(
    mess: MessProfile = Depends(deps.get_gated_mess),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(MessBillingService(db).check_low_credits(mess.id), LowCreditStatus)


# ------------------------------------------------------------------ #
# Admin
# ------------------------------------------------------------------ #
@router.post("/admin/adjust")
def adjust_credits(
    payload: CreditAdjustmentRequest,
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    result = CreditService(db).adjust_credits(payload, admin.id)
    return deps.respond(result, CreditTransactionResponse)


@router.get("/admin/tiered-credits")
def tiered_credits(
    user_count: int = Query(..., alias="userCount", ge=0),
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(MessBillingService(db).calculate_tiered_credits(user_count), TieredCredits)


@router.get("/admin/slabs")
def list_slabs(
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(CreditService(db).list_slabs(), CreditSlabResponse, many=True)


@router.post("/admin/slabs", status_code=201)
def create_slab(
    payload: CreditSlabCreate,
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    result = CreditService(db).create_slab(payload, admin.id)
    return deps.respond(result, CreditSlabResponse, status_code=201)


@router.delete("/admin/slabs/{slab_id}")
def deactivate_slab(
    slab_id: str,
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(CreditService(db).deactivate_slab(slab_id), CreditSlabResponse)


@router.get("/admin/plans")
def list_plans(
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(CreditService(db).list_plans(), CreditPlanResponse, many=True)


@router.post("/admin/plans", status_code=201)
def create_plan(
    payload: CreditPlanCreate,
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(CreditService(db).create_plan(payload), CreditPlanResponse, status_code=201)


@router.delete("/admin/plans/{plan_id}")
def deactivate_plan(
    plan_id: str,
    admin: deps.CurrentUser = Depends(deps.get_admin_user),
    db: Session = Depends(deps.get_db),
):
    return deps.respond(CreditService(db).deactivate_plan(plan_id), CreditPlanResponse)

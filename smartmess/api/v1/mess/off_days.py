"""
Mess off-day endpoints.

Closures for a single day or a date range, their cancellation (which
reverses any subscription extensions), their audit history and the
dashboard counters.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from smartmess.api import deps
from smartmess.models.mess import MessProfile
from smartmess.schemas.mess.off_day import (
    OffDayAuditResponse,
    OffDayCancel,
    OffDayCancelResult,
    OffDayCreate,
    OffDayCreateResult,
    OffDayList,
    OffDayResponse,
    OffDayResumeResult,
    OffDayStats,
    OffDayUpdate,
)
from smartmess.services.mess.off_day_service import OffDayService

router = APIRouter(prefix="/mess/off-days", tags=["Mess Off Days"])


def get_off_day_service(db: Session = Depends(deps.get_db)) -> OffDayService:
    return OffDayService(db)


@router.get("")
def list_off_days(
    date_filter: str = Query(default="all", alias="filter"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    mess: MessProfile = Depends(deps.get_owner_mess),
    service: OffDayService = Depends(get_off_day_service),
):
    """Paginated closures, newest first; filter is all, upcoming or past."""
    result = service.list_off_days(mess.id, date_filter, page, limit)
    return deps.respond(result, OffDayList)


@router.get("/stats")
def off_day_stats(
    mess: MessProfile = Depends(deps.get_owner_mess),
    service: OffDayService = Depends(get_off_day_service),
):
    return deps.respond(service.get_off_day_stats(mess.id), OffDayStats)


@router.post("", status_code=201)
def create_off_day(
    payload: OffDayCreate,
    current_user: deps.CurrentUser = Depends(deps.get_mess_owner),
    mess: MessProfile = Depends(deps.get_owner_mess),
    _subscription: MessProfile = Depends(deps.require_active_subscription),
    service: OffDayService = Depends(get_off_day_service),
):
    """
    Close the mess for a day or range.

    With subscriptionExtension the subscriptions of active members are
    extended in proportion to the meals they miss; members that could not
    be extended are listed in failedMembershipIds.
    """
    result = service.create_off_day(mess.id, current_user.id, payload)
    return deps.respond(result, OffDayCreateResult, status_code=201)


@router.put("/{off_day_id}")
def update_off_day(
    off_day_id: str,
    payload: OffDayUpdate,
    current_user: deps.CurrentUser = Depends(deps.get_mess_owner),
    mess: MessProfile = Depends(deps.get_owner_mess),
    _subscription: MessProfile = Depends(deps.require_active_subscription),
    service: OffDayService = Depends(get_off_day_service),
):
    result = service.update_off_day(mess.id, off_day_id, current_user.id, payload)
    return deps.respond(result, OffDayResponse)


@router.delete("/{off_day_id}")
def cancel_off_day(
    off_day_id: str,
    payload: Optional[OffDayCancel] = Body(default=None),
    current_user: deps.CurrentUser = Depends(deps.get_mess_owner),
    mess: MessProfile = Depends(deps.get_owner_mess),
    service: OffDayService = Depends(get_off_day_service),
):
    """Cancel a closure and reverse the extensions it applied."""
    result = service.cancel_off_day(mess.id, off_day_id, current_user.id, payload)
    return deps.respond(result, OffDayCancelResult)


@router.post("/{off_day_id}/resume-extensions")
def resume_extensions(
    off_day_id: str,
    current_user: deps.CurrentUser = Depends(deps.get_mess_owner),
    mess: MessProfile = Depends(deps.get_owner_mess),
    service: OffDayService = Depends(get_off_day_service),
):
    result = service.resume_extensions(mess.id, off_day_id, current_user.id)
    return deps.respond(result, OffDayResumeResult)


@router.get("/{off_day_id}/history")
def off_day_history(
    off_day_id: str,
    mess: MessProfile = Depends(deps.get_owner_mess),
    service: OffDayService = Depends(get_off_day_service),
):
    """Create, update and cancel entries for one closure, newest first."""
    result = service.get_history(mess.id, off_day_id)
    return deps.respond(result, OffDayAuditResponse, many=True)

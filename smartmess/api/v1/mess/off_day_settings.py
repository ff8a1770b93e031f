"""
Default (recurring) mess off schedule endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartmess.api import deps
from smartmess.models.mess import MessProfile
from smartmess.schemas.mess.off_day import OffDaySettingsResponse, OffDaySettingsSave
from smartmess.services.base import ServiceResult
from smartmess.services.mess.off_day_service import OffDayService

router = APIRouter(prefix="/mess/off-day-settings", tags=["Mess Off Days"])


def _settings_response(result: ServiceResult):
    if result.is_success:
        result.data = OffDaySettingsResponse.from_model(result.data).to_response()
    return deps.respond(result)


@router.get("")
def get_off_day_settings(
    mess: MessProfile = Depends(deps.get_owner_mess),
    db: Session = Depends(deps.get_db),
):
    """Current schedule, created with everything disabled on first read."""
    return _settings_response(OffDayService(db).get_default_settings(mess.id))


@router.post("")
def save_off_day_settings(
    payload: OffDaySettingsSave,
    current_user: deps.CurrentUser = Depends(deps.get_mess_owner),
    mess: MessProfile = Depends(deps.get_owner_mess),
    db: Session = Depends(deps.get_db),
):
    result = OffDayService(db).save_default_settings(mess.id, current_user.id, payload)
    return _settings_response(result)

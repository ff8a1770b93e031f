from smartmess.models.mess.membership import MessMembership
from smartmess.models.mess.mess_profile import MealPlan, MessProfile
from smartmess.models.mess.off_day import MessOffDay, OffDayAudit, OffDayExtension
from smartmess.models.mess.off_day_settings import DefaultOffDaySettings

__all__ = [
    "MessProfile",
    "MealPlan",
    "MessMembership",
    "MessOffDay",
    "OffDayExtension",
    "OffDayAudit",
    "DefaultOffDaySettings",
]

from smartmess.schemas.mess.off_day import (
    MonthlyOffDaySettings,
    OffDayCancel,
    OffDayCancelResult,
    OffDayCreate,
    OffDayCreateResult,
    OffDayList,
    OffDayResponse,
    OffDayResumeResult,
    OffDaySettingsResponse,
    OffDaySettingsSave,
    OffDayStats,
    OffDayUpdate,
    ReversalInfo,
    WeeklyOffDaySettings,
)
from smartmess.schemas.mess.payment_request import (
    MembershipResponse,
    PaymentApprovalRequest,
    PaymentApprovalResult,
    PaymentRejectionRequest,
)

__all__ = [
    "OffDayCreate",
    "OffDayUpdate",
    "OffDayCancel",
    "OffDayResponse",
    "OffDayCreateResult",
    "ReversalInfo",
    "OffDayCancelResult",
    "OffDayResumeResult",
    "OffDayList",
    "OffDayStats",
    "WeeklyOffDaySettings",
    "MonthlyOffDaySettings",
    "OffDaySettingsSave",
    "OffDaySettingsResponse",
    "PaymentApprovalRequest",
    "PaymentRejectionRequest",
    "MembershipResponse",
    "PaymentApprovalResult",
]

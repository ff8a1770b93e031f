from smartmess.models.leave.user_leave import UserLeave

__all__ = ["UserLeave"]

"""
Base services module for SmartMess.

Provides the ServiceResult pattern and the BaseService class every
domain service builds on.
"""

from smartmess.services.base.service_result import (
    ErrorCode,
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)
from smartmess.services.base.base_service import BaseService

__all__ = [
    "ServiceResult",
    "ServiceError",
    "ErrorCode",
    "ErrorSeverity",
    "BaseService",
]

"""
Service result pattern shared by the ledger services.

A service never lets a domain exception reach the API layer; it returns a
ServiceResult whose ErrorCode the API maps to an HTTP status.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar


class ErrorCode(str, Enum):
    """Failure categories a service reports."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Ledger and lifecycle rules
    CONFLICT = "CONFLICT"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    SUBSCRIPTION_INACTIVE = "SUBSCRIPTION_INACTIVE"

    # Caller identity
    UNAUTHORIZED = "UNAUTHORIZED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"


class ErrorSeverity(str, Enum):
    """How loudly a failure is logged."""

    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass
class ServiceError:
    code: ErrorCode
    message: str
    severity: ErrorSeverity = ErrorSeverity.WARNING
    details: Optional[Dict[str, Any]] = None


TData = TypeVar("TData")


@dataclass
class ServiceResult(Generic[TData]):
    """
    Outcome of one service operation.

    Attributes:
        is_success: Whether the operation went through
        data: Payload of a successful operation
        error: Failure information
        message: Human-readable message sent to the client
        metadata: Extra context such as result counts
    """

    is_success: bool
    data: Optional[TData] = None
    error: Optional[ServiceError] = None
    message: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def success(
        cls,
        data: Optional[TData] = None,
        message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ServiceResult[TData]":
        return cls(is_success=True, data=data, message=message, metadata=metadata or {})

    @classmethod
    def failure(cls, error: ServiceError) -> "ServiceResult[TData]":
        return cls(is_success=False, error=error, message=error.message, metadata={})

    @classmethod
    def not_found(
        cls,
        resource_type: str,
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> "ServiceResult[TData]":
        return cls.failure(
            ServiceError(
                code=ErrorCode.NOT_FOUND,
                message=message or f"{resource_type} not found",
                details={"resource_type": resource_type, "resource_id": resource_id},
            )
        )

    def __bool__(self) -> bool:
        return self.is_success

    def __repr__(self) -> str:
        status = "Success" if self.is_success else "Failure"
        if self.message:
            return f"ServiceResult({status}: {self.message})"
        return f"ServiceResult({status})"


__all__ = [
    "ErrorCode",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
]

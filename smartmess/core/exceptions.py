"""
Custom Exceptions for the SmartMess ledger service

Low-level ledger and model helpers raise these; services translate them
into ServiceResult failures and the API renders any that escape.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Authentication & Authorization
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Persistence errors
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Business logic errors
    STATE_CONFLICT = "STATE_CONFLICT"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    SUBSCRIPTION_INACTIVE = "SUBSCRIPTION_INACTIVE"


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Provides consistent error handling across the application with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the response envelope"""
        body: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            body["data"] = self.details
        return body

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


class ValidationError(BaseAppException):
    """Exception raised when input data fails a domain rule"""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        details = {"field": field} if field else {}
        super().__init__(message, error_code, details, 400)


class ResourceNotFoundError(BaseAppException):
    """Exception raised when a requested resource is not found"""

    def __init__(
        self,
        resource_type: str = "Resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None
    ):
        if not message:
            message = f"{resource_type} not found"
            if resource_id:
                message += f" (ID: {resource_id})"

        details = {
            "resource_type": resource_type,
            "resource_id": resource_id
        }
        super().__init__(message, ErrorCode.RESOURCE_NOT_FOUND, details, 404)


class DuplicateEntryError(BaseAppException):
    """Exception raised when a unique constraint rejects a write"""

    def __init__(self, message: str = "Entry already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.DUPLICATE_ENTRY, details, 400)


class StateConflictError(BaseAppException):
    """Exception raised when an entity is already in a terminal or conflicting state"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.STATE_CONFLICT, details, 400)


class BusinessRuleError(BaseAppException):
    """Exception raised when an operation violates a business rule"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.BUSINESS_RULE_VIOLATION, details, 400)


# ========================================
# Credit Ledger Exceptions
# ========================================

class CreditAccountNotFoundError(ResourceNotFoundError):
    """Exception raised when a mess has no credit record yet"""

    def __init__(self, mess_id: Optional[str] = None):
        super().__init__("Mess credits", mess_id, "Mess credits not found")


class InsufficientCreditsError(BaseAppException):
    """Exception raised when a deduction exceeds the available balance"""

    def __init__(
        self,
        required_credits: int,
        available_credits: int,
        message: str = "Insufficient credits",
    ):
        self.required_credits = required_credits
        self.available_credits = available_credits
        details = {
            "requiredCredits": required_credits,
            "availableCredits": available_credits,
        }
        super().__init__(message, ErrorCode.INSUFFICIENT_CREDITS, details, 400)


class SubscriptionExpiredError(BaseAppException):
    """Exception raised when a mess platform subscription no longer allows an action"""

    def __init__(self, message: str, status: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.SUBSCRIPTION_INACTIVE, status or {}, 403)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["subscriptionExpired"] = True
        body["data"] = self.details
        return body


# ========================================
# Authentication & Authorization Exceptions
# ========================================

class AuthenticationError(BaseAppException):
    """Exception raised when the caller cannot be identified"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, ErrorCode.AUTHENTICATION_FAILED, {}, 401)


class AuthorizationError(BaseAppException):
    """Exception raised when authorization fails"""

    def __init__(
        self,
        message: str = "Access denied",
        required_role: Optional[str] = None,
    ):
        details = {"required_role": required_role} if required_role else {}
        super().__init__(message, ErrorCode.AUTHORIZATION_FAILED, details, 403)


__all__ = [
    "ErrorCode",
    "BaseAppException",
    "ValidationError",
    "ResourceNotFoundError",
    "StateConflictError",
    "DuplicateEntryError",
    "BusinessRuleError",
    "CreditAccountNotFoundError",
    "InsufficientCreditsError",
    "SubscriptionExpiredError",
    "AuthenticationError",
    "AuthorizationError",
]

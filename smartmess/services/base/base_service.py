"""
Base service class providing common functionality for all services.
"""

from abc import ABC
from typing import Any, Dict, Generic, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smartmess.core import exceptions as app_exc
from smartmess.core.logging import get_logger
from smartmess.repositories.base.base_repository import BaseRepository
from smartmess.services.base.service_result import (
    ErrorCode,
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)

TModel = TypeVar("TModel")
TRepo = TypeVar("TRepo", bound=BaseRepository)

# Domain exception -> service error code
DOMAIN_ERROR_CODES = (
    (app_exc.InsufficientCreditsError, ErrorCode.INSUFFICIENT_CREDITS),
    (app_exc.ResourceNotFoundError, ErrorCode.NOT_FOUND),
    (app_exc.ValidationError, ErrorCode.VALIDATION_ERROR),
    (app_exc.DuplicateEntryError, ErrorCode.CONFLICT),
    (app_exc.StateConflictError, ErrorCode.CONFLICT),
    (app_exc.BusinessRuleError, ErrorCode.BUSINESS_RULE_VIOLATION),
    (app_exc.SubscriptionExpiredError, ErrorCode.SUBSCRIPTION_INACTIVE),
    (app_exc.AuthorizationError, ErrorCode.INSUFFICIENT_PERMISSIONS),
    (app_exc.AuthenticationError, ErrorCode.UNAUTHORIZED),
)


class BaseService(ABC, Generic[TModel, TRepo]):
    """
    Base service with common behaviors:
    - Shared logger and db session
    - Consistent error handling via ServiceResult
    - Transaction management utilities
    """

    def __init__(self, repository: TRepo, db_session: Session):
        """
        Initialize base service.

        Args:
            repository: Primary repository of the service
            db_session: SQLAlchemy database session
        """
        self.repository: TRepo = repository
        self.db: Session = db_session
        self._logger = get_logger(f"smartmess.services.{self.__class__.__name__}").add_context(
            service=self.__class__.__name__,
        )

    # -------------------------------------------------------------------------
    # Exception & Error Handling
    # -------------------------------------------------------------------------

    def _handle_exception(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Convert exception to a ServiceResult failure with logging.

        Domain exceptions keep their message and details; anything else is
        logged with its stack trace and reported with a generic message.
        """
        context = {
            "operation": operation,
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
            "exception_type": type(exception).__name__,
        }
        if additional_context:
            context.update(additional_context)

        if isinstance(exception, app_exc.BaseAppException):
            self._logger.warning(f"{operation} rejected: {exception.message}", extra=context)
            return ServiceResult.failure(
                ServiceError(
                    code=self._map_exception_to_error_code(exception),
                    message=exception.message,
                    details=exception.details or None,
                    severity=ErrorSeverity.WARNING,
                )
            )

        self._logger.error(
            f"Error during {operation}: {exception}",
            exc_info=True,
            extra=context,
        )
        return ServiceResult.failure(
            ServiceError(
                code=ErrorCode.INTERNAL_ERROR,
                message=f"Failed to {operation}",
                details={"entity_ref": context["entity_ref"]},
                severity=ErrorSeverity.CRITICAL,
            )
        )

    def _map_exception_to_error_code(self, exception: Exception) -> ErrorCode:
        for exc_type, error_code in DOMAIN_ERROR_CODES:
            if isinstance(exception, exc_type):
                return error_code
        return ErrorCode.INTERNAL_ERROR

    # -------------------------------------------------------------------------
    # Transaction Management
    # -------------------------------------------------------------------------

    def _commit(self) -> None:
        try:
            self.db.commit()
            self._logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self._logger.error(f"Commit failed: {e}", exc_info=True)
            self._rollback()
            raise

    def _rollback(self) -> None:
        """Rollback the current transaction, suppressing rollback errors."""
        try:
            self.db.rollback()
            self._logger.debug("Transaction rolled back")
        except SQLAlchemyError as e:
            self._logger.warning(f"Rollback failed: {e}")


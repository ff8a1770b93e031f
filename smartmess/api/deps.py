"""
Shared API dependencies.

Callers are identified by the X-User-Id / X-User-Role headers an upstream
gateway sets; mess-owner routes resolve the owner's mess profile and the
subscription gate guards the paid features.

Example usage in a router:
    from fastapi import APIRouter, Depends
    from smartmess.api import deps

    router = APIRouter()

    @router.get("/me")
    def read_me(current_user: deps.CurrentUser = Depends(deps.get_current_user)):
        return current_user
"""

from typing import Any, Callable, Optional, Type

from fastapi import Depends, Header
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from smartmess.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ResourceNotFoundError,
    SubscriptionExpiredError,
    ValidationError,
)
from smartmess.core.logging import get_logger
from smartmess.db.session import get_db
from smartmess.models.common.enums import UserRole
from smartmess.models.mess import MessProfile
from smartmess.repositories.mess.mess_repository import MessProfileRepository
from smartmess.schemas.common.response import ErrorResponse, SuccessResponse
from smartmess.schemas.credits import SubscriptionStatus
from smartmess.services.base import ErrorCode, ServiceResult
from smartmess.services.credits.subscription_check_service import SubscriptionCheckService

logger = get_logger(__name__)

NO_MESS_MESSAGE = "Mess owner not associated with any mess"

# ServiceError code -> HTTP status
ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.CONFLICT: 400,
    ErrorCode.BUSINESS_RULE_VIOLATION: 400,
    ErrorCode.INSUFFICIENT_CREDITS: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.INSUFFICIENT_PERMISSIONS: 403,
    ErrorCode.SUBSCRIPTION_INACTIVE: 403,
    ErrorCode.INTERNAL_ERROR: 500,
}


# ------------------------------------------------------------------ #
# Current user
# ------------------------------------------------------------------ #
class CurrentUser:
    """
    Lightweight representation of the caller forwarded by the gateway.
    """

    def __init__(self, user_id: str, role: UserRole):
        self.id = user_id
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    """
    Build the CurrentUser from the gateway headers.

    Raises 401 when either header is missing or the role is unknown.
    """
    if not x_user_id or not x_user_role:
        raise AuthenticationError("Authentication required")
    try:
        role = UserRole(x_user_role.strip().lower())
    except ValueError:
        raise AuthenticationError("Invalid user role")
    return CurrentUser(user_id=x_user_id.strip(), role=role)


def require_role(*roles: UserRole) -> Callable[..., CurrentUser]:
    """Dependency factory admitting only the given roles."""
    allowed = set(roles)

    def _dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise AuthorizationError(
                "Access denied",
                required_role=", ".join(sorted(r.value for r in allowed)),
            )
        return current_user

    return _dependency


get_mess_owner = require_role(UserRole.MESS_OWNER)
get_admin_user = require_role(UserRole.ADMIN)
get_owner_or_admin = require_role(UserRole.MESS_OWNER, UserRole.ADMIN)


# ------------------------------------------------------------------ #
# Mess context
# ------------------------------------------------------------------ #
def find_owned_mess(db: Session, owner_id: str) -> Optional[MessProfile]:
    return MessProfileRepository(db).get_by_owner(owner_id)


def get_owner_mess(
    current_user: CurrentUser = Depends(get_mess_owner),
    db: Session = Depends(get_db),
) -> MessProfile:
    """The caller's mess; a 400 when the owner has none."""
    mess = find_owned_mess(db, current_user.id)
    if mess is None:
        raise ValidationError(NO_MESS_MESSAGE)
    return mess


def get_gated_mess(
    current_user: CurrentUser = Depends(get_mess_owner),
    db: Session = Depends(get_db),
) -> MessProfile:
    """The caller's mess for the subscription gate; a 404 when missing."""
    mess = find_owned_mess(db, current_user.id)
    if mess is None:
        raise ResourceNotFoundError("Mess", current_user.id, "Mess profile not found")
    return mess


def _deny_when(result: ServiceResult, fallback: str) -> None:
    if not result.is_success:
        raise_for_result(result)
    decision = result.data
    if not decision["allowed"]:
        status = SubscriptionStatus.model_validate(decision["status"]).to_response()
        logger.info("Subscription gate denied request", extra={"reason": decision["reason"]})
        raise SubscriptionExpiredError(decision["reason"] or fallback, status)


def require_active_subscription(
    mess: MessProfile = Depends(get_gated_mess),
    db: Session = Depends(get_db),
) -> MessProfile:
    """Deny paid features when trial, credits and paid period have all lapsed."""
    _deny_when(SubscriptionCheckService(db).can_add_meals(mess.id), "Subscription expired")
    return mess


def ensure_can_accept_users(db: Session, mess_id: str) -> None:
    _deny_when(
        SubscriptionCheckService(db).can_accept_new_users(mess_id),
        "Subscription expired. Cannot accept new users.",
    )


# ------------------------------------------------------------------ #
# ServiceResult rendering
# ------------------------------------------------------------------ #
class ServiceResultError(Exception):
    """Carries a failed ServiceResult out of a dependency."""

    def __init__(self, result: ServiceResult):
        self.result = result
        super().__init__(result.message)


def raise_for_result(result: ServiceResult) -> None:
    if not result.is_success:
        raise ServiceResultError(result)


def _envelope(body: BaseModel) -> dict:
    # only top-level empties are dropped; payload nulls stay
    return {key: value for key, value in body.model_dump().items() if value is not None}


def failure_response(result: ServiceResult) -> JSONResponse:
    error = result.error
    status_code = ERROR_STATUS_CODES.get(error.code, 500) if error else 500
    data = None
    if error is not None and error.code != ErrorCode.INTERNAL_ERROR:
        data = jsonable_encoder(error.details) if error.details else None
    body = ErrorResponse.create(result.message or "Request failed", data)
    return JSONResponse(status_code=status_code, content=_envelope(body))


def respond(
    result: ServiceResult,
    schema: Optional[Type[BaseModel]] = None,
    many: bool = False,
    status_code: int = 200,
) -> JSONResponse:
    """
    Render a ServiceResult in the {success, message, data} envelope.

    Successful data is validated through schema (camelCase output) when one
    is given; failures use the ErrorCode -> HTTP status mapping.
    """
    if not result.is_success:
        return failure_response(result)

    data: Any = result.data
    if schema is not None and data is not None:
        if many:
            data = [schema.model_validate(item, from_attributes=True).to_response() for item in data]
        else:
            data = schema.model_validate(data, from_attributes=True).to_response()
    else:
        data = jsonable_encoder(data)

    body = SuccessResponse.create(message=result.message, data=data)
    return JSONResponse(status_code=status_code, content=_envelope(body))


__all__ = [
    "get_db",
    "CurrentUser",
    "get_current_user",
    "require_role",
    "get_mess_owner",
    "get_admin_user",
    "get_owner_or_admin",
    "find_owned_mess",
    "get_owner_mess",
    "get_gated_mess",
    "require_active_subscription",
    "ensure_can_accept_users",
    "ServiceResultError",
    "raise_for_result",
    "failure_response",
    "respond",
]

from smartmess.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseSchema,
    BaseUpdateSchema,
    CamelSchema,
)
from smartmess.schemas.common.response import ErrorResponse, PaginationInfo, SuccessResponse

__all__ = [
    "BaseSchema",
    "CamelSchema",
    "BaseCreateSchema",
    "BaseUpdateSchema",
    "BaseResponseSchema",
    "SuccessResponse",
    "ErrorResponse",
    "PaginationInfo",
]

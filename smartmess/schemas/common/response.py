# --- File: smartmess/schemas/common/response.py ---
"""
Standard API response wrappers.

Every endpoint answers with {success, message?, data?}.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import Field

from smartmess.schemas.common.base import BaseSchema, CamelSchema

T = TypeVar("T")

__all__ = [
    "SuccessResponse",
    "ErrorResponse",
    "PaginationInfo",
]


class SuccessResponse(BaseSchema, Generic[T]):
    """Standard success response."""

    success: bool = Field(default=True, description="Success flag")
    message: Optional[str] = Field(default=None, description="Response message")
    data: Optional[T] = Field(default=None, description="Response data")

    @classmethod
    def create(cls, message: Optional[str] = None, data: Any = None):
        """Create success response."""
        return cls(success=True, message=message, data=data)


class ErrorResponse(BaseSchema):
    """Standard error response."""

    success: bool = Field(default=False, description="Success flag")
    message: str = Field(..., description="Error message")
    data: Optional[Any] = Field(default=None, description="Structured error payload")

    @classmethod
    def create(cls, message: str, data: Any = None):
        """Create error response."""
        return cls(success=False, message=message, data=data)


class PaginationInfo(CamelSchema):
    """Page-based pagination metadata."""

    current: int = Field(..., ge=1, description="Current page (1-indexed)")
    pages: int = Field(..., ge=0, description="Total number of pages")
    total: int = Field(..., ge=0, description="Total number of items")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationInfo":
        pages = (total + limit - 1) // limit if limit else 0
        return cls(current=page, pages=pages, total=total)

# --- File: smartmess/schemas/common/base.py ---
"""
Base schema classes with common fields and configurations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "BaseSchema",
    "CamelSchema",
    "BaseCreateSchema",
    "BaseUpdateSchema",
    "BaseResponseSchema",
]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.

    All application-facing schemas inherit from this to ensure consistent
    validation behaviour.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        # Keep enums as Enum instances to retain full type information;
        # callers can still access `.value` if needed.
        use_enum_values=False,
        arbitrary_types_allowed=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class CamelSchema(BaseSchema):
    """
    Schema exchanged with the web client.

    Fields are declared in snake_case and travel as camelCase; both
    spellings are accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel)

    def to_response(self) -> dict:
        """JSON-ready camelCase dump."""
        return self.model_dump(by_alias=True, mode="json")


class BaseCreateSchema(CamelSchema):
    """Base schema for create operations."""
    pass


class BaseUpdateSchema(CamelSchema):
    """
    Base schema for update operations.

    Note:
        Subclasses intended for partial updates declare their fields as
        Optional[...] with None defaults; unset fields are left untouched.
    """
    pass


class BaseResponseSchema(CamelSchema):
    """Base schema for API responses of persisted entities."""

    id: str = Field(..., description="Unique identifier")
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp")

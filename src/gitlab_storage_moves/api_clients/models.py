"""Shared request and response models for GitLab API services."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class VisibilityValue(str, Enum):
    """Visibility level of a GitLab resource."""

    PRIVATE = "private"
    INTERNAL = "internal"
    PUBLIC = "public"


class ResponseModel(BaseModel):
    """Base for decoded API payloads.

    Unknown fields are ignored and JSON nulls fall back to the field default,
    so a sparse payload still decodes into a fully populated record.
    """

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name is not None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return value


class OptionsModel(BaseModel):
    """Base for request option bags. Unset fields are not sent."""

    model_config = ConfigDict(extra="forbid")


class ListOptions(OptionsModel):
    """Offset and keyset pagination options shared by list endpoints."""

    page: Optional[int] = Field(default=None, description="Page number (1-based)")
    per_page: Optional[int] = Field(default=None, description="Items per page")
    pagination: Optional[Literal["keyset"]] = Field(
        default=None, description="Set to 'keyset' for keyset pagination"
    )
    order_by: Optional[str] = Field(default=None, description="Keyset order field")
    sort: Optional[Literal["asc", "desc"]] = Field(
        default=None, description="Keyset sort direction"
    )

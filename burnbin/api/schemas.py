from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from burnbin.domain.lifecycle import MAX_EXPIRES_AT_MS
from burnbin.services.paste_service import (
    CONTENT_REQUIRED,
    MAX_VIEWS_INVALID,
    MAX_VIEWS_LIMIT,
    TTL_SECONDS_INVALID,
    as_positive_int,
)

# No clock reading can make a longer TTL representable.
MAX_TTL_SECONDS = MAX_EXPIRES_AT_MS // 1000


def _coerce_positive_int(
    value: Any,
    error_type: str,
    message: str,
    upper: Optional[int] = None,
) -> int:
    number = as_positive_int(value)
    if number is None or (upper is not None and number > upper):
        raise PydanticCustomError(error_type, message)
    return number


class PasteCreateRequest(BaseModel):
    """
    Body of ``POST /api/pastes``.

    Absent ``ttl_seconds`` / ``max_views`` mean "no limit"; an explicit
    ``null`` is rejected like any other non-integer.
    """

    model_config = ConfigDict(extra="ignore")

    content: Any = Field(
        default=None,
        validate_default=True,
        description="Paste content (non-blank string)",
    )
    ttl_seconds: Any = Field(
        default=None,
        description="Optional time-to-live in seconds (>= 1)",
    )
    max_views: Any = Field(
        default=None,
        description="Optional maximum allowed views (>= 1)",
    )

    @field_validator("content", mode="before")
    @classmethod
    def _check_content(cls, value: Any) -> str:
        if not isinstance(value, str) or value.strip() == "":
            raise PydanticCustomError("content_required", CONTENT_REQUIRED)
        return value

    @field_validator("ttl_seconds", mode="before")
    @classmethod
    def _check_ttl_seconds(cls, value: Any) -> int:
        return _coerce_positive_int(
            value,
            "ttl_seconds_invalid",
            TTL_SECONDS_INVALID,
            upper=MAX_TTL_SECONDS,
        )

    @field_validator("max_views", mode="before")
    @classmethod
    def _check_max_views(cls, value: Any) -> int:
        return _coerce_positive_int(
            value,
            "max_views_invalid",
            MAX_VIEWS_INVALID,
            upper=MAX_VIEWS_LIMIT,
        )


def first_error_message(exc: ValidationError) -> str:
    """Message of the first failing field, in declaration order."""
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    return errors[0]["msg"]


class PasteCreatedResponse(BaseModel):
    id: str
    url: str


class PasteViewResponse(BaseModel):
    content: str
    remaining_views: Optional[int]
    expires_at: Optional[str]


class HealthResponse(BaseModel):
    ok: bool = True

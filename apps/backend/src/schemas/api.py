"""Response envelopes shared by the relay's JSON endpoints.

The chat-completion route returns the provider's completion object as-is;
everything else (health, and every error) is wrapped in ``ApiResponse``.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, model_serializer


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """``{success, data, message, error}`` wrapper."""

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorBody(BaseModel):
    """The ``error`` object of a failed request.

    Only ``correlation_id`` and ``type`` are always present; the rest is
    filled in according to the environment's exposure rules and omitted
    when empty.
    """

    correlation_id: str
    type: str
    code: str | None = None
    exception_type: str | None = None
    validation_errors: list[dict[str, Any]] | None = None
    traceback: str | None = None

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler: Any) -> dict[str, Any]:
        return {key: value for key, value in handler(self).items() if value is not None}


class ErrorResponse(BaseModel):
    success: bool = False
    data: None = None
    message: str = "An error occurred"
    error: ErrorBody


class HealthStatus(BaseModel):
    status: str
    message: str
    environment: str

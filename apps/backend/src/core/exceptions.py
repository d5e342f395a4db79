"""Domain error taxonomy for the completion relay and its tools.

Each error carries a stable ``error_code`` (used in inline stream error
events and in the HTTP error envelope) and the HTTP status the API layer
should use when the error escapes a non-streaming request.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for domain-specific errors."""

    error_code: str = "domain_error"
    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.__doc__ or self.error_code
        super().__init__(self.message)


class InvalidToolArguments(DomainError):
    """The provider produced tool-call arguments that are not a JSON object."""

    error_code = "invalid_tool_arguments"
    status_code = 502


class UnknownTool(DomainError):
    """The provider asked for a tool that is not registered."""

    error_code = "unknown_tool"
    status_code = 502

    def __init__(self, tool_name: str | None) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool requested: {tool_name or '<missing name>'}")


class ToolError(DomainError):
    """A registered tool failed while performing its side effect."""

    error_code = "tool_error"
    status_code = 500


class MissingRequiredField(ToolError):
    """A tool was called without a field it requires."""

    error_code = "missing_required_field"
    status_code = 422


class NotFound(ToolError):
    """The record a tool was asked to act on does not exist."""

    error_code = "not_found"
    status_code = 404


class BackendUnavailable(ToolError):
    """The backing store or an external service could not be reached."""

    error_code = "backend_unavailable"
    status_code = 503

"""Error envelopes and structured logging for the relay.

Every failure that reaches the HTTP layer goes through ``classify_exception``
to decide its status and public message, then ``render_error`` trims the
envelope to what the environment may expose. Log extras are redacted before
they reach a handler so tool arguments never leak customer contact data.
"""

import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from core.exceptions import DomainError
from core.security_config import get_allowed_error_fields, is_sensitive_key
from schemas.api import ErrorBody, ErrorResponse


REDACTED = "[REDACTED]"

# Quietened outside development; their INFO output is per-request noise.
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "openai")

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str:
    """Return the current correlation id, minting one if the context has none."""
    current = _correlation_id_var.get()
    if current:
        return current
    minted = str(uuid.uuid4())
    _correlation_id_var.set(minted)
    return minted


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id_var.set(correlation_id)


def redact(value: Any) -> Any:
    """Mask sensitive keys at any depth of a dict/list structure."""
    if isinstance(value, dict):
        return {
            key: REDACTED if is_sensitive_key(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [redact(item) for item in value]
    return value


class StructuredLogger:
    """Logger wrapper that attaches the correlation id and redacted extras.

    The payload travels as ``record.structured_data``; the JSON formatter
    emits it as fields, the console formatter only shows the prefixed message.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _emit(
        self, level: int, message: str, fields: dict[str, Any], exc_info: bool = False
    ) -> None:
        correlation_id = get_correlation_id()
        payload = {"correlation_id": correlation_id, "message": message}
        payload.update(redact(fields))
        self.logger.log(
            level,
            f"[{correlation_id}] {message}",
            extra={"structured_data": payload},
            exc_info=exc_info,
        )

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def exception(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields, exc_info=True)


logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class ErrorClassification:
    status_code: int
    error_type: str
    message: str
    code: str | None = None
    validation_errors: list[dict[str, Any]] | None = None
    include_traceback: bool = False


def jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    """Keep only ``loc``/``msg``/``type`` from pydantic errors.

    ``ctx`` may hold the raw exception object, which is not serializable.
    """
    return [
        {
            "loc": list(err.get("loc", ())),
            "msg": str(err.get("msg", "")),
            "type": str(err.get("type", "")),
        }
        for err in errors or []
    ]


def classify_exception(exc: Exception) -> ErrorClassification:
    if isinstance(exc, StarletteHTTPException):
        return ErrorClassification(
            status_code=exc.status_code,
            error_type="http_error",
            message=str(exc.detail) if exc.detail else "An HTTP error occurred",
        )
    # Missing `messages` or `appId` on a completion request ends up here.
    if isinstance(exc, RequestValidationError | ValidationError):
        return ErrorClassification(
            status_code=422,
            error_type="validation_error",
            message="Invalid request data provided",
            validation_errors=jsonable_errors(exc.errors()),
        )
    if isinstance(exc, DomainError):
        return ErrorClassification(
            status_code=exc.status_code,
            error_type="domain_error",
            message=exc.message,
            code=exc.error_code,
        )
    return ErrorClassification(
        status_code=500,
        error_type="internal_server_error",
        message="An internal error occurred",
        include_traceback=True,
    )


def render_error(
    exc: Exception,
    classification: ErrorClassification,
    *,
    environment: str,
    correlation_id: str,
) -> JSONResponse:
    allowed = get_allowed_error_fields(environment)
    body = ErrorBody(correlation_id=correlation_id, type=classification.error_type)
    if "code" in allowed:
        body.code = classification.code
    if "exception_type" in allowed:
        body.exception_type = exc.__class__.__name__
    if "validation_errors" in allowed:
        body.validation_errors = classification.validation_errors
    if "traceback" in allowed and classification.include_traceback:
        body.traceback = "".join(traceback.format_exception(exc)).strip()

    envelope = ErrorResponse(message=classification.message, error=body)
    return JSONResponse(
        status_code=classification.status_code, content=envelope.model_dump()
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    classification = classify_exception(exc)

    if classification.error_type == "validation_error":
        logger.warning(
            "Validation error", validation_errors=classification.validation_errors
        )
    elif classification.error_type == "domain_error":
        logger.warning(
            "Domain error",
            error_type=exc.__class__.__name__,
            error_code=classification.code,
            domain_message=classification.message,
        )
    elif classification.error_type == "internal_server_error":
        logger.exception(
            "Unhandled exception",
            exception_type=exc.__class__.__name__,
            error=str(exc),
        )

    return render_error(
        exc,
        classification,
        environment=get_settings().ENVIRONMENT,
        correlation_id=get_correlation_id(),
    )


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Turn exceptions that escape the routing layer into error envelopes."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def setup_logging() -> None:
    """Install a single stdout handler on the root logger.

    JSON lines in production, a readable console format elsewhere. Safe to
    call more than once.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    environment = get_settings().ENVIRONMENT
    level = logging.DEBUG if environment == "development" else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if environment == "production":
        handler.setFormatter(
            JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )

    root.setLevel(level)
    root.addHandler(handler)

    if environment != "development":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

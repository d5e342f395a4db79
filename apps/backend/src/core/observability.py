"""Tracing helpers built on the OpenTelemetry API.

Spans are emitted through whatever tracer provider the deployment installs;
with none installed the API hands back non-recording spans, so callers can
always open spans unconditionally.

PII guidance: never put customer messages, emails or tool argument values in
span attributes. Record names, counts, durations and outcome codes only, and
link to logs through the correlation ID.
"""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode, Tracer


def get_tracer(name: str) -> Tracer:
    """Get an OpenTelemetry tracer for custom instrumentation.

    Args:
        name: The name of the tracer, typically ``__name__`` of the caller.
    """
    return trace.get_tracer(name)


def mark_span_error(span: Span, exc: BaseException) -> None:
    """Record ``exc`` on ``span`` and flag the span as failed."""
    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR, exc.__class__.__name__))

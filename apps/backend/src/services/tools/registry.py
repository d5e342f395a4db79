"""Immutable registry of support tools.

The registry is built once at startup and injected into the completion
relay. It owns the boundary between the provider's raw JSON arguments and
the typed argument models: validation failures become ``MissingRequiredField``
or ``InvalidToolArguments`` before any handler runs.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from core.error_handler import StructuredLogger
from core.exceptions import (
    BackendUnavailable,
    InvalidToolArguments,
    MissingRequiredField,
    ToolError,
    UnknownTool,
)
from core.observability import get_tracer, mark_span_error
from services.tools.deps import RequestContext, ToolContext, ToolDeps


logger = StructuredLogger(__name__)
_tracer = get_tracer(__name__)

ToolHandler = Callable[[ToolContext, Any], Awaitable[str]]

# Validation error types that mean "the caller left out something required".
_MISSING_ERROR_TYPES = frozenset({"missing", "string_too_short"})


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[BaseModel]
    handler: ToolHandler

    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema of the arguments, as advertised to the provider."""
        schema = self.args_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        schema.setdefault("required", [])
        return schema


class ToolRegistry(Mapping[str, ToolSpec]):
    """Read-only name -> ToolSpec mapping with validated execution."""

    def __init__(self, specs: Iterable[ToolSpec], deps: ToolDeps) -> None:
        by_name: dict[str, ToolSpec] = {}
        for spec in specs:
            if spec.name in by_name:
                raise ValueError(f"Duplicate tool name: {spec.name}")
            by_name[spec.name] = spec
        self._specs = MappingProxyType(by_name)
        self._deps = deps

    def __getitem__(self, name: str) -> ToolSpec:
        return self._specs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def deps(self) -> ToolDeps:
        return self._deps

    def catalog(self) -> list[dict[str, Any]]:
        """Tool catalog in the chat-completions ``tools`` format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": spec.name,
                    "description": spec.description,
                    "parameters": spec.parameters_schema(),
                },
            }
            for spec in self._specs.values()
        ]

    def parse_arguments(self, name: str, raw_args: Mapping[str, Any]) -> BaseModel:
        """Validate ``raw_args`` against the tool's argument model."""
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownTool(name)
        try:
            return spec.args_model.model_validate(dict(raw_args))
        except ValidationError as exc:
            errors = exc.errors()
            fields = ", ".join(
                ".".join(str(p) for p in err["loc"]) or "<root>" for err in errors
            )
            if all(err["type"] in _MISSING_ERROR_TYPES for err in errors):
                raise MissingRequiredField(
                    f"{name} requires: {fields}"
                ) from exc
            raise InvalidToolArguments(
                f"Invalid arguments for {name}: {fields}"
            ) from exc

    async def execute(
        self, name: str, request: RequestContext, raw_args: Mapping[str, Any]
    ) -> str:
        """Validate arguments and run the named tool once.

        Raises:
            UnknownTool: ``name`` is not registered.
            InvalidToolArguments / MissingRequiredField: validation failed.
            ToolError: the handler failed; database errors surface as
                ``BackendUnavailable``.
        """
        args = self.parse_arguments(name, raw_args)
        spec = self._specs[name]
        ctx = ToolContext(request=request, deps=self._deps)

        started = time.perf_counter()
        with _tracer.start_as_current_span(f"tool_call:{name}") as span:
            span.set_attribute("tool.name", name)
            try:
                result = await spec.handler(ctx, args)
            except ToolError as exc:
                mark_span_error(span, exc)
                logger.warning(
                    "Tool failed", tool_name=name, error_code=exc.error_code
                )
                raise
            except SQLAlchemyError as exc:
                mark_span_error(span, exc)
                logger.exception("Tool backend error", tool_name=name)
                raise BackendUnavailable(
                    f"{name} could not reach the support database"
                ) from exc

            duration_ms = (time.perf_counter() - started) * 1000
            span.set_attribute("tool.duration_ms", duration_ms)
            logger.info(
                "Tool executed",
                tool_name=name,
                duration_ms=round(duration_ms, 2),
                result_length=len(result),
            )
            return result

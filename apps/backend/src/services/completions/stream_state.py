"""Pure state machine for the streaming relay.

``advance(state, chunk)`` folds one provider chunk into the request's state
and says what to emit downstream. It never performs I/O, so the whole
tool-call lifecycle can be exercised with hand-written chunk lists.

Tool-call fragments arrive either as legacy ``delta.function_call`` or as
``delta.tool_calls[i].function``. Name and argument fragments are each
concatenated in arrival order. Only one call per turn is supported: fragments
for any tool-call index other than the first one seen are ignored.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from core.exceptions import InvalidToolArguments
from services.completions.events import RelayEvent


TOOL_CALL_FINISH_REASONS = frozenset({"tool_calls", "function_call"})


@dataclass(frozen=True)
class PendingToolCall:
    name: str | None = None
    arguments_text: str = ""
    call_id: str | None = None
    index: int | None = None

    def extend(
        self,
        *,
        name: str | None = None,
        arguments: str | None = None,
        call_id: str | None = None,
    ) -> PendingToolCall:
        return replace(
            self,
            name=(self.name or "") + name if name else self.name,
            arguments_text=self.arguments_text + (arguments or ""),
            call_id=self.call_id or call_id,
        )


@dataclass(frozen=True)
class ToolInvocation:
    name: str | None
    arguments: dict[str, Any]
    call_id: str | None = None


@dataclass(frozen=True)
class StreamState:
    pending: PendingToolCall | None = None
    finished: bool = False


@dataclass(frozen=True)
class StreamStep:
    state: StreamState
    events: tuple[RelayEvent, ...] = ()
    completed_call: PendingToolCall | None = None


@dataclass
class _Fragments:
    name: str | None = None
    arguments: str | None = None
    call_id: str | None = None
    index: int | None = None
    seen: bool = False


def _fragments_from_delta(delta: Mapping[str, Any], bound_index: int | None) -> _Fragments:
    frags = _Fragments()

    legacy = delta.get("function_call")
    if isinstance(legacy, Mapping):
        frags.seen = True
        frags.name = legacy.get("name") or None
        frags.arguments = legacy.get("arguments") or None

    for tool_call in delta.get("tool_calls") or []:
        index = tool_call.get("index", 0)
        if bound_index is not None and index != bound_index:
            continue
        if frags.index is not None and index != frags.index:
            continue
        function = tool_call.get("function") or {}
        frags.seen = True
        frags.index = index
        frags.call_id = frags.call_id or tool_call.get("id")
        if function.get("name"):
            frags.name = (frags.name or "") + function["name"]
        if function.get("arguments"):
            frags.arguments = (frags.arguments or "") + function["arguments"]
    return frags


def advance(state: StreamState, chunk: Mapping[str, Any]) -> StreamStep:
    """Fold one provider chunk into ``state``.

    Every chunk is forwarded as-is. When the chunk's finish reason marks a
    tool call as complete, the accumulated call is returned in
    ``completed_call`` (a nameless call if no fragment was ever seen) and the
    state is marked finished.
    """
    events = (RelayEvent.chunk(dict(chunk)),)
    if state.finished:
        return StreamStep(state=state, events=events)

    pending = state.pending
    completed: PendingToolCall | None = None

    for choice in chunk.get("choices") or []:
        delta = choice.get("delta") or {}
        bound_index = pending.index if pending is not None else None
        frags = _fragments_from_delta(delta, bound_index)
        if frags.seen:
            pending = (pending or PendingToolCall(index=frags.index)).extend(
                name=frags.name, arguments=frags.arguments, call_id=frags.call_id
            )
            if pending.index is None and frags.index is not None:
                pending = replace(pending, index=frags.index)

        if choice.get("finish_reason") in TOOL_CALL_FINISH_REASONS:
            completed = pending or PendingToolCall()
            break

    if completed is not None:
        return StreamStep(
            state=StreamState(pending=None, finished=True),
            events=events,
            completed_call=completed,
        )
    return StreamStep(state=StreamState(pending=pending), events=events)


def parse_tool_arguments(arguments_text: str | None) -> dict[str, Any]:
    """Parse accumulated argument text into a JSON object.

    Empty or whitespace-only text means "no arguments" and yields ``{}``.
    """
    if arguments_text is None or not arguments_text.strip():
        return {}
    try:
        parsed = json.loads(arguments_text)
    except json.JSONDecodeError as exc:
        raise InvalidToolArguments("Invalid function call arguments") from exc
    if not isinstance(parsed, dict):
        raise InvalidToolArguments("Function call arguments must be a JSON object")
    return parsed


def resolve_invocation(call: PendingToolCall) -> ToolInvocation:
    return ToolInvocation(
        name=call.name,
        arguments=parse_tool_arguments(call.arguments_text),
        call_id=call.call_id,
    )

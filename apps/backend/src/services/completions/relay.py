"""Completion relay: one conversational turn with at most one tool call.

Both paths send the turn list plus the tool catalog, watch for a completed
tool call, run it exactly once through the ``ToolRegistry``, append the call
and its result as two new turns, and ask the provider again without the
catalog. The non-streaming path returns the final completion object; the
streaming path yields ``RelayEvent``s and always ends with the sentinel.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import aclosing
from typing import Any

from core.error_handler import StructuredLogger
from core.exceptions import DomainError, InvalidToolArguments, UnknownTool
from core.observability import get_tracer
from schemas.completions import Turn
from services.completions.events import RelayEvent
from services.completions.provider import ChatProvider, CompletionOptions
from services.completions.stream_state import (
    TOOL_CALL_FINISH_REASONS,
    PendingToolCall,
    StreamState,
    ToolInvocation,
    advance,
    parse_tool_arguments,
    resolve_invocation,
)
from services.tools.deps import RequestContext
from services.tools.registry import ToolRegistry


logger = StructuredLogger(__name__)
_tracer = get_tracer(__name__)

TurnList = tuple[dict[str, Any], ...]


def as_turn_list(turns: Sequence[Turn | Mapping[str, Any]]) -> TurnList:
    """Freeze incoming turns into the provider's dict shape."""
    return tuple(
        turn.to_provider() if isinstance(turn, Turn) else dict(turn) for turn in turns
    )


def tool_result_turns(invocation: ToolInvocation, result: str) -> TurnList:
    """The assistant tool-call turn and the tool-result turn, in that order.

    Calls that came with an id use the ``tool_calls``/``tool`` shape; legacy
    ``function_call`` responses get the matching ``function`` role turn.
    """
    name = invocation.name or ""
    arguments = json.dumps(invocation.arguments)
    if invocation.call_id:
        return (
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": invocation.call_id,
                        "type": "function",
                        "function": {"name": name, "arguments": arguments},
                    }
                ],
            },
            {
                "role": "tool",
                "tool_call_id": invocation.call_id,
                "name": name,
                "content": result,
            },
        )
    return (
        {
            "role": "assistant",
            "content": None,
            "function_call": {"name": name, "arguments": arguments},
        },
        {"role": "function", "name": name, "content": result},
    )


def completed_tool_call(completion: Mapping[str, Any]) -> PendingToolCall | None:
    """The tool call carried by a non-streaming completion, if any."""
    choices = completion.get("choices") or []
    if not choices:
        return None
    choice = choices[0]
    message = choice.get("message") or {}
    tool_calls = message.get("tool_calls") or []
    legacy = message.get("function_call")

    if tool_calls:
        first = tool_calls[0]
        function = first.get("function") or {}
        return PendingToolCall(
            name=function.get("name"),
            arguments_text=function.get("arguments") or "",
            call_id=first.get("id"),
        )
    if isinstance(legacy, Mapping):
        return PendingToolCall(
            name=legacy.get("name"), arguments_text=legacy.get("arguments") or ""
        )
    if choice.get("finish_reason") in TOOL_CALL_FINISH_REASONS:
        return PendingToolCall()
    return None


class CompletionRelay:
    """Relay chat completions between the caller and the provider."""

    def __init__(self, provider: ChatProvider, registry: ToolRegistry) -> None:
        self._provider = provider
        self._registry = registry

    async def relay(
        self,
        turns: Sequence[Turn | Mapping[str, Any]],
        options: CompletionOptions,
        request: RequestContext,
    ) -> dict[str, Any]:
        """Non-streaming turn.

        Raises:
            InvalidToolArguments: the provider's tool arguments are malformed.
            ToolError: the tool itself failed.

        An unknown tool name is logged and the provider's response is
        returned untouched.
        """
        turn_list = as_turn_list(turns)
        with _tracer.start_as_current_span("completion_relay.primary"):
            completion = await self._provider.complete(
                turn_list, options, self._registry.catalog()
            )

        call = completed_tool_call(completion)
        if call is None:
            return completion

        invocation = ToolInvocation(
            name=call.name,
            arguments=parse_tool_arguments(call.arguments_text),
            call_id=call.call_id,
        )
        if invocation.name not in self._registry:
            logger.warning(
                "Unknown tool requested; returning provider response",
                tool_name=invocation.name,
            )
            return completion

        result = await self._registry.execute(
            invocation.name, request, invocation.arguments
        )
        followup = turn_list + tool_result_turns(invocation, result)
        with _tracer.start_as_current_span("completion_relay.followup"):
            return await self._provider.complete(followup, options)

    async def relay_stream(
        self,
        turns: Sequence[Turn | Mapping[str, Any]],
        options: CompletionOptions,
        request: RequestContext,
    ) -> AsyncIterator[RelayEvent]:
        """Streaming turn; every path ends with exactly one sentinel event."""
        turn_list = as_turn_list(turns)
        state = StreamState()
        completed: PendingToolCall | None = None

        try:
            async with aclosing(
                self._provider.stream(turn_list, options, self._registry.catalog())
            ) as primary:
                async for chunk in primary:
                    step = advance(state, chunk)
                    state = step.state
                    for event in step.events:
                        yield event
                    if step.completed_call is not None:
                        completed = step.completed_call
                        break
        except Exception as exc:
            logger.exception("Provider stream failed", error=str(exc))
            yield RelayEvent.error("Upstream completion failed", "provider_error")
            yield RelayEvent.done()
            return

        if completed is None:
            yield RelayEvent.done()
            return

        try:
            invocation = resolve_invocation(completed)
            if invocation.name not in self._registry:
                raise UnknownTool(invocation.name)
            result = await self._registry.execute(
                invocation.name, request, invocation.arguments
            )
        except (InvalidToolArguments, UnknownTool) as exc:
            logger.warning(
                "Tool call rejected", tool_name=completed.name, error_code=exc.error_code
            )
            yield RelayEvent.error(exc.message, exc.error_code)
            yield RelayEvent.done()
            return
        except DomainError as exc:
            logger.warning(
                "Tool call failed", tool_name=completed.name, error_code=exc.error_code
            )
            yield RelayEvent.error(exc.message, exc.error_code)
            yield RelayEvent.done()
            return
        except Exception:
            logger.exception("Function call failed", tool_name=completed.name)
            yield RelayEvent.error("Function call failed", "tool_error")
            yield RelayEvent.done()
            return

        followup = turn_list + tool_result_turns(invocation, result)
        try:
            async with aclosing(self._provider.stream(followup, options)) as secondary:
                async for chunk in secondary:
                    yield RelayEvent.chunk(chunk, followup=True)
        except Exception as exc:
            logger.exception("Follow-up stream failed", error=str(exc))
            yield RelayEvent.error("Upstream completion failed", "provider_error")

        yield RelayEvent.done()

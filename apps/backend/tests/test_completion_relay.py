"""Tests for the completion relay (streaming and non-streaming paths).

The provider is scripted; tools run for real against SQLite.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from pydantic import BaseModel
from sqlalchemy import func, select

from core.exceptions import InvalidToolArguments, ToolError
from fakes import (
    ScriptedProvider,
    completion,
    content_chunk,
    finish_chunk,
    tool_call,
    tool_chunk,
)
from models import SupportTicket
from services.completions import DONE_SENTINEL, CompletionOptions, CompletionRelay
from services.completions.events import RelayEvent
from services.tools import RequestContext, ToolDeps
from services.tools.registry import ToolRegistry, ToolSpec


OPTIONS = CompletionOptions(model="gpt-test")
TURNS = [{"role": "user", "content": "Where is my order?"}]


async def collect(relay: CompletionRelay, request_ctx: RequestContext) -> list[RelayEvent]:
    return [event async for event in relay.relay_stream(TURNS, OPTIONS, request_ctx)]


def sse(events: list[RelayEvent]) -> list[str]:
    return [event.to_sse() for event in events]


def errors(events: list[RelayEvent]) -> list[dict[str, Any]]:
    return [event.data["error"] for event in events if event.kind == "error"]


class _NoArgs(BaseModel):
    pass


def exploding_registry(session_factory: Any, exc: Exception) -> ToolRegistry:
    async def explode(ctx: Any, args: Any) -> str:
        raise exc

    spec = ToolSpec(
        name="explode", description="Always fails.", args_model=_NoArgs, handler=explode
    )
    return ToolRegistry([spec], ToolDeps(session_factory=session_factory, agent_id="t"))


@pytest.mark.asyncio
class TestRelayStream:
    async def test_plain_reply_is_forwarded_and_terminated(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[[content_chunk("All "), content_chunk("set!", "stop")]]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert [e.kind for e in events] == ["chunk", "chunk", "done"]
        assert "".join(e.text_delta for e in events) == "All set!"
        assert sse(events)[-1] == DONE_SENTINEL
        assert len(provider.calls) == 1
        assert provider.calls[0]["tools"] == registry.catalog()

    async def test_fragmented_tool_call_runs_once_then_streams_followup(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[
                [
                    tool_chunk(name="fetch_", call_id="call_1"),
                    tool_chunk(name="recent_orders"),
                    tool_chunk(arguments='{"limit":'),
                    tool_chunk(arguments=" 3}"),
                    finish_chunk("tool_calls"),
                ],
                [
                    content_chunk("You have no "),
                    content_chunk("recent orders.", "stop"),
                ],
            ]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert [e.kind for e in events] == ["chunk"] * 7 + ["done"]
        assert [e.followup for e in events[:7]] == [False] * 5 + [True] * 2
        assert "".join(e.text_delta for e in events) == "You have no recent orders."
        assert sse(events).count(DONE_SENTINEL) == 1

        followup = provider.calls[1]
        assert followup["tools"] is None
        assistant_turn, tool_turn = followup["turns"][-2:]
        assert assistant_turn["tool_calls"][0]["function"]["name"] == "fetch_recent_orders"
        assert tool_turn["role"] == "tool"
        assert tool_turn["tool_call_id"] == "call_1"
        result = json.loads(tool_turn["content"])
        assert result["type"] == "orders"
        assert result["customerId"] == "111"
        assert result["orders"] == []
        assert provider.closed_streams == 2

    async def test_empty_arguments_are_treated_as_no_arguments(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[
                [
                    tool_chunk(name="fetch_recent_orders", arguments="", call_id="c"),
                    finish_chunk("tool_calls"),
                ],
                [content_chunk("You have no recent orders.", "stop")],
            ]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert errors(events) == []
        assert events[-1].kind == "done"
        assert len(provider.calls) == 2

    async def test_unknown_tool_emits_one_error_and_sentinel(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[
                [
                    tool_chunk(name="does_not_exist", arguments="{}"),
                    finish_chunk("tool_calls"),
                ]
            ]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert [e.kind for e in events] == ["chunk", "chunk", "error", "done"]
        assert errors(events)[0]["code"] == "unknown_tool"
        assert len(provider.calls) == 1

    async def test_nameless_tool_call_is_unknown(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(streams=[[finish_chunk("tool_calls")]])

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert [err["code"] for err in errors(events)] == ["unknown_tool"]
        assert events[-1].kind == "done"

    async def test_invalid_arguments_emit_error_without_running_tool(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[
                [
                    tool_chunk(name="create_support_ticket", arguments='{"subject": '),
                    finish_chunk("tool_calls"),
                ]
            ]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert errors(events) == [
            {"message": "Invalid function call arguments", "code": "invalid_tool_arguments"}
        ]
        assert sse(events)[-1] == DONE_SENTINEL
        assert len(provider.calls) == 1

    async def test_tool_failure_emits_generic_error(
        self, session_factory: Any, request_ctx: RequestContext
    ) -> None:
        registry = exploding_registry(session_factory, RuntimeError("db on fire"))
        provider = ScriptedProvider(
            streams=[[tool_chunk(name="explode", arguments="{}"), finish_chunk("tool_calls")]]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert errors(events) == [
            {"message": "Function call failed", "code": "tool_error"}
        ]
        assert events[-1].kind == "done"

    async def test_domain_tool_error_keeps_its_code(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[
                [
                    tool_chunk(name="get_ticket_details", arguments='{"ticketId": "nope"}'),
                    finish_chunk("tool_calls"),
                ]
            ]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert [err["code"] for err in errors(events)] == ["not_found"]

    async def test_provider_failure_mid_stream(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[[content_chunk("Let me"), RuntimeError("connection reset")]]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert [e.kind for e in events] == ["chunk", "error", "done"]
        assert errors(events)[0]["code"] == "provider_error"

    async def test_followup_failure_still_ends_with_sentinel(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            streams=[
                [tool_chunk(name="fetch_recent_orders", arguments="{}"), finish_chunk("tool_calls")],
                [RuntimeError("upstream gone")],
            ]
        )

        events = await collect(CompletionRelay(provider, registry), request_ctx)

        assert [e.kind for e in events][-2:] == ["error", "done"]
        assert sse(events).count(DONE_SENTINEL) == 1

    async def test_concurrent_turns_create_independent_tickets(
        self,
        registry: ToolRegistry,
        request_ctx: RequestContext,
        session_factory: Any,
    ) -> None:
        def ticket_stream(subject: str) -> list[dict[str, Any]]:
            args = json.dumps(
                {
                    "subject": subject,
                    "description": f"{subject} details",
                    "customerEmail": f"{subject.split()[0].lower()}@example.com",
                }
            )
            return [
                tool_chunk(name="create_support_", call_id=f"call-{subject}"),
                tool_chunk(name="ticket", arguments=args),
                finish_chunk("tool_calls"),
            ]

        relay_a = CompletionRelay(
            ScriptedProvider(
                streams=[ticket_stream("Broken zipper"), [content_chunk("Ticket opened.", "stop")]]
            ),
            registry,
        )
        relay_b = CompletionRelay(
            ScriptedProvider(
                streams=[ticket_stream("Late delivery"), [content_chunk("Ticket opened.", "stop")]]
            ),
            registry,
        )

        events_a, events_b = await asyncio.gather(
            collect(relay_a, request_ctx), collect(relay_b, request_ctx)
        )

        assert errors(events_a) == errors(events_b) == []
        async with session_factory() as db:
            count = await db.scalar(select(func.count(SupportTicket.id)))
            subjects = set((await db.execute(select(SupportTicket.subject))).scalars())
        assert count == 2
        assert subjects == {"Broken zipper", "Late delivery"}


@pytest.mark.asyncio
class TestRelay:
    async def test_plain_completion_is_returned_unchanged(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        reply = completion("All set!")
        provider = ScriptedProvider(completions=[reply])

        result = await CompletionRelay(provider, registry).relay(TURNS, OPTIONS, request_ctx)

        assert result == reply
        assert len(provider.calls) == 1

    async def test_tool_call_then_followup(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        final = completion("You have no recent orders.")
        provider = ScriptedProvider(
            completions=[
                completion(
                    tool_calls=[tool_call("fetch_recent_orders", '{"limit": 2}')],
                    finish_reason="tool_calls",
                ),
                final,
            ]
        )

        result = await CompletionRelay(provider, registry).relay(TURNS, OPTIONS, request_ctx)

        assert result == final
        followup = provider.calls[1]
        assert followup["tools"] is None
        assert [turn["role"] for turn in followup["turns"]] == ["user", "assistant", "tool"]
        assert followup["turns"][-1]["tool_call_id"] == "call_1"

    async def test_legacy_function_call_uses_function_role(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        first = completion(finish_reason="function_call")
        first["choices"][0]["message"]["function_call"] = {
            "name": "fetch_recent_orders",
            "arguments": "{}",
        }
        provider = ScriptedProvider(completions=[first, completion("Nothing yet.")])

        await CompletionRelay(provider, registry).relay(TURNS, OPTIONS, request_ctx)

        assistant_turn, function_turn = provider.calls[1]["turns"][-2:]
        assert assistant_turn["function_call"]["name"] == "fetch_recent_orders"
        assert function_turn["role"] == "function"
        assert function_turn["name"] == "fetch_recent_orders"

    async def test_unknown_tool_returns_provider_response(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        first = completion(
            tool_calls=[tool_call("does_not_exist", "{}")], finish_reason="tool_calls"
        )
        provider = ScriptedProvider(completions=[first])

        result = await CompletionRelay(provider, registry).relay(TURNS, OPTIONS, request_ctx)

        assert result == first
        assert len(provider.calls) == 1

    async def test_invalid_arguments_raise(
        self, registry: ToolRegistry, request_ctx: RequestContext
    ) -> None:
        provider = ScriptedProvider(
            completions=[
                completion(
                    tool_calls=[tool_call("fetch_recent_orders", "{not json")],
                    finish_reason="tool_calls",
                )
            ]
        )

        with pytest.raises(InvalidToolArguments):
            await CompletionRelay(provider, registry).relay(TURNS, OPTIONS, request_ctx)

    async def test_tool_error_propagates(
        self, session_factory: Any, request_ctx: RequestContext
    ) -> None:
        registry = exploding_registry(session_factory, ToolError("refund service down"))
        provider = ScriptedProvider(
            completions=[
                completion(
                    tool_calls=[tool_call("explode", "{}")], finish_reason="tool_calls"
                )
            ]
        )

        with pytest.raises(ToolError, match="refund service down"):
            await CompletionRelay(provider, registry).relay(TURNS, OPTIONS, request_ctx)

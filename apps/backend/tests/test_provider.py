"""Tests for the OpenAI chat provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from services.ai.model_factory import get_chat_model_name
from services.completions.provider import CompletionOptions, OpenAIChatProvider


OPTIONS = CompletionOptions(model="gpt-test")
TURNS = [{"role": "user", "content": "hi"}]
TOOLS = [{"type": "function", "function": {"name": "x", "parameters": {}}}]


def dumpable(payload: dict) -> MagicMock:
    obj = MagicMock()
    obj.model_dump.return_value = payload
    return obj


class FakeStream:
    def __init__(self, chunks: list[dict]) -> None:
        self._chunks = [dumpable(chunk) for chunk in chunks]
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk

    async def close(self) -> None:
        self.closed = True


def test_requested_model_wins_over_default():
    assert get_chat_model_name("gpt-test") == "gpt-test"
    assert get_chat_model_name(None)


@pytest.mark.asyncio
class TestOpenAIChatProvider:
    async def test_complete_sends_catalog_with_auto_choice(self) -> None:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=dumpable({"choices": []})
        )

        result = await OpenAIChatProvider(client).complete(TURNS, OPTIONS, TOOLS)

        assert result == {"choices": []}
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"] == TURNS
        assert kwargs["tools"] == TOOLS
        assert kwargs["tool_choice"] == "auto"

    async def test_followup_omits_tools(self) -> None:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=dumpable({"choices": []})
        )

        await OpenAIChatProvider(client).complete(TURNS, OPTIONS)

        kwargs = client.chat.completions.create.await_args.kwargs
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs

    async def test_stream_yields_dicts_and_closes_response(self) -> None:
        upstream = FakeStream([{"choices": [{"delta": {"content": "Hi"}}]}])
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=upstream)

        chunks = [
            chunk async for chunk in OpenAIChatProvider(client).stream(TURNS, OPTIONS)
        ]

        assert chunks == [{"choices": [{"delta": {"content": "Hi"}}]}]
        assert client.chat.completions.create.await_args.kwargs["stream"] is True
        assert upstream.closed is True

    async def test_early_close_closes_upstream(self) -> None:
        upstream = FakeStream([{"n": 1}, {"n": 2}])
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=upstream)

        stream = OpenAIChatProvider(client).stream(TURNS, OPTIONS)
        assert await anext(stream) == {"n": 1}
        await stream.aclose()

        assert upstream.closed is True

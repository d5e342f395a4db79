"""Provider seam for chat completions.

The relay talks to a ``ChatProvider``; chunks and completions cross the seam
as plain JSON-shaped dicts so they can be forwarded to the caller unchanged
and so tests can script a provider without the network.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from openai import AsyncOpenAI

from services.ai.model_factory import get_chat_model_name, get_openai_client


@dataclass(frozen=True)
class CompletionOptions:
    model: str


class ChatProvider(Protocol):
    async def complete(
        self,
        turns: Sequence[dict[str, Any]],
        options: CompletionOptions,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]: ...

    def stream(
        self,
        turns: Sequence[dict[str, Any]],
        options: CompletionOptions,
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[dict[str, Any]]: ...


def _request_kwargs(
    turns: Sequence[dict[str, Any]],
    options: CompletionOptions,
    tools: list[dict[str, Any]] | None,
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "model": get_chat_model_name(options.model),
        "messages": list(turns),
    }
    if tools:
        kwargs["tools"] = tools
        kwargs["tool_choice"] = "auto"
    return kwargs


class OpenAIChatProvider:
    """Chat Completions over the ``openai`` SDK."""

    def __init__(self, client: AsyncOpenAI | None = None) -> None:
        self._client = client or get_openai_client()

    async def complete(
        self,
        turns: Sequence[dict[str, Any]],
        options: CompletionOptions,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        completion = await self._client.chat.completions.create(
            **_request_kwargs(turns, options, tools)
        )
        return completion.model_dump(exclude_unset=True, mode="json")

    async def stream(
        self,
        turns: Sequence[dict[str, Any]],
        options: CompletionOptions,
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        response = await self._client.chat.completions.create(
            **_request_kwargs(turns, options, tools), stream=True
        )
        try:
            async for chunk in response:
                yield chunk.model_dump(exclude_unset=True, mode="json")
        finally:
            # Closing the generator early (client disconnect) drops the
            # upstream HTTP response too.
            await response.close()

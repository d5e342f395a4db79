"""Chat-completion relay with inline tool calling."""

from functools import lru_cache

from services.completions.events import DONE_SENTINEL, RelayEvent
from services.completions.provider import (
    ChatProvider,
    CompletionOptions,
    OpenAIChatProvider,
)
from services.completions.relay import CompletionRelay
from services.tools import get_tool_registry


@lru_cache
def get_completion_relay() -> CompletionRelay:
    return CompletionRelay(OpenAIChatProvider(), get_tool_registry())


__all__ = [
    "DONE_SENTINEL",
    "ChatProvider",
    "CompletionOptions",
    "CompletionRelay",
    "OpenAIChatProvider",
    "RelayEvent",
    "get_completion_relay",
]

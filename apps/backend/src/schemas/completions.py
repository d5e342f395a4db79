"""Request schemas for the chat-completion relay endpoint.

The voice runtime posts an OpenAI-style body plus its own identity fields
(``appId``, ``userId``, ``channel``). Turns are passed to the provider as
plain dicts, so unknown message keys are kept rather than rejected.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


Role = Literal["system", "user", "assistant", "tool", "function", "developer"]


class Turn(BaseModel):
    """One role-tagged message in the conversation."""

    model_config = ConfigDict(extra="allow")

    role: Role
    content: str | list[dict[str, Any]] | None = None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[dict[str, Any]] | None = None

    def to_provider(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ChatCompletionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[Turn] = Field(min_length=1)
    model: str | None = None
    stream: bool = False
    channel: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    app_id: str = Field(alias="appId", min_length=1)

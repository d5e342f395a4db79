"""Events the relay emits downstream, and their SSE framing."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal


DONE_SENTINEL = "data: [DONE]\n\n"


@dataclass(frozen=True)
class RelayEvent:
    """One server-sent event: a provider chunk, an inline error, or the sentinel.

    ``followup`` marks chunks streamed after a tool result was sent back.
    """

    kind: Literal["chunk", "error", "done"]
    data: dict[str, Any] | None = None
    followup: bool = False

    @classmethod
    def chunk(cls, data: dict[str, Any], *, followup: bool = False) -> RelayEvent:
        return cls(kind="chunk", data=data, followup=followup)

    @classmethod
    def error(cls, message: str, code: str) -> RelayEvent:
        return cls(kind="error", data={"error": {"message": message, "code": code}})

    @classmethod
    def done(cls) -> RelayEvent:
        return cls(kind="done")

    def to_sse(self) -> str:
        if self.kind == "done":
            return DONE_SENTINEL
        payload = json.dumps(self.data, separators=(",", ":"), ensure_ascii=False)
        return f"data: {payload}\n\n"

    @property
    def text_delta(self) -> str:
        """Assistant text carried by a chunk event ("" for anything else)."""
        if self.kind != "chunk" or not self.data:
            return ""
        parts: list[str] = []
        for choice in self.data.get("choices") or []:
            content = (choice.get("delta") or {}).get("content")
            if isinstance(content, str):
                parts.append(content)
            elif isinstance(content, list):
                parts.extend(
                    item if isinstance(item, str) else str(item.get("text") or "")
                    for item in content
                    if isinstance(item, str | dict)
                )
        return "".join(parts)

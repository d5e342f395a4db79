"""Split an assistant reply into plain text and a trailing JSON object.

The system prompt asks the assistant to answer with a spoken sentence first
and, when it references orders or tickets, to append one JSON object at the
very end. Dashboards subscribe to that object; the voice channel only needs
the sentence.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from schemas.broadcast import BroadcastPayload


if TYPE_CHECKING:
    from services.broadcast import BroadcastHub


@dataclass(frozen=True)
class StructuredExtraction:
    plain_text: str
    json_text: str
    data: dict[str, Any]

    def to_payload(self) -> BroadcastPayload:
        return BroadcastPayload(
            plain_text=self.plain_text, structured=self.data, raw_json=self.json_text
        )


def extract_structured_block(text: str | None) -> StructuredExtraction | None:
    """Return the trailing JSON object of ``text`` and the text before it.

    Candidates are tried from the first ``{`` onwards; the first suffix that
    parses as a JSON object wins. ``None`` when the text does not end in one.
    """
    if not text:
        return None
    trimmed = text.strip()
    if not trimmed.endswith("}"):
        return None

    decoder = json.JSONDecoder()
    start = trimmed.find("{")
    while start != -1:
        candidate = trimmed[start:]
        try:
            data, end = decoder.raw_decode(candidate)
        except json.JSONDecodeError:
            data, end = None, -1
        if end == len(candidate) and isinstance(data, dict):
            return StructuredExtraction(
                plain_text=trimmed[:start].strip(), json_text=candidate, data=data
            )
        start = trimmed.find("{", start + 1)
    return None


def assistant_text_from_completion(completion: Mapping[str, Any]) -> str:
    """Text of the first choice's message (string or list of text parts)."""
    choices = completion.get("choices") or []
    if not choices:
        return ""
    content = (choices[0].get("message") or {}).get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") for part in content if isinstance(part, Mapping)
        )
    return ""


async def publish_structured_data(
    text: str, hub: BroadcastHub
) -> StructuredExtraction | None:
    """Extract the trailing JSON of ``text`` and broadcast it if present."""
    extraction = extract_structured_block(text)
    if extraction is None:
        return None
    await hub.publish(extraction.to_payload())
    return extraction

"""System prompt for the support voice agent.

The response-format contract here is what ``services.structured_data``
relies on: a plain spoken sentence first, then optionally one JSON object
and nothing after it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from schemas.completions import Turn
from services.retrieval import latest_user_query


DATA_TEMPLATE = """{
  "orders": [
    {
      "orderId": "string",
      "status": "string",
      "summary": "string",
      "total": "number | null",
      "currency": "string | null",
      "updatedAt": "ISO-8601 timestamp"
    }
  ],
  "tickets": [
    {
      "ticketId": "string",
      "status": "string",
      "priority": "string",
      "summary": "string",
      "lastUpdated": "ISO-8601 timestamp"
    }
  ]
}"""


class Retriever(Protocol):
    async def retrieve(self, query: str | None) -> str: ...


def build_support_system_prompt(context_block: str) -> str:
    return (
        "You are a professional and precise customer support specialist. "
        "Answer with confidence, stay factual, and use the provided knowledge "
        "base to justify your responses.\n\n"
        f"Knowledge base snippets:\n{context_block}\n\n"
        "Response format:\n"
        "1. Always begin with plain text: one or two crisp sentences under 30 "
        "words that text-to-speech can read verbatim. When orders are involved, "
        "give their high level details in this text.\n"
        "2. Whenever you mention, summarize, or discuss any order or ticket, you "
        "MUST append a newline followed immediately by a valid JSON object "
        "describing every referenced record. Do NOT wrap the JSON in Markdown or "
        'code fences, and add nothing after the closing "}". If no orders or '
        "tickets are relevant, skip the JSON entirely.\n"
        "3. When JSON is included, strictly follow this schema (omit an array "
        f"only if it is truly unused):\n{DATA_TEMPLATE}\n"
        "4. Keep the JSON machine-readable with double quotes, no trailing "
        "commas, and consistent casing.\n"
        "5. Never use Markdown formatting anywhere in the response."
    )


async def build_system_turn(
    turns: Sequence[Turn | Mapping[str, Any]], retriever: Retriever
) -> Turn:
    """System turn for ``turns``, grounded on the latest user question."""
    context_block = await retriever.retrieve(latest_user_query(turns))
    return Turn(role="system", content=build_support_system_prompt(context_block))

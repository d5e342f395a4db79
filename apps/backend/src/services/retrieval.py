"""Knowledge-base retrieval for the system prompt.

``ContextRetriever.retrieve`` embeds the caller's latest question, looks up
the nearest knowledge documents with pgvector, and formats them as a text
block for the prompt. It never raises: an empty query, no matches, or any
failure on the way yields ``fallback_context()`` instead.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Any

from openai import AsyncOpenAI
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import get_settings
from core.error_handler import StructuredLogger
from core.observability import get_tracer
from models.knowledge_documents import KnowledgeDocument
from schemas.completions import Turn
from services.ai.model_factory import get_embedding_model_name, get_openai_client


logger = StructuredLogger(__name__)
_tracer = get_tracer(__name__)

FALLBACK_FACTS = (
    "Support is available around the clock by voice and chat.",
    "Orders usually ship within two business days of purchase.",
    "Refunds go back to the original payment method within 5 to 10 business days.",
    "Urgent or unresolved issues can be escalated to a human support specialist.",
)


def fallback_context(today: date | None = None) -> str:
    """Fixed context used whenever retrieval has nothing to offer."""
    facts = (f"Today is {(today or date.today()).isoformat()}", *FALLBACK_FACTS)
    return "\n".join(
        f'fallback_doc_{idx}: "{text}"' for idx, text in enumerate(facts, start=1)
    )


@dataclass(frozen=True)
class RetrievedDocument:
    title: str | None
    content: str
    source: str | None = None
    score: float | None = None


def format_documents(documents: Sequence[RetrievedDocument]) -> str:
    if not documents:
        return fallback_context()

    blocks: list[str] = []
    for idx, doc in enumerate(documents, start=1):
        title = doc.title or f"Document {idx}"
        score = f" (relevance: {doc.score:.3f})" if doc.score is not None else ""
        block = f"{title}{score}\n{doc.content}"
        if doc.source:
            block += f"\nSource: {doc.source}"
        blocks.append(block)
    return "\n\n".join(blocks)


def _turn_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return " ".join(
            part.get("text", "")
            for part in content
            if isinstance(part, Mapping) and part.get("text")
        )
    return ""


def latest_user_query(turns: Sequence[Turn | Mapping[str, Any]]) -> str:
    """Text of the newest user turn, or "" when there is none."""
    for turn in reversed(turns):
        if isinstance(turn, Turn):
            role, content = turn.role, turn.content
        else:
            role, content = turn.get("role"), turn.get("content")
        if role == "user":
            return _turn_text(content).strip()
    return ""


class ContextRetriever:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: AsyncOpenAI,
        *,
        top_k: int,
        min_score: float | None = None,
        embedding_model: str,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._top_k = top_k
        self._min_score = min_score
        self._embedding_model = embedding_model

    async def retrieve(self, query: str | None) -> str:
        if not query or not query.strip():
            return fallback_context()

        with _tracer.start_as_current_span("context_retrieval") as span:
            try:
                embedding = await self._embed(query)
                documents = await self._search(embedding)
            except Exception as exc:
                logger.warning(
                    "Context retrieval failed; using fallback context",
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                )
                return fallback_context()
            span.set_attribute("retrieval.matches", len(documents))

        return format_documents(documents)

    async def _embed(self, query: str) -> list[float]:
        response = await self._client.embeddings.create(
            model=self._embedding_model, input=query
        )
        return list(response.data[0].embedding)

    async def _search(self, embedding: list[float]) -> list[RetrievedDocument]:
        distance = KnowledgeDocument.embedding.cosine_distance(embedding).label(
            "distance"
        )
        stmt = (
            select(KnowledgeDocument, distance)
            .where(KnowledgeDocument.embedding.is_not(None))
            .order_by(distance)
            .limit(self._top_k)
        )
        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()

        documents: list[RetrievedDocument] = []
        for doc, dist in rows:
            score = 1.0 - float(dist)
            if self._min_score is not None and score < self._min_score:
                continue
            documents.append(
                RetrievedDocument(
                    title=doc.title, content=doc.content, source=doc.source, score=score
                )
            )
        return documents


@lru_cache
def get_context_retriever() -> ContextRetriever:
    from dependencies.db import AsyncSessionLocal

    settings = get_settings()
    return ContextRetriever(
        AsyncSessionLocal,
        get_openai_client(),
        top_k=settings.RAG_TOP_K,
        min_score=settings.RAG_MIN_SCORE,
        embedding_model=get_embedding_model_name(),
    )

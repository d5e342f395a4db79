#!/usr/bin/env python3
"""Load knowledge-base documents (with embeddings) for context retrieval.

Input is a JSON file holding a list of documents:

    [{"title": "...", "content": "...", "source": "...", "category": "..."}]

Documents are embedded in batches with the configured embedding model and
inserted into ``knowledge_documents``.
"""

import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from openai import AsyncOpenAI
from pydantic import BaseModel, TypeAdapter
from sqlalchemy import delete, func, select

from dependencies.db import AsyncSessionLocal, create_tables
from models.knowledge_documents import KnowledgeDocument
from services.ai.model_factory import get_embedding_model_name, get_openai_client
from services.retrieval import get_context_retriever


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

BATCH_SIZE = 20
SMOKE_TEST_QUERY = "How long does shipping take?"


class KnowledgeDocumentIn(BaseModel):
    title: str
    content: str
    source: str | None = None
    category: str | None = None


def read_documents(path: Path) -> list[KnowledgeDocumentIn]:
    raw: Any = json.loads(path.read_text(encoding="utf-8"))
    return TypeAdapter(list[KnowledgeDocumentIn]).validate_python(raw)


def embedding_text(doc: KnowledgeDocumentIn) -> str:
    return f"{doc.title}\n\n{doc.content}"


async def embed_batch(
    client: AsyncOpenAI, docs: list[KnowledgeDocumentIn]
) -> list[list[float]]:
    response = await client.embeddings.create(
        model=get_embedding_model_name(),
        input=[embedding_text(doc) for doc in docs],
    )
    ordered = sorted(response.data, key=lambda item: item.index)
    return [list(item.embedding) for item in ordered]


async def load_knowledge_base(
    path: Path, *, clear: bool = False, init_db: bool = False
) -> int:
    """Embed and store every document in ``path``; return how many were stored."""
    docs = read_documents(path)
    logger.info("Loaded %d documents from %s", len(docs), path)
    if init_db:
        await create_tables()

    client = get_openai_client()
    started = time.monotonic()
    stored = 0

    async with AsyncSessionLocal() as session:
        if clear:
            await session.execute(delete(KnowledgeDocument))
            await session.commit()
            logger.info("Cleared existing knowledge base")

        for offset in range(0, len(docs), BATCH_SIZE):
            batch = docs[offset : offset + BATCH_SIZE]
            embeddings = await embed_batch(client, batch)
            session.add_all(
                KnowledgeDocument(
                    title=doc.title,
                    content=doc.content,
                    source=doc.source,
                    category=doc.category,
                    embedding=embedding,
                )
                for doc, embedding in zip(batch, embeddings, strict=True)
            )
            await session.commit()
            stored += len(batch)
            logger.info("Stored %d/%d documents", stored, len(docs))

        total = await session.scalar(select(func.count(KnowledgeDocument.id)))

    logger.info(
        "Knowledge base holds %s documents (loaded %d in %.2fs)",
        total,
        stored,
        time.monotonic() - started,
    )
    return stored


async def smoke_test() -> None:
    context = await get_context_retriever().retrieve(SMOKE_TEST_QUERY)
    logger.info("Sample retrieval for %r:\n%s", SMOKE_TEST_QUERY, context)


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Embed and load knowledge-base documents into Postgres",
    )
    parser.add_argument("path", type=Path, help="JSON file with a list of documents")
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete existing documents before loading",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create tables (and the vector extension) first",
    )
    parser.add_argument(
        "--skip-smoke-test",
        action="store_true",
        help="Do not run a sample retrieval after loading",
    )
    args = parser.parse_args()

    async def run() -> None:
        await load_knowledge_base(args.path, clear=args.clear, init_db=args.init_db)
        if not args.skip_smoke_test:
            await smoke_test()

    try:
        asyncio.run(run())
    except Exception:
        logger.exception("Knowledge base load failed")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()

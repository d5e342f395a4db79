"""Single source of truth for the upstream OpenAI-compatible client.

Usage:
    from services.ai.model_factory import get_openai_client, get_chat_model_name

    client = get_openai_client()
    await client.chat.completions.create(model=get_chat_model_name(), ...)
"""

from __future__ import annotations

import logging
from functools import lru_cache

from openai import AsyncOpenAI

from core.config import get_settings


logger = logging.getLogger(__name__)


@lru_cache
def get_openai_client() -> AsyncOpenAI:
    """Create the shared AsyncOpenAI client.

    ``OPENAI_BASE_URL`` points the relay at any OpenAI-compatible gateway.
    """
    settings = get_settings()
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not configured; provider calls will fail")
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY or "not-configured",
        base_url=settings.OPENAI_BASE_URL,
    )


def get_chat_model_name(requested: str | None = None) -> str:
    """The caller's model if given, otherwise the configured default."""
    return requested or get_settings().OPENAI_MODEL


def get_embedding_model_name() -> str:
    return get_settings().EMBEDDING_MODEL

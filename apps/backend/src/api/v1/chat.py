"""Chat-completion relay endpoint for the voice agent runtime."""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator, Sequence
from copy import deepcopy
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from core.background import BackgroundTaskManager, get_background_tasks
from core.config import get_settings
from core.error_handler import StructuredLogger
from schemas.completions import ChatCompletionRequest, Turn
from services.ai.model_factory import get_chat_model_name
from services.broadcast import BroadcastHub, get_broadcast_hub
from services.completions import CompletionOptions, CompletionRelay, get_completion_relay
from services.prompts import build_system_turn
from services.retrieval import ContextRetriever, get_context_retriever
from services.structured_data import (
    assistant_text_from_completion,
    extract_structured_block,
    publish_structured_data,
)
from services.tools import RequestContext


logger = StructuredLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

RelayDep = Annotated[CompletionRelay, Depends(get_completion_relay)]
RetrieverDep = Annotated[ContextRetriever, Depends(get_context_retriever)]
HubDep = Annotated[BroadcastHub, Depends(get_broadcast_hub)]
TasksDep = Annotated[BackgroundTaskManager, Depends(get_background_tasks)]


def _with_message_content(completion: dict[str, Any], text: str) -> dict[str, Any]:
    """Copy of ``completion`` whose first message content is ``text``."""
    updated = deepcopy(completion)
    updated["choices"][0]["message"]["content"] = text
    return updated


async def _relay_events(
    relay: CompletionRelay,
    turns: Sequence[Turn],
    options: CompletionOptions,
    request_ctx: RequestContext,
    hub: BroadcastHub,
    tasks: BackgroundTaskManager,
) -> AsyncGenerator[str, None]:
    started = time.monotonic()
    primary: list[str] = []
    followup: list[str] = []
    async for event in relay.relay_stream(turns, options, request_ctx):
        (followup if event.followup else primary).append(event.text_delta)
        yield event.to_sse()

    # After a tool call only the follow-up reply is the answer, as in the
    # non-streaming path.
    aggregated = "".join(followup or primary)
    logger.info(
        "Streamed completion finished",
        duration_ms=round((time.monotonic() - started) * 1000, 2),
        text_length=len(aggregated),
    )
    tasks.spawn(
        publish_structured_data(aggregated, hub), name="structured-data-broadcast"
    )


@router.post("/completion", response_model=None)
async def create_chat_completion(
    payload: ChatCompletionRequest,
    relay: RelayDep,
    retriever: RetrieverDep,
    hub: HubDep,
    tasks: TasksDep,
) -> StreamingResponse | JSONResponse:
    """Relay one turn to the provider, running at most one support tool.

    With ``stream`` set the provider's chunks are forwarded as server-sent
    events ending in ``data: [DONE]``; otherwise the final completion object
    is returned. Any trailing JSON block in the assistant text is broadcast
    to structured-data subscribers.
    """
    settings = get_settings()
    request_ctx = RequestContext(
        app_id=payload.app_id,
        user_id=payload.user_id or settings.DEFAULT_USER_ID,
        channel=payload.channel or settings.DEFAULT_CHANNEL,
    )
    options = CompletionOptions(model=get_chat_model_name(payload.model))
    logger.info(
        "Chat completion requested",
        model=options.model,
        stream=payload.stream,
        channel=request_ctx.channel,
        message_count=len(payload.messages),
    )

    system_turn = await build_system_turn(payload.messages, retriever)
    turns = [system_turn, *payload.messages]

    if payload.stream:
        return StreamingResponse(
            _relay_events(relay, turns, options, request_ctx, hub, tasks),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    completion = await relay.relay(turns, options, request_ctx)
    extraction = extract_structured_block(assistant_text_from_completion(completion))
    if extraction is not None:
        await hub.publish(extraction.to_payload())
        completion = _with_message_content(completion, extraction.plain_text)
    return JSONResponse(completion)

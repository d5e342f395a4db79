"""WebSocket channel that streams structured data to live dashboards."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket

from core.config import get_settings
from core.error_handler import StructuredLogger
from services.broadcast import BroadcastHub, get_broadcast_hub


logger = StructuredLogger(__name__)

ws_router = APIRouter()


@ws_router.websocket(get_settings().STRUCTURED_DATA_WS_PATH)
async def structured_data_socket(
    websocket: WebSocket,
    hub: Annotated[BroadcastHub, Depends(get_broadcast_hub)],
) -> None:
    """Register the connection with the hub for as long as it stays open.

    The channel is push-only; client frames of either kind are read and
    ignored so that a close frame is noticed promptly.
    """
    await websocket.accept()
    hub.subscribe(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(
                    "Structured-data subscriber disconnected",
                    close_code=message.get("code"),
                )
                break
    finally:
        hub.unsubscribe(websocket)

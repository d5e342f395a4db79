"""Frames pushed to structured-data subscribers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from models.base import utcnow


class BroadcastPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    plain_text: str = Field(alias="plainText")
    structured: dict[str, Any]
    raw_json: str = Field(alias="rawJson")
    timestamp: datetime = Field(default_factory=utcnow)


class StructuredDataMessage(BaseModel):
    """``{"type": "structured_data", "timestamp": ..., "payload": {...}}``"""

    type: Literal["structured_data"] = "structured_data"
    timestamp: datetime
    payload: BroadcastPayload

    @classmethod
    def wrap(cls, payload: BroadcastPayload) -> StructuredDataMessage:
        return cls(timestamp=payload.timestamp, payload=payload)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

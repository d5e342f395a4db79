"""Best-effort fan-out of structured data to live dashboard connections."""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Protocol

from core.error_handler import StructuredLogger
from schemas.broadcast import BroadcastPayload, StructuredDataMessage


logger = StructuredLogger(__name__)


class Subscriber(Protocol):
    async def send_text(self, data: str) -> None: ...


class BroadcastHub:
    """Owns the set of live subscribers.

    ``publish`` sends to a snapshot of the set taken when it is called, so
    subscribers may come and go while a publish is in flight. A subscriber
    whose send fails is dropped; nobody else is affected and nothing is
    raised to the publisher. Nothing is buffered for late joiners.
    """

    def __init__(self) -> None:
        self._subscribers: set[Subscriber] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        self._subscribers.add(subscriber)
        logger.info("Subscriber connected", subscriber_count=self.subscriber_count)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info(
                "Subscriber disconnected", subscriber_count=self.subscriber_count
            )

    async def publish(self, payload: BroadcastPayload) -> int:
        """Send ``payload`` to every current subscriber; return deliveries."""
        targets = list(self._subscribers)
        if not targets:
            return 0

        frame = StructuredDataMessage.wrap(payload).to_json()
        results = await asyncio.gather(
            *(subscriber.send_text(frame) for subscriber in targets),
            return_exceptions=True,
        )
        delivered = 0
        for subscriber, result in zip(targets, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(
                    "Dropping subscriber after failed send",
                    error_type=result.__class__.__name__,
                )
                self._subscribers.discard(subscriber)
            else:
                delivered += 1
        return delivered


@lru_cache
def get_broadcast_hub() -> BroadcastHub:
    return BroadcastHub()

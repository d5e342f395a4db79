"""Tests for the structured-data BroadcastHub."""

from __future__ import annotations

import asyncio
import json

import pytest

from schemas.broadcast import BroadcastPayload
from services.broadcast import BroadcastHub


def make_payload() -> BroadcastPayload:
    return BroadcastPayload(
        plain_text="Ticket opened.",
        structured={"tickets": [{"ticketId": "T-1"}]},
        raw_json='{"tickets": [{"ticketId": "T-1"}]}',
    )


class RecordingSubscriber:
    def __init__(self) -> None:
        self.frames: list[str] = []

    async def send_text(self, data: str) -> None:
        self.frames.append(data)


class BrokenSubscriber:
    def __init__(self) -> None:
        self.attempts = 0

    async def send_text(self, data: str) -> None:
        self.attempts += 1
        raise ConnectionResetError("socket closed")


@pytest.mark.asyncio
class TestBroadcastHub:
    async def test_publish_without_subscribers_is_a_no_op(self) -> None:
        assert await BroadcastHub().publish(make_payload()) == 0

    async def test_every_subscriber_gets_the_frame(self) -> None:
        hub = BroadcastHub()
        first = hub.subscribe(RecordingSubscriber())
        second = hub.subscribe(RecordingSubscriber())

        delivered = await hub.publish(make_payload())

        assert delivered == 2
        assert first.frames == second.frames
        frame = json.loads(first.frames[0])
        assert frame["type"] == "structured_data"
        assert frame["payload"]["structured"] == {"tickets": [{"ticketId": "T-1"}]}
        assert frame["timestamp"] == frame["payload"]["timestamp"]

    async def test_failed_subscriber_is_dropped_others_unaffected(self) -> None:
        hub = BroadcastHub()
        healthy = hub.subscribe(RecordingSubscriber())
        broken = hub.subscribe(BrokenSubscriber())

        delivered = await hub.publish(make_payload())

        assert delivered == 1
        assert len(healthy.frames) == 1
        assert hub.subscriber_count == 1

        await hub.publish(make_payload())
        assert broken.attempts == 1
        assert len(healthy.frames) == 2

    async def test_unsubscribe_stops_delivery(self) -> None:
        hub = BroadcastHub()
        subscriber = hub.subscribe(RecordingSubscriber())
        hub.unsubscribe(subscriber)
        hub.unsubscribe(subscriber)

        assert await hub.publish(make_payload()) == 0
        assert subscriber.frames == []
        assert hub.subscriber_count == 0

    async def test_subscribers_joining_mid_publish_are_not_included(self) -> None:
        hub = BroadcastHub()
        late = RecordingSubscriber()

        class JoiningSubscriber(RecordingSubscriber):
            async def send_text(self, data: str) -> None:
                hub.subscribe(late)
                await asyncio.sleep(0)
                await super().send_text(data)

        hub.subscribe(JoiningSubscriber())

        delivered = await hub.publish(make_payload())

        assert delivered == 1
        assert late.frames == []
        assert hub.subscriber_count == 2

# crewlink/tests/unit/test_realtime_bus.py
import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from crewlink.domain.realtime import PresenceChanged, TypingStart
from crewlink.infrastructure.realtime_bus import channel_for

pytestmark = pytest.mark.asyncio


class Collector:
    def __init__(self):
        self.events = []
        self.received = asyncio.Event()

    async def __call__(self, event):
        self.events.append(event)
        self.received.set()


def test_channel_name():
    assert channel_for("bob") == "user:bob"


async def test_publish_without_subscriber(realtime_bus):
    delivered = await realtime_bus.publish(
        TypingStart(sender_id="alice", receiver_id="bob"), "bob"
    )
    assert delivered is False


async def test_subscriber_receives_events(realtime_bus):
    collector = Collector()
    async with await realtime_bus.subscribe("bob", collector):
        delivered = await realtime_bus.publish(
            TypingStart(sender_id="alice", receiver_id="bob"), "bob"
        )
        assert delivered is True
        await asyncio.wait_for(collector.received.wait(), timeout=2)

    [event] = collector.events
    assert isinstance(event, TypingStart)
    assert event.sender_id == "alice"


async def test_event_filter(realtime_bus):
    collector = Collector()
    subscription = await realtime_bus.subscribe(
        "bob", collector, events=["presence-changed"]
    )
    await realtime_bus.publish(TypingStart(sender_id="alice", receiver_id="bob"), "bob")
    await realtime_bus.publish(PresenceChanged(user_id="alice", is_online=True), "bob")
    await asyncio.wait_for(collector.received.wait(), timeout=2)
    await realtime_bus.unsubscribe(subscription)

    assert [e.event for e in collector.events] == ["presence-changed"]


async def test_close_is_idempotent(realtime_bus):
    subscription = await realtime_bus.subscribe("bob", Collector())
    await subscription.close()
    await subscription.close()
    assert subscription.closed is True

    delivered = await realtime_bus.publish(
        TypingStart(sender_id="alice", receiver_id="bob"), "bob"
    )
    assert delivered is False


async def test_malformed_payload_is_skipped(realtime_bus, redis_client):
    collector = Collector()
    async with await realtime_bus.subscribe("bob", collector):
        await redis_client.publish(channel_for("bob"), "{not json")
        await realtime_bus.publish(PresenceChanged(user_id="alice", is_online=False), "bob")
        await asyncio.wait_for(collector.received.wait(), timeout=2)

    assert [e.event for e in collector.events] == ["presence-changed"]


async def test_redis_failure_is_reported_not_raised(realtime_bus, redis_client):
    redis_client.publish = AsyncMock(side_effect=RedisConnectionError("down"))
    delivered = await realtime_bus.publish(
        TypingStart(sender_id="alice", receiver_id="bob"), "bob"
    )
    assert delivered is False

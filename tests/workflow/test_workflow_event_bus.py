import asyncio

import pytest

from galshelf.workflow.event_bus import EventBus
from galshelf.workflow.events import ItemStatusEvent, NoticeEvent


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sync_and_async_subscribers_receive_events():
    bus = EventBus()
    received = []

    async def on_notice(event):
        received.append(("async", event.message))

    bus.subscribe(NoticeEvent, on_notice)
    bus.subscribe(NoticeEvent, lambda e: received.append(("sync", e.message)))
    bus.start()

    await bus.publish(NoticeEvent(level="warning", message="cover failed"))
    await bus.stop()

    assert received == [("async", "cover failed"), ("sync", "cover failed")]
    assert bus.get_stats()["events_processed"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others():
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(ItemStatusEvent, broken)
    bus.subscribe(ItemStatusEvent, received.append)
    bus.start()

    event = ItemStatusEvent(index=0, title="Ever17", status="matched", detail="v17")
    await bus.publish(event)
    await bus.stop()

    assert received == [event]
    assert bus.get_stats()["errors"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_events_without_subscribers_still_drain():
    bus = EventBus()
    bus.start()

    await bus.publish(NoticeEvent(level="info", message="nobody listens"))
    await asyncio.wait_for(bus.stop(), timeout=1)

    stats = bus.get_stats()
    assert stats["queue_size"] == 0
    assert stats["events_processed"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unsubscribe_and_double_stop():
    bus = EventBus()
    received = []
    bus.subscribe(NoticeEvent, received.append)
    bus.unsubscribe(NoticeEvent, received.append)
    bus.start()

    await bus.publish(NoticeEvent(level="info", message="ignored"))
    await bus.stop()
    await bus.stop()

    assert received == []
    assert bus.get_stats()["subscriber_count"] == 0

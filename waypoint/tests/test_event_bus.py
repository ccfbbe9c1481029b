"""Tests for event bus."""

import asyncio
import gc
import pytest

from waypoint.bus import EventBus, Event


@pytest.mark.asyncio
async def test_event_emit_and_subscribe():
    """Test basic pub/sub functionality."""
    bus = EventBus()
    await bus.start()

    received_events = []

    async def handler(event: Event):
        received_events.append(event)

    bus.subscribe("analysis.*", handler)

    await bus.emit(Event(
        type="analysis.completed",
        data={"path": "/work/app"}
    ))

    await bus.stop()

    assert len(received_events) == 1
    assert received_events[0].type == "analysis.completed"
    assert received_events[0].data["path"] == "/work/app"


@pytest.mark.asyncio
async def test_wildcard_subscription():
    """Test wildcard pattern matching."""
    bus = EventBus()
    await bus.start()

    all_events = []
    analysis_events = []

    async def all_handler(event: Event):
        all_events.append(event)

    async def analysis_handler(event: Event):
        analysis_events.append(event)

    bus.subscribe("*", all_handler)
    bus.subscribe("analysis.*", analysis_handler)

    await bus.emit(Event(type="analysis.completed", data={}))
    await bus.emit(Event(type="store.changed", data={}))
    await bus.emit(Event(type="analysis.failed", data={}))

    await bus.stop()

    assert len(all_events) == 3
    assert len(analysis_events) == 2


@pytest.mark.asyncio
async def test_event_queue_full():
    """Test behavior when event queue is full."""
    bus = EventBus(max_queue=2)
    await bus.start()

    await bus.emit(Event(type="test.1", data={}))
    await bus.emit(Event(type="test.2", data={}))

    # This should be dropped
    await bus.emit(Event(type="test.3", data={}))

    stats = bus.get_stats()
    assert stats['dropped'] == 1

    await bus.stop()
    assert bus.get_stats()['processed'] == 2


@pytest.mark.asyncio
async def test_bound_method_handler_stays_subscribed():
    """Bound methods are held weakly but survive while their owner lives."""
    class Listener:
        def __init__(self):
            self.seen = []

        async def on_event(self, event: Event):
            self.seen.append(event.type)

    bus = EventBus()
    listener = Listener()
    bus.subscribe("store.*", listener.on_event)
    gc.collect()

    await bus.dispatch(Event(type="store.changed", data={}))
    assert listener.seen == ["store.changed"]

    del listener
    gc.collect()
    await bus.dispatch(Event(type="store.changed", data={}))
    assert bus._subscribers["store.*"] == []


@pytest.mark.asyncio
async def test_sync_handler_and_errors():
    """Sync handlers run off-loop; failures are counted, not raised."""
    bus = EventBus()
    seen = []

    def sync_handler(event: Event):
        seen.append(event.data["n"])

    async def failing_handler(event: Event):
        raise RuntimeError("boom")

    bus.subscribe("test.run", sync_handler)
    bus.subscribe("test.run", failing_handler)

    await bus.dispatch(Event(type="test.run", data={"n": 1}))

    assert seen == [1]
    assert bus.get_stats()['handler_errors'] == 1

    bus.reset_stats()
    assert bus.get_stats() == {}


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    seen = []

    async def handler(event: Event):
        seen.append(event)

    bus.subscribe("test.*", handler)
    bus.unsubscribe("test.*", handler)
    await bus.dispatch(Event(type="test.x", data={}))
    assert seen == []


def test_pattern_matching():
    """Test pattern matching logic."""
    bus = EventBus()

    # Exact match
    assert bus._matches_pattern("analysis.completed", "analysis.completed")
    assert not bus._matches_pattern("analysis.completed", "analysis.failed")

    # Wildcard
    assert bus._matches_pattern("analysis.completed", "analysis.*")
    assert bus._matches_pattern("store.changed", "store.*")
    assert not bus._matches_pattern("analysis.completed", "store.*")
    assert not bus._matches_pattern("analysisx.completed", "analysis.*")

    # Global wildcard
    assert bus._matches_pattern("anything", "*")
    assert bus._matches_pattern("analysis.completed", "*")

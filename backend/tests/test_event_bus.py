"""
backend/tests/test_event_bus.py

Purpose:
    Unit tests for the in-memory engine event bus.
"""

from __future__ import annotations

import asyncio

import pytest

from los.services.event_bus import InMemoryEventBus
from los.services.event_models import PicksAssignedEvent, RoundStateChangedEvent


def _picks_event(**kwargs) -> PicksAssignedEvent:
    return PicksAssignedEvent(source="test", round_number=1, count=1, participant_ids=["p1"], **kwargs)


@pytest.mark.asyncio
async def test_event_bus_fanout_and_correlation() -> None:
    bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
    seen: list[tuple[str, str]] = []

    async def handler_a(event):
        seen.append(("a", event.correlation_id))

    async def handler_b(event):
        seen.append(("b", event.correlation_id))

    bus.subscribe("picks.assigned", handler_a, handler_name="a")
    bus.subscribe("picks.assigned", handler_b, handler_name="b")
    await bus.start()

    await bus.publish(_picks_event(correlation_id="corr-1"))
    await bus.drain()
    await bus.stop()

    assert sorted(seen) == [("a", "corr-1"), ("b", "corr-1")]
    stats = bus.stats()
    assert stats["published_total"] == 1
    assert stats["handled_total"] == 2
    assert stats["per_handler"]["picks.assigned:a"]["handled_total"] == 1


@pytest.mark.asyncio
async def test_event_bus_handler_failure_isolated() -> None:
    bus = InMemoryEventBus(ingress_maxsize=10, handler_maxsize=10)
    success_calls = 0

    async def failing(_event):
        raise RuntimeError("boom")

    async def success(_event):
        nonlocal success_calls
        success_calls += 1

    bus.subscribe("round.state_changed", failing, handler_name="failing")
    bus.subscribe("round.state_changed", success, handler_name="success")
    await bus.start()

    await bus.publish(RoundStateChangedEvent(source="test", round_number=2, state="passed"))
    await bus.drain()
    await bus.stop()

    assert success_calls == 1
    stats = bus.stats()
    assert stats["failed_total"] == 1
    assert stats["recent_errors"][0]["handler_name"] == "failing"
    assert stats["recent_errors"][0]["error"] == "boom"


@pytest.mark.asyncio
async def test_event_bus_routes_by_event_type() -> None:
    bus = InMemoryEventBus()
    received = []

    async def handler(event):
        received.append(event.event_type)

    bus.subscribe("round.state_changed", handler, handler_name="rounds")
    await bus.start()
    await bus.publish(_picks_event())
    await bus.publish(RoundStateChangedEvent(source="test", round_number=1, state="passed"))
    await bus.drain()
    await bus.stop()

    assert received == ["round.state_changed"]


@pytest.mark.asyncio
async def test_event_bus_drops_when_ingress_full() -> None:
    bus = InMemoryEventBus(ingress_maxsize=1)

    await bus.publish(_picks_event())
    await bus.publish(_picks_event())

    stats = bus.stats()
    assert stats["published_total"] == 1
    assert stats["dropped_total"] == 1


@pytest.mark.asyncio
async def test_event_bus_dropped_event_can_be_resent() -> None:
    bus = InMemoryEventBus(ingress_maxsize=1)
    calls: list[str] = []

    async def handler(event):
        calls.append(event.event_id)

    bus.subscribe("picks.assigned", handler, handler_name="h")
    first, second = _picks_event(), _picks_event()
    await bus.publish(first)
    await bus.publish(second)

    await bus.start()
    await bus.drain()
    await bus.publish(second)
    await bus.drain()
    await bus.stop()

    stats = bus.stats()
    assert calls == [first.event_id, second.event_id]
    assert stats["published_total"] == 2
    assert stats["duplicate_total"] == 0
    assert stats["dropped_total"] == 1


@pytest.mark.asyncio
async def test_event_bus_start_stop_idempotent() -> None:
    bus = InMemoryEventBus()
    await bus.start()
    await bus.start()
    assert bus.running
    await bus.stop()
    await bus.stop()
    assert not bus.running


@pytest.mark.asyncio
async def test_event_bus_delivers_republished_event_once() -> None:
    bus = InMemoryEventBus()
    calls = 0

    async def handler(_event):
        nonlocal calls
        calls += 1

    bus.subscribe("picks.assigned", handler, handler_name="h")
    await bus.start()
    event = _picks_event()
    await bus.publish(event)
    await bus.publish(event)
    await bus.drain()
    await bus.stop()

    assert calls == 1
    assert bus.stats()["duplicate_total"] == 1


@pytest.mark.asyncio
async def test_event_bus_unsubscribe() -> None:
    bus = InMemoryEventBus()
    calls = 0

    async def handler(_event):
        nonlocal calls
        calls += 1

    unsubscribe = bus.subscribe("picks.assigned", handler, handler_name="h")
    await bus.start()
    unsubscribe()
    await bus.publish(_picks_event())
    await bus.drain()
    await bus.stop()

    assert calls == 0
    assert bus.stats()["per_handler"] == {}


@pytest.mark.asyncio
async def test_event_bus_handler_timeout_counts_as_failure() -> None:
    bus = InMemoryEventBus(handler_timeout=0.1)

    async def slow(_event):
        await asyncio.sleep(5)

    bus.subscribe("picks.assigned", slow, handler_name="slow")
    await bus.start()
    await bus.publish(_picks_event())
    await bus.drain(timeout=2.0)
    await bus.stop()

    stats = bus.stats()
    assert stats["failed_total"] == 1
    assert stats["recent_errors"][0]["error"] == "timed out"

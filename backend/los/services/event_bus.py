"""
backend/los/services/event_bus.py

Purpose:
    In-process publish/subscribe for engine notifications (round transitions,
    auto-pick batches, processed results). Publishing never blocks the engine:
    events go onto a bounded ingress queue and are fanned out to one bounded
    queue per subscriber. A slow or failing subscriber only affects itself.

Dependencies:
    - asyncio
    - los.services.event_models
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict, defaultdict, deque
from collections.abc import Awaitable, Callable
from typing import Any

from los.services.event_models import BaseEvent, normalize_event_time
from los.utils import utcnow

logger = logging.getLogger("los.event_bus")

AsyncEventHandler = Callable[[BaseEvent], Awaitable[None]]


class _Subscriber:
    """One handler for one event type, with its own queue and worker tasks."""

    def __init__(
        self,
        bus: "InMemoryEventBus",
        event_type: str,
        name: str,
        handler: AsyncEventHandler,
        concurrency: int,
        maxsize: int,
    ):
        self.bus = bus
        self.event_type = event_type
        self.name = name
        self.handler = handler
        self.concurrency = concurrency
        self.queue: asyncio.Queue[BaseEvent] = asyncio.Queue(maxsize=maxsize)
        self.tasks: list[asyncio.Task] = []
        self.handled = 0
        self.failed = 0
        self.dropped = 0

    @property
    def key(self) -> str:
        return f"{self.event_type}:{self.name}"

    def offer(self, event: BaseEvent) -> bool:
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    def spawn(self) -> None:
        while len(self.tasks) < self.concurrency:
            idx = len(self.tasks)
            self.tasks.append(asyncio.create_task(self._work(), name=f"event_bus:{self.key}:{idx}"))

    def cancel(self) -> list[asyncio.Task]:
        tasks, self.tasks = self.tasks, []
        for task in tasks:
            task.cancel()
        return tasks

    async def _work(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await asyncio.wait_for(self.handler(event), timeout=self.bus.handler_timeout)
                self.handled += 1
            except Exception as exc:
                self.failed += 1
                self.bus._record_failure(self, event, exc)
            finally:
                self.queue.task_done()

    def stats(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "name": self.name,
            "concurrency": self.concurrency,
            "queue_depth": self.queue.qsize(),
            "handled_total": self.handled,
            "failed_total": self.failed,
            "dropped_total": self.dropped,
        }


class InMemoryEventBus:
    def __init__(
        self,
        *,
        ingress_maxsize: int = 1000,
        handler_maxsize: int = 500,
        default_concurrency: int = 1,
        error_buffer_size: int = 100,
        handler_timeout: float = 30.0,
        dedupe_window: int = 1000,
    ) -> None:
        self.ingress_maxsize = max(1, int(ingress_maxsize))
        self.handler_maxsize = max(1, int(handler_maxsize))
        self.default_concurrency = max(1, int(default_concurrency))
        self.handler_timeout = max(0.1, float(handler_timeout))

        self._ingress: asyncio.Queue[BaseEvent] = asyncio.Queue(maxsize=self.ingress_maxsize)
        self._subscribers: dict[str, list[_Subscriber]] = defaultdict(list)
        self._dispatcher: asyncio.Task | None = None
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._dedupe_window = max(1, int(dedupe_window))
        self._errors: deque[dict[str, Any]] = deque(maxlen=max(1, int(error_buffer_size)))
        self._counters = {"published": 0, "duplicates": 0, "dropped": 0}

    @property
    def running(self) -> bool:
        return self._dispatcher is not None

    async def start(self) -> None:
        if self._dispatcher is not None:
            return
        for subscribers in self._subscribers.values():
            for sub in subscribers:
                sub.spawn()
        self._dispatcher = asyncio.create_task(self._dispatch(), name="event_bus:dispatcher")
        logger.info("Event bus started")

    async def stop(self) -> None:
        if self._dispatcher is None:
            return
        tasks = [self._dispatcher]
        self._dispatcher = None
        for subscribers in self._subscribers.values():
            for sub in subscribers:
                tasks.extend(sub.cancel())
        tasks[0].cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Event bus stopped")

    async def drain(self, timeout: float = 1.0) -> None:
        """Wait until queued events have been handled, up to `timeout` seconds."""
        async def _wait() -> None:
            await self._ingress.join()
            for subscribers in self._subscribers.values():
                for sub in subscribers:
                    await sub.queue.join()

        try:
            await asyncio.wait_for(_wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Event bus drain timed out after %.1fs", timeout)

    def subscribe(
        self,
        event_type: str,
        handler: AsyncEventHandler,
        *,
        handler_name: str,
        concurrency: int | None = None,
    ) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        sub = _Subscriber(
            self,
            event_type,
            handler_name,
            handler,
            max(1, int(concurrency or self.default_concurrency)),
            self.handler_maxsize,
        )
        self._subscribers[event_type].append(sub)
        if self.running:
            sub.spawn()

        def _unsubscribe() -> None:
            if sub in self._subscribers[event_type]:
                self._subscribers[event_type].remove(sub)
                sub.cancel()

        return _unsubscribe

    async def publish(self, event: BaseEvent) -> None:
        if event.event_id in self._seen:
            self._counters["duplicates"] += 1
            logger.debug("Duplicate event ignored: %s %s", event.event_type, event.event_id)
            return

        try:
            self._ingress.put_nowait(normalize_event_time(event))
        except asyncio.QueueFull:
            self._counters["dropped"] += 1
            logger.warning("Event bus ingress full; dropping %s", event.event_type)
            return
        # Only enqueued events count as seen, so a dropped event can be resent
        self._seen[event.event_id] = None
        if len(self._seen) > self._dedupe_window:
            self._seen.popitem(last=False)
        self._counters["published"] += 1

    def stats(self) -> dict[str, Any]:
        subscribers = [sub for subs in self._subscribers.values() for sub in subs]
        return {
            "running": self.running,
            "published_total": self._counters["published"],
            "duplicate_total": self._counters["duplicates"],
            "handled_total": sum(s.handled for s in subscribers),
            "failed_total": sum(s.failed for s in subscribers),
            "dropped_total": self._counters["dropped"] + sum(s.dropped for s in subscribers),
            "ingress_queue_depth": self._ingress.qsize(),
            "ingress_queue_limit": self.ingress_maxsize,
            "per_handler": {s.key: s.stats() for s in subscribers},
            "recent_errors": list(self._errors),
        }

    async def _dispatch(self) -> None:
        while True:
            event = await self._ingress.get()
            try:
                for sub in list(self._subscribers.get(event.event_type, ())):
                    if not sub.offer(event):
                        logger.warning("Handler queue full; dropping %s for %s", event.event_type, sub.name)
            finally:
                self._ingress.task_done()

    def _record_failure(self, sub: _Subscriber, event: BaseEvent, exc: Exception) -> None:
        error = "timed out" if isinstance(exc, asyncio.TimeoutError) else str(exc)
        self._errors.append({
            "event_id": event.event_id,
            "event_type": event.event_type,
            "handler_name": sub.name,
            "correlation_id": event.correlation_id,
            "ts": utcnow().isoformat(),
            "error": error,
        })
        logger.error(
            "Event handler failed event_id=%s event_type=%s handler=%s error=%s",
            event.event_id, event.event_type, sub.name, error,
            exc_info=exc,
        )

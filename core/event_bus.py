"""EventBus — asyncio.Queue fan-out with a bounded per-topic history."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator
from uuid import uuid4

import structlog

logger = structlog.get_logger("core.event_bus")


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable event flowing through the EventBus."""

    topic: str
    payload: dict[str, Any]
    trace_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventBus:
    """Fan-out pub/sub event bus backed by asyncio.Queue.

    Every ``subscribe(topic)`` call gets its own queue, and ``publish()``
    copies the event into each queue registered for the topic.  The last
    ``history_size`` events of each topic are also retained so payouts
    can be audited after the fact without a live consumer.

    Usage::

        bus = EventBus()
        await bus.publish("rewarder", {"action": "bonus_paid", "amount": 10})
        bus.recent("rewarder")[-1].payload["amount"]  # 10
    """

    def __init__(self, maxsize: int = 4096, history_size: int = 256) -> None:
        self._maxsize = maxsize
        self._history_size = history_size
        # topic -> list of subscriber queues
        self._subscribers: dict[str, list[asyncio.Queue[Event]]] = {}
        self._history: dict[str, deque[Event]] = {}
        self._lock = asyncio.Lock()
        self._stats_published: int = 0
        self._stats_dropped: int = 0

    # ── Publish ──────────────────────────────────────────────────

    async def publish(
        self,
        topic: str,
        payload: dict[str, Any],
        trace_id: str | None = None,
    ) -> Event:
        """Publish an event to all subscribers of *topic*.

        Parameters
        ----------
        topic:
            Event topic string (e.g. ``"rewarder"``).
        payload:
            Arbitrary dict payload.
        trace_id:
            Optional correlation id; auto-generated UUID4 if omitted.
        """
        if trace_id is None:
            trace_id = str(uuid4())

        event = Event(topic=topic, payload=payload, trace_id=trace_id)

        history = self._history.setdefault(topic, deque(maxlen=self._history_size))
        history.append(event)

        for q in self._subscribers.get(topic, []):
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                self._stats_dropped += 1
                logger.warning(
                    "event_bus.queue_full",
                    topic=topic,
                    trace_id=trace_id,
                    queue_size=q.qsize(),
                )

        self._stats_published += 1
        return event

    # ── Subscribe ────────────────────────────────────────────────

    async def subscribe(self, topic: str) -> AsyncIterator[Event]:
        """Subscribe to *topic* and yield events as they arrive.

        The iterator runs indefinitely; cancel the consuming task to
        unsubscribe.
        """
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._maxsize)

        async with self._lock:
            self._subscribers.setdefault(topic, []).append(queue)

        try:
            while True:
                yield await queue.get()
        finally:
            async with self._lock:
                subs = self._subscribers.get(topic, [])
                if queue in subs:
                    subs.remove(queue)
                if not subs:
                    self._subscribers.pop(topic, None)

    # ── Introspection ────────────────────────────────────────────

    def recent(self, topic: str, limit: int | None = None) -> list[Event]:
        """Return retained events for *topic*, oldest first."""
        events = list(self._history.get(topic, ()))
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    @property
    def topics(self) -> list[str]:
        """Return list of topics with active subscribers."""
        return list(self._subscribers.keys())

    def subscriber_count(self, topic: str) -> int:
        """Return number of active subscribers for *topic*."""
        return len(self._subscribers.get(topic, []))

    @property
    def stats(self) -> dict[str, int]:
        """Return basic stats: published and dropped counts."""
        return {
            "published": self._stats_published,
            "dropped": self._stats_dropped,
        }

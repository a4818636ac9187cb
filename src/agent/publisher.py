# src/agent/publisher.py - v1
"""Per-run event publisher.

Keeps the run's append-only event log and forwards each event to the
current subscriber's queue. Sequence numbers start at 1 and follow
emission order. A run has at most one live subscriber: subscribing again
ends the previous subscription and replays the log after the requested
sequence number into the new one.
"""

from __future__ import annotations

import asyncio
import logging

from paygent.core.events import Event

logger = logging.getLogger(__name__)

# Queue item that ends a subscription.
CLOSED = None


class EventPublisher:
    """Append-only event log with a single live subscriber queue."""

    def __init__(self, run_id: str) -> None:
        self._run_id = run_id
        self._events: list[Event] = []
        self._queue: asyncio.Queue[Event | None] | None = None
        self._closed = False

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def events(self) -> list[Event]:
        return list(self._events)

    @property
    def last_seq(self) -> int:
        return len(self._events)

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: Event) -> Event:
        """Assign the next sequence number, record and forward ``event``.

        A terminal event closes the publisher. Events published after
        close are dropped with a warning.
        """
        if self._closed:
            logger.warning("Dropping %s event for closed run %s", event.kind.value, self._run_id)
            return event
        sequenced = event.model_copy(update={"seq": len(self._events) + 1})
        self._events.append(sequenced)
        if self._queue is not None:
            self._queue.put_nowait(sequenced)
        if sequenced.is_terminal:
            self.close()
        return sequenced

    def subscribe(self, after: int = 0) -> asyncio.Queue[Event | None]:
        """New subscriber queue pre-filled with every event whose seq > ``after``."""
        if self._queue is not None:
            logger.info("New subscriber for run %s supersedes the previous one", self._run_id)
            self._queue.put_nowait(CLOSED)
        queue: asyncio.Queue[Event | None] = asyncio.Queue()
        for event in self._events[max(after, 0):]:
            queue.put_nowait(event)
        if self._closed:
            queue.put_nowait(CLOSED)
        self._queue = queue
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event | None]) -> None:
        if self._queue is queue:
            self._queue = None

    def close(self) -> None:
        """No more events will be published; ends the live subscription."""
        if self._closed:
            return
        self._closed = True
        if self._queue is not None:
            self._queue.put_nowait(CLOSED)

# src/agent/stream.py - v1
"""Event stream bridge: a publisher's events as an async iterator.

The iterator yields events in emission order until a terminal event
(``complete`` or ``error``), until the publisher closes, or until the run
is cancelled. It waits on the subscriber queue with a timeout tick so a
cancel request is noticed even while no events arrive. Abandoning the
iterator does not cancel the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from paygent.agent.publisher import CLOSED, EventPublisher
from paygent.core.events import Event

logger = logging.getLogger(__name__)


async def stream_events(
    publisher: EventPublisher,
    *,
    after: int = 0,
    poll_interval_s: float = 0.1,
    cancel_event: asyncio.Event | None = None,
) -> AsyncIterator[Event]:
    """Yield the run's events with ``seq > after``."""
    queue = publisher.subscribe(after)

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    try:
        while True:
            if cancelled():
                logger.info("Stream for run %s stopped: run cancelled", publisher.run_id)
                return
            try:
                item = await asyncio.wait_for(queue.get(), timeout=poll_interval_s)
            except asyncio.TimeoutError:
                continue
            if item is CLOSED or cancelled():
                return
            yield item
            if item.is_terminal:
                return
    finally:
        publisher.unsubscribe(queue)


async def single_event(event: Event) -> AsyncIterator[Event]:
    """Stream of exactly one event."""
    yield event

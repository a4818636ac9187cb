# src/api/sse.py - v1
"""Server-Sent Events framing for run event streams.

One frame per event: ``id: <seq>``, ``event: <kind>``, ``data: <json>``
and a blank line. The ``id`` lets a reconnecting browser send
``Last-Event-ID`` to resume after the last event it saw.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from paygent.core.events import Event

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def format_sse(event: Event) -> str:
    return f"id: {event.seq}\nevent: {event.kind.value}\ndata: {event.to_json()}\n\n"


async def sse_frames(events: AsyncIterator[Event]) -> AsyncIterator[str]:
    async for event in events:
        yield format_sse(event)


def parse_last_event_id(value: str | None) -> int:
    """Sequence number from a Last-Event-ID header; 0 when absent or malformed."""
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0

# src/agent/registry.py - v1
"""In-process registry of runs started by this process.

Keyed by run id. Reconnecting streams look up the live handle here and
attach to the same execution. Finished handles are kept for replay,
oldest evicted first beyond ``max_finished``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field

from paygent.agent.publisher import EventPublisher

logger = logging.getLogger(__name__)


@dataclass
class RunHandle:
    run_id: str
    publisher: EventPublisher
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task | None = None

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()


class RunRegistry:
    def __init__(self, max_finished: int = 100) -> None:
        self._max_finished = max_finished
        self._handles: dict[str, RunHandle] = {}
        self._finished: OrderedDict[str, None] = OrderedDict()

    def register(self, handle: RunHandle) -> None:
        if handle.run_id in self._handles:
            raise ValueError(f"Run already registered: {handle.run_id}")
        self._handles[handle.run_id] = handle

    def get(self, run_id: str) -> RunHandle | None:
        return self._handles.get(run_id)

    def mark_finished(self, run_id: str) -> None:
        if run_id not in self._handles:
            return
        self._finished[run_id] = None
        while len(self._finished) > self._max_finished:
            evicted, _ = self._finished.popitem(last=False)
            self._handles.pop(evicted, None)
            logger.debug("Evicted finished run %s from registry", evicted)

    def in_flight(self) -> list[RunHandle]:
        return [h for rid, h in self._handles.items() if rid not in self._finished]

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._handles

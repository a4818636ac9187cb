# src/agent/service.py - v1
"""Run API: start, stream, inspect and cancel runs.

Each run gets exactly one orchestrator, started as a background task and
registered under its id. Opening a stream never starts an orchestration:
it attaches to the registered execution, or, for a run this process no
longer tracks, yields a single synthetic terminal event.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from paygent.agent.orchestrator import OrchestratorConfig, RunOrchestrator
from paygent.agent.policy import BootstrapPolicy
from paygent.agent.publisher import EventPublisher
from paygent.agent.registry import RunHandle, RunRegistry
from paygent.agent.stream import single_event, stream_events
from paygent.core import events
from paygent.core.errors import RunNotFoundError
from paygent.core.events import Event
from paygent.core.models import LogEntry, Phase, PhaseHistoryEntry, Run, RunStatus
from paygent.paywall.manager import EntitlementManager
from paygent.rag.retriever import MemoryRetriever
from paygent.reasoning.base_reasoner import BaseReasoner
from paygent.storage.base_record_store import BaseRecordStore
from paygent.storage.ids import generate_run_id

logger = logging.getLogger(__name__)


class RunService:
    """Owns the run registry and the background orchestration tasks."""

    def __init__(
        self,
        *,
        store: BaseRecordStore,
        reasoner: BaseReasoner,
        retriever: MemoryRetriever,
        entitlements: EntitlementManager,
        config: OrchestratorConfig | None = None,
        policy: BootstrapPolicy | None = None,
        registry: RunRegistry | None = None,
        poll_interval_s: float = 0.1,
    ) -> None:
        self._store = store
        self._reasoner = reasoner
        self._retriever = retriever
        self._entitlements = entitlements
        self._config = config or OrchestratorConfig()
        self._policy = policy or BootstrapPolicy()
        self._registry = registry or RunRegistry()
        self._poll_interval_s = poll_interval_s

    @property
    def registry(self) -> RunRegistry:
        return self._registry

    async def start_run(self, goal: str) -> Run:
        """Persist a pending run and start its orchestration in the background.

        Returns immediately with the pending run.
        """
        goal = goal.strip()
        if not goal:
            raise ValueError("goal must not be empty")

        run = Run(id=generate_run_id(), goal=goal)
        await self._store.create_run(run)

        publisher = EventPublisher(run.id)
        handle = RunHandle(run_id=run.id, publisher=publisher)
        self._registry.register(handle)
        publisher.publish(events.run_started(run.id, goal))

        orchestrator = RunOrchestrator(
            run.id,
            goal,
            store=self._store,
            reasoner=self._reasoner,
            retriever=self._retriever,
            entitlements=self._entitlements,
            sink=publisher.publish,
            config=self._config,
            policy=self._policy,
            cancel_event=handle.cancel_event,
        )
        handle.task = asyncio.create_task(self._execute(handle, orchestrator), name=f"run-{run.id}")
        logger.info("Run %s started", run.id)
        return run

    async def _execute(self, handle: RunHandle, orchestrator: RunOrchestrator) -> None:
        try:
            await orchestrator.execute()
        except asyncio.CancelledError:
            logger.warning("Run %s interrupted", handle.run_id)
            await self._store.set_run_status(handle.run_id, RunStatus.CANCELLED)
            raise
        finally:
            handle.publisher.close()
            self._registry.mark_finished(handle.run_id)

    async def open_stream(self, run_id: str, after: int = 0) -> AsyncIterator[Event]:
        """Event stream for ``run_id``, replaying events with ``seq > after``.

        Raises:
            RunNotFoundError: Unknown run id.
        """
        handle = self._registry.get(run_id)
        if handle is not None:
            return stream_events(
                handle.publisher,
                after=after,
                poll_interval_s=self._poll_interval_s,
                cancel_event=handle.cancel_event,
            )
        run = await self.get_run(run_id)
        return single_event(self._terminal_event(run))

    @staticmethod
    def _terminal_event(run: Run) -> Event:
        """Synthetic terminal event for a run this process is not executing."""
        if run.status == RunStatus.COMPLETED:
            summary = (run.phase_history[-1].payload if run.phase_history else None) or {}
            return events.complete(
                run.id,
                total_cost=run.total_cost,
                memories_used=int(summary.get("memoriesUsed", 0)),
                services_unlocked=int(summary.get("servicesUnlocked", 0)),
            )
        if run.status == RunStatus.FAILED:
            phases = run.phases
            failed_in = phases[-2] if len(phases) >= 2 and phases[-1] == Phase.ERROR else None
            return events.error(run.id, run.error or "Run failed", failed_in)
        if run.status == RunStatus.CANCELLED:
            return events.error(run.id, "Run was cancelled", run.current_phase)
        return events.error(run.id, "Run is no longer executing", run.current_phase)

    async def get_run(self, run_id: str) -> Run:
        run = await self._store.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def get_history(self, run_id: str) -> list[PhaseHistoryEntry]:
        return (await self.get_run(run_id)).phase_history

    async def get_logs(self, run_id: str) -> list[LogEntry]:
        await self.get_run(run_id)
        return await self._store.list_logs(run_id)

    async def list_runs(self, limit: int = 20) -> list[Run]:
        return await self._store.list_runs(limit)

    async def cancel_run(self, run_id: str) -> Run:
        """Request cooperative cancellation.

        The run is marked cancelled at once and its stream stops; the
        orchestrator halts at the next phase boundary. Terminal runs are
        returned unchanged.
        """
        run = await self.get_run(run_id)
        if run.status.is_terminal:
            return run
        handle = self._registry.get(run_id)
        if handle is not None:
            handle.cancel_event.set()
        logger.info("Cancel requested for run %s", run_id)
        return await self._store.set_run_status(run_id, RunStatus.CANCELLED)

    async def wait(self, run_id: str) -> Run:
        """Wait for the background task of ``run_id`` and return the final run."""
        handle = self._registry.get(run_id)
        if handle is not None and handle.task is not None:
            await asyncio.shield(handle.task)
        return await self.get_run(run_id)

    async def shutdown(self) -> None:
        """Cancel in-flight runs and wait for their tasks to finish."""
        tasks = [h.task for h in self._registry.in_flight() if h.task and not h.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Interrupted %d in-flight run(s)", len(tasks))

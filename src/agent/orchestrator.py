# src/agent/orchestrator.py - v1
"""Run orchestrator: drives one run through its phases.

Each phase persists its transition and publishes exactly one
``phase_changed`` event on entry, then does its work. Events go to an
injected sink (the run's publisher); the orchestrator never knows who is
listening. Any exception is run-fatal: the run moves to ERROR, is marked
failed, and exactly one ``error`` event is published. A cancel request is
honoured between phases; once a run is cancelled, or its history has
reached a terminal phase, the orchestrator writes no further status.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from paygent.agent import state_machine
from paygent.agent.policy import BootstrapPolicy
from paygent.agent.state import RunState
from paygent.config.settings import Settings
from paygent.core import events
from paygent.core.errors import PaygentError, PaymentVerificationError, RunCancelledError
from paygent.core.events import Event
from paygent.core.models import (
    Artifact,
    DecisionResult,
    LogEntry,
    LogLevel,
    Phase,
    PhaseHistoryEntry,
    Run,
    RunStatus,
    Service,
    TxStatus,
)
from paygent.logging.context import clear_context, set_phase_context, set_run_context
from paygent.paywall.manager import EntitlementManager
from paygent.rag.retriever import MemoryRetriever
from paygent.reasoning.base_reasoner import BaseReasoner
from paygent.storage.base_record_store import BaseRecordStore
from paygent.storage.ids import new_id

logger = logging.getLogger(__name__)

EventSink = Callable[[Event], Any]

_PY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class OrchestratorConfig:
    top_k: int = 5
    preview_chars: int = 500
    verify_delay_s: float = 1.0
    verify_timeout_s: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> OrchestratorConfig:
        return cls(
            top_k=settings.retrieve_top_k,
            preview_chars=settings.artifact_preview_chars,
            verify_delay_s=settings.verify_delay_s,
            verify_timeout_s=settings.verify_timeout_s,
        )


def select_services_to_pay(
    decision: DecisionResult, active: list[Service]
) -> list[Service]:
    """Requested services minus those already entitled, in request order."""
    if not decision.needs_payment:
        return []
    selected: list[Service] = []
    for service in decision.services:
        if service not in active and service not in selected:
            selected.append(service)
    return selected


class RunOrchestrator:
    """State machine for a single run.

    Args:
        run_id: Id of a run already persisted in ``store``.
        goal: The run's goal text.
        store: Record store.
        reasoner: THINK/DECIDE/BUILD backend.
        retriever: Memory search.
        entitlements: Paywall manager.
        sink: Receives every event in emission order.
        config: Phase tunables.
        policy: Bootstrap policy (disabled by default).
        cancel_event: Set to request cooperative cancellation.
    """

    def __init__(
        self,
        run_id: str,
        goal: str,
        *,
        store: BaseRecordStore,
        reasoner: BaseReasoner,
        retriever: MemoryRetriever,
        entitlements: EntitlementManager,
        sink: EventSink,
        config: OrchestratorConfig | None = None,
        policy: BootstrapPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._run_id = run_id
        self._goal = goal
        self._store = store
        self._reasoner = reasoner
        self._retriever = retriever
        self._entitlements = entitlements
        self._sink = sink
        self._config = config or OrchestratorConfig()
        self._policy = policy or BootstrapPolicy()
        self._cancel_event = cancel_event or asyncio.Event()
        self._phase: Phase | None = None

    @property
    def current_phase(self) -> Phase | None:
        return self._phase

    async def execute(self) -> Run | None:
        """Run every phase to COMPLETE, ERROR or cancellation.

        Never raises for run failures; the outcome is in the returned run.
        """
        set_run_context(self._run_id)
        state = RunState(run_id=self._run_id, goal=self._goal)
        logger.info("Starting execution for goal: %r", self._goal[:80])
        try:
            self._check_cancelled()
            await self._store.set_run_status(self._run_id, RunStatus.RUNNING)
            await self._think(state)
            await self._retrieve(state)
            await self._decide(state)
            if state.services_to_pay:
                await self._pay(state)
                await self._verify(state)
                await self._unlock(state)
            await self._build(state)
            await self._complete(state)
        except RunCancelledError:
            await self._cancelled()
        except Exception as exc:
            if self._cancel_event.is_set():
                logger.warning("Run cancelled before %s failed: %s", self._phase, exc)
                await self._cancelled()
            else:
                await self._fail(exc)
        finally:
            clear_context()
        return await self._store.get_run(self._run_id)

    # ------------------------------------------------------------------
    # Transition and narration
    # ------------------------------------------------------------------

    async def transition_to(self, phase: Phase, payload: dict[str, Any] | None = None) -> None:
        """Persist the new phase, then publish one phase_changed event."""
        state_machine.validate_transition(self._phase, phase)
        previous = self._phase
        await self._store.append_phase(
            self._run_id, PhaseHistoryEntry(phase=phase, payload=payload)
        )
        self._phase = phase
        set_phase_context(phase.value)
        self._emit(events.phase_changed(self._run_id, previous, phase, payload))

    async def _enter(self, phase: Phase, payload: dict[str, Any] | None = None) -> None:
        self._check_cancelled()
        await self.transition_to(phase, payload)

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise RunCancelledError(f"Run {self._run_id} cancelled")

    def _emit(self, event: Event) -> None:
        self._sink(event)

    async def _log(
        self,
        message: str,
        level: LogLevel = "info",
        payload: dict[str, Any] | None = None,
    ) -> None:
        await self._store.add_log(
            LogEntry(
                id=new_id(),
                run_id=self._run_id,
                phase=self._phase,
                level=level,
                message=message,
                payload=payload,
            )
        )
        logger.log(_PY_LEVELS[level], message)
        self._emit(events.log(self._run_id, message, level, payload))

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _think(self, state: RunState) -> None:
        await self._enter(Phase.THINK, {"goal": state.goal})
        await self._log("Analyzing goal and creating execution plan...")

        plan = await self._reasoner.think(state.goal)
        state.plan = plan
        state.required_services = self._policy.plan(plan.required_services)
        await self._log(
            f"Thought: {plan.rationale}",
            payload={
                "thought": plan.rationale,
                "action": plan.planned_action,
                "requiredServices": [s.value for s in state.required_services],
            },
        )
        if state.required_services != plan.required_services:
            await self._log(
                "Demo mode: requiring "
                + ", ".join(s.value for s in state.required_services)
                + " services"
            )

    async def _retrieve(self, state: RunState) -> None:
        await self._enter(Phase.RETRIEVE, {"query": state.goal, "topK": self._config.top_k})
        await self._log("Searching semantic memory...")

        state.memories = await self._retriever.search(state.goal, self._config.top_k)
        await self._log(f"Found {len(state.memories)} relevant memories")
        self._emit(events.memories_retrieved(self._run_id, state.goal, state.memories))

    async def _decide(self, state: RunState) -> None:
        await self._enter(Phase.DECIDE)
        await self._log("Evaluating required services...")

        state.active_services = await self._entitlements.get_active_entitlements()
        decision = await self._reasoner.decide(state.goal, state.memories, state.active_services)
        state.decision = decision
        await self._log(
            decision.rationale or "Decision made",
            payload={
                "needsPayment": decision.needs_payment,
                "services": [s.value for s in decision.services],
            },
        )

        to_pay = select_services_to_pay(decision, state.active_services)
        forced = self._policy.payment(to_pay, state.active_services)
        if forced != to_pay:
            await self._log("Demo mode: forcing payment for " + ", ".join(s.value for s in forced))
        state.services_to_pay = forced

        if state.services_to_pay:
            await self._log(
                "Services requiring payment: " + ", ".join(s.value for s in state.services_to_pay)
            )
        else:
            await self._log("All required services already unlocked")

    async def _pay(self, state: RunState) -> None:
        await self._enter(Phase.PAY, {"services": [s.value for s in state.services_to_pay]})
        await self._log(f"Processing payments for {len(state.services_to_pay)} service(s)...")

        for service in state.services_to_pay:
            self._check_cancelled()
            await self._log(f"Paying for {service.value}...")
            try:
                result = await self._entitlements.subscribe(self._run_id, service)
            except Exception as exc:
                await self._log(f"Payment failed for {service.value}: {exc}", "error")
                raise
            state.subscriptions[service] = result
            if result.transaction is not None:
                self._emit(events.payment(self._run_id, service.value, result.transaction))
                await self._log(
                    f"Payment complete for {service.value}: {result.tx_hash}",
                    payload={"txHash": result.tx_hash, "explorerUrl": result.explorer_url},
                )
            else:
                await self._log(f"{service.value} already unlocked, no payment needed")

    async def _verify(self, state: RunState) -> None:
        paid = [r for r in state.subscriptions.values() if r.tx_hash]
        await self._enter(Phase.VERIFY, {"transactions": [r.tx_hash for r in paid]})
        await self._log("Verifying transactions...")

        if self._config.verify_delay_s > 0:
            await asyncio.sleep(self._config.verify_delay_s)
        for result in paid:
            status = await self._entitlements.verify_transaction(
                result.tx_hash, timeout_s=self._config.verify_timeout_s
            )
            if status != TxStatus.CONFIRMED:
                raise PaymentVerificationError(result.tx_hash, status.value)
        await self._log("All transactions verified")

    async def _unlock(self, state: RunState) -> None:
        await self._enter(Phase.UNLOCK)
        await self._log("Activating service entitlements...")

        for service in state.services_to_pay:
            entitlement = await self._entitlements.get_active_entitlement(service)
            if entitlement is None:
                raise PaygentError(f"Entitlement for {service.value} is not active")
            state.unlocked.append(entitlement)
            self._emit(events.entitlement(self._run_id, entitlement))
            await self._log(f"{service.value} unlocked until {entitlement.expires_at.isoformat()}")

    async def _build(self, state: RunState) -> None:
        await self._enter(Phase.BUILD)
        await self._log("Generating artifact...")

        spec = await self._reasoner.build(state.goal, state.memories)
        self._check_cancelled()
        artifact = Artifact(
            id=new_id(),
            run_id=self._run_id,
            name=spec.name,
            kind=spec.kind,
            content=spec.content,
            metadata={
                "description": spec.description,
                "memoriesUsed": len(state.memories),
                "servicesUnlocked": [e.service.value for e in state.unlocked],
            },
        )
        await self._store.add_artifact(artifact)
        await self._store.set_run_status(self._run_id, RunStatus.RUNNING, artifact_id=artifact.id)
        state.artifact = artifact
        self._emit(events.artifact(self._run_id, artifact, self._config.preview_chars))
        await self._log(f"Artifact created: {artifact.name}", payload={"projectId": artifact.id})

    async def _complete(self, state: RunState) -> None:
        run = await self._store.get_run(self._run_id)
        summary = {
            "totalCost": run.total_cost if run else 0.0,
            "memoriesUsed": len(state.memories),
            "servicesUnlocked": len(state.unlocked),
        }
        await self._enter(Phase.COMPLETE, summary)
        await self._store.set_run_status(self._run_id, RunStatus.COMPLETED)
        await self._log("Execution complete!", payload={"totalCost": summary["totalCost"]})
        self._emit(
            events.complete(
                self._run_id,
                total_cost=summary["totalCost"],
                memories_used=summary["memoriesUsed"],
                services_unlocked=summary["servicesUnlocked"],
            )
        )

    # ------------------------------------------------------------------
    # Exits
    # ------------------------------------------------------------------

    async def _fail(self, exc: Exception) -> None:
        failed_phase = self._phase
        message = str(exc) or type(exc).__name__
        logger.error("Execution failed in %s: %s", failed_phase, message, exc_info=exc)
        if state_machine.is_terminal(failed_phase):
            # History already ends in COMPLETE or ERROR; only tell observers.
            self._emit(events.error(self._run_id, message, failed_phase))
            return
        if await self._persisted_terminal():
            logger.warning("Run %s already finished; failure not recorded", self._run_id)
            return
        try:
            await self._log(f"Execution failed: {message}", "error")
            await self._store.append_phase(
                self._run_id, PhaseHistoryEntry(phase=Phase.ERROR, payload={"error": message})
            )
            await self._store.set_run_status(self._run_id, RunStatus.FAILED, error=message)
        except Exception:
            logger.exception("Could not persist failure of run %s", self._run_id)
        self._phase = Phase.ERROR
        set_phase_context(Phase.ERROR.value)
        self._emit(events.phase_changed(self._run_id, failed_phase, Phase.ERROR, {"error": message}))
        self._emit(events.error(self._run_id, message, failed_phase))

    async def _cancelled(self) -> None:
        logger.info("Run cancelled during %s", self._phase)
        try:
            if not await self._persisted_terminal():
                await self._store.set_run_status(self._run_id, RunStatus.CANCELLED)
        except Exception:
            logger.exception("Could not persist cancellation of run %s", self._run_id)

    async def _persisted_terminal(self) -> bool:
        try:
            run = await self._store.get_run(self._run_id)
        except Exception:
            logger.exception("Could not read status of run %s", self._run_id)
            return False
        return run is not None and run.status.is_terminal

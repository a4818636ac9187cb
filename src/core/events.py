# src/core/events.py - v1
"""Typed run events: the only channel from the orchestrator to observers.

An Event is immutable once built. Its ``data`` is produced from a per-kind
payload model and serialized with camelCase keys, which is what browser
subscribers consume. Sequence numbers are assigned by the publisher.
"""

from __future__ import annotations

import enum
import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from paygent.core.models import (
    Artifact,
    Entitlement,
    LogLevel,
    Phase,
    RetrievedMemory,
    Transaction,
    TxStatus,
    utcnow,
)


class EventKind(str, enum.Enum):
    RUN_STARTED = "run_started"
    PHASE_CHANGED = "phase_changed"
    LOG = "log"
    MEMORIES_RETRIEVED = "memories_retrieved"
    PAYMENT = "payment"
    ENTITLEMENT = "entitlement"
    ARTIFACT = "artifact"
    ERROR = "error"
    COMPLETE = "complete"

    @property
    def is_terminal(self) -> bool:
        return self in (EventKind.COMPLETE, EventKind.ERROR)


class Event(BaseModel):
    """Immutable notification describing one observable change to a run."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    run_id: str
    timestamp: datetime = Field(default_factory=utcnow)
    data: dict[str, Any] = Field(default_factory=dict)
    seq: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.kind.is_terminal

    def to_wire(self) -> dict[str, Any]:
        """Transport-neutral message: {seq, kind, runId, timestamp, data}."""
        return {
            "seq": self.seq,
            "kind": self.kind.value,
            "runId": self.run_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), default=str)


# ---------------------------------------------------------------------------
# Per-kind payloads
# ---------------------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RunStartedData(_Payload):
    goal: str


class PhaseChangedData(_Payload):
    previous_phase: Phase | None
    current_phase: Phase
    payload: dict[str, Any] | None = None


class LogData(_Payload):
    level: LogLevel
    message: str
    payload: dict[str, Any] | None = None


class MemoriesRetrievedData(_Payload):
    query: str
    memories: list[RetrievedMemory]


class PaymentData(_Payload):
    service: str
    tx_hash: str
    amount: float
    currency: str
    purpose: str
    status: TxStatus
    explorer_url: str
    simulated: bool = False


class EntitlementData(_Payload):
    service: str
    is_active: bool
    expires_at: datetime


class ArtifactData(_Payload):
    project_id: str
    name: str
    kind: str
    preview: str


class ErrorData(_Payload):
    message: str
    phase: Phase | None = None


class CompleteData(_Payload):
    total_cost: float
    memories_used: int
    services_unlocked: int
    status: str = "completed"


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def _event(kind: EventKind, run_id: str, payload: _Payload) -> Event:
    return Event(kind=kind, run_id=run_id, data=payload.dump())


def run_started(run_id: str, goal: str) -> Event:
    return _event(EventKind.RUN_STARTED, run_id, RunStartedData(goal=goal))


def phase_changed(
    run_id: str,
    previous: Phase | None,
    current: Phase,
    payload: dict[str, Any] | None = None,
) -> Event:
    return _event(
        EventKind.PHASE_CHANGED,
        run_id,
        PhaseChangedData(previous_phase=previous, current_phase=current, payload=payload),
    )


def log(
    run_id: str,
    message: str,
    level: LogLevel = "info",
    payload: dict[str, Any] | None = None,
) -> Event:
    return _event(EventKind.LOG, run_id, LogData(level=level, message=message, payload=payload))


def memories_retrieved(run_id: str, query: str, memories: list[RetrievedMemory]) -> Event:
    return _event(
        EventKind.MEMORIES_RETRIEVED,
        run_id,
        MemoriesRetrievedData(query=query, memories=memories),
    )


def payment(run_id: str, service: str, tx: Transaction) -> Event:
    return _event(
        EventKind.PAYMENT,
        run_id,
        PaymentData(
            service=service,
            tx_hash=tx.tx_hash,
            amount=tx.amount,
            currency=tx.currency,
            purpose=tx.purpose,
            status=tx.status,
            explorer_url=tx.explorer_url,
            simulated=tx.simulated,
        ),
    )


def entitlement(run_id: str, ent: Entitlement) -> Event:
    return _event(
        EventKind.ENTITLEMENT,
        run_id,
        EntitlementData(
            service=ent.service.value,
            is_active=ent.is_active,
            expires_at=ent.expires_at,
        ),
    )


def artifact(run_id: str, art: Artifact, preview_chars: int = 500) -> Event:
    return _event(
        EventKind.ARTIFACT,
        run_id,
        ArtifactData(
            project_id=art.id,
            name=art.name,
            kind=art.kind,
            preview=art.content[:preview_chars],
        ),
    )


def error(run_id: str, message: str, phase: Phase | None = None) -> Event:
    return _event(EventKind.ERROR, run_id, ErrorData(message=message, phase=phase))


def complete(
    run_id: str,
    total_cost: float,
    memories_used: int,
    services_unlocked: int,
) -> Event:
    return _event(
        EventKind.COMPLETE,
        run_id,
        CompleteData(
            total_cost=total_cost,
            memories_used=memories_used,
            services_unlocked=services_unlocked,
        ),
    )

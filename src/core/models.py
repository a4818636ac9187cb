# src/core/models.py - v2
"""Shared data model: runs, phases, memories, payments, entitlements, artifacts.

All records are pydantic models so the same types flow through the record
stores, the orchestrator and the HTTP layer.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Phase(str, enum.Enum):
    """States of the run state machine, in execution order."""

    THINK = "THINK"
    RETRIEVE = "RETRIEVE"
    DECIDE = "DECIDE"
    PAY = "PAY"
    VERIFY = "VERIFY"
    UNLOCK = "UNLOCK"
    BUILD = "BUILD"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class RunStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class TxStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Service(str, enum.Enum):
    """Paywalled services an agent can unlock."""

    VOYAGE = "voyage"
    MONGODB = "mongodb"
    CDP = "cdp"


LogLevel = Literal["info", "warn", "error", "debug"]
ArtifactKind = Literal["code", "spec", "document"]


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


class PhaseHistoryEntry(BaseModel):
    """One entry of a run's ordered phase history."""

    phase: Phase
    timestamp: datetime = Field(default_factory=utcnow)
    payload: dict[str, Any] | None = None


class Run(BaseModel):
    """One end-to-end execution of the orchestrator for a single goal.

    ``current_phase`` always equals the phase of the last history entry;
    both are ``None``/empty while the run is still pending.
    """

    id: str
    status: RunStatus = RunStatus.PENDING
    goal: str
    current_phase: Phase | None = None
    phase_history: list[PhaseHistoryEntry] = Field(default_factory=list)
    total_cost: float = 0.0
    artifact_id: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def phases(self) -> list[Phase]:
        return [entry.phase for entry in self.phase_history]


# ---------------------------------------------------------------------------
# Memories
# ---------------------------------------------------------------------------


class Memory(BaseModel):
    """Stored memory with its document embedding."""

    id: str
    text: str
    embedding: list[float] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: str = "manual"
    created_at: datetime = Field(default_factory=utcnow)


class RetrievedMemory(BaseModel):
    """Ranked similarity result produced during RETRIEVE."""

    model_config = {"frozen": True}

    id: str
    text: str
    score: float = Field(ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Payments and entitlements
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """Payment record. Created at payment time, never deleted."""

    id: str
    run_id: str
    tx_hash: str
    amount: float
    currency: str = "USDC"
    recipient: str
    purpose: str
    status: TxStatus = TxStatus.PENDING
    simulated: bool = False
    explorer_url: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    confirmed_at: datetime | None = None


class Entitlement(BaseModel):
    """Time-bounded grant of access to one paid service."""

    id: str
    run_id: str
    tx_id: str
    service: Service
    token: str
    expires_at: datetime
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    def is_live(self, now: datetime | None = None) -> bool:
        """Active and not yet expired (expiry is evaluated lazily)."""
        return self.is_active and self.expires_at > (now or utcnow())


# ---------------------------------------------------------------------------
# Logs and artifacts
# ---------------------------------------------------------------------------


class LogEntry(BaseModel):
    """Persisted human-readable narration line for a run."""

    id: str
    run_id: str
    phase: Phase | None = None
    level: LogLevel = "info"
    message: str
    payload: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class Artifact(BaseModel):
    """BUILD phase output (stored as a project)."""

    id: str
    run_id: str
    name: str
    kind: ArtifactKind = "document"
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Adapter results
# ---------------------------------------------------------------------------


class ThinkResult(BaseModel):
    """THINK output: rationale plus the services the plan expects to need."""

    rationale: str
    planned_action: str | None = None
    required_services: list[Service] = Field(default_factory=list)


class DecisionResult(BaseModel):
    """DECIDE output from the reasoning backend."""

    needs_payment: bool = False
    services: list[Service] = Field(default_factory=list)
    rationale: str = ""


class ArtifactSpec(BaseModel):
    """BUILD output from the reasoning backend."""

    name: str = "artifact"
    kind: ArtifactKind = "document"
    description: str = "Generated artifact"
    content: str = ""


class PaymentResult(BaseModel):
    """Receipt returned by a payment client."""

    tx_hash: str
    amount: float
    currency: str
    recipient: str
    explorer_url: str = ""
    simulated: bool = False


class SubscriptionResult(BaseModel):
    """Outcome of EntitlementManager.subscribe.

    ``tx_hash`` is empty and ``transaction`` is None when an existing live
    entitlement was returned instead of paying again.
    """

    tx_hash: str
    entitlement: Entitlement
    explorer_url: str = ""
    transaction: Transaction | None = None

    @property
    def paid(self) -> bool:
        return self.transaction is not None

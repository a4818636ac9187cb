# src/storage/base_record_store.py - v1
"""Abstract record store for runs, memories, payments, entitlements, logs and artifacts.

Run updates are expressed as targeted operations (append a phase, set the
status, add cost) rather than whole-record writes, so that concurrent
writers such as the orchestrator and the entitlement manager never
overwrite each other's fields.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from paygent.core.models import (
    Artifact,
    Entitlement,
    LogEntry,
    Memory,
    PhaseHistoryEntry,
    RetrievedMemory,
    Run,
    RunStatus,
    Service,
    Transaction,
)


class BaseRecordStore(ABC):
    """Unified interface for record storage backends."""

    # --- Runs ---

    @abstractmethod
    async def create_run(self, run: Run) -> Run:
        """Persist a new run."""

    @abstractmethod
    async def get_run(self, run_id: str) -> Run | None:
        """Fetch a run by id."""

    @abstractmethod
    async def list_runs(self, limit: int = 20) -> list[Run]:
        """Most recent runs first."""

    @abstractmethod
    async def append_phase(self, run_id: str, entry: PhaseHistoryEntry) -> Run:
        """Append a history entry and make its phase the current phase.

        Raises:
            RunNotFoundError: Unknown run id.
        """

    @abstractmethod
    async def set_run_status(
        self,
        run_id: str,
        status: RunStatus,
        *,
        error: str | None = None,
        artifact_id: str | None = None,
    ) -> Run:
        """Update status (and optionally error / artifact id).

        Terminal statuses also set ``completed_at`` and are final: once a
        run is completed, failed or cancelled, later calls return it
        unchanged.

        Raises:
            RunNotFoundError: Unknown run id.
        """

    @abstractmethod
    async def add_run_cost(self, run_id: str, amount: float) -> Run:
        """Atomically add ``amount`` to the run's total cost.

        Raises:
            RunNotFoundError: Unknown run id.
        """

    # --- Memories ---

    @abstractmethod
    async def add_memory(self, memory: Memory) -> Memory:
        """Persist a memory with its embedding."""

    @abstractmethod
    async def list_memories(self, limit: int = 50) -> list[Memory]:
        """Most recent memories first."""

    @abstractmethod
    async def count_memories(self) -> int:
        """Number of stored memories."""

    @abstractmethod
    async def search_memories(self, vector: list[float], k: int) -> list[RetrievedMemory]:
        """Top-``k`` memories by similarity to ``vector``, best first.

        Scores are in [0, 1], higher meaning more similar.
        """

    # --- Transactions ---

    @abstractmethod
    async def add_transaction(self, tx: Transaction) -> Transaction:
        """Persist a payment record."""

    @abstractmethod
    async def get_transaction_by_hash(self, tx_hash: str) -> Transaction | None:
        """Fetch a transaction by its hash."""

    @abstractmethod
    async def list_transactions(self, run_id: str | None = None, limit: int = 50) -> list[Transaction]:
        """Most recent transactions first, optionally for one run."""

    # --- Entitlements ---

    @abstractmethod
    async def claim_entitlement(
        self, entitlement: Entitlement, now: datetime
    ) -> tuple[Entitlement, bool]:
        """Insert ``entitlement`` unless a live one already exists for its service.

        Check and insert are a single atomic step. Expired active rows for
        the service are deactivated first.

        Returns:
            ``(entitlement, True)`` when inserted, ``(existing, False)`` when
            another live entitlement won.
        """

    @abstractmethod
    async def find_active_entitlement(self, service: Service, now: datetime) -> Entitlement | None:
        """Live entitlement for ``service`` (active and ``expires_at > now``)."""

    @abstractmethod
    async def list_entitlements(self, run_id: str | None = None) -> list[Entitlement]:
        """Most recent entitlements first, optionally for one run."""

    @abstractmethod
    async def deactivate_all_entitlements(self) -> int:
        """Deactivate every active entitlement; returns the number changed."""

    # --- Logs ---

    @abstractmethod
    async def add_log(self, entry: LogEntry) -> LogEntry:
        """Persist a narration line."""

    @abstractmethod
    async def list_logs(self, run_id: str) -> list[LogEntry]:
        """Log entries of a run in timestamp order."""

    # --- Artifacts ---

    @abstractmethod
    async def add_artifact(self, artifact: Artifact) -> Artifact:
        """Persist a BUILD artifact."""

    @abstractmethod
    async def get_artifact(self, artifact_id: str) -> Artifact | None:
        """Fetch an artifact by id."""

    @abstractmethod
    async def list_artifacts(self, run_id: str | None = None, limit: int = 50) -> list[Artifact]:
        """Most recent artifacts first, optionally for one run."""

    async def close(self) -> None:
        """Release backend resources."""

# src/storage/memory_store.py - v1
"""In-process record store (STORE_BACKEND=memory).

Records are kept in insertion-ordered dicts and copied on the way in and
out. Every method completes without awaiting, so each call is atomic with
respect to other coroutines on the same event loop.
"""

from __future__ import annotations

import logging
from datetime import datetime

from paygent.core.errors import RunNotFoundError
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
    utcnow,
)
from paygent.core.similarity import cosine_scores, top_k_indices
from paygent.storage.base_record_store import BaseRecordStore

logger = logging.getLogger(__name__)


class InMemoryRecordStore(BaseRecordStore):
    """Dictionary-backed store for tests, demos and single-process use."""

    def __init__(self) -> None:
        self._runs: dict[str, Run] = {}
        self._memories: dict[str, Memory] = {}
        self._transactions: dict[str, Transaction] = {}
        self._entitlements: dict[str, Entitlement] = {}
        self._logs: list[LogEntry] = []
        self._artifacts: dict[str, Artifact] = {}

    # --- Runs ---

    async def create_run(self, run: Run) -> Run:
        self._runs[run.id] = run.model_copy(deep=True)
        return run

    async def get_run(self, run_id: str) -> Run | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run else None

    async def list_runs(self, limit: int = 20) -> list[Run]:
        runs = sorted(self._runs.values(), key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in runs[:limit]]

    async def append_phase(self, run_id: str, entry: PhaseHistoryEntry) -> Run:
        run = self._require_run(run_id)
        run.phase_history.append(entry.model_copy())
        run.current_phase = entry.phase
        run.updated_at = utcnow()
        return run.model_copy(deep=True)

    async def set_run_status(
        self,
        run_id: str,
        status: RunStatus,
        *,
        error: str | None = None,
        artifact_id: str | None = None,
    ) -> Run:
        run = self._require_run(run_id)
        if run.status.is_terminal:
            if status != run.status:
                logger.warning(
                    "Run %s is %s; ignoring status %s", run_id, run.status.value, status.value
                )
            return run.model_copy(deep=True)
        run.status = status
        if error is not None:
            run.error = error
        if artifact_id is not None:
            run.artifact_id = artifact_id
        run.updated_at = utcnow()
        if status.is_terminal:
            run.completed_at = run.updated_at
        return run.model_copy(deep=True)

    async def add_run_cost(self, run_id: str, amount: float) -> Run:
        run = self._require_run(run_id)
        run.total_cost += amount
        run.updated_at = utcnow()
        return run.model_copy(deep=True)

    def _require_run(self, run_id: str) -> Run:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    # --- Memories ---

    async def add_memory(self, memory: Memory) -> Memory:
        self._memories[memory.id] = memory.model_copy(deep=True)
        return memory

    async def list_memories(self, limit: int = 50) -> list[Memory]:
        memories = list(self._memories.values())[::-1]
        return [m.model_copy(deep=True) for m in memories[:limit]]

    async def count_memories(self) -> int:
        return len(self._memories)

    async def search_memories(self, vector: list[float], k: int) -> list[RetrievedMemory]:
        candidates = [m for m in self._memories.values() if m.embedding]
        if not candidates:
            return []
        scores = cosine_scores(vector, [m.embedding for m in candidates])
        return [
            RetrievedMemory(
                id=candidates[i].id,
                text=candidates[i].text,
                score=float(scores[i]),
                metadata=dict(candidates[i].metadata),
            )
            for i in top_k_indices(scores, k)
        ]

    # --- Transactions ---

    async def add_transaction(self, tx: Transaction) -> Transaction:
        self._transactions[tx.id] = tx.model_copy()
        return tx

    async def get_transaction_by_hash(self, tx_hash: str) -> Transaction | None:
        for tx in self._transactions.values():
            if tx.tx_hash == tx_hash:
                return tx.model_copy()
        return None

    async def list_transactions(self, run_id: str | None = None, limit: int = 50) -> list[Transaction]:
        txs = [
            t for t in reversed(self._transactions.values())
            if run_id is None or t.run_id == run_id
        ]
        return [t.model_copy() for t in txs[:limit]]

    # --- Entitlements ---

    async def claim_entitlement(
        self, entitlement: Entitlement, now: datetime
    ) -> tuple[Entitlement, bool]:
        existing: Entitlement | None = None
        for ent in self._entitlements.values():
            if ent.service != entitlement.service or not ent.is_active:
                continue
            if ent.expires_at <= now:
                ent.is_active = False
            elif existing is None:
                existing = ent
        if existing is not None:
            return existing.model_copy(), False
        self._entitlements[entitlement.id] = entitlement.model_copy()
        return entitlement, True

    async def find_active_entitlement(self, service: Service, now: datetime) -> Entitlement | None:
        for ent in reversed(self._entitlements.values()):
            if ent.service == service and ent.is_live(now):
                return ent.model_copy()
        return None

    async def list_entitlements(self, run_id: str | None = None) -> list[Entitlement]:
        return [
            e.model_copy() for e in reversed(self._entitlements.values())
            if run_id is None or e.run_id == run_id
        ]

    async def deactivate_all_entitlements(self) -> int:
        count = 0
        for ent in self._entitlements.values():
            if ent.is_active:
                ent.is_active = False
                count += 1
        return count

    # --- Logs ---

    async def add_log(self, entry: LogEntry) -> LogEntry:
        self._logs.append(entry.model_copy())
        return entry

    async def list_logs(self, run_id: str) -> list[LogEntry]:
        logs = [e for e in self._logs if e.run_id == run_id]
        return [e.model_copy() for e in sorted(logs, key=lambda e: e.timestamp)]

    # --- Artifacts ---

    async def add_artifact(self, artifact: Artifact) -> Artifact:
        self._artifacts[artifact.id] = artifact.model_copy()
        return artifact

    async def get_artifact(self, artifact_id: str) -> Artifact | None:
        art = self._artifacts.get(artifact_id)
        return art.model_copy() if art else None

    async def list_artifacts(self, run_id: str | None = None, limit: int = 50) -> list[Artifact]:
        arts = [
            a for a in reversed(self._artifacts.values())
            if run_id is None or a.run_id == run_id
        ]
        return [a.model_copy() for a in arts[:limit]]

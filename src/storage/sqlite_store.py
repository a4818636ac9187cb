# src/storage/sqlite_store.py - v1
"""SQLite-backed record store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3. Each record is stored as its pydantic JSON in a
``data`` column, with the fields used for filtering and ordering
duplicated into indexed columns. The connection runs in autocommit mode
and multi-statement updates take an explicit ``BEGIN IMMEDIATE`` write
lock, which also serializes entitlement claims across processes sharing
the same database file.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

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

_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    created_ts REAL NOT NULL,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,
    created_ts REAL NOT NULL,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    run_id TEXT NOT NULL,
    tx_hash TEXT NOT NULL,
    created_ts REAL NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tx_hash ON transactions(tx_hash);
CREATE INDEX IF NOT EXISTS idx_tx_run ON transactions(run_id);
CREATE TABLE IF NOT EXISTS entitlements (
    id TEXT PRIMARY KEY,
    run_id TEXT NOT NULL,
    service TEXT NOT NULL,
    is_active INTEGER NOT NULL,
    expires_ts REAL NOT NULL,
    created_ts REAL NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_ent_active ON entitlements(service, is_active, expires_ts);
CREATE TABLE IF NOT EXISTS logs (
    id TEXT PRIMARY KEY,
    run_id TEXT NOT NULL,
    ts REAL NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_logs_run ON logs(run_id, ts);
CREATE TABLE IF NOT EXISTS artifacts (
    id TEXT PRIMARY KEY,
    run_id TEXT NOT NULL,
    created_ts REAL NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_artifacts_run ON artifacts(run_id);
"""


class SqliteRecordStore(BaseRecordStore):
    """Single-file SQLite store for persistent deployments."""

    def __init__(self, db_path: Path | str) -> None:
        in_memory = str(db_path) == ":memory:"
        if not in_memory:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            db_path = path
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, isolation_level=None, check_same_thread=False)
        if not in_memory:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        """Immediate write transaction; rolled back on error."""
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        else:
            self._conn.execute("COMMIT")

    # --- Runs ---

    async def create_run(self, run: Run) -> Run:
        self._conn.execute(
            "INSERT INTO runs (id, created_ts, data) VALUES (?, ?, ?)",
            (run.id, run.created_at.timestamp(), run.model_dump_json()),
        )
        return run

    async def get_run(self, run_id: str) -> Run | None:
        row = self._conn.execute("SELECT data FROM runs WHERE id = ?", (run_id,)).fetchone()
        return Run.model_validate_json(row[0]) if row else None

    async def list_runs(self, limit: int = 20) -> list[Run]:
        rows = self._conn.execute(
            "SELECT data FROM runs ORDER BY created_ts DESC, rowid DESC LIMIT ?", (limit,)
        ).fetchall()
        return [Run.model_validate_json(r[0]) for r in rows]

    async def append_phase(self, run_id: str, entry: PhaseHistoryEntry) -> Run:
        with self._write() as conn:
            run = self._load_run(conn, run_id)
            run.phase_history.append(entry)
            run.current_phase = entry.phase
            run.updated_at = utcnow()
            self._save_run(conn, run)
        return run

    async def set_run_status(
        self,
        run_id: str,
        status: RunStatus,
        *,
        error: str | None = None,
        artifact_id: str | None = None,
    ) -> Run:
        with self._write() as conn:
            run = self._load_run(conn, run_id)
            if run.status.is_terminal:
                if status != run.status:
                    logger.warning(
                        "Run %s is %s; ignoring status %s",
                        run_id, run.status.value, status.value,
                    )
                return run
            run.status = status
            if error is not None:
                run.error = error
            if artifact_id is not None:
                run.artifact_id = artifact_id
            run.updated_at = utcnow()
            if status.is_terminal:
                run.completed_at = run.updated_at
            self._save_run(conn, run)
        return run

    async def add_run_cost(self, run_id: str, amount: float) -> Run:
        with self._write() as conn:
            run = self._load_run(conn, run_id)
            run.total_cost += amount
            run.updated_at = utcnow()
            self._save_run(conn, run)
        return run

    @staticmethod
    def _load_run(conn: sqlite3.Connection, run_id: str) -> Run:
        row = conn.execute("SELECT data FROM runs WHERE id = ?", (run_id,)).fetchone()
        if row is None:
            raise RunNotFoundError(run_id)
        return Run.model_validate_json(row[0])

    @staticmethod
    def _save_run(conn: sqlite3.Connection, run: Run) -> None:
        conn.execute("UPDATE runs SET data = ? WHERE id = ?", (run.model_dump_json(), run.id))

    # --- Memories ---

    async def add_memory(self, memory: Memory) -> Memory:
        self._conn.execute(
            "INSERT OR REPLACE INTO memories (id, created_ts, data) VALUES (?, ?, ?)",
            (memory.id, memory.created_at.timestamp(), memory.model_dump_json()),
        )
        return memory

    async def list_memories(self, limit: int = 50) -> list[Memory]:
        rows = self._conn.execute(
            "SELECT data FROM memories ORDER BY created_ts DESC, rowid DESC LIMIT ?", (limit,)
        ).fetchall()
        return [Memory.model_validate_json(r[0]) for r in rows]

    async def count_memories(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]

    async def search_memories(self, vector: list[float], k: int) -> list[RetrievedMemory]:
        rows = self._conn.execute("SELECT data FROM memories ORDER BY rowid").fetchall()
        candidates = [Memory.model_validate_json(r[0]) for r in rows]
        candidates = [m for m in candidates if m.embedding]
        if not candidates:
            return []
        scores = cosine_scores(vector, [m.embedding for m in candidates])
        return [
            RetrievedMemory(
                id=candidates[i].id,
                text=candidates[i].text,
                score=float(scores[i]),
                metadata=candidates[i].metadata,
            )
            for i in top_k_indices(scores, k)
        ]

    # --- Transactions ---

    async def add_transaction(self, tx: Transaction) -> Transaction:
        self._conn.execute(
            "INSERT INTO transactions (id, run_id, tx_hash, created_ts, data) VALUES (?, ?, ?, ?, ?)",
            (tx.id, tx.run_id, tx.tx_hash, tx.created_at.timestamp(), tx.model_dump_json()),
        )
        return tx

    async def get_transaction_by_hash(self, tx_hash: str) -> Transaction | None:
        row = self._conn.execute(
            "SELECT data FROM transactions WHERE tx_hash = ? LIMIT 1", (tx_hash,)
        ).fetchone()
        return Transaction.model_validate_json(row[0]) if row else None

    async def list_transactions(self, run_id: str | None = None, limit: int = 50) -> list[Transaction]:
        if run_id is None:
            cursor = self._conn.execute(
                "SELECT data FROM transactions ORDER BY created_ts DESC, rowid DESC LIMIT ?",
                (limit,),
            )
        else:
            cursor = self._conn.execute(
                "SELECT data FROM transactions WHERE run_id = ? "
                "ORDER BY created_ts DESC, rowid DESC LIMIT ?",
                (run_id, limit),
            )
        return [Transaction.model_validate_json(r[0]) for r in cursor.fetchall()]

    # --- Entitlements ---

    async def claim_entitlement(
        self, entitlement: Entitlement, now: datetime
    ) -> tuple[Entitlement, bool]:
        now_ts = now.timestamp()
        service = entitlement.service.value
        with self._write() as conn:
            self._expire(conn, service, now_ts)
            row = conn.execute(
                "SELECT data FROM entitlements WHERE service = ? AND is_active = 1 "
                "AND expires_ts > ? ORDER BY created_ts DESC LIMIT 1",
                (service, now_ts),
            ).fetchone()
            if row is not None:
                return Entitlement.model_validate_json(row[0]), False
            self._insert_entitlement(conn, entitlement)
        return entitlement, True

    async def find_active_entitlement(self, service: Service, now: datetime) -> Entitlement | None:
        row = self._conn.execute(
            "SELECT data FROM entitlements WHERE service = ? AND is_active = 1 "
            "AND expires_ts > ? ORDER BY created_ts DESC LIMIT 1",
            (service.value, now.timestamp()),
        ).fetchone()
        return Entitlement.model_validate_json(row[0]) if row else None

    async def list_entitlements(self, run_id: str | None = None) -> list[Entitlement]:
        if run_id is None:
            cursor = self._conn.execute(
                "SELECT data FROM entitlements ORDER BY created_ts DESC, rowid DESC"
            )
        else:
            cursor = self._conn.execute(
                "SELECT data FROM entitlements WHERE run_id = ? "
                "ORDER BY created_ts DESC, rowid DESC",
                (run_id,),
            )
        return [Entitlement.model_validate_json(r[0]) for r in cursor.fetchall()]

    async def deactivate_all_entitlements(self) -> int:
        with self._write() as conn:
            rows = conn.execute(
                "SELECT id, data FROM entitlements WHERE is_active = 1"
            ).fetchall()
            for ent_id, data in rows:
                self._deactivate(conn, ent_id, data)
        return len(rows)

    def _expire(self, conn: sqlite3.Connection, service: str, now_ts: float) -> None:
        rows = conn.execute(
            "SELECT id, data FROM entitlements WHERE service = ? AND is_active = 1 "
            "AND expires_ts <= ?",
            (service, now_ts),
        ).fetchall()
        for ent_id, data in rows:
            self._deactivate(conn, ent_id, data)

    @staticmethod
    def _deactivate(conn: sqlite3.Connection, ent_id: str, data: str) -> None:
        ent = Entitlement.model_validate_json(data)
        ent.is_active = False
        conn.execute(
            "UPDATE entitlements SET is_active = 0, data = ? WHERE id = ?",
            (ent.model_dump_json(), ent_id),
        )

    @staticmethod
    def _insert_entitlement(conn: sqlite3.Connection, ent: Entitlement) -> None:
        conn.execute(
            "INSERT INTO entitlements (id, run_id, service, is_active, expires_ts, created_ts, data) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                ent.id,
                ent.run_id,
                ent.service.value,
                int(ent.is_active),
                ent.expires_at.timestamp(),
                ent.created_at.timestamp(),
                ent.model_dump_json(),
            ),
        )

    # --- Logs ---

    async def add_log(self, entry: LogEntry) -> LogEntry:
        self._conn.execute(
            "INSERT INTO logs (id, run_id, ts, data) VALUES (?, ?, ?, ?)",
            (entry.id, entry.run_id, entry.timestamp.timestamp(), entry.model_dump_json()),
        )
        return entry

    async def list_logs(self, run_id: str) -> list[LogEntry]:
        rows = self._conn.execute(
            "SELECT data FROM logs WHERE run_id = ? ORDER BY ts, rowid", (run_id,)
        ).fetchall()
        return [LogEntry.model_validate_json(r[0]) for r in rows]

    # --- Artifacts ---

    async def add_artifact(self, artifact: Artifact) -> Artifact:
        self._conn.execute(
            "INSERT INTO artifacts (id, run_id, created_ts, data) VALUES (?, ?, ?, ?)",
            (artifact.id, artifact.run_id, artifact.created_at.timestamp(), artifact.model_dump_json()),
        )
        return artifact

    async def get_artifact(self, artifact_id: str) -> Artifact | None:
        row = self._conn.execute(
            "SELECT data FROM artifacts WHERE id = ?", (artifact_id,)
        ).fetchone()
        return Artifact.model_validate_json(row[0]) if row else None

    async def list_artifacts(self, run_id: str | None = None, limit: int = 50) -> list[Artifact]:
        if run_id is None:
            cursor = self._conn.execute(
                "SELECT data FROM artifacts ORDER BY created_ts DESC, rowid DESC LIMIT ?",
                (limit,),
            )
        else:
            cursor = self._conn.execute(
                "SELECT data FROM artifacts WHERE run_id = ? "
                "ORDER BY created_ts DESC, rowid DESC LIMIT ?",
                (run_id, limit),
            )
        return [Artifact.model_validate_json(r[0]) for r in cursor.fetchall()]

    async def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

# src/storage/store_factory.py - v1
"""Factory for record store instantiation."""

from __future__ import annotations

from paygent.config.settings import Settings
from paygent.storage.base_record_store import BaseRecordStore


def create_record_store(settings: Settings) -> BaseRecordStore:
    """Instantiate the configured record store backend.

    Args:
        settings: Application settings (STORE_BACKEND, STORE_PATH).

    Returns:
        Configured BaseRecordStore implementation.
    """
    backend = settings.store_backend

    if backend == "memory":
        from paygent.storage.memory_store import InMemoryRecordStore
        return InMemoryRecordStore()

    if backend == "sqlite":
        from paygent.storage.sqlite_store import SqliteRecordStore
        return SqliteRecordStore(db_path=settings.store_path)

    raise ValueError(f"Unsupported store backend: {backend!r}")

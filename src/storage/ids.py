# src/storage/ids.py - v2
"""Identifier generation for stored records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def generate_run_id(timestamp: datetime | None = None) -> str:
    """Generate a run_id: yyyymmdd_hhmm_{uuid4_short}."""
    ts = timestamp or datetime.now(timezone.utc)
    short_uuid = uuid.uuid4().hex[:8]
    return f"{ts.strftime('%Y%m%d_%H%M')}_{short_uuid}"


def new_id() -> str:
    """Opaque unique id for non-run records."""
    return uuid.uuid4().hex

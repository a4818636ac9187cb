# src/paywall/models.py - v1
"""Read-side views of entitlements."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from paygent.core.models import Entitlement


class EntitlementView(BaseModel):
    """Entitlement plus its expiry state at read time."""

    entitlement: Entitlement
    is_expired: bool
    time_remaining_ms: int

    @classmethod
    def at(cls, entitlement: Entitlement, now: datetime) -> EntitlementView:
        remaining = (entitlement.expires_at - now).total_seconds()
        return cls(
            entitlement=entitlement,
            is_expired=remaining <= 0,
            time_remaining_ms=max(0, int(remaining * 1000)),
        )


class ServiceStatus(BaseModel):
    active: bool
    expires_at: datetime | None = None

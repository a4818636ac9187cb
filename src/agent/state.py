# src/agent/state.py - v1
"""Mutable working state of one orchestration, filled in phase by phase."""

from __future__ import annotations

from pydantic import BaseModel, Field

from paygent.core.models import (
    Artifact,
    DecisionResult,
    Entitlement,
    RetrievedMemory,
    Service,
    SubscriptionResult,
    ThinkResult,
)


class RunState(BaseModel):
    """Results accumulated across phases of a single run."""

    run_id: str
    goal: str

    # === THINK ===
    plan: ThinkResult | None = None
    required_services: list[Service] = Field(default_factory=list)

    # === RETRIEVE ===
    memories: list[RetrievedMemory] = Field(default_factory=list)

    # === DECIDE ===
    decision: DecisionResult | None = None
    active_services: list[Service] = Field(default_factory=list)
    services_to_pay: list[Service] = Field(default_factory=list)

    # === PAY / VERIFY / UNLOCK ===
    subscriptions: dict[Service, SubscriptionResult] = Field(default_factory=dict)
    unlocked: list[Entitlement] = Field(default_factory=list)

    # === BUILD ===
    artifact: Artifact | None = None

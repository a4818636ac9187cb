# src/reasoning/base_reasoner.py - v1
"""Abstract reasoning interface consumed by the run orchestrator."""

from __future__ import annotations

from abc import ABC, abstractmethod

from paygent.core.models import (
    ArtifactSpec,
    DecisionResult,
    RetrievedMemory,
    Service,
    ThinkResult,
)


class BaseReasoner(ABC):
    """Plans a goal, decides which services to pay for, and builds the artifact.

    Any exception raised by an implementation is run-fatal for the caller.
    """

    @abstractmethod
    async def think(self, goal: str) -> ThinkResult:
        """Analyze the goal and list the services the plan expects to need."""

    @abstractmethod
    async def decide(
        self,
        goal: str,
        memories: list[RetrievedMemory],
        active_services: list[Service],
    ) -> DecisionResult:
        """Decide whether payment is needed and for which services."""

    @abstractmethod
    async def build(self, goal: str, memories: list[RetrievedMemory]) -> ArtifactSpec:
        """Generate the run's artifact from the goal and retrieved context."""

# src/agent/policy.py - v1
"""Bootstrap (demo) policy.

When enabled, a run whose planner asks for nothing still pays for a fixed
set of services, so that a demo always walks the PAY/VERIFY/UNLOCK path.
Kept apart from the decision logic, which never depends on it.
"""

from __future__ import annotations

from dataclasses import dataclass

from paygent.config.settings import Settings
from paygent.core.models import Service


@dataclass(frozen=True)
class BootstrapPolicy:
    enabled: bool = False
    services: tuple[Service, ...] = (Service.VOYAGE, Service.MONGODB)

    @classmethod
    def from_settings(cls, settings: Settings) -> BootstrapPolicy:
        return cls(
            enabled=settings.demo_mode,
            services=tuple(Service(s) for s in settings.demo_services_list),
        )

    def plan(self, required: list[Service]) -> list[Service]:
        """THINK: forced services when the planner returned none."""
        if self.enabled and not required:
            return list(self.services)
        return required

    def payment(self, to_pay: list[Service], active: list[Service]) -> list[Service]:
        """DECIDE: forced services when nothing is active and nothing was decided."""
        if self.enabled and not to_pay and not active:
            return list(self.services)
        return to_pay

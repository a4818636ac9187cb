# src/paywall/pricing.py - v1
"""Fixed per-service price table."""

from __future__ import annotations

from collections.abc import Mapping

from paygent.core.errors import UnknownServiceError
from paygent.core.models import Service

DEFAULT_PRICE = 0.50


def coerce_service(service: Service | str) -> Service:
    """Service enum from a name.

    Raises:
        UnknownServiceError: Name is not a paywalled service.
    """
    if isinstance(service, Service):
        return service
    try:
        return Service(str(service).strip().lower())
    except ValueError as exc:
        known = ", ".join(s.value for s in Service)
        raise UnknownServiceError(f"Unknown service {service!r}; expected one of: {known}") from exc


class PriceTable:
    """Unit price of each service in the payment currency."""

    def __init__(self, prices: Mapping[str, float] | None = None) -> None:
        self._prices = {s: DEFAULT_PRICE for s in Service}
        for name, price in (prices or {}).items():
            self._prices[coerce_service(name)] = float(price)

    def price(self, service: Service | str) -> float:
        return self._prices[coerce_service(service)]

    def as_dict(self) -> dict[str, float]:
        return {s.value: p for s, p in self._prices.items()}

# src/payments/simulated_client.py - v1
"""Payment backend used when no payment provider is configured.

Reports an empty balance, so the entitlement manager always takes the
simulated path. Real transfers are refused.
"""

from __future__ import annotations

from paygent.core.errors import PaymentError
from paygent.core.models import PaymentResult, Service
from paygent.payments.base_payment_client import BasePaymentClient


class SimulatedPaymentClient(BasePaymentClient):
    """Demo wallet without funds."""

    def __init__(
        self,
        address: str = "0x0000000000000000000000000000000000000000",
        network: str = "base",
        currency: str = "USDC",
        simulated_delay_s: float = 2.0,
    ) -> None:
        super().__init__(currency=currency, simulated_delay_s=simulated_delay_s)
        self._address = address
        self._network = network

    async def get_wallet_address(self) -> str:
        return self._address

    async def get_balance(self) -> float:
        return 0.0

    async def get_gas_balance(self) -> float:
        return 0.0

    async def pay(self, service: Service, recipient: str, amount: float) -> PaymentResult:
        raise PaymentError("No payment provider configured; only simulated payments are available")

    @property
    def provider_name(self) -> str:
        return "simulated"

    @property
    def network(self) -> str:
        return self._network

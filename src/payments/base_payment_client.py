# src/payments/base_payment_client.py - v1
"""Abstract payment backend interface.

Real transfers go through ``pay``. ``simulate_pay`` is shared by every
backend: it produces a clearly synthetic receipt after an artificial delay
so that simulated and real runs have similar timing.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod

from paygent.core.models import PaymentResult, Service, TxStatus

logger = logging.getLogger(__name__)

SIMULATED_TX_PREFIX = "sim-0x"


class BasePaymentClient(ABC):
    """Unified interface for payment providers."""

    def __init__(
        self,
        currency: str = "USDC",
        simulated_delay_s: float = 2.0,
    ) -> None:
        self._currency = currency
        self._simulated_delay_s = simulated_delay_s

    @abstractmethod
    async def get_wallet_address(self) -> str:
        """Address of the controlled account."""

    @abstractmethod
    async def get_balance(self) -> float:
        """Payment currency balance of the controlled account."""

    @abstractmethod
    async def get_gas_balance(self) -> float:
        """Gas asset balance of the controlled account."""

    @abstractmethod
    async def pay(self, service: Service, recipient: str, amount: float) -> PaymentResult:
        """Transfer ``amount`` to ``recipient`` and wait until it is mined.

        Raises:
            PaymentError: The transfer failed.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""

    @property
    @abstractmethod
    def network(self) -> str:
        """Network identifier."""

    @property
    def currency(self) -> str:
        return self._currency

    async def simulate_pay(self, service: Service, recipient: str, amount: float) -> PaymentResult:
        """Synthetic payment: no funds move and no explorer link exists."""
        logger.info("Simulating payment of %.2f %s for %s", amount, self._currency, service.value)
        if self._simulated_delay_s > 0:
            await asyncio.sleep(self._simulated_delay_s)
        return PaymentResult(
            tx_hash=f"{SIMULATED_TX_PREFIX}{secrets.token_hex(32)}",
            amount=amount,
            currency=self._currency,
            recipient=recipient,
            explorer_url="",
            simulated=True,
        )

    async def get_transaction_status(self, tx_hash: str) -> TxStatus:
        """Settlement status of a transaction.

        The default has no receipt lookup and reports every hash as
        confirmed; callers wait a fixed delay after ``pay`` before asking.
        Backends that can query settlement override this.
        """
        return TxStatus.CONFIRMED

    async def close(self) -> None:
        """Release backend resources."""


def is_simulated_hash(tx_hash: str) -> bool:
    return tx_hash.startswith(SIMULATED_TX_PREFIX)

# src/payments/cdp_client.py - v1
"""Coinbase Developer Platform payment adapter (USDC on Base).

Uses the cdp-sdk package. The SDK client and the named EVM account are
created lazily on first use and reused afterwards.

There is no on-chain receipt lookup. Settlement rests on the fixed
``verify_delay_s`` wait the orchestrator takes after paying: hashes this
client submitted report CONFIRMED and any other hash stays PENDING.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any

from paygent.core.errors import PaymentError
from paygent.core.models import PaymentResult, Service, TxStatus
from paygent.payments.base_payment_client import BasePaymentClient

logger = logging.getLogger(__name__)

_TOKEN_DECIMALS = {"usdc": 6, "eth": 18}


class CdpPaymentClient(BasePaymentClient):
    """Server-managed EVM account paying in USDC."""

    def __init__(
        self,
        api_key_id: str,
        api_key_secret: str,
        wallet_secret: str,
        account_name: str = "paygent",
        network: str = "base",
        explorer_tx_url: str = "https://basescan.org/tx/",
        currency: str = "USDC",
        simulated_delay_s: float = 2.0,
    ) -> None:
        super().__init__(currency=currency, simulated_delay_s=simulated_delay_s)
        self._api_key_id = api_key_id
        self._api_key_secret = api_key_secret
        self._wallet_secret = wallet_secret
        self._account_name = account_name
        self._network = network
        self._explorer_tx_url = explorer_tx_url
        self.__client = None
        self._account: Any = None
        self._submitted: set[str] = set()
        self._init_lock = asyncio.Lock()

    @property
    def _client(self):
        if self.__client is None:
            try:
                from cdp import CdpClient
            except ImportError as e:
                raise ImportError("cdp-sdk package required: pip install cdp-sdk") from e
            self.__client = CdpClient(
                api_key_id=self._api_key_id,
                api_key_secret=self._api_key_secret,
                wallet_secret=self._wallet_secret,
            )
        return self.__client

    async def _get_account(self) -> Any:
        async with self._init_lock:
            if self._account is None:
                self._account = await self._client.evm.get_or_create_account(
                    name=self._account_name
                )
                logger.info("Using CDP account %s", self._account.address)
        return self._account

    async def get_wallet_address(self) -> str:
        account = await self._get_account()
        return account.address

    async def get_balance(self) -> float:
        return await self._token_balance(self._currency.lower())

    async def get_gas_balance(self) -> float:
        return await self._token_balance("eth")

    async def _token_balance(self, symbol: str) -> float:
        account = await self._get_account()
        result = await self._client.evm.list_token_balances(
            address=account.address, network=self._network
        )
        for balance in result.balances:
            if (balance.token.symbol or "").lower() == symbol:
                raw = Decimal(balance.amount.amount)
                return float(raw / (Decimal(10) ** balance.amount.decimals))
        return 0.0

    async def pay(self, service: Service, recipient: str, amount: float) -> PaymentResult:
        account = await self._get_account()
        token = self._currency.lower()
        units = int((Decimal(str(amount)) * (Decimal(10) ** _TOKEN_DECIMALS.get(token, 6))))
        logger.info("Paying %.2f %s for %s to %s", amount, self._currency, service.value, recipient)
        try:
            result = await account.transfer(
                to=recipient, amount=units, token=token, network=self._network
            )
        except Exception as exc:
            logger.exception("CDP transfer failed")
            raise PaymentError(f"Payment failed: {exc}") from exc

        tx_hash = result if isinstance(result, str) else getattr(result, "transaction_hash", "")
        if not tx_hash:
            raise PaymentError("Payment failed: provider returned no transaction hash")
        self._submitted.add(tx_hash)
        logger.info("Payment complete: %s", tx_hash)
        return PaymentResult(
            tx_hash=tx_hash,
            amount=amount,
            currency=self._currency,
            recipient=recipient,
            explorer_url=f"{self._explorer_tx_url}{tx_hash}",
            simulated=False,
        )

    async def get_transaction_status(self, tx_hash: str) -> TxStatus:
        if tx_hash in self._submitted:
            return TxStatus.CONFIRMED
        logger.debug("No receipt for %s: not submitted by this client", tx_hash)
        return TxStatus.PENDING

    @property
    def provider_name(self) -> str:
        return "cdp"

    @property
    def network(self) -> str:
        return self._network

    async def close(self) -> None:
        if self.__client is not None:
            await self.__client.close()
            self.__client = None
            self._account = None

# src/payments/wallet.py - v1
"""Wallet summary for the HTTP layer."""

from __future__ import annotations

import logging

from pydantic import BaseModel

from paygent.payments.base_payment_client import BasePaymentClient

logger = logging.getLogger(__name__)


class WalletInfo(BaseModel):
    address: str
    balance: float
    currency: str
    network: str
    provider: str
    is_demo: bool = False
    is_ready: bool = True
    error: str | None = None


async def get_wallet_info(client: BasePaymentClient, demo_address: str) -> WalletInfo:
    """Address and balance of the payment account.

    Falls back to demo info (zero balance, ``is_ready=False``) when the
    backend cannot be reached.
    """
    try:
        address = await client.get_wallet_address()
        balance = await client.get_balance()
    except Exception as exc:
        logger.warning("Wallet unavailable, reporting demo info: %s", exc)
        return WalletInfo(
            address=demo_address,
            balance=0.0,
            currency=client.currency,
            network=client.network,
            provider=client.provider_name,
            is_demo=True,
            is_ready=False,
            error=str(exc),
        )
    return WalletInfo(
        address=address,
        balance=balance,
        currency=client.currency,
        network=client.network,
        provider=client.provider_name,
        is_demo=client.provider_name == "simulated",
    )

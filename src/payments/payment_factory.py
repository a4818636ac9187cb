# src/payments/payment_factory.py - v1
"""Factory: instantiate the payment backend from configuration."""

from __future__ import annotations

import logging

from paygent.config.settings import Settings
from paygent.payments.base_payment_client import BasePaymentClient

logger = logging.getLogger(__name__)


def create_payment_client(settings: Settings) -> BasePaymentClient:
    """CDP client when credentials are configured, simulated client otherwise.

    PAYMENT_MODE=simulated always yields the simulated client.
    """
    if settings.payment_mode != "simulated" and settings.has_cdp_credentials:
        from paygent.payments.cdp_client import CdpPaymentClient
        logger.debug("Creating payment client: provider=cdp, network=%s", settings.network_id)
        return CdpPaymentClient(
            api_key_id=settings.cdp_api_key_id,
            api_key_secret=settings.cdp_api_key_secret,
            wallet_secret=settings.cdp_wallet_secret,
            account_name=settings.cdp_account_name,
            network=settings.network_id,
            explorer_tx_url=settings.explorer_tx_url,
            currency=settings.payment_currency,
            simulated_delay_s=settings.simulated_payment_delay_s,
        )

    from paygent.payments.simulated_client import SimulatedPaymentClient
    logger.debug("Creating payment client: provider=simulated")
    return SimulatedPaymentClient(
        address=settings.paywall_recipient,
        network=settings.network_id,
        currency=settings.payment_currency,
        simulated_delay_s=settings.simulated_payment_delay_s,
    )

# tests/unit/payments/test_wallet.py - v1
"""Tests for payments/wallet.py - wallet summary and demo fallback."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from paygent.payments.simulated_client import SimulatedPaymentClient
from paygent.payments.wallet import get_wallet_info


class TestGetWalletInfo:
    @pytest.mark.asyncio
    async def test_ready_wallet(self, payment_client):
        payment_client.balance = 3.0
        info = await get_wallet_info(payment_client, "0xdemo")
        assert info.address == "0xagent"
        assert info.balance == 3.0
        assert info.is_ready is True
        assert info.is_demo is False
        assert info.network == "base-sepolia"

    @pytest.mark.asyncio
    async def test_simulated_wallet_is_demo(self):
        info = await get_wallet_info(SimulatedPaymentClient(address="0xdemo"), "0xdemo")
        assert info.is_demo is True
        assert info.provider == "simulated"

    @pytest.mark.asyncio
    async def test_backend_failure_falls_back(self, payment_client):
        payment_client.get_balance = AsyncMock(side_effect=ConnectionError("rpc down"))
        info = await get_wallet_info(payment_client, "0xdemo")
        assert info.address == "0xdemo"
        assert info.balance == 0.0
        assert info.is_demo is True
        assert info.is_ready is False
        assert info.error == "rpc down"

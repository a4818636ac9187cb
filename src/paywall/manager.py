# src/paywall/manager.py - v1
"""Entitlement manager: pay once per service, mint a signed grant.

Within a process a per-service lock serializes subscribe calls, so a
second caller sees the first caller's entitlement and returns it without
paying. Across processes only entitlement uniqueness is guaranteed: the
record store's atomic ``claim_entitlement`` keeps a single live row per
service, but a process that loses the claim has already paid and
recorded its transaction and cost. It returns the winner's entitlement.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from paygent.core.errors import PaymentError
from paygent.core.models import (
    Entitlement,
    PaymentResult,
    Service,
    SubscriptionResult,
    Transaction,
    TxStatus,
    utcnow,
)
from paygent.payments.base_payment_client import BasePaymentClient, is_simulated_hash
from paygent.paywall.models import EntitlementView, ServiceStatus
from paygent.paywall.pricing import PriceTable, coerce_service
from paygent.paywall.tokens import EntitlementClaims, EntitlementSigner
from paygent.storage.base_record_store import BaseRecordStore
from paygent.storage.ids import new_id

logger = logging.getLogger(__name__)


class EntitlementManager:
    """Enforces pay-to-unlock per service and issues entitlement tokens."""

    def __init__(
        self,
        store: BaseRecordStore,
        payment_client: BasePaymentClient,
        signer: EntitlementSigner,
        prices: PriceTable,
        recipient: str,
        payment_mode: str = "auto",
        min_payment_balance: float = 0.50,
        min_gas_balance: float = 0.00001,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._payments = payment_client
        self._signer = signer
        self._prices = prices
        self._recipient = recipient
        self._payment_mode = payment_mode
        self._min_payment_balance = min_payment_balance
        self._min_gas_balance = min_gas_balance
        self._clock = clock
        self._locks: dict[Service, asyncio.Lock] = {}

    def _lock_for(self, service: Service) -> asyncio.Lock:
        lock = self._locks.get(service)
        if lock is None:
            lock = self._locks[service] = asyncio.Lock()
        return lock

    async def subscribe(self, run_id: str, service: Service | str) -> SubscriptionResult:
        """Return the live entitlement for ``service``, paying for one if needed.

        Raises:
            UnknownServiceError: ``service`` is not a paywalled service.
            PaymentError: The payment backend failed.
            RunNotFoundError: ``run_id`` does not exist.
        """
        service = coerce_service(service)
        async with self._lock_for(service):
            existing = await self._store.find_active_entitlement(service, self._clock())
            if existing is not None:
                logger.info("Service %s already unlocked until %s", service.value, existing.expires_at)
                return SubscriptionResult(tx_hash="", entitlement=existing)

            amount = self._prices.price(service)
            receipt = await self._execute_payment(service, amount)
            now = self._clock()

            tx = Transaction(
                id=new_id(),
                run_id=run_id,
                tx_hash=receipt.tx_hash,
                amount=receipt.amount,
                currency=receipt.currency,
                recipient=receipt.recipient,
                purpose=f"Subscribe to {service.value}",
                status=TxStatus.CONFIRMED,
                simulated=receipt.simulated,
                explorer_url=receipt.explorer_url,
                created_at=now,
                confirmed_at=now,
            )
            await self._store.add_transaction(tx)
            await self._store.add_run_cost(run_id, receipt.amount)

            token, expires_at = self._signer.mint(service, run_id, tx.id, issued_at=now)
            entitlement = Entitlement(
                id=new_id(),
                run_id=run_id,
                tx_id=tx.id,
                service=service,
                token=token,
                expires_at=expires_at,
                is_active=True,
                created_at=now,
            )
            stored, created = await self._store.claim_entitlement(entitlement, now)
            if not created:
                logger.warning(
                    "Service %s was unlocked concurrently; keeping entitlement %s",
                    service.value, stored.id,
                )
            logger.info(
                "Subscribed to %s: tx=%s amount=%.2f %s simulated=%s",
                service.value, tx.tx_hash, tx.amount, tx.currency, tx.simulated,
            )
            return SubscriptionResult(
                tx_hash=tx.tx_hash,
                entitlement=stored,
                explorer_url=tx.explorer_url,
                transaction=tx,
            )

    async def _execute_payment(self, service: Service, amount: float) -> PaymentResult:
        if await self.should_use_real_payments():
            try:
                return await self._payments.pay(service, self._recipient, amount)
            except PaymentError:
                raise
            except Exception as exc:
                logger.exception("Payment backend failed")
                raise PaymentError(f"Payment failed: {exc}") from exc
        return await self._payments.simulate_pay(service, self._recipient, amount)

    async def should_use_real_payments(self) -> bool:
        """Real path needs both payment and gas balances above their minimums."""
        if self._payment_mode == "simulated":
            return False
        if self._payment_mode == "real":
            return True
        try:
            balance = await self._payments.get_balance()
            gas = await self._payments.get_gas_balance()
        except Exception as exc:
            logger.warning("Balance check failed, using simulated payments: %s", exc)
            return False
        use_real = balance >= self._min_payment_balance and gas >= self._min_gas_balance
        logger.info(
            "Balance %.4f %s, gas %.6f: %s payments",
            balance, self._payments.currency, gas, "real" if use_real else "simulated",
        )
        return use_real

    async def get_active_entitlement(self, service: Service | str) -> Entitlement | None:
        return await self._store.find_active_entitlement(coerce_service(service), self._clock())

    async def is_service_unlocked(self, service: Service | str) -> bool:
        return await self.get_active_entitlement(service) is not None

    async def get_active_entitlements(self) -> list[Service]:
        """Services with a live entitlement, in declaration order."""
        now = self._clock()
        active: list[Service] = []
        for service in Service:
            if await self._store.find_active_entitlement(service, now) is not None:
                active.append(service)
        return active

    async def verify_transaction(
        self,
        tx_hash: str,
        timeout_s: float = 60.0,
        poll_interval_s: float = 1.0,
    ) -> TxStatus:
        """Poll the payment backend until ``tx_hash`` settles or the timeout passes.

        Simulated hashes are confirmed immediately. Backends without a
        receipt lookup answer on the first call, so the poll only waits
        when the backend reports PENDING. Returns PENDING on timeout.
        """
        if is_simulated_hash(tx_hash):
            return TxStatus.CONFIRMED
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        while True:
            status = await self._payments.get_transaction_status(tx_hash)
            if status != TxStatus.PENDING or loop.time() >= deadline:
                return status
            await asyncio.sleep(min(poll_interval_s, max(0.0, deadline - loop.time())))

    def verify_token(self, token: str) -> EntitlementClaims:
        """Verify a token minted by this manager.

        Raises:
            InvalidEntitlementTokenError: Bad signature, issuer or expiry.
        """
        return self._signer.verify(token)

    async def list_entitlements(self, run_id: str | None = None) -> list[EntitlementView]:
        now = self._clock()
        return [EntitlementView.at(e, now) for e in await self._store.list_entitlements(run_id)]

    async def status(self) -> dict[str, ServiceStatus]:
        now = self._clock()
        result: dict[str, ServiceStatus] = {}
        for service in Service:
            ent = await self._store.find_active_entitlement(service, now)
            result[service.value] = ServiceStatus(
                active=ent is not None,
                expires_at=ent.expires_at if ent else None,
            )
        return result

    def prices(self) -> dict[str, float]:
        return self._prices.as_dict()

    async def reset(self) -> int:
        """Deactivate all entitlements; returns how many were active."""
        count = await self._store.deactivate_all_entitlements()
        logger.info("Reset %d entitlement(s)", count)
        return count

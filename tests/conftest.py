# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides a scripted reasoner, a deterministic embedder, a fake payment
backend and fully wired entitlement manager / run service instances.
No external dependencies: every backend is an in-process double.
"""

from __future__ import annotations

import hashlib
import math

import pytest
import pytest_asyncio

from paygent.agent.orchestrator import OrchestratorConfig
from paygent.agent.policy import BootstrapPolicy
from paygent.agent.registry import RunRegistry
from paygent.agent.service import RunService
from paygent.config.settings import Settings
from paygent.core.errors import PaymentError
from paygent.core.models import (
    ArtifactSpec,
    DecisionResult,
    PaymentResult,
    RetrievedMemory,
    Run,
    Service,
    ThinkResult,
    TxStatus,
)
from paygent.payments.base_payment_client import BasePaymentClient
from paygent.paywall.manager import EntitlementManager
from paygent.paywall.pricing import PriceTable
from paygent.paywall.tokens import EntitlementSigner
from paygent.rag.embeddings.base_embedder import BaseEmbedder
from paygent.rag.retriever import MemoryRetriever
from paygent.reasoning.base_reasoner import BaseReasoner
from paygent.storage.memory_store import InMemoryRecordStore

SECRET = "test-signing-secret-0123456789abcdef"
RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc9e7595f12AB3"


# === DOUBLES ===


class ScriptedReasoner(BaseReasoner):
    """Reasoner returning fixed answers; records every call."""

    def __init__(
        self,
        required: list[Service] | None = None,
        needs_payment: bool = False,
        services: list[Service] | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.required = required or []
        self.needs_payment = needs_payment
        self.services = services or []
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.seen_active: list[list[Service]] = []

    def _maybe_fail(self, op: str) -> None:
        self.calls.append(op)
        if self.fail_on == op:
            raise RuntimeError(f"{op} backend unavailable")

    async def think(self, goal: str) -> ThinkResult:
        self._maybe_fail("think")
        return ThinkResult(
            rationale=f"Plan for {goal}",
            planned_action="build",
            required_services=list(self.required),
        )

    async def decide(
        self,
        goal: str,
        memories: list[RetrievedMemory],
        active_services: list[Service],
    ) -> DecisionResult:
        self._maybe_fail("decide")
        self.seen_active.append(list(active_services))
        return DecisionResult(
            needs_payment=self.needs_payment,
            services=list(self.services),
            rationale="Scripted decision",
        )

    async def build(self, goal: str, memories: list[RetrievedMemory]) -> ArtifactSpec:
        self._maybe_fail("build")
        return ArtifactSpec(
            name="todo-app",
            kind="code",
            description="A small app",
            content="print('hello')\n" * 100,
        )


class HashEmbedder(BaseEmbedder):
    """Deterministic bag-of-words embedder (no network)."""

    def __init__(self, dims: int = 32) -> None:
        super().__init__("hash-bow", dims)
        self.fail = False

    async def _embed(self, texts: list[str], input_type: str) -> list[list[float]]:
        if self.fail:
            raise RuntimeError("embedding backend down")
        return [self._vec(t) for t in texts]

    def _vec(self, text: str) -> list[float]:
        vec = [0.0] * self._dimensions
        for word in text.lower().split():
            h = int(hashlib.md5(word.encode()).hexdigest(), 16)
            vec[h % self._dimensions] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    @property
    def provider_name(self) -> str:
        return "hash"


class FakePaymentClient(BasePaymentClient):
    """Payment backend with configurable balances and a transfer log."""

    def __init__(
        self,
        balance: float = 0.0,
        gas: float = 0.0,
        fail_pay: bool = False,
        status: TxStatus = TxStatus.CONFIRMED,
    ) -> None:
        super().__init__(currency="USDC", simulated_delay_s=0)
        self.balance = balance
        self.gas = gas
        self.fail_pay = fail_pay
        self.status = status
        self.paid: list[tuple[Service, str, float]] = []
        self.simulated: list[Service] = []

    async def get_wallet_address(self) -> str:
        return "0xagent"

    async def get_balance(self) -> float:
        return self.balance

    async def get_gas_balance(self) -> float:
        return self.gas

    async def pay(self, service: Service, recipient: str, amount: float) -> PaymentResult:
        if self.fail_pay:
            raise PaymentError("insufficient funds")
        self.paid.append((service, recipient, amount))
        self.balance -= amount
        return PaymentResult(
            tx_hash=f"0x{len(self.paid):064x}",
            amount=amount,
            currency=self.currency,
            recipient=recipient,
            explorer_url=f"https://basescan.org/tx/0x{len(self.paid):064x}",
        )

    async def simulate_pay(self, service: Service, recipient: str, amount: float) -> PaymentResult:
        self.simulated.append(service)
        return await super().simulate_pay(service, recipient, amount)

    async def get_transaction_status(self, tx_hash: str) -> TxStatus:
        return self.status

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def network(self) -> str:
        return "base-sepolia"


# === FIXTURES ===


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file, tuned for fast tests."""
    return Settings(
        _env_file=None,
        paywall_signing_secret=SECRET,
        simulated_payment_delay_s=0,
        verify_delay_s=0,
        stream_poll_interval_s=0.01,
        payment_mode="simulated",
    )


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def embedder() -> HashEmbedder:
    return HashEmbedder()


@pytest.fixture
def retriever(embedder, store) -> MemoryRetriever:
    return MemoryRetriever(embedder, store)


@pytest.fixture
def payment_client() -> FakePaymentClient:
    return FakePaymentClient()


@pytest.fixture
def signer() -> EntitlementSigner:
    return EntitlementSigner(SECRET, issuer="paygent", ttl_hours=24)


@pytest.fixture
def manager(store, payment_client, signer) -> EntitlementManager:
    return EntitlementManager(
        store,
        payment_client,
        signer,
        PriceTable(),
        recipient=RECIPIENT,
        payment_mode="auto",
    )


@pytest.fixture
def reasoner() -> ScriptedReasoner:
    return ScriptedReasoner()


@pytest.fixture
def fast_config() -> OrchestratorConfig:
    return OrchestratorConfig(top_k=3, preview_chars=50, verify_delay_s=0, verify_timeout_s=1)


@pytest.fixture
def run_service(store, reasoner, retriever, manager, fast_config) -> RunService:
    return RunService(
        store=store,
        reasoner=reasoner,
        retriever=retriever,
        entitlements=manager,
        config=fast_config,
        policy=BootstrapPolicy(),
        registry=RunRegistry(max_finished=10),
        poll_interval_s=0.01,
    )


@pytest_asyncio.fixture
async def pending_run(store) -> Run:
    run = Run(id="20260101_0000_abcd1234", goal="Build a todo app")
    await store.create_run(run)
    return run


@pytest.fixture
def scripted() -> type[ScriptedReasoner]:
    """The ScriptedReasoner class, for tests that build their own."""
    return ScriptedReasoner

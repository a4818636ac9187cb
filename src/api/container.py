# src/api/container.py - v1
"""Explicit dependency wiring.

Every adapter and store is built once from Settings and handed to the
components that use it. Tests pass their own doubles for any of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from paygent.agent.orchestrator import OrchestratorConfig
from paygent.agent.policy import BootstrapPolicy
from paygent.agent.registry import RunRegistry
from paygent.agent.service import RunService
from paygent.config.settings import Settings
from paygent.payments.base_payment_client import BasePaymentClient
from paygent.paywall.manager import EntitlementManager
from paygent.paywall.pricing import PriceTable
from paygent.paywall.tokens import EntitlementSigner
from paygent.rag.embeddings.base_embedder import BaseEmbedder
from paygent.rag.retriever import MemoryRetriever
from paygent.reasoning.base_reasoner import BaseReasoner
from paygent.storage.base_record_store import BaseRecordStore

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    settings: Settings
    store: BaseRecordStore
    embedder: BaseEmbedder
    retriever: MemoryRetriever
    reasoner: BaseReasoner
    payment_client: BasePaymentClient
    entitlements: EntitlementManager
    runs: RunService

    async def aclose(self) -> None:
        """Stop in-flight runs and release backend resources."""
        await self.runs.shutdown()
        await self.payment_client.close()
        await self.store.close()


def build_services(
    settings: Settings,
    *,
    store: BaseRecordStore | None = None,
    reasoner: BaseReasoner | None = None,
    embedder: BaseEmbedder | None = None,
    payment_client: BasePaymentClient | None = None,
) -> AppServices:
    """Construct every component from ``settings``.

    Raises:
        ConfigurationError: A required secret or API key is missing.
    """
    signer = EntitlementSigner(
        settings.paywall_signing_secret,
        issuer=settings.paywall_issuer,
        ttl_hours=settings.entitlement_ttl_hours,
    )

    if store is None:
        from paygent.storage.store_factory import create_record_store
        store = create_record_store(settings)
    if reasoner is None:
        from paygent.llm.client_factory import create_llm_client
        from paygent.reasoning.llm_reasoner import LLMReasoner
        reasoner = LLMReasoner(
            create_llm_client(settings),
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
    if embedder is None:
        from paygent.rag.embeddings.embedder_factory import create_embedder
        embedder = create_embedder(settings)
    if payment_client is None:
        from paygent.payments.payment_factory import create_payment_client
        payment_client = create_payment_client(settings)

    retriever = MemoryRetriever(embedder, store)
    entitlements = EntitlementManager(
        store,
        payment_client,
        signer,
        PriceTable(settings.service_prices),
        recipient=settings.paywall_recipient,
        payment_mode=settings.payment_mode,
        min_payment_balance=settings.min_payment_balance,
        min_gas_balance=settings.min_gas_balance,
    )
    runs = RunService(
        store=store,
        reasoner=reasoner,
        retriever=retriever,
        entitlements=entitlements,
        config=OrchestratorConfig.from_settings(settings),
        policy=BootstrapPolicy.from_settings(settings),
        registry=RunRegistry(max_finished=settings.max_finished_runs),
        poll_interval_s=settings.stream_poll_interval_s,
    )
    logger.info(
        "Services ready: store=%s, payments=%s, demo_mode=%s",
        settings.store_backend, payment_client.provider_name, settings.demo_mode,
    )
    return AppServices(
        settings=settings,
        store=store,
        embedder=embedder,
        retriever=retriever,
        reasoner=reasoner,
        payment_client=payment_client,
        entitlements=entitlements,
        runs=runs,
    )

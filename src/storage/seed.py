# src/storage/seed.py - v1
"""Demo memory corpus and the loader used by ``paygent seed``."""

from __future__ import annotations

import logging
from typing import Any

from paygent.core.errors import EmbeddingError
from paygent.rag.retriever import MemoryRetriever

logger = logging.getLogger(__name__)

SEED_MEMORIES: list[dict[str, Any]] = [
    {
        "text": (
            "The agent is an autonomous AI that acquires tools by paying for them "
            "with cryptocurrency. It uses a vector store for memory search, Voyage AI "
            "for embeddings, an LLM for reasoning and CDP for payments."
        ),
        "metadata": {"type": "system", "category": "identity"},
    },
    {
        "text": (
            "To generate code artifacts, the agent needs access to the Voyage embedding "
            "service for semantic search and the MongoDB vector database for memory "
            "retrieval. These services require payment via USDC on the Base network."
        ),
        "metadata": {"type": "capability", "category": "code-generation"},
    },
    {
        "text": (
            "The agent state machine follows this sequence: THINK (analyze goal), "
            "RETRIEVE (search memories), DECIDE (determine required services), PAY "
            "(execute USDC payment), VERIFY (confirm transaction), UNLOCK (activate "
            "entitlements), BUILD (generate artifact), COMPLETE."
        ),
        "metadata": {"type": "process", "category": "state-machine"},
    },
    {
        "text": (
            "Entitlements are time-limited access tokens that unlock specific services. "
            "Each entitlement is valid for 24 hours from the time of purchase. The agent "
            "must pay again to renew expired entitlements."
        ),
        "metadata": {"type": "system", "category": "entitlements"},
    },
    {
        "text": (
            "The agent's wallet lives on the Base network and holds USDC tokens that "
            "the agent uses to pay for services. A small ETH balance covers gas."
        ),
        "metadata": {"type": "system", "category": "wallet"},
    },
    {
        "text": (
            "Python type hints and pydantic models make data structures explicit. Best "
            "practices include validating at boundaries, using enums for state and "
            "keeping I/O in thin adapters."
        ),
        "metadata": {"type": "knowledge", "category": "programming"},
    },
    {
        "text": (
            "Server-Sent Events stream one-way updates from server to browser over a "
            "single HTTP response. Each message has optional id and event fields and a "
            "data field, separated by a blank line."
        ),
        "metadata": {"type": "knowledge", "category": "frontend"},
    },
    {
        "text": (
            "MongoDB Atlas Vector Search enables semantic search by storing embeddings "
            "alongside documents. The $vectorSearch aggregation stage performs approximate "
            "nearest neighbor search using cosine similarity."
        ),
        "metadata": {"type": "knowledge", "category": "database"},
    },
    {
        "text": (
            "The Voyage AI embedding model voyage-3.5 produces 1024-dimensional vectors "
            "optimized for retrieval tasks. Use the query input type for search queries "
            "and the document input type for stored content."
        ),
        "metadata": {"type": "knowledge", "category": "embeddings"},
    },
    {
        "text": (
            "CDP lets AI agents perform on-chain transactions autonomously. The SDK "
            "supports USDC transfers, token swaps and smart contract interactions on "
            "multiple networks including Base."
        ),
        "metadata": {"type": "knowledge", "category": "blockchain"},
    },
]


async def seed_memories(retriever: MemoryRetriever) -> tuple[int, int]:
    """Embed and store the demo corpus.

    A memory that fails to embed is logged and skipped.

    Returns:
        ``(stored, failed)`` counts.
    """
    stored = failed = 0
    for i, item in enumerate(SEED_MEMORIES, start=1):
        try:
            await retriever.add(item["text"], metadata=item["metadata"], source="seed")
        except EmbeddingError as exc:
            logger.warning("Seed memory %d/%d failed: %s", i, len(SEED_MEMORIES), exc)
            failed += 1
            continue
        stored += 1
    logger.info("Seeding complete: %d stored, %d failed", stored, failed)
    return stored, failed

# src/rag/retriever.py - v1
"""Memory retrieval and ingestion over an embedder and a record store.

Queries are embedded with the query instruction and documents with the
document instruction; the store ranks candidates by cosine similarity.
"""

from __future__ import annotations

import logging
from typing import Any

from paygent.core.errors import EmbeddingError
from paygent.core.models import Memory, RetrievedMemory
from paygent.rag.embeddings.base_embedder import BaseEmbedder
from paygent.storage.base_record_store import BaseRecordStore
from paygent.storage.ids import new_id

logger = logging.getLogger(__name__)


class MemoryRetriever:
    """Semantic search and ingestion of agent memories."""

    def __init__(self, embedder: BaseEmbedder, store: BaseRecordStore) -> None:
        self._embedder = embedder
        self._store = store

    async def search(self, query: str, top_k: int = 5) -> list[RetrievedMemory]:
        """Top-k memories most similar to ``query``, best first.

        Raises:
            EmbeddingError: The embedding backend failed.
        """
        try:
            vector = await self._embedder.embed_query(query)
        except Exception as exc:
            logger.exception("Query embedding failed")
            raise EmbeddingError(f"Embedding failed: {exc}") from exc
        results = await self._store.search_memories(vector, top_k)
        logger.debug("Retrieved %d memories (top_k=%d)", len(results), top_k)
        return results

    async def add(
        self,
        text: str,
        metadata: dict[str, Any] | None = None,
        source: str = "manual",
    ) -> Memory:
        """Embed ``text`` as a document and store it.

        Raises:
            EmbeddingError: The embedding backend failed.
        """
        try:
            vectors = await self._embedder.embed_texts([text])
        except Exception as exc:
            logger.exception("Document embedding failed")
            raise EmbeddingError(f"Embedding failed: {exc}") from exc
        memory = Memory(
            id=new_id(),
            text=text,
            embedding=vectors[0],
            metadata=metadata or {},
            source=source,
        )
        await self._store.add_memory(memory)
        logger.info("Stored memory %s (%d dims)", memory.id, len(memory.embedding))
        return memory

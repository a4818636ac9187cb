# src/rag/embeddings/base_embedder.py - v3
"""Embedding interface for agent memories.

Memories are embedded as documents when stored and goals as queries when
the agent retrieves, since providers such as Voyage apply a different
instruction to each. Every vector handed to the record store must have
``dimensions`` entries or cosine ranking against stored memories is
meaningless, so the base class checks the shape of what a provider
returns.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from paygent.core.errors import EmbeddingError

InputType = Literal["document", "query"]


class BaseEmbedder(ABC):
    """Provider-neutral embedder; subclasses implement ``_embed``."""

    def __init__(self, model: str, dimensions: int, api_key: str | None = None) -> None:
        self._model = model
        self._dimensions = dimensions
        self._api_key = api_key

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed memory texts for storage. An empty batch makes no call."""
        if not texts:
            return []
        return self._checked(await self._embed(texts, "document"), len(texts))

    async def embed_query(self, query: str) -> list[float]:
        """Embed a retrieval query."""
        return self._checked(await self._embed([query], "query"), 1)[0]

    @abstractmethod
    async def _embed(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        """One provider call for a non-empty batch."""

    def _checked(self, vectors: list[list[float]], expected: int) -> list[list[float]]:
        if len(vectors) != expected:
            raise EmbeddingError(
                f"{self.provider_name} returned {len(vectors)} vectors for {expected} texts"
            )
        for vector in vectors:
            if len(vector) != self._dimensions:
                raise EmbeddingError(
                    f"{self.provider_name} returned {len(vector)}-dim vector, "
                    f"expected {self._dimensions}"
                )
        return vectors

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier reported by the health endpoint."""

# tests/unit/rag/embeddings/test_embedders.py - v3
"""Tests for embedding adapters - SDK call mapping and vector shape checks."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from paygent.core.errors import EmbeddingError
from paygent.rag.embeddings.openai_embedder import OpenAIEmbedder
from paygent.rag.embeddings.voyage_embedder import VoyageEmbedder


def _voyage(vectors: list[list[float]], dimensions: int = 2) -> tuple[VoyageEmbedder, AsyncMock]:
    e = VoyageEmbedder(api_key="k", dimensions=dimensions)
    embed = AsyncMock(return_value=SimpleNamespace(embeddings=vectors))
    e._VoyageEmbedder__client = MagicMock(embed=embed)
    return e, embed


class TestVoyageEmbedder:
    def test_properties(self):
        e = VoyageEmbedder(model="voyage-3.5", dimensions=1024)
        assert e.provider_name == "voyage"
        assert e.model_name == "voyage-3.5"
        assert e.dimensions == 1024

    @pytest.mark.asyncio
    async def test_document_and_query_input_types(self):
        e, embed = _voyage([[0.1, 0.2]])

        assert await e.embed_texts(["doc"]) == [[0.1, 0.2]]
        assert embed.await_args.kwargs["input_type"] == "document"
        assert embed.await_args.kwargs["output_dimension"] == 2

        assert await e.embed_query("q") == [0.1, 0.2]
        assert embed.await_args.kwargs["input_type"] == "query"

    @pytest.mark.asyncio
    async def test_empty_batch_skips_api(self):
        e, embed = _voyage([])
        assert await e.embed_texts([]) == []
        embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected(self):
        e, _ = _voyage([[0.1, 0.2, 0.3]])
        with pytest.raises(EmbeddingError, match="3-dim vector, expected 2"):
            await e.embed_query("q")

    @pytest.mark.asyncio
    async def test_missing_vectors_rejected(self):
        e, _ = _voyage([[0.1, 0.2]])
        with pytest.raises(EmbeddingError, match="1 vectors for 2 texts"):
            await e.embed_texts(["a", "b"])


class TestOpenAIEmbedder:
    def test_properties(self):
        e = OpenAIEmbedder(model="text-embedding-3-small", dimensions=1536)
        assert e.provider_name == "openai"
        assert e.model_name == "text-embedding-3-small"
        assert e.dimensions == 1536

    @pytest.mark.asyncio
    async def test_dimensions_passed_to_api(self):
        e = OpenAIEmbedder(api_key="k", dimensions=256)
        create = AsyncMock(
            return_value=SimpleNamespace(data=[SimpleNamespace(index=0, embedding=[0.5] * 256)])
        )
        e._OpenAIEmbedder__client = MagicMock()
        e._OpenAIEmbedder__client.embeddings.create = create

        vec = await e.embed_query("q")
        assert len(vec) == 256
        assert create.await_args.kwargs["dimensions"] == 256

    @pytest.mark.asyncio
    async def test_batch_kept_in_input_order(self):
        e = OpenAIEmbedder(api_key="k", dimensions=1)
        e._OpenAIEmbedder__client = MagicMock()
        e._OpenAIEmbedder__client.embeddings.create = AsyncMock(
            return_value=SimpleNamespace(
                data=[
                    SimpleNamespace(index=1, embedding=[2.0]),
                    SimpleNamespace(index=0, embedding=[1.0]),
                ]
            )
        )
        assert await e.embed_texts(["first", "second"]) == [[1.0], [2.0]]

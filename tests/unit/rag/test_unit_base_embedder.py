# tests/unit/rag/test_base_embedder.py - v3
"""Tests for rag/embeddings/base_embedder.py."""

from __future__ import annotations

import pytest

from paygent.rag.embeddings.base_embedder import BaseEmbedder


class _Fixed(BaseEmbedder):
    def __init__(self) -> None:
        super().__init__("fixed", 2)
        self.calls: list[tuple[list[str], str]] = []

    async def _embed(self, texts, input_type):
        self.calls.append((texts, input_type))
        return [[1.0, 0.0] for _ in texts]

    @property
    def provider_name(self) -> str:
        return "fixed"


class TestBaseEmbedder:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            BaseEmbedder("m", 2)  # type: ignore[abstract]

    def test_model_and_dimensions(self):
        e = _Fixed()
        assert e.model_name == "fixed"
        assert e.dimensions == 2

    @pytest.mark.asyncio
    async def test_routes_input_types(self):
        e = _Fixed()
        await e.embed_texts(["a", "b"])
        await e.embed_query("q")
        assert e.calls == [(["a", "b"], "document"), (["q"], "query")]

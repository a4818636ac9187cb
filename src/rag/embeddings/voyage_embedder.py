# src/rag/embeddings/voyage_embedder.py - v3
"""Voyage AI embeddings (voyageai SDK), the paywalled memory backend."""

from __future__ import annotations

from paygent.rag.embeddings.base_embedder import BaseEmbedder, InputType


class VoyageEmbedder(BaseEmbedder):
    def __init__(
        self,
        model: str = "voyage-3.5",
        api_key: str | None = None,
        dimensions: int = 1024,
    ) -> None:
        super().__init__(model, dimensions, api_key)
        self.__client = None

    @property
    def _client(self):
        if self.__client is None:
            try:
                import voyageai
            except ImportError as e:
                raise ImportError("voyageai package required: pip install voyageai") from e
            self.__client = voyageai.AsyncClient(api_key=self._api_key or None)
        return self.__client

    async def _embed(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        result = await self._client.embed(
            texts,
            model=self._model,
            input_type=input_type,
            output_dimension=self._dimensions,
        )
        return result.embeddings

    @property
    def provider_name(self) -> str:
        return "voyage"

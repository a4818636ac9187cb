# src/rag/embeddings/openai_embedder.py - v3
"""OpenAI embeddings (openai SDK).

The endpoint has no query/document distinction, so both input types map
to the same request. ``dimensions`` truncates text-embedding-3 vectors
to the size the memory store was built with.
"""

from __future__ import annotations

import logging

from paygent.rag.embeddings.base_embedder import BaseEmbedder, InputType

logger = logging.getLogger(__name__)


class OpenAIEmbedder(BaseEmbedder):
    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        dimensions: int = 1536,
    ) -> None:
        super().__init__(model, dimensions, api_key)
        self.__client = None

    @property
    def _client(self):
        if self.__client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError("openai package required: pip install openai") from e
            self.__client = openai.AsyncOpenAI(api_key=self._api_key or "")
        return self.__client

    async def _embed(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        response = await self._client.embeddings.create(
            input=texts, model=self._model, dimensions=self._dimensions
        )
        ordered = sorted(response.data, key=lambda item: item.index)
        logger.debug("Embedded %d %s text(s) with %s", len(texts), input_type, self._model)
        return [item.embedding for item in ordered]

    @property
    def provider_name(self) -> str:
        return "openai"

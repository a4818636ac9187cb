# src/llm/base_client.py - v2
"""Abstract LLM client interface used by the reasoner."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from paygent.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Text completion.

        When ``response_format`` is given the provider is asked for JSON
        matching that model's schema; ``LLMResponse.content`` is the raw JSON.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openai, anthropic)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""

# src/llm/adapters/anthropic_adapter.py - v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Structured outputs use a single forced tool whose input schema is the
requested pydantic model; the tool input is returned as JSON text.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from pydantic import BaseModel

from paygent.llm.base_client import BaseLLMClient
from paygent.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_TOOL_NAME = "structured_output"


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        # The Messages API takes the system prompt separately.
        system_parts = [system] if system else []
        api_messages: list[dict[str, Any]] = []
        for m in messages:
            if m.role == "system":
                system_parts.append(m.content)
            else:
                api_messages.append({"role": m.role, "content": m.content})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": api_messages,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        if response_format is not None:
            kwargs["tools"] = [
                {
                    "name": _TOOL_NAME,
                    "description": "Return structured data matching the schema",
                    "input_schema": response_format.model_json_schema(),
                }
            ]
            kwargs["tool_choice"] = {"type": "tool", "name": _TOOL_NAME}

        start = time.monotonic()
        response = await self._client.messages.create(**kwargs)
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=self._extract_content(response, response_format is not None),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    @staticmethod
    def _extract_content(response: Any, structured: bool) -> str:
        """Extract text (or tool input JSON) from response content blocks."""
        for block in response.content:
            if structured and getattr(block, "type", None) == "tool_use":
                return json.dumps(block.input)
            if getattr(block, "type", None) == "text":
                return block.text
        return ""

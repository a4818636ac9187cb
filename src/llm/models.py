# src/llm/models.py - v3
"""Chat message and completion types shared by the reasoning adapters."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    role: Role
    content: str

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)


class LLMResponse(BaseModel):
    """Completion text plus the usage figures the reasoner logs."""

    content: str
    model: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

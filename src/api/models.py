# src/api/models.py - v2
"""HTTP request and response bodies.

Request bodies accept camelCase keys (``runId``) as well as snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from paygent.core.models import Memory, RunStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RunRequest(_CamelModel):
    goal: str = Field(min_length=1, max_length=4000)


class RunStartedResponse(_CamelModel):
    run_id: str
    status: RunStatus


class SubscribeRequest(_CamelModel):
    run_id: str = Field(min_length=1)


class TokenVerifyRequest(_CamelModel):
    token: str = Field(min_length=1)


class TokenVerifyResponse(_CamelModel):
    valid: bool
    service: str | None = None
    run_id: str | None = None
    tx_id: str | None = None
    expires_at: datetime | None = None
    error: str | None = None


class MemoryCreateRequest(_CamelModel):
    text: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: str = "manual"


class MemorySearchRequest(_CamelModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=50)


class MemoryView(BaseModel):
    """Memory without its embedding vector."""

    id: str
    text: str
    metadata: dict[str, Any]
    source: str
    created_at: datetime
    dimensions: int

    @classmethod
    def of(cls, memory: Memory) -> MemoryView:
        return cls(
            id=memory.id,
            text=memory.text,
            metadata=memory.metadata,
            source=memory.source,
            created_at=memory.created_at,
            dimensions=len(memory.embedding),
        )


class CountResponse(BaseModel):
    count: int


class ResetResponse(BaseModel):
    deactivated: int


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    llm_provider: str
    embedding_provider: str
    payment_provider: str
    store_backend: str
    demo_mode: bool
    active_runs: int

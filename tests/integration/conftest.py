# tests/integration/conftest.py - v8
"""Shared fixtures for integration tests.

Everything runs in-process: the LLM is a queued mock behind the real
LLMReasoner, embeddings are hashed and payments go through the real
SimulatedPaymentClient. No network or Docker required.

Changelog:
    v8: Replace container fixtures with in-process app fixtures.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
from typing import Any

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from paygent.api.container import AppServices, build_services
from paygent.api.server import create_app
from paygent.config.settings import Settings
from paygent.llm.base_client import BaseLLMClient
from paygent.llm.models import LLMResponse, Message
from paygent.payments.simulated_client import SimulatedPaymentClient
from paygent.rag.embeddings.base_embedder import BaseEmbedder
from paygent.reasoning.llm_reasoner import LLMReasoner
from paygent.storage.memory_store import InMemoryRecordStore

logger = logging.getLogger(__name__)

SECRET = "integration-signing-secret-0123456789"


# =====================================================================
#  MOCK LLM CLIENT
# =====================================================================

class MockLLMClient(BaseLLMClient):
    """Mock LLM client returning queued responses, then a default."""

    def __init__(self, default_response: str = '{"result": "mock"}'):
        self._default_response = default_response
        self._response_queue: list[str] = []
        self.calls: list[dict[str, Any]] = []

    def set_responses(self, *responses: str) -> None:
        self._response_queue = list(responses)

    def set_default(self, response: str) -> None:
        self._default_response = response

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        content = self._response_queue.pop(0) if self._response_queue else self._default_response
        self.calls.append({
            "messages": messages, "system": system,
            "max_tokens": max_tokens, "temperature": temperature,
        })
        return LLMResponse(
            content=content, input_tokens=50, output_tokens=len(content) // 4,
            model="mock-model", provider="mock", latency_ms=10,
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def model_name(self) -> str:
        return "mock-model"


class MockEmbedder(BaseEmbedder):
    """Deterministic bag-of-words embedder counting embedded texts."""

    def __init__(self, dimensions: int = 64):
        super().__init__("mock-embedder", dimensions)
        self.call_count = 0

    async def _embed(self, texts: list[str], input_type: str) -> list[list[float]]:
        self.call_count += len(texts)
        return [self._text_to_vec(t) for t in texts]

    def _text_to_vec(self, text: str) -> list[float]:
        vec = [0.0] * self._dimensions
        for word in text.lower().split():
            digest = hashlib.sha256(word.strip(".,!?").encode()).hexdigest()
            vec[int(digest, 16) % self._dimensions] += 1.0
        norm = math.sqrt(sum(x * x for x in vec)) or 1.0
        return [x / norm for x in vec]

    @property
    def provider_name(self) -> str:
        return "mock"


# =====================================================================
#  SCRIPTED LLM ANSWERS
# =====================================================================

def think_answer(required: list[str] | None = None) -> str:
    return json.dumps({
        "thought": "Plan the app",
        "action": "build",
        "requiredServices": required or [],
    })


def decide_answer(services: list[str] | None = None) -> str:
    return json.dumps({
        "needsPayment": bool(services),
        "services": services or [],
        "reasoning": "Checked entitlements",
    })


def build_answer(name: str = "todo-app") -> str:
    body = json.dumps({
        "name": name,
        "type": "code",
        "description": "A todo app",
        "content": "def main():\n    print('todo')\n",
    })
    return f"```json\n{body}\n```"


# =====================================================================
#  FIXTURES
# =====================================================================

@pytest.fixture
def int_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        paywall_signing_secret=SECRET,
        payment_mode="simulated",
        simulated_payment_delay_s=0,
        verify_delay_s=0,
        stream_poll_interval_s=0.01,
        store_path=tmp_path / "paygent.db",
    )


@pytest.fixture
def mock_llm() -> MockLLMClient:
    return MockLLMClient()


@pytest.fixture
def mock_embedder() -> MockEmbedder:
    return MockEmbedder()


@pytest.fixture
def services(int_settings, mock_llm, mock_embedder) -> AppServices:
    return build_services(
        int_settings,
        store=InMemoryRecordStore(),
        reasoner=LLMReasoner(mock_llm),
        embedder=mock_embedder,
        payment_client=SimulatedPaymentClient(
            address="0xagent", network="base-sepolia", simulated_delay_s=0,
        ),
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as c:
        yield c


@pytest.fixture
def script_llm(mock_llm):
    """Queue THINK, DECIDE and BUILD answers for the next run."""

    def _script(services: list[str] | None = None, required: list[str] | None = None) -> None:
        mock_llm.set_responses(
            think_answer(required or services),
            decide_answer(services),
            build_answer(),
        )

    return _script


def parse_sse(body: str) -> list[dict[str, Any]]:
    """Split an SSE body into wire events, checking id/event framing."""
    out = []
    for frame in body.split("\n\n"):
        if not frame.strip():
            continue
        fields = dict(line.split(": ", 1) for line in frame.split("\n"))
        event = json.loads(fields["data"])
        assert int(fields["id"]) == event["seq"]
        assert fields["event"] == event["kind"]
        out.append(event)
    return out


@pytest.fixture
def sse():
    return parse_sse

# src/reasoning/llm_reasoner.py - v1
"""Reasoner backed by any BaseLLMClient, using JSON-only prompts.

Responses are parsed leniently: markdown fences are stripped, unknown
service names are dropped with a warning and missing fields fall back to
neutral defaults. Transport failures are retried by ``with_retry``;
anything still failing surfaces as ReasoningError.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from paygent.core.errors import ReasoningError
from paygent.core.models import (
    ArtifactSpec,
    DecisionResult,
    RetrievedMemory,
    Service,
    ThinkResult,
)
from paygent.llm.base_client import BaseLLMClient
from paygent.llm.models import Message
from paygent.llm.retry import LLMRetryExhausted, RetryConfig, with_retry
from paygent.reasoning import prompts
from paygent.reasoning.base_reasoner import BaseReasoner

logger = logging.getLogger(__name__)

_ARTIFACT_KINDS = ("code", "spec", "document")


class LLMReasoner(BaseReasoner):
    """THINK/DECIDE/BUILD over a chat-completion LLM."""

    def __init__(
        self,
        llm: BaseLLMClient,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        retry_configs: dict[str, RetryConfig] | None = None,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._retry_configs = retry_configs

    async def think(self, goal: str) -> ThinkResult:
        parsed = await self._ask("think", prompts.think_system(), goal)
        result = ThinkResult(
            rationale=_text(parsed.get("thought")) or "Analyzing the request...",
            planned_action=_text(parsed.get("action")) or None,
            required_services=parse_services(parsed.get("requiredServices")),
        )
        logger.info(
            "THINK complete: %d required service(s)", len(result.required_services)
        )
        return result

    async def decide(
        self,
        goal: str,
        memories: list[RetrievedMemory],
        active_services: list[Service],
    ) -> DecisionResult:
        user = prompts.DECIDE_USER.format(
            goal=goal, memories=prompts.format_memories(memories, with_scores=True)
        )
        parsed = await self._ask("decide", prompts.decide_system(active_services), user)
        result = DecisionResult(
            needs_payment=bool(parsed.get("needsPayment", False)),
            services=parse_services(parsed.get("services")),
            rationale=_text(parsed.get("reasoning")) or "Evaluating service requirements...",
        )
        logger.info("DECIDE complete: needs_payment=%s", result.needs_payment)
        return result

    async def build(self, goal: str, memories: list[RetrievedMemory]) -> ArtifactSpec:
        user = prompts.BUILD_USER.format(goal=goal, memories=prompts.format_memories(memories))
        parsed = await self._ask("build", prompts.build_system(), user)
        kind = parsed.get("type")
        spec = ArtifactSpec(
            name=_text(parsed.get("name")) or "artifact",
            kind=kind if kind in _ARTIFACT_KINDS else "document",
            description=_text(parsed.get("description")) or "Generated artifact",
            content=_text(parsed.get("content")),
        )
        logger.info("BUILD complete: created %s %r", spec.kind, spec.name)
        return spec

    async def _ask(self, operation: str, system: str, user: str) -> dict[str, Any]:
        try:
            response = await with_retry(
                self._llm.complete,
                [Message.user(user)],
                system=system,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                operation=operation,
                retry_configs=self._retry_configs,
            )
        except LLMRetryExhausted as exc:
            raise ReasoningError(f"Reasoning call '{operation}' failed: {exc.last_error}") from exc
        logger.debug(
            "%s: %d tokens from %s in %d ms",
            operation, response.total_tokens, response.model, response.latency_ms,
        )

        try:
            parsed = parse_json_response(response.content)
        except json.JSONDecodeError as exc:
            logger.warning("%s: JSON parse failed: %s", operation, exc)
            raise ReasoningError(f"Reasoning call '{operation}' returned invalid JSON") from exc
        if not isinstance(parsed, dict):
            raise ReasoningError(f"Reasoning call '{operation}' returned a non-object")
        return parsed


def parse_json_response(content: str) -> Any:
    """Parse LLM JSON response, handling markdown fences."""
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [line for line in lines if not line.strip().startswith("```")]
        text = "\n".join(lines)
    return json.loads(text)


def parse_services(raw: Any) -> list[Service]:
    """Known services in the given order, deduplicated; unknown names dropped."""
    if not isinstance(raw, list):
        return []
    services: list[Service] = []
    for item in raw:
        try:
            service = Service(str(item).strip().lower())
        except ValueError:
            logger.warning("Ignoring unknown service name from reasoning backend: %r", item)
            continue
        if service not in services:
            services.append(service)
    return services


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)

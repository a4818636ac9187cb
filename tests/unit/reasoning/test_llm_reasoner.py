# tests/unit/reasoning/test_llm_reasoner.py - v1
"""Tests for reasoning/llm_reasoner.py - lenient parsing over a mocked LLM."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from paygent.core.errors import ReasoningError
from paygent.core.models import RetrievedMemory, Service
from paygent.llm.models import LLMResponse
from paygent.llm.retry import RetryConfig
from paygent.reasoning.llm_reasoner import LLMReasoner, parse_json_response, parse_services

_NO_RETRY: dict[str, RetryConfig] = {}


def _llm(*contents: str) -> MagicMock:
    llm = MagicMock()
    llm.complete = AsyncMock(
        side_effect=[LLMResponse(content=c, model="m", provider="p") for c in contents]
    )
    return llm


class TestParseJsonResponse:
    def test_plain(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_invalid(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json_response("not json")


class TestParseServices:
    def test_known_in_order_deduplicated(self):
        assert parse_services(["MongoDB", "voyage", "mongodb"]) == [Service.MONGODB, Service.VOYAGE]

    def test_unknown_dropped(self):
        assert parse_services(["redis", "cdp"]) == [Service.CDP]

    def test_non_list(self):
        assert parse_services("voyage") == []
        assert parse_services(None) == []


class TestThink:
    @pytest.mark.asyncio
    async def test_parses_plan(self):
        llm = _llm(json.dumps({"thought": "t", "action": "a", "requiredServices": ["voyage"]}))
        result = await LLMReasoner(llm, retry_configs=_NO_RETRY).think("goal")
        assert result.rationale == "t"
        assert result.planned_action == "a"
        assert result.required_services == [Service.VOYAGE]
        assert llm.complete.await_args.args[0][0].content == "goal"

    @pytest.mark.asyncio
    async def test_defaults_when_fields_missing(self):
        result = await LLMReasoner(_llm("{}"), retry_configs=_NO_RETRY).think("goal")
        assert result.rationale == "Analyzing the request..."
        assert result.planned_action is None
        assert result.required_services == []


class TestDecide:
    @pytest.mark.asyncio
    async def test_parses_decision(self):
        llm = _llm(json.dumps({"needsPayment": True, "services": ["cdp"], "reasoning": "r"}))
        mems = [RetrievedMemory(id="m", text="fact", score=0.5)]
        result = await LLMReasoner(llm, retry_configs=_NO_RETRY).decide("g", mems, [Service.VOYAGE])
        assert result.needs_payment is True
        assert result.services == [Service.CDP]
        assert "voyage" in llm.complete.await_args.kwargs["system"]
        assert "relevance: 50.0%" in llm.complete.await_args.args[0][0].content

    @pytest.mark.asyncio
    async def test_defaults(self):
        result = await LLMReasoner(_llm("{}"), retry_configs=_NO_RETRY).decide("g", [], [])
        assert result.needs_payment is False
        assert result.services == []


class TestBuild:
    @pytest.mark.asyncio
    async def test_parses_artifact(self):
        payload = {"name": "app", "type": "code", "description": "d", "content": "x = 1"}
        spec = await LLMReasoner(_llm(json.dumps(payload)), retry_configs=_NO_RETRY).build("g", [])
        assert (spec.name, spec.kind, spec.content) == ("app", "code", "x = 1")

    @pytest.mark.asyncio
    async def test_unknown_kind_falls_back(self):
        spec = await LLMReasoner(_llm('{"type": "video"}'), retry_configs=_NO_RETRY).build("g", [])
        assert spec.kind == "document"
        assert spec.name == "artifact"
        assert spec.description == "Generated artifact"


class TestFailures:
    @pytest.mark.asyncio
    async def test_invalid_json(self):
        with pytest.raises(ReasoningError, match="invalid JSON"):
            await LLMReasoner(_llm("I think..."), retry_configs=_NO_RETRY).think("g")

    @pytest.mark.asyncio
    async def test_non_object(self):
        with pytest.raises(ReasoningError, match="non-object"):
            await LLMReasoner(_llm("[1, 2]"), retry_configs=_NO_RETRY).think("g")

    @pytest.mark.asyncio
    async def test_backend_failure(self):
        llm = MagicMock()
        llm.complete = AsyncMock(side_effect=ConnectionError("refused"))
        with pytest.raises(ReasoningError, match="refused"):
            await LLMReasoner(llm, retry_configs=_NO_RETRY).build("g", [])

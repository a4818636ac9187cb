# tests/unit/llm/test_models.py - v1
"""Tests for llm/models.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from paygent.llm.models import LLMResponse, Message


class TestMessage:
    def test_user_shortcut(self):
        assert Message.user("hi") == Message(role="user", content="hi")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            Message(role="tool", content="x")


class TestLLMResponse:
    def test_total_tokens(self):
        resp = LLMResponse(content="{}", model="m", provider="p", input_tokens=7, output_tokens=5)
        assert resp.total_tokens == 12
        assert resp.latency_ms == 0

# tests/unit/agent/test_registry.py - v1
"""Tests for agent/registry.py - live and finished run handles."""

from __future__ import annotations

import pytest

from paygent.agent.publisher import EventPublisher
from paygent.agent.registry import RunHandle, RunRegistry


def _handle(run_id: str) -> RunHandle:
    return RunHandle(run_id=run_id, publisher=EventPublisher(run_id))


class TestRunRegistry:
    @pytest.mark.asyncio
    async def test_register_and_get(self):
        reg = RunRegistry()
        handle = _handle("r1")
        reg.register(handle)
        assert reg.get("r1") is handle
        assert "r1" in reg
        assert len(reg) == 1
        assert reg.get("r2") is None

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self):
        reg = RunRegistry()
        reg.register(_handle("r1"))
        with pytest.raises(ValueError, match="already registered"):
            reg.register(_handle("r1"))

    @pytest.mark.asyncio
    async def test_in_flight_excludes_finished(self):
        reg = RunRegistry()
        reg.register(_handle("r1"))
        reg.register(_handle("r2"))
        reg.mark_finished("r1")
        assert [h.run_id for h in reg.in_flight()] == ["r2"]
        assert "r1" in reg

    @pytest.mark.asyncio
    async def test_oldest_finished_evicted(self):
        reg = RunRegistry(max_finished=2)
        for i in range(3):
            reg.register(_handle(f"r{i}"))
            reg.mark_finished(f"r{i}")
        assert "r0" not in reg
        assert "r1" in reg and "r2" in reg

    @pytest.mark.asyncio
    async def test_mark_unknown_is_noop(self):
        reg = RunRegistry()
        reg.mark_finished("ghost")
        assert len(reg) == 0

    @pytest.mark.asyncio
    async def test_done_property(self):
        handle = _handle("r1")
        assert handle.done is False

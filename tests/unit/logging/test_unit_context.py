# tests/unit/logging/test_unit_context.py — v2
"""Tests for logging/context.py — task-local logging context."""

from __future__ import annotations

import asyncio

import pytest

from postpilot.logging.context import (
    LogContext,
    clear_context,
    get_context,
    set_agent_context,
    set_phase_context,
    set_session_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_empty_by_default(self):
        assert get_context().as_dict() == {}

    def test_session_and_phase(self):
        set_session_context("s1", "links")
        set_phase_context("phase2")
        ctx = get_context()
        assert ctx.session_id == "s1"
        assert ctx.pipeline == "links"
        assert ctx.phase == "phase2"
        assert ctx.agent is None

    def test_reset_agent(self):
        set_agent_context("images")
        set_agent_context(None)
        assert get_context().agent is None

    def test_as_dict_skips_none(self):
        assert LogContext(session_id="s1").as_dict() == {"session_id": "s1"}

    def test_clear(self):
        set_session_context("s1", "outline")
        clear_context()
        assert get_context() == LogContext()

    @pytest.mark.asyncio
    async def test_agent_is_task_local(self):
        async def run(name: str) -> str | None:
            set_agent_context(name)
            await asyncio.sleep(0.01)
            return get_context().agent

        results = await asyncio.gather(run("internal_links"), run("client_mention"))
        assert results == ["internal_links", "client_mention"]

# tests/unit/pipeline/test_unit_extractor.py — v1
"""Tests for pipeline/extractor.py — streaming tool-call extraction."""

from __future__ import annotations

import pytest

from postpilot.agents.tools import InsertClientMentionArgs, SuggestUrlArgs, tool_models
from postpilot.llm.models import Message, MessageOutputEvent, ToolCalledEvent
from postpilot.pipeline.extractor import ExtractionResult, ToolCallExtractor


def _call(name: str, **arguments) -> ToolCalledEvent:
    return ToolCalledEvent(tool_name=name, arguments=arguments)


def _mention(original: str, modified: str) -> ToolCalledEvent:
    return _call("insert_client_mention", original_text=original, modified_text=modified)


async def _events(*events):
    for event in events:
        yield event


@pytest.fixture
def extractor() -> ToolCallExtractor:
    return ToolCallExtractor(tool_models(["insert_client_mention", "suggest_url"]))


class TestFeed:
    def test_calls_sorted_by_tool(self, extractor):
        extractor.feed(_mention("a", "A"))
        extractor.feed(_call("suggest_url", suggested_url="https://x.io/a"))
        extractor.feed(_mention("b", "B"))

        result = extractor.result
        assert [c.original_text for c in result.get("insert_client_mention")] == ["a", "b"]
        assert isinstance(result.get("insert_client_mention")[0], InsertClientMentionArgs)
        assert isinstance(result.last("suggest_url"), SuggestUrlArgs)
        assert result.call_count == 3

    def test_unknown_tool_dropped(self, extractor):
        extractor.feed(_call("delete_article", reason="no"))
        assert extractor.result.dropped == 1
        assert extractor.result.call_count == 0

    def test_invalid_arguments_dropped(self, extractor):
        extractor.feed(_call("insert_client_mention", original_text="", modified_text="x"))
        extractor.feed(_call("suggest_url", slug="missing-url"))
        assert extractor.result.dropped == 2
        assert extractor.result.get("suggest_url") == []

    def test_messages_collected(self, extractor):
        extractor.feed(MessageOutputEvent(message=Message(role="assistant", content="Done.")))
        assert extractor.result.messages[0].content == "Done."

    def test_zero_calls_yield_empty_lists(self, extractor):
        assert extractor.result.get("insert_client_mention") == []
        assert extractor.result.last("suggest_url") is None


class TestCollect:
    @pytest.mark.asyncio
    async def test_collect_consumes_stream(self, extractor):
        result = await extractor.collect(_events(_mention("a", "A"), _mention("b", "B")))
        assert len(result.get("insert_client_mention")) == 2

    @pytest.mark.asyncio
    async def test_collect_resets_previous_attempt(self, extractor):
        await extractor.collect(_events(_mention("a", "A")))
        result = await extractor.collect(_events(_mention("b", "B")))
        assert [c.original_text for c in result.get("insert_client_mention")] == ["b"]

    @pytest.mark.asyncio
    async def test_stream_error_propagates(self, extractor):
        async def broken():
            yield _mention("a", "A")
            raise RuntimeError("stream broke")

        with pytest.raises(RuntimeError, match="stream broke"):
            await extractor.collect(broken())


class TestExtractionResult:
    def test_defaults(self):
        result = ExtractionResult()
        assert result.get("anything") == []
        assert result.call_count == 0
        assert result.dropped == 0

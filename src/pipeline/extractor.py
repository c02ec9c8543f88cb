# src/pipeline/extractor.py — v1
"""Streaming tool-call extractor.

Consumes one agent run's event stream and sorts tool calls into
per-tool argument lists, validated against each tool's args model.
Unknown tools and invalid payloads are dropped and counted; stream
errors propagate to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterable

from pydantic import BaseModel, ValidationError

from postpilot.llm.models import Message, MessageOutputEvent, StreamEvent, ToolCalledEvent

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Tool calls and assistant messages collected from one run."""

    calls: dict[str, list[BaseModel]] = field(default_factory=dict)
    messages: list[Message] = field(default_factory=list)
    dropped: int = 0

    def get(self, tool_name: str) -> list[BaseModel]:
        """All calls for ``tool_name`` in arrival order (empty if none)."""
        return self.calls.get(tool_name, [])

    def last(self, tool_name: str) -> BaseModel | None:
        """Most recent call for ``tool_name``, or None."""
        calls = self.get(tool_name)
        return calls[-1] if calls else None

    @property
    def call_count(self) -> int:
        return sum(len(v) for v in self.calls.values())


class ToolCallExtractor:
    """Collect typed tool-call arguments from a stream of events."""

    def __init__(self, tool_models: dict[str, type[BaseModel]]) -> None:
        self._tool_models = dict(tool_models)
        self._result = self._empty()

    def _empty(self) -> ExtractionResult:
        return ExtractionResult(calls={name: [] for name in self._tool_models})

    def reset(self) -> None:
        """Discard everything collected so far."""
        self._result = self._empty()

    @property
    def result(self) -> ExtractionResult:
        return self._result

    def feed(self, event: StreamEvent) -> None:
        """Classify a single event."""
        if isinstance(event, MessageOutputEvent):
            self._result.messages.append(event.message)
            return
        if not isinstance(event, ToolCalledEvent):
            return

        model = self._tool_models.get(event.tool_name)
        if model is None:
            self._result.dropped += 1
            logger.debug("Ignoring unknown tool call: %s", event.tool_name)
            return
        try:
            args = model.model_validate(event.arguments)
        except ValidationError as e:
            self._result.dropped += 1
            logger.warning(
                "Dropping %s call with invalid arguments: %d error(s)",
                event.tool_name, e.error_count(),
            )
            return
        self._result.calls[event.tool_name].append(args)

    async def collect(self, events: AsyncIterable[StreamEvent]) -> ExtractionResult:
        """Consume ``events`` to exhaustion and return a fresh result."""
        self.reset()
        async for event in events:
            self.feed(event)
        return self._result

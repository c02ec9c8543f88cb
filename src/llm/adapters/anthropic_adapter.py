# src/llm/adapters/anthropic_adapter.py — v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Structured outputs go through a forced
tool; streamed tool calls are emitted when their content block closes;
research uses the server-side web search tool.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator

from pydantic import BaseModel

from postpilot.llm.base_client import BaseLLMClient
from postpilot.llm.models import (
    LLMResponse,
    Message,
    MessageOutputEvent,
    StreamEvent,
    ToolCalledEvent,
    ToolSpec,
)

logger = logging.getLogger(__name__)

_HOSTED_TOOLS: dict[str, dict[str, Any]] = {
    "web_search": {"type": "web_search_20250305", "name": "web_search", "max_uses": 8},
}


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            import anthropic

            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or None)
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        kwargs = self._build_kwargs(messages, system, max_tokens, temperature)

        if response_format is not None:
            kwargs["tools"] = [
                {
                    "name": "structured_output",
                    "description": "Return structured data matching the schema",
                    "input_schema": response_format.model_json_schema(),
                }
            ]
            kwargs["tool_choice"] = {"type": "tool", "name": "structured_output"}

        start = time.monotonic()
        response = await self._client.messages.create(**kwargs)
        latency_ms = int((time.monotonic() - start) * 1000)

        return self._to_response(
            response,
            self._extract_content(response, response_format is not None),
            latency_ms,
        )

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        tools: list[ToolSpec] | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> AsyncIterator[StreamEvent]:
        kwargs = self._build_kwargs(messages, system, max_tokens, temperature)
        function_tools = [
            {"name": t.name, "description": t.description, "input_schema": t.parameters}
            for t in tools or []
            if not t.hosted
        ]
        if function_tools:
            kwargs["tools"] = function_tools

        text_parts: list[str] = []
        async with self._client.messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type != "content_block_stop":
                    continue
                block = event.content_block
                if block.type == "tool_use":
                    yield ToolCalledEvent(
                        tool_name=block.name,
                        arguments=dict(block.input or {}),
                        call_id=block.id,
                    )
                elif block.type == "text" and block.text:
                    text_parts.append(block.text)

        text = "".join(text_parts)
        if text:
            yield MessageOutputEvent(message=Message(role="assistant", content=text))

    async def research(
        self,
        messages: list[Message],
        system: str | None = None,
        tools: list[ToolSpec] | None = None,
        max_tokens: int = 16000,
    ) -> LLMResponse:
        kwargs = self._build_kwargs(messages, system, max_tokens, temperature=None)
        hosted = [_HOSTED_TOOLS[t.name] for t in tools or [] if t.hosted and t.name in _HOSTED_TOOLS]
        if hosted:
            kwargs["tools"] = hosted

        start = time.monotonic()
        response = await self._client.messages.create(**kwargs)
        latency_ms = int((time.monotonic() - start) * 1000)

        text = "\n".join(
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text" and block.text
        )
        return self._to_response(response, text, latency_ms)

    @property
    def provider_name(self) -> str:
        return "anthropic"

    # --- Internal helpers ---

    def _build_kwargs(
        self,
        messages: list[Message],
        system: str | None,
        max_tokens: int,
        temperature: float | None,
    ) -> dict[str, Any]:
        # System prompts travel outside the message list for this API.
        system_parts = [system] if system else []
        system_parts.extend(m.content for m in messages if m.role == "system")
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in messages
                if m.role != "system"
            ],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        return kwargs

    @staticmethod
    def _extract_content(response: Any, structured: bool) -> str:
        """Extract text from Anthropic response content blocks."""
        for block in response.content:
            if structured and getattr(block, "type", None) == "tool_use":
                return json.dumps(block.input)
            if getattr(block, "type", None) == "text":
                return block.text
        return ""

    def _to_response(self, response: Any, content: str, latency_ms: int) -> LLMResponse:
        return LLMResponse(
            content=content,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

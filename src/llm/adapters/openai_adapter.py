# src/llm/adapters/openai_adapter.py — v2
"""OpenAI adapter implementing BaseLLMClient.

Uses the official openai SDK: Chat Completions for structured output and
streamed tool calls, the Responses API for hosted web-search research.
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

_HOSTED_TOOL_TYPES: dict[str, str] = {
    "web_search": "web_search_preview",
}


class OpenAIAdapter(BaseLLMClient):
    """OpenAI GPT / o-series adapter."""

    def __init__(self, model: str = "gpt-4.1", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key
        self.__client = None

    @property
    def _client(self):
        """Lazy-init AsyncOpenAI client (only on first API call)."""
        if self.__client is None:
            import openai

            self.__client = openai.AsyncOpenAI(api_key=self._api_key or None)
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": _to_chat_messages(messages, system),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": response_format.__name__,
                    "schema": response_format.model_json_schema(),
                },
            }

        t0 = time.monotonic()
        resp = await self._client.chat.completions.create(**kwargs)
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        tools: list[ToolSpec] | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one chat turn, assembling tool-call argument deltas by index."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": _to_chat_messages(messages, system),
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": True,
        }
        function_tools = [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                },
            }
            for t in tools or []
            if not t.hosted
        ]
        if function_tools:
            kwargs["tools"] = function_tools

        text_parts: list[str] = []
        pending: dict[int, dict[str, str]] = {}

        response_stream = await self._client.chat.completions.create(**kwargs)
        async for chunk in response_stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                text_parts.append(delta.content)
            for tc in delta.tool_calls or []:
                slot = pending.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                if tc.id:
                    slot["id"] = tc.id
                if tc.function is not None:
                    if tc.function.name:
                        slot["name"] += tc.function.name
                    if tc.function.arguments:
                        slot["arguments"] += tc.function.arguments

        for index in sorted(pending):
            slot = pending[index]
            arguments = _decode_arguments(slot["name"], slot["arguments"])
            if arguments is None:
                continue
            yield ToolCalledEvent(
                tool_name=slot["name"],
                arguments=arguments,
                call_id=slot["id"] or None,
            )

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
        """Deep research via the Responses API with hosted tools."""
        hosted = [
            {"type": _HOSTED_TOOL_TYPES[t.name]}
            for t in tools or []
            if t.hosted and t.name in _HOSTED_TOOL_TYPES
        ]
        kwargs: dict[str, Any] = {
            "model": self._model,
            "input": [{"role": m.role, "content": m.content} for m in messages],
            "max_output_tokens": max_tokens,
        }
        if system:
            kwargs["instructions"] = system
        if hosted:
            kwargs["tools"] = hosted

        t0 = time.monotonic()
        resp = await self._client.responses.create(**kwargs)
        latency = int((time.monotonic() - t0) * 1000)

        usage = resp.usage
        return LLMResponse(
            content=resp.output_text or "",
            input_tokens=usage.input_tokens if usage else 0,
            output_tokens=usage.output_tokens if usage else 0,
            model=self._model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai"


def _to_chat_messages(messages: list[Message], system: str | None) -> list[dict[str, Any]]:
    oai_messages: list[dict[str, Any]] = []
    if system:
        oai_messages.append({"role": "system", "content": system})
    for m in messages:
        oai_messages.append({"role": m.role, "content": m.content})
    return oai_messages


def _decode_arguments(tool_name: str, raw: str) -> dict[str, Any] | None:
    """Decode a streamed JSON argument string. Malformed payloads are dropped."""
    if not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Dropping tool call %s: arguments are not valid JSON", tool_name)
        return None
    if not isinstance(decoded, dict):
        logger.warning("Dropping tool call %s: arguments are not an object", tool_name)
        return None
    return decoded

# src/agents/runner.py — v1
"""Agent runner: executes AgentSpecs against provider clients.

Every public operation creates a fresh provider client, applies the
per-kind timeout with asyncio.wait_for, and retries the whole run
through llm.retry.with_retry. Decision agents return an explicit
tagged union instead of relying on provider-side handoffs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Annotated, Any, AsyncIterator, Callable, Literal, Union

from pydantic import BaseModel, Field

from postpilot.agents.definitions import AgentSpec
from postpilot.agents.tools import tool_models
from postpilot.config.settings import Settings
from postpilot.core.errors import AgentDecisionError
from postpilot.llm.base_client import BaseLLMClient
from postpilot.llm.client_factory import create_llm_client
from postpilot.llm.models import Message, StreamEvent
from postpilot.llm.retry import RetryConfig, retry_configs_for, with_retry
from postpilot.logging.context import set_agent_context
from postpilot.pipeline.extractor import ExtractionResult, ToolCallExtractor

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., BaseLLMClient]


class HandoffDecision(BaseModel):
    """Route control to another agent."""

    kind: Literal["handoff"] = "handoff"
    target: str
    message: str = ""


class OutputDecision(BaseModel):
    """Terminal structured output of a decision agent."""

    kind: Literal["output"] = "output"
    value: Any


AgentDecision = Annotated[
    Union[HandoffDecision, OutputDecision],
    Field(discriminator="kind"),
]


class AgentRunner:
    """Run agents with timeouts and retries."""

    def __init__(
        self,
        settings: Settings,
        client_factory: ClientFactory | None = None,
        retry_configs: dict[str, RetryConfig] | None = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or create_llm_client
        self._retry_configs = (
            retry_configs
            if retry_configs is not None
            else retry_configs_for(settings.agent_max_retries)
        )

    def _client(self, spec: AgentSpec) -> BaseLLMClient:
        return self._client_factory(spec.provider, spec.model, self._settings)

    def _timeout(self, spec: AgentSpec) -> float:
        return self._settings.timeout_for(spec.kind)

    async def stream(
        self, spec: AgentSpec, messages: list[Message]
    ) -> AsyncIterator[StreamEvent]:
        """Raw event stream of one turn, without timeout or retry."""
        client = self._client(spec)
        async for event in client.stream(
            messages,
            system=spec.instructions,
            tools=list(spec.tools),
            max_tokens=spec.max_tokens,
            temperature=spec.temperature,
        ):
            yield event

    async def collect(
        self,
        spec: AgentSpec,
        messages: list[Message],
        extractor: ToolCallExtractor | None = None,
    ) -> ExtractionResult:
        """Stream one turn and extract its tool calls.

        Each attempt starts from an empty extractor so a retried run never
        keeps calls from a failed attempt.

        Raises:
            AgentRetryExhausted: If the run fails and retries do not help.
        """
        extractor = extractor or ToolCallExtractor(tool_models(spec.tool_names))

        async def _attempt() -> ExtractionResult:
            return await asyncio.wait_for(
                extractor.collect(self.stream(spec, messages)),
                timeout=self._timeout(spec),
            )

        start = time.monotonic()
        result = await self._run(spec, _attempt)
        logger.info(
            "Agent %s: %d tool call(s), %d message(s), %d dropped in %dms",
            spec.name, result.call_count, len(result.messages), result.dropped,
            int((time.monotonic() - start) * 1000),
        )
        return result

    async def decide(self, spec: AgentSpec, messages: list[Message]) -> HandoffDecision | OutputDecision:
        """Run a decision agent and return its handoff or structured output.

        Raises:
            AgentDecisionError: If the agent picks a target outside its handoffs.
            AgentRetryExhausted: If the provider call keeps failing.
        """
        if spec.output_schema is None:
            raise AgentDecisionError(spec.name, "decision agent has no output schema")
        schema = spec.output_schema

        async def _attempt() -> BaseModel:
            response = await asyncio.wait_for(
                self._client(spec).complete(
                    messages,
                    system=spec.instructions,
                    max_tokens=spec.max_tokens,
                    temperature=spec.temperature,
                    response_format=schema,
                ),
                timeout=self._timeout(spec),
            )
            return schema.model_validate_json(response.content)

        value = await self._run(spec, _attempt)

        if not spec.handoffs:
            logger.info("Agent %s produced %s", spec.name, schema.__name__)
            return OutputDecision(value=value)

        target = getattr(value, "target", None)
        if target not in spec.handoffs:
            raise AgentDecisionError(
                spec.name,
                f"handoff target {target!r} not in {list(spec.handoffs)}",
            )
        logger.info("Agent %s handed off to %s", spec.name, target)
        return HandoffDecision(target=target, message=getattr(value, "message", "") or "")

    async def research(self, spec: AgentSpec, messages: list[Message]) -> str:
        """Run a research agent and return its long-form text."""

        async def _attempt() -> str:
            response = await asyncio.wait_for(
                self._client(spec).research(
                    messages,
                    system=spec.instructions,
                    tools=list(spec.tools),
                    max_tokens=spec.max_tokens,
                ),
                timeout=self._timeout(spec),
            )
            return response.content

        start = time.monotonic()
        text = await self._run(spec, _attempt)
        logger.info(
            "Agent %s produced %d chars in %dms",
            spec.name, len(text), int((time.monotonic() - start) * 1000),
        )
        return text

    async def _run(self, spec: AgentSpec, attempt: Callable[[], Any]) -> Any:
        set_agent_context(spec.name)
        try:
            return await with_retry(
                attempt, agent=spec.name, retry_configs=self._retry_configs
            )
        finally:
            set_agent_context(None)

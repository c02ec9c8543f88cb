# src/agents/definitions.py — v1
"""Agent specifications: pure configuration built fresh per invocation.

An AgentSpec pairs a resolved provider:model with instructions, tools,
an optional output schema and the agents it may hand off to. Specs hold
no runtime state; provider clients are created by the runner per call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field

from postpilot.agents.prompts import INSTRUCTIONS
from postpilot.agents.tools import WEB_SEARCH, tool_spec
from postpilot.config.settings import Settings
from postpilot.llm.config import resolve_llm
from postpilot.llm.models import ToolSpec

logger = logging.getLogger(__name__)

AgentKind = Literal["decision", "tool", "research"]


class ClarificationQuestions(BaseModel):
    """Structured output of the clarifier."""

    questions: list[str] = Field(min_length=2, max_length=3)


class HandoffChoice(BaseModel):
    """Structured output of a decision agent that routes to another agent."""

    target: str
    message: str = ""


@dataclass(frozen=True)
class AgentSpec:
    """Stateless agent configuration."""

    name: str
    provider: str
    model: str
    instructions: str
    kind: AgentKind
    tools: tuple[ToolSpec, ...] = ()
    output_schema: type[BaseModel] | None = None
    handoffs: tuple[str, ...] = ()
    temperature: float = 0.2
    max_tokens: int = 4096

    @property
    def tool_names(self) -> tuple[str, ...]:
        """Names of function (non-hosted) tools."""
        return tuple(t.name for t in self.tools if not t.hosted)


@dataclass(frozen=True)
class _Blueprint:
    kind: AgentKind
    tools: tuple[str, ...] = ()
    output_schema: type[BaseModel] | None = None
    handoffs: tuple[str, ...] = ()


_BLUEPRINTS: dict[str, _Blueprint] = {
    "triage": _Blueprint(
        kind="decision", output_schema=HandoffChoice,
        handoffs=("clarifier", "instruction_builder"),
    ),
    "clarifier": _Blueprint(kind="decision", output_schema=ClarificationQuestions),
    "instruction_builder": _Blueprint(
        kind="decision", output_schema=HandoffChoice, handoffs=("research",),
    ),
    "research": _Blueprint(kind="research"),
    "internal_links": _Blueprint(kind="tool", tools=("insert_internal_link",)),
    "client_mention": _Blueprint(kind="tool", tools=("insert_client_mention",)),
    "client_link": _Blueprint(kind="tool", tools=("insert_client_link",)),
    "images": _Blueprint(
        kind="tool",
        tools=("generate_image", "find_stock_image", "output_image_strategy"),
    ),
    "link_requests": _Blueprint(kind="tool", tools=("output_link_requests",)),
    "url_suggestion": _Blueprint(kind="tool", tools=("suggest_url",)),
}

AGENT_NAMES: tuple[str, ...] = tuple(_BLUEPRINTS)


class UnknownAgentError(KeyError):
    """Raised when an agent name has no blueprint."""


class AgentCatalog:
    """Builds AgentSpecs from blueprints and per-agent LLM routing."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def build(self, name: str) -> AgentSpec:
        """Build a fresh spec for agent ``name``.

        Raises:
            UnknownAgentError: If ``name`` is not a known agent.
        """
        blueprint = _BLUEPRINTS.get(name)
        if blueprint is None:
            raise UnknownAgentError(name)

        assignment = resolve_llm(name, self._settings)
        tools = tuple(tool_spec(t) for t in blueprint.tools)
        max_tokens = self._settings.llm_max_tokens_per_agent
        if blueprint.kind == "research":
            tools = (WEB_SEARCH,)
            max_tokens = max(max_tokens, 16000)

        logger.debug("Built agent %s -> %s (%s)", name, assignment.key, assignment.source)
        return AgentSpec(
            name=name,
            provider=assignment.provider,
            model=assignment.model,
            instructions=INSTRUCTIONS[name],
            kind=blueprint.kind,
            tools=tools,
            output_schema=blueprint.output_schema,
            handoffs=blueprint.handoffs,
            temperature=self._settings.llm_default_temperature,
            max_tokens=max_tokens,
        )

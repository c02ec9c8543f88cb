# src/llm/config.py — v2
"""Per-agent LLM routing with cascade resolution.

Resolution order:
  1. Per-agent setting (LLM_CLIENT_LINK=anthropic:claude-sonnet-4-20250514)
  2. Per-pipeline setting (LLM_PIPELINE_LINKS=openai:gpt-4.1)
  3. Default provider + model (LLM_DEFAULT_PROVIDER + LLM_DEFAULT_MODEL)
  4. Hardcoded fallback (openai:gpt-4.1)
"""

from __future__ import annotations

from dataclasses import dataclass

from postpilot.config.agents import PIPELINE_AGENT_MAP
from postpilot.config.settings import Settings

_FALLBACK_PROVIDER = "openai"
_FALLBACK_MODEL = "gpt-4.1"


@dataclass(frozen=True)
class LLMAssignment:
    """Resolved LLM provider:model for an agent."""

    provider: str
    model: str
    source: str  # "agent", "pipeline", "default", or "fallback"

    @property
    def key(self) -> str:
        """Return 'provider:model' string."""
        return f"{self.provider}:{self.model}"


def _find_pipeline(agent: str) -> str | None:
    """Find which pipeline an agent belongs to."""
    for pipeline, agents in PIPELINE_AGENT_MAP.items():
        if agent in agents:
            return pipeline
    return None


def _parse_assignment(value: str) -> tuple[str, str] | None:
    """Parse 'provider:model' string. Returns None if empty."""
    if not value or ":" not in value:
        return None
    provider, model = value.split(":", 1)
    return (provider.strip(), model.strip())


def resolve_llm(agent: str, settings: Settings) -> LLMAssignment:
    """Resolve the LLM assignment for an agent.

    Args:
        agent: Agent name (e.g. "triage", "client_link").
        settings: Application settings.

    Returns:
        Resolved LLMAssignment with provider, model, and resolution source.
    """
    parsed = _parse_assignment(getattr(settings, f"llm_{agent}", ""))
    if parsed:
        return LLMAssignment(provider=parsed[0], model=parsed[1], source="agent")

    pipeline = _find_pipeline(agent)
    if pipeline:
        parsed = _parse_assignment(getattr(settings, f"llm_pipeline_{pipeline}", ""))
        if parsed:
            return LLMAssignment(provider=parsed[0], model=parsed[1], source="pipeline")

    if settings.llm_default_provider and settings.llm_default_model:
        return LLMAssignment(
            provider=settings.llm_default_provider,
            model=settings.llm_default_model,
            source="default",
        )

    return LLMAssignment(
        provider=_FALLBACK_PROVIDER,
        model=_FALLBACK_MODEL,
        source="fallback",
    )


def resolve_all(settings: Settings) -> dict[str, LLMAssignment]:
    """Resolve LLM assignments for every known agent."""
    all_agents: set[str] = set()
    for agents in PIPELINE_AGENT_MAP.values():
        all_agents.update(agents)

    return {agent: resolve_llm(agent, settings) for agent in sorted(all_agents)}

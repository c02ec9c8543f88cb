# src/logging/context.py — v2
"""Contextual logging support: attach session_id, pipeline, phase, agent to log records.

Context variables are task-local, so agents running concurrently under
asyncio.gather each log with their own agent name.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id", default=None
)
_pipeline: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "pipeline", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)
_agent: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "agent", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    session_id: str | None = None
    pipeline: str | None = None
    phase: str | None = None
    agent: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        session_id=_session_id.get(),
        pipeline=_pipeline.get(),
        phase=_phase.get(),
        agent=_agent.get(),
    )


def set_session_context(session_id: str, pipeline: str) -> None:
    """Set session-level context (called once per pipeline run)."""
    _session_id.set(session_id)
    _pipeline.set(pipeline)


def set_phase_context(phase: str | None) -> None:
    """Set the current phase (phase1, phase2, triage, ...)."""
    _phase.set(phase)


def set_agent_context(agent: str | None) -> None:
    """Set agent-level context (called per agent invocation)."""
    _agent.set(agent)


def clear_context() -> None:
    """Reset all context variables."""
    _session_id.set(None)
    _pipeline.set(None)
    _phase.set(None)
    _agent.set(None)

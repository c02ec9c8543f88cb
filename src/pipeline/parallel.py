# src/pipeline/parallel.py — v1
"""Fan-out/fan-in for parallel phases with per-agent failure isolation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

from postpilot.logging.context import set_agent_context

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AgentOutcome(Generic[T]):
    """Result of one guarded agent job."""

    name: str
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: T) -> T:
        """The job's value, or ``default`` when the job failed."""
        if self.error is not None or self.value is None:
            return default
        return self.value


async def _guarded(name: str, job: Callable[[], Awaitable[T]]) -> AgentOutcome[T]:
    set_agent_context(name)
    try:
        return AgentOutcome(name=name, value=await job())
    except Exception as e:
        logger.warning("Agent %s failed, continuing without it: %s", name, e)
        return AgentOutcome(name=name, error=e)


async def run_isolated(
    jobs: Sequence[tuple[str, Callable[[], Awaitable[T]]]],
) -> list[AgentOutcome[T]]:
    """Run jobs concurrently; one failure never cancels its siblings.

    Returns:
        One outcome per job, in the order the jobs were given.
    """
    return list(await asyncio.gather(*(_guarded(name, job) for name, job in jobs)))

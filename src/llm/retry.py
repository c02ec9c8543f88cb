# src/llm/retry.py — v2
"""Per-agent retry policy with exponential backoff.

Each attempt covers a whole agent run (one streamed turn or one decision),
so a retried run starts from a fresh extractor and never mixes partial
tool calls from an earlier attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class AgentRetryExhausted(Exception):
    """All attempts for an agent run failed."""

    def __init__(self, agent: str, error_type: str, attempts: int, last_error: Exception):
        self.agent = agent
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Agent '{agent}' failed after {attempts} attempts ({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific error type."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=3, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=1, base_delay_s=1.0, backoff_factor=1.0),
    "server_error": RetryConfig(max_retries=3, base_delay_s=5.0),
    "connection": RetryConfig(max_retries=2, base_delay_s=2.0),
    "parse_error": RetryConfig(max_retries=2, base_delay_s=1.0, backoff_factor=1.0),
}


def retry_configs_for(max_retries: int) -> dict[str, RetryConfig]:
    """Cap every default retry budget at ``max_retries`` (0 disables retries)."""
    return {
        error_type: RetryConfig(
            max_retries=min(config.max_retries, max_retries),
            base_delay_s=config.base_delay_s,
            backoff_factor=config.backoff_factor,
            jitter=config.jitter,
        )
        for error_type, config in DEFAULT_RETRY_CONFIGS.items()
    }


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type.

    Provider SDK errors expose ``status_code``; everything else is
    classified from the exception type and message.
    """
    if isinstance(error, asyncio.TimeoutError):
        return "timeout"

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status == 429:
            return "rate_limit"
        if status >= 500:
            return "server_error"
        return "client_error"

    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "ratelimit" in name or "429" in msg or "rate limit" in msg:
        return "rate_limit"
    if "timeout" in name or "timed out" in msg:
        return "timeout"
    if "connection" in name or "connection" in msg:
        return "connection"
    if any(c in msg for c in ("500", "502", "503", "504", "internal server")):
        return "server_error"
    if "jsondecode" in name or "invalid json" in msg:
        return "parse_error"
    return "unknown"


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    agent: str = "unknown",
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with retry logic.

    Raises:
        AgentRetryExhausted: If the error is not retryable or all retries
            are exhausted.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1
            config = configs.get(error_type)

            if config is None or attempts > config.max_retries:
                raise AgentRetryExhausted(agent, error_type, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "Agent '%s' %s (attempt %d/%d), retrying in %.1fs",
                agent, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)

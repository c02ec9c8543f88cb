# src/progress/broker_factory.py — v1
"""Factory for progress broker instantiation."""

from __future__ import annotations

from postpilot.config.settings import Settings
from postpilot.progress.base_broker import BaseProgressBroker


def create_progress_broker(settings: Settings) -> BaseProgressBroker:
    """Instantiate the configured progress transport."""
    backend = settings.progress_backend

    if backend == "memory":
        from postpilot.progress.memory_broker import MemoryProgressBroker
        return MemoryProgressBroker()

    if backend == "redis":
        from postpilot.progress.redis_broker import RedisProgressBroker
        if not settings.progress_redis_url:
            raise ValueError("PROGRESS_REDIS_URL must be set when PROGRESS_BACKEND=redis")
        return RedisProgressBroker(
            redis_url=settings.progress_redis_url,
            channel_prefix=settings.progress_channel_prefix,
        )

    raise ValueError(f"Unsupported progress backend: {backend!r}")

# src/progress/base_broker.py — v2
"""Progress pub/sub abstraction keyed by session id.

Orchestrators publish ProgressEvents; transports (SSE routes, CLIs,
tests) subscribe per session. A session's channel is closed when the
run reaches a terminal or paused state, which ends every subscription
to it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncIterator, Literal

from pydantic import BaseModel, Field

from postpilot.storage.models import utcnow

ProgressEventType = Literal["status", "progress", "completed", "error", "cancelled"]


class ProgressEvent(BaseModel):
    """One live update for a session."""

    type: ProgressEventType
    session_id: str
    status: str | None = None
    phase: int | None = None
    message: str = ""
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


class ProgressSubscription(ABC):
    """A live feed of events for one session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id

    @abstractmethod
    async def get(self, timeout: float | None = None) -> ProgressEvent | None:
        """Next event, or None once the channel is closed.

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses with no event.
        """

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class BaseProgressBroker(ABC):
    """Unified interface for progress transports."""

    @abstractmethod
    async def subscribe(self, session_id: str) -> ProgressSubscription:
        """Open a subscription to a session's events."""

    @abstractmethod
    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        """Deliver an event to current subscribers (no-op when there are none)."""

    @abstractmethod
    async def unsubscribe(self, subscription: ProgressSubscription) -> None:
        """Detach a subscription."""

    @abstractmethod
    async def close_session(self, session_id: str) -> None:
        """End all subscriptions of a session."""

    async def close(self) -> None:
        """Release transport resources."""

# src/progress/memory_broker.py — v1
"""In-process progress broker backed by asyncio queues (PROGRESS_BACKEND=memory)."""

from __future__ import annotations

import asyncio
import logging

from postpilot.progress.base_broker import (
    BaseProgressBroker,
    ProgressEvent,
    ProgressSubscription,
)

logger = logging.getLogger(__name__)


class MemorySubscription(ProgressSubscription):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._closed = False

    def push(self, event: ProgressEvent | None) -> None:
        if not self._closed:
            self._queue.put_nowait(event)
        if event is None:
            self._closed = True

    async def get(self, timeout: float | None = None) -> ProgressEvent | None:
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)


class MemoryProgressBroker(BaseProgressBroker):
    """Fan events out to per-subscription queues."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[MemorySubscription]] = {}

    async def subscribe(self, session_id: str) -> MemorySubscription:
        subscription = MemorySubscription(session_id)
        self._subscribers.setdefault(session_id, []).append(subscription)
        return subscription

    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        for subscription in self._subscribers.get(session_id, []):
            subscription.push(event)

    async def unsubscribe(self, subscription: ProgressSubscription) -> None:
        subscribers = self._subscribers.get(subscription.session_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscribers.pop(subscription.session_id, None)

    async def close_session(self, session_id: str) -> None:
        subscribers = self._subscribers.pop(session_id, [])
        for subscription in subscribers:
            subscription.push(None)
        if subscribers:
            logger.debug("Closed %d subscription(s) for %s", len(subscribers), session_id)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, []))

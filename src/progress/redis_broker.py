# src/progress/redis_broker.py — v1
"""Redis pub/sub progress broker (PROGRESS_BACKEND=redis).

Lets an SSE route in one process follow a run executing in another.
Publishing is best-effort: a Redis outage is logged and never fails
the pipeline run.
"""

from __future__ import annotations

import asyncio
import logging

import redis
import redis.asyncio as aioredis
from pydantic import ValidationError

from postpilot.progress.base_broker import (
    BaseProgressBroker,
    ProgressEvent,
    ProgressSubscription,
)

logger = logging.getLogger(__name__)

_CLOSE_MARKER = "__close__"


class RedisSubscription(ProgressSubscription):
    def __init__(self, session_id: str, pubsub: aioredis.client.PubSub) -> None:
        super().__init__(session_id)
        self._pubsub = pubsub
        self._closed = False

    async def get(self, timeout: float | None = None) -> ProgressEvent | None:
        if self._closed:
            return None
        if timeout is None:
            return await self._next()
        return await asyncio.wait_for(self._next(), timeout=timeout)

    async def _next(self) -> ProgressEvent | None:
        async for raw in self._pubsub.listen():
            if raw["type"] != "message":
                continue
            data = raw["data"]
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            if data == _CLOSE_MARKER:
                self._closed = True
                return None
            try:
                return ProgressEvent.model_validate_json(data)
            except ValidationError:
                logger.warning("Skipping malformed progress message on %s", self.session_id)
                continue
        self._closed = True
        return None

    async def aclose(self) -> None:
        self._closed = True
        await self._pubsub.aclose()


class RedisProgressBroker(BaseProgressBroker):
    """Progress channels mapped to Redis pub/sub channels."""

    def __init__(self, redis_url: str, channel_prefix: str = "postpilot:progress:") -> None:
        self._client = aioredis.from_url(redis_url)
        self._prefix = channel_prefix

    def _channel(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    async def subscribe(self, session_id: str) -> RedisSubscription:
        pubsub = self._client.pubsub()
        await pubsub.subscribe(self._channel(session_id))
        return RedisSubscription(session_id, pubsub)

    async def publish(self, session_id: str, event: ProgressEvent) -> None:
        await self._publish(session_id, event.model_dump_json())

    async def unsubscribe(self, subscription: ProgressSubscription) -> None:
        if isinstance(subscription, RedisSubscription):
            await subscription.aclose()

    async def close_session(self, session_id: str) -> None:
        await self._publish(session_id, _CLOSE_MARKER)

    async def close(self) -> None:
        await self._client.aclose()

    async def _publish(self, session_id: str, payload: str) -> None:
        try:
            await self._client.publish(self._channel(session_id), payload)
        except redis.RedisError:
            logger.warning(
                "Failed to publish progress for session %s", session_id, exc_info=True
            )

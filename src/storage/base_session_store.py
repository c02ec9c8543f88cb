# src/storage/base_session_store.py — v1
"""Abstract session store.

Backends implement four primitives (_read, _write, _insert, _scan);
the public verbs and the forward-only update rules live here so every
backend enforces them identically.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from postpilot.core.errors import SessionNotFoundError, SessionStoreError
from postpilot.storage.models import SessionRecord, utcnow

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=SessionRecord)

_IMMUTABLE_FIELDS = frozenset({"id", "workflow_id", "version", "created_at"})


class BaseSessionStore(ABC, Generic[R]):
    """Persistence of session records of a single model type."""

    def __init__(self, model: type[R]) -> None:
        self._model = model

    @property
    def model(self) -> type[R]:
        return self._model

    # --- Backend primitives ---

    @abstractmethod
    async def _read(self, session_id: str) -> R | None:
        """Load a record by id."""

    @abstractmethod
    async def _insert(self, record: R) -> None:
        """Persist a new record. Must raise SessionStoreError on duplicate id."""

    @abstractmethod
    async def _write(self, record: R) -> None:
        """Replace an existing record."""

    @abstractmethod
    async def _scan(self, workflow_id: str) -> list[R]:
        """All records belonging to a workflow, any order."""

    # --- Public verbs ---

    async def create(self, record: R) -> R:
        """Persist a new session record."""
        await self._insert(record)
        logger.debug("Created %s %s (v%d)", self._model.__name__, record.id, record.version)
        return record

    async def get(self, session_id: str) -> R | None:
        return await self._read(session_id)

    async def update(self, session_id: str, **fields: Any) -> R:
        """Apply a partial update and return the stored record.

        Raises:
            SessionNotFoundError: If no record has ``session_id``.
            SessionStoreError: On unknown or immutable fields, on an attempt
                to reset a set field to None, or when the result fails
                model validation (e.g. phase order).
        """
        current = await self._read(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)

        for name, value in fields.items():
            if name not in self._model.model_fields:
                raise SessionStoreError(f"Unknown field for {self._model.__name__}: {name}")
            if name in _IMMUTABLE_FIELDS:
                raise SessionStoreError(f"Field is immutable: {name}")
            if value is None and getattr(current, name) is not None:
                raise SessionStoreError(f"Field cannot be reset to None: {name}")

        data = current.model_dump()
        data.update(fields)
        data["updated_at"] = utcnow()
        try:
            updated = self._model.model_validate(data)
        except ValidationError as e:
            raise SessionStoreError(f"Invalid update for session {session_id}: {e}") from e

        await self._write(updated)
        return updated

    async def list_for_parent(self, workflow_id: str) -> list[R]:
        """Records of a workflow, newest version first."""
        records = await self._scan(workflow_id)
        return sorted(records, key=lambda r: (r.version, r.created_at), reverse=True)

    async def latest_for_parent(self, workflow_id: str) -> R | None:
        records = await self.list_for_parent(workflow_id)
        return records[0] if records else None

    async def latest_version_for_parent(self, workflow_id: str) -> int:
        """Highest version for the workflow, 0 when it has none."""
        latest = await self.latest_for_parent(workflow_id)
        return latest.version if latest else 0

    async def next_version(self, workflow_id: str) -> int:
        return await self.latest_version_for_parent(workflow_id) + 1

    async def close(self) -> None:
        """Release backend resources."""

# src/storage/memory_store.py — v1
"""In-process session store (SESSION_STORE_BACKEND=memory).

Records are kept as validated copies so callers never mutate stored
state through a returned object.
"""

from __future__ import annotations

from postpilot.core.errors import SessionStoreError
from postpilot.storage.base_session_store import BaseSessionStore, R


class MemorySessionStore(BaseSessionStore[R]):
    """Dictionary-backed store for tests and single-process use."""

    def __init__(self, model: type[R]) -> None:
        super().__init__(model)
        self._records: dict[str, R] = {}

    async def _read(self, session_id: str) -> R | None:
        record = self._records.get(session_id)
        return record.model_copy(deep=True) if record is not None else None

    async def _insert(self, record: R) -> None:
        if record.id in self._records:
            raise SessionStoreError(f"Session already exists: {record.id}")
        self._records[record.id] = record.model_copy(deep=True)

    async def _write(self, record: R) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    async def _scan(self, workflow_id: str) -> list[R]:
        return [
            r.model_copy(deep=True)
            for r in self._records.values()
            if r.workflow_id == workflow_id
        ]

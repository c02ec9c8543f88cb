# src/storage/json_store.py — v1
"""JSON file-based session store (default SESSION_STORE_BACKEND=json).

One file per session under <root>/<store_name>/<id>.json. Writes go
through a temporary file and an atomic rename.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from postpilot.core.errors import SessionStoreError
from postpilot.storage.base_session_store import BaseSessionStore, R

logger = logging.getLogger(__name__)


class JsonSessionStore(BaseSessionStore[R]):
    """File-based session store using JSON files."""

    def __init__(self, model: type[R], root: Path | str) -> None:
        super().__init__(model)
        self._root = Path(root).expanduser() / model.store_name
        self._root.mkdir(parents=True, exist_ok=True)

    async def _read(self, session_id: str) -> R | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        return self._load(path)

    async def _insert(self, record: R) -> None:
        if self._path(record.id).exists():
            raise SessionStoreError(f"Session already exists: {record.id}")
        self._dump(record)

    async def _write(self, record: R) -> None:
        self._dump(record)

    async def _scan(self, workflow_id: str) -> list[R]:
        records: list[R] = []
        for path in sorted(self._root.glob("*.json")):
            record = self._load(path)
            if record is not None and record.workflow_id == workflow_id:
                records.append(record)
        return records

    def _load(self, path: Path) -> R | None:
        try:
            return self._model.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read session file %s: %s", path.name, e)
            return None

    def _dump(self, record: R) -> None:
        path = self._path(record.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)

    def _path(self, session_id: str) -> Path:
        safe_id = session_id.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_id}.json"

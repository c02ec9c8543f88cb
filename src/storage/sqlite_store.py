# src/storage/sqlite_store.py — v1
"""SQLite-based session store (SESSION_STORE_BACKEND=sqlite).

Uses stdlib sqlite3 — no external dependency. One table per record
type; the full record is stored as JSON next to indexed lookup columns.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from postpilot.core.errors import SessionStoreError
from postpilot.storage.base_session_store import BaseSessionStore, R

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,
    workflow_id TEXT NOT NULL,
    version INTEGER NOT NULL,
    status TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_{table}_workflow ON {table}(workflow_id, version);
"""


class SqliteSessionStore(BaseSessionStore[R]):
    """SQLite-backed session store."""

    def __init__(self, model: type[R], db_path: Path | str) -> None:
        super().__init__(model)
        self._table = model.store_name
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA.format(table=self._table))

    async def _read(self, session_id: str) -> R | None:
        cursor = self._conn.execute(
            f"SELECT data FROM {self._table} WHERE id = ?", (session_id,)  # noqa: S608
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._load(row[0], session_id)

    async def _insert(self, record: R) -> None:
        try:
            self._conn.execute(
                f"""INSERT INTO {self._table}
                   (id, workflow_id, version, status, data, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",  # noqa: S608
                self._row(record),
            )
        except sqlite3.IntegrityError as e:
            raise SessionStoreError(f"Session already exists: {record.id}") from e
        self._conn.commit()

    async def _write(self, record: R) -> None:
        self._conn.execute(
            f"""UPDATE {self._table}
               SET workflow_id = ?, version = ?, status = ?, data = ?, updated_at = ?
               WHERE id = ?""",  # noqa: S608
            (*self._row(record)[1:], record.id),
        )
        self._conn.commit()

    async def _scan(self, workflow_id: str) -> list[R]:
        cursor = self._conn.execute(
            f"SELECT id, data FROM {self._table} WHERE workflow_id = ?",  # noqa: S608
            (workflow_id,),
        )
        records: list[R] = []
        for session_id, data in cursor.fetchall():
            record = self._load(data, session_id)
            if record is not None:
                records.append(record)
        return records

    async def latest_version_for_parent(self, workflow_id: str) -> int:
        cursor = self._conn.execute(
            f"SELECT COALESCE(MAX(version), 0) FROM {self._table} WHERE workflow_id = ?",  # noqa: S608
            (workflow_id,),
        )
        return int(cursor.fetchone()[0])

    async def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _load(self, data: str, session_id: str) -> R | None:
        try:
            return self._model.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Failed to deserialize session %s: %s", session_id, e)
            return None

    @staticmethod
    def _row(record: R) -> tuple[str, str, int, str, str, str]:
        return (
            record.id,
            record.workflow_id,
            record.version,
            record.status,
            record.model_dump_json(),
            record.updated_at.isoformat(),
        )

# src/storage/store_factory.py — v1
"""Factory for session store instantiation."""

from __future__ import annotations

from postpilot.config.settings import Settings
from postpilot.storage.base_session_store import BaseSessionStore, R


def create_session_store(settings: Settings, model: type[R]) -> BaseSessionStore[R]:
    """Instantiate the configured session backend for one record type.

    Args:
        settings: Application settings (backend and root directory).
        model: Record model the store persists (LinkSession, OutlineSession).

    Returns:
        Configured BaseSessionStore implementation.
    """
    backend = settings.session_store_backend

    if backend == "memory":
        from postpilot.storage.memory_store import MemorySessionStore
        return MemorySessionStore(model)

    if backend == "json":
        from postpilot.storage.json_store import JsonSessionStore
        return JsonSessionStore(model, root=settings.session_store_root)

    if backend == "sqlite":
        from postpilot.storage.sqlite_store import SqliteSessionStore
        db_path = settings.session_store_root.expanduser() / "postpilot_sessions.db"
        return SqliteSessionStore(model, db_path=db_path)

    raise ValueError(f"Unsupported session store backend: {backend!r}")

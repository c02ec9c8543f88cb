# tests/unit/storage/test_unit_store_models.py — v1
"""Tests for storage/models.py and storage/store_factory.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from postpilot.config.settings import Settings
from postpilot.storage.json_store import JsonSessionStore
from postpilot.storage.memory_store import MemorySessionStore
from postpilot.storage.models import LinkSession, OutlineSession, utcnow
from postpilot.storage.sqlite_store import SqliteSessionStore
from postpilot.storage.store_factory import create_session_store


def _link(**kwargs) -> LinkSession:
    return LinkSession(
        workflow_id="wf-1",
        original_article="Some article.",
        target_domain="acme.example",
        client_name="Acme",
        client_url="https://acme.example",
        guest_post_site="blog.example.com",
        target_keyword="kanban",
        **kwargs,
    )


class TestLinkSession:
    def test_defaults(self):
        session = _link()
        assert session.status == "initializing"
        assert session.current_phase == 0
        assert session.version == 1
        assert session.first_incomplete_phase() == 1

    def test_first_incomplete_phase(self):
        now = utcnow()
        assert _link(phase1_complete=now).first_incomplete_phase() == 2
        done = _link(phase1_complete=now, phase2_complete=now, phase3_complete=now)
        assert done.first_incomplete_phase() is None

    def test_phase_order(self):
        with pytest.raises(ValidationError, match="phase1_complete"):
            _link(phase2_complete=utcnow())

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            _link(status="phase4")

    def test_unique_ids(self):
        assert _link().id != _link().id


class TestOutlineSession:
    def test_defaults(self):
        session = OutlineSession(workflow_id="wf", outline_prompt="x")
        assert session.status == "triaging"
        assert session.is_active is True

    def test_clarifying_requires_state(self):
        with pytest.raises(ValidationError, match="agent_state"):
            OutlineSession(workflow_id="wf", outline_prompt="x", status="clarifying")


class TestStoreFactory:
    def _settings(self, backend: str, tmp_path) -> Settings:
        return Settings(_env_file=None, session_store_backend=backend, session_store_root=tmp_path)

    def test_memory(self, tmp_path):
        store = create_session_store(self._settings("memory", tmp_path), LinkSession)
        assert isinstance(store, MemorySessionStore)
        assert store.model is LinkSession

    def test_json(self, tmp_path):
        store = create_session_store(self._settings("json", tmp_path), OutlineSession)
        assert isinstance(store, JsonSessionStore)
        assert (tmp_path / "outline_sessions").is_dir()

    def test_sqlite(self, tmp_path):
        store = create_session_store(self._settings("sqlite", tmp_path), LinkSession)
        assert isinstance(store, SqliteSessionStore)
        assert (tmp_path / "postpilot_sessions.db").exists()

    def test_invalid_backend_rejected_by_settings(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, session_store_backend="postgres")

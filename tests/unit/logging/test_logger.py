# tests/unit/logging/test_logger.py — v2
"""Tests for logging/logger.py — logger factory and formatters."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from postpilot.logging.context import (
    clear_context,
    set_agent_context,
    set_phase_context,
    set_session_context,
)
from postpilot.logging.logger import (
    JsonFormatter,
    TextFormatter,
    get_logger,
    parse_size,
    setup_logging,
)


def _record(msg: str = "Hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_session_context("sess-1234", "links")
        set_agent_context("images")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {
            "session_id": "sess-1234",
            "pipeline": "links",
            "agent": "images",
        }

    def test_format_with_data(self):
        parsed = json.loads(JsonFormatter().format(_record(data={"calls": 3})))
        assert parsed["data"] == {"calls": 3}


class TestTextFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "[INFO    ]" in output
        assert output.endswith("- Hello text")

    def test_format_with_context(self):
        set_session_context("abcdef1234567890", "outline")
        set_phase_context("triage")
        set_agent_context("triage")
        output = TextFormatter().format(_record())
        assert "<abcdef12>" in output
        assert "(triage)" in output
        assert "[triage]" in output


class TestParseSize:
    @pytest.mark.parametrize(
        "value, expected",
        [("10MB", 10 * 1024**2), ("512kb", 512 * 1024), ("1 GB", 1024**3)],
    )
    def test_valid(self, value, expected):
        assert parse_size(value) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("lots")


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger("postpilot").handlers.clear()

    def test_get_logger_namespace(self):
        assert get_logger("pipeline").name == "postpilot.pipeline"

    def test_console_only(self):
        setup_logging(level="DEBUG", log_format="text")
        root = logging.getLogger("postpilot")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "postpilot.log"
        setup_logging(log_file=log_file, rotation="1MB", retention=3)
        root = logging.getLogger("postpilot")
        file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 1024**2
        assert file_handlers[0].backupCount == 3
        assert log_file.parent.is_dir()
        file_handlers[0].close()

    def test_reinit_does_not_stack(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("postpilot").handlers) == 1

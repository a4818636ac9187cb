# tests/unit/logging/test_logger.py - v2
"""Tests for logging/logger.py - formatters, size parsing and setup."""

from __future__ import annotations

import json
import logging

import pytest

from paygent.logging.context import clear_context, set_phase_context, set_run_context
from paygent.logging.logger import (
    JsonFormatter,
    TextFormatter,
    get_logger,
    parse_size,
    setup_logging,
)


def _record(msg: str = "Hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )


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
        set_run_context("run1")
        set_phase_context("PAY")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {"run_id": "run1", "phase": "PAY"}

    def test_format_with_data(self):
        record = _record()
        record.data = {"k": 1}
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["data"] == {"k": 1}


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_format_with_run(self):
        set_run_context("run42")
        output = TextFormatter().format(_record())
        assert "[run=run42]" in output


class TestParseSize:
    @pytest.mark.parametrize(
        "value,expected",
        [("10MB", 10 * 1024**2), ("512 KB", 512 * 1024), ("1gb", 1024**3)],
    )
    def test_valid(self, value, expected):
        assert parse_size(value) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("ten megabytes")


class TestGetLogger:
    def test_returns_logger(self):
        assert get_logger("test_module").name == "paygent.test_module"


class TestSetupLogging:
    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json")
        root = logging.getLogger("paygent")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("paygent")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_setup_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "paygent.log"
        setup_logging(level="INFO", log_format="json", log_file=log_file, rotation="1MB")
        root = logging.getLogger("paygent")
        assert len(root.handlers) == 2
        root.info("written")
        for handler in root.handlers:
            handler.flush()
        assert "written" in log_file.read_text()
        for handler in root.handlers:
            handler.close()
        root.handlers.clear()

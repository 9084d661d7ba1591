"""Unit tests for logging infrastructure."""

import json
import logging
import sys

import pytest

from recipe_trace.utils.logger import JSONFormatter, RichTextFormatter, get_logger, log_context, logger


def make_record(msg: str = "Test message", level: int = logging.INFO, name: str = "test_logger", exc_info=None):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def fresh_logger_name(name: str) -> str:
    """Drop handlers left by earlier tests so get_logger configures from scratch."""
    if name in logging.Logger.manager.loggerDict:
        logging.getLogger(name).handlers.clear()
    return name


class TestJSONFormatter:
    """Test JSONFormatter produces valid JSON output."""

    def test_json_formatter_outputs_valid_json(self):
        """Test that JSONFormatter produces valid JSON with the core fields."""
        parsed = json.loads(JSONFormatter().format(make_record()))

        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test_logger"
        assert parsed["message"] == "Test message"
        assert "timestamp" in parsed

    def test_json_formatter_includes_exception_traceback(self):
        """Test that JSONFormatter includes exception traceback when present."""
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", level=logging.ERROR, exc_info=sys.exc_info())

        parsed = json.loads(JSONFormatter().format(record))

        assert "ValueError" in parsed["exception"]

    def test_json_formatter_includes_context_fields(self):
        """Test that run_id, session_id and tool_name extras are copied into the JSON."""
        record = make_record()
        record.run_id = "run-123"
        record.session_id = "sess-456"
        record.tool_name = "nutrition_lookup"

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["run_id"] == "run-123"
        assert parsed["session_id"] == "sess-456"
        assert parsed["tool_name"] == "nutrition_lookup"

    def test_json_formatter_omits_absent_context_fields(self):
        """Test that context fields are not emitted when missing."""
        parsed = json.loads(JSONFormatter().format(make_record()))

        assert "run_id" not in parsed
        assert "service" not in parsed


class TestLogContext:
    """Test log_context builds extra mappings."""

    def test_drops_unset_fields(self):
        """Test that None values are left out."""
        assert log_context(run_id="run-1", service=None) == {"run_id": "run-1"}

    def test_rejects_unknown_fields(self):
        """Test that typos in field names fail loudly."""
        with pytest.raises(ValueError) as exc_info:
            log_context(runid="run-1")
        assert "runid" in str(exc_info.value)

    def test_rich_formatter_appends_context(self):
        """Test that context extras render as a bracketed suffix."""
        record = make_record()
        for key, value in log_context(service="recipe", tool_name="lookup").items():
            setattr(record, key, value)

        assert "[service=recipe tool_name=lookup]" in RichTextFormatter().format(record)

    def test_rich_formatter_without_context(self):
        """Test that records without context carry no suffix."""
        output = RichTextFormatter().format(make_record())
        assert output.endswith("Test message" + RichTextFormatter.COLORS["RESET"])


class TestRichTextFormatter:
    """Test RichTextFormatter produces colored text output."""

    def test_rich_text_formatter_includes_emoji_icon(self):
        """Test that RichTextFormatter includes the icon for each level."""
        formatter = RichTextFormatter()

        for level, icon in RichTextFormatter.ICONS.items():
            output = formatter.format(make_record(level=getattr(logging, level)))
            assert icon in output

    def test_rich_text_formatter_includes_level_logger_and_message(self):
        """Test that level name, logger name and message all appear."""
        output = RichTextFormatter().format(make_record("Custom message", name="my_logger"))

        assert "INFO" in output
        assert "my_logger" in output
        assert "Custom message" in output

    def test_rich_text_formatter_colors_by_level(self):
        """Test that WARNING records use the yellow color code."""
        output = RichTextFormatter().format(make_record(level=logging.WARNING))

        assert output.startswith(RichTextFormatter.COLORS["WARNING"])

    def test_rich_text_formatter_includes_exception_traceback(self):
        """Test that RichTextFormatter includes exception traceback."""
        try:
            raise RuntimeError("Test error")
        except RuntimeError:
            record = make_record("Error occurred", level=logging.ERROR, exc_info=sys.exc_info())

        output = RichTextFormatter().format(record)

        assert "RuntimeError" in output
        assert "Test error" in output


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_returns_logger_instance(self):
        """Test that get_logger returns a logging.Logger instance."""
        assert isinstance(get_logger("test_module"), logging.Logger)

    def test_get_logger_does_not_duplicate_handlers(self):
        """Test that repeated calls keep a single handler."""
        name = fresh_logger_name("test_single_handler")
        get_logger(name)
        second = get_logger(name)

        assert len(second.handlers) == 1

    def test_get_logger_respects_log_level_env(self, monkeypatch):
        """Test that get_logger respects LOG_LEVEL environment variable."""
        name = fresh_logger_name("test_level_logger")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        assert get_logger(name).level == logging.DEBUG

    def test_invalid_log_level_defaults_to_info(self, monkeypatch):
        """Test that invalid LOG_LEVEL defaults to INFO."""
        name = fresh_logger_name("test_invalid_level")
        monkeypatch.setenv("LOG_LEVEL", "INVALID")

        assert get_logger(name).level == logging.INFO

    def test_get_logger_uses_json_formatter(self, monkeypatch):
        """Test that LOG_TYPE=json selects JSONFormatter."""
        name = fresh_logger_name("test_json_logger")
        monkeypatch.setenv("LOG_TYPE", "json")

        assert isinstance(get_logger(name).handlers[0].formatter, JSONFormatter)

    def test_get_logger_defaults_to_text(self, monkeypatch):
        """Test that LOG_TYPE defaults to the rich text formatter."""
        name = fresh_logger_name("test_default_type")
        monkeypatch.delenv("LOG_TYPE", raising=False)

        assert isinstance(get_logger(name).handlers[0].formatter, RichTextFormatter)


class TestModuleLevelLogger:
    """Test module-level logger instance."""

    def test_logger_name(self):
        """Test that the package logger is named after the package."""
        assert logger.name == "recipe_trace"
        assert len(logger.handlers) > 0

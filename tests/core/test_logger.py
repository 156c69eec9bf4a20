"""Tests for structured logging"""
import json
import logging
from unittest.mock import patch

from energy_sync.core.logger import (
    ConsoleFormatter,
    JSONFormatter,
    StructuredLogger,
    get_correlation_id,
    set_correlation_id,
)


def make_record(message, **extra):
    record = logging.LogRecord("energy-sync", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    def test_set_and_clear(self):
        set_correlation_id("corr-1")
        assert get_correlation_id() == "corr-1"

        set_correlation_id(None)
        assert get_correlation_id() is None


class TestStructuredLogger:
    def test_json_entry_carries_context(self):
        structured = StructuredLogger("energy-sync", "test", "DEBUG", "json")
        set_correlation_id("corr-7")

        with patch.object(structured._logger, "info") as mock_info:
            structured.info("Event published", metadata={"event": "event_published"})

        entry = json.loads(mock_info.call_args.args[0])
        assert entry["message"] == "Event published"
        assert entry["service"] == "energy-sync"
        assert entry["correlationId"] == "corr-7"
        assert entry["metadata"] == {"event": "event_published"}
        set_correlation_id(None)

    def test_error_attaches_exception(self):
        structured = StructuredLogger("energy-sync", "test", "DEBUG", "json")

        with patch.object(structured._logger, "error") as mock_error:
            structured.error("Failed", error=ConnectionError("refused"), metadata={"event": "broker_connect_failed"})

        entry = json.loads(mock_error.call_args.args[0])
        assert entry["metadata"]["error"] == {"type": "ConnectionError", "message": "refused"}
        assert entry["metadata"]["event"] == "broker_connect_failed"


class TestFormatters:
    def test_json_formatter_passes_rendered_entries_through(self):
        formatter = JSONFormatter("energy-sync")

        assert formatter.format(make_record('{"message": "x"}')) == '{"message": "x"}'

    def test_json_formatter_includes_extra_fields(self):
        formatter = JSONFormatter("energy-sync")

        data = json.loads(formatter.format(make_record("plain", correlationId="c1")))

        assert data["message"] == "plain"
        assert data["correlationId"] == "c1"

    def test_console_formatter(self):
        line = ConsoleFormatter().format(make_record("hello", correlationId="c1", metadata={"event": "x"}))

        assert "hello" in line
        assert "[c1]" in line
        assert '{"event": "x"}' in line

"""
Unit tests for structured logging and Prometheus metrics.
"""

import json
import logging

import pytest

from schemastash.observability.logger import (
    DEFAULT_LOGGER_NAME,
    configure_logging,
    get_logger,
    log_operation,
)
from schemastash.observability.metrics import (
    REGISTRY,
    cached_transformations_total,
    generate_metrics,
    get_content_type,
    get_metrics,
    import_records_written_total,
    increment_counter,
    track_duration,
    transformation_duration_seconds,
)


def last_log_line(capsys) -> dict:
    lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
    return json.loads(lines[-1])


class TestLogger:
    """Tests for the JSON logger"""

    def test_module_loggers_are_namespaced(self):
        assert get_logger("schemastash.api").name == "schemastash.api"
        assert get_logger("mymodule").name == "schemastash.mymodule"
        assert get_logger().name == DEFAULT_LOGGER_NAME

    def test_json_fields(self, capsys):
        configure_logging(level="INFO", format_type="json")
        get_logger("schemastash.test").info("hello", extra={"schema_title": "t"})
        record = last_log_line(capsys)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "schemastash.test"
        assert record["schema_title"] == "t"

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING")
        get_logger().info("quiet")
        assert capsys.readouterr().err == ""

    def test_text_format(self, capsys):
        configure_logging(level="INFO", format_type="text")
        get_logger().info("plain")
        assert "INFO" in capsys.readouterr().err

    def test_log_operation_success(self, capsys):
        configure_logging(level="INFO")
        with log_operation("Importing", source_path="a.jsonl"):
            pass
        record = last_log_line(capsys)
        assert record["status"] == "success"
        assert record["source_path"] == "a.jsonl"

    def test_log_operation_failure_reraises(self, capsys):
        configure_logging(level="INFO")
        with pytest.raises(KeyError):
            with log_operation("Importing"):
                raise KeyError("boom")
        record = last_log_line(capsys)
        assert record["status"] == "error"
        assert record["error_type"] == "KeyError"

    def test_stays_off_stdout(self, capsys):
        configure_logging(level="INFO")
        logging.getLogger("schemastash.cli").info("on stderr")
        assert capsys.readouterr().out == ""


class TestMetrics:
    """Tests for metric helpers"""

    def test_increment_unlabelled(self):
        before = REGISTRY.get_sample_value("stash_import_records_written_total") or 0.0
        increment_counter(import_records_written_total, 3)
        assert REGISTRY.get_sample_value("stash_import_records_written_total") == before + 3

    def test_increment_labelled(self):
        labels = {"result": "hit"}
        before = REGISTRY.get_sample_value("stash_cached_transformations_total", labels) or 0.0
        increment_counter(cached_transformations_total, result="hit")
        assert REGISTRY.get_sample_value("stash_cached_transformations_total", labels) == before + 1

    def test_track_duration(self):
        labels = {"language": "test"}
        before = REGISTRY.get_sample_value("stash_transformation_duration_seconds_count", labels) or 0.0
        with track_duration(transformation_duration_seconds, language="test"):
            pass
        after = REGISTRY.get_sample_value("stash_transformation_duration_seconds_count", labels)
        assert after == before + 1

    def test_exposition(self):
        assert b"stash_transformations_total" in generate_metrics()
        assert get_content_type().startswith("text/plain")
        assert "stash_payloads_stored_total" in get_metrics()

"""Unit tests for backlog logging and observability.

This module tests the logging infrastructure, performance monitoring,
and observability hooks.
"""

import json
import logging
import sys

import pytest
from unittest.mock import MagicMock

from backlog_core.backlog_logging import (
    LOGGER_NAME,
    JsonFormatter,
    ObservabilityHooks,
    PerformanceMonitor,
    log_error_with_context,
    log_operation,
    log_performance,
    log_task_created,
    observability_hooks,
    performance_monitor,
    setup_logging,
)


@pytest.fixture
def restore_backlog_logger():
    """Put the package logger back the way it was after setup_logging tests."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_json_formatter_basic(self):
        """Test basic JSON formatting."""
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord("test", logging.INFO, "file.py", 10, "Test message", (), None)

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert "line" in data

    def test_json_formatter_with_extra_fields(self):
        """Test extra fields are merged into the entry."""
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord("test", logging.INFO, "file.py", 10, "Msg", (), None)
        record.extra_fields = {"task_id": "TASK-1"}

        data = json.loads(formatter.format(record))

        assert data["task_id"] == "TASK-1"

    def test_json_formatter_with_exception(self):
        """Test exception text is included."""
        formatter = JsonFormatter()
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = logging.getLogger("test").makeRecord(
                "test", logging.ERROR, "file.py", 10, "Failed", (), sys.exc_info()
            )

        data = json.loads(formatter.format(record))

        assert "ValueError: Test exception" in data["exception"]


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_console_only(self, restore_backlog_logger):
        """Test a single stream handler at the requested level."""
        setup_logging("DEBUG")

        assert restore_backlog_logger.level == logging.DEBUG
        assert len(restore_backlog_logger.handlers) == 1

    def test_json_log_file(self, tmp_path, restore_backlog_logger):
        """Test the log file receives JSON lines."""
        log_file = tmp_path / "backlog.log"
        setup_logging(logging.INFO, log_file)
        logging.getLogger(f"{LOGGER_NAME}.test").info("hello")
        for handler in restore_backlog_logger.handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        messages = [json.loads(line)["message"] for line in lines]
        assert "hello" in messages


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    def test_record_and_get(self):
        """Test metrics are grouped by name."""
        monitor = PerformanceMonitor()
        monitor.record_metric("op_duration", 0.5, {"status": "success"})
        monitor.record_metric("op_duration", 0.7)

        metrics = monitor.get_metrics("op_duration")["op_duration"]
        assert [metric["value"] for metric in metrics] == [0.5, 0.7]
        assert metrics[1]["tags"] == {}
        assert monitor.get_metrics("other") == {"other": []}

    def test_clear(self):
        """Test clearing drops all metrics."""
        monitor = PerformanceMonitor()
        monitor.record_metric("x", 1)
        monitor.clear()
        assert monitor.get_metrics() == {}


class TestLogPerformance:
    """Test cases for the log_performance decorator."""

    def setup_method(self):
        performance_monitor.clear()

    def test_success_recorded(self):
        """Test a successful call records a success metric."""
        @log_performance("sample")
        def sample(value):
            return value * 2

        assert sample(2) == 4
        metrics = performance_monitor.get_metrics("sample_duration")["sample_duration"]
        assert metrics[0]["tags"] == {"status": "success"}

    def test_failure_recorded_and_raised(self):
        """Test a failing call records the error type and re-raises."""
        @log_performance("broken")
        def broken():
            raise KeyError("nope")

        with pytest.raises(KeyError):
            broken()
        metrics = performance_monitor.get_metrics("broken_duration")["broken_duration"]
        assert metrics[0]["tags"] == {"status": "error", "error_type": "KeyError"}


class TestLogOperation:
    """Test cases for the log_operation context manager."""

    def test_completion_logged(self, caplog):
        """Test a completed operation is logged at INFO."""
        with caplog.at_level(logging.INFO, logger=f"{LOGGER_NAME}.operations"):
            with log_operation("demo", task_id="TASK-1"):
                pass
        assert "Completed operation: demo" in caplog.text

    def test_failure_logged_and_raised(self, caplog):
        """Test errors are logged and propagate."""
        with caplog.at_level(logging.ERROR, logger=f"{LOGGER_NAME}.operations"):
            with pytest.raises(RuntimeError):
                with log_operation("demo"):
                    raise RuntimeError("boom")
        assert "Failed operation: demo" in caplog.text


class TestObservabilityHooks:
    """Test cases for ObservabilityHooks."""

    def test_register_and_trigger(self):
        """Test callbacks receive event data."""
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("task_created", callback)

        hooks.log_task_event("task_created", task_id="TASK-1", path="x.md")

        callback.assert_called_once()
        kwargs = callback.call_args.kwargs
        assert kwargs["task_id"] == "TASK-1"
        assert kwargs["path"] == "x.md"
        assert "timestamp" in kwargs
        assert "event_type" not in kwargs

    def test_failing_hook_does_not_stop_others(self):
        """Test a raising hook is logged and the next hook still runs."""
        hooks = ObservabilityHooks()
        second = MagicMock()
        hooks.register_hook("task_edited", MagicMock(side_effect=RuntimeError("bad hook")))
        hooks.register_hook("task_edited", second)

        hooks.trigger_hooks("task_edited", task_id="TASK-2")

        second.assert_called_once_with(task_id="TASK-2")

    def test_unregister(self):
        """Test an unregistered hook is no longer called."""
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("task_created", callback)
        hooks.unregister_hook("task_created", callback)

        hooks.trigger_hooks("task_created")

        callback.assert_not_called()

    def test_log_task_created_uses_global_hooks(self, tmp_path):
        """Test the convenience helper fires the shared hooks."""
        callback = MagicMock()
        observability_hooks.register_hook("task_created", callback)
        try:
            log_task_created("TASK-3", tmp_path / "task-3 - X.md", parent_id=None)
        finally:
            observability_hooks.unregister_hook("task_created", callback)

        assert callback.call_args.kwargs["path"] == str(tmp_path / "task-3 - X.md")


class TestLogErrorWithContext:
    """Test cases for log_error_with_context."""

    def test_error_logged(self, caplog):
        """Test the operation name and error are in the message."""
        with caplog.at_level(logging.ERROR, logger=f"{LOGGER_NAME}.errors"):
            log_error_with_context(ValueError("bad"), {"operation": "edit_task"})
        assert "Error in edit_task: bad" in caplog.text

"""Tests for logging utilities."""

import logging
import time

import pytest

from sctl.logging import (
    TRACE,
    StructuredLogger,
    configure_logging,
    get_level_from_name,
    get_level_from_verbosity,
    get_logger,
    log_performance,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_default(self):
        """Test default logging configuration."""
        configure_logging()
        assert logging.root.level == logging.WARNING

    def test_configure_custom_level(self):
        """Test custom log level."""
        configure_logging(level=logging.DEBUG)
        assert logging.root.level == logging.DEBUG

    def test_single_console_handler(self):
        """Reconfiguring replaces handlers instead of stacking them."""
        configure_logging()
        configure_logging(level=logging.INFO)
        assert len(logging.root.handlers) == 1

    def test_log_file(self, tmp_path):
        """Test file handler is added at its own level."""
        log_file = tmp_path / "logs" / "sctl.log"
        configure_logging(level=logging.WARNING, log_file=log_file, file_level=logging.DEBUG)

        logging.getLogger("sctl.test").debug("written to file")
        for handler in logging.root.handlers:
            handler.flush()

        assert logging.root.level == logging.DEBUG
        assert "written to file" in log_file.read_text()


class TestLevels:
    def test_verbosity_mapping(self):
        assert get_level_from_verbosity(0) == logging.WARNING
        assert get_level_from_verbosity(1) == logging.INFO
        assert get_level_from_verbosity(2) == logging.DEBUG
        assert get_level_from_verbosity(3) == TRACE
        assert get_level_from_verbosity(7) == TRACE

    def test_level_names(self):
        assert get_level_from_name("trace") == TRACE
        assert get_level_from_name("DEBUG") == logging.DEBUG

    def test_invalid_level_name(self):
        with pytest.raises(ValueError, match="Invalid log level: loud"):
            get_level_from_name("loud")

    def test_trace_level_name(self):
        assert logging.getLevelName(TRACE) == "TRACE"


class TestLogPerformance:
    """Tests for log_performance context manager."""

    def test_log_performance_with_context(self, caplog):
        """Test performance logging with context."""
        logger = logging.getLogger("test.perf.context")
        logger.setLevel(logging.INFO)

        with log_performance(logger, "Task deploy on web01", steps=3):
            time.sleep(0.01)

        assert "Task deploy on web01 completed in 0." in caplog.text
        assert "(steps=3)" in caplog.text

    def test_log_performance_exception(self, caplog):
        """Test performance logging with exception."""
        logger = logging.getLogger("test.perf.exception")
        logger.setLevel(logging.INFO)

        with pytest.raises(ValueError):
            with log_performance(logger, "Failing operation"):
                raise ValueError("test error")

        # Should still log duration even on exception
        assert "Failing operation completed" in caplog.text


class TestStructuredLogger:
    """Tests for StructuredLogger class."""

    def test_create_logger_with_context(self):
        logger = StructuredLogger("test", task="deploy")
        assert logger.logger.name == "test"
        assert logger.context == {"task": "deploy"}

    def test_bind_returns_new_logger(self):
        base = StructuredLogger("test", task="deploy")
        bound = base.bind(host="web01")

        assert bound.context == {"task": "deploy", "host": "web01"}
        assert base.context == {"task": "deploy"}

    def test_log_with_extra_context(self, caplog):
        logger = StructuredLogger("test.extra", task="deploy")
        logger.logger.setLevel(logging.INFO)

        logger.info("Running on 2 host(s)", hosts="web01,web02")

        assert "Running on 2 host(s) (task=deploy, hosts=web01,web02)" in caplog.text

    def test_log_without_context(self, caplog):
        logger = StructuredLogger("test.nocontext")
        logger.logger.setLevel(logging.INFO)

        logger.info("Simple message")

        assert "Simple message" in caplog.text
        assert "(" not in caplog.text

    def test_log_levels(self, caplog):
        logger = StructuredLogger("test.levels")
        logger.logger.setLevel(logging.DEBUG)

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.log(TRACE, "Trace message")

        assert "Debug message" in caplog.text
        assert "Info message" in caplog.text
        assert "Warning message" in caplog.text
        assert "Error message" in caplog.text
        assert "Trace message" not in caplog.text


class TestGetLogger:
    def test_get_logger_with_context(self):
        logger = get_logger("test.get.context", component="executor")
        assert isinstance(logger, StructuredLogger)
        assert logger.context == {"component": "executor"}

"""
Tests for logging_config module.
"""

import logging
from datetime import datetime

import pytest

from memory_consolidation.infra.logging_config import (
    LOGGER_NAME,
    DailyRotatingFileHandler,
    setup_logging,
)


def make_record(message: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=message, args=(), exc_info=None,
    )


@pytest.fixture(autouse=True)
def clean_package_logger():
    """Drop handlers added by setup_logging after each test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True


class TestDailyRotatingFileHandler:
    """Tests for DailyRotatingFileHandler class."""

    def test_handler_creates_log_directory(self, tmp_path):
        """Test that handler creates log directory if it doesn't exist."""
        log_dir = tmp_path / "new_logs"
        assert not log_dir.exists()

        handler = DailyRotatingFileHandler(log_dir=str(log_dir))
        assert log_dir.exists()
        handler.close()

    def test_handler_creates_log_file(self, tmp_path):
        """Test that handler creates a log file with correct naming."""
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path))

        log_files = list(tmp_path.glob("consolidation_*.log"))
        assert len(log_files) == 1
        assert log_files[0].name.endswith(".log")
        handler.close()

    def test_handler_emits_record(self, tmp_path):
        """Test that handler writes log records to file."""
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path))
        handler.setFormatter(logging.Formatter('%(message)s'))

        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="Consolidation completed",
            args=(),
            exc_info=None
        )
        handler.emit(record)
        handler.close()

        log_files = list(tmp_path.glob("consolidation_*.log"))
        assert len(log_files) == 1
        assert "Consolidation completed" in log_files[0].read_text()

    def test_switches_file_when_day_changes(self, tmp_path):
        """A record written after midnight goes to the next day's file."""
        now = {"value": datetime(2026, 1, 1, 23, 59, 59)}
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path), clock=lambda: now["value"])
        handler.setFormatter(logging.Formatter("%(message)s"))

        handler.emit(make_record("before midnight"))
        now["value"] = datetime(2026, 1, 2, 0, 0, 1)
        handler.emit(make_record("after midnight"))
        handler.close()

        first = next(tmp_path.glob("consolidation_20260101_*.log"))
        second = next(tmp_path.glob("consolidation_20260102_*.log"))
        assert first.read_text().strip() == "before midnight"
        assert second.read_text().strip() == "after midnight"

    def test_same_day_keeps_file(self, tmp_path):
        handler = DailyRotatingFileHandler(
            log_dir=str(tmp_path), clock=lambda: datetime(2026, 1, 1, 12, 0, 0)
        )
        handler.setFormatter(logging.Formatter("%(message)s"))

        handler.emit(make_record("one"))
        handler.emit(make_record("two"))
        handler.close()

        log_files = list(tmp_path.glob("consolidation_*.log"))
        assert len(log_files) == 1
        assert log_files[0].read_text().split() == ["one", "two"]


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_returns_package_logger(self):
        logger = setup_logging("INFO", log_dir=None)

        assert isinstance(logger, logging.Logger)
        assert logger.name == "memory_consolidation"

    def test_sets_correct_log_level(self):
        logger = setup_logging("DEBUG", log_dir=None)
        assert logger.level == logging.DEBUG

        logger = setup_logging("warning", log_dir=None)
        assert logger.level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logging("CHATTY", log_dir=None)
        assert logger.level == logging.INFO

    def test_console_only(self):
        logger = setup_logging("INFO", log_dir=None)

        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0], logging.FileHandler)

    def test_adds_file_handler(self, tmp_path):
        logger = setup_logging("INFO", log_dir=str(tmp_path))

        assert any(isinstance(h, DailyRotatingFileHandler) for h in logger.handlers)

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging("INFO", log_dir=None)
        logger = setup_logging("INFO", log_dir=None)

        assert len(logger.handlers) == 1

    def test_prevents_propagation(self):
        logger = setup_logging("INFO", log_dir=None)
        assert logger.propagate is False

    def test_scheduler_modules_log_through_package_logger(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))

        logging.getLogger("memory_consolidation.scheduler.service").info("timer armed")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()

        content = next(tmp_path.glob("consolidation_*.log")).read_text()
        assert "timer armed" in content

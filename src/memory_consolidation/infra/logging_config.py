"""
Logging configuration for the ``memory_consolidation`` package logger.

Console output always; optionally one log file per day under ``log_dir``,
named ``consolidation_<YYYYMMDD>_<HHMMSS>.log`` where HHMMSS is the
process start time shared by every file the process writes.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

LOGGER_NAME = "memory_consolidation"
LOG_FILE_PREFIX = "consolidation"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_PROCESS_START_TIME: Optional[str] = None


def _process_start_stamp() -> str:
    global _PROCESS_START_TIME
    if _PROCESS_START_TIME is None:
        _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")
    return _PROCESS_START_TIME


class DailyRotatingFileHandler(logging.FileHandler):
    """
    File handler that switches to a new file when the calendar day changes.

    Long-running schedulers fire once a day, so each day's runs land in
    their own file.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        encoding: str = "utf-8",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._start_stamp = _process_start_stamp()
        self._day = self._today()

        super().__init__(self.path_for(self._day), mode="a", encoding=encoding)

    def _today(self) -> str:
        return self._clock().strftime("%Y%m%d")

    def path_for(self, day: str) -> str:
        return str(self.log_dir / f"{LOG_FILE_PREFIX}_{day}_{self._start_stamp}.log")

    def emit(self, record: logging.LogRecord) -> None:
        day = self._today()
        if day != self._day:
            self._switch_to(day)
        super().emit(record)

    def _switch_to(self, day: str) -> None:
        self.acquire()
        try:
            if self.stream is not None:
                self.stream.close()
            self._day = day
            self.baseFilename = self.path_for(day)
            self.stream = self._open()
        finally:
            self.release()


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
) -> logging.Logger:
    """
    Configure the package logger and return it.

    Scheduler modules log through ``logging.getLogger(__name__)``, so
    everything under ``memory_consolidation.*`` ends up here.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: Directory for daily log files; None for console only

    Returns:
        The configured ``memory_consolidation`` logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Calling again replaces handlers instead of stacking them
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        handlers.append(DailyRotatingFileHandler(log_dir=log_dir))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    destination = handlers[-1].baseFilename if log_dir is not None else "console"
    logger.info(f"Logging started - level: {logging.getLevelName(level)}, output: {destination}")

    return logger

"""
Infrastructure module - logging.
"""

from .logging_config import DailyRotatingFileHandler, setup_logging

__all__ = [
    "DailyRotatingFileHandler",
    "setup_logging",
]

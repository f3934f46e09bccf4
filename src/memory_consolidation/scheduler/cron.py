"""
Cron trigger.

Computes the next fire time of a 5-field cron expression
(minute hour day-of-month month day-of-week). Evaluation is delegated to
croniter once the field count has been checked.

An unparsable expression yields None instead of raising: a bad
expression costs the scheduler its next_run_at, not its availability.
"""

import logging
from datetime import datetime
from typing import Optional

from croniter import croniter


logger = logging.getLogger(__name__)

CRON_FIELD_COUNT = 5


def _fields(expression: str) -> list[str]:
    if not isinstance(expression, str):
        return []
    return expression.split()


def is_valid_expression(expression: str) -> bool:
    """Return True if ``expression`` is a valid 5-field cron expression."""
    fields = _fields(expression)
    if len(fields) != CRON_FIELD_COUNT:
        return False
    try:
        return bool(croniter.is_valid(" ".join(fields)))
    except Exception:
        return False


def compute_next_run(expression: str, from_time: datetime) -> Optional[datetime]:
    """
    Compute the next fire time strictly after ``from_time``.

    Args:
        expression: 5-field cron expression, e.g. "0 3 * * *"
        from_time: Reference time; naive datetimes are treated as local time

    Returns:
        The next fire time, or None if the expression cannot be parsed
    """
    if not is_valid_expression(expression):
        logger.warning(f"Invalid cron expression: {expression!r}")
        return None

    try:
        return croniter(" ".join(_fields(expression)), from_time).get_next(datetime)
    except Exception as e:
        logger.warning(f"Cannot compute next run for cron {expression!r}: {e}")
        return None

"""
Tests for cron next-run computation.
"""

from datetime import datetime

import pytest

from memory_consolidation.scheduler import compute_next_run, is_valid_expression


class TestIsValidExpression:

    @pytest.mark.parametrize("expression", [
        "0 3 * * *",
        "*/5 * * * *",
        "30 2 * * 1-5",
        "0 0 1 * *",
    ])
    def test_valid(self, expression):
        assert is_valid_expression(expression) is True

    @pytest.mark.parametrize("expression", [
        "",
        "not a cron",
        "* * * *",
        "0 0 3 * * *",  # six fields (seconds) are not accepted
        "61 * * * *",
        None,
    ])
    def test_invalid(self, expression):
        assert is_valid_expression(expression) is False


class TestComputeNextRun:

    def test_daily_before_fire_time(self):
        now = datetime(2026, 1, 1, 1, 0, 0)
        assert compute_next_run("0 3 * * *", now) == datetime(2026, 1, 1, 3, 0, 0)

    def test_daily_after_fire_time_rolls_to_next_day(self):
        now = datetime(2026, 1, 1, 4, 0, 0)
        assert compute_next_run("0 3 * * *", now) == datetime(2026, 1, 2, 3, 0, 0)

    def test_strictly_after_reference(self):
        now = datetime(2026, 1, 1, 3, 0, 0)
        assert compute_next_run("0 3 * * *", now) == datetime(2026, 1, 2, 3, 0, 0)

    def test_every_five_minutes(self):
        now = datetime(2026, 1, 1, 10, 2, 30)
        assert compute_next_run("*/5 * * * *", now) == datetime(2026, 1, 1, 10, 5, 0)

    def test_extra_whitespace_tolerated(self):
        now = datetime(2026, 1, 1, 1, 0, 0)
        assert compute_next_run("  0  3 * *  * ", now) == datetime(2026, 1, 1, 3, 0, 0)

    @pytest.mark.parametrize("expression", ["not a cron", "* * * *", "99 99 * * *"])
    def test_invalid_returns_none(self, expression):
        assert compute_next_run(expression, datetime(2026, 1, 1)) is None

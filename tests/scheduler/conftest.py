"""
Scheduler Test Fixtures.

Base fixtures:
  - Fake engine with scripted outcomes
  - Fixed-load admission sampler
  - Mocked clock at fixed time

Retry delays are kept at a few milliseconds so retry paths run fast.
"""

import asyncio
import time
from datetime import datetime, timedelta
from typing import Optional

import pytest

from memory_consolidation.scheduler import (
    AdmissionController,
    ConsolidationResult,
    ConsolidationScheduler,
)


# Fixed time for deterministic tests
FIXED_DATETIME = datetime(2026, 1, 1, 0, 0, 0)


class MockClock:
    """
    Mock clock for deterministic time control.

    - Starts at fixed epoch
    - Advances only when explicitly ticked
    """

    def __init__(self, start_time: datetime = FIXED_DATETIME):
        self._current = start_time

    def now(self) -> datetime:
        return self._current

    def __call__(self) -> datetime:
        return self._current

    def tick(self, seconds: float = 1) -> None:
        """Advance time by specified seconds."""
        self._current += timedelta(seconds=seconds)

    def set(self, time: datetime) -> None:
        """Set time to specific value."""
        self._current = time


class FixedLoad:
    """Admission sampler returning a settable load."""

    def __init__(self, load: float = 0.1):
        self.load = load
        self.calls = 0

    def __call__(self) -> float:
        self.calls += 1
        return self.load


def make_result(summary_id: str = "summary-1", ids=("m1", "m2"), content: str = "Summary") -> ConsolidationResult:
    return ConsolidationResult(
        summary_id=summary_id,
        consolidated_ids=list(ids),
        summary_content=content,
        consolidated_at=FIXED_DATETIME,
    )


class FakeEngine:
    """
    Fake consolidation engine for testing.

    Allows controlling outcome per call without a real store:
    - fail_times: the first N calls raise RuntimeError
    - results: returned once the failures are used up
    - gate: if set, every call waits on it before returning
    """

    def __init__(self, results=None, fail_times: int = 0):
        self.results = [] if results is None else results
        self.fail_times = fail_times
        self.calls: list[tuple[str, object]] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def run_consolidation(self, user_id, config):
        self.calls.append((user_id, config))
        self.entered.set()

        if self.gate is not None:
            await self.gate.wait()

        if len(self.calls) <= self.fail_times:
            raise RuntimeError(f"engine failure {len(self.calls)}")
        return self.results

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def load() -> FixedLoad:
    return FixedLoad(0.1)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine(results=[make_result()])


@pytest.fixture
def fast_config() -> dict:
    """Config with millisecond retry delays."""
    return {"base_retry_delay_ms": 1, "max_retry_attempts": 3}


@pytest.fixture
def scheduler(engine, load, fast_config) -> ConsolidationScheduler:
    return ConsolidationScheduler(
        engine,
        fast_config,
        admission=AdmissionController(sampler=load),
    )


@pytest.fixture
def make_scheduler(load):
    """Factory for schedulers with a fixed-load admission controller."""

    def _make(engine, config=None, **kwargs) -> ConsolidationScheduler:
        kwargs.setdefault("admission", AdmissionController(sampler=load))
        return ConsolidationScheduler(engine, config, **kwargs)

    return _make


class RealtimeClock:
    """Clock starting at a chosen time and advancing with real time."""

    def __init__(self, start_time: datetime):
        self._start = start_time
        self._origin = time.monotonic()

    def __call__(self) -> datetime:
        return self._start + timedelta(seconds=time.monotonic() - self._origin)


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` until it holds or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)

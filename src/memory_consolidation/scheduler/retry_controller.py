"""
Retry Controller for the Consolidation Scheduler.

Runs one logical job as up to ``1 + max_retry_attempts`` attempts:
- Attempts are 0-indexed; no delay precedes attempt 0
- Any exception from an attempt is retryable
- The first successful attempt returns immediately
- A backoff delay can be cancelled; no attempt follows a cancellation

What RetryController MUST NOT do:
- Check admission (done once, before the first attempt)
- Abort an attempt already in flight
- Touch scheduler status directly (reported through callbacks)
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .config import DEFAULT_BASE_RETRY_DELAY_MS, DEFAULT_MAX_RETRY_ATTEMPTS
from .errors import JobCancelledError, MaxRetriesExceededError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryController:
    """
    Bounded retry with exponential backoff.

    Backoff calculation:
        delay before retry n (n >= 1) = base_delay * 2^(n - 1)
        Example with 100ms base: 100ms -> 200ms -> 400ms

    One instance serves one logical job; cancel() is sticky.
    """

    def __init__(
        self,
        max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
        base_retry_delay_ms: float = DEFAULT_BASE_RETRY_DELAY_MS,
    ):
        """
        Initialize RetryController.

        Args:
            max_retry_attempts: Retries after the first attempt
            base_retry_delay_ms: Base unit for exponential backoff
        """
        self.max_retry_attempts = max_retry_attempts
        self.base_retry_delay_ms = base_retry_delay_ms

        self._cancelled = False
        self._cancel_event: Optional[asyncio.Event] = None

    @property
    def total_attempts(self) -> int:
        return 1 + self.max_retry_attempts

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def calculate_backoff(self, retry_number: int) -> float:
        """
        Delay in milliseconds before retry ``retry_number``.

        Formula: delay = base_delay * (2 ^ (retry_number - 1))
        """
        if retry_number < 1:
            return 0
        return self.base_retry_delay_ms * (2 ** (retry_number - 1))

    def cancel(self) -> None:
        """Cancel any pending backoff delay and all further attempts."""
        self._cancelled = True
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def _wait_backoff(self, delay_ms: float) -> bool:
        """
        Sleep for the backoff delay unless cancelled first.

        Returns:
            True if cancelled during (or before) the delay
        """
        if self._cancelled:
            return True
        if self._cancel_event is None:
            self._cancel_event = asyncio.Event()
        if delay_ms <= 0:
            await asyncio.sleep(0)
            return self._cancelled
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            return self._cancelled
        return True

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        *,
        on_attempt: Optional[Callable[[int], None]] = None,
        on_failure: Optional[Callable[[int, Exception], None]] = None,
        user_id: Optional[str] = None,
    ) -> T:
        """
        Execute ``operation`` with retries.

        Args:
            operation: Coroutine function called with the attempt index
            on_attempt: Called with the attempt index before each attempt
            on_failure: Called with (attempt index, error) after a failure
            user_id: Carried into errors and log lines

        Returns:
            The result of the first successful attempt

        Raises:
            MaxRetriesExceededError: If the final attempt failed
            JobCancelledError: If cancelled while retries were pending
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.total_attempts):
            if attempt > 0:
                delay = self.calculate_backoff(attempt)
                if await self._wait_backoff(delay):
                    logger.info(
                        f"Consolidation retry cancelled for user {user_id} "
                        f"after {attempt} attempt(s)"
                    )
                    raise JobCancelledError(attempt, last_error, user_id) from last_error

            if on_attempt is not None:
                on_attempt(attempt)

            try:
                return await operation(attempt)
            except Exception as e:
                last_error = e
                if on_failure is not None:
                    on_failure(attempt, e)

                if attempt < self.max_retry_attempts and not self._cancelled:
                    logger.warning(
                        f"Consolidation attempt {attempt + 1} failed for user {user_id}, "
                        f"retrying in {self.calculate_backoff(attempt + 1)}ms: {e}"
                    )
                elif attempt < self.max_retry_attempts:
                    logger.info(
                        f"Consolidation attempt {attempt + 1} failed for user {user_id} "
                        "after cancellation, not retrying"
                    )
                    raise JobCancelledError(attempt + 1, e, user_id) from e

        logger.error(
            f"Consolidation failed for user {user_id} after "
            f"{self.total_attempts} attempts: {last_error}"
        )
        raise MaxRetriesExceededError(self.total_attempts, last_error, user_id) from last_error

"""
Consolidation scheduler exceptions.

Every failure surfaces as a ConsolidationSchedulerError carrying a
discriminant ErrorCode, so callers (HTTP handlers, CLIs) can branch on
``exc.code`` without importing each subclass.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Discriminant codes for scheduler errors."""

    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_INPUT = "INVALID_INPUT"
    JOB_IN_PROGRESS = "JOB_IN_PROGRESS"
    LOAD_THRESHOLD_EXCEEDED = "LOAD_THRESHOLD_EXCEEDED"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"
    JOB_CANCELLED = "JOB_CANCELLED"


class ConsolidationSchedulerError(Exception):
    """Base exception for all scheduler errors."""

    code: Optional[ErrorCode] = None

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        if code is not None:
            self.code = code
        self.context = context or {}
        super().__init__(message)


class ConfigurationError(ConsolidationSchedulerError):
    """
    Raised when a configuration value is rejected.

    Examples:
    - Blank cron expression
    - max_system_load outside [0, 1]
    - Negative max_retry_attempts / base_retry_delay_ms
    - Non-positive batch size
    """

    code = ErrorCode.INVALID_CONFIG


class InvalidInputError(ConsolidationSchedulerError):
    """Raised when trigger_now() receives an empty or missing user id."""

    code = ErrorCode.INVALID_INPUT


class JobInProgressError(ConsolidationSchedulerError):
    """
    Raised when a job is already running.

    The new request is rejected outright; there is no queueing.
    """

    code = ErrorCode.JOB_IN_PROGRESS

    def __init__(self, running_user_id: str, requested_user_id: str):
        self.running_user_id = running_user_id
        self.requested_user_id = requested_user_id
        super().__init__(
            "A consolidation job is already running",
            context={
                "running_user_id": running_user_id,
                "requested_user_id": requested_user_id,
            },
        )


class LoadThresholdExceededError(ConsolidationSchedulerError):
    """Raised when sampled system load is above max_system_load."""

    code = ErrorCode.LOAD_THRESHOLD_EXCEEDED

    def __init__(self, current_load: float, threshold: float):
        self.current_load = current_load
        self.threshold = threshold
        super().__init__(
            "Consolidation skipped due to high system load",
            context={"current_load": current_load, "threshold": threshold},
        )


class MaxRetriesExceededError(ConsolidationSchedulerError):
    """
    Raised when every attempt (initial + retries) failed.

    ``last_error`` holds the underlying error of the final attempt, which
    is also chained as ``__cause__``.
    """

    code = ErrorCode.MAX_RETRIES_EXCEEDED

    def __init__(self, attempts: int, last_error: BaseException, user_id: Optional[str] = None):
        self.attempts = attempts
        self.last_error = last_error
        self.user_id = user_id
        super().__init__(
            f"Consolidation failed after {attempts} attempts: {last_error}",
            context={"user_id": user_id, "attempts": attempts},
        )


class JobCancelledError(ConsolidationSchedulerError):
    """
    Raised when the scheduler was stopped while retries were pending.

    No further attempt is made once the scheduler is stopped.
    """

    code = ErrorCode.JOB_CANCELLED

    def __init__(self, attempts: int, last_error: Optional[BaseException], user_id: Optional[str] = None):
        self.attempts = attempts
        self.last_error = last_error
        self.user_id = user_id
        super().__init__(
            f"Consolidation cancelled after {attempts} attempts",
            context={"user_id": user_id, "attempts": attempts},
        )

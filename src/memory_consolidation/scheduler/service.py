"""
Consolidation Scheduler - main entry point.

Orchestrates the scheduler components around one external engine:
- config (validated, immutable snapshots)
- cron trigger (next fire time)
- AdmissionController (system load ceiling)
- RetryController (bounded retries with backoff)
- ProgressTracker (live progress of the in-flight job)

Usage:
    scheduler = ConsolidationScheduler(engine, {"cron_expression": "0 3 * * *"})
    scheduler.start()                      # inside a running event loop
    results = await scheduler.trigger_now("user-1")
    scheduler.stop()

Concurrency model: everything runs on one event loop. Claiming the job
slot, admission and progress begin happen in a single synchronous step
(no await in between), which is what makes the single-flight check and
status snapshots atomic for callers.
"""

import asyncio
import inspect
import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

from .admission import AdmissionController
from .config import (
    DEFAULT_SCHEDULER_CONFIG,
    SchedulerConfig,
    merge_config,
    validate_batch_size,
    validate_config,
)
from .cron import compute_next_run
from .engine import ConsolidationEngine
from .entities import (
    ActiveConsolidationProgress,
    ConsolidationPhase,
    ConsolidationResult,
    DetailedProgress,
    RunningJob,
    SchedulerStatus,
)
from .errors import (
    ConsolidationSchedulerError,
    InvalidInputError,
    JobCancelledError,
    JobInProgressError,
    LoadThresholdExceededError,
)
from .progress import ProgressTracker
from .retry_controller import RetryController


logger = logging.getLogger(__name__)

# Upper bound on a single timer sleep; the timer re-reads the clock after each one
TIMER_CHECK_INTERVAL_SECONDS = 60.0

UserProvider = Callable[[], Union[Iterable[str], Awaitable[Iterable[str]]]]


class SchedulerState(str, Enum):
    """Scheduler lifecycle states."""

    STOPPED = "STOPPED"
    SCHEDULED = "SCHEDULED"
    JOB_RUNNING = "JOB_RUNNING"


class ConsolidationScheduler:
    """
    Cron-driven and on-demand consolidation with admission control,
    single-flight enforcement, retries and progress reporting.

    Key behaviors:
    1. start() arms the cron timer (no-op if disabled or already armed)
    2. trigger_now() and timer fires share one path:
       validate user -> claim slot -> admission -> progress -> retries
    3. At most one job runs at a time, whoever asks
    4. stop() disarms the timer and cancels pending retry delays, but an
       engine call already in flight is left to finish
    """

    def __init__(
        self,
        engine: ConsolidationEngine,
        config: Optional[Union[SchedulerConfig, Mapping[str, Any]]] = None,
        *,
        admission: Optional[AdmissionController] = None,
        user_provider: Optional[UserProvider] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize ConsolidationScheduler.

        Args:
            engine: External consolidation engine
            config: Full SchedulerConfig or partial overrides of the defaults
            admission: Admission controller (psutil-sampled by default)
            user_provider: Returns the user ids to consolidate on a cron fire
            clock: Time source for timestamps and cron evaluation

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        if isinstance(config, SchedulerConfig):
            self._config = validate_config(config)
        else:
            self._config = merge_config(DEFAULT_SCHEDULER_CONFIG, config)

        self.engine = engine
        self.admission = admission or AdmissionController()
        self.user_provider = user_provider
        self._clock = clock

        self._progress = ProgressTracker(clock)
        self._job: Optional[RunningJob] = None
        self._retry: Optional[RetryController] = None

        self._armed = False
        self._timer_task: Optional[asyncio.Task] = None
        self._scheduled_runs: set[asyncio.Task] = set()

        self._next_run_at: Optional[datetime] = None
        self._last_run_at: Optional[datetime] = None
        self._last_error: Optional[BaseException] = None
        self._retry_attempts = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Arm the cron timer.

        Idempotent. Does nothing if the config is disabled. A malformed
        cron expression still arms the scheduler, with next_run_at None
        and no timer fires until corrected via update_config().

        Must be called from a running event loop (for example an async
        startup hook) whenever the cron expression is valid, since the timer
        is an asyncio task. A disabled config or a malformed cron needs no loop.

        Raises:
            RuntimeError: If a timer must be created and no event loop is running
        """
        if self._armed:
            logger.debug("Scheduler already running")
            return

        if not self._config.enabled:
            logger.info("Scheduler is disabled, not starting")
            return

        expression = self._config.cron_expression
        next_run = compute_next_run(expression, self._clock())

        if next_run is not None:
            loop = asyncio.get_running_loop()
            self._timer_task = loop.create_task(
                self._timer_loop(), name="consolidation-cron-timer"
            )
        else:
            logger.warning(
                f"Cron expression {expression!r} could not be parsed; "
                "scheduler armed without scheduled runs"
            )

        self._next_run_at = next_run
        self._armed = True
        logger.info(
            f"Consolidation scheduler started with cron: {expression} "
            f"(next run: {next_run.isoformat() if next_run else 'none'})"
        )

    def stop(self) -> None:
        """
        Disarm the timer and cancel any pending retry delay.

        An engine call already in flight is not aborted; it resolves and
        updates status once.
        """
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

        if self._retry is not None:
            self._retry.cancel()

        self._armed = False
        self._next_run_at = None
        logger.info("Consolidation scheduler stopped")

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Stop and wait for in-flight scheduled runs (no preemption).

        Args:
            timeout: Maximum seconds to wait
        """
        self.stop()

        pending = set(self._scheduled_runs)
        if not pending:
            return

        logger.info(f"Waiting for {len(pending)} scheduled run(s) to finish...")
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} scheduled run(s) did not finish within {timeout}s")

    def is_running(self) -> bool:
        """Check if the recurring timer is armed."""
        return self._armed

    @property
    def state(self) -> SchedulerState:
        if not self._armed:
            return SchedulerState.STOPPED
        if self._job is not None:
            return SchedulerState.JOB_RUNNING
        return SchedulerState.SCHEDULED

    # =========================================================================
    # Triggering
    # =========================================================================

    async def trigger_now(
        self,
        user_id: str,
        consolidation_overrides: Optional[Mapping[str, Any]] = None,
    ) -> list[ConsolidationResult]:
        """
        Run consolidation for ``user_id`` immediately.

        Args:
            user_id: User whose memories are consolidated
            consolidation_overrides: Partial ConsolidationConfig applied only
                once the job is admitted; a rejected trigger leaves the
                config untouched. The timer is never restarted.

        Returns:
            The engine's results, untouched

        Raises:
            InvalidInputError: If user_id is empty
            ConfigurationError: If the overrides are invalid
            JobInProgressError: If any job is already running
            LoadThresholdExceededError: If system load is above the ceiling
            MaxRetriesExceededError: If every attempt failed
            JobCancelledError: If stopped while retries were pending
        """
        retry = self._begin_job(user_id, consolidation_overrides)
        logger.info(f"Manual consolidation triggered for user {user_id}")
        return await self._run_job(user_id, retry)

    def _begin_job(
        self,
        user_id: str,
        consolidation_overrides: Optional[Mapping[str, Any]] = None,
    ) -> RetryController:
        """
        Claim the job slot: validate, single-flight check, admission, progress.

        Overrides are merged up front but only become the live config after
        admission passes. Runs without suspension, so no other caller can interleave.
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidInputError("user_id is required", context={"user_id": user_id})

        if self._job is not None:
            raise JobInProgressError(self._job.user_id, user_id)

        config = self._config
        if consolidation_overrides:
            config = merge_config(config, {"consolidation_config": consolidation_overrides})
        self.admission.admit(config.max_system_load)

        if config is not self._config:
            self._config = config
            logger.info(f"Consolidation config updated for trigger: {config.consolidation_config}")

        retry = RetryController(
            max_retry_attempts=config.max_retry_attempts,
            base_retry_delay_ms=config.base_retry_delay_ms,
        )
        self._job = RunningJob(user_id=user_id, started_at=self._clock())
        self._retry = retry
        self._retry_attempts = 0
        self._last_error = None
        self._progress.begin(config.consolidation_config.batch_size)
        return retry

    def _end_job(self) -> None:
        self._progress.end()
        self._job = None
        self._retry = None

    async def _run_job(self, user_id: str, retry: RetryController) -> list[ConsolidationResult]:
        try:
            results = await retry.run(
                lambda attempt: self._attempt(user_id),
                on_attempt=self._on_attempt,
                on_failure=self._on_failure,
                user_id=user_id,
            )
            self._progress.complete(results or [])
            self._last_run_at = self._clock()
            self._last_error = None

            logger.info(
                f"Consolidation completed for user {user_id}: "
                f"{len(results or [])} result(s), {self._retry_attempts + 1} attempt(s), "
                f"batch size {self._config.consolidation_config.batch_size}"
            )
            return results
        finally:
            self._end_job()

    async def _attempt(self, user_id: str) -> list[ConsolidationResult]:
        # Read per attempt so a live set_batch_size() applies to retries too
        return await self.engine.run_consolidation(user_id, self._config.consolidation_config)

    def _on_attempt(self, attempt: int) -> None:
        self._retry_attempts = attempt
        if self._job is not None:
            self._job = replace(self._job, attempt=attempt)
        self._progress.set_phase(ConsolidationPhase.IDENTIFYING_CLUSTERS)

    def _on_failure(self, attempt: int, error: Exception) -> None:
        self._last_error = error

    # =========================================================================
    # Cron Timer
    # =========================================================================

    async def _timer_loop(self) -> None:
        """Sleep until the next cron fire, fire, repeat."""
        logger.debug("Cron timer started")

        while True:
            next_run = self._next_run_at
            if next_run is None:
                break

            try:
                delay = (next_run - self._clock()).total_seconds()
                if delay > 0:
                    await asyncio.sleep(min(delay, TIMER_CHECK_INTERVAL_SECONDS))
                    continue

                logger.info("Scheduled consolidation time reached, starting job")
                self._spawn_scheduled_run()

                self._next_run_at = compute_next_run(
                    self._config.cron_expression, max(self._clock(), next_run)
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in cron timer: {e}", exc_info=True)
                await asyncio.sleep(TIMER_CHECK_INTERVAL_SECONDS)

        logger.debug("Cron timer ended")

    def _spawn_scheduled_run(self) -> asyncio.Task:
        # Separate task: cancelling the timer must not abort an engine call
        task = asyncio.create_task(self._run_scheduled(), name="consolidation-scheduled-run")
        self._scheduled_runs.add(task)
        task.add_done_callback(self._scheduled_runs.discard)
        return task

    async def _run_scheduled(self) -> None:
        """Consolidate every user from the user provider, one at a time."""
        if self.user_provider is None:
            logger.info("Scheduled consolidation fired without a user provider, skipping")
            return

        try:
            user_ids = self.user_provider()
            if inspect.isawaitable(user_ids):
                user_ids = await user_ids
            user_ids = list(user_ids)
        except Exception as e:
            logger.error(f"Failed to list users for scheduled consolidation: {e}", exc_info=True)
            return

        logger.info(f"Scheduled consolidation for {len(user_ids)} user(s)")

        for user_id in user_ids:
            if not self._armed:
                logger.info("Scheduler stopped, ending scheduled consolidation sweep")
                break

            try:
                retry = self._begin_job(user_id)
                await self._run_job(user_id, retry)
            except InvalidInputError as e:
                logger.warning(f"Skipping invalid user id {user_id!r}: {e}")
            except (JobInProgressError, LoadThresholdExceededError, JobCancelledError) as e:
                logger.warning(f"Scheduled consolidation stopped at user {user_id}: {e}")
                break
            except ConsolidationSchedulerError as e:
                logger.error(f"Scheduled consolidation failed for user {user_id}: {e}")
            except Exception as e:
                logger.error(
                    f"Scheduled consolidation aborted at user {user_id}: {e}", exc_info=True
                )
                break

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> SchedulerStatus:
        """Snapshot of scheduler state. Never blocks, never raises."""
        return SchedulerStatus(
            is_running=self._armed,
            last_run_at=self._last_run_at,
            current_progress=self._progress.current_progress,
            detailed_progress=self._progress.detailed_progress,
            last_error=self._last_error,
            retry_attempts=self._retry_attempts,
            batch_size=self._config.consolidation_config.batch_size,
            next_run_at=self._next_run_at,
        )

    def get_detailed_progress(self) -> Optional[DetailedProgress]:
        return self._progress.detailed_progress

    def get_active_progress(self) -> ActiveConsolidationProgress:
        """Progress in the shape reported by the memory health endpoint."""
        return ActiveConsolidationProgress.from_detailed(self._progress.detailed_progress)

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_config(self) -> SchedulerConfig:
        return self._config

    def update_config(self, partial: Mapping[str, Any]) -> None:
        """
        Validate and apply a partial configuration.

        If the timer was armed, the scheduler is stopped and restarted so
        a new cron expression takes effect immediately.

        Raises:
            ConfigurationError: If the merged config is invalid; the
                current config stays in effect
        """
        new_config = merge_config(self._config, partial)

        was_running = self._armed
        if was_running:
            self.stop()

        self._config = new_config

        if was_running:
            self.start()

        logger.info(f"Scheduler configuration updated: {new_config.to_dict()}")

    def get_batch_size(self) -> int:
        return self._config.consolidation_config.batch_size

    def set_batch_size(self, batch_size: int) -> None:
        """
        Set the batch size forwarded to the engine.

        Raises:
            ConfigurationError: If batch_size < 1
        """
        batch_size = validate_batch_size(batch_size)
        self._config = replace(
            self._config,
            consolidation_config=replace(
                self._config.consolidation_config, batch_size=batch_size
            ),
        )
        logger.info(f"Batch size updated to {batch_size}")


def create_consolidation_scheduler(
    engine: ConsolidationEngine,
    config: Optional[Union[SchedulerConfig, Mapping[str, Any]]] = None,
    **kwargs: Any,
) -> ConsolidationScheduler:
    """Factory for ConsolidationScheduler."""
    return ConsolidationScheduler(engine, config, **kwargs)

"""
Scheduler router for consolidation control APIs.

Endpoints under /scheduler/* for lifecycle, status, configuration and
manual triggering. Scheduler errors map to HTTP status by error code:

- INVALID_CONFIG / INVALID_INPUT -> 400
- JOB_IN_PROGRESS / JOB_CANCELLED -> 409
- LOAD_THRESHOLD_EXCEEDED -> 503
- MAX_RETRIES_EXCEEDED -> 502
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from memory_consolidation.scheduler import (
    ActiveConsolidationProgress,
    ConsolidationResult,
    ConsolidationScheduler,
    ConsolidationSchedulerError,
    ErrorCode,
    SchedulerConfig,
    SchedulerStatus,
)

from ..schemas.scheduler import (
    ActiveConsolidationProgressResponse,
    BatchSizeRequest,
    BatchSizeResponse,
    ConsolidationConfigSchema,
    ConsolidationResultSummary,
    ConsolidationTriggerRequest,
    ConsolidationTriggerResponse,
    DetailedProgressResponse,
    ProgressResponse,
    SchedulerConfigResponse,
    SchedulerConfigUpdateRequest,
    SchedulerStartResponse,
    SchedulerStatusResponse,
    SchedulerStopResponse,
)
from .._scheduler_state import get_scheduler


router = APIRouter()

SUMMARY_PREVIEW_LENGTH = 200

NO_CLUSTERS_MESSAGE = (
    "No clusters were consolidated. This can happen when: "
    "(1) there are no episodic memories to consolidate, "
    "(2) there are fewer memories than the minimum cluster size, or "
    "(3) no memories are similar enough to form clusters above the similarity threshold."
)

_STATUS_BY_CODE = {
    ErrorCode.INVALID_CONFIG: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.JOB_IN_PROGRESS: 409,
    ErrorCode.JOB_CANCELLED: 409,
    ErrorCode.LOAD_THRESHOLD_EXCEEDED: 503,
    ErrorCode.MAX_RETRIES_EXCEEDED: 502,
}


def require_scheduler() -> ConsolidationScheduler:
    """Resolve the scheduler singleton, 503 if the host never set one up."""
    try:
        return get_scheduler()
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))


def to_http_exception(error: ConsolidationSchedulerError) -> HTTPException:
    status_code = _STATUS_BY_CODE.get(error.code, 500)
    return HTTPException(
        status_code=status_code,
        detail={
            "code": error.code.value if error.code else None,
            "message": str(error),
            "context": error.context,
        },
    )


# =============================================================================
# Response builders
# =============================================================================


def status_response(status: SchedulerStatus) -> SchedulerStatusResponse:
    progress = status.current_progress
    detailed = status.detailed_progress

    return SchedulerStatusResponse(
        is_running=status.is_running,
        job_running=status.job_running,
        last_run_at=status.last_run_at,
        next_run_at=status.next_run_at,
        current_progress=ProgressResponse(
            processed=progress.processed,
            total=progress.total,
            percent_complete=progress.percent_complete,
        ) if progress else None,
        detailed_progress=DetailedProgressResponse(
            phase=detailed.phase.value,
            started_at=detailed.started_at,
            memories_total=detailed.memories_total,
            processed=detailed.processed,
            total=detailed.total,
            percent_complete=detailed.percent_complete,
            clusters_identified=detailed.clusters_identified,
            clusters_consolidated=detailed.clusters_consolidated,
            memories_processed=detailed.memories_processed,
            estimated_remaining_ms=detailed.estimated_remaining_ms,
        ) if detailed else None,
        last_error=str(status.last_error) if status.last_error is not None else None,
        retry_attempts=status.retry_attempts,
        batch_size=status.batch_size,
    )


def config_response(config: SchedulerConfig) -> SchedulerConfigResponse:
    data = config.to_dict()
    return SchedulerConfigResponse(
        cron_expression=data["cron_expression"],
        enabled=data["enabled"],
        max_system_load=data["max_system_load"],
        max_retry_attempts=data["max_retry_attempts"],
        base_retry_delay_ms=data["base_retry_delay_ms"],
        consolidation_config=ConsolidationConfigSchema(**data["consolidation_config"]),
    )


def active_progress_response(
    active: ActiveConsolidationProgress,
) -> ActiveConsolidationProgressResponse:
    return ActiveConsolidationProgressResponse(
        is_running=active.is_running,
        phase=active.phase.value if active.phase else None,
        clusters_identified=active.clusters_identified,
        clusters_consolidated=active.clusters_consolidated,
        memories_processed=active.memories_processed,
        memories_total=active.memories_total,
        percent_complete=active.percent_complete,
        estimated_remaining_ms=active.estimated_remaining_ms,
        started_at=active.started_at,
    )


def result_summary(result: ConsolidationResult) -> ConsolidationResultSummary:
    content = result.summary_content
    preview = content[:SUMMARY_PREVIEW_LENGTH]
    if len(content) > SUMMARY_PREVIEW_LENGTH:
        preview += "..."

    return ConsolidationResultSummary(
        summary_id=result.summary_id,
        consolidated_count=len(result.consolidated_ids),
        consolidated_ids=list(result.consolidated_ids),
        summary_preview=preview,
        consolidated_at=result.consolidated_at,
    )


# =============================================================================
# Lifecycle
# =============================================================================


@router.post("/start", response_model=SchedulerStartResponse)
async def start_scheduler(scheduler: ConsolidationScheduler = Depends(require_scheduler)):
    """
    Arm the cron timer.

    Idempotent: If scheduler is already running, returns success with message.
    A disabled config leaves the scheduler stopped.
    """
    if scheduler.is_running():
        return SchedulerStartResponse(
            success=True,
            message="Scheduler is already running",
            is_running=True,
            next_run_at=scheduler.get_status().next_run_at,
        )

    scheduler.start()
    status = scheduler.get_status()

    if not status.is_running:
        message = "Scheduler is disabled in configuration"
    elif status.next_run_at is None:
        message = "Scheduler started, but the cron expression has no next run"
    else:
        message = "Scheduler started successfully"

    return SchedulerStartResponse(
        success=status.is_running,
        message=message,
        is_running=status.is_running,
        next_run_at=status.next_run_at,
    )


@router.post("/stop", response_model=SchedulerStopResponse)
async def stop_scheduler(scheduler: ConsolidationScheduler = Depends(require_scheduler)):
    """
    Disarm the cron timer and cancel pending retries.

    A consolidation call already in flight is allowed to finish.
    Idempotent: If scheduler is already stopped, returns success.
    """
    if not scheduler.is_running():
        return SchedulerStopResponse(success=True, message="Scheduler is already stopped")

    scheduler.stop()
    return SchedulerStopResponse(success=True, message="Scheduler stopped successfully")


# =============================================================================
# Status
# =============================================================================


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(scheduler: ConsolidationScheduler = Depends(require_scheduler)):
    """Get scheduler status snapshot."""
    return status_response(scheduler.get_status())


@router.get("/progress", response_model=ActiveConsolidationProgressResponse)
async def get_progress(scheduler: ConsolidationScheduler = Depends(require_scheduler)):
    """Get progress of the running consolidation (idle view when none)."""
    return active_progress_response(scheduler.get_active_progress())


# =============================================================================
# Configuration
# =============================================================================


@router.get("/config", response_model=SchedulerConfigResponse)
async def get_config(scheduler: ConsolidationScheduler = Depends(require_scheduler)):
    return config_response(scheduler.get_config())


@router.patch("/config", response_model=SchedulerConfigResponse)
async def update_config(
    request: SchedulerConfigUpdateRequest,
    scheduler: ConsolidationScheduler = Depends(require_scheduler),
):
    """
    Apply a partial configuration update.

    The whole update is rejected (400) if the merged config is invalid.
    An armed timer is restarted so a new cron expression applies immediately.
    """
    partial = request.model_dump(exclude_unset=True, exclude_none=True)

    try:
        scheduler.update_config(partial)
    except ConsolidationSchedulerError as e:
        raise to_http_exception(e)

    return config_response(scheduler.get_config())


@router.get("/batch-size", response_model=BatchSizeResponse)
async def get_batch_size(scheduler: ConsolidationScheduler = Depends(require_scheduler)):
    return BatchSizeResponse(batch_size=scheduler.get_batch_size())


@router.put("/batch-size", response_model=BatchSizeResponse)
async def set_batch_size(
    request: BatchSizeRequest,
    scheduler: ConsolidationScheduler = Depends(require_scheduler),
):
    """Set the batch size used by subsequent consolidation attempts."""
    try:
        scheduler.set_batch_size(request.batch_size)
    except ConsolidationSchedulerError as e:
        raise to_http_exception(e)

    return BatchSizeResponse(batch_size=scheduler.get_batch_size())


# =============================================================================
# Trigger
# =============================================================================


@router.post("/trigger", response_model=ConsolidationTriggerResponse)
async def trigger_consolidation(
    request: ConsolidationTriggerRequest,
    scheduler: ConsolidationScheduler = Depends(require_scheduler),
):
    """
    Run consolidation for one user now and wait for the result.

    Optional ``config`` overrides are merged into the engine configuration
    once the job is admitted and stay in effect afterwards. A rejected
    trigger leaves the configuration and the timer untouched.
    """
    overrides: Optional[dict] = None
    if request.config is not None:
        overrides = request.config.model_dump(exclude_unset=True, exclude_none=True)

    try:
        results = await scheduler.trigger_now(request.user_id, overrides)
    except ConsolidationSchedulerError as e:
        raise to_http_exception(e)

    results = list(results or [])
    if results:
        message = f"Successfully consolidated {len(results)} cluster(s) into semantic summaries."
    else:
        message = NO_CLUSTERS_MESSAGE

    return ConsolidationTriggerResponse(
        success=True,
        consolidations_performed=len(results),
        message=message,
        results=[result_summary(r) for r in results],
        status=status_response(scheduler.get_status()),
    )

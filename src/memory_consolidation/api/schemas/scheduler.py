"""
Scheduler API schemas.

Request/response models for the /scheduler/* control plane. Value
ranges are checked by the scheduler itself (ConfigurationError -> 400),
so request models only pin down types.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Configuration
# =============================================================================


class ConsolidationConfigSchema(BaseModel):
    """Engine configuration forwarded on every consolidation call."""

    similarity_threshold: float = Field(..., description="Minimum similarity for clustering (0.0-1.0)")
    min_cluster_size: int = Field(..., description="Minimum cluster size to consolidate")
    batch_size: int = Field(..., description="Maximum memories processed per run")
    strength_reduction_factor: float = Field(
        ..., description="Strength reduction for consolidated memories (0.0-1.0)"
    )


class ConsolidationConfigUpdate(BaseModel):
    """Partial engine configuration; unset fields keep their value."""

    similarity_threshold: Optional[float] = None
    min_cluster_size: Optional[int] = None
    batch_size: Optional[int] = None
    strength_reduction_factor: Optional[float] = None


class SchedulerConfigResponse(BaseModel):
    """Current scheduler configuration."""

    cron_expression: str = Field(..., description="5-field cron expression")
    enabled: bool = Field(..., description="Whether start() arms the timer")
    max_system_load: float = Field(..., description="Admission ceiling (0.0-1.0)")
    max_retry_attempts: int = Field(..., description="Retries after the first attempt")
    base_retry_delay_ms: int = Field(..., description="Base backoff delay in milliseconds")
    consolidation_config: ConsolidationConfigSchema


class SchedulerConfigUpdateRequest(BaseModel):
    """Partial scheduler configuration update."""

    cron_expression: Optional[str] = None
    enabled: Optional[bool] = None
    max_system_load: Optional[float] = None
    max_retry_attempts: Optional[int] = None
    base_retry_delay_ms: Optional[int] = None
    consolidation_config: Optional[ConsolidationConfigUpdate] = None


class BatchSizeRequest(BaseModel):
    """Request to change the batch size."""

    batch_size: int = Field(..., description="New batch size (must be >= 1)")


class BatchSizeResponse(BaseModel):
    """Current batch size."""

    batch_size: int


# =============================================================================
# Status & Progress
# =============================================================================


class ProgressResponse(BaseModel):
    """Coarse progress of the running job."""

    processed: int
    total: int
    percent_complete: float


class DetailedProgressResponse(BaseModel):
    """Phase-level progress of the running job."""

    phase: str
    started_at: datetime
    memories_total: int
    processed: int = 0
    total: int = 1
    percent_complete: float = 0
    clusters_identified: int = 0
    clusters_consolidated: int = 0
    memories_processed: int = 0
    estimated_remaining_ms: float = 0


class SchedulerStatusResponse(BaseModel):
    """Response from scheduler status endpoint."""

    is_running: bool = Field(..., description="Whether the cron timer is armed")
    job_running: bool = Field(..., description="Whether a consolidation job is in flight")
    last_run_at: Optional[datetime] = Field(default=None, description="Last successful run")
    next_run_at: Optional[datetime] = Field(default=None, description="Next scheduled run")
    current_progress: Optional[ProgressResponse] = None
    detailed_progress: Optional[DetailedProgressResponse] = None
    last_error: Optional[str] = Field(default=None, description="Last attempt error, if any")
    retry_attempts: int = Field(default=0, description="Index of the most recent attempt")
    batch_size: int = Field(..., description="Current batch size")


class ActiveConsolidationProgressResponse(BaseModel):
    """Scheduler progress as shown by the memory health report."""

    is_running: bool = False
    phase: Optional[str] = None
    clusters_identified: int = 0
    clusters_consolidated: int = 0
    memories_processed: int = 0
    memories_total: int = 0
    percent_complete: float = 0
    estimated_remaining_ms: float = 0
    started_at: Optional[datetime] = None


# =============================================================================
# Control
# =============================================================================


class SchedulerStartResponse(BaseModel):
    """Response from scheduler start."""

    success: bool
    message: str
    is_running: bool
    next_run_at: Optional[datetime] = None


class SchedulerStopResponse(BaseModel):
    """Response from scheduler stop."""

    success: bool
    message: str


class ConsolidationTriggerRequest(BaseModel):
    """Request to run consolidation now."""

    user_id: str = Field(..., description="User whose memories are consolidated")
    config: Optional[ConsolidationConfigUpdate] = Field(
        default=None,
        description="Engine config overrides applied before the run",
    )


class ConsolidationResultSummary(BaseModel):
    """One consolidated cluster."""

    summary_id: str
    consolidated_count: int
    consolidated_ids: List[str] = Field(default_factory=list)
    summary_preview: str = Field(..., description="First 200 characters of the summary")
    consolidated_at: datetime


class ConsolidationTriggerResponse(BaseModel):
    """Response from a manual consolidation run."""

    success: bool
    consolidations_performed: int
    message: str
    results: List[ConsolidationResultSummary] = Field(default_factory=list)
    status: SchedulerStatusResponse

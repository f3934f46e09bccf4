"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .scheduler import (
    ConsolidationConfigSchema,
    ConsolidationConfigUpdate,
    SchedulerConfigResponse,
    SchedulerConfigUpdateRequest,
    BatchSizeRequest,
    BatchSizeResponse,
    ProgressResponse,
    DetailedProgressResponse,
    SchedulerStatusResponse,
    ActiveConsolidationProgressResponse,
    SchedulerStartResponse,
    SchedulerStopResponse,
    ConsolidationTriggerRequest,
    ConsolidationResultSummary,
    ConsolidationTriggerResponse,
)

__all__ = [
    "ConsolidationConfigSchema",
    "ConsolidationConfigUpdate",
    "SchedulerConfigResponse",
    "SchedulerConfigUpdateRequest",
    "BatchSizeRequest",
    "BatchSizeResponse",
    "ProgressResponse",
    "DetailedProgressResponse",
    "SchedulerStatusResponse",
    "ActiveConsolidationProgressResponse",
    "SchedulerStartResponse",
    "SchedulerStopResponse",
    "ConsolidationTriggerRequest",
    "ConsolidationResultSummary",
    "ConsolidationTriggerResponse",
]

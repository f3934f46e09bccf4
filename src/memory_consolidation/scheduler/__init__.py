"""
Consolidation Scheduler Core Module.

Cron-based and manual triggering of memory consolidation with:
- Configuration validation (config)
- Next-run computation for 5-field cron expressions (cron)
- System-load admission control (admission)
- Retry with exponential backoff (retry_controller)
- Live progress reporting (progress)
- Single-flight orchestration (service)
"""

from .entities import (
    ConsolidationPhase,
    ConsolidationResult,
    RunningJob,
    Progress,
    DetailedProgress,
    SchedulerStatus,
    ActiveConsolidationProgress,
)
from .errors import (
    ErrorCode,
    ConsolidationSchedulerError,
    ConfigurationError,
    InvalidInputError,
    JobInProgressError,
    LoadThresholdExceededError,
    MaxRetriesExceededError,
    JobCancelledError,
)
from .config import (
    ConsolidationConfig,
    SchedulerConfig,
    DEFAULT_SCHEDULER_CONFIG,
    validate_config,
    validate_batch_size,
    merge_config,
    config_from_env,
)
from .cron import compute_next_run, is_valid_expression
from .admission import AdmissionController, sample_system_load
from .retry_controller import RetryController
from .progress import ProgressTracker
from .engine import ConsolidationEngine, load_engine
from .service import (
    ConsolidationScheduler,
    SchedulerState,
    create_consolidation_scheduler,
)

__all__ = [
    # Entities
    "ConsolidationPhase",
    "ConsolidationResult",
    "RunningJob",
    "Progress",
    "DetailedProgress",
    "SchedulerStatus",
    "ActiveConsolidationProgress",
    # Errors
    "ErrorCode",
    "ConsolidationSchedulerError",
    "ConfigurationError",
    "InvalidInputError",
    "JobInProgressError",
    "LoadThresholdExceededError",
    "MaxRetriesExceededError",
    "JobCancelledError",
    # Config
    "ConsolidationConfig",
    "SchedulerConfig",
    "DEFAULT_SCHEDULER_CONFIG",
    "validate_config",
    "validate_batch_size",
    "merge_config",
    "config_from_env",
    # Cron
    "compute_next_run",
    "is_valid_expression",
    # Admission
    "AdmissionController",
    "sample_system_load",
    # Retry
    "RetryController",
    # Progress
    "ProgressTracker",
    # Engine
    "ConsolidationEngine",
    "load_engine",
    # Service
    "ConsolidationScheduler",
    "SchedulerState",
    "create_consolidation_scheduler",
]

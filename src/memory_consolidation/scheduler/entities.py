"""
Consolidation Scheduler Entities.

- RunningJob: the single in-flight job slot (None means idle)
- Progress / DetailedProgress: live progress of the in-flight job
- SchedulerStatus: read-only snapshot returned by get_status()
- ActiveConsolidationProgress: health-report view of the scheduler
- ConsolidationResult: produced by the engine, passed through untouched

All snapshots are frozen; the scheduler replaces them wholesale, so a
reader never observes a half-updated object.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ConsolidationPhase(str, Enum):
    """Phases a consolidation attempt moves through."""

    IDENTIFYING_CLUSTERS = "identifying_clusters"
    GENERATING_SUMMARIES = "generating_summaries"
    CONSOLIDATING = "consolidating"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ConsolidationResult:
    """One summary produced by the engine from a cluster of memories."""

    summary_id: str
    consolidated_ids: list[str]
    summary_content: str
    consolidated_at: datetime


@dataclass(frozen=True)
class RunningJob:
    """
    The in-flight job.

    At most one exists per scheduler instance (single-flight).
    ``attempt`` is the 0-indexed attempt currently executing.
    """

    user_id: str
    started_at: datetime
    attempt: int = 0


@dataclass(frozen=True)
class Progress:
    """Coarse progress of the in-flight job."""

    processed: int = 0
    total: int = 1
    percent_complete: float = 0


@dataclass(frozen=True)
class DetailedProgress:
    """Phase-level progress of the in-flight job."""

    phase: ConsolidationPhase
    started_at: datetime
    memories_total: int
    processed: int = 0
    total: int = 1
    percent_complete: float = 0
    clusters_identified: int = 0
    clusters_consolidated: int = 0
    memories_processed: int = 0
    estimated_remaining_ms: float = 0


@dataclass(frozen=True)
class SchedulerStatus:
    """
    Snapshot returned by ConsolidationScheduler.get_status().

    ``is_running`` means the recurring timer is armed; whether a job is
    in flight is ``job_running`` (current_progress is not None).
    """

    is_running: bool
    last_run_at: Optional[datetime]
    current_progress: Optional[Progress]
    detailed_progress: Optional[DetailedProgress]
    last_error: Optional[BaseException]
    retry_attempts: int
    batch_size: int
    next_run_at: Optional[datetime]

    @property
    def job_running(self) -> bool:
        return self.current_progress is not None


@dataclass(frozen=True)
class ActiveConsolidationProgress:
    """Scheduler progress as reported by the memory health endpoint."""

    is_running: bool = False
    phase: Optional[ConsolidationPhase] = None
    clusters_identified: int = 0
    clusters_consolidated: int = 0
    memories_processed: int = 0
    memories_total: int = 0
    percent_complete: float = 0
    estimated_remaining_ms: float = 0
    started_at: Optional[datetime] = None

    @classmethod
    def from_detailed(cls, detailed: Optional[DetailedProgress]) -> "ActiveConsolidationProgress":
        """Build the health view; idle when there is no detailed progress."""
        if detailed is None:
            return cls()
        return cls(
            is_running=True,
            phase=detailed.phase,
            clusters_identified=detailed.clusters_identified,
            clusters_consolidated=detailed.clusters_consolidated,
            memories_processed=detailed.memories_processed,
            memories_total=detailed.memories_total,
            percent_complete=detailed.percent_complete,
            estimated_remaining_ms=detailed.estimated_remaining_ms,
            started_at=detailed.started_at,
        )

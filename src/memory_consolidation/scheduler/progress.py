"""
Progress tracking for the in-flight consolidation job.

Holds two views, both None while idle:
- current_progress: coarse processed / total / percent
- detailed_progress: phase, counters and timing

Each update swaps in a new frozen snapshot, so readers only ever see a
complete Progress or DetailedProgress.
"""

import time
from dataclasses import replace
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence

from .entities import (
    ConsolidationPhase,
    ConsolidationResult,
    DetailedProgress,
    Progress,
)


def _consolidated_count(result) -> int:
    # Engine results are opaque; tolerate plain mappings
    if isinstance(result, Mapping):
        ids = result.get("consolidated_ids") or ()
    else:
        ids = getattr(result, "consolidated_ids", None) or ()
    return len(ids)


class ProgressTracker:
    """Tracks progress of the single in-flight job."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._current: Optional[Progress] = None
        self._detailed: Optional[DetailedProgress] = None
        self._started_monotonic = 0.0

    @property
    def current_progress(self) -> Optional[Progress]:
        return self._current

    @property
    def detailed_progress(self) -> Optional[DetailedProgress]:
        return self._detailed

    @property
    def active(self) -> bool:
        return self._current is not None

    def begin(self, batch_size: int) -> None:
        """Enter the running state for a new job."""
        self._started_monotonic = time.monotonic()
        self._current = Progress(processed=0, total=1, percent_complete=0)
        self._detailed = DetailedProgress(
            phase=ConsolidationPhase.IDENTIFYING_CLUSTERS,
            started_at=self._clock(),
            memories_total=batch_size,
        )

    def set_phase(self, phase: ConsolidationPhase, **updates) -> None:
        """Move the detailed view to ``phase``, applying counter updates."""
        if self._detailed is None:
            return
        detailed = replace(self._detailed, phase=phase, **updates)
        self._detailed = replace(
            detailed, estimated_remaining_ms=self._estimate_remaining_ms(detailed)
        )

    def complete(self, results: Sequence[ConsolidationResult]) -> None:
        """Record a successful attempt."""
        if self._current is None:
            return
        self._current = Progress(processed=1, total=1, percent_complete=100)
        self.set_phase(
            ConsolidationPhase.COMPLETE,
            processed=1,
            total=1,
            percent_complete=100,
            clusters_consolidated=len(results),
            memories_processed=sum(_consolidated_count(r) for r in results),
        )

    def end(self) -> None:
        """Clear both views, whatever the outcome."""
        self._current = None
        self._detailed = None

    def _estimate_remaining_ms(self, detailed: DetailedProgress) -> float:
        if detailed.processed <= 0 or detailed.total <= 0:
            return detailed.estimated_remaining_ms
        elapsed_ms = (time.monotonic() - self._started_monotonic) * 1000
        if elapsed_ms <= 0:
            return 0
        rate = detailed.processed / elapsed_ms
        remaining = max(detailed.total - detailed.processed, 0)
        return remaining / rate if rate > 0 else 0

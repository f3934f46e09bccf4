"""
Tests for ProgressTracker.
"""

from memory_consolidation.scheduler import (
    ActiveConsolidationProgress,
    ConsolidationPhase,
    Progress,
    ProgressTracker,
)

from .conftest import FIXED_DATETIME, MockClock, make_result


class TestProgressTracker:

    def test_idle_by_default(self):
        tracker = ProgressTracker()

        assert tracker.current_progress is None
        assert tracker.detailed_progress is None
        assert tracker.active is False

    def test_begin_sets_initial_views(self):
        tracker = ProgressTracker(MockClock())
        tracker.begin(batch_size=50)

        assert tracker.current_progress == Progress(processed=0, total=1, percent_complete=0)

        detailed = tracker.detailed_progress
        assert detailed.phase == ConsolidationPhase.IDENTIFYING_CLUSTERS
        assert detailed.started_at == FIXED_DATETIME
        assert detailed.memories_total == 50
        assert detailed.clusters_identified == 0

    def test_set_phase_applies_updates(self):
        tracker = ProgressTracker(MockClock())
        tracker.begin(batch_size=10)

        tracker.set_phase(ConsolidationPhase.GENERATING_SUMMARIES, clusters_identified=3)

        assert tracker.detailed_progress.phase == ConsolidationPhase.GENERATING_SUMMARIES
        assert tracker.detailed_progress.clusters_identified == 3

    def test_set_phase_when_idle_is_noop(self):
        tracker = ProgressTracker()
        tracker.set_phase(ConsolidationPhase.CONSOLIDATING)

        assert tracker.detailed_progress is None

    def test_complete_counts_results(self):
        tracker = ProgressTracker(MockClock())
        tracker.begin(batch_size=10)

        tracker.complete([
            make_result("s1", ids=("a", "b", "c")),
            make_result("s2", ids=("d", "e")),
        ])

        assert tracker.current_progress.percent_complete == 100
        detailed = tracker.detailed_progress
        assert detailed.phase == ConsolidationPhase.COMPLETE
        assert detailed.clusters_consolidated == 2
        assert detailed.memories_processed == 5
        assert detailed.percent_complete == 100
        assert detailed.estimated_remaining_ms == 0

    def test_complete_tolerates_mapping_results(self):
        tracker = ProgressTracker(MockClock())
        tracker.begin(batch_size=10)

        tracker.complete([{"consolidated_ids": ["a", "b"]}])

        assert tracker.detailed_progress.memories_processed == 2

    def test_end_clears_both_views(self):
        tracker = ProgressTracker(MockClock())
        tracker.begin(batch_size=10)
        tracker.end()

        assert tracker.current_progress is None
        assert tracker.detailed_progress is None


class TestActiveConsolidationProgress:

    def test_idle_view(self):
        active = ActiveConsolidationProgress.from_detailed(None)

        assert active.is_running is False
        assert active.phase is None
        assert active.started_at is None

    def test_running_view(self):
        tracker = ProgressTracker(MockClock())
        tracker.begin(batch_size=25)

        active = ActiveConsolidationProgress.from_detailed(tracker.detailed_progress)

        assert active.is_running is True
        assert active.phase == ConsolidationPhase.IDENTIFYING_CLUSTERS
        assert active.memories_total == 25
        assert active.started_at == FIXED_DATETIME

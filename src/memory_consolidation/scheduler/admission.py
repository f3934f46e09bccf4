"""
Admission control.

Samples host load before a job starts and denies the start when the
load is above the configured ceiling. Checked once per logical job, not
before each retry: retries already hold the job slot.
"""

import logging
from typing import Callable, Optional

import psutil

from .errors import LoadThresholdExceededError


logger = logging.getLogger(__name__)

# Weights of the combined load metric
MEMORY_WEIGHT = 0.6
CPU_WEIGHT = 0.4


def sample_system_load() -> float:
    """
    Sample current host load as a fraction in [0, 1].

    Weighted average of used memory and CPU utilisation. cpu_percent is
    read non-blocking (interval=None), so the first call after process
    start reports 0.0 CPU.
    """
    memory_ratio = psutil.virtual_memory().percent / 100.0
    cpu_ratio = psutil.cpu_percent(interval=None) / 100.0
    load = memory_ratio * MEMORY_WEIGHT + cpu_ratio * CPU_WEIGHT
    return min(max(load, 0.0), 1.0)


class AdmissionController:
    """
    Decides whether a new job may start given current system load.

    The sampler must be synchronous: admission is decided in the same
    step that claims the job slot, with no suspension in between.
    """

    def __init__(self, sampler: Optional[Callable[[], float]] = None):
        """
        Initialize AdmissionController.

        Args:
            sampler: Callable returning load in [0, 1]; psutil-based by default
        """
        self._sampler = sampler or sample_system_load

    def check_load(self) -> float:
        """Sample current load, clamped to [0, 1]."""
        load = float(self._sampler())
        return min(max(load, 0.0), 1.0)

    @staticmethod
    def is_admissible(load: float, ceiling: float) -> bool:
        return load <= ceiling

    def admit(self, ceiling: float) -> float:
        """
        Sample load and admit or deny a job start.

        Returns:
            The sampled load, if admitted

        Raises:
            LoadThresholdExceededError: If load is above ``ceiling``
        """
        load = self.check_load()
        if not self.is_admissible(load, ceiling):
            logger.warning(
                f"Skipping consolidation due to high system load: "
                f"{load * 100:.1f}% > {ceiling * 100:.1f}%"
            )
            raise LoadThresholdExceededError(current_load=load, threshold=ceiling)
        return load

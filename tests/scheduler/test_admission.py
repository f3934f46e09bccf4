"""
Tests for system-load admission control.
"""

from unittest.mock import MagicMock, patch

import pytest

from memory_consolidation.scheduler import (
    AdmissionController,
    ErrorCode,
    LoadThresholdExceededError,
    sample_system_load,
)


class TestSampleSystemLoad:
    """Tests for the psutil-based sampler."""

    @patch("memory_consolidation.scheduler.admission.psutil")
    def test_weighted_memory_and_cpu(self, mock_psutil):
        mock_psutil.virtual_memory.return_value = MagicMock(percent=50.0)
        mock_psutil.cpu_percent.return_value = 25.0

        load = sample_system_load()

        assert load == pytest.approx(0.5 * 0.6 + 0.25 * 0.4)
        mock_psutil.cpu_percent.assert_called_once_with(interval=None)

    @patch("memory_consolidation.scheduler.admission.psutil")
    def test_clamped_to_unit_interval(self, mock_psutil):
        mock_psutil.virtual_memory.return_value = MagicMock(percent=180.0)
        mock_psutil.cpu_percent.return_value = 150.0

        assert sample_system_load() == 1.0


class TestAdmissionController:

    def test_check_load_clamps(self):
        assert AdmissionController(sampler=lambda: 1.7).check_load() == 1.0
        assert AdmissionController(sampler=lambda: -0.2).check_load() == 0.0

    def test_load_equal_to_ceiling_is_admitted(self):
        assert AdmissionController.is_admissible(0.8, 0.8) is True

    def test_load_above_ceiling_is_denied(self):
        assert AdmissionController.is_admissible(0.81, 0.8) is False

    def test_admit_returns_load(self):
        controller = AdmissionController(sampler=lambda: 0.3)
        assert controller.admit(0.8) == 0.3

    def test_admit_raises_above_ceiling(self):
        controller = AdmissionController(sampler=lambda: 0.95)

        with pytest.raises(LoadThresholdExceededError) as exc_info:
            controller.admit(0.8)

        error = exc_info.value
        assert error.code == ErrorCode.LOAD_THRESHOLD_EXCEEDED
        assert error.current_load == 0.95
        assert error.threshold == 0.8

    def test_zero_ceiling_admits_only_idle_host(self):
        assert AdmissionController(sampler=lambda: 0.0).admit(0.0) == 0.0
        with pytest.raises(LoadThresholdExceededError):
            AdmissionController(sampler=lambda: 0.01).admit(0.0)

    def test_default_sampler_is_psutil(self):
        assert AdmissionController()._sampler is sample_system_load

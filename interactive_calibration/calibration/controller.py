"""
Calibration controller: readiness verdict and solver flags for the next solve.

Readiness requires all of:
- enough frames (more than frames_threshold)
- confident parameter estimates (see ConfidenceEvaluator)
- low reprojection error (below max_rms)
"""
from dataclasses import dataclass
from typing import Optional, Union
import logging

from ..core import CalibrationDataset
from .confidence import ConfidenceEvaluator
from .flag_tuner import FlagTuner
from .flags import CalibrationFlags

logger = logging.getLogger(__name__)


@dataclass
class ControllerConfig:
    """Thresholds for the readiness verdict and flag auto-tuning."""
    # Confidence intervals
    sigma_mult: float = 3.0  # 3-sigma bound
    rel_err_eps: float = 0.05  # 5% relative error on intrinsics

    # Auto-tuning
    auto_tuning: bool = True
    distortion_eps: float = 0.005  # Coefficient treated as zero below this
    aspect_sigma_mult: float = 3.0  # |fx - fy| tolerance in std-dev units
    initial_flags: int = 0  # OpenCV bitmask for the first solve

    # Readiness
    frames_threshold: int = 10  # Need strictly more frames than this
    max_rms: float = 0.5  # Reprojection error limit (pixels)


class CalibrationController:
    """
    Tracks calibration quality between solves.

    The confidence state persists across calls: update_state() before any
    solve leaves it at its previous value.
    """

    def __init__(
            self,
            dataset: CalibrationDataset,
            initial_flags: Union[int, CalibrationFlags, None] = None,
            auto_tuning: Optional[bool] = None,
            config: Optional[ControllerConfig] = None
    ):
        """
        Initialize controller.

        Args:
            dataset: Shared dataset (observations + live parameters)
            initial_flags: OpenCV bitmask or CalibrationFlags (default: config.initial_flags)
            auto_tuning: Enable flag auto-tuning (default: config.auto_tuning)
            config: Thresholds
        """
        self.config = config or ControllerConfig()
        self.dataset = dataset

        if initial_flags is None:
            initial_flags = self.config.initial_flags
        if isinstance(initial_flags, CalibrationFlags):
            self.flags = initial_flags.copy()
        else:
            self.flags = CalibrationFlags.from_opencv(int(initial_flags))

        self.auto_tuning = self.config.auto_tuning if auto_tuning is None else auto_tuning
        self.confidence_state = False

        self.evaluator = ConfidenceEvaluator(
            sigma_mult=self.config.sigma_mult,
            rel_err_eps=self.config.rel_err_eps,
        )
        self.tuner = FlagTuner(
            eps=self.config.distortion_eps,
            aspect_sigma_mult=self.config.aspect_sigma_mult,
        )

        logger.info(
            f"CalibrationController initialized: flags={self.flags}, "
            f"auto_tuning={self.auto_tuning}"
        )

    def update_state(self) -> None:
        """Re-evaluate confidence and tune flags after a solve."""
        result = self.evaluator.evaluate(self.dataset.parameters)
        if result is not None:
            self.confidence_state = result.all

        if self.get_frames_number_state() and self.auto_tuning:
            self.tuner.tune(self.dataset.parameters, self.flags)

        logger.debug(
            f"State updated: frames={self.get_frames_number_state()}, "
            f"confidence={self.confidence_state}, rms={self.get_rms_state()}"
        )

    def get_frames_number_state(self) -> bool:
        return self.dataset.frames_count > self.config.frames_threshold

    def get_confidence_intervals_state(self) -> bool:
        return self.confidence_state

    def get_rms_state(self) -> bool:
        avg_error = self.dataset.parameters.avg_error
        return avg_error is not None and avg_error < self.config.max_rms

    def get_common_calibration_state(self) -> bool:
        """True when capturing can stop."""
        return (self.get_frames_number_state()
                and self.get_confidence_intervals_state()
                and self.get_rms_state())

    def get_new_flags(self) -> CalibrationFlags:
        """Flags to pass to the next solve (use .to_opencv() for the bitmask)."""
        return self.flags

    def get_stats(self) -> dict:
        """Get controller statistics."""
        return {
            "frames_count": self.dataset.frames_count,
            "frames_state": self.get_frames_number_state(),
            "confidence_state": self.get_confidence_intervals_state(),
            "rms_state": self.get_rms_state(),
            "avg_error": self.dataset.parameters.avg_error,
            "flags": self.flags.as_dict(),
            "ready": self.get_common_calibration_state(),
        }

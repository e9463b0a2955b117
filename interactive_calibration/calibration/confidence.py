"""
Confidence intervals of calibrated parameters.

A parameter group is trusted when its uncertainty is small relative to its
value:
- Focal lengths and principal point: sigma_mult * std / value < rel_err_eps
- Distortion: no coefficient may have std / |value| > 1
"""
from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np

from ..core import CameraParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfidenceResult:
    """Per-group confidence verdict."""
    focal: bool
    principal_point: bool
    distortion: bool

    @property
    def all(self) -> bool:
        return self.focal and self.principal_point and self.distortion


class ConfidenceEvaluator:
    """Pure evaluator of parameter uncertainty; holds only its thresholds."""

    def __init__(self, sigma_mult: float = 3.0, rel_err_eps: float = 0.05):
        """
        Args:
            sigma_mult: Multiplier on std-dev (3 = 3-sigma bound)
            rel_err_eps: Maximum accepted relative error for intrinsics
        """
        self.sigma_mult = sigma_mult
        self.rel_err_eps = rel_err_eps

    def evaluate(self, parameters: CameraParameters) -> Optional[ConfidenceResult]:
        """
        Evaluate confidence of all parameter groups.

        Args:
            parameters: Parameters after a solve

        Returns:
            ConfidenceResult, or None if there is nothing to evaluate yet
        """
        if not parameters.is_calibrated or not parameters.has_std_deviations:
            logger.debug("No calibrated parameters, skipping confidence evaluation")
            return None

        std = parameters.std_deviations

        focal = (self._relative_ok(std[0], parameters.fx)
                 and self._relative_ok(std[1], parameters.fy))
        principal_point = (self._relative_ok(std[2], parameters.cx)
                           and self._relative_ok(std[3], parameters.cy))

        distortion = False
        if parameters.has_distortion:
            # 0/0 (fixed, zero coefficient) gives NaN and does not fail the group
            with np.errstate(divide="ignore", invalid="ignore"):
                ratios = std[4:9] / np.abs(parameters.dist_coeffs)
            distortion = not bool(np.any(ratios > 1))

        result = ConfidenceResult(
            focal=focal,
            principal_point=principal_point,
            distortion=distortion,
        )
        logger.debug(
            f"Confidence: focal={focal}, principal_point={principal_point}, "
            f"distortion={distortion}"
        )
        return result

    def _relative_ok(self, std: float, value: float) -> bool:
        with np.errstate(divide="ignore", invalid="ignore"):
            relative = self.sigma_mult * np.float64(std) / np.float64(value)
        return bool(relative < self.rel_err_eps)

"""
Auto-tuning of solver flags.

Once a parameter is statistically indistinguishable from its baseline (unit
aspect ratio, zero tangential distortion, zero radial term) the matching flag
is enabled so later solves stop estimating it. Flags are only ever added.
"""
from typing import Callable, List, Tuple
import logging

from ..core import CameraParameters
from .flags import CalibrationFlags, SolverFlag

logger = logging.getLogger(__name__)

# Rule: (flag, predicate on parameters, side effect applied when the flag is adopted)
TuningRule = Tuple[
    SolverFlag,
    Callable[[CameraParameters], bool],
    Callable[[CameraParameters], None],
]


def _no_effect(parameters: CameraParameters) -> None:
    return None


def _snap_aspect_ratio(parameters: CameraParameters) -> None:
    parameters.camera_matrix[0, 0] = parameters.camera_matrix[1, 1]


class FlagTuner:
    """
    Decides which solver flags to enable after a solve.

    Rules already satisfied by the current flag set are skipped.
    """

    def __init__(self, eps: float = 0.005, aspect_sigma_mult: float = 3.0):
        """
        Args:
            eps: Magnitude below which a distortion coefficient counts as zero
            aspect_sigma_mult: fx/fy difference tolerance in std-dev units
        """
        self.eps = eps
        self.aspect_sigma_mult = aspect_sigma_mult

        self.rules: List[TuningRule] = [
            (SolverFlag.FIX_ASPECT_RATIO, self._aspect_ratio_is_unit, _snap_aspect_ratio),
            (SolverFlag.ZERO_TANGENT_DIST, self._tangential_is_zero, _no_effect),
            (SolverFlag.FIX_K1, self._coefficient_is_zero(0), _no_effect),
            (SolverFlag.FIX_K2, self._coefficient_is_zero(1), _no_effect),
            (SolverFlag.FIX_K3, self._coefficient_is_zero(4), _no_effect),
        ]

    def tune(self, parameters: CameraParameters, flags: CalibrationFlags) -> List[SolverFlag]:
        """
        Enable every flag whose rule fires. May mutate parameters (aspect ratio).

        Args:
            parameters: Live parameters after a solve
            flags: Accumulated flags, updated in place

        Returns:
            Flags newly enabled by this call
        """
        adopted = []
        for flag, predicate, effect in self.rules:
            if flags.is_set(flag):
                continue
            if predicate(parameters):
                flags.set(flag)
                effect(parameters)
                adopted.append(flag)
                logger.info(f"Flag adopted: {flag.value}")
        return adopted

    def _aspect_ratio_is_unit(self, parameters: CameraParameters) -> bool:
        if not parameters.is_calibrated or not parameters.has_std_deviations:
            return False
        f_diff = abs(parameters.fx - parameters.fy)
        std = parameters.std_deviations
        return (f_diff < self.aspect_sigma_mult * std[0]
                and f_diff < self.aspect_sigma_mult * std[1])

    def _tangential_is_zero(self, parameters: CameraParameters) -> bool:
        if not parameters.has_distortion:
            return False
        p1, p2 = parameters.dist_coeffs[2], parameters.dist_coeffs[3]
        return abs(p1) < self.eps and abs(p2) < self.eps

    def _coefficient_is_zero(self, index: int) -> Callable[[CameraParameters], bool]:
        def predicate(parameters: CameraParameters) -> bool:
            if not parameters.has_distortion:
                return False
            return abs(parameters.dist_coeffs[index]) < self.eps
        return predicate

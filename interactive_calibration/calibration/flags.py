"""
Solver configuration flags.

Each flag fixes one calibration degree of freedom. Flags accumulate: once set
they stay set for the rest of the session.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional

import cv2


class SolverFlag(Enum):
    """Tunable solver flags."""
    FIX_ASPECT_RATIO = "fix_aspect_ratio"
    ZERO_TANGENT_DIST = "zero_tangent_dist"
    FIX_K1 = "fix_k1"
    FIX_K2 = "fix_k2"
    FIX_K3 = "fix_k3"


OPENCV_FLAG_BITS: Dict[SolverFlag, int] = {
    SolverFlag.FIX_ASPECT_RATIO: cv2.CALIB_FIX_ASPECT_RATIO,
    SolverFlag.ZERO_TANGENT_DIST: cv2.CALIB_ZERO_TANGENT_DIST,
    SolverFlag.FIX_K1: cv2.CALIB_FIX_K1,
    SolverFlag.FIX_K2: cv2.CALIB_FIX_K2,
    SolverFlag.FIX_K3: cv2.CALIB_FIX_K3,
}


class CalibrationFlags:
    """
    Name -> bool mapping of solver flags, with no way to clear a flag.

    Bits of an OpenCV bitmask that are not tunable flags (e.g. CALIB_USE_LU)
    are kept aside and passed through unchanged.
    """

    def __init__(self, enabled: Optional[Iterable[SolverFlag]] = None, extra_bits: int = 0):
        self._state: Dict[SolverFlag, bool] = {flag: False for flag in SolverFlag}
        self.extra_bits = extra_bits
        for flag in enabled or ():
            self.set(flag)

    @classmethod
    def from_opencv(cls, bits: int) -> "CalibrationFlags":
        """Build from an OpenCV calibration bitmask."""
        enabled = [flag for flag, bit in OPENCV_FLAG_BITS.items() if bits & bit]
        extra = bits
        for flag in enabled:
            extra &= ~OPENCV_FLAG_BITS[flag]
        return cls(enabled, extra_bits=extra)

    def set(self, flag: SolverFlag) -> bool:
        """
        Enable a flag.

        Returns:
            True if the flag was newly enabled
        """
        if self._state[flag]:
            return False
        self._state[flag] = True
        return True

    def is_set(self, flag: SolverFlag) -> bool:
        return self._state[flag]

    def __contains__(self, flag: SolverFlag) -> bool:
        return self.is_set(flag)

    @property
    def enabled(self) -> List[SolverFlag]:
        return [flag for flag, on in self._state.items() if on]

    def as_dict(self) -> Dict[str, bool]:
        return {flag.value: on for flag, on in self._state.items()}

    def to_opencv(self) -> int:
        """OpenCV bitmask for the next solve."""
        bits = self.extra_bits
        for flag in self.enabled:
            bits |= OPENCV_FLAG_BITS[flag]
        return bits

    def copy(self) -> "CalibrationFlags":
        return CalibrationFlags(self.enabled, extra_bits=self.extra_bits)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CalibrationFlags):
            return NotImplemented
        return self._state == other._state and self.extra_bits == other.extra_bits

    def __repr__(self) -> str:
        names = ", ".join(flag.value for flag in self.enabled) or "none"
        return f"CalibrationFlags({names})"

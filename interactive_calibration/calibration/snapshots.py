"""
Parameter snapshots for undo.
"""
from dataclasses import dataclass
from typing import List, Optional
import logging

import numpy as np
from numpy.typing import NDArray

from ..core import CameraParameters

logger = logging.getLogger(__name__)


def _frozen_copy(array: Optional[NDArray[np.float64]]) -> Optional[NDArray[np.float64]]:
    if array is None:
        return None
    frozen = np.array(array, dtype=np.float64, copy=True)
    frozen.setflags(write=False)
    return frozen


@dataclass(frozen=True)
class ParameterSnapshot:
    """Read-only copy of CameraParameters at one point in time."""
    camera_matrix: Optional[NDArray[np.float64]]
    dist_coeffs: Optional[NDArray[np.float64]]
    std_deviations: Optional[NDArray[np.float64]]
    avg_error: Optional[float]

    @classmethod
    def capture(cls, parameters: CameraParameters) -> "ParameterSnapshot":
        return cls(
            camera_matrix=_frozen_copy(parameters.camera_matrix),
            dist_coeffs=_frozen_copy(parameters.dist_coeffs),
            std_deviations=_frozen_copy(parameters.std_deviations),
            avg_error=parameters.avg_error,
        )

    def restore(self) -> CameraParameters:
        """Fresh, writable CameraParameters equal to this snapshot."""
        return CameraParameters(
            camera_matrix=self.camera_matrix,
            dist_coeffs=self.dist_coeffs,
            std_deviations=self.std_deviations,
            avg_error=self.avg_error,
        ).copy()


class SnapshotStack:
    """LIFO store of parameter snapshots."""

    def __init__(self):
        self._snapshots: List[ParameterSnapshot] = []

    def push(self, parameters: CameraParameters) -> ParameterSnapshot:
        """Snapshot parameters and push the copy."""
        snapshot = ParameterSnapshot.capture(parameters)
        self._snapshots.append(snapshot)
        logger.debug(f"Snapshot pushed (depth={len(self._snapshots)})")
        return snapshot

    def pop(self) -> Optional[ParameterSnapshot]:
        """Remove and return the newest snapshot, or None if empty."""
        if not self._snapshots:
            return None
        snapshot = self._snapshots.pop()
        logger.debug(f"Snapshot popped (depth={len(self._snapshots)})")
        return snapshot

    def peek(self) -> Optional[ParameterSnapshot]:
        return self._snapshots[-1] if self._snapshots else None

    def clear(self) -> None:
        self._snapshots.clear()

    @property
    def is_empty(self) -> bool:
        return not self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

"""
Core data types for interactive camera calibration.
Defines contracts between the controller, the data manager and the solver.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple
import numpy as np
from numpy.typing import NDArray

# Order of the solver's standard deviation vector
STD_DEV_LAYOUT: Tuple[str, ...] = ("fx", "fy", "cx", "cy", "k1", "k2", "p1", "p2", "k3")
NUM_DIST_COEFFS = 5


def _copy_or_none(array: Optional[NDArray[np.float64]]) -> Optional[NDArray[np.float64]]:
    return None if array is None else np.array(array, dtype=np.float64, copy=True)


@dataclass
class CameraParameters:
    """
    Camera intrinsics, distortion and their uncertainties.

    All fields are None until the first solve.
    """
    camera_matrix: Optional[NDArray[np.float64]] = None  # 3x3
    dist_coeffs: Optional[NDArray[np.float64]] = None  # (5,) k1, k2, p1, p2, k3
    std_deviations: Optional[NDArray[np.float64]] = None  # (9,) see STD_DEV_LAYOUT
    avg_error: Optional[float] = None  # RMS reprojection error

    def __post_init__(self):
        if self.camera_matrix is not None:
            self.camera_matrix = np.asarray(self.camera_matrix, dtype=np.float64)
            if self.camera_matrix.size and self.camera_matrix.shape != (3, 3):
                raise ValueError("Camera matrix must be 3x3")
        if self.dist_coeffs is not None:
            self.dist_coeffs = np.asarray(self.dist_coeffs, dtype=np.float64).ravel()
            if self.dist_coeffs.size and self.dist_coeffs.size != NUM_DIST_COEFFS:
                raise ValueError(f"Expected {NUM_DIST_COEFFS} distortion coefficients")
        if self.std_deviations is not None:
            self.std_deviations = np.asarray(self.std_deviations, dtype=np.float64).ravel()
            if self.std_deviations.size and self.std_deviations.size != len(STD_DEV_LAYOUT):
                raise ValueError(f"Standard deviation vector must have {len(STD_DEV_LAYOUT)} entries")
        if self.avg_error is not None and self.avg_error < 0:
            raise ValueError("Average reprojection error must be non-negative")

    @property
    def is_calibrated(self) -> bool:
        """True once a solve has populated the camera matrix."""
        return self.camera_matrix is not None and self.camera_matrix.size > 0

    @property
    def has_distortion(self) -> bool:
        return self.dist_coeffs is not None and self.dist_coeffs.size == NUM_DIST_COEFFS

    @property
    def has_std_deviations(self) -> bool:
        return self.std_deviations is not None and self.std_deviations.size == len(STD_DEV_LAYOUT)

    @property
    def fx(self) -> float:
        return float(self.camera_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.camera_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.camera_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.camera_matrix[1, 2])

    def copy(self) -> "CameraParameters":
        """Deep copy; the result shares no arrays with self."""
        return CameraParameters(
            camera_matrix=_copy_or_none(self.camera_matrix),
            dist_coeffs=_copy_or_none(self.dist_coeffs),
            std_deviations=_copy_or_none(self.std_deviations),
            avg_error=self.avg_error,
        )


class ObservationMode(Enum):
    """Which observation track a calibration run collects."""
    POINTS = "points"  # Object/image point pairs (chessboard, circle grids)
    MARKERS = "markers"  # ChArUco corners + ids


@dataclass
class CalibrationDataset:
    """
    Observations collected so far plus the current best-fit parameters.

    Only the track matching `mode` is ever populated. Parallel sequences
    (object/image points, corners/ids) always have equal length.
    """
    mode: ObservationMode = ObservationMode.POINTS
    image_size: Optional[Tuple[int, int]] = None  # (width, height)

    object_points: List[NDArray[np.float32]] = field(default_factory=list)
    image_points: List[NDArray[np.float32]] = field(default_factory=list)
    charuco_corners: List[NDArray[np.float32]] = field(default_factory=list)
    charuco_ids: List[NDArray[np.int32]] = field(default_factory=list)

    parameters: CameraParameters = field(default_factory=CameraParameters)

    @property
    def point_frames_count(self) -> int:
        return len(self.image_points)

    @property
    def marker_frames_count(self) -> int:
        return len(self.charuco_corners)

    @property
    def frames_count(self) -> int:
        """Number of captured frames, whichever track is in use."""
        return max(self.point_frames_count, self.marker_frames_count)

    def add_point_frame(self, object_points: np.ndarray, image_points: np.ndarray) -> None:
        """
        Append one frame of object/image point correspondences.

        Raises:
            ValueError: If the dataset collects markers or point counts differ
        """
        if self.mode != ObservationMode.POINTS:
            raise ValueError(f"Dataset collects {self.mode.value}, not point pairs")

        obj = np.asarray(object_points, dtype=np.float32).reshape(-1, 3)
        img = np.asarray(image_points, dtype=np.float32).reshape(-1, 2)
        if len(obj) != len(img):
            raise ValueError(
                f"Object/image point count mismatch: {len(obj)} vs {len(img)}"
            )

        self.object_points.append(obj)
        self.image_points.append(img)
        self.check_consistency()

    def add_marker_frame(self, corners: np.ndarray, ids: np.ndarray) -> None:
        """
        Append one frame of detected ChArUco corners and their ids.

        Raises:
            ValueError: If the dataset collects point pairs or counts differ
        """
        if self.mode != ObservationMode.MARKERS:
            raise ValueError(f"Dataset collects {self.mode.value}, not markers")

        corners = np.asarray(corners, dtype=np.float32).reshape(-1, 1, 2)
        ids = np.asarray(ids, dtype=np.int32).reshape(-1, 1)
        if len(corners) != len(ids):
            raise ValueError(f"Corner/id count mismatch: {len(corners)} vs {len(ids)}")

        self.charuco_corners.append(corners)
        self.charuco_ids.append(ids)
        self.check_consistency()

    def pop_last_frame(self) -> bool:
        """
        Remove the most recent frame from whichever track holds data.

        Returns:
            True if a frame was removed
        """
        removed = False
        if self.image_points:
            self.image_points.pop()
            self.object_points.pop()
            removed = True
        if self.charuco_corners:
            self.charuco_corners.pop()
            self.charuco_ids.pop()
            removed = True
        self.check_consistency()
        return removed

    def clear_frames(self) -> None:
        self.object_points.clear()
        self.image_points.clear()
        self.charuco_corners.clear()
        self.charuco_ids.clear()

    def check_consistency(self) -> None:
        """Raise RuntimeError if parallel sequences have drifted apart."""
        if len(self.object_points) != len(self.image_points):
            raise RuntimeError("Object and image point sequences differ in length")
        if len(self.charuco_corners) != len(self.charuco_ids):
            raise RuntimeError("ChArUco corner and id sequences differ in length")

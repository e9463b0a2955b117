"""
Adapter around the OpenCV calibration solver.

Point workflows call cv2.calibrateCameraExtended directly; ChArUco workflows
first map corner ids to board coordinates. Solver errors are not caught here.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging

import cv2
import numpy as np
from numpy.typing import NDArray

from ..core import STD_DEV_LAYOUT, CalibrationDataset, CameraParameters, ObservationMode

logger = logging.getLogger(__name__)


@dataclass
class SolverConfig:
    """Termination criteria and the ChArUco board used for marker workflows."""
    max_iterations: int = 30
    epsilon: float = 1e-7

    # ChArUco board (squares, lengths in board units)
    squares_x: int = 6
    squares_y: int = 8
    square_length: float = 200.0
    marker_length: float = 100.0
    dictionary: int = cv2.aruco.DICT_4X4_50

    @property
    def criteria(self) -> Tuple[int, int, float]:
        return (
            cv2.TERM_CRITERIA_COUNT + cv2.TERM_CRITERIA_EPS,
            self.max_iterations,
            self.epsilon,
        )


@dataclass
class SolveResult:
    """Output of one solve."""
    camera_matrix: NDArray[np.float64]
    dist_coeffs: NDArray[np.float64]  # (5,)
    std_deviations: NDArray[np.float64]  # (9,)
    avg_error: float
    per_view_errors: List[float] = field(default_factory=list)

    def to_parameters(self) -> CameraParameters:
        return CameraParameters(
            camera_matrix=self.camera_matrix,
            dist_coeffs=self.dist_coeffs,
            std_deviations=self.std_deviations,
            avg_error=self.avg_error,
        ).copy()


def create_charuco_board(config: SolverConfig) -> cv2.aruco.CharucoBoard:
    """Create the ChArUco board described by config."""
    aruco_dict = cv2.aruco.getPredefinedDictionary(config.dictionary)
    return cv2.aruco.CharucoBoard(
        (config.squares_x, config.squares_y),
        config.square_length,
        config.marker_length,
        aruco_dict
    )


def calibrate_points(
        object_points: Sequence[np.ndarray],
        image_points: Sequence[np.ndarray],
        image_size: Tuple[int, int],
        camera_matrix: Optional[np.ndarray],
        dist_coeffs: Optional[np.ndarray],
        flags: int = 0,
        criteria: Optional[Tuple[int, int, float]] = None
) -> SolveResult:
    """
    Calibrate from object/image point pairs.

    Args:
        object_points: Per-frame (N, 3) board coordinates
        image_points: Per-frame (N, 2) image coordinates
        image_size: (width, height)
        camera_matrix: Initial 3x3 matrix or None
        dist_coeffs: Initial distortion or None
        flags: OpenCV calibration bitmask
        criteria: Termination criteria (default: SolverConfig().criteria)

    Returns:
        SolveResult

    Raises:
        ValueError: If there are no frames
        cv2.error: If OpenCV fails
    """
    if len(object_points) == 0:
        raise ValueError("No frames to calibrate")
    if criteria is None:
        criteria = SolverConfig().criteria

    obj = [np.asarray(p, dtype=np.float32).reshape(-1, 1, 3) for p in object_points]
    img = [np.asarray(p, dtype=np.float32).reshape(-1, 1, 2) for p in image_points]

    init_matrix = None if camera_matrix is None else np.array(camera_matrix, dtype=np.float64)
    init_dist = None if dist_coeffs is None else np.array(dist_coeffs, dtype=np.float64).reshape(1, -1)

    (rms, matrix, dist, _rvecs, _tvecs,
     std_intrinsics, _std_extrinsics, per_view) = cv2.calibrateCameraExtended(
        obj,
        img,
        tuple(int(v) for v in image_size),
        init_matrix,
        init_dist,
        flags=flags,
        criteria=criteria
    )

    result = SolveResult(
        camera_matrix=np.asarray(matrix, dtype=np.float64),
        dist_coeffs=np.asarray(dist, dtype=np.float64).ravel()[:5],
        std_deviations=np.asarray(std_intrinsics, dtype=np.float64).ravel()[:len(STD_DEV_LAYOUT)],
        avg_error=float(rms),
        per_view_errors=[float(e) for e in np.asarray(per_view).ravel()],
    )
    logger.info(f"Solved {len(obj)} frames: rms={result.avg_error:.4f}, flags={flags}")
    return result


def calibrate_charuco(
        corners: Sequence[np.ndarray],
        ids: Sequence[np.ndarray],
        board: cv2.aruco.CharucoBoard,
        image_size: Tuple[int, int],
        camera_matrix: Optional[np.ndarray],
        dist_coeffs: Optional[np.ndarray],
        flags: int = 0,
        criteria: Optional[Tuple[int, int, float]] = None
) -> SolveResult:
    """
    Calibrate from ChArUco detections.

    Corner ids are looked up in the board's chessboard corners to get object
    points, then solved like point pairs.
    """
    board_corners = np.asarray(board.getChessboardCorners(), dtype=np.float32).reshape(-1, 3)

    object_points = []
    image_points = []
    for frame_corners, frame_ids in zip(corners, ids):
        frame_ids = np.asarray(frame_ids, dtype=np.int32).ravel()
        object_points.append(board_corners[frame_ids, :])
        image_points.append(np.asarray(frame_corners, dtype=np.float32).reshape(-1, 2))

    return calibrate_points(
        object_points,
        image_points,
        image_size,
        camera_matrix,
        dist_coeffs,
        flags=flags,
        criteria=criteria
    )


def solve_dataset(
        dataset: CalibrationDataset,
        flags: int,
        config: Optional[SolverConfig] = None,
        board: Optional[cv2.aruco.CharucoBoard] = None
) -> SolveResult:
    """
    Solve using whichever track the dataset collects, seeded by its live parameters.

    Raises:
        ValueError: If the image size is unknown or there are no frames
    """
    config = config or SolverConfig()
    if dataset.image_size is None:
        raise ValueError("Dataset image size must be set before calibrating")

    parameters = dataset.parameters
    camera_matrix = parameters.camera_matrix if parameters.is_calibrated else None
    dist_coeffs = parameters.dist_coeffs if parameters.has_distortion else None

    if dataset.mode == ObservationMode.MARKERS:
        return calibrate_charuco(
            dataset.charuco_corners,
            dataset.charuco_ids,
            board if board is not None else create_charuco_board(config),
            dataset.image_size,
            camera_matrix,
            dist_coeffs,
            flags=flags,
            criteria=config.criteria
        )

    return calibrate_points(
        dataset.object_points,
        dataset.image_points,
        dataset.image_size,
        camera_matrix,
        dist_coeffs,
        flags=flags,
        criteria=config.criteria
    )

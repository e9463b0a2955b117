"""
Calibration session: one dataset shared by the controller, the data manager
and the solver, driven by user actions from a capture loop.

Per calibrate action:
1. Checkpoint parameters (undo point)
2. Solve with the controller's accumulated flags
3. Adopt the result and update the controller
"""
from enum import Enum
from typing import Optional
import logging

import numpy as np

from ..core import CalibrationDataset, ObservationMode
from .controller import CalibrationController, ControllerConfig
from .data_manager import DataManager, DataManagerConfig
from .solver import SolveResult, SolverConfig, create_charuco_board, solve_dataset

logger = logging.getLogger(__name__)


class SessionAction(Enum):
    """Actions a capture loop can request between frames."""
    CALIBRATE = "calibrate"
    DELETE_LAST_FRAME = "delete_last_frame"
    DELETE_ALL_FRAMES = "delete_all_frames"
    SAVE_CURRENT_DATA = "save_current_data"
    FINISHED = "finished"


class CalibrationSession:
    """Serializes solve -> update_state -> undo on a single dataset."""

    def __init__(
            self,
            mode: ObservationMode = ObservationMode.POINTS,
            image_size: Optional[tuple] = None,
            controller_config: Optional[ControllerConfig] = None,
            data_config: Optional[DataManagerConfig] = None,
            solver_config: Optional[SolverConfig] = None
    ):
        self.dataset = CalibrationDataset(mode=mode, image_size=image_size)
        self.controller = CalibrationController(self.dataset, config=controller_config)
        self.data_manager = DataManager(self.dataset, config=data_config)
        self.solver_config = solver_config or SolverConfig()

        self._board = None
        if mode == ObservationMode.MARKERS:
            self._board = create_charuco_board(self.solver_config)

        self.solves = 0
        logger.info(f"CalibrationSession started ({mode.value})")

    def add_point_frame(self, object_points: np.ndarray, image_points: np.ndarray) -> None:
        self.dataset.add_point_frame(object_points, image_points)

    def add_marker_frame(self, corners: np.ndarray, ids: np.ndarray) -> None:
        self.dataset.add_marker_frame(corners, ids)

    def calibrate(self) -> SolveResult:
        """
        Run one solve over all frames and update the controller.

        Raises:
            ValueError, cv2.error: From the solver; parameters and undo stack stay unchanged
        """
        self.data_manager.remember_current_parameters()
        flags = self.controller.get_new_flags().to_opencv()

        try:
            result = solve_dataset(
                self.dataset,
                flags,
                config=self.solver_config,
                board=self._board
            )
        except Exception:
            self.data_manager.discard_last_snapshot()
            raise

        self.dataset.parameters = result.to_parameters()
        self.solves += 1
        self.controller.update_state()
        return result

    def handle(self, action: SessionAction) -> bool:
        """
        Dispatch a capture-loop action.

        Returns:
            False when the session is finished, True otherwise
        """
        logger.debug(f"Handling action: {action.value}")

        if action == SessionAction.FINISHED:
            return False
        elif action == SessionAction.CALIBRATE:
            self.calibrate()
        elif action == SessionAction.DELETE_LAST_FRAME:
            self.data_manager.delete_last_frame()
        elif action == SessionAction.DELETE_ALL_FRAMES:
            self.data_manager.delete_all_data()
        elif action == SessionAction.SAVE_CURRENT_DATA:
            self.data_manager.save_current_camera_parameters()

        return True

    @property
    def is_ready(self) -> bool:
        return self.controller.get_common_calibration_state()

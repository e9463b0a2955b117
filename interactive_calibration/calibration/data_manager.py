"""
Dataset mutations with undo.

Observations and the parameter snapshot stack are changed together so that
deleting a frame also rolls back the parameters of the solve that followed it.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import time
import logging

import numpy as np

from ..core import (
    CalibrationDataset,
    CameraParameters,
    atomic_write_file_storage,
    read_file_storage,
)
from .snapshots import SnapshotStack

logger = logging.getLogger(__name__)


@dataclass
class DataManagerConfig:
    """Configuration for parameter persistence."""
    params_file_name: str = "CamParams.xml"


class DataManager:
    """
    Undo/versioning layer over a CalibrationDataset.

    Usage:
        manager.remember_current_parameters()   # before each solve
        ... solve ...
        manager.delete_last_frame()             # undo frame + solve
    """

    def __init__(
            self,
            dataset: CalibrationDataset,
            config: Optional[DataManagerConfig] = None
    ):
        """
        Args:
            dataset: Shared dataset (observations + live parameters)
            config: Persistence configuration
        """
        self.config = config or DataManagerConfig()
        self.dataset = dataset
        self.snapshots = SnapshotStack()
        self.params_file_name = Path(self.config.params_file_name)

    def set_parameters_file_name(self, name: Union[str, Path]) -> None:
        self.params_file_name = Path(name)

    def remember_current_parameters(self) -> None:
        """Checkpoint the live parameters; call right before a solve."""
        self.snapshots.push(self.dataset.parameters)

    def discard_last_snapshot(self) -> None:
        """Drop the newest checkpoint without restoring it (failed solve)."""
        self.snapshots.pop()

    def delete_last_frame(self) -> None:
        """
        Remove the newest frame and undo the last solve.

        Parameters are left unchanged when there is no snapshot to restore.
        """
        removed = self.dataset.pop_last_frame()

        snapshot = self.snapshots.pop()
        if snapshot is not None:
            self.dataset.parameters = snapshot.restore()

        logger.info(
            f"Deleted last frame (removed={removed}, restored={snapshot is not None}, "
            f"frames={self.dataset.frames_count})"
        )

    def delete_all_data(self) -> None:
        """Clear all frames and parameters, leaving one baseline snapshot."""
        self.dataset.clear_frames()
        self.dataset.parameters = CameraParameters()
        self.snapshots.clear()
        self.remember_current_parameters()
        logger.info("All calibration data deleted")

    def save_current_camera_parameters(self) -> bool:
        """
        Write the current parameters to params_file_name.

        Returns:
            True if written; False if not calibrated yet or the write failed
        """
        parameters = self.dataset.parameters
        if not parameters.is_calibrated:
            logger.warning("No calibrated parameters to save")
            return False

        entries = {
            "calibrationDate": time.strftime("%c", time.localtime()),
            "framesCount": int(self.dataset.frames_count),
            "cameraMatrix": parameters.camera_matrix,
        }
        if parameters.has_std_deviations:
            entries["cameraMatrix_std_dev"] = parameters.std_deviations[0:4].reshape(-1, 1)
        if parameters.dist_coeffs is not None:
            entries["dist_coeffs"] = parameters.dist_coeffs.reshape(-1, 1)
        if parameters.has_std_deviations:
            entries["dist_coeffs_std_dev"] = parameters.std_deviations[4:9].reshape(-1, 1)
        if parameters.avg_error is not None:
            entries["avg_reprojection_error"] = float(parameters.avg_error)

        try:
            atomic_write_file_storage(self.params_file_name, entries)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save camera parameters: {e}")
            return False

        logger.info(f"Camera parameters saved to {self.params_file_name}")
        return True


def load_camera_parameters(filepath: Union[str, Path]) -> CameraParameters:
    """
    Read a parameters file written by DataManager.save_current_camera_parameters().

    Raises:
        FileNotFoundError: If the file does not exist
        KeyError: If cameraMatrix is missing
    """
    data = read_file_storage(Path(filepath))

    std_deviations = None
    if "cameraMatrix_std_dev" in data and "dist_coeffs_std_dev" in data:
        std_deviations = np.concatenate([
            np.asarray(data["cameraMatrix_std_dev"]).ravel(),
            np.asarray(data["dist_coeffs_std_dev"]).ravel(),
        ])

    dist_coeffs = data.get("dist_coeffs")
    avg_error = data.get("avg_reprojection_error")

    return CameraParameters(
        camera_matrix=data["cameraMatrix"],
        dist_coeffs=None if dist_coeffs is None else np.asarray(dist_coeffs).ravel(),
        std_deviations=std_deviations,
        avg_error=None if avg_error is None else float(avg_error),
    )

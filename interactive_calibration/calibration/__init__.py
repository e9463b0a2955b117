"""
Calibration module - readiness verdicts, flag auto-tuning and undo.
"""
from .flags import SolverFlag, CalibrationFlags, OPENCV_FLAG_BITS
from .confidence import ConfidenceEvaluator, ConfidenceResult
from .flag_tuner import FlagTuner
from .controller import CalibrationController, ControllerConfig
from .snapshots import ParameterSnapshot, SnapshotStack
from .data_manager import DataManager, DataManagerConfig, load_camera_parameters
from .solver import (
    SolverConfig,
    SolveResult,
    calibrate_points,
    calibrate_charuco,
    create_charuco_board,
    solve_dataset,
)
from .session import CalibrationSession, SessionAction
from .config_loader import (
    CalibrationConfig,
    build_calibration_config,
    load_calibration_config,
    load_calibration_settings,
)

__all__ = [
    # Flags
    "SolverFlag",
    "CalibrationFlags",
    "OPENCV_FLAG_BITS",
    # Decision logic
    "ConfidenceEvaluator",
    "ConfidenceResult",
    "FlagTuner",
    "CalibrationController",
    "ControllerConfig",
    # Undo
    "ParameterSnapshot",
    "SnapshotStack",
    "DataManager",
    "DataManagerConfig",
    "load_camera_parameters",
    # Solver
    "SolverConfig",
    "SolveResult",
    "calibrate_points",
    "calibrate_charuco",
    "create_charuco_board",
    "solve_dataset",
    # Session
    "CalibrationSession",
    "SessionAction",
    # Config
    "CalibrationConfig",
    "build_calibration_config",
    "load_calibration_config",
    "load_calibration_settings",
]

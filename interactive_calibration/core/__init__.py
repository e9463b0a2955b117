"""
Core module - shared data types and I/O utilities.
"""
from .types import (
    STD_DEV_LAYOUT,
    CameraParameters,
    ObservationMode,
    CalibrationDataset,
)
from .io_utils import (
    atomic_write_file_storage,
    read_file_storage,
    load_yaml,
    load_point_observations,
)

__all__ = [
    # Types
    "STD_DEV_LAYOUT",
    "CameraParameters",
    "ObservationMode",
    "CalibrationDataset",
    # I/O
    "atomic_write_file_storage",
    "read_file_storage",
    "load_yaml",
    "load_point_observations",
]

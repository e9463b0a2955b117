"""
I/O utilities: atomic parameter-file writes, YAML config loading and
recorded observation loading.
"""
import os
import yaml
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Tuple
import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Extensions cv2.FileStorage knows how to write
STORAGE_SUFFIXES = (".xml", ".yml", ".yaml", ".json")


def atomic_write_file_storage(filepath: Path, entries: Dict[str, Any]) -> None:
    """
    Write an OpenCV FileStorage file atomically using temporary file + os.replace().

    The storage format follows the file extension, so the temp file keeps it.

    Args:
        filepath: Target file path (.xml, .yml, .yaml or .json)
        entries: Ordered mapping of node name to value (str, int, float or ndarray)

    Raises:
        IOError: If the file cannot be opened or written
        ValueError: If the extension is not a FileStorage format
    """
    filepath = Path(filepath)
    if filepath.suffix.lower() not in STORAGE_SUFFIXES:
        raise ValueError(
            f"Unsupported parameters file format '{filepath.suffix}', "
            f"expected one of {', '.join(STORAGE_SUFFIXES)}"
        )

    filepath.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    fd, temp_path = tempfile.mkstemp(
        dir=filepath.parent,
        prefix=f".{filepath.stem}_",
        suffix=filepath.suffix
    )
    os.close(fd)

    try:
        storage = cv2.FileStorage(temp_path, cv2.FILE_STORAGE_WRITE)
        if not storage.isOpened():
            raise IOError(f"Cannot open {temp_path} for writing")
        try:
            for name, value in entries.items():
                storage.write(name, value)
        finally:
            storage.release()

        os.replace(temp_path, filepath)
        logger.debug(f"Atomically wrote {filepath}")

    except (OSError, cv2.error) as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        logger.error(f"Failed to write {filepath}: {e}")
        raise IOError(f"Atomic write failed: {e}") from e


def read_file_storage(filepath: Path) -> Dict[str, Any]:
    """
    Read every top-level node of an OpenCV FileStorage file.

    Matrices come back as ndarrays, numbers as float, text as str.

    Raises:
        FileNotFoundError: If the file does not exist
        IOError: If OpenCV cannot parse the file
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"Parameters file not found: {filepath}")

    storage = cv2.FileStorage(str(filepath), cv2.FILE_STORAGE_READ)
    if not storage.isOpened():
        raise IOError(f"Cannot open {filepath} for reading")

    data: Dict[str, Any] = {}
    try:
        root = storage.root()
        for name in root.keys():
            node = storage.getNode(name)
            if node.isString():
                data[name] = node.string()
            elif node.isInt() or node.isReal():
                data[name] = node.real()
            else:
                data[name] = node.mat()
    finally:
        storage.release()

    logger.debug(f"Loaded {filepath}")
    return data


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """
    Parse a settings file with yaml.safe_load.

    An empty document yields {}.

    Raises:
        FileNotFoundError: Missing settings file
        yaml.YAMLError: Invalid YAML
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"No settings file at {filepath}")

    with open(filepath, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in settings file {filepath}: {e}")
            raise

    logger.debug(f"Read settings from {filepath}")
    return data or {}


def load_point_observations(
        filepath: Path
) -> Tuple[List[np.ndarray], List[np.ndarray], Tuple[int, int]]:
    """
    Load recorded point observations from an .npz archive.

    Expected arrays:
        object_points: (frames, N, 3)
        image_points: (frames, N, 2)
        image_size: (2,) width, height

    Returns:
        (object_points per frame, image_points per frame, image_size)

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If arrays are missing or frame counts differ
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"Observation file not found: {filepath}")

    with np.load(filepath) as archive:
        missing = {"object_points", "image_points", "image_size"} - set(archive.files)
        if missing:
            raise ValueError(f"{filepath} is missing arrays: {', '.join(sorted(missing))}")

        object_points = archive["object_points"].astype(np.float32)
        image_points = archive["image_points"].astype(np.float32)
        width, height = (int(v) for v in archive["image_size"].ravel()[:2])

    if len(object_points) != len(image_points):
        raise ValueError(
            f"Frame count mismatch: {len(object_points)} object vs "
            f"{len(image_points)} image point sets"
        )

    logger.info(f"Loaded {len(image_points)} recorded frames from {filepath}")
    return list(object_points), list(image_points), (width, height)

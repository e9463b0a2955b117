"""
Tests for parameter snapshots, undo and parameter persistence.
"""
from pathlib import Path

import numpy as np
import pytest

from interactive_calibration.core import CameraParameters, CalibrationDataset, ObservationMode
from interactive_calibration.calibration import (
    DataManager,
    DataManagerConfig,
    ParameterSnapshot,
    SnapshotStack,
    load_camera_parameters,
)


def make_parameters(fx=800.0, avg_error=0.3):
    return CameraParameters(
        camera_matrix=np.array([[fx, 0.0, 320.0], [0.0, fx, 240.0], [0.0, 0.0, 1.0]]),
        dist_coeffs=np.array([0.1, -0.2, 0.001, -0.001, 0.05]),
        std_deviations=np.arange(1, 10, dtype=np.float64) / 10.0,
        avg_error=avg_error,
    )


def add_frames(dataset, count):
    for _ in range(count):
        dataset.add_point_frame(np.zeros((4, 3)), np.zeros((4, 2)))


# ============================================================================
# Snapshots
# ============================================================================


def test_snapshot_is_read_only_copy():
    """Snapshots do not alias the live parameters and cannot be written."""
    params = make_parameters()
    snapshot = ParameterSnapshot.capture(params)

    params.camera_matrix[0, 0] = 1.0
    assert snapshot.camera_matrix[0, 0] == 800.0

    with pytest.raises(ValueError):
        snapshot.camera_matrix[0, 0] = 5.0


def test_snapshot_restore_is_writable_copy():
    """Restored parameters are independent of the snapshot."""
    snapshot = ParameterSnapshot.capture(make_parameters())

    restored = snapshot.restore()
    restored.camera_matrix[0, 0] = 1.0

    assert snapshot.camera_matrix[0, 0] == 800.0
    assert snapshot.restore().camera_matrix[0, 0] == 800.0


def test_snapshot_of_uninitialized_parameters():
    """Empty parameters round-trip through a snapshot."""
    restored = ParameterSnapshot.capture(CameraParameters()).restore()
    assert not restored.is_calibrated
    assert restored.avg_error is None


def test_snapshot_stack_lifo():
    """Test push/pop order."""
    stack = SnapshotStack()
    assert stack.is_empty
    assert stack.pop() is None

    stack.push(make_parameters(fx=100.0))
    stack.push(make_parameters(fx=200.0))
    assert len(stack) == 2
    assert stack.peek().camera_matrix[0, 0] == 200.0

    assert stack.pop().camera_matrix[0, 0] == 200.0
    assert stack.pop().camera_matrix[0, 0] == 100.0
    assert stack.is_empty


def test_snapshot_stack_clear():
    """Test clearing the stack."""
    stack = SnapshotStack()
    stack.push(make_parameters())
    stack.clear()
    assert len(stack) == 0


# ============================================================================
# Undo
# ============================================================================


def test_undo_restores_parameters_before_solve():
    """Push A, solve to B, delete last frame -> A restored, stack empty."""
    dataset = CalibrationDataset(parameters=make_parameters(fx=500.0))
    manager = DataManager(dataset)
    add_frames(dataset, 3)

    manager.remember_current_parameters()
    dataset.parameters = make_parameters(fx=900.0, avg_error=0.1)  # solve result

    manager.delete_last_frame()

    assert dataset.frames_count == 2
    assert dataset.parameters.fx == 500.0
    assert dataset.parameters.avg_error == 0.3
    assert manager.snapshots.is_empty


def test_undo_without_snapshot_keeps_parameters():
    """Deleting a frame before any solve only removes data."""
    dataset = CalibrationDataset(parameters=make_parameters(fx=700.0))
    manager = DataManager(dataset)
    add_frames(dataset, 2)

    manager.delete_last_frame()

    assert dataset.frames_count == 1
    assert dataset.parameters.fx == 700.0


def test_undo_on_empty_dataset_is_noop():
    """Nothing to delete, nothing to restore."""
    dataset = CalibrationDataset()
    manager = DataManager(dataset)

    manager.delete_last_frame()

    assert dataset.frames_count == 0
    assert not dataset.parameters.is_calibrated


def test_undo_marker_frames():
    """Marker workflows undo the same way."""
    dataset = CalibrationDataset(mode=ObservationMode.MARKERS)
    manager = DataManager(dataset)
    dataset.add_marker_frame(np.zeros((4, 2)), np.arange(4))

    manager.remember_current_parameters()
    dataset.parameters = make_parameters()
    manager.delete_last_frame()

    assert dataset.frames_count == 0
    assert len(dataset.charuco_ids) == 0
    assert not dataset.parameters.is_calibrated


def test_restored_parameters_are_not_aliased():
    """Mutating restored parameters leaves later undos intact."""
    dataset = CalibrationDataset(parameters=make_parameters(fx=500.0))
    manager = DataManager(dataset)
    add_frames(dataset, 2)

    manager.remember_current_parameters()
    snapshot = manager.snapshots.peek()
    manager.delete_last_frame()
    dataset.parameters.camera_matrix[0, 0] = 1.0

    assert snapshot.camera_matrix[0, 0] == 500.0


def test_delete_all_data():
    """Reset clears data and parameters and leaves one baseline snapshot."""
    dataset = CalibrationDataset(parameters=make_parameters())
    manager = DataManager(dataset)
    add_frames(dataset, 5)
    manager.remember_current_parameters()
    manager.remember_current_parameters()

    manager.delete_all_data()

    assert dataset.frames_count == 0
    assert not dataset.parameters.is_calibrated
    assert len(manager.snapshots) == 1


def test_delete_all_then_undo_is_noop():
    """Reset followed by undo leaves the reset parameters."""
    dataset = CalibrationDataset(parameters=make_parameters())
    manager = DataManager(dataset)
    add_frames(dataset, 3)

    manager.delete_all_data()
    manager.delete_last_frame()

    assert dataset.frames_count == 0
    assert not dataset.parameters.is_calibrated
    assert dataset.parameters.avg_error is None
    assert manager.snapshots.is_empty


def test_discard_last_snapshot():
    """Discarding drops the checkpoint without touching parameters."""
    dataset = CalibrationDataset(parameters=make_parameters(fx=600.0))
    manager = DataManager(dataset)

    manager.remember_current_parameters()
    dataset.parameters = make_parameters(fx=650.0)
    manager.discard_last_snapshot()

    assert manager.snapshots.is_empty
    assert dataset.parameters.fx == 650.0


# ============================================================================
# Persistence
# ============================================================================


def test_save_before_calibration_fails(tmp_path: Path):
    """No file is written without a camera matrix."""
    target = tmp_path / "CamParams.xml"
    manager = DataManager(CalibrationDataset(), DataManagerConfig(params_file_name=str(target)))

    assert not manager.save_current_camera_parameters()
    assert not target.exists()


def test_default_params_file_name():
    """Default output file name."""
    manager = DataManager(CalibrationDataset())
    assert manager.params_file_name == Path("CamParams.xml")


def test_save_writes_expected_keys(tmp_path: Path):
    """Saved file carries the compatibility key names and values."""
    target = tmp_path / "CamParams.xml"
    dataset = CalibrationDataset(parameters=make_parameters())
    add_frames(dataset, 12)
    manager = DataManager(dataset, DataManagerConfig(params_file_name=str(target)))

    assert manager.save_current_camera_parameters()

    text = target.read_text()
    for key in ("calibrationDate", "framesCount", "cameraMatrix", "cameraMatrix_std_dev",
                "dist_coeffs", "dist_coeffs_std_dev", "avg_reprojection_error"):
        assert f"<{key}" in text

    loaded = load_camera_parameters(target)
    np.testing.assert_allclose(loaded.camera_matrix, dataset.parameters.camera_matrix)
    np.testing.assert_allclose(loaded.dist_coeffs, dataset.parameters.dist_coeffs)
    np.testing.assert_allclose(loaded.std_deviations, dataset.parameters.std_deviations)
    assert loaded.avg_error == pytest.approx(0.3)


def test_save_frames_count_and_std_split(tmp_path: Path):
    """framesCount and the 4/5 std-dev split are stored as-is."""
    from interactive_calibration.core import read_file_storage

    target = tmp_path / "CamParams.yml"
    dataset = CalibrationDataset(parameters=make_parameters())
    add_frames(dataset, 7)
    manager = DataManager(dataset)
    manager.set_parameters_file_name(target)

    assert manager.save_current_camera_parameters()

    data = read_file_storage(target)
    assert data["framesCount"] == 7
    assert isinstance(data["calibrationDate"], str)
    np.testing.assert_allclose(data["cameraMatrix_std_dev"].ravel(), [0.1, 0.2, 0.3, 0.4])
    np.testing.assert_allclose(data["dist_coeffs_std_dev"].ravel(), [0.5, 0.6, 0.7, 0.8, 0.9])


def test_save_io_failure_returns_false(tmp_path: Path):
    """Unwritable targets are reported, not raised."""
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    dataset = CalibrationDataset(parameters=make_parameters())
    manager = DataManager(dataset, DataManagerConfig(params_file_name=str(blocker / "CamParams.xml")))

    assert not manager.save_current_camera_parameters()


def test_save_unsupported_extension_returns_false(tmp_path: Path):
    """Unknown formats are reported, not raised."""
    dataset = CalibrationDataset(parameters=make_parameters())
    manager = DataManager(dataset, DataManagerConfig(params_file_name=str(tmp_path / "params.txt")))

    assert not manager.save_current_camera_parameters()
    assert not (tmp_path / "params.txt").exists()


def test_load_missing_parameters_file(tmp_path: Path):
    """Test loading non-existent parameters."""
    with pytest.raises(FileNotFoundError):
        load_camera_parameters(tmp_path / "absent.xml")

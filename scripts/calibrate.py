"""
Replay recorded calibration observations through a calibration session.

Frames are added one at a time; after each frame the solver runs, the
controller re-evaluates readiness and tunes the solver flags. Replay stops as
soon as the calibration is trusted (or the frames run out) and the camera
parameters are saved.

Usage:
    python scripts/calibrate.py recordings/board.npz
    python scripts/calibrate.py recordings/board.npz --output out/CamParams.xml
    python scripts/calibrate.py recordings/board.npz --no-auto-tuning
"""
import sys
import argparse
from pathlib import Path

import cv2

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from interactive_calibration.core import ObservationMode, load_point_observations
from interactive_calibration.core.io_utils import STORAGE_SUFFIXES
from interactive_calibration.calibration import (
    CalibrationSession,
    SessionAction,
    load_calibration_config,
)
import logging

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Replay recorded observations through interactive calibration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/calibrate.py board.npz                        # Default settings
  python scripts/calibrate.py board.npz -o CamParams.yml       # YAML output
  python scripts/calibrate.py board.npz --config my.yaml       # Custom thresholds
        """
    )

    parser.add_argument(
        "observations",
        type=str,
        help="Recorded observations (.npz with object_points, image_points, image_size)"
    )

    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="Output parameters file (default: from config, CamParams.xml)"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Calibration config YAML (default: config/default_config.yaml)"
    )

    parser.add_argument(
        "--no-auto-tuning",
        action="store_true",
        help="Disable solver flag auto-tuning"
    )

    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Don't save parameters (just report)"
    )

    return parser.parse_args()


def print_state(session, frame_index):
    """Print controller state after a solve."""
    stats = session.controller.get_stats()
    enabled = [name for name, on in stats["flags"].items() if on]
    print(
        f"Frame {frame_index:3d}: rms={stats['avg_error']:.4f} "
        f"frames={'OK' if stats['frames_state'] else '--'} "
        f"confidence={'OK' if stats['confidence_state'] else '--'} "
        f"rms={'OK' if stats['rms_state'] else '--'} "
        f"flags=[{', '.join(enabled)}]"
    )


def main():
    """Run calibration replay."""
    args = parse_args()

    config = load_calibration_config(Path(args.config) if args.config else None)
    if args.no_auto_tuning:
        config.controller.auto_tuning = False
    if args.output:
        config.data.params_file_name = args.output

    if Path(config.data.params_file_name).suffix.lower() not in STORAGE_SUFFIXES:
        logger.error(
            f"Wrong output file name: {config.data.params_file_name} "
            f"(expected {', '.join(STORAGE_SUFFIXES)})"
        )
        return 1

    try:
        object_points, image_points, image_size = load_point_observations(Path(args.observations))
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Cannot load observations: {e}")
        return 1

    print("=" * 60)
    print("Interactive Calibration - Replay")
    print("=" * 60)
    print(f"Frames: {len(image_points)}, image size: {image_size[0]}x{image_size[1]}")
    print("=" * 60 + "\n")

    session = CalibrationSession(
        mode=ObservationMode.POINTS,
        image_size=image_size,
        controller_config=config.controller,
        data_config=config.data,
        solver_config=config.solver,
    )

    try:
        for index, (obj, img) in enumerate(zip(object_points, image_points), start=1):
            session.add_point_frame(obj, img)
            try:
                session.handle(SessionAction.CALIBRATE)
            except (ValueError, cv2.error) as e:
                # Drop the frame that broke the solve and keep going
                logger.warning(f"Solve failed on frame {index}: {e}")
                session.dataset.pop_last_frame()
                continue

            print_state(session, index)
            if session.is_ready:
                print("\n✓ Calibration is trusted, stopping capture")
                break
        else:
            print("\n⚠ Frames exhausted before calibration became trusted")

    except KeyboardInterrupt:
        print("\nInterrupted by user")

    if args.no_save:
        print("\n(Parameters not saved - --no-save flag used)")
    elif session.data_manager.save_current_camera_parameters():
        print(f"\n✓ Parameters saved to {session.data_manager.params_file_name}")
    else:
        print("\n❌ Parameters not saved")
        return 1

    session.handle(SessionAction.FINISHED)
    return 0


if __name__ == "__main__":
    sys.exit(main())

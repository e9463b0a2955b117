"""
Utilities to load calibration configuration from YAML files.

Thresholds live in `config/default_config.yaml` so they can be tuned without
touching code. Unknown keys are ignored to keep the loader backwards
compatible.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from ..core import load_yaml
from .controller import ControllerConfig
from .data_manager import DataManagerConfig
from .solver import SolverConfig

logger = logging.getLogger(__name__)

# Default location for the application-wide settings
DEFAULT_CONFIG_PATH = Path("config/default_config.yaml")


@dataclass
class CalibrationConfig:
    """All configuration sections."""
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    data: DataManagerConfig = field(default_factory=DataManagerConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)


def _apply_overrides(target: Any, overrides: Dict[str, Any]) -> None:
    """
    Copy values from one YAML section onto a config dataclass.

    Keys with no matching field are skipped, so older builds can read newer files.
    """
    for key, value in overrides.items():
        if not hasattr(target, key):
            logger.debug("Skipping %s.%s: no such setting", type(target).__name__, key)
            continue
        setattr(target, key, value)


def load_calibration_settings(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the calibration settings file as plain sections.

    Args:
        config_path: Settings file; DEFAULT_CONFIG_PATH when omitted

    Returns:
        Section name -> settings mapping, or {} when the file is absent or unreadable
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.info("No calibration settings at %s; controller, data and solver use built-in defaults", path)
        return {}

    try:
        return load_yaml(path) or {}
    except Exception as exc:  # unreadable settings mean built-in defaults
        logger.warning("Ignoring calibration settings in %s (%s)", path, exc)
        return {}


def build_calibration_config(settings: Optional[Dict[str, Any]] = None) -> CalibrationConfig:
    """
    Construct CalibrationConfig from settings.

    Args:
        settings: Raw settings dictionary (e.g., from load_calibration_settings)

    Returns:
        Populated CalibrationConfig instance
    """
    settings = settings or {}
    config = CalibrationConfig()

    _apply_overrides(config.controller, settings.get("controller") or {})
    _apply_overrides(config.data, settings.get("data") or settings.get("persistence") or {})
    _apply_overrides(config.solver, settings.get("solver") or {})

    return config


def load_calibration_config(config_path: Optional[Path] = None) -> CalibrationConfig:
    """
    Convenience wrapper to load and build a calibration config in one call.
    """
    settings = load_calibration_settings(config_path)
    return build_calibration_config(settings)

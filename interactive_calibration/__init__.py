"""
Interactive camera calibration: readiness verdicts, solver flag auto-tuning
and undo of observations and parameters.
"""

__version__ = "0.1.0"

"""
Calibration package: the finished degrees-per-millimetre mapping.
"""

from .calibration import Calibration, DEFAULT_CALIBRATION, load_calibration

__all__ = ['Calibration', 'DEFAULT_CALIBRATION', 'load_calibration']

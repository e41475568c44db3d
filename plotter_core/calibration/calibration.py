"""
Calibration values for the plotter axes.

The measurement procedure that derives these numbers lives outside the
control core; this module only holds and loads the finished result.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict

import yaml

from ..exceptions import PlotterError

logger = logging.getLogger(__name__)

# A5 paper, portrait
A5_WIDTH_MM = 148.0
A5_HEIGHT_MM = 210.0


@dataclass(frozen=True)
class Calibration:
    """
    Linear mapping between millimetres of travel and degrees of axis rotation.

    Frozen: a validator/executor pair is built for one calibration and a new
    calibration means new instances.
    """
    degrees_per_mm_x: float = 10.0
    degrees_per_mm_y: float = 10.0
    max_travel_x: float = A5_WIDTH_MM
    max_travel_y: float = A5_HEIGHT_MM

    def __post_init__(self):
        if self.degrees_per_mm_x <= 0 or self.degrees_per_mm_y <= 0:
            raise ValueError("Degrees per mm must be positive")
        if self.max_travel_x <= 0 or self.max_travel_y <= 0:
            raise ValueError("Max travel must be positive")

    def mm_to_degrees(self, dx: float, dy: float) -> Dict[str, float]:
        """Convert a millimetre delta into per-axis degrees."""
        return {
            'X': dx * self.degrees_per_mm_x,
            'Y': dy * self.degrees_per_mm_y
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the external calibration document shape."""
        return {
            'degreesPerMM': {'X': self.degrees_per_mm_x, 'Y': self.degrees_per_mm_y},
            'maxTravel': {'X': self.max_travel_x, 'Y': self.max_travel_y}
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Calibration':
        """Create from the external calibration document shape."""
        try:
            degrees = data['degreesPerMM']
            travel = data.get('maxTravel', {})
            return cls(
                degrees_per_mm_x=float(degrees['X']),
                degrees_per_mm_y=float(degrees['Y']),
                max_travel_x=float(travel.get('X', A5_WIDTH_MM)),
                max_travel_y=float(travel.get('Y', A5_HEIGHT_MM))
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PlotterError(f"Invalid calibration data: {e}") from e


DEFAULT_CALIBRATION = Calibration()


def load_calibration(calibration_file: str) -> Calibration:
    """
    Load a calibration document from a JSON or YAML file.

    Args:
        calibration_file: Path to the calibration file

    Returns:
        Calibration: The loaded calibration
    """
    if not os.path.exists(calibration_file):
        raise PlotterError(f"Calibration file {calibration_file} not found")

    with open(calibration_file, 'r') as f:
        if calibration_file.endswith(('.yaml', '.yml')):
            data = yaml.safe_load(f)
        elif calibration_file.endswith('.json'):
            data = json.load(f)
        else:
            raise PlotterError(f"Unsupported calibration file format: {calibration_file}")

    calibration = Calibration.from_dict(data or {})
    logger.info(f"Loaded calibration from {calibration_file}")
    return calibration

"""
Movement Validator for the pen plotter

Pure geometric judge of positions, straight paths and whole sequences
against travel bounds, paper extents, danger zones and per-move rotation
limits. Also owns fitting planner output onto the paper, since that is a
function of the same bounds.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence as SequenceType

import numpy as np

from ..calibration import Calibration, DEFAULT_CALIBRATION
from ..calibration.calibration import A5_HEIGHT_MM, A5_WIDTH_MM
from ..exceptions import PathBoundsError
from ..sequence import ORIGIN, Move, Point, Sequence

# Largest rotation either positioning axis may make in one move
MAX_DEGREES_PER_MOVE = 360.0

# Fraction of the paper a fitted drawing may fill
FIT_MARGIN = 0.9


@dataclass(frozen=True)
class Zone:
    """Axis-aligned rectangle, corners inclusive."""
    x1: float
    y1: float
    x2: float
    y2: float

    def contains(self, x: float, y: float) -> bool:
        return self.x1 <= x <= self.x2 and self.y1 <= y <= self.y2

    def edges(self):
        """The four boundary edges as (x1, y1, x2, y2) tuples."""
        return [
            (self.x1, self.y1, self.x2, self.y1),  # top
            (self.x2, self.y1, self.x2, self.y2),  # right
            (self.x1, self.y2, self.x2, self.y2),  # bottom
            (self.x1, self.y1, self.x1, self.y2),  # left
        ]


@dataclass(frozen=True)
class MovementBounds:
    """Travel limits, paper extents and no-go regions."""
    min_x: float = 0.0
    max_x: float = A5_WIDTH_MM
    min_y: float = 0.0
    max_y: float = A5_HEIGHT_MM
    paper_width: float = A5_WIDTH_MM
    paper_height: float = A5_HEIGHT_MM
    safe_zones: List[Zone] = field(default_factory=list)
    danger_zones: List[Zone] = field(default_factory=list)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check; truthy when valid."""
    valid: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid

    def __str__(self) -> str:
        return "valid" if self.valid else f"invalid: {self.reason}"


VALID = ValidationResult(True)


class MovementValidator:
    """
    Geometric admissibility checks for plotter motion.

    Holds no mutable state beyond its fixed bounds and calibration, so one
    instance can be shared by any number of concurrent callers. Results
    are returned as ValidationResult values; invalid geometry is an
    expected outcome, not an error.
    """

    def __init__(self,
                 bounds: MovementBounds = None,
                 calibration: Calibration = DEFAULT_CALIBRATION,
                 simulation_mode: bool = False):
        """
        Initialize movement validator.

        Args:
            bounds: Travel bounds, paper size and zones
            calibration: Degrees-per-mm mapping used for the rotation limit
            simulation_mode: When set, every validate call returns valid
        """
        self.bounds = bounds if bounds is not None else MovementBounds()
        self.calibration = calibration
        self.simulation_mode = simulation_mode
        self.logger = logging.getLogger(__name__)

    def validate_position(self, x: float, y: float) -> ValidationResult:
        """Check a single position against bounds, paper and danger zones."""
        if self.simulation_mode:
            return VALID

        # NaN compares False against every limit below
        if not (math.isfinite(x) and math.isfinite(y)):
            return ValidationResult(False, f"Non-finite position ({x}, {y})")

        b = self.bounds
        if x < b.min_x or x > b.max_x:
            return ValidationResult(False, f"X position {x} outside bounds ({b.min_x}-{b.max_x})")

        if y < b.min_y or y > b.max_y:
            return ValidationResult(False, f"Y position {y} outside bounds ({b.min_y}-{b.max_y})")

        if x < 0 or x > b.paper_width or y < 0 or y > b.paper_height:
            return ValidationResult(False, "Position outside paper bounds")

        for zone in b.danger_zones:
            if zone.contains(x, y):
                return ValidationResult(False, "Position is in danger zone")

        return VALID

    def validate_path(self, start_x: float, start_y: float,
                      end_x: float, end_y: float) -> ValidationResult:
        """
        Check a straight move between two positions.

        Args:
            start_x, start_y: Start position in mm
            end_x, end_y: End position in mm

        Returns:
            ValidationResult: First failed check, or valid
        """
        if self.simulation_mode:
            return VALID

        start_valid = self.validate_position(start_x, start_y)
        if not start_valid:
            return start_valid

        end_valid = self.validate_position(end_x, end_y)
        if not end_valid:
            return end_valid

        dx = end_x - start_x
        dy = end_y - start_y
        if math.hypot(dx, dy) > max(self.bounds.paper_width, self.bounds.paper_height):
            return ValidationResult(False, "Path length exceeds maximum allowed distance")

        for zone in self.bounds.danger_zones:
            if self._line_intersects_zone(start_x, start_y, end_x, end_y, zone):
                return ValidationResult(False, "Path crosses danger zone")

        degrees = self.calibration.mm_to_degrees(dx, dy)
        if abs(degrees['X']) > MAX_DEGREES_PER_MOVE or abs(degrees['Y']) > MAX_DEGREES_PER_MOVE:
            return ValidationResult(False, "Movement requires excessive motor rotation")

        return VALID

    def validate_sequence(self, sequence: Sequence, start: Point = ORIGIN) -> ValidationResult:
        """
        Check a whole sequence hop by hop.

        Args:
            sequence: Sequence to check
            start: Position the pen starts from

        Returns:
            ValidationResult: First failure annotated with the offending move
        """
        if self.simulation_mode:
            return VALID

        box = sequence.bounding_box
        if (box.max_x > self.bounds.paper_width or box.max_y > self.bounds.paper_height or
                box.min_x < 0 or box.min_y < 0):
            return ValidationResult(False, "Sequence exceeds paper bounds")

        current_x, current_y = start.x, start.y
        for move in sequence.moves:
            result = self.validate_path(current_x, current_y, move.x, move.y)
            if not result:
                return ValidationResult(
                    False, f"Invalid move at ({move.x}, {move.y}): {result.reason}"
                )
            current_x, current_y = move.x, move.y

        return VALID

    def fit_to_paper(self, moves: SequenceType[Move]) -> List[Move]:
        """
        Fit moves onto the paper.

        Moves are shifted to the paper corner and scaled uniformly to fill
        90% of the paper. In simulation mode coordinates are only clamped.

        Args:
            moves: Moves in drawing units

        Returns:
            List[Move]: Moves in paper millimetres
        """
        if not moves:
            return []

        width = self.bounds.paper_width
        height = self.bounds.paper_height
        xs = np.array([m.x for m in moves], dtype=float)
        ys = np.array([m.y for m in moves], dtype=float)

        if self.simulation_mode:
            xs = np.clip(xs, 0.0, width)
            ys = np.clip(ys, 0.0, height)
        else:
            span_x = xs.max() - xs.min()
            span_y = ys.max() - ys.min()
            scales = []
            if span_x > 0:
                scales.append(width / span_x)
            if span_y > 0:
                scales.append(height / span_y)
            scale = min(scales) * FIT_MARGIN if scales else 1.0

            xs = (xs - xs.min()) * scale
            ys = (ys - ys.min()) * scale

            if (xs < 0).any() or (xs > width).any() or (ys < 0).any() or (ys > height).any():
                raise PathBoundsError("Path contains moves outside drawing area")

        return [
            replace(move, x=float(x), y=float(y))
            for move, x, y in zip(moves, xs, ys)
        ]

    def _line_intersects_zone(self, x1: float, y1: float, x2: float, y2: float,
                              zone: Zone) -> bool:
        """Check the segment against each of the zone's four edges."""
        return any(
            self._lines_intersect(x1, y1, x2, y2, *edge)
            for edge in zone.edges()
        )

    @staticmethod
    def _lines_intersect(x1: float, y1: float, x2: float, y2: float,
                         x3: float, y3: float, x4: float, y4: float) -> bool:
        """Parametric segment intersection; parallel segments never intersect."""
        denominator = (x2 - x1) * (y4 - y3) - (y2 - y1) * (x4 - x3)
        if denominator == 0:
            return False

        ua = ((x4 - x3) * (y1 - y3) - (y4 - y3) * (x1 - x3)) / denominator
        ub = ((x2 - x1) * (y1 - y3) - (y2 - y1) * (x1 - x3)) / denominator

        return 0 <= ua <= 1 and 0 <= ub <= 1

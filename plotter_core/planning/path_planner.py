"""
Path Planner for the pen plotter

Turns vector path input and freehand segments into ordered, pen-aware
move lists in paper space, and loads/saves sequence interchange documents.
"""

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence as SequenceType, Union

import numpy as np
import svgelements

from ..exceptions import InvalidSequenceError, SequenceFormatError
from ..sequence import (
    ORIGIN, PEN_DOWN, PEN_UP, Move, MoveKind, PathSegment, Point, Sequence
)
from ..validation.movement_validator import MovementValidator

DEFAULT_BEZIER_SEGMENTS = 10

# Linear speed classes, mm/s
DEFAULT_MOVE_SPEED = 50.0
DEFAULT_DRAW_SPEED = 30.0

# Cross-product tolerance when deciding that three points are collinear
COLLINEAR_TOLERANCE = 1e-9


@dataclass
class PathCommand:
    """One vector path primitive: M (move-to), L (line-to), C (cubic) or Z (close)."""
    code: str
    x: Optional[float] = None
    y: Optional[float] = None
    x0: Optional[float] = None
    y0: Optional[float] = None
    x1: Optional[float] = None
    y1: Optional[float] = None
    x2: Optional[float] = None
    y2: Optional[float] = None


def svg_path_commands(path_data: str) -> List[PathCommand]:
    """
    Decode SVG path data into absolute PathCommands.

    Primitives other than move, line, cubic and close are returned with
    their segment type name as code so the planner can skip them.
    """
    commands = []
    for segment in svgelements.Path(path_data):
        if isinstance(segment, svgelements.Move):
            commands.append(PathCommand('M', x=segment.end.x, y=segment.end.y))
        elif isinstance(segment, svgelements.Close):
            commands.append(PathCommand('Z'))
        elif isinstance(segment, svgelements.Line):
            commands.append(PathCommand('L', x=segment.end.x, y=segment.end.y))
        elif isinstance(segment, svgelements.CubicBezier):
            commands.append(PathCommand(
                'C',
                x=segment.end.x, y=segment.end.y,
                x0=segment.start.x, y0=segment.start.y,
                x1=segment.control1.x, y1=segment.control1.y,
                x2=segment.control2.x, y2=segment.control2.y
            ))
        else:
            commands.append(PathCommand(type(segment).__name__))
    return commands


def flatten_cubic(p0: Point, p1: Point, p2: Point, p3: Point,
                  segments: int = DEFAULT_BEZIER_SEGMENTS) -> List[Point]:
    """
    Sample a cubic Bezier curve at segments + 1 evenly spaced parameters.

    The first and last samples are exactly p0 and p3.
    """
    if segments < 1:
        raise ValueError("Bezier segment count must be at least 1")

    t = np.linspace(0.0, 1.0, segments + 1)
    mt = 1.0 - t
    b0 = mt ** 3
    b1 = 3 * mt ** 2 * t
    b2 = 3 * mt * t ** 2
    b3 = t ** 3

    xs = b0 * p0.x + b1 * p1.x + b2 * p2.x + b3 * p3.x
    ys = b0 * p0.y + b1 * p1.y + b2 * p2.y + b3 * p3.y
    return [Point(float(x), float(y)) for x, y in zip(xs, ys)]


def _pen_compatible(previous: Move, move: Move) -> bool:
    return move.pen is None or move.pen == previous.pen


def _continues_straight(anchor: Point, middle: Point, end: Point) -> bool:
    """True when middle lies on the straight run from anchor towards end."""
    ax, ay = middle.x - anchor.x, middle.y - anchor.y
    bx, by = end.x - middle.x, end.y - middle.y
    cross = ax * by - ay * bx
    scale = max(abs(ax), abs(ay), abs(bx), abs(by), 1.0)
    return abs(cross) <= COLLINEAR_TOLERANCE * scale * scale and ax * bx + ay * by > 0


def optimize_moves(moves: SequenceType[Move]) -> List[Move]:
    """
    Fold redundant consecutive draw moves in one linear pass.

    A draw directly after a draw is dropped when it repeats the same point,
    and absorbed into the previous draw when that draw's endpoint is only an
    intermediate point on a straight run (or a zero-length hop). Moves are
    never reordered and travel moves are never touched, so the traced
    polyline is unchanged. Running it twice gives the same result.
    """
    optimized: List[Move] = []
    for move in moves:
        if (optimized and move.kind is MoveKind.DRAW and
                optimized[-1].kind is MoveKind.DRAW and
                _pen_compatible(optimized[-1], move)):
            previous = optimized[-1]
            if (move.x, move.y) == (previous.x, previous.y):
                continue
            if len(optimized) >= 2:
                anchor = optimized[-2].point
                if previous.point == anchor or _continues_straight(anchor, previous.point, move.point):
                    optimized[-1] = replace(previous, x=move.x, y=move.y)
                    continue
        optimized.append(move)
    return optimized


def merge_segments(segments: SequenceType[PathSegment]) -> List[PathSegment]:
    """Join contiguous freehand segments of the same kind into one."""
    merged: List[PathSegment] = []
    for segment in segments:
        if merged:
            previous = merged[-1]
            if previous.kind is segment.kind and previous.end == segment.start:
                merged[-1] = PathSegment(previous.kind, previous.start, segment.end)
                continue
        merged.append(segment)
    return merged


def _hop_lengths(moves: SequenceType[Move], start: Point) -> np.ndarray:
    points = np.array([[start.x, start.y]] + [[m.x, m.y] for m in moves], dtype=float)
    deltas = np.diff(points, axis=0)
    return np.hypot(deltas[:, 0], deltas[:, 1])


def path_length(moves: SequenceType[Move], start: Point = ORIGIN) -> float:
    """Total distance travelled through the moves, in mm."""
    if not moves:
        return 0.0
    return float(_hop_lengths(moves, start).sum())


def estimate_execution_time(moves: SequenceType[Move],
                            move_speed: float = DEFAULT_MOVE_SPEED,
                            draw_speed: float = DEFAULT_DRAW_SPEED,
                            start: Point = ORIGIN) -> float:
    """Estimated execution time in seconds from distance and speed class."""
    if not moves:
        return 0.0
    speeds = np.array([
        move_speed if m.kind is MoveKind.TRAVEL else draw_speed for m in moves
    ], dtype=float)
    return float((_hop_lengths(moves, start) / speeds).sum())


class PathPlanner:
    """
    Converts path and freehand input into plotter move sequences.

    Scaling onto the paper uses the attached validator's bounds. When a
    validator is attached, loaded sequences are also fully validated.
    """

    def __init__(self,
                 validator: MovementValidator = None,
                 bezier_segments: int = DEFAULT_BEZIER_SEGMENTS,
                 move_speed: float = DEFAULT_MOVE_SPEED,
                 draw_speed: float = DEFAULT_DRAW_SPEED):
        """
        Initialize path planner.

        Args:
            validator: Validator used for paper fitting and load validation
            bezier_segments: Linear segments per flattened cubic curve
            move_speed: Travel speed used for time estimates (mm/s)
            draw_speed: Draw speed used for time estimates (mm/s)
        """
        self.validator = validator
        self.bezier_segments = bezier_segments
        self.move_speed = move_speed
        self.draw_speed = draw_speed
        self._fitter = validator if validator is not None else MovementValidator()
        self.logger = logging.getLogger(__name__)

    def parse_curve_path(self, description: Union[str, Iterable[PathCommand]],
                         scale: float = 1.0) -> List[Move]:
        """
        Decode path primitives into paper-space moves.

        Args:
            description: SVG path data, or PathCommands
            scale: Factor applied to every coordinate before fitting

        Returns:
            List[Move]: Moves fitted onto the paper, ending pen-up
        """
        if isinstance(description, str):
            commands = svg_path_commands(description)
        else:
            commands = list(description)

        moves: List[Move] = []
        pen_down = False
        current: Optional[Point] = None
        subpath_start: Optional[Point] = None

        for cmd in commands:
            code = cmd.code.upper()

            if code == 'M':
                if cmd.x is None or cmd.y is None:
                    self.logger.debug("Skipping move-to without coordinates")
                    continue
                current = subpath_start = Point(cmd.x * scale, cmd.y * scale)
                moves.append(Move(MoveKind.TRAVEL, current.x, current.y, PEN_UP))
                pen_down = False

            elif code == 'L':
                if cmd.x is None or cmd.y is None:
                    self.logger.debug("Skipping line-to without coordinates")
                    continue
                target = Point(cmd.x * scale, cmd.y * scale)
                self._append_draw(moves, target, current, pen_down)
                pen_down = True
                current = target

            elif code == 'C':
                if None in (cmd.x1, cmd.y1, cmd.x2, cmd.y2, cmd.x, cmd.y):
                    self.logger.debug("Skipping cubic curve with missing control points")
                    continue
                if cmd.x0 is not None and cmd.y0 is not None:
                    start = Point(cmd.x0 * scale, cmd.y0 * scale)
                elif current is not None:
                    start = current
                else:
                    self.logger.debug("Skipping cubic curve without a start point")
                    continue

                points = flatten_cubic(
                    start,
                    Point(cmd.x1 * scale, cmd.y1 * scale),
                    Point(cmd.x2 * scale, cmd.y2 * scale),
                    Point(cmd.x * scale, cmd.y * scale),
                    self.bezier_segments
                )
                for point in points:
                    self._append_draw(moves, point, current, pen_down)
                    pen_down = True
                    current = point

            elif code == 'Z':
                if not moves:
                    continue
                target = subpath_start if subpath_start is not None else moves[0].point
                self._append_draw(moves, target, current, pen_down)
                pen_down = True
                current = target

            else:
                self.logger.warning(f"Skipping unsupported path command: {cmd.code}")

        if moves:
            moves.append(moves[-1].with_pen(PEN_UP))

        return self._fitter.fit_to_paper(moves)

    def convert_freehand_to_sequence(self, segments: SequenceType[PathSegment],
                                     name: str = "Manual Path") -> Sequence:
        """
        Map freehand segments one-to-one onto moves.

        Args:
            segments: Interactively drawn segments
            name: Sequence name

        Returns:
            Sequence: One move per segment end point
        """
        moves = [
            Move(segment.kind, segment.end.x, segment.end.y,
                 PEN_UP if segment.kind is MoveKind.TRAVEL else PEN_DOWN)
            for segment in segments
        ]
        return self._build_sequence(name, moves)

    def optimize(self, moves: SequenceType[Move]) -> List[Move]:
        """Remove redundant draw moves without reordering."""
        return optimize_moves(moves)

    def plan_sequence(self, description: Union[str, Iterable[PathCommand]],
                      name: str = "SVG Path", scale: float = 1.0) -> Sequence:
        """Parse, optimize and package a path as a sequence."""
        moves = self.optimize(self.parse_curve_path(description, scale))
        sequence = self._build_sequence(name, moves)
        self.logger.info(f"Planned {sequence}: {sequence.total_distance:.1f}mm, "
                         f"~{sequence.estimated_time:.1f}s")
        return sequence

    def load_sequence(self, document: Union[str, bytes, Dict[str, Any]]) -> Sequence:
        """
        Load a sequence interchange document.

        Args:
            document: JSON text or an already-decoded mapping

        Returns:
            Sequence: The loaded sequence with a freshly computed bounding box
        """
        if isinstance(document, (str, bytes)):
            try:
                data = json.loads(document)
            except json.JSONDecodeError as e:
                raise SequenceFormatError(f"Failed to load sequence: {e}") from e
        else:
            data = document

        if not isinstance(data, dict):
            raise SequenceFormatError("Failed to load sequence: document is not an object")

        raw_moves = data.get('moves')
        if not isinstance(raw_moves, list) or not raw_moves:
            raise SequenceFormatError("Invalid sequence: no moves found")

        moves = []
        for index, raw_move in enumerate(raw_moves):
            try:
                moves.append(Move.from_dict(raw_move))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise SequenceFormatError(f"Invalid move {index}: {e}") from e

        sequence = Sequence(
            name=data.get('name') or 'Unnamed Sequence',
            moves=moves,
            estimated_time=data.get('estimatedTime'),
            total_distance=data.get('totalDistance')
        )

        if self.validator is not None:
            result = self.validator.validate_sequence(sequence)
            if not result:
                raise InvalidSequenceError(result.reason)

        self.logger.info(f"Loaded {sequence}")
        return sequence

    def save_sequence(self, sequence: Sequence) -> str:
        """Serialize a sequence to an interchange JSON document."""
        return json.dumps(sequence.to_dict(), indent=2)

    def _append_draw(self, moves: List[Move], target: Point,
                     current: Optional[Point], pen_down: bool):
        """Append a draw to target, lowering the pen in place first if it is up."""
        if not pen_down:
            # Lower at the current point, not at target, so the segment
            # from current to target is actually drawn
            anchor = current if current is not None else target
            moves.append(Move(MoveKind.TRAVEL, anchor.x, anchor.y, PEN_DOWN))
        moves.append(Move(MoveKind.DRAW, target.x, target.y))

    def _build_sequence(self, name: str, moves: List[Move]) -> Sequence:
        return Sequence(
            name=name,
            moves=moves,
            estimated_time=estimate_execution_time(moves, self.move_speed, self.draw_speed),
            total_distance=path_length(moves)
        )

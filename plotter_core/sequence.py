"""
Plot sequence data model

Points, moves and sequences in paper space (millimetres), plus the
interchange document conversions used to save and load sequences.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

# Pen-axis angles in degrees
PEN_UP = 0.0
PEN_DOWN = -45.0


class MoveKind(Enum):
    """Kinds of plotter move."""
    TRAVEL = "travel"
    DRAW = "draw"


@dataclass(frozen=True)
class Point:
    """A point in paper space, millimetres."""
    x: float
    y: float

    def __str__(self) -> str:
        return f"Point(x={self.x:.3f}, y={self.y:.3f})"

    def distance_to(self, other: 'Point') -> float:
        """Calculate Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)


ORIGIN = Point(0.0, 0.0)


@dataclass(frozen=True)
class Move:
    """One step of a sequence: go to (x, y), optionally setting the pen first."""
    kind: MoveKind
    x: float
    y: float
    pen: Optional[float] = None

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)

    def with_pen(self, pen: Optional[float]) -> 'Move':
        return replace(self, pen=pen)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to an interchange document move."""
        data = {'kind': self.kind.value, 'x': self.x, 'y': self.y}
        if self.pen is not None:
            data['penZ'] = self.pen
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Move':
        """
        Create from an interchange document move.

        Accepts the current ``kind``/``penZ`` keys and the older ``type``/``z``
        keys, where ``type`` used ``move`` for travel.
        """
        kind = data.get('kind', data.get('type'))
        if kind == 'move':
            kind = MoveKind.TRAVEL.value
        pen = data.get('penZ', data.get('z'))
        x = float(data['x'])
        y = float(data['y'])
        pen = float(pen) if pen is not None else None
        for name, value in (('x', x), ('y', y), ('penZ', pen)):
            if value is not None and not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        return cls(kind=MoveKind(kind), x=x, y=y, pen=pen)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent of a set of moves."""
    min_x: float = 0.0
    max_x: float = 0.0
    min_y: float = 0.0
    max_y: float = 0.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def from_moves(cls, moves: Iterable[Move]) -> 'BoundingBox':
        """Compute the box over moves; an empty list gives the zero box."""
        moves = list(moves)
        if not moves:
            return cls()
        xs = [m.x for m in moves]
        ys = [m.y for m in moves]
        return cls(min(xs), max(xs), min(ys), max(ys))

    def to_dict(self) -> Dict[str, float]:
        return {'minX': self.min_x, 'maxX': self.max_x, 'minY': self.min_y, 'maxY': self.max_y}


@dataclass
class PathSegment:
    """A discrete interactively drawn segment."""
    kind: MoveKind
    start: Point
    end: Point

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)


@dataclass
class Sequence:
    """
    A named, ordered list of moves.

    The bounding box is derived from the moves on every access so it can
    never disagree with them.
    """
    name: str
    moves: List[Move] = field(default_factory=list)
    estimated_time: Optional[float] = None
    total_distance: Optional[float] = None

    @property
    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_moves(self.moves)

    def __len__(self) -> int:
        return len(self.moves)

    def __str__(self) -> str:
        return f"Sequence({self.name!r}, {len(self.moves)} moves)"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to an interchange document."""
        data = {
            'name': self.name,
            'moves': [move.to_dict() for move in self.moves],
            'boundingBox': self.bounding_box.to_dict()
        }
        if self.estimated_time is not None:
            data['estimatedTime'] = self.estimated_time
        if self.total_distance is not None:
            data['totalDistance'] = self.total_distance
        return data

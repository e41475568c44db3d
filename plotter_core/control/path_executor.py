"""
Path Executor for the pen plotter

Walks a validated sequence move by move and turns each move into pen and
positioning commands submitted through the command queue.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..calibration import Calibration, DEFAULT_CALIBRATION
from ..communication.command_queue import CommandQueue
from ..exceptions import InvalidSequenceError, PlotterError, SequenceExecutionError
from ..sequence import ORIGIN, PEN_UP, Move, MoveKind, Point, Sequence
from ..validation.movement_validator import MovementValidator
from .axis import PORT_PEN, PORT_X, PORT_Y, PlotterHardware

DEFAULT_MOVE_SPEED = 50.0       # mm/s, pen-up travel
DEFAULT_DRAW_SPEED = 30.0       # mm/s, pen-down drawing
DEFAULT_PEN_SPEED = 30.0
DEFAULT_MAX_AXIS_SPEED = 100.0

ProgressCallback = Callable[[float], None]
EmergencyStop = Callable[[], Awaitable[Any]]


@dataclass
class MotionPlan:
    """Axis rotations and speeds for one straight hop."""
    degrees_x: float
    degrees_y: float
    speed_x: float
    speed_y: float
    distance: float

    @property
    def is_zero(self) -> bool:
        return self.degrees_x == 0 and self.degrees_y == 0

    def __str__(self) -> str:
        return (f"MotionPlan(X {self.degrees_x:.1f}deg @ {self.speed_x:.1f}, "
                f"Y {self.degrees_y:.1f}deg @ {self.speed_y:.1f})")


class PathExecutor:
    """
    Executes plot sequences on the plotter hardware.

    Features:
    - Pen command before each move that carries one
    - Both positioning axes driven together in one queued command
    - Speed matching so X and Y arrive together, below the axis speed ceiling
    - Pen raised after the last move or after a failure
    - Progress reporting and emergency stop on failure
    - abort() halts a running sequence before its next command
    """

    def __init__(self,
                 hardware: PlotterHardware,
                 command_queue: CommandQueue,
                 calibration: Calibration = DEFAULT_CALIBRATION,
                 validator: MovementValidator = None,
                 simulation_mode: bool = False,
                 move_speed: float = DEFAULT_MOVE_SPEED,
                 draw_speed: float = DEFAULT_DRAW_SPEED,
                 pen_speed: float = DEFAULT_PEN_SPEED,
                 max_axis_speed: float = DEFAULT_MAX_AXIS_SPEED,
                 emergency_stop: Optional[EmergencyStop] = None,
                 command_timeout: Optional[float] = None):
        """
        Initialize path executor.

        Args:
            hardware: Axis capabilities to drive
            command_queue: Queue every hardware command goes through
            calibration: Degrees-per-mm mapping
            validator: Validator run on each sequence before execution
            simulation_mode: Skip the emergency stop on failure
            move_speed: Base linear speed of travel moves (mm/s)
            draw_speed: Base linear speed of draw moves (mm/s)
            pen_speed: Pen axis rotation speed
            max_axis_speed: Ceiling for either positioning axis
            emergency_stop: Coroutine function called when a move fails
            command_timeout: Per-command timeout (queue default when None)
        """
        self.hardware = hardware
        self.command_queue = command_queue
        self.calibration = calibration
        self.validator = validator
        self.simulation_mode = simulation_mode
        self.move_speed = move_speed
        self.draw_speed = draw_speed
        self.pen_speed = pen_speed
        self.max_axis_speed = max_axis_speed
        self.command_timeout = command_timeout
        self._emergency_stop = emergency_stop

        self._position = ORIGIN
        self._pen_angle = PEN_UP
        self._is_executing = False
        self._abort_reason: Optional[str] = None

        self.logger = logging.getLogger(__name__)

    @property
    def current_position(self) -> Point:
        """Tracked pen position in paper millimetres."""
        return self._position

    @property
    def pen_angle(self) -> float:
        return self._pen_angle

    @property
    def is_executing(self) -> bool:
        return self._is_executing

    def abort(self, reason: str = "Execution aborted"):
        """
        Stop the running sequence.

        The command in flight is left to settle, then the sequence fails
        with SequenceExecutionError and no further moves are submitted.
        Does nothing when idle.

        Args:
            reason: Reason reported in the raised error
        """
        if not self._is_executing or self._abort_reason is not None:
            return
        self._abort_reason = reason
        self.logger.warning(f"Aborting sequence: {reason}")

    def reset_position(self, position: Point = ORIGIN, pen_angle: float = PEN_UP):
        """Re-anchor the tracked position, e.g. after the carriage is homed by hand."""
        self._position = position
        self._pen_angle = pen_angle
        self.logger.info(f"Tracked position reset to {position}")

    def plan_motion(self, start: Point, end: Point, kind: MoveKind) -> MotionPlan:
        """
        Work out axis rotations and speeds for a straight hop.

        Args:
            start: Hop start in mm
            end: Hop end in mm
            kind: Move kind, selects the base speed

        Returns:
            MotionPlan: Rotations in degrees and per-axis speeds
        """
        dx = end.x - start.x
        dy = end.y - start.y
        distance = math.hypot(dx, dy)
        if distance == 0:
            return MotionPlan(0.0, 0.0, 0.0, 0.0, 0.0)

        degrees = self.calibration.mm_to_degrees(dx, dy)
        base_speed = self.move_speed if kind is MoveKind.TRAVEL else self.draw_speed
        duration = distance / base_speed

        speed_x = abs(degrees['X']) / duration
        speed_y = abs(degrees['Y']) / duration

        # Same factor on both axes keeps the line straight
        peak = max(speed_x, speed_y)
        if peak > self.max_axis_speed:
            speed_x = speed_x / peak * self.max_axis_speed
            speed_y = speed_y / peak * self.max_axis_speed

        return MotionPlan(degrees['X'], degrees['Y'], speed_x, speed_y, distance)

    async def execute_sequence(self, sequence: Sequence,
                               on_progress: Optional[ProgressCallback] = None):
        """
        Execute every move of a sequence in order.

        Args:
            sequence: Sequence to draw
            on_progress: Called with the completed percentage after each move

        Raises:
            InvalidSequenceError: If the sequence fails validation
            SequenceExecutionError: If a move fails; remaining moves are skipped
        """
        if self._is_executing:
            raise PlotterError("A sequence is already executing")

        if self.validator is not None:
            result = self.validator.validate_sequence(sequence, start=self._position)
            if not result:
                raise InvalidSequenceError(result.reason)

        # Checked even when the validator is permissive in simulation
        for move in sequence.moves:
            if not (math.isfinite(move.x) and math.isfinite(move.y)):
                raise InvalidSequenceError(f"Non-finite move target ({move.x}, {move.y})")

        total = len(sequence.moves)
        self._is_executing = True
        self._abort_reason = None
        self.logger.info(f"Executing {sequence}")

        try:
            for index, move in enumerate(sequence.moves):
                self._check_aborted(index)
                try:
                    await self._execute_move(move)
                except Exception as e:
                    if self._abort_reason is not None:
                        raise SequenceExecutionError(index, PlotterError(self._abort_reason)) from e
                    self.logger.error(f"Move {index} of {sequence.name} failed: {e}")
                    if not self.simulation_mode:
                        await self._trigger_emergency_stop()
                    raise SequenceExecutionError(index, e) from e

                # A brake ends the rotation early without an error
                self._check_aborted(index)

                if on_progress is not None:
                    self._report_progress(on_progress, (index + 1) / total * 100)

            self.logger.info(f"Finished {sequence}")

        finally:
            await self._raise_pen_after_run()
            self._is_executing = False
            self._abort_reason = None

    def _check_aborted(self, index: int):
        if self._abort_reason is not None:
            self.logger.error(f"Sequence stopped at move {index}: {self._abort_reason}")
            raise SequenceExecutionError(index, PlotterError(self._abort_reason))

    async def _raise_pen_after_run(self):
        if not self.hardware.is_connected():
            self.logger.error("Hardware disconnected, pen left in place")
            return
        try:
            await self._set_pen(PEN_UP, force=True)
        except Exception as e:
            self.logger.error(f"Failed to raise pen: {e}")

    async def _execute_move(self, move: Move):
        """Run one move: pen first, then the coordinated XY hop."""
        if move.pen is not None:
            await self._set_pen(move.pen)

        target = move.point
        plan = self.plan_motion(self._position, target, move.kind)
        if not plan.is_zero:
            self.logger.debug(f"{move.kind.value} to {target}: {plan}")
            await self.command_queue.add(
                lambda: self._rotate_xy(plan),
                timeout=self.command_timeout,
                name=f"{move.kind.value} to ({move.x:.1f}, {move.y:.1f})"
            )

        self._position = target

    async def _rotate_xy(self, plan: MotionPlan):
        """
        Drive both positioning axes at once and wait for both.

        When one axis fails the other is still awaited, so the queued
        command only settles once neither axis is moving. The first
        failure is then raised.
        """
        rotations = []
        if plan.degrees_x:
            rotations.append(self.hardware.axis(PORT_X).rotate_by_degrees(plan.degrees_x, plan.speed_x))
        if plan.degrees_y:
            rotations.append(self.hardware.axis(PORT_Y).rotate_by_degrees(plan.degrees_y, plan.speed_y))

        results = await asyncio.gather(*rotations, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _set_pen(self, angle: float, force: bool = False):
        """Rotate the pen axis to an absolute angle."""
        delta = angle - self._pen_angle
        if delta == 0 and not force:
            return

        pen_axis = self.hardware.axis(PORT_PEN)
        await self.command_queue.add(
            lambda: pen_axis.rotate_by_degrees(delta, self.pen_speed),
            timeout=self.command_timeout,
            name=f"pen to {angle:g}"
        )
        self._pen_angle = angle

    async def _trigger_emergency_stop(self):
        if self._emergency_stop is None:
            return
        try:
            await self._emergency_stop()
        except Exception as e:
            self.logger.error(f"Emergency stop after failed move did not complete: {e}")

    def _report_progress(self, callback: ProgressCallback, percent: float):
        try:
            callback(percent)
        except Exception as e:
            self.logger.error(f"Progress callback error: {e}")

"""
Plotter Controller

Owns the connection state machine and the lifetimes of the command queue,
safety monitor and executor that exist while hardware is connected.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..calibration import Calibration
from ..communication.command_queue import CommandQueue
from ..config.settings import Settings
from ..exceptions import InvalidTransitionError, PlotterError
from ..planning.path_planner import PathCommand, PathPlanner
from ..sequence import Sequence
from ..utils.notifications import NotificationSink, Severity, log_notification
from ..utils.safety import SafetyMonitor
from ..validation.movement_validator import MovementValidator
from .axis import PlotterHardware
from .path_executor import PathExecutor, ProgressCallback


class ConnectionState(Enum):
    """Lifecycle states of the plotter connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    EXECUTING = "executing"
    EMERGENCY_STOP = "emergency_stop"


TRANSITIONS = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.READY, ConnectionState.DISCONNECTED},
    ConnectionState.READY: {ConnectionState.EXECUTING, ConnectionState.EMERGENCY_STOP,
                            ConnectionState.DISCONNECTED},
    ConnectionState.EXECUTING: {ConnectionState.READY, ConnectionState.EMERGENCY_STOP,
                                ConnectionState.DISCONNECTED},
    ConnectionState.EMERGENCY_STOP: {ConnectionState.READY, ConnectionState.DISCONNECTED},
}


class PlotterController:
    """
    Top-level plotter control.

    Planning and validation work in any state. Execution needs READY, and
    an emergency stop from any source moves the controller to
    EMERGENCY_STOP until it is reset.
    """

    def __init__(self, settings: Settings = None, notify: NotificationSink = log_notification):
        """
        Initialize plotter controller.

        Args:
            settings: Loaded settings (defaults when None)
            notify: Sink for operator notifications
        """
        self.settings = settings or Settings()
        self.notify = notify
        self.logger = logging.getLogger(__name__)

        self._state = ConnectionState.DISCONNECTED
        self._state_callbacks: List[Callable[[ConnectionState, ConnectionState], None]] = []

        self.hardware: Optional[PlotterHardware] = None
        self.command_queue: Optional[CommandQueue] = None
        self.safety_monitor: Optional[SafetyMonitor] = None
        self.executor: Optional[PathExecutor] = None

        self.calibration = self.settings.build_calibration()
        self.validator = self._build_validator()
        self.planner = self._build_planner()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def simulation_mode(self) -> bool:
        return self.settings.hardware.simulation_mode

    def add_state_callback(self, callback: Callable[[ConnectionState, ConnectionState], None]):
        """Add callback called with (old_state, new_state) on every transition."""
        self._state_callbacks.append(callback)

    def can_transition(self, new_state: ConnectionState) -> bool:
        return new_state in TRANSITIONS[self._state]

    async def connect(self, hardware: PlotterHardware) -> bool:
        """
        Take ownership of connected hardware and start monitoring it.

        Args:
            hardware: Axis capabilities of the connected plotter

        Returns:
            bool: True if the controller is READY
        """
        self._transition(ConnectionState.CONNECTING)

        try:
            if not hardware.is_connected():
                raise PlotterError("Hardware reports no connection")

            self.hardware = hardware
            self.command_queue = CommandQueue(self.settings.queue.command_timeout)
            self.safety_monitor = SafetyMonitor(
                hardware,
                notify=self.notify,
                command_queue=self.command_queue,
                poll_interval=self.settings.safety.poll_interval,
                violation_cooldown=self.settings.safety.violation_cooldown,
                limits=self.settings.build_safety_limits()
            )
            self.safety_monitor.add_emergency_callback(self._on_emergency_state)
            self.safety_monitor.add_disconnect_callback(self._on_link_lost)
            self.executor = self._build_executor()

            self.safety_monitor.start_monitoring()

        except Exception as e:
            self.logger.error(f"Failed to connect: {e}")
            await self._release()
            self._transition(ConnectionState.DISCONNECTED)
            self.notify(f"Failed to connect: {e}", Severity.ERROR)
            return False

        self._transition(ConnectionState.READY)
        self.notify("Connected to plotter", Severity.SUCCESS)
        return True

    async def disconnect(self):
        """Stop monitoring, drop pending commands and release the hardware."""
        if self._state is ConnectionState.DISCONNECTED:
            return

        await self._release()
        self._transition(ConnectionState.DISCONNECTED)
        self.notify("Disconnected from plotter", Severity.INFO)

    def plan(self, description: Union[str, Iterable[PathCommand]],
             name: str = "SVG Path", scale: float = 1.0) -> Sequence:
        """Plan a sequence from SVG path data or path commands."""
        return self.planner.plan_sequence(description, name=name, scale=scale)

    def load_sequence(self, document: Union[str, bytes, Dict[str, Any]]) -> Sequence:
        """Load and validate a sequence interchange document."""
        return self.planner.load_sequence(document)

    async def execute_sequence(self, sequence: Sequence,
                               on_progress: Optional[ProgressCallback] = None):
        """
        Draw a sequence.

        Raises:
            InvalidTransitionError: If the controller is not READY
            InvalidSequenceError: If the sequence fails validation
            SequenceExecutionError: If a move fails
        """
        self._transition(ConnectionState.EXECUTING)

        try:
            await self.executor.execute_sequence(sequence, on_progress)
        except PlotterError as e:
            self.notify(f"Sequence {sequence.name} failed: {e}", Severity.ERROR)
            raise
        else:
            self.notify(f"Sequence {sequence.name} completed", Severity.SUCCESS)
        finally:
            if self._state is ConnectionState.EXECUTING:
                self._transition(ConnectionState.READY)

    async def emergency_stop(self, reason: str = "Manual trigger") -> bool:
        """Brake every axis and clear pending commands."""
        if self.safety_monitor is None:
            raise PlotterError("Cannot emergency stop: not connected")
        return await self.safety_monitor.emergency_stop(reason)

    async def reset_emergency_stop(self) -> bool:
        """
        Leave EMERGENCY_STOP once the safety monitor allows it.

        Returns:
            bool: True if the controller is READY again
        """
        if self._state is not ConnectionState.EMERGENCY_STOP:
            raise InvalidTransitionError(self._state, ConnectionState.READY)

        if not await self.safety_monitor.clear_emergency_stop():
            return False

        self.logger.warning(f"Resuming after emergency stop; tracked position "
                            f"{self.executor.current_position} may be stale")
        self._transition(ConnectionState.READY)
        return True

    def update_calibration(self, calibration: Calibration):
        """
        Swap the calibration.

        Validator, planner and executor are rebuilt around the new value.
        """
        if self._state not in (ConnectionState.READY, ConnectionState.DISCONNECTED):
            raise PlotterError(f"Cannot change calibration while {self._state.value}")

        self.calibration = calibration
        self.validator = self._build_validator()
        self.planner = self._build_planner()
        if self.hardware is not None:
            position = self.executor.current_position
            pen_angle = self.executor.pen_angle
            self.executor = self._build_executor()
            self.executor.reset_position(position, pen_angle)

        self.logger.info(f"Calibration updated: {calibration}")

    def get_status(self) -> Dict[str, Any]:
        """Get controller status."""
        status = {
            'state': self._state.value,
            'simulation_mode': self.simulation_mode,
            'calibration': self.calibration.to_dict(),
        }
        if self.executor is not None:
            position = self.executor.current_position
            status['position'] = {'x': position.x, 'y': position.y}
            status['pen_angle'] = self.executor.pen_angle
        if self.command_queue is not None:
            status['queue'] = self.command_queue.get_stats()
        if self.safety_monitor is not None:
            status['safety'] = self.safety_monitor.get_safety_statistics()
        return status

    def _transition(self, new_state: ConnectionState):
        if not self.can_transition(new_state):
            raise InvalidTransitionError(self._state, new_state)

        old_state = self._state
        self._state = new_state
        self.logger.info(f"State {old_state.value} -> {new_state.value}")

        for callback in self._state_callbacks:
            try:
                callback(old_state, new_state)
            except Exception as e:
                self.logger.error(f"State callback error: {e}")

    def _on_emergency_state(self, active: bool):
        if not active:
            return
        if self.executor is not None:
            self.executor.abort("Emergency stop")
        if self.can_transition(ConnectionState.EMERGENCY_STOP):
            self._transition(ConnectionState.EMERGENCY_STOP)

    async def _on_link_lost(self):
        """Drop everything tied to the lost link and go back to DISCONNECTED."""
        if self._state is ConnectionState.DISCONNECTED:
            return

        self.logger.error("Plotter link lost")
        if self.executor is not None:
            self.executor.abort("Hub disconnected")
        await self._release()
        self._transition(ConnectionState.DISCONNECTED)
        self.notify("Connection to plotter lost", Severity.ERROR)

    async def _release(self):
        if self.executor is not None:
            self.executor.abort("Disconnected")
        if self.safety_monitor is not None:
            self.safety_monitor.stop_monitoring()
        if self.command_queue is not None:
            await self.command_queue.stop()

        self.hardware = None
        self.command_queue = None
        self.safety_monitor = None
        self.executor = None

    def _build_validator(self) -> MovementValidator:
        return MovementValidator(
            bounds=self.settings.build_bounds(),
            calibration=self.calibration,
            simulation_mode=self.simulation_mode
        )

    def _build_planner(self) -> PathPlanner:
        e = self.settings.executor
        return PathPlanner(
            validator=self.validator,
            bezier_segments=e.bezier_segments,
            move_speed=e.move_speed,
            draw_speed=e.draw_speed
        )

    def _build_executor(self) -> PathExecutor:
        e = self.settings.executor
        return PathExecutor(
            self.hardware,
            self.command_queue,
            calibration=self.calibration,
            validator=self.validator,
            simulation_mode=self.simulation_mode,
            move_speed=e.move_speed,
            draw_speed=e.draw_speed,
            pen_speed=e.pen_speed,
            max_axis_speed=e.max_axis_speed,
            emergency_stop=lambda: self.safety_monitor.emergency_stop("Sequence execution failed"),
            command_timeout=self.settings.queue.command_timeout
        )

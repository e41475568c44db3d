"""
Safety Monitor for the pen plotter

Polls live axis telemetry against per-axis limits on a fixed period and
emergency-stops the plotter on any violation, independent of whatever the
executor is doing.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..communication.command_queue import CommandQueue
from ..control.axis import AxisTelemetry, PlotterHardware
from .notifications import NotificationSink, Severity, log_notification

DEFAULT_POLL_INTERVAL = 0.1       # seconds
DEFAULT_VIOLATION_COOLDOWN = 1.0  # seconds


class SafetyLevel(Enum):
    """Safety check severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class SafetyEvent:
    """Represents a safety event or violation."""
    timestamp: float
    level: SafetyLevel
    category: str
    message: str
    port: Optional[str] = None
    value: Optional[float] = None

    def __str__(self) -> str:
        return f"SafetyEvent({self.level.value}, {self.category}: {self.message})"


@dataclass
class SafetyLimits:
    """Operating envelope of one axis."""
    max_speed: float
    max_acceleration: float
    min_degrees: float
    max_degrees: float
    max_current: float
    max_temperature: float
    max_motor_load: float

    def check(self, telemetry: AxisTelemetry) -> Optional[Tuple[str, float]]:
        """
        Compare a telemetry sample with the limits.

        Returns:
            Optional[Tuple[str, float]]: (reason, value) of the first
            out-of-range reading, or None
        """
        if telemetry.position < self.min_degrees:
            return "Position below minimum limit", telemetry.position
        if telemetry.position > self.max_degrees:
            return "Position above maximum limit", telemetry.position
        if abs(telemetry.speed) > self.max_speed:
            return "Speed exceeds maximum limit", telemetry.speed
        if telemetry.current > self.max_current:
            return "Current draw too high", telemetry.current
        if telemetry.temperature > self.max_temperature:
            return "Temperature too high", telemetry.temperature
        if telemetry.load > self.max_motor_load:
            return "Motor load too high", telemetry.load
        return None

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


DEFAULT_LIMITS: Dict[str, SafetyLimits] = {
    'A': SafetyLimits(max_speed=100, max_acceleration=500, min_degrees=-360, max_degrees=360,
                      max_current=1000, max_temperature=50, max_motor_load=90),
    'B': SafetyLimits(max_speed=100, max_acceleration=500, min_degrees=-180, max_degrees=180,
                      max_current=1000, max_temperature=50, max_motor_load=90),
    'C': SafetyLimits(max_speed=50, max_acceleration=200, min_degrees=-45, max_degrees=45,
                      max_current=500, max_temperature=50, max_motor_load=90),
}


def default_limits() -> Dict[str, SafetyLimits]:
    """Fresh copy of the default per-axis limits."""
    return {port: replace(limits) for port, limits in DEFAULT_LIMITS.items()}


class SafetyMonitor:
    """
    Telemetry-driven safety system.

    Features:
    - Fixed-period polling of every axis, independent of the executor
    - Per-axis runtime-adjustable limits
    - One emergency stop per violation burst, with a cool-down
    - Emergency stop that bypasses the command queue and brakes every axis
    - Event history, statistics and callbacks
    """

    def __init__(self,
                 hardware: PlotterHardware,
                 notify: NotificationSink = log_notification,
                 command_queue: Optional[CommandQueue] = None,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 violation_cooldown: float = DEFAULT_VIOLATION_COOLDOWN,
                 limits: Optional[Dict[str, SafetyLimits]] = None):
        """
        Initialize safety monitor.

        Args:
            hardware: Axes to watch and brake
            notify: Sink for operator alerts
            command_queue: Queue cleared on emergency stop
            poll_interval: Seconds between telemetry checks
            violation_cooldown: Seconds during which further violations are suppressed
            limits: Per-port limits (defaults when None)
        """
        self.hardware = hardware
        self.notify = notify
        self.command_queue = command_queue
        self.poll_interval = poll_interval
        self.violation_cooldown = violation_cooldown
        self.logger = logging.getLogger(__name__)

        self._limits = {port: replace(l) for port, l in (limits or DEFAULT_LIMITS).items()}

        # Monitoring state
        self._monitor_task: Optional[asyncio.Task] = None
        self._monitoring = False
        self._stop_requested = False
        self._cooldown_handle: Optional[asyncio.TimerHandle] = None
        self._emergency_stop_active = False
        self._emergency_stop_count = 0
        self._last_check_time = 0.0

        # Safety event tracking
        self._safety_events: List[SafetyEvent] = []
        self._max_event_history = 1000

        # Callbacks
        self._safety_callbacks: List[Callable[[SafetyEvent], None]] = []
        self._emergency_callbacks: List[Callable[[bool], None]] = []
        self._disconnect_callbacks: List[Callable[[], Optional[Awaitable[Any]]]] = []

    def add_safety_callback(self, callback: Callable[[SafetyEvent], None]):
        """Add callback for safety events."""
        self._safety_callbacks.append(callback)

    def add_emergency_callback(self, callback: Callable[[bool], None]):
        """Add callback for emergency stop state changes."""
        self._emergency_callbacks.append(callback)

    def add_disconnect_callback(self, callback: Callable[[], Optional[Awaitable[Any]]]):
        """Add callback for link loss. Coroutine functions are awaited."""
        self._disconnect_callbacks.append(callback)

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    def is_emergency_stop_active(self) -> bool:
        """Check if emergency stop is active."""
        return self._emergency_stop_active

    def start_monitoring(self):
        """Start the polling task. Does nothing if it is already running."""
        if self._monitor_task is not None and not self._monitor_task.done():
            return

        self._monitoring = True
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop())
        self.logger.info(f"Safety monitoring started ({self.poll_interval}s period)")

    def stop_monitoring(self):
        """Stop the polling task."""
        if not self._monitoring and self._monitor_task is None:
            return

        self._monitoring = False
        task = self._monitor_task
        self._monitor_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self.logger.info("Safety monitoring stopped")

    async def check_once(self) -> bool:
        """
        Run one monitoring tick.

        Returns:
            bool: False when the hardware is disconnected and monitoring stopped
        """
        self._last_check_time = time.time()

        if not self.hardware.is_connected():
            self.stop_monitoring()
            self._add_safety_event(SafetyEvent(
                timestamp=time.time(),
                level=SafetyLevel.CRITICAL,
                category="disconnect",
                message="Hub disconnected"
            ))
            self._notify('Hub disconnected, stopping safety monitoring', Severity.ERROR)
            await self._run_disconnect_callbacks()
            return False

        for port in self.hardware.ports:
            if port not in self._limits:
                continue

            try:
                telemetry = await self.hardware.axis(port).read_telemetry()
            except Exception as e:
                self._notify(f"Failed to get motor {port} status: {e}", Severity.ERROR)
                continue

            await self.check_limits(port, telemetry)

        return True

    async def check_limits(self, port: str, telemetry: AxisTelemetry) -> bool:
        """
        Check one telemetry sample and handle the first violation found.

        Returns:
            bool: True if the sample violated a limit
        """
        violation = self._limits[port].check(telemetry)
        if violation is None:
            return False

        reason, value = violation
        await self.handle_violation(port, reason, value)
        return True

    async def handle_violation(self, port: str, reason: str, value: float) -> bool:
        """
        Alert and emergency-stop for a limit violation.

        Violations arriving during the cool-down after a stop are only
        logged at debug level.

        Returns:
            bool: True if this violation triggered an emergency stop
        """
        message = f"Safety violation on motor {port}: {reason} ({value})"

        if self._stop_requested:
            self.logger.debug(f"Suppressed during cool-down: {message}")
            return False

        self._stop_requested = True
        self._cooldown_handle = asyncio.get_running_loop().call_later(
            self.violation_cooldown, self._release_stop_guard
        )

        self._add_safety_event(SafetyEvent(
            timestamp=time.time(),
            level=SafetyLevel.CRITICAL,
            category="limit_violation",
            message=message,
            port=port,
            value=value
        ))
        self._notify(message, Severity.ERROR)

        await self.emergency_stop(reason=message)
        return True

    async def emergency_stop(self, reason: str = "Manual trigger") -> bool:
        """
        Clear pending queue work and brake every axis.

        Brakes are issued concurrently and each failure is reported on its
        own; the remaining axes are still braked.

        Args:
            reason: Reason for emergency stop

        Returns:
            bool: True if every axis braked
        """
        self._emergency_stop_active = True
        self._emergency_stop_count += 1
        self.logger.critical(f"EMERGENCY STOP TRIGGERED: {reason}")

        self._add_safety_event(SafetyEvent(
            timestamp=time.time(),
            level=SafetyLevel.CRITICAL,
            category="emergency_stop",
            message=f"Emergency stop triggered: {reason}"
        ))

        if self.command_queue is not None:
            self.command_queue.clear()

        results = await asyncio.gather(*(self._brake(port) for port in self.hardware.ports))

        for callback in self._emergency_callbacks:
            try:
                callback(True)
            except Exception as e:
                self.logger.error(f"Emergency callback error: {e}")

        self._notify('Emergency stop activated', Severity.INFO)
        return all(results)

    async def clear_emergency_stop(self) -> bool:
        """
        Clear emergency stop condition.

        Returns:
            bool: True if cleared successfully
        """
        if not self._emergency_stop_active:
            return True

        if not self.hardware.is_connected():
            self.logger.error("Cannot clear emergency stop: hardware disconnected")
            return False

        self._emergency_stop_active = False

        self._add_safety_event(SafetyEvent(
            timestamp=time.time(),
            level=SafetyLevel.INFO,
            category="emergency_stop",
            message="Emergency stop cleared"
        ))

        for callback in self._emergency_callbacks:
            try:
                callback(False)
            except Exception as e:
                self.logger.error(f"Emergency callback error: {e}")

        self.logger.info("Emergency stop cleared")
        return True

    def update_limits(self, port: str, **changes: float) -> bool:
        """
        Change limits of one axis at runtime.

        Args:
            port: Axis port
            **changes: SafetyLimits fields to replace

        Returns:
            bool: True if updated
        """
        if port not in self._limits:
            self._notify(f"Invalid port {port} for limit update", Severity.ERROR)
            return False

        known = {f.name for f in fields(SafetyLimits)}
        unknown = set(changes) - known
        if unknown:
            self._notify(f"Unknown limit fields for motor {port}: {sorted(unknown)}", Severity.ERROR)
            return False

        self._limits[port] = replace(self._limits[port], **changes)
        self._notify(f"Updated limits for motor {port}", Severity.INFO)
        return True

    def get_limits(self, port: str) -> Optional[SafetyLimits]:
        """Get a copy of one axis's limits, or None for an unknown port."""
        if port not in self._limits:
            self._notify(f"Invalid port {port} for getting limits", Severity.ERROR)
            return None
        return replace(self._limits[port])

    def get_safety_events(self, since: Optional[float] = None,
                          level: Optional[SafetyLevel] = None) -> List[SafetyEvent]:
        """
        Get safety events with optional filtering.

        Args:
            since: Only return events after this timestamp
            level: Only return events of this level or higher

        Returns:
            List[SafetyEvent]: Filtered safety events
        """
        events = self._safety_events.copy()

        if since is not None:
            events = [e for e in events if e.timestamp >= since]

        if level is not None:
            level_values = {
                SafetyLevel.INFO: 0,
                SafetyLevel.WARNING: 1,
                SafetyLevel.ERROR: 2,
                SafetyLevel.CRITICAL: 3
            }
            min_level = level_values[level]
            events = [e for e in events if level_values[e.level] >= min_level]

        return events

    def clear_safety_events(self):
        """Clear safety event history."""
        self._safety_events.clear()
        self.logger.info("Safety event history cleared")

    def get_safety_statistics(self) -> Dict[str, Any]:
        """Get safety system statistics."""
        level_counts = {level.value: 0 for level in SafetyLevel}
        category_counts = {}
        for event in self._safety_events:
            level_counts[event.level.value] += 1
            category_counts[event.category] = category_counts.get(event.category, 0) + 1

        return {
            'total_events': len(self._safety_events),
            'level_counts': level_counts,
            'category_counts': category_counts,
            'emergency_stop_active': self._emergency_stop_active,
            'emergency_stop_count': self._emergency_stop_count,
            'monitoring': self._monitoring,
            'last_check_time': self._last_check_time
        }

    async def _monitor_loop(self):
        """Poll telemetry until monitoring is stopped."""
        while self._monitoring:
            try:
                await self.check_once()
            except Exception as e:
                self.logger.error(f"Safety monitoring error: {e}")
                self._notify(f"Safety monitoring error: {e}", Severity.ERROR)

            if not self._monitoring:
                break
            await asyncio.sleep(self.poll_interval)

    async def _brake(self, port: str) -> bool:
        try:
            await self.hardware.axis(port).brake()
            return True
        except Exception as e:
            self.logger.error(f"Failed to stop motor {port}: {e}")
            self._notify(f"Failed to stop motor {port}: {e}", Severity.ERROR)
            return False

    async def _run_disconnect_callbacks(self):
        for callback in self._disconnect_callbacks:
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self.logger.error(f"Disconnect callback error: {e}")

    def _release_stop_guard(self):
        self._stop_requested = False
        self._cooldown_handle = None

    def _notify(self, message: str, severity: Severity):
        try:
            self.notify(message, severity)
        except Exception as e:
            self.logger.error(f"Notification sink error: {e}")

    def _add_safety_event(self, event: SafetyEvent):
        """Add safety event to history and notify callbacks."""
        self._safety_events.append(event)

        if len(self._safety_events) > self._max_event_history:
            self._safety_events = self._safety_events[-self._max_event_history:]

        log_level = {
            SafetyLevel.INFO: logging.INFO,
            SafetyLevel.WARNING: logging.WARNING,
            SafetyLevel.ERROR: logging.ERROR,
            SafetyLevel.CRITICAL: logging.CRITICAL
        }[event.level]

        self.logger.log(log_level, f"Safety: {event}")

        for callback in self._safety_callbacks:
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"Safety callback error: {e}")

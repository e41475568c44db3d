"""
Axis capability interface for the plotter hardware

Every physical-layer call goes through an AxisCapability. There are two
implementations: PhysicalAxis wraps an already-connected hub device, and
SimulatedAxis integrates motion in memory for simulation runs and tests.
Which one is used is decided once, when PlotterHardware is built.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..exceptions import HardwareFault

# Port assignment on the hub
PORT_Y = 'A'    # paper roll
PORT_X = 'B'    # pen carriage left/right
PORT_PEN = 'C'  # pen lift
AXIS_PORTS = (PORT_Y, PORT_X, PORT_PEN)


@dataclass
class AxisTelemetry:
    """One live sample of an axis."""
    position: float     # degrees
    speed: float        # percent
    current: float      # mA
    temperature: float  # degrees C
    load: float         # percent

    def __str__(self) -> str:
        return (f"AxisTelemetry(pos={self.position:.1f}, speed={self.speed:.1f}, "
                f"current={self.current:.0f}, temp={self.temperature:.1f}, load={self.load:.0f})")


class AxisCapability(ABC):
    """Operations the control core needs from one axis."""

    def __init__(self, port: str):
        self.port = port

    @abstractmethod
    async def set_power(self, percent: float):
        """Run the motor open-loop at a power percentage (-100..100)."""

    @abstractmethod
    async def brake(self):
        """Stop the motor immediately. Must be idempotent."""

    @abstractmethod
    async def rotate_by_degrees(self, degrees: float, speed: float):
        """Rotate relative to the current position; returns once the move completes."""

    @abstractmethod
    async def read_telemetry(self) -> AxisTelemetry:
        """Sample position, speed, current, temperature and load."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.port})"


class PhysicalAxis(AxisCapability):
    """
    Axis backed by a connected hub motor device.

    The device must provide coroutine methods ``set_power(power)``,
    ``brake()``, ``rotate_by_degrees(degrees, speed)``,
    ``get_current_position()``, ``get_current_speed()``, ``get_current()``,
    ``get_temperature()`` and ``get_load()``. Device errors are raised as
    HardwareFault.
    """

    def __init__(self, port: str, device: Any):
        super().__init__(port)
        self.device = device
        self.logger = logging.getLogger(__name__)

    async def set_power(self, percent: float):
        await self._call("set power", self.device.set_power(percent))

    async def brake(self):
        await self._call("brake", self.device.brake())

    async def rotate_by_degrees(self, degrees: float, speed: float):
        if degrees == 0:
            return
        await self._call("rotate", self.device.rotate_by_degrees(degrees, speed))

    async def read_telemetry(self) -> AxisTelemetry:
        return AxisTelemetry(
            position=await self._call("read position", self.device.get_current_position()),
            speed=await self._call("read speed", self.device.get_current_speed()),
            current=await self._call("read current", self.device.get_current()),
            temperature=await self._call("read temperature", self.device.get_temperature()),
            load=await self._call("read load", self.device.get_load())
        )

    async def _call(self, action: str, awaitable):
        try:
            return await awaitable
        except HardwareFault:
            raise
        except Exception as e:
            self.logger.error(f"Error during {action} on motor {self.port}: {e}")
            raise HardwareFault(f"Motor {self.port} {action} failed: {e}", port=self.port) from e


class SimulatedAxis(AxisCapability):
    """
    In-memory axis.

    Rotations take ``|degrees| / speed * time_scale`` seconds (instant with
    the default time_scale of 0). Every command is recorded, faults can be
    injected per action and telemetry fields can be overridden.
    """

    def __init__(self, port: str, time_scale: float = 0.0, ambient_temperature: float = 20.0):
        super().__init__(port)
        self.time_scale = time_scale
        self.ambient_temperature = ambient_temperature

        self.position = 0.0
        self.power = 0.0
        self.is_moving = False
        self.brake_count = 0

        self.commands: List[Tuple[str, Tuple[float, ...]]] = []
        self._faults: Dict[str, Exception] = {}
        self._telemetry_overrides: Dict[str, float] = {}

    def inject_fault(self, action: str, error: Exception = None):
        """Make every call of ``action`` raise until clear_faults() is called."""
        self._faults[action] = error or HardwareFault(f"Simulated {action} fault", port=self.port)

    def clear_faults(self):
        self._faults.clear()

    def set_telemetry(self, **values: float):
        """Override telemetry fields (position, speed, current, temperature, load)."""
        for key in values:
            if key not in AxisTelemetry.__dataclass_fields__:
                raise ValueError(f"Unknown telemetry field: {key}")
        self._telemetry_overrides.update(values)

    def clear_telemetry(self):
        self._telemetry_overrides.clear()

    def rotations(self) -> List[Tuple[float, float]]:
        """(degrees, speed) of every rotate command received."""
        return [args for action, args in self.commands if action == 'rotate_by_degrees']

    async def set_power(self, percent: float):
        self._record('set_power', percent)
        self.power = percent
        self.is_moving = percent != 0

    async def brake(self):
        self._record('brake')
        self.brake_count += 1
        self.power = 0.0
        self.is_moving = False

    async def rotate_by_degrees(self, degrees: float, speed: float):
        self._record('rotate_by_degrees', degrees, speed)
        if degrees == 0:
            return

        brakes_before = self.brake_count
        self.is_moving = True
        self.power = speed if degrees > 0 else -speed
        duration = abs(degrees) / abs(speed) * self.time_scale if speed else 0.0
        await asyncio.sleep(duration)

        if self.brake_count == brakes_before:
            self.position += degrees
            self.is_moving = False
            self.power = 0.0

    async def read_telemetry(self) -> AxisTelemetry:
        self._raise_fault('read_telemetry')
        values = {
            'position': self.position,
            'speed': self.power,
            'current': abs(self.power) * 5.0,
            'temperature': self.ambient_temperature,
            'load': abs(self.power) * 0.5
        }
        values.update(self._telemetry_overrides)
        return AxisTelemetry(**values)

    def _record(self, action: str, *args: float):
        self.commands.append((action, args))
        self._raise_fault(action)

    def _raise_fault(self, action: str):
        if action in self._faults:
            raise self._faults[action]


class PlotterHardware:
    """
    The set of axis capabilities for one plotter.

    Built once, either around a connected hub (from_hub) or fully simulated
    (simulated), and injected into everything that touches hardware.
    """

    def __init__(self, axes: Dict[str, AxisCapability],
                 connection_check: Optional[Callable[[], bool]] = None):
        """
        Initialize the hardware set.

        Args:
            axes: Axis capability per port
            connection_check: Callable reporting whether the link is up
        """
        self._axes = dict(axes)
        self._connection_check = connection_check
        self._connected = True
        self.logger = logging.getLogger(__name__)

    @classmethod
    def simulated(cls, time_scale: float = 0.0) -> 'PlotterHardware':
        """Create a hardware set of SimulatedAxis instances on every port."""
        return cls({port: SimulatedAxis(port, time_scale=time_scale) for port in AXIS_PORTS})

    @classmethod
    def from_hub(cls, hub: Any) -> 'PlotterHardware':
        """
        Wrap the motors of an already-connected hub.

        The hub must provide ``get_device_at_port(port)`` and a ``connected``
        attribute.
        """
        axes = {}
        for port in AXIS_PORTS:
            device = hub.get_device_at_port(port)
            if device is None:
                raise HardwareFault(f"Motor {port} not found or not properly initialized", port=port)
            axes[port] = PhysicalAxis(port, device)
        return cls(axes, connection_check=lambda: bool(hub.connected))

    @property
    def ports(self) -> Tuple[str, ...]:
        return tuple(self._axes)

    def axis(self, port: str) -> AxisCapability:
        """Get the capability for a port."""
        try:
            return self._axes[port]
        except KeyError:
            raise HardwareFault(f"Motor {port} not found", port=port) from None

    def is_connected(self) -> bool:
        if not self._connected:
            return False
        if self._connection_check is not None:
            return self._connection_check()
        return True

    def set_connected(self, connected: bool):
        """Record a link state change reported by the connection owner."""
        self._connected = connected
        self.logger.info(f"Hardware link {'connected' if connected else 'disconnected'}")

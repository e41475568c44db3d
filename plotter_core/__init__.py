"""
Pen Plotter Control Core

Turns vector drawings into validated, sequenced axis commands for a
two-axis pen plotter with a pen-lift axis, and polices live telemetry
with an independent safety monitor.
"""

__version__ = "0.1.0"
__author__ = "Pen Plotter Project"

# Core system imports
from .exceptions import PlotterError
from .sequence import Move, MoveKind, PathSegment, Point, Sequence
from .calibration import Calibration, load_calibration
from .validation.movement_validator import MovementBounds, MovementValidator, Zone
from .communication.command_queue import CommandQueue
from .control.axis import PlotterHardware, SimulatedAxis
from .control.path_executor import PathExecutor
from .control.plotter_controller import ConnectionState, PlotterController
from .planning.path_planner import PathPlanner

# Configuration and utilities
from .config.settings import Settings
from .utils.safety import SafetyMonitor

__all__ = [
    'PlotterError',
    'Move',
    'MoveKind',
    'PathSegment',
    'Point',
    'Sequence',
    'Calibration',
    'load_calibration',
    'MovementBounds',
    'MovementValidator',
    'Zone',
    'CommandQueue',
    'PlotterHardware',
    'SimulatedAxis',
    'PathExecutor',
    'ConnectionState',
    'PlotterController',
    'PathPlanner',
    'Settings',
    'SafetyMonitor'
]

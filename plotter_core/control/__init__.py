"""
Control package for axis access, sequence execution and connection state.
"""

from .axis import AxisCapability, PhysicalAxis, PlotterHardware, SimulatedAxis
from .path_executor import PathExecutor
from .plotter_controller import ConnectionState, PlotterController

__all__ = [
    'AxisCapability',
    'PhysicalAxis',
    'PlotterHardware',
    'SimulatedAxis',
    'PathExecutor',
    'ConnectionState',
    'PlotterController'
]

"""
Communication package: serialized access to the plotter's physical link.
"""

from .command_queue import CommandQueue

__all__ = ['CommandQueue']

"""
Planning package for turning drawings into plotter move sequences.
"""

from .path_planner import PathCommand, PathPlanner, flatten_cubic, optimize_moves

__all__ = ['PathCommand', 'PathPlanner', 'flatten_cubic', 'optimize_moves']

"""
Configuration package for plotter settings.
"""

from .settings import Settings

__all__ = ['Settings']

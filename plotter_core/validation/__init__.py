"""
Validation package for geometric admissibility of plotter motion.
"""

from .movement_validator import MovementBounds, MovementValidator, ValidationResult, Zone

__all__ = ['MovementBounds', 'MovementValidator', 'ValidationResult', 'Zone']

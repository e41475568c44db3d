"""
Exception hierarchy for the plotter control core.

Geometric validation failures are not exceptions; they come back as
ValidationResult values. Everything here is a condition the caller
cannot continue past.
"""

from typing import Any, Dict, Optional


class PlotterError(Exception):
    """Base exception for all plotter control errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class SequenceFormatError(PlotterError):
    """Raised when a sequence interchange document is malformed."""
    pass


class InvalidSequenceError(PlotterError):
    """Raised when a sequence fails geometric validation at a boundary."""

    def __init__(self, reason: str):
        super().__init__(f"Invalid sequence: {reason}")
        self.reason = reason


class PathBoundsError(PlotterError):
    """Raised when scaled path output still falls outside the drawing area."""
    pass


class CommandTimeout(PlotterError):
    """Raised on a queued command's handle when it exceeds its timeout."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"Command {name} timed out after {timeout}s")
        self.name = name
        self.timeout = timeout


class CommandCancelled(PlotterError):
    """Raised on a queued command's handle when the queue is cleared before it starts."""

    def __init__(self, name: str):
        super().__init__(f"Command {name} cancelled before execution")
        self.name = name


class HardwareFault(PlotterError):
    """Raised when an axis capability fails."""

    def __init__(self, message: str, port: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.port = port


class SequenceExecutionError(PlotterError):
    """Raised when a move fails during sequence execution."""

    def __init__(self, move_index: int, cause: BaseException):
        super().__init__(
            f"Move {move_index} failed: {cause}",
            {'move_index': move_index}
        )
        self.move_index = move_index
        self.cause = cause


class InvalidTransitionError(PlotterError):
    """Raised when the controller is asked for a state change it does not allow."""

    def __init__(self, current: Any, requested: Any):
        super().__init__(f"Cannot transition from {current} to {requested}")
        self.current = current
        self.requested = requested

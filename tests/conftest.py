"""
Shared fixtures for the plotter control tests.
"""

import logging

import pytest

from plotter_core.calibration import DEFAULT_CALIBRATION
from plotter_core.communication.command_queue import CommandQueue
from plotter_core.control.axis import PlotterHardware
from plotter_core.utils.notifications import NotificationLog
from plotter_core.validation.movement_validator import MovementBounds, MovementValidator, Zone


@pytest.fixture
def hardware():
    return PlotterHardware.simulated()


@pytest.fixture
def command_queue():
    return CommandQueue(default_timeout=1.0)


@pytest.fixture
def calibration():
    return DEFAULT_CALIBRATION


@pytest.fixture
def validator():
    return MovementValidator()


@pytest.fixture
def zone_validator():
    """Validator with a danger zone in the middle of the paper."""
    return MovementValidator(MovementBounds(danger_zones=[Zone(30, 30, 60, 60)]))


@pytest.fixture
def origin_zone_validator():
    """Validator with a danger zone around the origin."""
    return MovementValidator(MovementBounds(danger_zones=[Zone(-10, -10, 10, 10)]))


@pytest.fixture
def notifications():
    return NotificationLog()


@pytest.fixture
def restore_root_logging():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)

"""
Notification sink types.

The control core pushes short user-facing messages outward; how they are
rendered is up to whoever supplies the sink.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List


class Severity(Enum):
    """Notification severity levels."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Notification:
    """A single message emitted by the control core."""
    message: str
    severity: Severity
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.message}"


NotificationSink = Callable[[str, Severity], None]

_logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.ERROR: logging.ERROR,
}


def log_notification(message: str, severity: Severity):
    """Default sink: route the notification into the logging system."""
    _logger.log(_LOG_LEVELS[severity], message)


class NotificationLog:
    """
    Sink that keeps every notification it receives.

    Useful for headless runs and tests; forwards to log_notification as well.
    """

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self.notifications: List[Notification] = []

    def __call__(self, message: str, severity: Severity):
        self.notifications.append(Notification(message, severity))
        if len(self.notifications) > self.max_history:
            self.notifications = self.notifications[-self.max_history:]
        log_notification(message, severity)

    def messages(self, severity: Severity = None) -> List[str]:
        """Return recorded messages, optionally filtered by severity."""
        return [
            n.message for n in self.notifications
            if severity is None or n.severity == severity
        ]

    def clear(self):
        self.notifications.clear()

"""
Utilities package for safety monitoring, notifications and logging.
"""

from .safety import SafetyMonitor
from .logging_config import setup_logging
from .notifications import NotificationLog, Severity, log_notification

__all__ = ['SafetyMonitor', 'setup_logging', 'NotificationLog', 'Severity', 'log_notification']

"""
Core service implementations.
"""

from .notification_bus import NotificationBus
from .state_machine import UploadStateMachine, TRANSITIONS

__all__ = [
    "NotificationBus",
    "UploadStateMachine",
    "TRANSITIONS",
]

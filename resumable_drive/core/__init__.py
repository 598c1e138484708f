"""
Core module containing upload domain models, lifecycle rules and interfaces.

Nothing in here performs I/O on its own; transports, storage and token
sources are injected through the interfaces.
"""

from .interfaces.lifecycle import IStartable, IStoppable, IHealthCheckable
from .interfaces.messaging import INotificationBus
from .domain.events import Event, EventPriority, UploadEvents
from .domain.uploads import UploadRecord, UploadStatus, FileDescriptor

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "INotificationBus",
    "Event",
    "EventPriority",
    "UploadEvents",
    "UploadRecord",
    "UploadStatus",
    "FileDescriptor",
]

"""
Event domain models for upload notifications.

Events carry state changes of upload records from the registry to
whatever observers are listening at the time they are published.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional


class EventPriority(IntEnum):
    """Delivery order of subscribers for the same event."""
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class Event:
    """
    Immutable notification about something that happened to an upload.
    """

    name: str
    """Event name, dotted (``upload.updated``)."""

    data: Any = None
    """Event payload data."""

    priority: EventPriority = EventPriority.NORMAL
    """Event priority."""

    timestamp: float = field(default_factory=time.time)
    """Unix timestamp when event was created."""

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    """Unique event identifier."""

    source: Optional[str] = None
    """Component that generated the event."""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Event name cannot be empty")

        if not isinstance(self.priority, EventPriority):
            raise ValueError("Priority must be an EventPriority enum value")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert event to dictionary representation.

        Returns:
            Dictionary representation of the event
        """
        return {
            'name': self.name,
            'data': self.data,
            'priority': self.priority.name,
            'timestamp': self.timestamp,
            'event_id': self.event_id,
            'source': self.source,
        }


class UploadEvents:
    """Names of the events published by the upload registry."""

    UPDATED = "upload.updated"
    REMOVED = "upload.removed"
    ALL = "upload.*"

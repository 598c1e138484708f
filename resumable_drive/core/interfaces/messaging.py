"""
Messaging interface for best-effort upload notifications.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Union

from ..domain.events import Event, EventPriority


class INotificationBus(ABC):
    """Interface for fire-and-forget event fan-out."""

    @abstractmethod
    async def publish(self, event: Union[Event, str], data: Any = None,
                      priority: EventPriority = EventPriority.NORMAL) -> str:
        """
        Deliver an event to the observers listening right now.

        Delivery failures are never raised and an absent audience is not
        an error.

        Args:
            event: Event object or event name string
            data: Event data (if event is a string)
            priority: Event priority (if event is a string)

        Returns:
            Event ID
        """
        pass

    @abstractmethod
    async def subscribe(self, event_name: str, handler: Callable[[Event], Any],
                        priority: EventPriority = EventPriority.NORMAL) -> str:
        """
        Subscribe to events with the given name.

        Args:
            event_name: Event name, wildcards allowed (``upload.*``)
            handler: Sync or async callable receiving the event
            priority: Handler ordering among subscribers

        Returns:
            Subscription ID
        """
        pass

    @abstractmethod
    async def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription; returns False if it was unknown."""
        pass

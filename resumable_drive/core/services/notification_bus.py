"""
Notification bus for upload state changes.

Events are handed directly to the subscribers registered at publish time.
There is no queue, no retry and no replay for late subscribers; a failing
handler is logged and the remaining handlers still run.
"""

import asyncio
import fnmatch
import logging
import time
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Union

from ..domain.events import Event, EventPriority
from ..interfaces.lifecycle import IComponent
from ..interfaces.messaging import INotificationBus

logger = logging.getLogger(__name__)


class EventSubscription:
    """Represents an event subscription."""

    def __init__(self, subscription_id: str, event_pattern: str,
                 handler: Callable[[Event], Any], priority: EventPriority):
        self.subscription_id = subscription_id
        self.event_pattern = event_pattern
        self.handler = handler
        self.priority = priority
        self.created_at = time.time()
        self.call_count = 0
        self.last_called: Optional[float] = None
        self.error_count = 0


class NotificationBus(IComponent, INotificationBus):
    """
    Best-effort publish/subscribe fan-out.

    Supports exact names and ``fnmatch`` wildcard patterns; handlers for one
    event run in descending priority order.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[EventSubscription]] = defaultdict(list)
        self._wildcard_subscriptions: List[EventSubscription] = []
        self._running = False

        self._metrics: Dict[str, int] = {
            'events_published': 0,
            'events_undelivered': 0,
            'handler_failures': 0,
        }

    @property
    def name(self) -> str:
        """Get component name."""
        return "NotificationBus"

    async def start(self) -> None:
        self._running = True
        logger.debug("Notification bus started")

    async def stop(self) -> None:
        self._running = False
        self._subscriptions.clear()
        self._wildcard_subscriptions.clear()
        logger.debug("Notification bus stopped")

    async def check_health(self) -> Dict[str, Any]:
        return {
            'healthy': True,
            'status': 'running' if self._running else 'stopped',
            'details': {
                'subscriptions_count': self.subscription_count,
                **self._metrics,
            }
        }

    @property
    def subscription_count(self) -> int:
        return (sum(len(subs) for subs in self._subscriptions.values())
                + len(self._wildcard_subscriptions))

    async def publish(self, event: Union[Event, str], data: Any = None,
                      priority: EventPriority = EventPriority.NORMAL) -> str:
        """Deliver an event to the current subscribers."""
        if isinstance(event, str):
            event = Event(name=event, data=data, priority=priority)

        self._metrics['events_published'] += 1
        matching = self._matching_subscriptions(event.name)

        if not matching:
            self._metrics['events_undelivered'] += 1
            logger.debug(f"No listeners for event {event.name}")
            return event.event_id

        for subscription in matching:
            try:
                result = subscription.handler(event)
                if asyncio.iscoroutine(result):
                    await result

                subscription.call_count += 1
                subscription.last_called = time.time()

            except Exception as e:
                subscription.error_count += 1
                self._metrics['handler_failures'] += 1
                logger.warning(f"Handler error for event {event.name}: {e}")

        return event.event_id

    async def subscribe(self, event_name: str, handler: Callable[[Event], Any],
                        priority: EventPriority = EventPriority.NORMAL) -> str:
        """Subscribe to events with the given name pattern."""
        subscription = EventSubscription(
            subscription_id=str(uuid.uuid4()),
            event_pattern=event_name,
            handler=handler,
            priority=priority
        )

        if '*' in event_name or '?' in event_name:
            self._wildcard_subscriptions.append(subscription)
        else:
            self._subscriptions[event_name].append(subscription)

        logger.debug(f"Added subscription for '{event_name}' (ID: {subscription.subscription_id})")
        return subscription.subscription_id

    async def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe using subscription ID."""
        for event_name, subscriptions in self._subscriptions.items():
            for i, subscription in enumerate(subscriptions):
                if subscription.subscription_id == subscription_id:
                    subscriptions.pop(i)
                    logger.debug(f"Removed subscription {subscription_id} for '{event_name}'")
                    return True

        for i, subscription in enumerate(self._wildcard_subscriptions):
            if subscription.subscription_id == subscription_id:
                self._wildcard_subscriptions.pop(i)
                logger.debug(f"Removed wildcard subscription {subscription_id}")
                return True

        return False

    def _matching_subscriptions(self, event_name: str) -> List[EventSubscription]:
        # Copy so handlers may unsubscribe while the event is delivered
        matching = list(self._subscriptions.get(event_name, []))
        matching.extend(
            s for s in self._wildcard_subscriptions
            if fnmatch.fnmatch(event_name, s.event_pattern)
        )
        matching.sort(key=lambda s: s.priority.value, reverse=True)
        return matching

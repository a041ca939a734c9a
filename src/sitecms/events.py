"""
Change broadcast channel for CMS content.

A synchronous publish/subscribe registry. Editors publish a ChangeEvent
after every save; display surfaces subscribe for their own page/section and
re-fetch when a matching event arrives.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sitecms.logger import setup_logger

logger = setup_logger(__name__)

CMS_UPDATE_EVENT = "cmsUpdate"


@dataclass
class ChangeEvent:
    """Notification that a page section changed."""

    page: str
    section: str
    data: Any = None
    updated_at: Optional[str] = None
    source: Optional[str] = None  # set when relayed from another process

    def matches(self, page: Optional[str], section: Optional[str]) -> bool:
        """Check the event against a page/section filter (None matches anything)."""
        if page is not None and self.page != page:
            return False
        if section is not None and self.section != section:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {'page': self.page, 'section': self.section}
        if self.data is not None:
            detail['data'] = self.data
        if self.updated_at is not None:
            detail['updatedAt'] = self.updated_at
        return detail

    @classmethod
    def from_dict(cls, detail: Dict[str, Any], source: Optional[str] = None) -> "ChangeEvent":
        return cls(
            page=detail['page'],
            section=detail['section'],
            data=detail.get('data'),
            updated_at=detail.get('updatedAt'),
            source=source,
        )


Handler = Callable[[ChangeEvent], None]


class Subscription:
    """Token returned by subscribe; cancel it (or exit its context) to unsubscribe."""

    def __init__(
        self,
        broadcaster: "ChangeBroadcaster",
        handler: Handler,
        event_name: str,
        page: Optional[str],
        section: Optional[str],
    ):
        self._broadcaster = broadcaster
        self.handler = handler
        self.event_name = event_name
        self.page = page
        self.section = section

    @property
    def active(self) -> bool:
        return self._broadcaster.is_subscribed(self)

    def cancel(self) -> bool:
        return self._broadcaster.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def __repr__(self) -> str:
        return (
            f"Subscription(event={self.event_name}, page={self.page}, "
            f"section={self.section})"
        )


class ChangeBroadcaster:
    """
    Process-wide publish/subscribe bus for content change events.

    Delivery is synchronous and in registration order. Handlers registered
    with a page/section filter only see events whose page and section are
    both equal to the filter.
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        handler: Handler,
        page: Optional[str] = None,
        section: Optional[str] = None,
        event_name: str = CMS_UPDATE_EVENT,
    ) -> Subscription:
        """
        Register a handler.

        Args:
            handler: Called with the ChangeEvent
            page: Only deliver events for this page
            section: Only deliver events for this section
            event_name: Event channel name

        Returns:
            Subscription token for unsubscribing
        """
        subscription = Subscription(self, handler, event_name, page, section)
        with self._lock:
            self._subscriptions.setdefault(event_name, []).append(subscription)
        logger.debug("Subscribed %r", subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """
        Remove a subscription.

        Returns:
            True if the subscription was registered
        """
        with self._lock:
            listeners = self._subscriptions.get(subscription.event_name, [])
            for i, existing in enumerate(listeners):
                if existing is subscription:
                    del listeners[i]
                    logger.debug("Unsubscribed %r", subscription)
                    return True
        return False

    def is_subscribed(self, subscription: Subscription) -> bool:
        with self._lock:
            listeners = self._subscriptions.get(subscription.event_name, [])
            return any(existing is subscription for existing in listeners)

    def listener_count(self, event_name: str = CMS_UPDATE_EVENT) -> int:
        with self._lock:
            return len(self._subscriptions.get(event_name, []))

    def publish(self, event: ChangeEvent, event_name: str = CMS_UPDATE_EVENT) -> int:
        """
        Deliver an event to all matching listeners.

        Args:
            event: The change event
            event_name: Event channel name

        Returns:
            Number of handlers invoked
        """
        with self._lock:
            listeners = list(self._subscriptions.get(event_name, []))

        delivered = 0
        for subscription in listeners:
            if not event.matches(subscription.page, subscription.section):
                continue
            # Skip listeners removed by an earlier handler in this dispatch
            if not self.is_subscribed(subscription):
                continue
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error("Error in %s handler for %s/%s: %s",
                             event_name, event.page, event.section, e)
            delivered += 1

        logger.debug("Published %s %s/%s to %d listener(s)",
                     event_name, event.page, event.section, delivered)
        return delivered

    def clear(self) -> None:
        """Drop all subscriptions."""
        with self._lock:
            self._subscriptions.clear()


# Global broadcaster instance
_global_broadcaster: Optional[ChangeBroadcaster] = None


def get_broadcaster() -> ChangeBroadcaster:
    """
    Get the global broadcaster instance.

    Returns:
        ChangeBroadcaster instance
    """
    global _global_broadcaster

    if _global_broadcaster is None:
        _global_broadcaster = ChangeBroadcaster()

    return _global_broadcaster

"""Notification channel for identifier rewrites.

Editor surfaces subscribe here to learn when a translator pass rewrote
their content, so they can refresh the DOM.
"""

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

VARIABLE_IDENTIFIERS_UPDATED = "variable-identifiers-updated"


@dataclass(frozen=True)
class IdentifiersUpdatedEvent:
    """Payload of a `variable-identifiers-updated` notification."""

    original_text: str
    updated_text: str
    name: str = VARIABLE_IDENTIFIERS_UPDATED


Subscriber = Callable[[IdentifiersUpdatedEvent], None]


class IdentifierSyncChannel:
    """Synchronous publish/subscribe channel."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: IdentifiersUpdatedEvent) -> int:
        """Deliver an event to every subscriber.

        A failing subscriber is logged and skipped.

        Returns:
            Number of subscribers that handled the event
        """
        delivered = 0
        for callback in list(self._subscribers):
            try:
                callback(event)
                delivered += 1
            except Exception as e:
                logger.error("Subscriber %r failed on %s: %s", callback, event.name, e)
        return delivered

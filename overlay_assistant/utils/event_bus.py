"""
In-process event channel for streamed chat output.

Language model providers publish ``token``, ``done`` and ``error`` events;
consumers subscribe per turn and must unsubscribe when the turn ends.
Subscriptions are explicit handles so nothing accumulates implicitly.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from .logging_config import get_logger


logger = get_logger("event_bus")

TOKEN_EVENT = "token"
DONE_EVENT = "done"
ERROR_EVENT = "error"


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``EventBus.subscribe``."""
    bus: "EventBus"
    event: str
    handler: Callable[[Any], None]
    active: bool = True

    def unsubscribe(self) -> None:
        """Remove the handler. Safe to call more than once."""
        if self.active:
            self.bus._remove(self)
            self.active = False


class EventBus:
    """
    Synchronous publish/subscribe bus.

    Events are delivered to handlers in subscription order, in the order they
    are published.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Subscription]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Subscription:
        subscription = Subscription(bus=self, event=event, handler=handler)
        self._subscribers.setdefault(event, []).append(subscription)
        return subscription

    def publish(self, event: str, payload: Any) -> int:
        """
        Deliver ``payload`` to every active subscriber of ``event``.

        Returns:
            Number of handlers invoked
        """
        delivered = 0
        # Handlers may unsubscribe while we iterate
        for subscription in list(self._subscribers.get(event, [])):
            if not subscription.active:
                continue
            try:
                subscription.handler(payload)
                delivered += 1
            except Exception as e:
                # Don't let one listener's error affect others
                logger.exception(f"Handler for '{event}' failed: {e}")
        return delivered

    def subscriber_count(self, event: str) -> int:
        return len(self._subscribers.get(event, []))

    def _remove(self, subscription: Subscription) -> None:
        handlers = self._subscribers.get(subscription.event, [])
        if subscription in handlers:
            handlers.remove(subscription)
        if not handlers:
            self._subscribers.pop(subscription.event, None)

"""Typed publish/subscribe channel.

Subscriptions never own their subscriber: bound methods are held through
:class:`weakref.WeakMethod` and silently dropped once the component is
garbage collected. Plain functions are held strongly (there is no owner to
tie them to), so cancel their :class:`Subscription` when done.
"""

from __future__ import annotations

import inspect
import logging
import weakref
from collections.abc import Callable
from typing import Any, TypeVar

from mapch.state.events import MapchEvent

_logger = logging.getLogger(__name__)

E = TypeVar("E", bound=MapchEvent)
Handler = Callable[[E], None]


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    def __init__(self, bus: EventBus, event_type: type[MapchEvent], ref: Callable[[], Any]) -> None:
        self._bus = weakref.ref(bus)
        self._event_type = event_type
        self._ref = ref
        self.active = True

    def handler(self) -> Callable[[Any], None] | None:
        return self._ref() if self.active else None

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        bus = self._bus()
        if bus is not None:
            bus._discard(self._event_type, self)


class EventBus:
    """Dispatch events to subscribers registered for the event's class or a base of it."""

    def __init__(self) -> None:
        self._subscriptions: dict[type[MapchEvent], list[Subscription]] = {}

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Subscription:
        ref: Callable[[], Any]
        if inspect.ismethod(handler):
            ref = weakref.WeakMethod(handler)
        else:
            strong = handler
            ref = lambda: strong  # noqa: E731
        subscription = Subscription(self, event_type, ref)
        self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def _discard(self, event_type: type[MapchEvent], subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(event_type)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)

    def publish(self, event: MapchEvent) -> int:
        """Deliver *event* synchronously; return how many handlers ran.

        A handler raising is logged and does not stop delivery.
        """
        delivered = 0
        for event_type in type(event).__mro__:
            subscriptions = self._subscriptions.get(event_type)  # type: ignore[call-overload]
            if not subscriptions:
                continue
            for subscription in list(subscriptions):
                handler = subscription.handler()
                if handler is None:
                    # Subscriber was collected.
                    subscription.cancel()
                    continue
                try:
                    handler(event)
                except Exception:
                    _logger.debug("Handler for %s failed", type(event).__name__, exc_info=True)
                delivered += 1
        return delivered

    def subscriber_count(self, event_type: type[MapchEvent]) -> int:
        return sum(1 for s in self._subscriptions.get(event_type, []) if s.handler() is not None)

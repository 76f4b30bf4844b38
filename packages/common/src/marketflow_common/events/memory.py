"""In-process event bus."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging

from .types import Event, Handler, Subscription

logger = logging.getLogger(__name__)


class InMemoryEventBus:
    """Single-process pub/sub bus backing the notification channel.

    Handlers run in subscription order, inside the publisher's task.
    Both coroutine functions and plain callables are accepted. A handler
    that raises is logged and skipped; the remaining handlers still run and
    the publisher never sees the exception.

    Example:
        ```python
        bus = InMemoryEventBus()
        await bus.connect()

        toasts = []
        await bus.subscribe("notifications", toasts.append)
        await bus.publish("notifications", Event(
            type=EventType.NOTIFICATION,
            topic="notifications",
            payload={"level": "error", "message": "Failed to freeze wallet"},
        ))
        assert toasts[0].payload["level"] == "error"
        ```
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        """Cancel every subscription and mark the bus disconnected."""
        async with self._lock:
            for subscription in self._subscriptions.values():
                subscription.active = False
            self._subscriptions.clear()
            self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, topic: str, event: Event) -> None:
        """Deliver ``event`` to every active subscription matching ``topic``."""
        if not self._connected:
            logger.warning("Publishing %s on %s to a disconnected bus", event.type.value, topic)

        async with self._lock:
            targets = [s for s in self._subscriptions.values() if s.matches(topic)]

        # Handlers may publish or subscribe, so they run without the lock
        for subscription in targets:
            if not subscription.active:
                continue
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Error in event handler for subscription %s", subscription.subscription_id
                )

        logger.debug("Published %s on %s to %d handler(s)", event.type.value, topic, len(targets))

    async def subscribe(
        self,
        topic: str,
        handler: Handler,
        pattern: str | None = None,
    ) -> Subscription:
        """Register ``handler`` for ``topic``, or for every topic matching ``pattern``."""
        subscription = Subscription(
            subscription_id=f"sub-{next(self._ids)}",
            topic=topic,
            handler=handler,
            pattern=pattern,
            _cancel_callback=self._unsubscribe,
        )
        async with self._lock:
            self._subscriptions[subscription.subscription_id] = subscription
        logger.debug("Subscribed %s to %s", subscription.subscription_id, pattern or topic)
        return subscription

    async def _unsubscribe(self, subscription_id: str) -> None:
        async with self._lock:
            self._subscriptions.pop(subscription_id, None)

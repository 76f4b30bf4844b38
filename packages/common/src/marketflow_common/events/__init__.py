"""In-process event bus used as the notification channel.

Workflow engines publish user-facing notifications (the toast-equivalent)
and mutation lifecycle events here; presentation code subscribes.

Example:
    ```python
    from marketflow_common.events import Event, EventType, InMemoryEventBus

    bus = InMemoryEventBus()
    await bus.connect()

    async def show_toast(event: Event) -> None:
        print(event.payload["level"], event.payload["message"])

    subscription = await bus.subscribe("notifications", show_toast)

    await bus.publish("notifications", Event(
        type=EventType.NOTIFICATION,
        topic="notifications",
        payload={"level": "success", "message": "Added to wishlist"},
    ))

    await subscription.cancel()
    await bus.close()
    ```
"""

from __future__ import annotations

from .bus import EventBus
from .memory import InMemoryEventBus
from .types import Event, EventType, Handler, Subscription

__all__ = [
    # Protocol
    "EventBus",
    # Types
    "Event",
    "EventType",
    "Handler",
    "Subscription",
    # Implementations
    "InMemoryEventBus",
]

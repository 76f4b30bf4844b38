"""EventBus protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .types import Event, Handler, Subscription


@runtime_checkable
class EventBus(Protocol):
    """Publish-subscribe interface between the engines and the views.

    The engines only ever publish; presentation code subscribes to
    ``notifications`` for toasts and to ``mutations:*`` if it wants to
    observe optimistic applies and reverts. Any object with these four
    coroutine methods can stand in for :class:`InMemoryEventBus`, e.g. a
    bridge onto a UI framework's own signal system.
    """

    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def publish(self, topic: str, event: Event) -> None:
        ...

    async def subscribe(
        self,
        topic: str,
        handler: Handler,
        pattern: str | None = None,
    ) -> Subscription:
        ...

"""Events and subscription handles."""

from __future__ import annotations

import fnmatch
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventType(Enum):
    """What an event reports.

    ``NOTIFICATION`` carries a user-facing message. The remaining types
    describe the life of a single optimistic mutation or lifecycle move.
    """

    NOTIFICATION = "notification"
    APPLIED = "applied"
    COMMITTED = "committed"
    REVERTED = "reverted"
    TRANSITIONED = "transitioned"
    SUBMITTED = "submitted"

    @property
    def is_outcome(self) -> bool:
        """True for the types that close a mutation (committed or reverted)."""
        return self in (EventType.COMMITTED, EventType.REVERTED)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """One message on the bus.

    Attributes:
        type: What happened
        topic: ``"notifications"`` or ``"mutations:<entity_id>"``
        payload: Event data; mutation events always carry ``entity_id``
        timestamp: Creation time (UTC)
        event_id: Unique id
        source: Publishing component
        correlation_id: Shared by the applied/committed/reverted events of
            one mutation intent
    """

    type: EventType
    topic: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    source: str | None = None
    correlation_id: str | None = None

    @property
    def entity_id(self) -> str | None:
        return self.payload.get("entity_id")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "topic": self.topic,
            "payload": dict(self.payload),
            "timestamp": self.timestamp.isoformat(),
            "event_id": self.event_id,
            "source": self.source,
            "correlation_id": self.correlation_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            type=EventType(data["type"]),
            topic=data["topic"],
            payload=dict(data.get("payload") or {}),
            timestamp=timestamp or _now(),
            event_id=data.get("event_id") or uuid.uuid4().hex,
            source=data.get("source"),
            correlation_id=data.get("correlation_id"),
        )


Handler = Callable[[Event], Awaitable[None] | None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``EventBus.subscribe``.

    A subscription with a ``pattern`` matches topics with fnmatch rules
    (``"mutations:*"``); otherwise it matches ``topic`` exactly.
    """

    subscription_id: str
    topic: str
    handler: Handler
    pattern: str | None = None
    _cancel_callback: Callable[[str], Awaitable[None]] | None = field(default=None, repr=False)
    active: bool = field(default=True, init=False)

    def matches(self, topic: str) -> bool:
        if self.pattern:
            return fnmatch.fnmatchcase(topic, self.pattern)
        return topic == self.topic

    async def cancel(self) -> None:
        """Stop delivery. Cancelling twice is harmless."""
        if not self.active:
            return
        self.active = False
        if self._cancel_callback is not None:
            await self._cancel_callback(self.subscription_id)

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.subscription_id!r}, "
            f"topic={self.topic!r}, pattern={self.pattern!r})"
        )

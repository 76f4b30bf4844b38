"""User-facing notifications over the event bus.

:class:`Notifier` is the toast channel. It publishes ``NOTIFICATION`` events
on the configured topic and mutation lifecycle events on
``<mutation_topic_prefix>:<entity_id>``. Publishing never raises: a broken
bus is logged and ignored so a notification problem cannot undo a
mutation's outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from marketflow_common.events import Event, EventBus, EventType, InMemoryEventBus

from .settings import WorkflowSettings

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    """One toast.

    Attributes:
        level: success, error or info
        message: Headline shown to the user
        detail: Secondary text, e.g. the server's error message
        entity_id: Entity the notification is about
    """

    level: NotificationLevel
    message: str
    detail: str | None = None
    entity_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "detail": self.detail,
            "entity_id": self.entity_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Notification:
        return cls(
            level=NotificationLevel(data["level"]),
            message=data["message"],
            detail=data.get("detail"),
            entity_id=data.get("entity_id"),
        )


class Notifier:
    """Publishes notifications and mutation events.

    Args:
        bus: Event bus to publish on. When omitted the notifier owns a
            private :class:`InMemoryEventBus` and connects it lazily.
        settings: Topics come from here
        source: Value stamped on every event's ``source``
    """

    def __init__(
        self,
        bus: EventBus | None = None,
        settings: WorkflowSettings | None = None,
        source: str = "marketflow",
    ):
        self._owns_bus = bus is None
        self._bus: EventBus = bus if bus is not None else InMemoryEventBus()
        self._settings = settings or WorkflowSettings()
        self._source = source

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def settings(self) -> WorkflowSettings:
        return self._settings

    @property
    def topic(self) -> str:
        return self._settings.notification_topic

    def mutation_topic(self, entity_id: str) -> str:
        return f"{self._settings.mutation_topic_prefix}:{entity_id}"

    async def _publish(self, topic: str, event: Event) -> None:
        try:
            if self._owns_bus and not getattr(self._bus, "connected", True):
                await self._bus.connect()
            await self._bus.publish(topic, event)
        except Exception:
            logger.exception("Failed to publish %s event on %s", event.type.value, topic)

    async def notify(self, notification: Notification) -> None:
        await self._publish(
            self.topic,
            Event(
                type=EventType.NOTIFICATION,
                topic=self.topic,
                payload=notification.to_dict(),
                source=self._source,
            ),
        )

    async def success(
        self, message: str, *, detail: str | None = None, entity_id: str | None = None
    ) -> None:
        await self.notify(Notification(NotificationLevel.SUCCESS, message, detail, entity_id))

    async def error(
        self, message: str, *, detail: str | None = None, entity_id: str | None = None
    ) -> None:
        await self.notify(Notification(NotificationLevel.ERROR, message, detail, entity_id))

    async def info(
        self, message: str, *, detail: str | None = None, entity_id: str | None = None
    ) -> None:
        await self.notify(Notification(NotificationLevel.INFO, message, detail, entity_id))

    async def mutation_event(
        self,
        event_type: EventType,
        entity_id: str,
        payload: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> None:
        """Publish an applied/committed/reverted/transitioned/submitted event."""
        topic = self.mutation_topic(entity_id)
        await self._publish(
            topic,
            Event(
                type=event_type,
                topic=topic,
                payload={"entity_id": entity_id, **(payload or {})},
                source=self._source,
                correlation_id=correlation_id,
            ),
        )

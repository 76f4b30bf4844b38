"""Tests for the event bus."""

import dataclasses
from datetime import datetime, timezone

import pytest

from marketflow_common.events import (
    Event,
    EventBus,
    EventType,
    InMemoryEventBus,
    Subscription,
)


class TestEventType:

    def test_values(self):
        assert [t.value for t in EventType] == [
            "notification",
            "applied",
            "committed",
            "reverted",
            "transitioned",
            "submitted",
        ]

    def test_is_outcome(self):
        assert EventType.COMMITTED.is_outcome
        assert EventType.REVERTED.is_outcome
        assert not EventType.APPLIED.is_outcome


class TestEvent:

    def test_defaults(self):
        event = Event(type=EventType.NOTIFICATION, topic="notifications")

        assert event.payload == {}
        assert event.source is None
        assert event.correlation_id is None
        assert event.entity_id is None
        assert event.timestamp.tzinfo is timezone.utc

    def test_is_frozen(self):
        event = Event(type=EventType.APPLIED, topic="mutations:p-1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.topic = "other"

    def test_entity_id(self):
        event = Event(type=EventType.APPLIED, topic="mutations:p-1", payload={"entity_id": "p-1"})
        assert event.entity_id == "p-1"

    def test_to_dict(self):
        event = Event(
            type=EventType.REVERTED,
            topic="mutations:ord-1",
            payload={"error": "Carrier offline"},
            timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            event_id="evt-1",
            source="marketflow",
            correlation_id="intent-1",
        )

        assert event.to_dict() == {
            "type": "reverted",
            "topic": "mutations:ord-1",
            "payload": {"error": "Carrier offline"},
            "timestamp": "2026-03-01T12:00:00+00:00",
            "event_id": "evt-1",
            "source": "marketflow",
            "correlation_id": "intent-1",
        }

    def test_from_dict(self):
        event = Event.from_dict({
            "type": "committed",
            "topic": "mutations:p-9",
            "payload": {"entity_id": "p-9"},
            "timestamp": "2026-03-01T12:00:00+00:00",
            "event_id": "evt-2",
        })

        assert event.type is EventType.COMMITTED
        assert event.event_id == "evt-2"
        assert event.timestamp == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_from_dict_fills_missing_fields(self):
        event = Event.from_dict({"type": "applied", "topic": "t"})
        assert event.event_id
        assert event.payload == {}


class TestSubscription:

    def test_exact_match(self):
        subscription = Subscription("s-1", "notifications", print)
        assert subscription.matches("notifications")
        assert not subscription.matches("notifications:extra")

    def test_pattern_match(self):
        subscription = Subscription("s-1", "", print, pattern="mutations:*")
        assert subscription.matches("mutations:ord-1")
        assert not subscription.matches("notifications")

    @pytest.mark.asyncio
    async def test_cancel_without_callback(self):
        subscription = Subscription("s-1", "t", print)
        await subscription.cancel()
        assert not subscription.active

    def test_repr(self):
        subscription = Subscription("s-1", "t", print)
        assert repr(subscription) == "Subscription(id='s-1', topic='t', pattern=None)"


class TestInMemoryEventBus:

    @pytest.fixture
    async def bus(self):
        bus = InMemoryEventBus()
        await bus.connect()
        yield bus
        await bus.close()

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryEventBus(), EventBus)

    @pytest.mark.asyncio
    async def test_connect_and_close(self):
        bus = InMemoryEventBus()
        assert not bus.connected
        await bus.connect()
        assert bus.connected

        subscription = await bus.subscribe("t", lambda e: None)
        await bus.close()

        assert not bus.connected
        assert bus.subscription_count == 0
        assert not subscription.active

    @pytest.mark.asyncio
    async def test_publish_to_exact_topic(self, bus):
        received = []
        await bus.subscribe("notifications", received.append)

        event = Event(type=EventType.NOTIFICATION, topic="notifications")
        await bus.publish("notifications", event)
        await bus.publish("other", Event(type=EventType.NOTIFICATION, topic="other"))

        assert received == [event]

    @pytest.mark.asyncio
    async def test_async_handler(self, bus):
        received = []

        async def handler(event):
            received.append(event.topic)

        await bus.subscribe("mutations:p-1", handler)
        await bus.publish("mutations:p-1", Event(type=EventType.APPLIED, topic="mutations:p-1"))

        assert received == ["mutations:p-1"]

    @pytest.mark.asyncio
    async def test_pattern_subscription(self, bus):
        received = []
        await bus.subscribe("mutations", received.append, pattern="mutations:*")

        await bus.publish("mutations:p-1", Event(type=EventType.APPLIED, topic="mutations:p-1"))
        await bus.publish("mutations:p-2", Event(type=EventType.REVERTED, topic="mutations:p-2"))
        await bus.publish("notifications", Event(type=EventType.NOTIFICATION, topic="notifications"))

        assert [e.topic for e in received] == ["mutations:p-1", "mutations:p-2"]

    @pytest.mark.asyncio
    async def test_handlers_run_in_subscription_order(self, bus):
        order = []
        await bus.subscribe("t", lambda e: order.append("first"))
        await bus.subscribe("t", lambda e: order.append("second"))

        await bus.publish("t", Event(type=EventType.NOTIFICATION, topic="t"))

        assert order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_delivery(self, bus, caplog):
        received = []

        def broken(event):
            raise RuntimeError("handler exploded")

        await bus.subscribe("t", broken)
        await bus.subscribe("t", received.append)

        await bus.publish("t", Event(type=EventType.NOTIFICATION, topic="t"))

        assert len(received) == 1
        assert "Error in event handler for subscription sub-1" in caplog.text

    @pytest.mark.asyncio
    async def test_cancel_subscription(self, bus):
        received = []
        subscription = await bus.subscribe("t", received.append)
        assert bus.subscription_count == 1

        await subscription.cancel()
        await subscription.cancel()
        await bus.publish("t", Event(type=EventType.NOTIFICATION, topic="t"))

        assert received == []
        assert bus.subscription_count == 0

    @pytest.mark.asyncio
    async def test_handler_cancelled_mid_publish_is_skipped(self, bus):
        received = []
        later = None

        async def first(event):
            await later.cancel()

        await bus.subscribe("t", first)
        later = await bus.subscribe("t", received.append)
        await bus.publish("t", Event(type=EventType.NOTIFICATION, topic="t"))

        assert received == []

    @pytest.mark.asyncio
    async def test_handler_may_publish(self, bus):
        received = []

        async def relay(event):
            await bus.publish("b", Event(type=EventType.NOTIFICATION, topic="b"))

        await bus.subscribe("a", relay)
        await bus.subscribe("b", received.append)
        await bus.publish("a", Event(type=EventType.NOTIFICATION, topic="a"))

        assert [e.topic for e in received] == ["b"]

"""
Tests for the Event System (Observer Pattern)

Tests the dispatcher and the events published by the engine components.
"""

from datetime import datetime
from unittest.mock import Mock

from ledger_core.events import (
    DomainEvent, EventPayload, EventDispatcher, EventPublisherMixin,
    get_global_dispatcher, set_global_dispatcher
)


class TestEventPayload:
    """Test EventPayload creation and serialization"""

    def test_event_payload_creation(self):
        """Test creating event payloads"""
        event = EventPayload(
            event_type=DomainEvent.BATCH_PROCESSED,
            entity_type="batch",
            entity_id="batch-123",
            data={"transactions": 2}
        )

        assert event.event_type == DomainEvent.BATCH_PROCESSED
        assert event.entity_id == "batch-123"
        assert isinstance(event.timestamp, datetime)
        assert event.timestamp.tzinfo is not None
        assert len(event.event_id) > 0

    def test_to_dict(self):
        """Test serialization"""
        event = EventPayload(DomainEvent.ENGINE_FALLBACK, "engine", "decimal", {"reason": "disabled"})
        data = event.to_dict()
        assert data["event_type"] == "engine.fallback"
        assert data["timestamp"] == event.timestamp.isoformat()
        assert data["event_id"] == event.event_id
        assert data["data"] == {"reason": "disabled"}


class TestEventDispatcher:
    """Test the publish/subscribe dispatcher"""

    def test_subscribe_and_publish(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(DomainEvent.BATCH_REJECTED, handler)

        event = EventPayload(DomainEvent.BATCH_REJECTED, "batch", "b-1", {})
        dispatcher.publish(event)

        handler.assert_called_once_with(event)

    def test_handlers_only_receive_their_event_type(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(DomainEvent.ENGINE_READY, handler)

        dispatcher.publish(EventPayload(DomainEvent.ENGINE_FAILED, "engine", "decimal", {}))

        handler.assert_not_called()

    def test_global_handlers_receive_everything(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe_all(handler)

        dispatcher.publish(EventPayload(DomainEvent.ENGINE_READY, "engine", "decimal", {}))
        dispatcher.publish(EventPayload(DomainEvent.BATCH_VALIDATED, "batch", "validation", {}))

        assert handler.call_count == 2

    def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(DomainEvent.BATCH_PROCESSED, handler)
        dispatcher.unsubscribe(DomainEvent.BATCH_PROCESSED, handler)
        dispatcher.unsubscribe(DomainEvent.BATCH_PROCESSED, handler)  # not subscribed: logged only

        dispatcher.publish(EventPayload(DomainEvent.BATCH_PROCESSED, "batch", "b-1", {}))
        handler.assert_not_called()

    def test_handler_exceptions_dont_break_publisher(self):
        """Test that exceptions in handlers don't break event publishing"""
        dispatcher = EventDispatcher()
        failing_handler = Mock(side_effect=Exception("Handler error"))
        working_handler = Mock()

        dispatcher.subscribe(DomainEvent.BATCH_PROCESSED, failing_handler)
        dispatcher.subscribe(DomainEvent.BATCH_PROCESSED, working_handler)

        dispatcher.publish(EventPayload(DomainEvent.BATCH_PROCESSED, "batch", "b-1", {}))

        failing_handler.assert_called_once()
        working_handler.assert_called_once()

    def test_handler_may_subscribe_during_publish(self):
        dispatcher = EventDispatcher()
        late = Mock()

        def subscribing_handler(event):
            dispatcher.subscribe(DomainEvent.ENGINE_READY, late)

        dispatcher.subscribe(DomainEvent.ENGINE_READY, subscribing_handler)
        dispatcher.publish(EventPayload(DomainEvent.ENGINE_READY, "engine", "decimal", {}))

        late.assert_not_called()
        assert dispatcher.get_handler_count(DomainEvent.ENGINE_READY) == 2

    def test_handler_counts_and_clear(self):
        dispatcher = EventDispatcher()
        assert dispatcher.get_handler_count() == 0

        dispatcher.subscribe(DomainEvent.ENGINE_READY, Mock())
        dispatcher.subscribe(DomainEvent.ENGINE_READY, Mock())
        dispatcher.subscribe_all(Mock())
        assert dispatcher.get_handler_count(DomainEvent.ENGINE_READY) == 2
        assert dispatcher.get_handler_count() == 3

        dispatcher.clear()
        assert dispatcher.get_handler_count() == 0


class TestGlobalDispatcher:
    """Test global dispatcher accessors"""

    def test_get_global_dispatcher(self):
        dispatcher = get_global_dispatcher()
        assert isinstance(dispatcher, EventDispatcher)
        assert get_global_dispatcher() is dispatcher

    def test_set_global_dispatcher(self):
        custom = EventDispatcher()
        set_global_dispatcher(custom)
        assert get_global_dispatcher() is custom


class TestEventPublisherMixin:
    """Test components publish through their own or the global dispatcher"""

    class Component(EventPublisherMixin):
        pass

    def test_publishes_to_global_dispatcher(self):
        handler = Mock()
        get_global_dispatcher().subscribe(DomainEvent.ENGINE_READY, handler)

        self.Component().publish_event(DomainEvent.ENGINE_READY, "engine", "decimal", {"backend": "libmpdec"})

        event = handler.call_args[0][0]
        assert event.data == {"backend": "libmpdec"}

    def test_instance_dispatcher_takes_precedence(self):
        own = EventDispatcher()
        handler = Mock()
        own.subscribe_all(handler)
        global_handler = Mock()
        get_global_dispatcher().subscribe_all(global_handler)

        component = self.Component()
        component.set_event_dispatcher(own)
        component.publish_event(DomainEvent.BATCH_VALIDATED, "batch", "validation", {})

        handler.assert_called_once()
        global_handler.assert_not_called()

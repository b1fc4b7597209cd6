"""Tests for the event bus."""

import threading

import pytest

from home_automation.core.bus import (
    DIAGNOSTIC_REPORTED,
    STATE_CHANGED,
    Event,
    EventBus,
    EventFilter,
    state_changed,
)
from home_automation.core.diagnostics import DiagnosticKind, Diagnostics


@pytest.fixture
def bus():
    """Create a bus in manual (pump) mode."""
    return EventBus(queue_size=8)


class TestEventFilter:
    """Tests for event filtering."""

    def test_empty_filter_matches_everything(self):
        event = Event(type="x", source="test")
        assert EventFilter().matches(event)

    def test_filter_by_type_and_device(self):
        f = EventFilter(event_type=STATE_CHANGED, device="Lamp")
        assert f.matches(state_changed("Lamp", "power", False, True))
        assert not f.matches(state_changed("Other", "power", False, True))
        assert not f.matches(Event(type="other", source="test", device="Lamp"))


class TestPublishAndPump:
    """Tests for manual delivery."""

    def test_subscriber_receives_events_in_order(self, bus):
        received = []
        bus.subscribe(received.append)

        for i in range(3):
            bus.publish(Event(type="n", source="test", payload={"i": i}))
        assert received == []

        assert bus.pump() == 3
        assert [e.payload["i"] for e in received] == [0, 1, 2]

    def test_subscriber_only_sees_later_events(self, bus):
        bus.publish(Event(type="early", source="test"))
        received = []
        bus.subscribe(received.append)
        bus.publish(Event(type="late", source="test"))
        bus.pump()

        assert [e.type for e in received] == ["late"]

    def test_events_published_by_handlers_are_delivered(self, bus):
        """pump() keeps going until handler-published events are drained too."""
        received = []

        def relay(event):
            if event.type == "first":
                bus.publish(Event(type="second", source="test"))

        bus.subscribe(relay)
        bus.subscribe(received.append)
        bus.publish(Event(type="first", source="test"))
        bus.pump()

        assert [e.type for e in received] == ["first", "second"]

    def test_failing_handler_does_not_stop_others(self, bus):
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.publish(Event(type="x", source="test"))
        bus.pump()

        assert len(received) == 1
        assert bus.wait_until_idle(timeout=0.1)

    def test_unsubscribe(self, bus):
        received = []
        subscription = bus.subscribe(received.append)
        bus.publish(Event(type="x", source="test"))
        bus.unsubscribe(subscription)
        bus.publish(Event(type="y", source="test"))
        bus.pump()

        assert received == []
        assert bus.wait_until_idle(timeout=0.1)

    def test_unsubscribe_by_handler(self, bus):
        received = []
        bus.subscribe(received.append, EventFilter(event_type="a"))
        bus.subscribe(received.append, EventFilter(event_type="b"))
        bus.unsubscribe(received.append)
        bus.publish(Event(type="a", source="test"))
        bus.pump()

        assert received == []

    def test_pump_refused_while_running(self, bus):
        bus.start()
        try:
            with pytest.raises(RuntimeError):
                bus.pump()
        finally:
            bus.stop()


class TestOverflow:
    """Tests for bounded subscriber queues."""

    def test_full_queue_drops_oldest(self):
        diagnostics = Diagnostics()
        bus = EventBus(queue_size=2, diagnostics=diagnostics)
        received = []
        subscription = bus.subscribe(received.append)

        for i in range(5):
            bus.publish(Event(type="n", source="test", payload={"i": i}))

        assert subscription.dropped == 3
        assert bus.dropped == 3
        assert diagnostics.count(DiagnosticKind.EVENT_BUS_OVERFLOW) == 3

        bus.pump()
        assert [e.payload["i"] for e in received] == [3, 4]

    def test_each_queue_overflows_independently(self):
        bus = EventBus(queue_size=1)
        filtered, unfiltered = [], []
        first = bus.subscribe(filtered.append, EventFilter(event_type="a"))
        second = bus.subscribe(unfiltered.append)

        bus.publish(Event(type="a", source="test"))
        bus.publish(Event(type="b", source="test"))

        assert first.dropped == 0
        assert second.dropped == 1
        bus.pump()

        assert [e.type for e in filtered] == ["a"]
        assert [e.type for e in unfiltered] == ["b"]

    def test_overflow_is_not_published(self):
        diagnostics = Diagnostics()
        bus = EventBus(queue_size=1, diagnostics=diagnostics)
        diagnostics.set_bus(bus)
        received = []
        bus.subscribe(received.append)

        bus.publish(Event(type="a", source="test"))
        bus.publish(Event(type="b", source="test"))
        bus.pump()

        assert [e.type for e in received] == ["b"]
        assert all(e.type != DIAGNOSTIC_REPORTED for e in received)


class TestThreadedDelivery:
    """Tests for worker-thread delivery."""

    def test_start_delivers_and_wait_until_idle(self):
        bus = EventBus()
        received = []
        lock = threading.Lock()

        def handler(event):
            with lock:
                received.append(event.payload["i"])

        bus.subscribe(handler)
        bus.start()
        try:
            for i in range(50):
                bus.publish(Event(type="n", source="test", payload={"i": i}))
            assert bus.wait_until_idle(timeout=5.0)
        finally:
            bus.stop()

        assert received == list(range(50))

    def test_subscribe_after_start_gets_worker(self):
        bus = EventBus()
        bus.start()
        received = []
        try:
            bus.subscribe(received.append)
            bus.publish(Event(type="n", source="test"))
            assert bus.wait_until_idle(timeout=5.0)
        finally:
            bus.stop()

        assert len(received) == 1

    def test_restart_after_slow_stop_keeps_one_consumer(self):
        """A worker that outlives stop() finishes before the restarted one delivers."""
        bus = EventBus()
        entered = threading.Event()
        release = threading.Event()
        received = []
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def handler(event):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            if event.payload["i"] == 0:
                entered.set()
                release.wait(timeout=5.0)
            with lock:
                received.append(event.payload["i"])
                active[0] -= 1

        bus.subscribe(handler)
        bus.start()
        try:
            bus.publish(Event(type="n", source="test", payload={"i": 0}))
            assert entered.wait(timeout=5.0)
            bus.stop(timeout=0.05)

            bus.start()
            bus.publish(Event(type="n", source="test", payload={"i": 1}))
            bus.publish(Event(type="n", source="test", payload={"i": 2}))
            release.set()
            assert bus.wait_until_idle(timeout=5.0)
        finally:
            release.set()
            bus.stop()

        assert received == [0, 1, 2]
        assert peak[0] == 1

    def test_invalid_queue_size(self):
        with pytest.raises(ValueError):
            EventBus(queue_size=0)

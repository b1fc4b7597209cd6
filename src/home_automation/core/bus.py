"""
Event Bus implementation for device-state and scheduler events.

Publishing never blocks on subscribers: each subscription owns a bounded
queue. Events are delivered either by one worker thread per subscription
(after start()) or by pump() in the caller's thread.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from home_automation.core.diagnostics import DiagnosticKind, Diagnostics

logger = logging.getLogger(__name__)

# Event types
STATE_CHANGED = "device.state_changed"
SCHEDULE_FIRED = "schedule.fired"
RULE_TRIGGERED = "rule.triggered"
EXECUTION_LOGGED = "execution.logged"
DIAGNOSTIC_REPORTED = "diagnostic.reported"

DEFAULT_QUEUE_SIZE = 256


def _utc_now() -> datetime:
    """Get current UTC time (for default factory)."""
    return datetime.now(UTC)


def new_cascade_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class Event:
    """
    A domain event in the home-automation system.

    Attributes:
        type: Event type (e.g., "device.state_changed", "schedule.fired")
        source: Event source (e.g., "registry", "scheduler", "rules")
        device: Optional device name this event relates to
        payload: Event-specific data
        timestamp: When the event occurred
        cascade_id: Identifies the originating external event and everything
            it caused
        depth: Number of rule firings between the originating event and this one
    """

    type: str
    source: str
    device: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utc_now)
    cascade_id: str = field(default_factory=new_cascade_id)
    depth: int = 0


def state_changed(
    device: str,
    attribute: str,
    old: Any,
    new: Any,
    cascade_id: Optional[str] = None,
    depth: int = 0,
) -> Event:
    """Build a StateChanged event."""
    return Event(
        type=STATE_CHANGED,
        source="registry",
        device=device,
        payload={"attribute": attribute, "old": old, "new": new},
        cascade_id=cascade_id or new_cascade_id(),
        depth=depth,
    )


class EventFilter:
    """
    Filter for event subscriptions.

    Allows subscribers to filter events by type and device.
    """

    def __init__(
        self,
        event_type: Optional[str] = None,
        device: Optional[str] = None,
    ):
        """
        Initialize an event filter.

        Args:
            event_type: Filter by event type (None = all types)
            device: Filter by device name (None = all devices)
        """
        self.event_type = event_type
        self.device = device

    def matches(self, event: Event) -> bool:
        """
        Check if an event matches this filter.

        Args:
            event: The event to check

        Returns:
            True if the event matches the filter
        """
        if self.event_type and event.type != self.event_type:
            return False
        if self.device and event.device != self.device:
            return False
        return True

    def __repr__(self) -> str:
        return f"EventFilter(event_type={self.event_type!r}, device={self.device!r})"


EventHandler = Callable[[Event], None]


class Subscription:
    """
    A subscriber's bounded queue.

    When the queue is full the oldest event is dropped and counted.
    """

    def __init__(
        self,
        handler: EventHandler,
        event_filter: EventFilter,
        maxsize: int,
        on_count: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.handler = handler
        self.event_filter = event_filter
        self.maxsize = maxsize
        self.dropped = 0
        self._queue: Deque[Event] = deque()
        self._cond = threading.Condition()
        self._active = True
        self._thread: Optional[threading.Thread] = None
        # Held by whoever is consuming the queue; one consumer at a time
        self._consumer = threading.RLock()
        self._on_count = on_count or (lambda delta: None)

    @property
    def name(self) -> str:
        return getattr(self.handler, "__name__", repr(self.handler))

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def offer(self, event: Event) -> Optional[Event]:
        """
        Enqueue an event without blocking.

        Returns:
            The event that was dropped to make room, if any
        """
        dropped = None
        with self._cond:
            if not self._active:
                return None
            if len(self._queue) >= self.maxsize:
                dropped = self._queue.popleft()
                self.dropped += 1
            self._on_count(1)
            self._queue.append(event)
            self._cond.notify()
        if dropped is not None:
            self._on_count(-1)
        return dropped

    def _next(self, timeout: Optional[float]) -> Optional[Event]:
        with self._cond:
            if not self._queue and timeout:
                self._cond.wait(timeout)
            if not self._queue:
                return None
            return self._queue.popleft()

    def _dispatch(self, event: Event) -> None:
        try:
            self.handler(event)
        except Exception as e:
            logger.error(
                f"Error in event handler {self.name} for event {event.type}: {e}",
                exc_info=True,
            )
        finally:
            self._on_count(-1)

    def drain(self) -> int:
        """Deliver every queued event in the calling thread."""
        delivered = 0
        with self._consumer:
            while True:
                event = self._next(timeout=None)
                if event is None:
                    return delivered
                self._dispatch(event)
                delivered += 1

    def _run(self, stop: threading.Event) -> None:
        with self._consumer:
            while not stop.is_set() and self._active:
                event = self._next(timeout=0.1)
                if event is not None:
                    self._dispatch(event)

    def close(self) -> None:
        with self._cond:
            self._active = False
            discarded = len(self._queue)
            self._queue.clear()
            self._cond.notify_all()
        if discarded:
            self._on_count(-discarded)


class EventBus:
    """
    Multi-subscriber broadcast bus for home-automation events.

    Handlers are wrapped in try/except to prevent one bad subscriber from
    stopping delivery to the others.
    """

    def __init__(
        self,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        """
        Initialize the event bus.

        Args:
            queue_size: Maximum queued events per subscriber
            diagnostics: Where overflow conditions are recorded
        """
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self._queue_size = queue_size
        self._diagnostics = diagnostics
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._running = False

        # Events queued or being handled, across all subscribers
        self._in_flight = 0
        self._idle = threading.Condition()

    def _count(self, delta: int) -> None:
        with self._idle:
            self._in_flight += delta
            if self._in_flight <= 0:
                self._in_flight = 0
                self._idle.notify_all()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def dropped(self) -> int:
        """Total events dropped across all subscribers."""
        with self._lock:
            return sum(sub.dropped for sub in self._subscriptions)

    def subscribe(
        self,
        handler: EventHandler,
        event_filter: Optional[EventFilter] = None,
    ) -> Subscription:
        """
        Subscribe to events.

        A subscriber only sees events published after this call.

        Args:
            handler: Callable that receives Event objects
            event_filter: Optional filter for events (None = receive all events)

        Returns:
            The Subscription, which can be passed to unsubscribe()
        """
        if event_filter is None:
            event_filter = EventFilter()

        subscription = Subscription(handler, event_filter, self._queue_size, self._count)
        with self._lock:
            self._subscriptions.append(subscription)
            if self._running:
                self._start_worker(subscription)
        logger.debug(f"Subscribed handler {subscription.name} with filter {event_filter}")
        return subscription

    def unsubscribe(self, target: Union[Subscription, EventHandler]) -> None:
        """
        Unsubscribe a subscription, or every subscription of a handler.

        Args:
            target: A Subscription or a handler callable
        """
        with self._lock:
            removed = [
                s for s in self._subscriptions if s is target or s.handler == target
            ]
            self._subscriptions = [s for s in self._subscriptions if s not in removed]
        for subscription in removed:
            subscription.close()
            logger.debug(f"Unsubscribed handler {subscription.name}")

    def publish(self, event: Event) -> None:
        """
        Publish an event to all matching subscribers.

        Never blocks on subscriber processing. A full subscriber queue drops
        its oldest event.

        Args:
            event: The event to publish
        """
        logger.debug(f"Publishing event: {event.type} from {event.source}")

        with self._lock:
            subscriptions = list(self._subscriptions)

        for subscription in subscriptions:
            if not subscription.event_filter.matches(event):
                continue
            dropped = subscription.offer(event)
            if dropped is not None:
                self._report_overflow(subscription, dropped)

    def _report_overflow(self, subscription: Subscription, dropped: Event) -> None:
        logger.warning(
            f"Subscriber {subscription.name} fell behind; dropped {dropped.type} "
            f"({subscription.dropped} dropped so far)"
        )
        if self._diagnostics:
            # Recorded only; publishing here would feed the overflowing queue
            self._diagnostics.record(
                DiagnosticKind.EVENT_BUS_OVERFLOW,
                f"Subscriber {subscription.name} dropped {dropped.type}",
                publish=False,
                subscriber=subscription.name,
                event_type=dropped.type,
                dropped_total=subscription.dropped,
            )

    # =========================================================================
    # Delivery
    # =========================================================================

    def start(self) -> None:
        """Start one delivery thread per subscription."""
        with self._lock:
            if self._running:
                return
            # Fresh event: a worker left over from a timed-out stop() keeps
            # its own (set) event and exits after its current handler
            self._stop = threading.Event()
            self._running = True
            for subscription in self._subscriptions:
                self._start_worker(subscription)
        logger.info("Event bus started")

    def _start_worker(self, subscription: Subscription) -> None:
        thread = threading.Thread(
            target=subscription._run,
            args=(self._stop,),
            name=f"bus-{subscription.name}",
            daemon=True,
        )
        subscription._thread = thread
        thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop delivery threads. Queued events stay queued."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop.set()
            workers = [(s, s._thread) for s in self._subscriptions if s._thread]
        for subscription, thread in workers:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Delivery thread for {subscription.name} did not stop in {timeout}s")
            elif subscription._thread is thread:
                subscription._thread = None
        logger.info("Event bus stopped")

    def pump(self, max_events: int = 100_000) -> int:
        """
        Deliver queued events in the calling thread until every queue is empty.

        Events published by handlers during the pump are delivered too.

        Args:
            max_events: Safety bound on the number of deliveries

        Returns:
            Number of events delivered

        Raises:
            RuntimeError: If delivery threads are running
        """
        if self._running:
            raise RuntimeError("pump() cannot be used while the bus is started")

        delivered = 0
        while delivered < max_events:
            with self._lock:
                subscriptions = list(self._subscriptions)
            round_delivered = sum(sub.drain() for sub in subscriptions)
            if round_delivered == 0:
                break
            delivered += round_delivered
        else:
            logger.warning(f"pump() stopped after {delivered} events")
        return delivered

    def wait_until_idle(self, timeout: float = 5.0) -> bool:
        """
        Block until every subscriber queue is empty and no handler is running.

        Returns:
            True if the bus went idle within the timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

"""EventBus implementation: broadcast fan-out plus bounded history."""

import threading
from collections import Counter, deque
from typing import Callable, Protocol

from ..config import DEFAULT_HISTORY_CAPACITY, DEFAULT_SUBSCRIBER_QUEUE_SIZE
from ..logging_config import get_logger
from ..models import Event, EventKind
from .subscription import Subscription

logger = get_logger(__name__)


EventListener = Callable[[Event], None]


class IEventBus(Protocol):
    """Broadcast channel for causal events with a trailing history."""

    def emit(self, event: Event) -> None:
        """Record event in history and deliver it to every subscriber."""
        ...

    def subscribe(self, max_queue: int | None = None) -> Subscription:
        """Return a handle yielding every event emitted from now on."""
        ...

    def snapshot(self) -> tuple[Event, ...]:
        """Return the history buffer, oldest first."""
        ...


class EventBus:
    """In-memory broadcast bus.

    ``emit`` never blocks on consumers: listeners run inline and must be
    cheap, subscriptions get a non-blocking enqueue into a bounded queue.
    All state changes and deliveries happen under one lock, so every
    subscriber sees events in history order.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        subscriber_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._subscriber_queue_size = subscriber_queue_size
        self._history: deque[Event] = deque(maxlen=capacity)
        self._listeners: list[EventListener] = []
        self._subscriptions: list[Subscription] = []
        self._lock = threading.RLock()
        self._emitted = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def emitted_total(self) -> int:
        """Number of events emitted since construction."""
        return self._emitted

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    @property
    def last_event(self) -> Event | None:
        with self._lock:
            return self._history[-1] if self._history else None

    def __len__(self) -> int:
        return len(self._history)

    def emit(self, event: Event) -> None:
        """Append to history, run listeners, enqueue for subscribers."""
        with self._lock:
            # deque(maxlen) evicts the oldest entry on overflow
            self._history.append(event)
            self._emitted += 1

            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "Error in bus listener %r for event %s", listener, event.id
                    )

            dropped = []
            for subscription in self._subscriptions:
                if not subscription.offer(event) and subscription.overflowed:
                    dropped.append(subscription)

            for subscription in dropped:
                self._subscriptions.remove(subscription)
                logger.warning(
                    "Dropping slow subscriber after %d events (queue full)",
                    subscription.delivered,
                )

    def subscribe(self, max_queue: int | None = None) -> Subscription:
        """Return a subscription receiving every event emitted from now on."""
        if max_queue is None:
            max_queue = self._subscriber_queue_size
        subscription = Subscription(
            max_queue,
            on_close=self._remove_subscription,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Subscriber added (%d total)", len(self._subscriptions))
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def listen(self, listener: EventListener) -> None:
        """Register a synchronous listener called inline on every emit."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unlisten(self, listener: EventListener) -> None:
        """Remove a previously registered listener."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def snapshot(self) -> tuple[Event, ...]:
        """Return the history buffer, oldest first."""
        with self._lock:
            return tuple(self._history)

    def filtered_snapshot(self, kind: EventKind) -> tuple[Event, ...]:
        """Return history entries of the given kind, oldest first."""
        kind = EventKind.parse(kind)
        with self._lock:
            return tuple(e for e in self._history if e.kind is kind)

    def kind_counts(self) -> dict[str, int]:
        """Count history entries per kind wire name."""
        with self._lock:
            counts = Counter(e.kind.value for e in self._history)
        return dict(counts)

    def clear(self) -> None:
        """Empty the history buffer. Live subscriptions are untouched."""
        with self._lock:
            self._history.clear()

    def close(self) -> None:
        """Close every subscription. Later emits still update history."""
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.close()
        logger.info("EventBus closed (%d subscriptions)", len(subscriptions))

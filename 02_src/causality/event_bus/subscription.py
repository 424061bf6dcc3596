"""Bounded per-subscriber event queue."""

import asyncio
import threading
from collections import deque
from typing import Callable

from ..logging_config import get_logger
from ..models import Event

logger = get_logger(__name__)


class Subscription:
    """Async iterator over events emitted after subscription.

    Events are queued in emission order. The queue is bounded: when a
    consumer falls behind and the queue is full, the subscription is marked
    overflowed and detached from the bus. Already queued events can still be
    consumed; iteration then stops.
    """

    def __init__(
        self,
        max_queue: int,
        on_close: Callable[["Subscription"], None] | None = None,
    ):
        if max_queue < 1:
            raise ValueError("max_queue must be >= 1")
        self._max_queue = max_queue
        self._on_close = on_close
        self._queue: deque[Event] = deque()
        self._lock = threading.Lock()
        self._closed = False
        self._overflowed = False
        self._delivered = 0
        self._waiters: list[asyncio.Future] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def overflowed(self) -> bool:
        """True if the subscription was dropped for falling behind."""
        return self._overflowed

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def delivered(self) -> int:
        """Number of events accepted into the queue so far."""
        return self._delivered

    def offer(self, event: Event) -> bool:
        """Queue an event without blocking. Returns False if not accepted."""
        with self._lock:
            if self._closed:
                return False
            if len(self._queue) >= self._max_queue:
                self._overflowed = True
                self._closed = True
                self._wake_locked()
                return False
            self._queue.append(event)
            self._delivered += 1
            self._wake_locked()
            return True

    def drain(self) -> list[Event]:
        """Return and remove every queued event without waiting."""
        with self._lock:
            events = list(self._queue)
            self._queue.clear()
        return events

    def close(self) -> None:
        """Stop receiving events and detach from the bus."""
        with self._lock:
            if self._closed and self._on_close is None:
                return
            self._closed = True
            self._wake_locked()
            on_close, self._on_close = self._on_close, None
        if on_close:
            on_close(self)

    def _wake_locked(self) -> None:
        # Every waiting consumer rechecks the queue; losers wait again
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            loop = waiter.get_loop()
            if not loop.is_closed():
                loop.call_soon_threadsafe(_resolve, waiter)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Event:
        while True:
            with self._lock:
                if self._queue:
                    return self._queue.popleft()
                if self._closed:
                    raise StopAsyncIteration
                waiter = asyncio.get_running_loop().create_future()
                self._waiters.append(waiter)
            await waiter

    async def get(self, timeout: float | None = None) -> Event:
        """Wait for the next event. Raises StopAsyncIteration when closed."""
        if timeout is None:
            return await self.__anext__()
        return await asyncio.wait_for(self.__anext__(), timeout)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


def _resolve(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)

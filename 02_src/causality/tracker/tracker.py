"""Tracker implementation for creating causal events."""

import time
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Iterator, Protocol

from ..context import IPropagator
from ..event_bus import IEventBus
from ..models import Event, EventKind


class ITracker(Protocol):
    """Creating Events stamped with the active causality context."""

    def track(
        self,
        kind: EventKind,
        label: str,
        metadata: dict[str, Any] | None = None,
        duration: timedelta | None = None,
        parent_id: str | None = None,
    ) -> Event:
        """Create an Event and emit it on the EventBus."""
        ...


class Tracker:
    """Builds Events linked to the current context and emits them."""

    def __init__(self, event_bus: IEventBus, propagator: IPropagator):
        self._event_bus = event_bus
        self._propagator = propagator

    def track(
        self,
        kind: EventKind,
        label: str,
        metadata: dict[str, Any] | None = None,
        duration: timedelta | None = None,
        parent_id: str | None = None,
    ) -> Event:
        """Create an Event and emit it on the EventBus.

        Without an explicit ``parent_id`` the event is parented to the active
        causality context, if any.
        """
        if parent_id is None:
            context = self._propagator.current()
            parent_id = context.event_id if context else None

        event = Event(
            kind=kind,
            label=label,
            parent_id=parent_id,
            metadata=metadata or {},
            duration=duration,
        )
        self._event_bus.emit(event)
        return event

    @contextmanager
    def timed(
        self,
        kind: EventKind,
        label: str,
        metadata: dict[str, Any] | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Emit one span event with its elapsed duration when the block exits.

        Yields the metadata dict so the block can add fields (status codes,
        sizes) before the event is built.
        """
        data = dict(metadata or {})
        started = time.perf_counter()
        try:
            yield data
        except BaseException as e:
            data["error"] = type(e).__name__
            raise
        finally:
            elapsed = timedelta(seconds=time.perf_counter() - started)
            self.track(kind, label, metadata=data, duration=elapsed)

"""Application bootstrap and lifecycle management."""

from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .config import Settings
from .context import CausalityPropagator
from .event_bus import EventBus
from .graph import CausalGraph
from .logging_config import get_logger
from .tracker import Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...

    def stats(self) -> dict[str, Any]:
        """Summarize bus and graph state."""
        ...

    @property
    def event_bus(self) -> EventBus:
        ...

    @property
    def graph(self) -> CausalGraph:
        ...


class Application:
    """Owns the process-wide propagator, bus, graph and tracker."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or Settings.from_env()

        # Components (will be initialized in start())
        self._propagator: CausalityPropagator | None = None
        self._event_bus: EventBus | None = None
        self._graph: CausalGraph | None = None
        self._tracker: Tracker | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def started(self) -> bool:
        return self._event_bus is not None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        if self.started:
            return
        logger.info("Starting application")

        # 1. Propagator (no dependencies)
        self._propagator = CausalityPropagator()

        # 2. EventBus (no dependencies)
        self._event_bus = EventBus(
            capacity=self._settings.history_capacity,
            subscriber_queue_size=self._settings.subscriber_queue_size,
        )
        logger.info(
            "EventBus initialized (capacity=%d)", self._settings.history_capacity
        )

        # 3. CausalGraph (subscribes to EventBus)
        self._graph = CausalGraph(
            max_events=self._settings.graph_max_events,
            window=timedelta(seconds=self._settings.graph_window_seconds),
        )
        self._graph.connect(self._event_bus)

        # 4. Tracker (depends on EventBus + Propagator)
        self._tracker = Tracker(self._event_bus, self._propagator)
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._graph is not None:
            self._graph.disconnect()
        if self._event_bus is not None:
            self._event_bus.close()

        self._tracker = None
        self._graph = None
        self._event_bus = None
        self._propagator = None
        logger.info("Application stopped")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._event_bus is not None:
            self._event_bus.clear()
        if self._graph is not None:
            self._graph.clear()
        logger.info("Reset complete")

    def stats(self) -> dict[str, Any]:
        """Summarize bus and graph state."""
        bus = self.event_bus
        graph = self.graph
        return {
            "buffer_size": len(bus),
            "buffer_capacity": bus.capacity,
            "emitted_total": bus.emitted_total,
            "subscriber_count": bus.subscriber_count,
            "event_kind_counts": bus.kind_counts(),
            "graph_size": len(graph),
            "graph_max_events": graph.max_events,
            "graph_window_seconds": int(graph.window.total_seconds()),
            "pruned_total": graph.pruned_total,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @property
    def propagator(self) -> CausalityPropagator:
        """Get propagator instance."""
        if self._propagator is None:
            raise RuntimeError("Application not started")
        return self._propagator

    @property
    def event_bus(self) -> EventBus:
        """Get event bus instance."""
        if self._event_bus is None:
            raise RuntimeError("Application not started")
        return self._event_bus

    @property
    def graph(self) -> CausalGraph:
        """Get causal graph instance."""
        if self._graph is None:
            raise RuntimeError("Application not started")
        return self._graph

    @property
    def tracker(self) -> Tracker:
        """Get tracker instance."""
        if self._tracker is None:
            raise RuntimeError("Application not started")
        return self._tracker

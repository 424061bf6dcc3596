"""In-memory causal DAG with ancestry queries, pruning and export/import.

Nodes are events keyed by id. Every event with a ``parent_id`` adds one
edge child -> parent, so the graph is a forest of in-trees. Edges to a
parent that has not been seen (or was pruned) are kept; traversal simply
stops at the last resolvable node.

Pruning only runs when the node count exceeds ``max_events``. It then
removes every node older than ``window``; children of a removed node become
roots instead of being removed with it.
"""

import heapq
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Protocol

from ..config import DEFAULT_GRAPH_MAX_EVENTS, DEFAULT_GRAPH_WINDOW_SECONDS
from ..errors import InvalidEventError
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import Event

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ICausalGraph(Protocol):
    """Causal DAG queries."""

    def add_event(self, event: Event) -> None:
        """Index an event as a node."""
        ...

    def ancestors(self, event_id: str) -> list[Event]:
        """Root-first chain ending at event_id."""
        ...

    def descendants(self, event_id: str) -> list[Event]:
        """Breadth-first effects of event_id, excluding itself."""
        ...

    def root_cause(self, event_id: str) -> Event | None:
        """Oldest resolvable ancestor."""
        ...


class CausalGraph:
    """DAG of events linked by parent ids."""

    def __init__(
        self,
        max_events: int = DEFAULT_GRAPH_MAX_EVENTS,
        window: timedelta = timedelta(seconds=DEFAULT_GRAPH_WINDOW_SECONDS),
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._max_events = max_events
        self._window = window
        self._clock = clock

        # event id -> event
        self._nodes: dict[str, Event] = {}
        # child id -> parent id
        self._parent_edge: dict[str, str] = {}
        # parent id -> child ids in insertion order (dict used as ordered set)
        self._child_edges: dict[str, dict[str, None]] = {}
        # (timestamp, id) min-heap; entries go stale on upsert and are skipped
        self._by_age: list[tuple[datetime, str]] = []

        self._lock = threading.RLock()
        self._bus: IEventBus | None = None
        self._pruned_total = 0

    @property
    def max_events(self) -> int:
        return self._max_events

    @property
    def window(self) -> timedelta:
        return self._window

    @property
    def pruned_total(self) -> int:
        """Number of nodes removed by pruning since construction."""
        return self._pruned_total

    @property
    def event_ids(self) -> list[str]:
        with self._lock:
            return list(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._nodes

    # -- bus wiring --

    def connect(self, bus: IEventBus) -> None:
        """Index every event emitted on bus from now on. Idempotent."""
        # The bus calls add_event under its own lock; never call into the bus
        # while holding ours.
        with self._lock:
            if self._bus is bus:
                return
            previous, self._bus = self._bus, bus
        if previous is not None:
            previous.unlisten(self.add_event)
        bus.listen(self.add_event)
        logger.info("CausalGraph connected to event bus")

    def disconnect(self) -> None:
        """Stop indexing bus events."""
        with self._lock:
            previous, self._bus = self._bus, None
        if previous is None:
            return
        previous.unlisten(self.add_event)
        logger.info("CausalGraph disconnected from event bus")

    @property
    def connected(self) -> bool:
        return self._bus is not None

    # -- mutation --

    def add_event(self, event: Event) -> None:
        """Upsert a node and its parent edge, then prune if over the cap."""
        if not isinstance(event, Event):
            raise TypeError(f"Expected Event, got {type(event).__name__}")

        with self._lock:
            old_parent = self._parent_edge.get(event.id)
            if old_parent is not None and old_parent != event.parent_id:
                self._unlink_child(event.id, old_parent)

            self._nodes[event.id] = event
            heapq.heappush(self._by_age, (event.timestamp, event.id))
            if len(self._by_age) > 2 * len(self._nodes) + 64:
                self._by_age = [(e.timestamp, e.id) for e in self._nodes.values()]
                heapq.heapify(self._by_age)
            if event.parent_id is not None:
                self._parent_edge[event.id] = event.parent_id
                self._child_edges.setdefault(event.parent_id, {})[event.id] = None
            else:
                self._parent_edge.pop(event.id, None)

            self._prune_if_needed()

    def _unlink_child(self, child_id: str, parent_id: str) -> None:
        self._parent_edge.pop(child_id, None)
        siblings = self._child_edges.get(parent_id)
        if siblings is not None:
            siblings.pop(child_id, None)
            if not siblings:
                del self._child_edges[parent_id]

    def _prune_if_needed(self) -> None:
        if len(self._nodes) <= self._max_events:
            return

        cutoff = self._clock() - self._window
        expired = []
        while self._by_age and self._by_age[0][0] < cutoff:
            timestamp, event_id = heapq.heappop(self._by_age)
            event = self._nodes.get(event_id)
            if event is not None and event.timestamp == timestamp:
                self._remove_node(event_id)
                expired.append(event_id)

        if expired:
            self._pruned_total += len(expired)
            logger.info(
                "Pruned %d events older than %s (%d remaining)",
                len(expired),
                cutoff.isoformat(),
                len(self._nodes),
            )

    def _remove_node(self, event_id: str) -> None:
        self._nodes.pop(event_id, None)

        parent_id = self._parent_edge.get(event_id)
        if parent_id is not None:
            self._unlink_child(event_id, parent_id)

        # Children outlive their parent as roots
        for child_id in self._child_edges.pop(event_id, {}):
            self._parent_edge.pop(child_id, None)

    def clear(self) -> None:
        """Drop every node and edge."""
        with self._lock:
            self._nodes.clear()
            self._parent_edge.clear()
            self._child_edges.clear()
            self._by_age.clear()

    # -- queries --

    def get(self, event_id: str) -> Event | None:
        """Return the event with the given id, or None."""
        return self._nodes.get(event_id)

    def ancestors(self, event_id: str) -> list[Event]:
        """Return the chain from the oldest resolvable ancestor to event_id.

        The event itself is the last element. Unknown ids give an empty list.
        A repeated id (cycle) ends the walk.
        """
        with self._lock:
            if event_id not in self._nodes:
                return []

            chain: list[Event] = []
            visited: set[str] = set()
            current: str | None = event_id
            while current is not None and current not in visited:
                visited.add(current)
                event = self._nodes.get(current)
                if event is None:
                    break
                chain.append(event)
                current = self._parent_edge.get(current)

        chain.reverse()
        return chain

    def descendants(self, event_id: str) -> list[Event]:
        """Return every event transitively caused by event_id, level by level."""
        with self._lock:
            if event_id not in self._nodes:
                return []

            result: list[Event] = []
            visited = {event_id}
            queue = deque([event_id])
            while queue:
                current = queue.popleft()
                for child_id in self._child_edges.get(current, ()):
                    if child_id in visited:
                        continue
                    visited.add(child_id)
                    child = self._nodes.get(child_id)
                    if child is not None:
                        result.append(child)
                        queue.append(child_id)
        return result

    def root_cause(self, event_id: str) -> Event | None:
        """Return the oldest resolvable ancestor, or None for unknown ids."""
        chain = self.ancestors(event_id)
        return chain[0] if chain else None

    def children(self, event_id: str) -> list[Event]:
        """Return direct children only.

        Works for ids that are not (or no longer) nodes, which lists the
        orphans waiting on a parent that was never indexed.
        """
        with self._lock:
            return [
                self._nodes[child_id]
                for child_id in self._child_edges.get(event_id, ())
                if child_id in self._nodes
            ]

    def roots(self) -> list[Event]:
        """Return events whose parent is absent or unresolvable."""
        with self._lock:
            return [
                event
                for event_id, event in self._nodes.items()
                if self._parent_edge.get(event_id) not in self._nodes
            ]

    # -- serialization --

    def export(self) -> dict[str, Any]:
        """Export the whole graph as a JSON-safe document."""
        with self._lock:
            return {
                "events": [e.to_dict() for e in self._nodes.values()],
                "edges": dict(self._parent_edge),
                "event_count": len(self._nodes),
                "exported_at": _utc_now().isoformat(),
            }

    def import_document(self, document: dict[str, Any]) -> int:
        """Merge an exported document into this graph.

        Every record is parsed before anything is added, so one bad record
        rejects the whole document. Returns the number of events merged.
        """
        if not isinstance(document, dict):
            raise InvalidEventError("Graph document must be an object")
        records = document.get("events")
        if not isinstance(records, list):
            raise InvalidEventError("Graph document has no 'events' list")

        events = [Event.from_dict(record) for record in records]
        self.add_events(events)
        logger.info("Imported %d events", len(events))
        return len(events)

    def add_events(self, events: Iterable[Event]) -> None:
        """Add several events under one lock acquisition."""
        with self._lock:
            for event in events:
                self.add_event(event)

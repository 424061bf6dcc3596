"""Observability API routes: bus history, event ingest and stats."""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from ...app import IApplication
from ...errors import InvalidEventError, UnknownEventKindError
from ...logging_config import get_logger
from ...models import Event, EventKind

logger = get_logger(__name__)


class EventResponse(BaseModel):
    """Response model for a causal event (EventJSON)."""

    id: str
    parentId: str | None
    kind: str
    label: str
    timestamp: str
    metadata: dict[str, Any]
    duration_ms: int | None


class EventRequest(BaseModel):
    """Request model for ingesting an event. Missing id/timestamp are generated."""

    id: str | None = None
    parentId: str | None = None
    kind: str
    label: str
    timestamp: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    duration_ms: int | None = Field(None, ge=0)


class EventBufferResponse(BaseModel):
    """Response model for the bus history."""

    events: list[EventResponse]
    total: int
    returned: int


class StatsResponse(BaseModel):
    """Response model for stats."""

    buffer_size: int
    buffer_capacity: int
    emitted_total: int
    subscriber_count: int
    event_kind_counts: dict[str, int]
    graph_size: int
    graph_max_events: int
    graph_window_seconds: int
    pruned_total: int
    timestamp: str


def parse_kind(kind: str | None) -> EventKind | None:
    """Parse a kind query parameter, answering 400 for unknown names."""
    if kind is None:
        return None
    try:
        return EventKind.parse(kind)
    except UnknownEventKindError as e:
        raise HTTPException(status_code=400, detail=str(e))


def create_observability_router(app: IApplication) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/events", response_model=EventBufferResponse)
    async def get_events(
        limit: int = Query(100, ge=1, le=1000),
        kind: str | None = Query(None, description="Filter by event kind"),
    ) -> dict:
        """Get the newest events from the bus history, oldest first."""
        event_kind = parse_kind(kind)
        bus = app.event_bus
        buffer = bus.filtered_snapshot(event_kind) if event_kind else bus.snapshot()
        events = buffer[-limit:]
        return {
            "events": [e.to_dict() for e in events],
            "total": len(buffer),
            "returned": len(events),
        }

    @router.post("/events", response_model=EventResponse, status_code=201)
    async def ingest_event(request: EventRequest) -> dict:
        """Emit an externally produced event on the bus."""
        record = request.model_dump()
        record["id"] = record["id"] or str(uuid.uuid4())
        record["timestamp"] = record["timestamp"] or datetime.now(timezone.utc)

        try:
            event = Event.from_dict(record)
        except InvalidEventError as e:
            raise HTTPException(status_code=400, detail=str(e))

        app.event_bus.emit(event)
        logger.debug("Ingested event %s (%s)", event.id, event.kind.value)
        return event.to_dict()

    @router.get("/stats", response_model=StatsResponse)
    async def get_stats() -> dict:
        """Get bus and graph statistics."""
        return app.stats()

    return router

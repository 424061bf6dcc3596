"""Causal graph API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, Body, HTTPException

from ...app import IApplication
from ...errors import InvalidEventError
from .observability import EventResponse


class AncestorsResponse(BaseModel):
    """Response model for an ancestor chain."""

    eventId: str
    ancestors: list[EventResponse]
    depth: int


class DescendantsResponse(BaseModel):
    """Response model for descendants or direct children."""

    eventId: str
    descendants: list[EventResponse]
    count: int


class RootCauseResponse(BaseModel):
    """Response model for a root cause lookup."""

    eventId: str
    rootCause: EventResponse | None
    found: bool


class ImportResponse(BaseModel):
    """Response model for a graph import."""

    imported: int
    event_count: int


def create_graph_router(app: IApplication) -> APIRouter:
    """Create graph router."""
    router = APIRouter(prefix="/api/graph", tags=["graph"])

    @router.get("")
    async def export_graph() -> dict[str, Any]:
        """Export the whole graph for bug reports."""
        return app.graph.export()

    @router.post("/import", response_model=ImportResponse)
    async def import_graph(document: dict[str, Any] = Body(...)) -> dict:
        """Merge an exported graph document."""
        try:
            imported = app.graph.import_document(document)
        except InvalidEventError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"imported": imported, "event_count": len(app.graph)}

    @router.get("/events/{event_id}", response_model=EventResponse)
    async def get_event(event_id: str) -> dict:
        """Get one event by id."""
        event = app.graph.get(event_id)
        if event is None:
            raise HTTPException(status_code=404, detail="Event not found")
        return event.to_dict()

    @router.get("/events/{event_id}/ancestors", response_model=AncestorsResponse)
    async def get_ancestors(event_id: str) -> dict:
        """Get the root-first ancestor chain of an event."""
        chain = app.graph.ancestors(event_id)
        return {
            "eventId": event_id,
            "ancestors": [e.to_dict() for e in chain],
            "depth": len(chain),
        }

    @router.get(
        "/events/{event_id}/descendants", response_model=DescendantsResponse
    )
    async def get_descendants(event_id: str) -> dict:
        """Get every event caused by an event, breadth-first."""
        events = app.graph.descendants(event_id)
        return {
            "eventId": event_id,
            "descendants": [e.to_dict() for e in events],
            "count": len(events),
        }

    @router.get("/events/{event_id}/children", response_model=DescendantsResponse)
    async def get_children(event_id: str) -> dict:
        """Get the direct children of an event."""
        events = app.graph.children(event_id)
        return {
            "eventId": event_id,
            "descendants": [e.to_dict() for e in events],
            "count": len(events),
        }

    @router.get("/events/{event_id}/root-cause", response_model=RootCauseResponse)
    async def get_root_cause(event_id: str) -> dict:
        """Find the root cause of an event."""
        root = app.graph.root_cause(event_id)
        return {
            "eventId": event_id,
            "rootCause": root.to_dict() if root else None,
            "found": root is not None,
        }

    return router

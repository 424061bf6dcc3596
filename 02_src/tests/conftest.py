"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeClock:
    """Settable UTC clock for pruning tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Create a settable clock."""
    return FakeClock()


@pytest.fixture
def propagator():
    """Create a context propagator."""
    from causality.context import CausalityPropagator

    return CausalityPropagator()


@pytest.fixture
def event_bus():
    """Create EventBus with the default capacity."""
    from causality.event_bus import EventBus

    return EventBus()


@pytest.fixture
def graph():
    """Create a CausalGraph that is not connected to any bus."""
    from causality.graph import CausalGraph

    return CausalGraph()


@pytest.fixture
def tracker(event_bus, propagator):
    """Create Tracker with event bus and propagator."""
    from causality.tracker import Tracker

    return Tracker(event_bus=event_bus, propagator=propagator)


@pytest.fixture
def make_event():
    """Factory for events with sensible defaults."""
    from causality.models import Event, EventKind

    def _make(event_id, parent_id=None, kind=EventKind.CUSTOM, **kwargs):
        return Event(
            id=event_id,
            parent_id=parent_id,
            kind=kind,
            label=kwargs.pop("label", event_id),
            **kwargs,
        )

    return _make


@pytest_asyncio.fixture
async def application():
    """Create and start an Application with default settings."""
    from causality.app import Application
    from causality.config import Settings

    app = Application(settings=Settings())
    await app.start()
    yield app
    await app.stop()


@pytest_asyncio.fixture
async def api_client(application):
    """HTTP client bound to the FastAPI app in-process."""
    from causality.api import create_fastapi_app

    fastapi_app = create_fastapi_app(application)
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

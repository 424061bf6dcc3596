"""Integration tests for the propagator -> bus -> graph flow."""

import asyncio
import json

import pytest

from causality.graph import CausalGraph
from causality.models import Event, EventKind


@pytest.mark.asyncio
async def test_full_flow(application):
    """Test a tap handler whose async work is traced back to the tap."""
    propagator = application.propagator
    tracker = application.tracker
    graph = application.graph
    subscription = application.event_bus.subscribe()

    async def fetch_cart():
        with tracker.timed(EventKind.NETWORK_EVENT, "GET /api/cart") as metadata:
            await asyncio.sleep(0.01)
            metadata["status_code"] = 200
        return propagator.current()

    async def on_tap():
        tap_ctx = propagator.current()
        tracker.track(EventKind.USER_ACTION, "user_tapped_cart")
        fetch_ctx = await propagator.run("fetch_cart", fetch_cart)
        state = tracker.track(EventKind.STATE_CHANGE, "cart_loaded")
        return tap_ctx, fetch_ctx, state

    tap_ctx, fetch_ctx, state = await propagator.run("tap", on_tap)

    assert fetch_ctx.parent_event_id == tap_ctx.event_id
    assert state.parent_id == tap_ctx.event_id

    delivered = subscription.drain()
    assert [e.label for e in delivered] == [
        "user_tapped_cart",
        "GET /api/cart",
        "cart_loaded",
    ]
    network = delivered[1]
    assert network.parent_id == fetch_ctx.event_id
    assert network.duration is not None

    # every tracked event is indexed by the connected graph
    assert all(graph.get(e.id) is e for e in delivered)
    assert [e.label for e in graph.children(tap_ctx.event_id)] == [
        "user_tapped_cart",
        "cart_loaded",
    ]


@pytest.mark.asyncio
async def test_context_events_form_a_chain(application):
    """Test emitting an event per context so contexts link as graph nodes."""
    propagator = application.propagator
    bus = application.event_bus

    def open_step(label):
        ctx = propagator.create_detached(label)
        bus.emit(
            Event(
                id=ctx.event_id,
                parent_id=ctx.parent_event_id,
                kind=EventKind.CUSTOM,
                label=label,
                timestamp=ctx.opened_at,
            )
        )
        return ctx

    with propagator.activate(open_step("root")):
        with propagator.activate(open_step("a")):
            with propagator.activate(open_step("b")):
                leaf = open_step("c")

    graph = application.graph
    assert [e.label for e in graph.ancestors(leaf.event_id)] == ["root", "a", "b", "c"]
    assert graph.root_cause(leaf.event_id).label == "root"


@pytest.mark.asyncio
async def test_bug_report_round_trip(application):
    """Test exporting a live graph and loading it into a standalone one."""
    tracker = application.tracker
    with application.propagator.scope("tap"):
        for i in range(3):
            tracker.track(EventKind.STATE_CHANGE, f"step{i}")

    document = json.loads(json.dumps(application.graph.export()))
    offline = CausalGraph()
    offline.import_document(document)

    for event_id in application.graph.event_ids:
        assert offline.ancestors(event_id) == application.graph.ancestors(event_id)
        assert offline.descendants(event_id) == application.graph.descendants(
            event_id
        )

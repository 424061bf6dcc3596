"""Tests for Tracker."""

import asyncio
from datetime import timedelta

import pytest

from causality.models import EventKind


class TestTrackerTrack:
    """Tests for Tracker.track() method."""

    def test_track_emits_event(self, tracker, event_bus):
        """Test that track() creates an Event and emits it."""
        event = tracker.track(
            EventKind.STATE_CHANGE,
            "cart_item_added",
            metadata={"sku": "A1"},
        )

        assert event_bus.snapshot() == (event,)
        assert event.kind is EventKind.STATE_CHANGE
        assert event.label == "cart_item_added"
        assert event.metadata == {"sku": "A1"}

    def test_track_outside_scope_is_root(self, tracker):
        """Test that events outside any context have no parent."""
        assert tracker.track(EventKind.USER_ACTION, "tap").parent_id is None

    def test_track_uses_current_context(self, tracker, propagator):
        """Test that the active context becomes the parent."""
        with propagator.scope("user_tapped_login") as ctx:
            event = tracker.track(EventKind.NETWORK_EVENT, "POST /login")
        assert event.parent_id == ctx.event_id

    def test_explicit_parent_wins(self, tracker, propagator):
        """Test that an explicit parent id overrides the context."""
        with propagator.scope("outer"):
            event = tracker.track(EventKind.CUSTOM, "x", parent_id="explicit")
        assert event.parent_id == "explicit"

    def test_track_duration(self, tracker):
        """Test span events carry a duration."""
        event = tracker.track(
            EventKind.NETWORK_EVENT, "GET /", duration=timedelta(milliseconds=40)
        )
        assert event.to_dict()["duration_ms"] == 40

    def test_track_multiple_events(self, tracker, event_bus):
        """Test tracking multiple events."""
        tracker.track(EventKind.CUSTOM, "event1")
        tracker.track(EventKind.CUSTOM, "event2")
        tracker.track(EventKind.CUSTOM, "event3")

        assert [e.label for e in event_bus.snapshot()] == ["event1", "event2", "event3"]

    @pytest.mark.asyncio
    async def test_track_after_await(self, tracker, propagator):
        """Test that events created after an await keep their parent."""
        async def handler():
            ctx = propagator.current()
            await asyncio.sleep(0)
            return ctx, tracker.track(EventKind.STATE_CHANGE, "updated")

        ctx, event = await propagator.run("tap", handler)
        assert event.parent_id == ctx.event_id


class TestTrackerTimed:
    """Tests for Tracker.timed() spans."""

    def test_timed_emits_span(self, tracker, event_bus):
        """Test that a timed block emits one event with a duration."""
        with tracker.timed(EventKind.NETWORK_EVENT, "GET /api") as metadata:
            metadata["status_code"] = 200

        (event,) = event_bus.snapshot()
        assert event.label == "GET /api"
        assert event.metadata == {"status_code": 200}
        assert event.duration is not None
        assert event.duration >= timedelta(0)

    def test_timed_records_error(self, tracker, event_bus):
        """Test that failures are recorded and re-raised."""
        with pytest.raises(ValueError):
            with tracker.timed(EventKind.NETWORK_EVENT, "GET /api"):
                raise ValueError("boom")

        (event,) = event_bus.snapshot()
        assert event.metadata["error"] == "ValueError"

    def test_timed_inside_scope(self, tracker, propagator, event_bus):
        """Test that spans are parented to the active context."""
        with propagator.scope("tap") as ctx:
            with tracker.timed(EventKind.NETWORK_EVENT, "GET /api"):
                pass
        assert event_bus.snapshot()[0].parent_id == ctx.event_id

"""Tests for CausalityPropagator."""

import asyncio
import contextvars
import threading

import pytest

from causality.context import CausalityPropagator, current_context
from causality.errors import ContextMintError


class TestCurrent:
    """Tests for reading the active context."""

    def test_current_outside_scope(self, propagator):
        """Test that current() is None outside any scope."""
        assert propagator.current() is None
        assert current_context() is None

    def test_current_inside_run(self, propagator):
        """Test that run installs the new context."""
        seen = propagator.run("tap", propagator.current)
        assert seen is not None
        assert seen.origin_label == "tap"
        assert seen.parent_event_id is None
        assert propagator.current() is None


class TestRun:
    """Tests for CausalityPropagator.run()."""

    def test_run_returns_result(self, propagator):
        """Test that run passes arguments through and returns the result."""
        assert propagator.run("add", lambda a, b: a + b, 2, b=3) == 5

    def test_nested_run_links_parent(self, propagator):
        """Test that a nested run is parented to the enclosing context."""

        def outer():
            parent = propagator.current()
            child = propagator.run("inner", propagator.current)
            return parent, child

        parent, child = propagator.run("outer", outer)
        assert child.parent_event_id == parent.event_id
        assert child.event_id != parent.event_id

    def test_context_restored_after_exception(self, propagator):
        """Test that the previous context comes back when fn raises."""

        def boom():
            raise RuntimeError("fail")

        with propagator.scope("outer") as outer:
            with pytest.raises(RuntimeError):
                propagator.run("inner", boom)
            assert propagator.current() is outer
        assert propagator.current() is None

    @pytest.mark.asyncio
    async def test_run_async_survives_await(self, propagator):
        """Test that the context is visible after suspension points."""

        async def work():
            before = propagator.current()
            await asyncio.sleep(0)
            await asyncio.sleep(0.01)
            return before, propagator.current()

        before, after = await propagator.run("async_tap", work)
        assert before is after
        assert after.origin_label == "async_tap"
        assert propagator.current() is None

    @pytest.mark.asyncio
    async def test_run_async_nested(self, propagator):
        """Test nested async runs form a chain."""

        async def inner():
            await asyncio.sleep(0)
            return propagator.current()

        async def outer():
            await asyncio.sleep(0)
            parent = propagator.current()
            child = await propagator.run("inner", inner)
            return parent, child

        parent, child = await propagator.run("outer", outer)
        assert child.parent_event_id == parent.event_id

    @pytest.mark.asyncio
    async def test_run_sync_callable_returning_awaitable(self, propagator):
        """Test that awaitables returned by a plain callable keep the context."""

        async def work():
            await asyncio.sleep(0)
            return propagator.current()

        ctx = await propagator.run("lambda", lambda: work())
        assert ctx is not None
        assert ctx.origin_label == "lambda"

    @pytest.mark.asyncio
    async def test_tasks_inherit_context(self, propagator):
        """Test that tasks created inside a scope see the scope's context."""

        async def spawned():
            await asyncio.sleep(0)
            return propagator.current()

        async def work():
            task = asyncio.create_task(spawned())
            return propagator.current(), await task

        scope_ctx, task_ctx = await propagator.run("spawn", work)
        assert task_ctx is scope_ctx

    @pytest.mark.asyncio
    async def test_concurrent_scopes_isolated(self, propagator):
        """Test that concurrent tasks do not see each other's contexts."""

        async def work(label):
            await asyncio.sleep(0.01)
            return propagator.current().origin_label

        results = await asyncio.gather(
            *[propagator.run(f"task_{i}", work, f"task_{i}") for i in range(10)]
        )
        assert results == [f"task_{i}" for i in range(10)]


class TestDetached:
    """Tests for create_detached() and activate()."""

    def test_create_detached_does_not_install(self, propagator):
        """Test that a detached context is not current."""
        with propagator.scope("outer") as outer:
            detached = propagator.create_detached("request")
            assert propagator.current() is outer
        assert detached.parent_event_id == outer.event_id
        assert detached.origin_label == "request"

    def test_create_detached_without_parent(self, propagator):
        """Test a detached context at top level is a root."""
        ctx = propagator.create_detached("timer")
        assert ctx.parent_event_id is None
        assert ctx.event_id

    def test_activate_restores_manually(self, propagator):
        """Test that a stored context can be re-installed later."""
        stored = propagator.create_detached("request")
        with propagator.activate(stored):
            assert propagator.current() is stored
            child = propagator.create_detached("response")
        assert child.parent_event_id == stored.event_id
        assert propagator.current() is None

    def test_activate_in_other_thread(self, propagator):
        """Test explicit hand-off of a stored context to a worker thread."""
        results = {}

        def worker(ctx):
            with propagator.activate(ctx):
                results["inside"] = propagator.current()

        with propagator.scope("main") as ctx:
            thread = threading.Thread(target=worker, args=(ctx,))
            thread.start()
            thread.join()

        assert results["inside"] is ctx

    def test_copy_context_carries_scope(self, propagator):
        """Test that contextvars.copy_context() snapshots the active scope."""
        with propagator.scope("main") as ctx:
            snapshot = contextvars.copy_context()
        assert snapshot.run(propagator.current) is ctx


class TestMintFailure:
    """Tests for identifier generation failures."""

    def test_mint_failure_raises(self):
        """Test that a failing id factory is fatal to the call."""

        def broken():
            raise OSError("no entropy")

        propagator = CausalityPropagator(id_factory=broken)
        with pytest.raises(ContextMintError):
            propagator.create_detached("x")

    def test_mint_failure_does_not_run_fn(self):
        """Test that fn is not called and no context leaks."""
        calls = []
        propagator = CausalityPropagator(id_factory=lambda: 1 / 0)

        with pytest.raises(ContextMintError):
            propagator.run("x", lambda: calls.append(1))
        assert calls == []
        assert propagator.current() is None

    def test_custom_id_factory(self):
        """Test that contexts use the injected id factory."""
        ids = iter(["a", "b"])
        propagator = CausalityPropagator(id_factory=lambda: next(ids))
        with propagator.scope("outer") as outer:
            inner = propagator.create_detached("inner")
        assert outer.event_id == "a"
        assert inner.event_id == "b"
        assert inner.parent_event_id == "a"

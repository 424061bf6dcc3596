"""Ambient causality context propagation built on contextvars.

A context installed by :meth:`CausalityPropagator.run` (or ``scope``) is
visible to everything executed in its dynamic extent: nested calls, code
after ``await``, and asyncio tasks created inside the scope (asyncio copies
the current contextvars into new tasks). It is not visible to threads
started with ``threading.Thread`` or to other processes; hand those a
context from ``create_detached`` and re-install it with ``activate``.
"""

import functools
import inspect
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterator, Protocol, TypeVar

from ..errors import ContextMintError
from ..models import CausalityContext

T = TypeVar("T")

_active_context: ContextVar[CausalityContext | None] = ContextVar(
    "causality_context", default=None
)


def current_context() -> CausalityContext | None:
    """Return the active causality context, or None outside any scope."""
    return _active_context.get()


def _uuid4() -> str:
    return str(uuid.uuid4())


class IPropagator(Protocol):
    """Mint and install causality contexts."""

    def run(self, origin_label: str, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run fn inside a new child context."""
        ...

    def current(self) -> CausalityContext | None:
        """Return the active context or None."""
        ...

    def create_detached(self, origin_label: str) -> CausalityContext:
        """Mint a child of the active context without installing it."""
        ...


class CausalityPropagator:
    """Creates hierarchical causality contexts and installs them as current."""

    def __init__(self, id_factory: Callable[[], str] = _uuid4):
        self._id_factory = id_factory

    def current(self) -> CausalityContext | None:
        """Return the active context, or None. Never raises."""
        return _active_context.get()

    def create_detached(self, origin_label: str) -> CausalityContext:
        """Mint a context whose parent is the active one, without installing it."""
        parent = self.current()
        try:
            event_id = self._id_factory()
        except Exception as e:
            raise ContextMintError(
                f"Could not mint context for {origin_label!r}: {e}"
            ) from e

        return CausalityContext(
            event_id=event_id,
            parent_event_id=parent.event_id if parent else None,
            origin_label=origin_label,
            opened_at=datetime.now(timezone.utc),
        )

    @contextmanager
    def activate(self, context: CausalityContext) -> Iterator[CausalityContext]:
        """Install an existing context for the body of the ``with`` block."""
        token = _active_context.set(context)
        try:
            yield context
        finally:
            _active_context.reset(token)

    @contextmanager
    def scope(self, origin_label: str) -> Iterator[CausalityContext]:
        """Open a new child context for the body of the ``with`` block."""
        context = self.create_detached(origin_label)
        with self.activate(context):
            yield context

    def run(self, origin_label: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run fn inside a new causality context and return its result.

        The new context's parent is whatever context is active at call time.
        For a coroutine function (or a callable returning an awaitable) the
        return value is an awaitable; the context stays installed until that
        awaitable completes.
        """
        context = self.create_detached(origin_label)

        if inspect.iscoroutinefunction(fn):
            return self._run_awaitable(
                context, functools.partial(fn, *args, **kwargs)
            )

        with self.activate(context):
            result = fn(*args, **kwargs)

        if inspect.isawaitable(result):
            return self._run_awaitable(context, lambda: result)
        return result

    async def _run_awaitable(
        self,
        context: CausalityContext,
        factory: Callable[[], Awaitable[T]],
    ) -> T:
        with self.activate(context):
            return await factory()

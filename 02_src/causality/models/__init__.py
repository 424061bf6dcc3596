"""Core data models for the causality core."""

from .context import CausalityContext
from .event import Event, EventKind

__all__ = [
    "CausalityContext",
    "Event",
    "EventKind",
]

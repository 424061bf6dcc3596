"""Causality core: causal events, context propagation, event bus and graph."""

from .app import Application, IApplication
from .config import Settings
from .context import CausalityPropagator, IPropagator, current_context
from .errors import (
    CausalityError,
    ConfigError,
    ContextMintError,
    InvalidEventError,
    UnknownEventKindError,
)
from .event_bus import EventBus, IEventBus, Subscription
from .graph import CausalGraph, ICausalGraph
from .models import CausalityContext, Event, EventKind
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    "Settings",
    # Models
    "CausalityContext",
    "Event",
    "EventKind",
    # Components
    "CausalityPropagator",
    "IPropagator",
    "current_context",
    "IEventBus",
    "EventBus",
    "Subscription",
    "ICausalGraph",
    "CausalGraph",
    "ITracker",
    "Tracker",
    # Errors
    "CausalityError",
    "ConfigError",
    "ContextMintError",
    "InvalidEventError",
    "UnknownEventKindError",
]

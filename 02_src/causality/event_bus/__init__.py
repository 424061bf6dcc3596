"""EventBus module."""

from .event_bus import EventBus, EventListener, IEventBus
from .subscription import Subscription

__all__ = ["EventBus", "EventListener", "IEventBus", "Subscription"]

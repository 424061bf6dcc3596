"""Causality context data model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CausalityContext:
    """Ambient marker for "what is currently happening".

    ``event_id`` is stamped as ``parent_id`` onto events created while the
    context is active. ``parent_event_id`` is the context that was active when
    this one was opened.
    """

    event_id: str
    origin_label: str
    opened_at: datetime
    parent_event_id: str | None = None

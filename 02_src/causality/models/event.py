"""Causal event data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from ..errors import InvalidEventError, UnknownEventKindError


class EventKind(str, Enum):
    """Category of a causal event. The value is the stable wire name."""

    USER_ACTION = "userAction"
    STATE_CHANGE = "stateChange"
    NETWORK_EVENT = "networkEvent"
    UI_REBUILD = "uiRebuild"
    CRASH_EVENT = "crashEvent"
    LAYOUT_DECISION = "layoutDecision"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, name: object) -> "EventKind":
        """Look up a kind by wire name. Raises UnknownEventKindError."""
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownEventKindError(name) from None


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidEventError(f"Invalid timestamp: {value!r}") from None
    else:
        raise InvalidEventError(f"Invalid timestamp: {value!r}")
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, eq=False)
class Event:
    """One causally relevant occurrence.

    Events are immutable. Two events with the same ``id`` are the same
    event: equality and hashing look at ``id`` only.
    """

    kind: EventKind
    label: str
    id: str = field(default_factory=_new_id)
    parent_id: str | None = None
    timestamp: datetime = field(default_factory=_utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)
    duration: timedelta | None = None  # span-like events only

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", EventKind.parse(self.kind))
        object.__setattr__(self, "metadata", dict(self.metadata or {}))
        if self.timestamp.tzinfo is None:
            object.__setattr__(
                self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc)
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return (
            f"Event({self.kind.value}: {self.label!r} "
            f"id={self.id} parent={self.parent_id})"
        )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def derive(
        self,
        kind: EventKind,
        label: str,
        metadata: dict[str, Any] | None = None,
        duration: timedelta | None = None,
    ) -> "Event":
        """Create a new event caused by this one."""
        return Event(
            kind=kind,
            label=label,
            parent_id=self.id,
            metadata=metadata or {},
            duration=duration,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to EventJSON."""
        return {
            "id": self.id,
            "parentId": self.parent_id,
            "kind": self.kind.value,
            "label": self.label,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata),
            "duration_ms": (
                self.duration // timedelta(milliseconds=1)
                if self.duration is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        """Parse EventJSON.

        Raises:
            UnknownEventKindError: ``kind`` is not a known wire name.
            InvalidEventError: a required field is missing or malformed.
        """
        if not isinstance(data, dict):
            raise InvalidEventError(f"Event record must be an object, got {data!r}")

        for key in ("id", "kind", "label", "timestamp"):
            if data.get(key) is None:
                raise InvalidEventError(f"Missing field: {key}", data)

        try:
            kind = EventKind.parse(data["kind"])
        except UnknownEventKindError as e:
            raise UnknownEventKindError(e.kind_name, data) from None

        event_id = data["id"]
        parent_id = data.get("parentId")
        if not isinstance(event_id, str) or not event_id:
            raise InvalidEventError("Field id must be a non-empty string", data)
        if parent_id is not None and not isinstance(parent_id, str):
            raise InvalidEventError("Field parentId must be a string or null", data)

        metadata = data.get("metadata")
        if metadata is None:
            metadata = {}
        elif not isinstance(metadata, dict):
            raise InvalidEventError("Field metadata must be an object", data)

        duration_ms = data.get("duration_ms")
        duration = None
        if duration_ms is not None:
            if isinstance(duration_ms, bool) or not isinstance(
                duration_ms, (int, float)
            ):
                raise InvalidEventError("Field duration_ms must be a number", data)
            try:
                duration = timedelta(milliseconds=duration_ms)
            except (OverflowError, ValueError):
                raise InvalidEventError(
                    "Field duration_ms out of range", data
                ) from None

        return cls(
            id=event_id,
            parent_id=parent_id,
            kind=kind,
            label=str(data["label"]),
            timestamp=_parse_timestamp(data["timestamp"]),
            metadata=metadata,
            duration=duration,
        )

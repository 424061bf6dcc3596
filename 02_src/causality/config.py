"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_HISTORY_CAPACITY = 500
DEFAULT_SUBSCRIBER_QUEUE_SIZE = 1000
DEFAULT_GRAPH_MAX_EVENTS = 2000
DEFAULT_GRAPH_WINDOW_SECONDS = 300


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    """Read a positive integer from the environment."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None

    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Tunables for the bus and graph."""

    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    subscriber_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE
    graph_max_events: int = DEFAULT_GRAPH_MAX_EVENTS
    graph_window_seconds: int = DEFAULT_GRAPH_WINDOW_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CAUSALITY_* environment variables."""
        return cls(
            history_capacity=_env_int(
                "CAUSALITY_HISTORY_CAPACITY", DEFAULT_HISTORY_CAPACITY
            ),
            subscriber_queue_size=_env_int(
                "CAUSALITY_SUBSCRIBER_QUEUE_SIZE", DEFAULT_SUBSCRIBER_QUEUE_SIZE
            ),
            graph_max_events=_env_int(
                "CAUSALITY_GRAPH_MAX_EVENTS", DEFAULT_GRAPH_MAX_EVENTS
            ),
            graph_window_seconds=_env_int(
                "CAUSALITY_GRAPH_WINDOW_SECONDS", DEFAULT_GRAPH_WINDOW_SECONDS
            ),
        )

"""SIM implementation - hardcoded causal scenarios posted over HTTP."""

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from causality.context import CausalityPropagator
from causality.logging_config import get_logger
from causality.models import Event, EventKind
from causality.tracker import ITracker

logger = get_logger(__name__)

# (origin label, HTTP method, path, status, state change, rebuilt widget)
SCENARIOS = [
    ("user_tapped_login", "POST", "/api/login", 200, "auth_succeeded", "HomeScreen"),
    ("user_added_to_cart", "POST", "/api/cart", 201, "cart_updated", "CartBadge"),
    ("user_opened_profile", "GET", "/api/profile", 500, "profile_failed", "ErrorBanner"),
]


class ISim(Protocol):
    """Generate test data. Hardcoded causal chains."""

    async def start(self) -> None:
        """Start hardcoded scenario."""
        ...

    async def stop(self) -> None:
        """Stop scenario."""
        ...


class Sim:
    """SIM with hardcoded causal chains for exercising the API."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        tracker: ITracker | None = None,
        propagator: CausalityPropagator | None = None,
        rounds: int = 3,
        delay: tuple[float, float] = (1.0, 3.0),
        client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url
        self._tracker = tracker
        self._propagator = propagator or CausalityPropagator()
        self._rounds = rounds
        self._delay = delay
        self._running = False
        self._task: asyncio.Task | None = None
        self._client = client
        self._owns_client = client is None
        self._sent = 0

    @property
    def sent(self) -> int:
        """Number of events accepted by the API."""
        return self._sent

    @property
    def running(self) -> bool:
        return self._running

    def set_tracker(self, tracker: ITracker) -> None:
        """Inject tracker for SIM lifecycle events."""
        self._tracker = tracker

    async def start(self) -> None:
        """Start hardcoded scenario."""
        if self._running:
            return

        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient()

        # Start background task
        self._task = asyncio.create_task(self._run_scenario())

    async def wait(self) -> None:
        """Wait for the scenario task to finish."""
        if self._task:
            await self._task

    async def stop(self) -> None:
        """Stop scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _run_scenario(self) -> None:
        """Run every scenario for the configured number of rounds."""
        try:
            if self._tracker:
                self._tracker.track(
                    EventKind.CUSTOM,
                    "sim_started",
                    {"scenario": "hardcoded", "rounds": self._rounds},
                )

            for _ in range(self._rounds):
                if not self._running:
                    break

                for scenario in SCENARIOS:
                    if not self._running:
                        break

                    await self._play(*scenario)

                    # Random delay between chains
                    await asyncio.sleep(random.uniform(*self._delay))

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e)
        finally:
            self._running = False
            if self._tracker:
                self._tracker.track(
                    EventKind.CUSTOM,
                    "sim_completed",
                    {"scenario": "hardcoded", "sent": self._sent},
                )

    async def _play(
        self,
        origin: str,
        method: str,
        path: str,
        status: int,
        state_change: str,
        widget: str,
    ) -> None:
        """Post one tap -> request -> response -> state -> rebuild chain."""
        context = self._propagator.create_detached(origin)
        await self._send(
            Event(
                id=context.event_id,
                parent_id=context.parent_event_id,
                kind=EventKind.USER_ACTION,
                label=origin,
                timestamp=context.opened_at,
            )
        )

        with self._propagator.activate(context):
            request = Event(
                kind=EventKind.NETWORK_EVENT,
                label=f"HTTP {method} {path}",
                parent_id=self._propagator.current().event_id,
                metadata={"method": method, "path": path, "phase": "request"},
            )
            await self._send(request)

            started = datetime.now(timezone.utc)
            await asyncio.sleep(random.uniform(0.01, 0.05))
            response = request.derive(
                EventKind.NETWORK_EVENT,
                f"HTTP {status} {method} {path}",
                metadata={
                    "method": method,
                    "path": path,
                    "phase": "response",
                    "status_code": status,
                },
                duration=datetime.now(timezone.utc) - started,
            )
            await self._send(response)

            kind = EventKind.STATE_CHANGE if status < 400 else EventKind.CRASH_EVENT
            state = response.derive(kind, state_change)
            await self._send(state)
            await self._send(
                state.derive(
                    EventKind.UI_REBUILD,
                    f"{widget} rebuilt",
                    metadata={"widget_type": widget},
                )
            )

    async def _send(self, event: Event) -> dict[str, Any] | None:
        """Send an event via HTTP API."""
        if not self._client:
            return None

        try:
            response = await self._client.post(
                f"{self._api_url}/api/events",
                json=event.to_dict(),
                timeout=10.0,
            )

            if response.status_code == 201:
                self._sent += 1
                logger.info("SIM: %s (%s)", event.label, event.kind.value)
                return response.json()

            logger.error(
                "SIM: Error sending event: %s %s",
                response.status_code,
                response.text,
            )

        except httpx.HTTPError as e:
            logger.error("SIM: Failed to send event: %s", e)
        return None

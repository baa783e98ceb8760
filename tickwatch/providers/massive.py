import asyncio
import logging
from typing import Optional

from tickwatch.providers.base import AGGREGATES, QUOTES, MarketDataProvider
from tickwatch.time_utils import utc_now


log = logging.getLogger(__name__)


class MassiveProvider(MarketDataProvider):
    """
    Placeholder for the Massive data service.

    Accepts quote and aggregate subscriptions and keeps the consumer's
    status line alive with periodic heartbeats. It does not yet produce
    market data.
    """

    name = "massive"
    display_name = "Massive"

    SUPPORTED_CATEGORIES = frozenset({QUOTES, AGGREGATES})

    HEARTBEAT_INTERVAL = 15.0  # seconds

    def __init__(self, heartbeat_interval: float = HEARTBEAT_INTERVAL):
        super().__init__()
        self.heartbeat_interval = heartbeat_interval
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def is_beating(self) -> bool:
        return self._stop is not None and not self._stop.is_set()

    async def wait_stopped(self) -> None:
        if self._heartbeat_task is not None:
            await asyncio.gather(self._heartbeat_task, return_exceptions=True)

    async def _on_subscribe(self) -> None:
        self._stop_heartbeat()
        if not any(self._subscriptions.values()):
            return

        stop = asyncio.Event()
        self._stop = stop
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(stop), name=f"{self.name}-heartbeat"
        )

    def _on_disconnect(self) -> None:
        self._stop_heartbeat()

    def _stop_heartbeat(self) -> None:
        if self._stop is not None:
            self._stop.set()
        self._stop = None

    async def _heartbeat_loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.heartbeat_interval)
            except asyncio.TimeoutError:
                self.emit_status(f"Massive heartbeat ({utc_now().isoformat(timespec='seconds')})")

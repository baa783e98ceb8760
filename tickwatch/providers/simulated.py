import asyncio
import logging

from tickwatch.providers.base import MarketDataProvider


log = logging.getLogger(__name__)


class SimulatedProvider(MarketDataProvider):
    """
    Acknowledge-only stub.

    Connect and subscribe succeed and report themselves on the event
    channel, but no market data is ever produced. Lets the rest of the
    system run without live credentials (any non-empty key is accepted).
    """

    name = "simulated"
    display_name = "provider"

    CONNECT_DELAY = 0.2  # seconds

    def __init__(self, connect_delay: float = CONNECT_DELAY):
        super().__init__()
        self.connect_delay = connect_delay

    async def _on_connect(self, api_key: str) -> None:
        await asyncio.sleep(self.connect_delay)

    async def _on_subscribe(self) -> None:
        log.debug("Simulated subscription: %s", self._subscriptions)

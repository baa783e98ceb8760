# docs/examples/watchlist.py
"""Run a live watchlist against Alpha Vantage and log momentum changes."""
import asyncio
import logging

from tickwatch import AlphaVantageProvider, LiveDataStore, MomentumSignal
from tickwatch.runner import configure_logging

log = logging.getLogger(__name__)


WATCHLIST = ["SPY", "SPXL", "SPXS"]


async def main(api_key: str) -> None:
    store = LiveDataStore(AlphaVantageProvider(polling_interval=15, intraday_interval="5min"))

    await store.connect_and_subscribe(api_key, WATCHLIST, want_trades=False)
    if not store.is_connected:
        log.error("Could not connect: %s", store.last_status_message)
        return

    previous: dict[str, MomentumSignal] = {}
    try:
        while True:
            await asyncio.sleep(5)
            for symbol in WATCHLIST:
                signal = store.momentum(symbol)
                if previous.get(symbol) != signal:
                    previous[symbol] = signal
                    log.info("%s momentum -> %s (last %s)", symbol, signal.value, store.last_price(symbol))
    finally:
        await store.aclose()


if __name__ == "__main__":
    import os

    configure_logging("INFO")
    asyncio.run(main(os.environ.get("TICKWATCH_API_KEY", "")))

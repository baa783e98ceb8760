"""
Watchlist orchestration.
"""

import asyncio
import logging
import sys
from typing import Optional

from tickwatch.config import Settings
from tickwatch.providers import (
    AlphaVantageProvider,
    MarketDataProvider,
    MassiveProvider,
    SimulatedProvider,
)
from tickwatch.store import LiveDataStore


log = logging.getLogger(__name__)


__all__ = [
    "PROVIDERS",
    "configure_logging",
    "create_provider",
    "log_watchlist",
    "run_watchlist",
]


PROVIDERS: dict[str, type[MarketDataProvider]] = {
    AlphaVantageProvider.name: AlphaVantageProvider,
    MassiveProvider.name: MassiveProvider,
    SimulatedProvider.name: SimulatedProvider,
}


def configure_logging(level: str = "INFO", force: bool = False) -> None:
    """
    Configure root logger with console output.

    By default, this is non-destructive: if the root logger already has handlers,
    it will do nothing (assuming the application has configured logging).

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        force: If True, clear existing handlers and force this configuration
    """
    root_logger = logging.getLogger()

    if root_logger.hasHandlers() and not force:
        return

    root_logger.setLevel(level.upper())

    if force:
        root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def create_provider(settings: Settings) -> MarketDataProvider:
    """Instantiate the provider named by ``settings.provider``."""
    try:
        provider_class = PROVIDERS[settings.provider]
    except KeyError:
        raise ValueError(f"Unknown provider {settings.provider!r}") from None

    if provider_class is AlphaVantageProvider:
        return AlphaVantageProvider(
            polling_interval=settings.polling_interval,
            intraday_interval=settings.intraday_interval,
        )
    return provider_class()


def log_watchlist(store: LiveDataStore, symbols: list[str]) -> None:
    """Log one line per symbol: last price, momentum and latest bar close."""
    for symbol in symbols:
        snapshot = store.snapshot(symbol)
        price = f"{snapshot.last_price:.2f}" if snapshot.last_price is not None else "-"
        close = f"{snapshot.candle.close:.2f}" if snapshot.candle is not None else "-"
        log.info(
            "%-6s last=%s bar_close=%s momentum=%s",
            symbol,
            price,
            close,
            snapshot.momentum.value,
        )


async def _run_watchlist_async(settings: Settings, report_interval: float) -> None:
    store = LiveDataStore(create_provider(settings))

    log.info(
        "Watching %d symbol%s via %s: %s",
        len(settings.symbols),
        "s" if len(settings.symbols) != 1 else "",
        settings.provider,
        ", ".join(settings.symbols),
    )

    try:
        await store.connect_and_subscribe(settings.api_key, settings.symbols)
        if not store.is_connected:
            log.error("%s", store.last_status_message)
            return

        while True:
            await asyncio.sleep(report_interval)
            log_watchlist(store, settings.symbols)
            log.info("Status: %s", store.last_status_message or "-")

    except asyncio.CancelledError:
        log.info("Watchlist cancelled")
        raise
    finally:
        await store.aclose()
        store.provider.close()


def run_watchlist(
    settings: Optional[Settings] = None,
    report_interval: float = 30.0,
    setup_logging: bool = True,
) -> None:
    """
    Run a live watchlist until interrupted.

    This is the synchronous entry point. It:
      - Loads ``Settings.from_env()`` when no settings are supplied.
      - Builds the configured provider and a ``LiveDataStore`` around it.
      - Connects, subscribes and logs a watchlist summary every
        ``report_interval`` seconds.
      - Disconnects cleanly on Ctrl-C.

    Args:
        settings: Explicit settings; read from the environment when None.
        report_interval: Seconds between watchlist summaries.
        setup_logging: If `True`, configures the root logger. Set to `False`
            if the application handles its own logging setup.
    """
    exit_code = 0

    try:
        settings = settings if settings is not None else Settings.from_env()
        settings.validate()

        if setup_logging:
            configure_logging(settings.log_level)

        log.info("=" * 70)
        log.info("Tickwatch")
        log.info("=" * 70)

        asyncio.run(_run_watchlist_async(settings, report_interval))

    except KeyboardInterrupt:
        log.info("")
        log.info("-" * 70)
        log.info("Interrupted by user - shutting down gracefully")

    except Exception as e:
        log.exception("Fatal error in watchlist runner: %s", e)
        exit_code = 1

    finally:
        log.info("=" * 70)
        log.info("Tickwatch shut down complete")
        log.info("=" * 70)

    if exit_code:
        sys.exit(exit_code)

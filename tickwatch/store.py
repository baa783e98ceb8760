"""
Live market state for a display layer.

``LiveDataStore`` is the single consumer of a provider's event channel.
It keeps the last-known trade, quote and bar per symbol and drives the
momentum engine. All mutation happens inside its one consuming task (or
in the synchronous public calls on the same event loop), so readers can
use the plain attributes without locking.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from tickwatch.errors import ProviderError
from tickwatch.events import AggregateEvent, MarketEvent, QuoteEvent, StatusEvent, TradeEvent
from tickwatch.marketdata import Candle, CandleHistory, Quote, Trade
from tickwatch.momentum import MomentumEngine, MomentumSignal
from tickwatch.providers import MarketDataProvider
from tickwatch.time_utils import utc_now


log = logging.getLogger(__name__)


__all__ = [
    "LiveDataStore",
    "SymbolSnapshot",
]


@dataclass(frozen=True)
class SymbolSnapshot:
    """Point-in-time view of everything known about one symbol."""

    symbol: str
    trade: Optional[Trade]
    quote: Optional[Quote]
    candle: Optional[Candle]
    last_price: Optional[float]
    momentum: MomentumSignal


class LiveDataStore:
    """
    Folds a provider's event stream into per-symbol state.

    Example:
        store = LiveDataStore(AlphaVantageProvider())
        await store.connect_and_subscribe(api_key, ["SPY", "QQQ"])

        store.last_quotes["SPY"]
        store.momentum("SPY")

        store.disconnect()
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        engine: Optional[MomentumEngine] = None,
        history_length: int = 200,
    ):
        """
        Args:
            provider: The market data source to drive
            engine: Momentum engine (a default one is created when omitted)
            history_length: Bars retained per symbol in ``history()``
        """
        self.provider = provider
        self.engine = engine if engine is not None else MomentumEngine()
        self.history_length = history_length

        self.is_connected: bool = provider.is_connected
        self.last_trades: dict[str, Trade] = {}
        self.last_quotes: dict[str, Quote] = {}
        self.last_aggregates: dict[str, Candle] = {}
        self.last_status_message: Optional[str] = None
        self.last_update: Optional[datetime] = None

        self._histories: dict[str, CandleHistory] = {}
        self._events_task: Optional[asyncio.Task] = None

    @property
    def is_consuming(self) -> bool:
        return self._events_task is not None and not self._events_task.done()

    @property
    def symbols(self) -> list[str]:
        """Every symbol with at least one recorded trade, quote or bar."""
        return sorted(set(self.last_trades) | set(self.last_quotes) | set(self.last_aggregates))

    async def connect_and_subscribe(
        self,
        api_key: str,
        symbols: Iterable[str],
        want_trades: bool = True,
        want_quotes: bool = True,
        want_aggregates: bool = True,
    ) -> None:
        """
        Connect the provider, subscribe to ``symbols`` and start consuming events.

        Calling it again while connected resubscribes with the new symbols.
        Never raises for provider failures: the outcome is reported through
        ``is_connected`` and ``last_status_message``.
        """
        self._stop_consuming()
        dropped = self.provider.events.clear()
        if dropped:
            log.debug("Discarded %d event(s) left over from the previous session", dropped)

        # A bare string is passed through so the provider rejects it
        if not isinstance(symbols, str):
            symbols = list(symbols)

        try:
            await self.provider.connect(api_key)
            self.is_connected = self.provider.is_connected
            self.last_status_message = "Connected"

            await self.provider.subscribe(
                trades=symbols if want_trades else [],
                quotes=symbols if want_quotes else [],
                aggregates=symbols if want_aggregates else [],
            )
        except ProviderError as e:
            self._fail(str(e))
            return
        except Exception as e:
            log.exception("Unexpected failure connecting %r", self.provider)
            self._fail(str(e) or type(e).__name__)
            return

        self._events_task = asyncio.create_task(self._consume(), name="tickwatch-events")

    def disconnect(self) -> None:
        """Stop consuming and disconnect the provider. Idempotent."""
        self._stop_consuming()
        self.provider.disconnect()
        self.is_connected = self.provider.is_connected
        self.last_status_message = "Disconnected"

    async def aclose(self) -> None:
        """Disconnect and wait for the consuming task to finish."""
        task = self._events_task
        self.disconnect()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def momentum(self, symbol: str) -> MomentumSignal:
        """Current momentum classification; neutral for unknown symbols."""
        return self.engine.signal(symbol)

    def last_price(self, symbol: str) -> Optional[float]:
        """Last trade price, else the quote mid-price, else None."""
        trade = self.last_trades.get(symbol)
        if trade is not None:
            return trade.price
        quote = self.last_quotes.get(symbol)
        if quote is not None:
            return quote.mid_price
        return None

    def history(self, symbol: str) -> Optional[CandleHistory]:
        return self._histories.get(symbol)

    def snapshot(self, symbol: str) -> SymbolSnapshot:
        return SymbolSnapshot(
            symbol=symbol,
            trade=self.last_trades.get(symbol),
            quote=self.last_quotes.get(symbol),
            candle=self.last_aggregates.get(symbol),
            last_price=self.last_price(symbol),
            momentum=self.momentum(symbol),
        )

    def handle_event(self, event: MarketEvent) -> None:
        """
        Apply one event to the store.

        Trades and quotes drive momentum; bars only update the aggregate
        map and bar history.
        """
        self.last_update = utc_now()

        if isinstance(event, StatusEvent):
            self.last_status_message = event.message

        elif isinstance(event, TradeEvent):
            trade = event.trade
            self.last_trades[trade.symbol] = trade
            self.engine.update(trade.symbol, trade.price)

        elif isinstance(event, QuoteEvent):
            quote = event.quote
            self.last_quotes[quote.symbol] = quote
            self.engine.update(quote.symbol, quote.mid_price)

        elif isinstance(event, AggregateEvent):
            candle = event.candle
            self.last_aggregates[candle.symbol] = candle
            self._history_for(candle.symbol).add_candle(candle)

        else:
            raise TypeError(f"Unsupported event type: {type(event)!r}")

    def _history_for(self, symbol: str) -> CandleHistory:
        history = self._histories.get(symbol)
        if history is None:
            history = CandleHistory(symbol, max_length=self.history_length)
            self._histories[symbol] = history
        return history

    async def _consume(self) -> None:
        async for event in self.provider.events:
            try:
                self.handle_event(event)
            except Exception:
                log.exception("Failed to handle %r", event)
        log.debug("Event channel closed")

    def _stop_consuming(self) -> None:
        if self._events_task is not None and not self._events_task.done():
            self._events_task.cancel()
        self._events_task = None

    def _fail(self, reason: str) -> None:
        log.warning("Connection failed: %s", reason)
        self.provider.disconnect()
        self.is_connected = False
        self.last_status_message = f"Error: {reason}"

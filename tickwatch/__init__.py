"""
Tickwatch - live market data watchlist core.

Polls interchangeable market data sources, normalises their payloads into
a common event vocabulary and maintains per-symbol state, including a
short-horizon momentum signal, for a display layer to read.
"""

from .config import Settings, parse_watchlist
from .events import AggregateEvent, MarketEvent, QuoteEvent, StatusEvent, TradeEvent
from .marketdata import Candle, CandleHistory, Quote, Trade
from .momentum import MomentumEngine, MomentumSignal
from .providers import (
    AlphaVantageProvider,
    EventChannel,
    MarketDataProvider,
    MassiveProvider,
    SimulatedProvider,
)
from .runner import run_watchlist
from .store import LiveDataStore, SymbolSnapshot

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AggregateEvent",
    "AlphaVantageProvider",
    "Candle",
    "CandleHistory",
    "EventChannel",
    "LiveDataStore",
    "MarketDataProvider",
    "MarketEvent",
    "MassiveProvider",
    "MomentumEngine",
    "MomentumSignal",
    "Quote",
    "QuoteEvent",
    "Settings",
    "SimulatedProvider",
    "StatusEvent",
    "SymbolSnapshot",
    "Trade",
    "TradeEvent",
    "parse_watchlist",
    "run_watchlist",
]

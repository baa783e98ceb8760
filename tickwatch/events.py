"""
Provider-neutral market events.

These are the only values that cross the provider/consumer boundary.
The set is closed: a consumer dispatches on the four concrete types and
treats anything else as a programming error.
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime

from tickwatch.marketdata import Candle, Quote, Trade
from tickwatch.time_utils import utc_now


__all__ = [
    "AggregateEvent",
    "MarketEvent",
    "QuoteEvent",
    "StatusEvent",
    "TradeEvent",
    "event",
]


def event(cls):
    return dataclass(frozen=True, slots=True)(cls)


@dataclass(frozen=True, slots=True, kw_only=True)
class MarketEvent(ABC):
    received_at: datetime = field(default_factory=utc_now)


@event
class StatusEvent(MarketEvent):
    """Free-text notification about the provider (connection, errors, heartbeats)."""

    message: str


@event
class TradeEvent(MarketEvent):
    trade: Trade


@event
class QuoteEvent(MarketEvent):
    quote: Quote


@event
class AggregateEvent(MarketEvent):
    candle: Candle

"""
Market data providers.

This module defines the provider interface consumed by ``LiveDataStore``
and the concrete sources that implement it.
"""

from .alphavantage import AlphaVantageProvider
from .base import MarketDataProvider, PollingProvider, ProviderState
from .channel import EventChannel
from .massive import MassiveProvider
from .simulated import SimulatedProvider

__all__ = [
    "AlphaVantageProvider",
    "EventChannel",
    "MarketDataProvider",
    "MassiveProvider",
    "PollingProvider",
    "ProviderState",
    "SimulatedProvider",
]

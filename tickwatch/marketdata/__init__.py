from .history import CandleHistory
from .models import Candle, Quote, Trade

__all__ = [
    "Candle",
    "CandleHistory",
    "Quote",
    "Trade",
]

"""Tests for rolling bar history."""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from tickwatch.marketdata import Candle, CandleHistory


BASE = datetime(2026, 1, 5, 14, 30, tzinfo=timezone.utc)


def bar(minutes, close, volume=100):
    start = BASE + timedelta(minutes=minutes)
    return Candle("SPY", close, close + 1, close - 1, close, volume, None, start, start + timedelta(minutes=5))


def test_appends_new_bars_oldest_first():
    history = CandleHistory("SPY")
    history.add_candle(bar(0, 100.0))
    history.add_candle(bar(5, 101.0))

    assert len(history) == 2
    assert history.latest.close == 101.0
    np.testing.assert_array_equal(history.get_closes(), np.array([100.0, 101.0]))


def test_same_start_replaces_latest():
    history = CandleHistory("SPY")
    history.add_candle(bar(0, 100.0, volume=10))
    history.add_candle(bar(0, 100.5, volume=25))

    assert len(history) == 1
    assert history.latest.close == 100.5
    np.testing.assert_array_equal(history.get_volumes(), np.array([25]))


def test_older_bars_are_ignored():
    history = CandleHistory("SPY")
    history.add_candle(bar(5, 101.0))
    history.add_candle(bar(0, 100.0))

    assert [c.close for c in history.get_candles()] == [101.0]


def test_max_length_evicts_oldest():
    history = CandleHistory("SPY", max_length=3)
    for i in range(5):
        history.add_candle(bar(i * 5, 100.0 + i))

    assert len(history) == 3
    np.testing.assert_array_equal(history.get_closes(), np.array([102.0, 103.0, 104.0]))


def test_count_limits_arrays():
    history = CandleHistory("SPY")
    for i in range(4):
        history.add_candle(bar(i * 5, 100.0 + i))

    assert history.get_closes(count=2).tolist() == [102.0, 103.0]
    assert history.get_typical_prices(count=1)[0] == pytest.approx(103.0)
    assert history.get_closes().dtype == np.float64


def test_empty_history():
    history = CandleHistory("SPY")
    assert history.latest is None
    assert history.get_closes().size == 0
    assert "0/200" in repr(history)

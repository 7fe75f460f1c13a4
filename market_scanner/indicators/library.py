"""
Technical indicators over an ordered price series.

Every function is pure: it accepts a sequence of floats or a pandas Series and
returns a new Series aligned to the input index, NaN before the warm-up period.
When bars are indexed by open time, derived series (MACD signal, histogram)
align by timestamp rather than by position.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

Prices = Union[Sequence[float], pd.Series]


@dataclass(frozen=True)
class BollingerBands:
    upper: pd.Series
    middle: pd.Series
    lower: pd.Series


@dataclass(frozen=True)
class Macd:
    macd: pd.Series
    signal: pd.Series
    histogram: pd.Series


def _as_series(prices: Prices) -> pd.Series:
    if isinstance(prices, pd.Series):
        return prices.astype(float)
    return pd.Series(list(prices), dtype=float)


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")


def sma(prices: Prices, period: int) -> pd.Series:
    """Mean of the trailing `period` values at each index >= period - 1."""
    _check_period(period)
    values = _as_series(prices)
    out = np.full(len(values), np.nan)
    if len(values) >= period:
        windows = sliding_window_view(values.to_numpy(), period)
        out[period - 1:] = windows.mean(axis=1)
    return pd.Series(out, index=values.index)


def ema(prices: Prices, period: int) -> pd.Series:
    """
    EMA seeded with the SMA of the first `period` values, k = 2 / (period + 1).
    Empty when there are fewer than `period` prices.
    """
    _check_period(period)
    values = _as_series(prices)
    if len(values) < period:
        return pd.Series(dtype=float)
    arr = values.to_numpy()
    k = 2.0 / (period + 1)
    out = np.full(len(arr), np.nan)
    out[period - 1] = arr[:period].mean()
    for i in range(period, len(arr)):
        # same as price*k + prev*(1-k); exact for flat prices
        out[i] = out[i - 1] + k * (arr[i] - out[i - 1])
    return pd.Series(out, index=values.index)


def std_dev(prices: Prices, period: int) -> pd.Series:
    """Population standard deviation over each trailing window."""
    _check_period(period)
    values = _as_series(prices)
    out = np.full(len(values), np.nan)
    if len(values) >= period:
        windows = sliding_window_view(values.to_numpy(), period)
        out[period - 1:] = windows.std(axis=1)
    return pd.Series(out, index=values.index)


def bollinger_bands(prices: Prices, period: int = 20, multiplier: float = 2.0) -> BollingerBands:
    values = _as_series(prices)
    middle = sma(values, period)
    width = std_dev(values, period) * multiplier
    return BollingerBands(upper=middle + width, middle=middle, lower=middle - width)


def macd(prices: Prices, fast: int = 12, slow: int = 26, signal_period: int = 9) -> Macd:
    """
    MACD line = EMA(fast) - EMA(slow). The signal line is an EMA over the
    defined MACD values only; the histogram is MACD minus signal joined on index.
    """
    values = _as_series(prices)
    fast_ema = ema(values, fast).reindex(values.index)
    slow_ema = ema(values, slow).reindex(values.index)
    line = fast_ema - slow_ema
    signal = ema(line.dropna(), signal_period).reindex(values.index)
    return Macd(macd=line, signal=signal, histogram=line - signal)


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # flat window is neutral; only gains saturates
        return 50.0 if avg_gain == 0 else 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def rsi(prices: Prices, period: int = 14) -> pd.Series:
    """Wilder RSI. First value at index `period`, seeded from the first `period` deltas."""
    _check_period(period)
    values = _as_series(prices)
    arr = values.to_numpy()
    out = np.full(len(arr), np.nan)
    if len(arr) < period + 1:
        return pd.Series(out, index=values.index)
    deltas = np.diff(arr)
    gains = np.clip(deltas, 0.0, None)
    losses = np.clip(-deltas, 0.0, None)
    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period
    out[period] = _rsi_value(avg_gain, avg_loss)
    for i in range(period + 1, len(arr)):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        out[i] = _rsi_value(avg_gain, avg_loss)
    return pd.Series(out, index=values.index)

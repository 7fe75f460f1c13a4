"""Indicators: SMA, EMA, standard deviation, Bollinger Bands, MACD, RSI."""

from market_scanner.indicators.library import (
    BollingerBands,
    Macd,
    bollinger_bands,
    ema,
    macd,
    rsi,
    sma,
    std_dev,
)

__all__ = [
    "BollingerBands",
    "Macd",
    "bollinger_bands",
    "ema",
    "macd",
    "rsi",
    "sma",
    "std_dev",
]

"""Execution: market data / order interfaces, Binance Futures and paper implementations."""

from market_scanner.execution.base import MarketDataProvider, OrderExecutor, OrderResult
from market_scanner.execution.binance_futures import BinanceFuturesClient
from market_scanner.execution.paper import PaperAccount, PaperExecutor

__all__ = [
    "MarketDataProvider",
    "OrderExecutor",
    "OrderResult",
    "BinanceFuturesClient",
    "PaperAccount",
    "PaperExecutor",
]

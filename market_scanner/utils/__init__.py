"""Utils: interval parsing, exchange filters."""

from market_scanner.utils.exchange_filters import SymbolFilters
from market_scanner.utils.timeframes import timeframe_seconds

__all__ = ["SymbolFilters", "timeframe_seconds"]

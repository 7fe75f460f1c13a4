"""Core: config, types, result types, logging."""

from market_scanner.core.config import load_config, Config
from market_scanner.core.logger import setup_logging
from market_scanner.core.results import FailureKind, FetchResult, InvalidTransitionError, ReconciliationError
from market_scanner.core.types import (
    AccountEquity,
    AccountSnapshot,
    Direction,
    OrderSide,
    Position,
    PositionStatus,
    PriceBar,
    Signal,
)

__all__ = [
    "load_config",
    "Config",
    "setup_logging",
    "FailureKind",
    "FetchResult",
    "InvalidTransitionError",
    "ReconciliationError",
    "AccountEquity",
    "AccountSnapshot",
    "Direction",
    "OrderSide",
    "Position",
    "PositionStatus",
    "PriceBar",
    "Signal",
]

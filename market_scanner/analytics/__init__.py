"""Analytics: account performance statistics (win rate, profit factor, drawdown)."""

from market_scanner.analytics.metrics import (
    PerformanceSummary,
    summarize,
    max_drawdown,
    win_rate,
    profit_factor,
    expectancy,
)

__all__ = [
    "PerformanceSummary",
    "summarize",
    "max_drawdown",
    "win_rate",
    "profit_factor",
    "expectancy",
]

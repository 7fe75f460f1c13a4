"""
Performance statistics over closed trades and the account snapshot equity curve:
win rate, profit factor, expectancy, realized P&L (total and today), max drawdown.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import numpy as np

from market_scanner.core.types import AccountSnapshot, Position, PositionStatus
from market_scanner.engine.context import local_day_start, local_now


@dataclass
class PerformanceSummary:
    """Aggregate account statistics."""
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_factor: float
    expectancy: float
    total_realized_pnl: float
    daily_realized_pnl: float
    avg_win: float
    avg_loss: float
    latest_equity: Optional[float]
    max_drawdown_pct: float


def max_drawdown(equity_curve: List[float]) -> float:
    """Max drawdown in percent (e.g. -15.0 = 15% below the running peak)."""
    if not equity_curve:
        return 0.0
    arr = np.array(equity_curve, dtype=float)
    peak = np.maximum.accumulate(arr)
    dd = (arr - peak) / np.where(peak != 0, peak, 1)
    return float(np.min(dd)) * 100.0


def win_rate(pnls: List[float]) -> float:
    """Fraction of trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: List[float]) -> float:
    """Gross profit / gross loss. inf if no losses but some wins."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return float("inf") if wins > 0 else 0.0
    return wins / losses


def expectancy(pnls: List[float]) -> float:
    """Average PnL per trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def summarize(
    closed_trades: Sequence[Position],
    snapshots: Sequence[AccountSnapshot] = (),
    now: Optional[datetime] = None,
) -> PerformanceSummary:
    """Statistics for CLOSED trades; cancelled and open records are ignored."""
    closed = [t for t in closed_trades if t.status == PositionStatus.CLOSED]
    pnls = [t.realized_pnl or 0.0 for t in closed]
    day_start = local_day_start(now or local_now())
    daily = sum(t.realized_pnl or 0.0 for t in closed if t.closed_at is not None and t.closed_at >= day_start)
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    ordered = sorted(snapshots, key=lambda s: s.timestamp)
    return PerformanceSummary(
        total_trades=len(closed),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=win_rate(pnls),
        profit_factor=profit_factor(pnls),
        expectancy=expectancy(pnls),
        total_realized_pnl=sum(pnls),
        daily_realized_pnl=daily,
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
        latest_equity=ordered[-1].total_equity if ordered else None,
        max_drawdown_pct=max_drawdown([s.total_equity for s in ordered]),
    )

"""Unit tests for analytics.metrics."""

from datetime import datetime, timedelta, timezone

import pytest

from market_scanner.analytics.metrics import (
    max_drawdown,
    win_rate,
    profit_factor,
    expectancy,
    summarize,
)
from market_scanner.core.types import AccountSnapshot, OrderSide, Position, PositionStatus


def test_win_rate():
    assert win_rate([1, -1, 1, 1]) == 0.75
    assert win_rate([]) == 0.0


def test_profit_factor():
    assert profit_factor([10, -5, 10, -5]) == 2.0
    assert profit_factor([10, 10]) == float("inf")
    assert profit_factor([-5, -5]) == 0.0


def test_expectancy():
    assert expectancy([10, -5, 5]) == pytest.approx(10 / 3)
    assert expectancy([]) == 0.0


def test_max_drawdown():
    # equity 100 -> 120 -> 100 -> 110  =>  peak 120, dd (100-120)/120 = -16.67%
    assert max_drawdown([100.0, 120.0, 100.0, 110.0]) == pytest.approx(-16.666, rel=0.01)
    assert max_drawdown([]) == 0.0


def trade(pnl, closed_at, status=PositionStatus.CLOSED):
    return Position(
        symbol="BTCUSDT", side=OrderSide.BUY, entry_price=100.0, quantity=1.0,
        stop_loss=95.0, take_profit=110.0, opened_at=closed_at - timedelta(hours=1),
        status=status, exit_price=100.0 + pnl, realized_pnl=pnl, closed_at=closed_at,
    )


def test_summarize():
    now = datetime.now(timezone.utc)
    trades = [
        trade(10.0, now - timedelta(days=3)),
        trade(-5.0, now),
        trade(15.0, now),
        trade(0.0, now, status=PositionStatus.CANCELLED),
    ]
    snaps = [
        AccountSnapshot(total_equity=110.0, available_balance=110.0, timestamp=now - timedelta(hours=1)),
        AccountSnapshot(total_equity=100.0, available_balance=100.0, timestamp=now - timedelta(hours=2)),
        AccountSnapshot(total_equity=120.0, available_balance=120.0, timestamp=now),
    ]
    s = summarize(trades, snaps, now=now)
    assert s.total_trades == 3
    assert s.winning_trades == 2
    assert s.losing_trades == 1
    assert s.win_rate == pytest.approx(2 / 3)
    assert s.profit_factor == pytest.approx(5.0)
    assert s.total_realized_pnl == pytest.approx(20.0)
    assert s.daily_realized_pnl == pytest.approx(10.0)
    assert s.latest_equity == 120.0
    assert s.max_drawdown_pct == 0.0


def test_summarize_empty():
    s = summarize([])
    assert s.total_trades == 0
    assert s.win_rate == 0.0
    assert s.latest_equity is None

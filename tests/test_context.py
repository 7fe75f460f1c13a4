"""Unit tests for engine.context."""

from datetime import datetime, timedelta, timezone

import pytest

from market_scanner.core.types import OrderSide, Position
from market_scanner.engine.context import CycleContext, local_day_start
from market_scanner.lifecycle.positions import close_position


def open_trade(trades, symbol="BTCUSDT"):
    return trades.insert_open(Position(
        symbol=symbol, side=OrderSide.BUY, entry_price=100.0, quantity=1.0,
        stop_loss=95.0, take_profit=110.0, opened_at=datetime.now(timezone.utc),
    ))


def test_local_day_start():
    now = datetime(2024, 3, 5, 15, 30, tzinfo=timezone.utc).astimezone()
    start = local_day_start(now)
    assert start.date() == now.date()
    assert (start.hour, start.minute, start.second, start.microsecond) == (0, 0, 0, 0)


def test_load_reads_todays_closed_trades(trades):
    stored = open_trade(trades)
    trades.close_trade(close_position(stored, 90.0, "stop"))
    context = CycleContext.load(trades, 100.0)
    assert len(context.closed_today) == 1
    assert context.daily_realized_pnl == pytest.approx(-10.0)
    assert context.last_equity == 100.0


def test_load_ignores_yesterdays_trades(trades):
    stored = open_trade(trades)
    yesterday = local_day_start(datetime.now().astimezone()) - timedelta(hours=1)
    trades.close_trade(close_position(stored, 90.0, "stop", closed_at=yesterday))
    assert CycleContext.load(trades, 100.0).closed_today == []


def test_roll_day(trades):
    context = CycleContext.load(trades, 100.0)
    context.trading_halted = True
    assert context.roll_day(trades) is False
    assert context.trading_halted is True

    tomorrow = datetime.now().astimezone() + timedelta(days=1)
    assert context.roll_day(trades, tomorrow) is True
    assert context.trading_halted is False
    assert context.trading_day == tomorrow.date()
    assert context.closed_today == []


def test_record_close_only_counts_today(trades):
    context = CycleContext.load(trades, 100.0)
    position = open_trade(trades)
    context.record_close(close_position(position, 105.0, "tp"))
    old = close_position(position, 80.0, "stop", closed_at=datetime.now(timezone.utc) - timedelta(days=2))
    context.record_close(old)
    assert context.daily_realized_pnl == pytest.approx(5.0)


def test_update_equity(trades):
    context = CycleContext.load(trades, 100.0)
    context.update_equity(123.4)
    assert context.last_equity == 123.4

"""Unit tests for lifecycle.positions."""

import logging
import sqlite3
import threading
from datetime import datetime

import pytest

from conftest import FakeExecutor, bars_from_closes
from market_scanner.core.results import InvalidTransitionError, ReconciliationError
from market_scanner.core.types import OrderSide, Position, PositionStatus, utc_now
from market_scanner.engine.context import CycleContext
from market_scanner.lifecycle.positions import (
    STOP_FILLED_REASON,
    PositionManager,
    cancel_position,
    close_position,
    compute_pnl,
)
from market_scanner.strategies.advisory import AdvisoryScore, AdvisoryScorer
from market_scanner.strategies.multi_strategy import MultiStrategyEngine


def make_position(side=OrderSide.BUY, entry=100.0, qty=2.0, stop=95.0, take_profit=110.0, symbol="BTCUSDT", stop_order_id=None):
    return Position(
        symbol=symbol, side=side, entry_price=entry, quantity=qty,
        stop_loss=stop, take_profit=take_profit, opened_at=utc_now(),
        stop_order_id=stop_order_id,
    )


@pytest.fixture
def context():
    return CycleContext(trading_day=datetime.now().astimezone().date(), last_equity=100.0)


def test_compute_pnl_long():
    pnl, pct = compute_pnl(OrderSide.BUY, 100.0, 110.0, 2.0)
    assert pnl == pytest.approx(20.0)
    assert pct == pytest.approx(10.0)


def test_compute_pnl_short():
    assert compute_pnl(OrderSide.SELL, 100.0, 90.0, 2.0) == pytest.approx((20.0, 10.0))
    assert compute_pnl(OrderSide.SELL, 100.0, 105.0, 1.0) == pytest.approx((-5.0, -5.0))


def test_close_position_sets_exit_fields():
    closed = close_position(make_position(), 110.0, "Take-profit target reached")
    assert closed.status == PositionStatus.CLOSED
    assert closed.exit_price == 110.0
    assert closed.realized_pnl == pytest.approx(20.0)
    assert closed.realized_pnl_percent == pytest.approx(10.0)
    assert closed.closed_at is not None
    assert closed.exit_reason == "Take-profit target reached"


def test_terminal_states_are_final():
    closed = close_position(make_position(), 110.0, "tp")
    with pytest.raises(InvalidTransitionError):
        close_position(closed, 120.0, "again")
    cancelled = cancel_position(make_position(), "manual")
    assert cancelled.status == PositionStatus.CANCELLED
    assert cancelled.realized_pnl is None
    with pytest.raises(InvalidTransitionError):
        cancel_position(cancelled, "again")
    with pytest.raises(InvalidTransitionError):
        close_position(cancelled, 100.0, "x")


def manager(market, executor, trades, advisory=None):
    return PositionManager(market, executor, MultiStrategyEngine(), trades, advisory=advisory)


def test_stop_loss_closes_position(market, executor, trades, context):
    stored = trades.insert_open(make_position())
    market.prices["BTCUSDT"] = 94.0
    market.histories["BTCUSDT"] = bars_from_closes([100.0] * 60)

    closed = manager(market, executor, trades).manage(context).closed

    assert len(closed) == 1
    assert executor.orders == [("BTCUSDT", OrderSide.SELL, 2.0, True)]
    row = trades.get(stored.id)
    assert row.status == PositionStatus.CLOSED
    assert row.exit_reason == "Stop-loss triggered"
    assert row.realized_pnl == pytest.approx(-12.0)
    assert context.daily_realized_pnl == pytest.approx(-12.0)


def test_short_take_profit_uses_fill_price(market, trades, context):
    executor = FakeExecutor(fill_price=89.5)
    stored = trades.insert_open(make_position(side=OrderSide.SELL, stop=105.0, take_profit=90.0))
    market.prices["BTCUSDT"] = 89.8
    market.histories["BTCUSDT"] = bars_from_closes([100.0] * 60)

    manager(market, executor, trades).manage(context)

    assert executor.orders[0][1] == OrderSide.BUY
    row = trades.get(stored.id)
    assert row.exit_price == 89.5
    assert row.realized_pnl == pytest.approx(21.0)


def test_no_exit_leaves_position_open(market, executor, trades, context):
    stored = trades.insert_open(make_position())
    market.prices["BTCUSDT"] = 101.0
    market.histories["BTCUSDT"] = bars_from_closes([100.0] * 60)
    assert manager(market, executor, trades).manage(context).closed == []
    assert executor.orders == []
    assert trades.get(stored.id).is_open


def test_missing_price_skips_position(market, executor, trades, context):
    trades.insert_open(make_position())
    assert manager(market, executor, trades).manage(context).closed == []
    assert executor.orders == []


def test_missing_history_still_checks_stop(market, executor, trades, context):
    trades.insert_open(make_position())
    market.prices["BTCUSDT"] = 90.0
    assert len(manager(market, executor, trades).manage(context).closed) == 1


def test_failed_close_order_keeps_position_open(market, trades, context):
    stored = trades.insert_open(make_position())
    market.prices["BTCUSDT"] = 90.0
    closed = manager(market, FakeExecutor(fail=True), trades).manage(context).closed
    assert closed == []
    assert trades.get(stored.id).is_open
    assert context.closed_today == []


def test_close_write_failure_is_reconciliation(market, trades, context):
    stored = trades.insert_open(make_position())
    # row closed elsewhere, so the guarded update matches nothing
    trades.close_trade(close_position(stored, 100.0, "manual"))
    pm = manager(market, FakeExecutor(paper=False), trades)
    decision = MultiStrategyEngine().should_exit(stored, 90.0, [])
    with pytest.raises(ReconciliationError):
        pm.close(stored, 90.0, decision, context)


def test_one_failing_position_does_not_block_others(market, executor, trades, context, monkeypatch):
    trades.insert_open(make_position(symbol="BTCUSDT"))
    trades.insert_open(make_position(symbol="ETHUSDT"))
    market.prices.update(BTCUSDT=90.0, ETHUSDT=90.0)
    strategy = MultiStrategyEngine()
    original = strategy.should_exit

    def flaky(position, price, bars):
        if position.symbol == "BTCUSDT":
            raise RuntimeError("bad data")
        return original(position, price, bars)

    monkeypatch.setattr(strategy, "should_exit", flaky)
    pm = PositionManager(market, executor, strategy, trades)
    closed = pm.manage(context).closed
    assert [p.symbol for p in closed] == ["ETHUSDT"]


class Reviewer(AdvisoryScorer):
    def score_signal(self, symbol, rationale, recent_bars):
        return AdvisoryScore(confidence=50, comment="")

    def review_trade(self, position):
        return f"closed at {position.exit_price}"


def test_advisory_review_annotates_closed_trade(market, executor, trades, context):
    stored = trades.insert_open(make_position())
    market.prices["BTCUSDT"] = 111.0
    manager(market, executor, trades, advisory=Reviewer()).manage(context)
    assert trades.get(stored.id).advisory_analysis == "closed at 111.0"


def test_stop_event_leaves_positions_for_next_cycle(market, executor, trades, context):
    trades.insert_open(make_position())
    market.prices["BTCUSDT"] = 90.0
    stop = threading.Event()
    stop.set()
    assert manager(market, executor, trades).manage(context, stop).closed == []
    assert executor.orders == []


# -- protective stops ----------------------------------------------------

def test_close_cancels_protective_stop(market, executor, trades, context):
    trades.insert_open(make_position(stop_order_id="s9"))
    market.prices["BTCUSDT"] = 90.0
    closed = manager(market, executor, trades).manage(context).closed
    assert len(closed) == 1
    assert executor.cancelled == [("BTCUSDT", "s9")]


def test_stop_filled_on_exchange_settles_position(market, trades, context):
    live = FakeExecutor(paper=False, fail=True, stop_status="FILLED", stop_fill_price=94.8)
    stored = trades.insert_open(make_position(stop_order_id="s1"))
    # price recovered after the stop fired, so no exit rule would trigger
    market.prices["BTCUSDT"] = 101.0
    market.histories["BTCUSDT"] = bars_from_closes([100.0] * 60)

    report = manager(market, live, trades).manage(context)

    assert [p.id for p in report.closed] == [stored.id]
    assert report.reconciliation == []
    assert live.orders == []
    row = trades.get(stored.id)
    assert row.status == PositionStatus.CLOSED
    assert row.exit_price == 94.8
    assert row.exit_reason == STOP_FILLED_REASON
    assert context.daily_realized_pnl == pytest.approx(-10.4)
    assert not trades.has_open_position("BTCUSDT")


def test_rejected_close_settles_filled_stop(market, trades, context):
    live = FakeExecutor(paper=False, fail=True, stop_status="FILLED")
    stored = trades.insert_open(make_position(stop_order_id="s1"))
    decision = MultiStrategyEngine().should_exit(stored, 90.0, [])
    closed = manager(market, live, trades).close(stored, 90.0, decision, context)
    assert closed.status == PositionStatus.CLOSED
    # no fill price reported: booked at the stop level
    assert closed.exit_price == 95.0
    assert context.daily_realized_pnl == pytest.approx(-10.0)


def test_rejected_close_with_working_stop_retries_next_cycle(market, trades, context):
    live = FakeExecutor(paper=False, fail=True, stop_status="NEW")
    stored = trades.insert_open(make_position(stop_order_id="s1"))
    market.prices["BTCUSDT"] = 90.0
    report = manager(market, live, trades).manage(context)
    assert report.closed == []
    assert report.reconciliation == []
    assert trades.get(stored.id).is_open


@pytest.mark.parametrize("stop_status, stop_order_id", [("CANCELED", "s1"), (None, "s1"), ("NEW", None)])
def test_rejected_close_without_working_stop_is_reconciliation(market, trades, context, caplog, stop_status, stop_order_id):
    live = FakeExecutor(paper=False, fail=True, stop_status=stop_status)
    stored = trades.insert_open(make_position(stop_order_id=stop_order_id))
    market.prices["BTCUSDT"] = 90.0
    with caplog.at_level(logging.CRITICAL, logger="market_scanner"):
        report = manager(market, live, trades).manage(context)
    assert report.closed == []
    assert len(report.reconciliation) == 1
    assert "close refused" in report.reconciliation[0]
    assert any("RECONCILIATION REQUIRED" in r.message for r in caplog.records)
    assert trades.get(stored.id).is_open


def test_reconciliation_does_not_block_other_positions(market, executor, trades, context, monkeypatch):
    trades.insert_open(make_position(symbol="BTCUSDT"))
    eth = trades.insert_open(make_position(symbol="ETHUSDT"))
    market.prices.update(BTCUSDT=90.0, ETHUSDT=90.0)
    write = trades.close_trade

    def locked_for_btc(position):
        if position.symbol == "BTCUSDT":
            raise sqlite3.OperationalError("database is locked")
        write(position)

    monkeypatch.setattr(trades, "close_trade", locked_for_btc)
    report = manager(market, executor, trades).manage(context)

    assert len(report.reconciliation) == 1
    assert "BTCUSDT" in report.reconciliation[0]
    assert [p.symbol for p in report.closed] == ["ETHUSDT"]
    assert trades.get(eth.id).status == PositionStatus.CLOSED

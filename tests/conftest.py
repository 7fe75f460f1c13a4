"""Shared fixtures: temporary database, bar builders, fake providers."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from market_scanner.core.results import FailureKind, FetchResult
from market_scanner.core.types import AccountEquity, OrderSide, PriceBar
from market_scanner.execution.base import MarketDataProvider, OrderExecutor, OrderResult
from market_scanner.storage.db import init_db
from market_scanner.storage.signal_repo import SignalRepo
from market_scanner.storage.snapshot_repo import SnapshotRepo
from market_scanner.storage.trade_repo import TradeRepo

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def bars_from_closes(closes: List[float], start: datetime = START, step: timedelta = timedelta(minutes=1)) -> List[PriceBar]:
    return [
        PriceBar(open_time=start + i * step, open=c, high=c, low=c, close=c, volume=1.0)
        for i, c in enumerate(closes)
    ]


def v_shape_closes(direction: int = 1, n: int = 100, turn: int = 54, start: float = 200.0) -> List[float]:
    """Choppy decline then choppy rise (direction=1), or the mirror (direction=-1)."""
    closes = [start]
    for i in range(1, n):
        down_leg = i <= turn
        big, small = (-2.0, 1.2) if down_leg else (2.0, -1.2)
        step = big if i % 2 == 0 else small
        closes.append(closes[-1] + step * direction)
    return closes


class FakeMarket(MarketDataProvider):

    def __init__(self, equity: float = 100.0):
        self.histories: Dict[str, List[PriceBar]] = {}
        self.prices: Dict[str, float] = {}
        self.equity = FetchResult.success(AccountEquity(available=equity))

    def get_price_history(self, symbol, interval, limit=100):
        if symbol not in self.histories:
            return FetchResult.failure(FailureKind.TRANSIENT, "timeout")
        return FetchResult.success(self.histories[symbol][-limit:])

    def get_current_price(self, symbol):
        if symbol not in self.prices:
            return FetchResult.failure(FailureKind.TRANSIENT, "timeout")
        return FetchResult.success(self.prices[symbol])

    def get_account_equity(self):
        return self.equity


class FakeExecutor(OrderExecutor):

    def __init__(
        self,
        paper: bool = True,
        fail: bool = False,
        fill_price: Optional[float] = None,
        stop_status: Optional[str] = "NEW",
        stop_fill_price: Optional[float] = None,
    ):
        self.paper = paper
        self.fail = fail
        self.fill_price = fill_price
        self.stop_status = stop_status
        self.stop_fill_price = stop_fill_price
        self.orders = []
        self.protective = []
        self.cancelled = []

    @property
    def is_paper(self):
        return self.paper

    def place_order(self, symbol, side: OrderSide, quantity, price=None, reduce_only=False):
        self.orders.append((symbol, side, quantity, reduce_only))
        if self.fail:
            return OrderResult(success=False, message="rejected by exchange")
        return OrderResult(success=True, order_id=f"o{len(self.orders)}", avg_price=self.fill_price, quantity=quantity)

    def place_protective_order(self, symbol, side, quantity, trigger_price):
        self.protective.append((symbol, side, quantity, trigger_price))
        return OrderResult(success=True, order_id=f"s{len(self.protective)}", quantity=quantity, status="NEW")

    def get_order(self, symbol, order_id):
        if self.stop_status is None:
            return FetchResult.failure(FailureKind.TRANSIENT, "timeout")
        return FetchResult.success(OrderResult(
            success=True, order_id=order_id, avg_price=self.stop_fill_price, status=self.stop_status,
        ))

    def cancel_order(self, symbol, order_id):
        self.cancelled.append((symbol, order_id))
        return OrderResult(success=True, order_id=order_id, status="CANCELED")


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "scanner.db")
    init_db(path)
    return path


@pytest.fixture
def trades(db_path):
    return TradeRepo(db_path)


@pytest.fixture
def signals(db_path):
    return SignalRepo(db_path)


@pytest.fixture
def snapshots(db_path):
    return SnapshotRepo(db_path)


@pytest.fixture
def market():
    return FakeMarket()


@pytest.fixture
def executor():
    return FakeExecutor()

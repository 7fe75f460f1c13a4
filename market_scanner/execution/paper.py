"""
Paper trading: synthetic order confirmations and an account whose equity is
initial capital plus realized P&L of closed paper trades. Market data is
delegated to a real provider so signals and exits see live prices.
"""

from __future__ import annotations
import logging
import sqlite3
import uuid
from typing import TYPE_CHECKING, List, Optional

from market_scanner.core.results import FailureKind, FetchResult
from market_scanner.core.types import AccountEquity, OrderSide, PriceBar
from market_scanner.execution.base import MarketDataProvider, OrderExecutor, OrderResult

if TYPE_CHECKING:
    from market_scanner.storage.trade_repo import TradeRepo

logger = logging.getLogger("market_scanner.execution.paper")


def _paper_id() -> str:
    return f"paper-{uuid.uuid4().hex[:12]}"


class PaperExecutor(OrderExecutor):
    """Logs orders and confirms them without touching an exchange."""

    @property
    def is_paper(self) -> bool:
        return True

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        price: Optional[float] = None,
        reduce_only: bool = False,
    ) -> OrderResult:
        kind = "Market" if price is None else f"Limit @ {price}"
        logger.info("[PAPER] %s %s order: %s %s%s", kind, side.value, quantity, symbol, " (reduce-only)" if reduce_only else "")
        return OrderResult(success=True, order_id=_paper_id(), avg_price=price, quantity=quantity, simulated=True)

    def place_protective_order(self, symbol: str, side: OrderSide, quantity: float, trigger_price: float) -> OrderResult:
        logger.info("[PAPER] Stop %s %s %s @ %s", side.value, quantity, symbol, trigger_price)
        return OrderResult(success=True, order_id=_paper_id(), quantity=quantity, simulated=True, status="NEW")

    def get_order(self, symbol: str, order_id: str) -> FetchResult[OrderResult]:
        # paper stops are never triggered; exits are driven by the cycle
        return FetchResult.success(OrderResult(success=True, order_id=order_id, simulated=True, status="NEW"))

    def cancel_order(self, symbol: str, order_id: str) -> OrderResult:
        logger.info("[PAPER] Cancel %s order %s", symbol, order_id)
        return OrderResult(success=True, order_id=order_id, simulated=True, status="CANCELED")


class PaperAccount(MarketDataProvider):

    def __init__(self, market: MarketDataProvider, trades: "TradeRepo", initial_capital: float):
        self._market = market
        self._trades = trades
        self.initial_capital = initial_capital

    def get_price_history(self, symbol: str, interval: str, limit: int = 100) -> FetchResult[List[PriceBar]]:
        return self._market.get_price_history(symbol, interval, limit)

    def get_current_price(self, symbol: str) -> FetchResult[float]:
        return self._market.get_current_price(symbol)

    def get_account_equity(self) -> FetchResult[AccountEquity]:
        try:
            realized = self._trades.total_realized_pnl()
        except sqlite3.Error as e:
            logger.error("Paper equity unavailable: %s", e)
            return FetchResult.failure(FailureKind.TRANSIENT, str(e))
        return FetchResult.success(AccountEquity(available=self.initial_capital + realized))

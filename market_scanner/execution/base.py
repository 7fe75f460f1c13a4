"""Abstract market data and order execution interfaces."""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from market_scanner.core.results import FetchResult
from market_scanner.core.types import AccountEquity, OrderSide, PriceBar

ORDER_FILLED = "FILLED"
WORKING_STATUSES = ("NEW", "PARTIALLY_FILLED")


@dataclass
class OrderResult:
    """Result of placing an order. Paper orders carry simulated=True."""
    success: bool
    order_id: Optional[str] = None
    avg_price: Optional[float] = None
    quantity: Optional[float] = None
    message: str = ""
    simulated: bool = False
    status: str = ""

    @property
    def filled(self) -> bool:
        return self.status == ORDER_FILLED

    @property
    def working(self) -> bool:
        return self.status in WORKING_STATUSES


class MarketDataProvider(ABC):
    """Read paths. Failures are returned, not raised."""

    @abstractmethod
    def get_price_history(self, symbol: str, interval: str, limit: int = 100) -> FetchResult[List[PriceBar]]:
        """Chronologically ordered bars, oldest first."""
        pass

    @abstractmethod
    def get_current_price(self, symbol: str) -> FetchResult[float]:
        pass

    @abstractmethod
    def get_account_equity(self) -> FetchResult[AccountEquity]:
        pass


class OrderExecutor(ABC):
    """Write paths. Never retried by callers."""

    @property
    @abstractmethod
    def is_paper(self) -> bool:
        pass

    @abstractmethod
    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        price: Optional[float] = None,
        reduce_only: bool = False,
    ) -> OrderResult:
        """Market order, or limit order when price is given. reduce_only for closing orders."""
        pass

    @abstractmethod
    def place_protective_order(self, symbol: str, side: OrderSide, quantity: float, trigger_price: float) -> OrderResult:
        """Reduce-only stop that closes `quantity` when `trigger_price` trades."""
        pass

    @abstractmethod
    def get_order(self, symbol: str, order_id: str) -> FetchResult[OrderResult]:
        """Current state of a previously placed order; `status` carries the exchange status."""
        pass

    @abstractmethod
    def cancel_order(self, symbol: str, order_id: str) -> OrderResult:
        pass

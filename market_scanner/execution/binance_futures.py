"""
Binance USDT-M Futures market data and execution.
Reads retry transient failures and return FetchResult; orders are sent once.
"""

from __future__ import annotations
import functools
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from binance.client import Client
from binance.exceptions import BinanceAPIException, BinanceRequestException

from market_scanner.core.results import FailureKind, FetchResult
from market_scanner.core.types import AccountEquity, OrderSide, PriceBar
from market_scanner.execution.base import MarketDataProvider, OrderExecutor, OrderResult
from market_scanner.utils.exchange_filters import SymbolFilters

logger = logging.getLogger("market_scanner.execution.binance")

TRANSIENT_STATUS = (418, 429, 500, 502, 503, 504)


def fetch_with_retry(max_retries: int = 3, base_delay: float = 1.0):
    """Decorator: retry rate limits, 5xx and network errors; wrap the outcome in FetchResult."""
    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs) -> FetchResult:
            last_error = ""
            for attempt in range(max_retries):
                try:
                    return FetchResult.success(f(*args, **kwargs))
                except BinanceAPIException as e:
                    if e.status_code not in TRANSIENT_STATUS:
                        logger.error("%s rejected: %s", f.__name__, e)
                        return FetchResult.failure(FailureKind.REJECTED, str(e))
                    last_error = str(e)
                except (BinanceRequestException, requests.exceptions.RequestException) as e:
                    last_error = str(e)
                except (KeyError, ValueError, TypeError) as e:
                    logger.error("%s malformed response: %s", f.__name__, e)
                    return FetchResult.failure(FailureKind.REJECTED, f"malformed response: {e}")
                if attempt < max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning("%s failed (%s), retry in %.1fs (attempt %d)", f.__name__, last_error, delay, attempt + 1)
                    time.sleep(delay)
            logger.error("%s gave up after %d attempts: %s", f.__name__, max_retries, last_error)
            return FetchResult.failure(FailureKind.TRANSIENT, last_error)
        return wrapped
    return decorator


def parse_kline(raw: List[Any]) -> PriceBar:
    return PriceBar(
        open_time=datetime.fromtimestamp(int(raw[0]) / 1000, tz=timezone.utc),
        open=float(raw[1]),
        high=float(raw[2]),
        low=float(raw[3]),
        close=float(raw[4]),
        volume=float(raw[5]),
    )


class BinanceFuturesClient(MarketDataProvider, OrderExecutor):
    """Binance USDT-M Futures client (testnet and live)."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        testnet: bool = True,
        quote_asset: str = "USDT",
        client: Optional[Client] = None,
    ):
        self._client = client or Client(api_key, api_secret, testnet=testnet)
        self.quote_asset = quote_asset
        self._filters: Dict[str, SymbolFilters] = {}
        logger.info("Binance Futures: using %s", "TESTNET" if testnet else "LIVE")

    @property
    def is_paper(self) -> bool:
        return False

    # -- market data ----------------------------------------------------

    @fetch_with_retry(max_retries=3, base_delay=1.0)
    def get_price_history(self, symbol: str, interval: str, limit: int = 100) -> List[PriceBar]:
        raw = self._client.futures_klines(symbol=symbol, interval=interval, limit=limit)
        bars = [parse_kline(k) for k in raw]
        bars.sort(key=lambda b: b.open_time)
        return bars

    @fetch_with_retry(max_retries=3, base_delay=1.0)
    def get_current_price(self, symbol: str) -> float:
        ticker = self._client.futures_symbol_ticker(symbol=symbol)
        return float(ticker["price"])

    @fetch_with_retry(max_retries=3, base_delay=1.0)
    def get_account_equity(self) -> AccountEquity:
        for balance in self._client.futures_account_balance():
            if balance.get("asset") == self.quote_asset:
                return AccountEquity(
                    available=float(balance.get("availableBalance", 0.0)),
                    unrealized=float(balance.get("crossUnPnl", 0.0)),
                )
        logger.warning("No %s balance on account", self.quote_asset)
        return AccountEquity(available=0.0)

    def symbol_filters(self, symbol: str) -> SymbolFilters:
        if symbol not in self._filters:
            info = self._client.futures_exchange_info()
            for s in info.get("symbols", []):
                self._filters[s.get("symbol")] = SymbolFilters.from_symbol_info(s)
            self._filters.setdefault(symbol, SymbolFilters())
        return self._filters[symbol]

    # -- orders ---------------------------------------------------------

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        price: Optional[float] = None,
        reduce_only: bool = False,
    ) -> OrderResult:
        try:
            filters = self.symbol_filters(symbol)
            qty = filters.quantity(quantity)
            if qty <= 0:
                return OrderResult(success=False, message=f"quantity {quantity} rounds to zero")
            params: Dict[str, Any] = {"symbol": symbol, "side": side.value, "quantity": str(qty)}
            if price is None:
                params["type"] = "MARKET"
            else:
                params.update(type="LIMIT", timeInForce="GTC", price=str(filters.price(price)))
            if reduce_only:
                params["reduceOnly"] = True
            res = self._client.futures_create_order(**params)
            avg = float(res.get("avgPrice") or 0.0) or float(res.get("price") or 0.0) or price
            logger.info("Order placed: %s %s %s (id=%s)", side.value, qty, symbol, res.get("orderId"))
            return OrderResult(success=True, order_id=str(res.get("orderId")), avg_price=avg, quantity=qty)
        except (BinanceAPIException, BinanceRequestException, requests.exceptions.RequestException) as e:
            logger.exception("Binance order error: %s", e)
            return OrderResult(success=False, message=str(e))

    def place_protective_order(self, symbol: str, side: OrderSide, quantity: float, trigger_price: float) -> OrderResult:
        try:
            filters = self.symbol_filters(symbol)
            qty = filters.quantity(quantity)
            res = self._client.futures_create_order(
                symbol=symbol, side=side.value, type="STOP_MARKET",
                stopPrice=str(filters.price(trigger_price)),
                quantity=str(qty), reduceOnly=True,
            )
            return OrderResult(success=True, order_id=str(res.get("orderId")), quantity=qty)
        except (BinanceAPIException, BinanceRequestException, requests.exceptions.RequestException) as e:
            logger.exception("Binance protective order error: %s", e)
            return OrderResult(success=False, message=str(e))

    @fetch_with_retry(max_retries=3, base_delay=1.0)
    def get_order(self, symbol: str, order_id: str) -> OrderResult:
        res = self._client.futures_get_order(symbol=symbol, orderId=int(order_id))
        return OrderResult(
            success=True,
            order_id=str(res["orderId"]),
            avg_price=float(res.get("avgPrice") or 0.0) or None,
            quantity=float(res.get("executedQty") or 0.0),
            status=res["status"],
        )

    def cancel_order(self, symbol: str, order_id: str) -> OrderResult:
        try:
            res = self._client.futures_cancel_order(symbol=symbol, orderId=int(order_id))
            logger.info("Order cancelled: %s %s", symbol, order_id)
            return OrderResult(success=True, order_id=str(res.get("orderId", order_id)), status=res.get("status", "CANCELED"))
        except (BinanceAPIException, BinanceRequestException, requests.exceptions.RequestException) as e:
            logger.error("Binance cancel error for %s order %s: %s", symbol, order_id, e)
            return OrderResult(success=False, order_id=order_id, message=str(e))

"""
Position lifecycle: OPEN -> CLOSED or OPEN -> CANCELLED, both terminal.
Exits are all-or-nothing at market, evaluated once per cycle in the order
stop-loss, take-profit, trend reversal.
"""

from __future__ import annotations
import logging
import sqlite3
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Tuple

from market_scanner.core.results import InvalidTransitionError, ReconciliationError
from market_scanner.core.types import OrderSide, Position, PositionStatus, utc_now
from market_scanner.execution.base import MarketDataProvider, OrderExecutor, OrderResult
from market_scanner.strategies.advisory import AdvisoryScorer
from market_scanner.strategies.base import BaseStrategy, ExitDecision

if TYPE_CHECKING:
    from market_scanner.engine.context import CycleContext
    from market_scanner.storage.trade_repo import TradeRepo

logger = logging.getLogger("market_scanner.lifecycle")


def compute_pnl(side: OrderSide, entry_price: float, exit_price: float, quantity: float) -> Tuple[float, float]:
    """Realized P&L and P&L percent of notional. Sign flips for SELL (short)."""
    direction = 1.0 if side == OrderSide.BUY else -1.0
    pnl = (exit_price - entry_price) * quantity * direction
    notional = entry_price * quantity
    pct = pnl / notional * 100.0 if notional else 0.0
    return pnl, pct


def close_position(position: Position, exit_price: float, reason: str, closed_at: Optional[datetime] = None) -> Position:
    """OPEN -> CLOSED with every exit field set together."""
    if position.status != PositionStatus.OPEN:
        raise InvalidTransitionError(f"cannot close a {position.status.value} position")
    pnl, pct = compute_pnl(position.side, position.entry_price, exit_price, position.quantity)
    return replace(
        position,
        status=PositionStatus.CLOSED,
        exit_price=exit_price,
        realized_pnl=pnl,
        realized_pnl_percent=pct,
        closed_at=closed_at or utc_now(),
        exit_reason=reason,
    )


def cancel_position(position: Position, reason: str, cancelled_at: Optional[datetime] = None) -> Position:
    """OPEN -> CANCELLED. No P&L is realized."""
    if position.status != PositionStatus.OPEN:
        raise InvalidTransitionError(f"cannot cancel a {position.status.value} position")
    return replace(position, status=PositionStatus.CANCELLED, closed_at=cancelled_at or utc_now(), exit_reason=reason)


STOP_FILLED_REASON = "Protective stop filled on exchange"


@dataclass
class ManageReport:
    """Positions closed this pass and reconciliation alerts raised on the way."""
    closed: List[Position] = field(default_factory=list)
    reconciliation: List[str] = field(default_factory=list)


class PositionManager:
    """Re-evaluates every OPEN position against the latest price and closes on exit."""

    def __init__(
        self,
        market: MarketDataProvider,
        executor: OrderExecutor,
        strategy: BaseStrategy,
        trades: "TradeRepo",
        interval: str = "1m",
        history_limit: int = 100,
        advisory: Optional[AdvisoryScorer] = None,
    ):
        self.market = market
        self.executor = executor
        self.strategy = strategy
        self.trades = trades
        self.interval = interval
        self.history_limit = history_limit
        self.advisory = advisory

    def manage(self, context: "CycleContext", stop_event: Optional[threading.Event] = None) -> ManageReport:
        """Check all open positions. A failure on one never skips the others."""
        report = ManageReport()
        for position in self.trades.list_open():
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested, leaving remaining positions for next cycle")
                break
            try:
                result = self.manage_position(position, context)
            except ReconciliationError as e:
                report.reconciliation.append(str(e))
                continue
            except Exception as e:
                logger.exception("Error managing trade %s for %s: %s", position.id, position.symbol, e)
                continue
            if result is not None:
                report.closed.append(result)
        return report

    def manage_position(self, position: Position, context: "CycleContext") -> Optional[Position]:
        stop = self.stop_state(position)
        if stop is not None and stop.filled:
            return self.settle_stop(position, stop, context)
        price = self.market.get_current_price(position.symbol)
        if not price.ok:
            logger.warning("No price for %s (%s), exit check skipped", position.symbol, price.message)
            return None
        history = self.market.get_price_history(position.symbol, self.interval, self.history_limit)
        bars = history.value if history.ok else []
        if not history.ok:
            logger.warning("No history for %s (%s), trend reversal not checked", position.symbol, history.message)
        decision = self.strategy.should_exit(position, price.value, bars)
        if not decision.should_exit:
            return None
        logger.info("Closing position for %s: %s", position.symbol, decision.reason)
        return self.close(position, price.value, decision, context)

    def stop_state(self, position: Position) -> Optional[OrderResult]:
        """Exchange view of the protective stop, or None when untracked or unreadable."""
        if not position.stop_order_id:
            return None
        result = self.executor.get_order(position.symbol, position.stop_order_id)
        if not result.ok:
            logger.warning("Stop order %s for %s not readable (%s)", position.stop_order_id, position.symbol, result.message)
            return None
        return result.value

    def settle_stop(
        self,
        position: Position,
        stop: OrderResult,
        context: "CycleContext",
        now: Optional[datetime] = None,
    ) -> Position:
        """Close the record of a position the exchange already closed through its stop."""
        logger.warning("Protective stop %s filled for %s (trade %s)", stop.order_id, position.symbol, position.id)
        closed = close_position(position, stop.avg_price or position.stop_loss, STOP_FILLED_REASON, now)
        return self._record_close(position, closed, stop.order_id, context)

    def close(
        self,
        position: Position,
        market_price: float,
        decision: ExitDecision,
        context: "CycleContext",
        now: Optional[datetime] = None,
    ) -> Optional[Position]:
        order = self.executor.place_order(position.symbol, position.side.opposite, position.quantity, reduce_only=True)
        if not order.success:
            return self._close_refused(position, order, context, now)
        self._cancel_stop(position)
        closed = close_position(position, order.avg_price or market_price, decision.reason, now)
        return self._record_close(position, closed, order.order_id, context)

    def _close_refused(
        self,
        position: Position,
        order: OrderResult,
        context: "CycleContext",
        now: Optional[datetime],
    ) -> Optional[Position]:
        stop = self.stop_state(position)
        if stop is not None and stop.filled:
            return self.settle_stop(position, stop, context, now)
        if self.executor.is_paper or (stop is not None and stop.working):
            logger.error("Close order failed for %s (trade %s): %s; position stays open", position.symbol, position.id, order.message)
            return None
        logger.critical(
            "RECONCILIATION REQUIRED: close of %s (trade %s) refused (%s) and no working stop; exchange position unknown",
            position.symbol, position.id, order.message,
        )
        raise ReconciliationError(position.symbol, position.order_id, f"close refused: {order.message}")

    def _cancel_stop(self, position: Position) -> None:
        if not position.stop_order_id:
            return
        result = self.executor.cancel_order(position.symbol, position.stop_order_id)
        if not result.success:
            logger.error(
                "Protective stop %s for %s not cancelled (%s); cancel it on the exchange",
                position.stop_order_id, position.symbol, result.message,
            )

    def _record_close(self, position: Position, closed: Position, order_id: Optional[str], context: "CycleContext") -> Position:
        try:
            self.trades.close_trade(closed)
        except (sqlite3.Error, InvalidTransitionError) as e:
            log = logger.error if self.executor.is_paper else logger.critical
            log("RECONCILIATION REQUIRED: %s closed on exchange (order %s) but trade %s not updated: %s",
                position.symbol, order_id, position.id, e)
            raise ReconciliationError(position.symbol, order_id, f"trade record not updated: {e}") from e
        context.record_close(closed)
        logger.info(
            "Position closed: %s | PnL: %.2f (%.2f%%) | Reason: %s",
            closed.symbol, closed.realized_pnl, closed.realized_pnl_percent, closed.exit_reason,
        )
        self._review(closed)
        return closed

    def _review(self, closed: Position) -> None:
        if self.advisory is None:
            return
        try:
            note = self.advisory.review_trade(closed)
            if note:
                self.trades.annotate(closed.id, note)
        except Exception as e:
            logger.warning("Advisory review failed for trade %s: %s", closed.id, e)

"""
Cycle scheduler: one cycle = equity snapshot, open-position management, then
signal -> risk gate -> execution for every tracked symbol. Cycles never
overlap; a stop event is honoured between cycles and at symbol boundaries.
"""

from __future__ import annotations
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from market_scanner.core.results import ReconciliationError
from market_scanner.core.types import AccountSnapshot, OrderSide, Position, Signal, utc_now
from market_scanner.engine.context import CycleContext
from market_scanner.execution.base import MarketDataProvider, OrderExecutor
from market_scanner.lifecycle.positions import PositionManager
from market_scanner.risk.manager import RiskDecision, RiskManager
from market_scanner.storage.signal_repo import SignalRepo
from market_scanner.storage.snapshot_repo import SnapshotRepo
from market_scanner.storage.trade_repo import TradeRepo
from market_scanner.strategies.advisory import AdvisoryScorer, apply_advisory
from market_scanner.strategies.base import BaseStrategy

logger = logging.getLogger("market_scanner.engine")


@dataclass
class CycleReport:
    """Outcome of one cycle."""
    equity: Optional[float] = None
    closed: List[Position] = field(default_factory=list)
    opened: List[Position] = field(default_factory=list)
    signals: int = 0
    rejected: int = 0
    skipped_symbols: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    reconciliation: List[str] = field(default_factory=list)
    aborted: bool = False
    abandoned: bool = False


class TradingCycle:
    """Wires the components for a single cycle. Constructed once at start-up."""

    def __init__(
        self,
        symbols: Sequence[str],
        market: MarketDataProvider,
        executor: OrderExecutor,
        strategy: BaseStrategy,
        risk: RiskManager,
        positions: PositionManager,
        signals: SignalRepo,
        trades: TradeRepo,
        snapshots: SnapshotRepo,
        advisory: Optional[AdvisoryScorer] = None,
        interval: str = "1m",
        history_limit: int = 100,
        record_no_trade_signals: bool = False,
    ):
        self.symbols = [s.upper() for s in symbols]
        self.market = market
        self.executor = executor
        self.strategy = strategy
        self.risk = risk
        self.positions = positions
        self.signals = signals
        self.trades = trades
        self.snapshots = snapshots
        self.advisory = advisory
        self.interval = interval
        self.history_limit = history_limit
        self.record_no_trade_signals = record_no_trade_signals

    def run(self, context: CycleContext, stop_event: Optional[threading.Event] = None) -> CycleReport:
        report = CycleReport()
        context.roll_day(self.trades)
        context.cycles_run += 1

        equity = self.market.get_account_equity()
        if not equity.ok:
            logger.error("Equity unavailable (%s: %s), cycle aborted", equity.kind.value, equity.message)
            report.aborted = True
            return report
        context.update_equity(equity.value.total)
        report.equity = equity.value.total
        try:
            self.snapshots.insert(AccountSnapshot(
                total_equity=equity.value.total,
                available_balance=equity.value.available,
                timestamp=utc_now(),
                daily_pnl=context.daily_realized_pnl,
            ))
        except Exception as e:
            logger.error("Failed to record account snapshot: %s", e)
            report.errors.append(f"snapshot: {e}")

        try:
            managed = self.positions.manage(context, stop_event)
            report.closed = managed.closed
            report.reconciliation.extend(managed.reconciliation)
        except Exception as e:
            logger.exception("Position management failed: %s", e)
            report.errors.append(f"positions: {e}")

        for symbol in self.symbols:
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested, cycle abandoned before %s", symbol)
                report.abandoned = True
                break
            try:
                self.process_symbol(symbol, context, report)
            except ReconciliationError as e:
                report.reconciliation.append(str(e))
            except Exception as e:
                logger.exception("Error processing %s: %s", symbol, e)
                report.errors.append(f"{symbol}: {e}")

        logger.info(
            "Cycle %d done: equity=%.2f daily_pnl=%.2f closed=%d opened=%d signals=%d rejected=%d errors=%d",
            context.cycles_run, report.equity, context.daily_realized_pnl, len(report.closed),
            len(report.opened), report.signals, report.rejected, len(report.errors),
        )
        return report

    def process_symbol(self, symbol: str, context: CycleContext, report: CycleReport) -> Optional[Position]:
        history = self.market.get_price_history(symbol, self.interval, self.history_limit)
        if not history.ok:
            logger.warning("Skipping %s: history unavailable (%s: %s)", symbol, history.kind.value, history.message)
            report.skipped_symbols.append(symbol)
            return None
        bars = history.value
        signal = self.strategy.generate_signal(symbol, bars)
        if not signal.is_actionable:
            logger.debug("%s: %s", symbol, "; ".join(signal.rationale))
            if self.record_no_trade_signals:
                self.signals.insert(signal, "No trade signal generated")
            return None

        report.signals += 1
        signal = apply_advisory(self.advisory, signal, bars)
        decision = self.risk.validate_trade(signal, context.last_equity, context)
        signal_id = self.signals.insert(signal, None if decision.valid else decision.reason)
        if not decision.valid:
            report.rejected += 1
            logger.info("Signal rejected for %s: %s", symbol, decision.reason)
            return None

        logger.info("Signal approved for %s: %s (size %.8f)", symbol, signal.direction.value, decision.position_size)
        position = self.execute(signal, signal_id, decision)
        if position is not None:
            report.opened.append(position)
        return position

    def execute(self, signal: Signal, signal_id: int, decision: RiskDecision) -> Optional[Position]:
        """Place the entry, persist the position, then the protective stop."""
        symbol = signal.symbol
        side = OrderSide.for_direction(signal.direction)
        price = self.market.get_current_price(symbol)
        if not price.ok:
            logger.warning("No current price for %s (%s), entry skipped", symbol, price.message)
            return None

        order = self.executor.place_order(symbol, side, decision.position_size)
        if not order.success:
            logger.error("Entry order failed for %s: %s", symbol, order.message)
            return None
        entry_price = order.avg_price or price.value
        quantity = order.quantity or decision.position_size

        try:
            position = self.trades.insert_open(Position(
                symbol=symbol,
                side=side,
                entry_price=entry_price,
                quantity=quantity,
                stop_loss=signal.stop_loss,
                take_profit=signal.take_profit,
                opened_at=utc_now(),
                signal_id=signal_id,
                is_paper=self.executor.is_paper,
                order_id=order.order_id,
            ))
        except Exception as e:
            log = logger.error if self.executor.is_paper else logger.critical
            log("RECONCILIATION REQUIRED: %s %s %.8f filled (order %s) but trade record failed: %s",
                side.value, symbol, quantity, order.order_id, e)
            raise ReconciliationError(symbol, order.order_id, str(e)) from e

        stop = self.executor.place_protective_order(symbol, side.opposite, quantity, signal.stop_loss)
        if stop.success:
            position = replace(position, stop_order_id=stop.order_id)
            try:
                self.trades.set_stop_order(position.id, stop.order_id)
            except sqlite3.Error as e:
                log = logger.error if self.executor.is_paper else logger.critical
                log("Protective stop %s for %s placed but not recorded on trade %s: %s",
                    stop.order_id, symbol, position.id, e)
        else:
            logger.error("Protective stop failed for %s: %s", symbol, stop.message)
        self.signals.mark_executed(signal_id)
        logger.info(
            "Position opened: %s %s %.8f @ %.4f | SL %.4f | TP %.4f%s",
            side.value, symbol, quantity, entry_price, signal.stop_loss, signal.take_profit,
            " [PAPER]" if self.executor.is_paper else "",
        )
        return position


class Scheduler:
    """Runs cycles at a fixed cadence until stopped. At most one cycle at a time."""

    def __init__(self, cycle: TradingCycle, context: CycleContext, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.cycle = cycle
        self.context = context
        self.interval_seconds = interval_seconds
        self.stop_event = threading.Event()
        self._lock = threading.Lock()

    def run_once(self) -> Optional[CycleReport]:
        """Run one cycle; returns None if a cycle is already in flight."""
        if not self._lock.acquire(blocking=False):
            logger.warning("Previous cycle still running, tick skipped")
            return None
        try:
            return self.cycle.run(self.context, self.stop_event)
        except Exception as e:
            logger.exception("Cycle failed: %s", e)
            return None
        finally:
            self._lock.release()

    def run_forever(self) -> None:
        logger.info("Scheduler started: %d symbol(s) every %.0fs", len(self.cycle.symbols), self.interval_seconds)
        while not self.stop_event.is_set():
            started = time.monotonic()
            self.run_once()
            elapsed = time.monotonic() - started
            self.stop_event.wait(max(0.0, self.interval_seconds - elapsed))
        logger.info("Scheduler stopped")

    def stop(self, *_args) -> None:
        """Signal handler compatible."""
        logger.info("Stop requested")
        self.stop_event.set()

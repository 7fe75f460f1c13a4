"""
Risk gate: ordered trade validation, fixed-fractional position sizing and the
daily-loss circuit breaker.
Position size = (equity * risk_per_trade) / |entry - stop|, so the loss at the
stop is a constant fraction of equity whatever the stop width.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from market_scanner.core.types import Direction, Signal

if TYPE_CHECKING:
    from market_scanner.engine.context import CycleContext
    from market_scanner.storage.trade_repo import TradeRepo

logger = logging.getLogger("market_scanner.risk")


@dataclass(frozen=True)
class RiskDecision:
    """Result of risk check: valid with a size, or rejected with a reason."""
    valid: bool
    reason: Optional[str] = None
    position_size: Optional[float] = None


def reject(reason: str) -> RiskDecision:
    return RiskDecision(valid=False, reason=reason)


class RiskManager:
    """
    Rejects, in order: NO_TRADE, missing levels, signal risk above ceiling,
    tripped daily-loss breaker, existing open position for the symbol,
    (optional) portfolio position cap, advisory confidence below threshold
    (when scored), notional below floor, notional above the equity fraction.
    """

    def __init__(
        self,
        positions: "TradeRepo",
        risk_per_trade: float = 0.02,
        max_daily_loss_fraction: float = 0.10,
        initial_capital: float = 100.0,
        max_risk_percent: float = 5.0,
        min_notional: float = 10.0,
        max_position_pct_equity: float = 50.0,
        max_open_positions: int = 0,
        min_advisory_confidence: Optional[float] = 75.0,
    ):
        self.positions = positions
        self.risk_per_trade = risk_per_trade
        self.max_daily_loss_fraction = max_daily_loss_fraction
        self.initial_capital = initial_capital
        self.max_risk_percent = max_risk_percent
        self.min_notional = min_notional
        self.max_position_pct_equity = max_position_pct_equity
        self.max_open_positions = max_open_positions
        self.min_advisory_confidence = min_advisory_confidence

    @property
    def daily_loss_limit(self) -> float:
        return self.initial_capital * self.max_daily_loss_fraction

    def position_size(self, equity: float, entry_price: float, stop_loss: float) -> float:
        """Quantity such that hitting the stop loses equity * risk_per_trade."""
        distance = abs(entry_price - stop_loss)
        if distance <= 0:
            raise ValueError("zero stop distance")
        risk_amount = equity * self.risk_per_trade
        size = risk_amount / distance
        logger.info(
            "Position sizing: equity=%.2f risk=%.2f stop distance=%.8f size=%.8f",
            equity, risk_amount, distance, size,
        )
        return size

    def check_daily_loss(self, context: "CycleContext") -> bool:
        """Return False once today's realized loss is beyond the limit. Latches for the day."""
        if context.trading_halted:
            return False
        daily_pnl = context.daily_realized_pnl
        if daily_pnl < -self.daily_loss_limit:
            context.trading_halted = True
            logger.warning("Daily loss limit exceeded: %.2f < -%.2f", daily_pnl, self.daily_loss_limit)
            return False
        return True

    def validate_trade(self, signal: Signal, current_equity: float, context: "CycleContext") -> RiskDecision:
        if signal.direction == Direction.NO_TRADE:
            return reject("No trade signal generated")

        entry = signal.reference_price
        if not signal.stop_loss or not entry or signal.stop_loss <= 0 or entry <= 0:
            return reject("Missing stop-loss or entry price")

        if signal.max_risk_percent is not None and signal.max_risk_percent > self.max_risk_percent:
            return reject(f"Risk {signal.max_risk_percent}% exceeds maximum {self.max_risk_percent}%")

        if not self.check_daily_loss(context):
            return reject(
                f"daily loss limit exceeded ({context.daily_realized_pnl:.2f} < "
                f"-{self.daily_loss_limit:.2f}), trading halted until next day"
            )

        if self.positions.has_open_position(signal.symbol):
            return reject(f"Already have an open position for {signal.symbol}")

        if self.max_open_positions > 0 and self.positions.count_open() >= self.max_open_positions:
            return reject(f"Open position cap reached ({self.max_open_positions})")

        if (self.min_advisory_confidence is not None and signal.advisory_confidence is not None
                and signal.advisory_confidence < self.min_advisory_confidence):
            return reject(
                f"Advisory confidence {signal.advisory_confidence:.0f} below {self.min_advisory_confidence:.0f}"
            )

        try:
            size = self.position_size(current_equity, entry, signal.stop_loss)
        except ValueError as e:
            return reject(str(e))

        notional = size * entry
        if notional < self.min_notional:
            return reject(f"Position size too small ({notional:.2f} < {self.min_notional:.2f} minimum notional)")

        max_notional = current_equity * self.max_position_pct_equity / 100.0
        if notional > max_notional:
            return reject(
                f"Position size ({notional:.2f}) exceeds {self.max_position_pct_equity:g}% of equity"
            )

        return RiskDecision(valid=True, position_size=size)

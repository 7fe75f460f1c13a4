"""Risk management: trade validation, position sizing, daily-loss breaker."""

from market_scanner.risk.manager import RiskDecision, RiskManager

__all__ = ["RiskDecision", "RiskManager"]

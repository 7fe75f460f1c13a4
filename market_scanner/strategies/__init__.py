"""Strategies: base interface, multi-rule engine, advisory scoring."""

from market_scanner.strategies.advisory import AdvisoryScore, AdvisoryScorer, apply_advisory
from market_scanner.strategies.base import BaseStrategy, ExitDecision
from market_scanner.strategies.multi_strategy import IndicatorSnapshot, MultiStrategyEngine

__all__ = [
    "AdvisoryScore",
    "AdvisoryScorer",
    "apply_advisory",
    "BaseStrategy",
    "ExitDecision",
    "IndicatorSnapshot",
    "MultiStrategyEngine",
]

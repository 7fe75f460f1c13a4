"""
Optional advisory scorer. Purely advisory: the engine works the same with no
scorer configured, and a failing scorer leaves the signal unscored.
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from market_scanner.core.types import Position, PriceBar, Signal

logger = logging.getLogger("market_scanner.advisory")


@dataclass(frozen=True)
class AdvisoryScore:
    confidence: float  # 0-100
    comment: str = ""


class AdvisoryScorer(ABC):

    @abstractmethod
    def score_signal(self, symbol: str, rationale: Sequence[str], recent_bars: Sequence[PriceBar]) -> AdvisoryScore:
        pass

    def review_trade(self, position: Position) -> Optional[str]:
        """Post-mortem note for a closed trade. Default: none."""
        return None


def apply_advisory(scorer: Optional[AdvisoryScorer], signal: Signal, bars: Sequence[PriceBar]) -> Signal:
    """Attach confidence/comment to signal; unchanged if no scorer or the scorer fails."""
    if scorer is None or not signal.is_actionable:
        return signal
    try:
        score = scorer.score_signal(signal.symbol, signal.rationale, bars)
    except Exception as e:
        logger.warning("Advisory scoring failed for %s: %s", signal.symbol, e)
        return signal
    confidence = min(100.0, max(0.0, float(score.confidence)))
    logger.info("Advisory for %s: %.0f%% - %s", signal.symbol, confidence, score.comment)
    return signal.with_advisory(confidence, score.comment)

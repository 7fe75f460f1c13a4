"""Engine: per-account cycle context and the cycle scheduler."""

from market_scanner.engine.context import CycleContext, local_day_start, local_now
from market_scanner.engine.scheduler import CycleReport, Scheduler, TradingCycle

__all__ = ["CycleContext", "CycleReport", "Scheduler", "TradingCycle", "local_day_start", "local_now"]
